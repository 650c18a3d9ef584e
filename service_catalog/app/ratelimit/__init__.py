"""
Rate limiting package for the Gateway.

Holds the inbound fixed-window limiter that gates callers per upstream
dependency, and the outbound token-bucket throttle that paces calls made
to each upstream.
"""
