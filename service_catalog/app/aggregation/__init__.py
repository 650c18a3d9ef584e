"""
Fan-out aggregation for the Gateway.
"""
