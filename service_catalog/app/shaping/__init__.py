"""
Response shaping: pure mappings from upstream records to output records.
"""
