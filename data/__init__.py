"""
Upstream data collection and in-process storage
"""
