"""
In-process TTL caching
"""
