"""
Shared constants, errors and helpers
"""
