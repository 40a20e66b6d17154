"""
Structured logging
"""
