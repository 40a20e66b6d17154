"""
Configuration loading and static chain settings
"""
