"""
Bridge and execution support
"""
