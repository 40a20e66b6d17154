"""
Pre-execution swap simulation
"""
