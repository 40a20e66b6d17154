"""
Route aggregation and selection
"""
