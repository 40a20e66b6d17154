"""
Risk analysis: traditional scoring, heuristic analysis and assessment merging
"""
