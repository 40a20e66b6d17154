"""
Wormhole corridor bridging
"""
