"""
Clients for route, chain, bridge and market data
"""
