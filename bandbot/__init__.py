"""
Moving-average band trader for a Uniswap V3 pool.
"""

__version__ = "0.1.0"
