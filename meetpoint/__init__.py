"""
Meet in the Middle core: midpoint calculation, venue search and ranking
"""

__version__ = '0.2.0'
