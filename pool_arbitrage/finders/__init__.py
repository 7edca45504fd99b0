"""
Opportunity finders: spatial (2-pool) and triangular (3-pool) discrepancy search.
"""

from .spatial import SpatialFinder
from .triangular import TriangularFinder

__all__ = ["SpatialFinder", "TriangularFinder"]
