"""
Topology module: Junction forest construction.
"""

from lazyprop.topology.junction import JunctionForest, build_junction_forest, moralize, triangulate

__all__ = [
    "JunctionForest",
    "build_junction_forest",
    "moralize",
    "triangulate",
]
