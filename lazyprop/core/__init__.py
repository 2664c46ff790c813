"""
Core module: Variable and clique records.
"""

from lazyprop.core.registry import Clique, Node, NodeRegistry

__all__ = [
    "Clique",
    "Node",
    "NodeRegistry",
]
