"""
Compiler module: Symbolic message passing over junction trees.
"""

from lazyprop.compiler.plan import TreePlan, build_tree_plan
from lazyprop.compiler.propagation import build_message, compile_network
from lazyprop.compiler.join import pick_root_clique, propagate_join_messages, validate_join_request

__all__ = [
    "TreePlan",
    "build_tree_plan",
    "build_message",
    "compile_network",
    "pick_root_clique",
    "propagate_join_messages",
    "validate_join_request",
]
