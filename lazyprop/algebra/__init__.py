"""
Algebra module: Pure potential algebra over flat combinatorial arrays.
"""

from lazyprop.algebra.potential import (
    combination_to_index,
    compact_potential,
    compacted_levels,
    evaluate_marginal,
    evaluate_product,
    index_to_combination,
    normalize,
    normalize_blocks,
    stable_sum,
    unit_potential,
)

__all__ = [
    "combination_to_index",
    "compact_potential",
    "compacted_levels",
    "evaluate_marginal",
    "evaluate_product",
    "index_to_combination",
    "normalize",
    "normalize_blocks",
    "stable_sum",
    "unit_potential",
]
