"""
lazyprop/vm/compacting.py

Event-probability evaluation with compaction.

Rows whose restricted variables take levels outside the requested event
cannot contribute to the event's probability, so they are dropped at every
formula level. Formulas from the initial propagation are evaluated in full
(through the cached evaluator) and then compacted; supplemental join
formulas are evaluated directly in compacted form into a local memo and are
never written to the shared cache.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Sequence

import numpy as np

from lazyprop.algebra.potential import (
    compact_potential,
    compacted_levels,
    evaluate_marginal,
    evaluate_product,
    unit_potential,
)
from lazyprop.errors import InternalConsistencyError
from lazyprop.ir.schema import FormulaID, FormulaKind
from lazyprop.vm.evaluator import Evaluator


class CompactingEvaluator:
    """
    Evaluator over a restriction map.

    Attributes:
        evaluator: Cached full evaluator
        restrictions: Variable id -> allowed level indices (sorted)
        base_formula_count: Number of formulas built during initial propagation
    """

    def __init__(
        self,
        evaluator: Evaluator,
        restrictions: Mapping[int, Sequence[int]],
        base_formula_count: int,
    ):
        self.evaluator = evaluator
        self.graph = evaluator.graph
        self.restrictions = {v: list(levels) for v, levels in restrictions.items()}
        self.base_formula_count = base_formula_count
        self.memo: Dict[FormulaID, np.ndarray] = {}

    def levels_of(self, formula_id: FormulaID):
        f = self.graph[formula_id]
        return compacted_levels(f.domain, f.number_of_levels, self.restrictions)

    def evaluate(self, formula_id: FormulaID) -> np.ndarray:
        """
        Compacted potential of a formula.

        Raises:
            InternalConsistencyError: If a supplemental formula is a leaf
        """
        if formula_id in self.memo:
            return self.memo[formula_id]

        f = self.graph[formula_id]
        full = self.evaluator.cache.get(formula_id)
        if full is None and formula_id < self.base_formula_count:
            full = self.evaluator.evaluate(formula_id)

        if full is not None:
            values = compact_potential(full, f.domain, f.number_of_levels, self.restrictions)
        elif f.kind == FormulaKind.PRODUCT:
            factors: List = [
                (self.evaluate(fid), self.graph[fid].domain, self.levels_of(fid))
                for fid in f.factor_ids
            ]
            values = evaluate_product(factors, f.domain, self.levels_of(formula_id))
        elif f.kind == FormulaKind.MARGINAL:
            inner = self.graph[f.inner_id]
            values = evaluate_marginal(
                self.evaluate(inner.id), inner.domain, self.levels_of(inner.id), f.domain
            )
        elif f.kind == FormulaKind.UNIT:
            values = unit_potential()
        else:
            raise InternalConsistencyError(
                f"Supplemental formula {formula_id} has leaf kind {f.kind.name}"
            )

        self.memo[formula_id] = values
        return values
