"""
lazyprop/vm/evaluator.py

On-demand evaluation of formulas with memoization and dependency-based
invalidation.

evaluate() walks the formula DAG with an explicit work list: operands are
evaluated first, and every computed potential is written to the cache at
its formula id. clear_cached_values() walks referenced_by edges and stops
at entries that are already None, so a formula reachable along several
paths is cleared once.
"""

from __future__ import annotations

import logging
from typing import Callable, List

import numpy as np

from lazyprop.algebra.potential import evaluate_marginal, evaluate_product, unit_potential
from lazyprop.ir.factory import FormulaGraph
from lazyprop.ir.schema import Formula, FormulaID, FormulaKind
from lazyprop.runtime.evidence import evidence_potential
from lazyprop.vm.memory import PotentialCache

logger = logging.getLogger(__name__)

FactorProvider = Callable[[int], np.ndarray]


class Evaluator:
    """
    Evaluator for formula potentials.

    Attributes:
        graph: Formula graph
        cache: Potentials cache parallel to the graph
        factor_provider: Node id -> current local potential of that node
    """

    def __init__(self, graph: FormulaGraph, cache: PotentialCache, factor_provider: FactorProvider):
        self.graph = graph
        self.cache = cache
        self.factor_provider = factor_provider

    def evaluate(self, formula_id: FormulaID) -> np.ndarray:
        """
        Evaluate a formula, reusing and filling the cache.

        Args:
            formula_id: Formula to evaluate

        Returns:
            Flat potential over the formula's domain
        """
        cached = self.cache.get(formula_id)
        if cached is not None:
            return cached

        stack: List[FormulaID] = [formula_id]
        while stack:
            fid = stack[-1]
            if self.cache.get(fid) is not None:
                stack.pop()
                continue
            formula = self.graph[fid]
            pending = [op for op in formula.operand_ids if self.cache.get(op) is None]
            if pending:
                stack.extend(pending)
                continue
            stack.pop()
            self.cache.put(fid, self._execute(formula))

        return self.cache.get(formula_id)

    def _execute(self, formula: Formula) -> np.ndarray:
        """Compute one formula from its (already cached) operands."""
        kind = formula.kind

        if kind == FormulaKind.UNIT:
            return unit_potential()

        elif kind == FormulaKind.NODE_POTENTIAL:
            return np.asarray(self.factor_provider(formula.node_id), dtype=np.float64)

        elif kind == FormulaKind.EVIDENCE_FUNCTION:
            return evidence_potential(formula.levels, formula.number_of_levels[0])

        elif kind == FormulaKind.PRODUCT:
            factors = []
            for fid in formula.factor_ids:
                f = self.graph[fid]
                factors.append((self.cache.get(fid), f.domain, f.number_of_levels))
            return evaluate_product(factors, formula.domain, formula.number_of_levels)

        elif kind == FormulaKind.MARGINAL:
            inner = self.graph[formula.inner_id]
            return evaluate_marginal(
                self.cache.get(inner.id), inner.domain, inner.number_of_levels, formula.domain
            )

        elif kind == FormulaKind.REFERENCE:
            return self.cache.get(formula.target_id)

        else:
            raise ValueError(f"Unknown formula kind: {kind}")

    def clear_cached_values(self, formula_id: FormulaID) -> int:
        """
        Invalidate a formula and everything that depends on it.

        Args:
            formula_id: Formula whose inputs changed

        Returns:
            Number of cache entries cleared
        """
        cleared = 0
        stack: List[FormulaID] = [formula_id]
        while stack:
            fid = stack.pop()
            if self.cache.get(fid) is None:
                continue
            self.cache.clear(fid)
            cleared += 1
            stack.extend(self.graph[fid].referenced_by)
        logger.debug("Cleared %d cached potentials from formula %d", cleared, formula_id)
        return cleared
