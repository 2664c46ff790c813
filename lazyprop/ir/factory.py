"""
lazyprop/ir/factory.py

Formula graph arena with a canonicalizing factory.

Formulas are appended to a single list and addressed by id. upsert()
looks a prospective formula up by canonical name and returns the existing
record when there is one, so structurally identical formulas always share
one id (and therefore one cache slot). New formulas register themselves in
their operands' referenced_by sets.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence

from lazyprop.errors import InternalConsistencyError
from lazyprop.ir.schema import Formula, FormulaID, FormulaKind

logger = logging.getLogger(__name__)

UNIT_NAME = "1"


def _join_ids(ids: Iterable[int]) -> str:
    return ",".join(str(i) for i in ids)


class FormulaGraph:
    """
    Arena of formulas indexed by id.

    Ids are list positions and are never reused.
    """

    def __init__(self):
        self.formulas: List[Formula] = []
        self._by_name: Dict[str, FormulaID] = {}

    def __len__(self) -> int:
        return len(self.formulas)

    def __iter__(self):
        return iter(self.formulas)

    def __getitem__(self, formula_id: FormulaID) -> Formula:
        return self.formulas[formula_id]

    def find(self, name: str):
        """Get the formula with a canonical name, or None."""
        fid = self._by_name.get(name)
        return None if fid is None else self.formulas[fid]

    def dereference(self, formula_id: FormulaID) -> Formula:
        """
        Resolve a formula id to its live record, following references.

        Raises:
            InternalConsistencyError: If the id does not name a formula
        """
        seen = set()
        while True:
            if formula_id is None or not 0 <= formula_id < len(self.formulas):
                raise InternalConsistencyError(f"Dangling formula reference: {formula_id}")
            formula = self.formulas[formula_id]
            if formula.kind != FormulaKind.REFERENCE:
                return formula
            if formula_id in seen:
                raise InternalConsistencyError(f"Reference cycle at formula {formula_id}")
            seen.add(formula_id)
            formula_id = formula.target_id

    def upsert(self, formula: Formula) -> Formula:
        """
        Insert a formula unless one with the same canonical name exists.

        Args:
            formula: Prospective formula (its id is ignored)

        Returns:
            The live record, either pre-existing or newly inserted
        """
        if formula.kind == FormulaKind.REFERENCE:
            return self.dereference(formula.target_id)

        existing = self._by_name.get(formula.name)
        if existing is not None:
            return self.formulas[existing]

        for operand in formula.operand_ids:
            self.dereference(operand)

        formula.id = len(self.formulas)
        self.formulas.append(formula)
        self._by_name[formula.name] = formula.id
        for operand in formula.operand_ids:
            self.formulas[operand].referenced_by.add(formula.id)
        return formula

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def unit(self) -> Formula:
        """The unit formula (empty domain, value 1)."""
        return self.upsert(Formula(
            kind=FormulaKind.UNIT,
            name=UNIT_NAME,
            domain=(),
            number_of_levels=(),
        ))

    def node_potential(self, node_id: int, domain: Sequence[int], number_of_levels: Sequence[int]) -> Formula:
        """Leaf CPT formula of a variable over (variable, *parents)."""
        return self.upsert(Formula(
            kind=FormulaKind.NODE_POTENTIAL,
            name=f"node({node_id})",
            domain=tuple(domain),
            number_of_levels=tuple(number_of_levels),
            node_id=node_id,
        ))

    def evidence_function(self, node_id: int, number_of_levels: int) -> Formula:
        """Evidence indicator formula of a variable, initially unrestricted."""
        return self.upsert(Formula(
            kind=FormulaKind.EVIDENCE_FUNCTION,
            name=f"evidence({node_id})",
            domain=(node_id,),
            number_of_levels=(int(number_of_levels),),
            node_id=node_id,
            levels=None,
        ))

    def product(self, formula_ids: Iterable[FormulaID]) -> Formula:
        """
        Product of formulas over the sorted union of their domains.

        Duplicate operands are dropped. No operands give the unit formula,
        one operand gives that operand.
        """
        ids = sorted({self.dereference(fid).id for fid in formula_ids})
        if not ids:
            return self.unit()
        if len(ids) == 1:
            return self.formulas[ids[0]]

        levels: Dict[int, int] = {}
        for fid in ids:
            f = self.formulas[fid]
            for v, n in zip(f.domain, f.number_of_levels):
                levels[v] = n
        domain = tuple(sorted(levels))

        return self.upsert(Formula(
            kind=FormulaKind.PRODUCT,
            name=f"product({_join_ids(ids)})",
            domain=domain,
            number_of_levels=tuple(levels[v] for v in domain),
            factor_ids=tuple(ids),
        ))

    def marginal(self, keep_domain: Iterable[int], inner_id: FormulaID) -> Formula:
        """
        Marginal of a formula onto keep_domain.

        keep_domain is filtered to the inner domain and keeps its own order.
        A marginal that keeps the whole inner domain in order is the inner
        formula itself.
        """
        inner = self.dereference(inner_id)
        inner_pos = {v: i for i, v in enumerate(inner.domain)}
        domain: List[int] = []
        for v in keep_domain:
            if v in inner_pos and v not in domain:
                domain.append(v)
        if tuple(domain) == inner.domain:
            return inner

        return self.upsert(Formula(
            kind=FormulaKind.MARGINAL,
            name=f"marginal({_join_ids(domain)};{inner.id})",
            domain=tuple(domain),
            number_of_levels=tuple(inner.number_of_levels[inner_pos[v]] for v in domain),
            inner_id=inner.id,
        ))

    def reference(self, formula_id: FormulaID) -> Formula:
        """Resolve an alias to the live formula it names."""
        target = self.formulas[formula_id] if 0 <= formula_id < len(self.formulas) else None
        return self.upsert(Formula(
            kind=FormulaKind.REFERENCE,
            name=f"reference({formula_id})",
            domain=() if target is None else target.domain,
            number_of_levels=() if target is None else target.number_of_levels,
            target_id=formula_id,
        ))

    def restore(self, formulas: Sequence[Formula]) -> None:
        """Replace the arena contents with previously dumped records."""
        self.formulas = list(formulas)
        self._by_name = {f.name: f.id for f in self.formulas}
        logger.debug("Restored %d formulas", len(self.formulas))
