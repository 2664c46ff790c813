"""
lazyprop/ir/schema.py

Formula records for the symbolic formula graph.

Kinds:
- UNIT: Empty domain, value 1
- NODE_POTENTIAL: Leaf CPT factor of one variable over itself + parents
- EVIDENCE_FUNCTION: Per-variable indicator factor (mutable levels)
- PRODUCT: Product of factor formulas
- MARGINAL: Sum-out of an inner formula onto a kept domain
- REFERENCE: Alias to another formula id, never stored in the graph
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Set, Tuple

from lazyprop.algebra.potential import potential_size

FormulaID = int


class FormulaKind(Enum):
    """Formula kinds."""
    UNIT = 1
    NODE_POTENTIAL = 2
    EVIDENCE_FUNCTION = 3
    PRODUCT = 4
    MARGINAL = 5
    REFERENCE = 6


@dataclass
class Formula:
    """
    A node of the formula DAG.

    Attributes:
        kind: Formula kind
        name: Canonical name used for deduplication
        domain: Ordered variable ids
        number_of_levels: Level count per domain position
        id: Position in the formula graph (-1 until upserted)
        node_id: Variable of a NODE_POTENTIAL or EVIDENCE_FUNCTION
        levels: Allowed level indices of an EVIDENCE_FUNCTION (None = no restriction)
        factor_ids: Operands of a PRODUCT
        inner_id: Operand of a MARGINAL
        target_id: Target of a REFERENCE
        referenced_by: Ids of formulas that consume this one
    """
    kind: FormulaKind
    name: str
    domain: Tuple[int, ...]
    number_of_levels: Tuple[int, ...]
    id: FormulaID = -1
    node_id: Optional[int] = None
    levels: Optional[Tuple[int, ...]] = None
    factor_ids: Tuple[FormulaID, ...] = ()
    inner_id: Optional[FormulaID] = None
    target_id: Optional[FormulaID] = None
    referenced_by: Set[FormulaID] = field(default_factory=set)

    @property
    def size(self) -> int:
        """Number of entries of this formula's potential."""
        return potential_size(self.number_of_levels)

    @property
    def operand_ids(self) -> Tuple[FormulaID, ...]:
        """Formula ids this formula is computed from."""
        if self.kind == FormulaKind.PRODUCT:
            return self.factor_ids
        if self.kind == FormulaKind.MARGINAL:
            return (self.inner_id,)
        if self.kind == FormulaKind.REFERENCE:
            return (self.target_id,)
        return ()

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible view of the record."""
        return {
            "id": self.id,
            "kind": self.kind.name,
            "name": self.name,
            "domain": list(self.domain),
            "number_of_levels": list(self.number_of_levels),
            "node_id": self.node_id,
            "levels": None if self.levels is None else list(self.levels),
            "factor_ids": list(self.factor_ids),
            "inner_id": self.inner_id,
            "target_id": self.target_id,
            "referenced_by": sorted(self.referenced_by),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Formula":
        """Inverse of to_dict."""
        return Formula(
            kind=FormulaKind[data["kind"]],
            name=data["name"],
            domain=tuple(data["domain"]),
            number_of_levels=tuple(data["number_of_levels"]),
            id=data["id"],
            node_id=data["node_id"],
            levels=None if data["levels"] is None else tuple(data["levels"]),
            factor_ids=tuple(data["factor_ids"]),
            inner_id=data["inner_id"],
            target_id=data["target_id"],
            referenced_by=set(data["referenced_by"]),
        )

    def __repr__(self) -> str:
        return f"Formula({self.id}, {self.kind.name}, {self.name})"
