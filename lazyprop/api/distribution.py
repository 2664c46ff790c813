"""
lazyprop/api/distribution.py

Distribution value object returned by the engine's distribution queries.

A distribution is a flat potential over head variables followed by parent
variables. With parents it is conditional: each parent combination selects
a column of the (head_size, parent_size) view, normalized to 1 unless the
parent combination has probability 0.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from lazyprop.algebra.potential import combination_to_index, normalize_blocks, potential_size, stable_sum

Variable = Tuple[str, Tuple[str, ...]]


def _as_list(levels) -> List[str]:
    if isinstance(levels, str):
        return [levels]
    return list(levels)


class Distribution:
    """
    Joint or conditional distribution over named discrete variables.

    Example:
        >>> d = Distribution([("RAIN", ("T", "F"))], potentials=[0.2, 0.8])
        >>> d.infer({"RAIN": ["T"]})
        0.2
    """

    def __init__(
        self,
        head_variables: Sequence[Tuple[str, Sequence[str]]],
        parent_variables: Sequence[Tuple[str, Sequence[str]]] = (),
        potentials: Optional[Sequence[float]] = None,
    ):
        self._heads: List[Variable] = [(str(n), tuple(levels)) for n, levels in head_variables]
        self._parents: List[Variable] = [(str(n), tuple(levels)) for n, levels in parent_variables]
        if not self._heads:
            raise ValueError("A distribution needs at least one head variable")
        names = [n for n, _ in self._heads + self._parents]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate variable names in distribution: {names}")

        size = potential_size(len(levels) for _, levels in self._heads + self._parents)
        if potentials is None:
            values = normalize_blocks(np.ones(size), self.head_size)
        else:
            values = np.asarray(potentials, dtype=np.float64).reshape(-1)
        if values.size != size:
            raise ValueError(f"Distribution over {names} needs {size} potentials, got {values.size}")
        self._potentials = values

    @property
    def head_variables(self) -> List[Variable]:
        return list(self._heads)

    @property
    def parent_variables(self) -> List[Variable]:
        return list(self._parents)

    @property
    def variable_names(self) -> List[str]:
        return [n for n, _ in self._heads + self._parents]

    @property
    def variable_levels(self) -> List[Tuple[str, ...]]:
        return [levels for _, levels in self._heads + self._parents]

    @property
    def number_of_head_variables(self) -> int:
        return len(self._heads)

    @property
    def head_size(self) -> int:
        return potential_size(len(levels) for _, levels in self._heads)

    @property
    def parent_size(self) -> int:
        return potential_size(len(levels) for _, levels in self._parents)

    @property
    def potentials(self) -> np.ndarray:
        return self._potentials

    def table(self) -> np.ndarray:
        """Potentials as an n-d array, one axis per variable (heads first)."""
        return self._potentials.reshape(tuple(len(levels) for levels in self.variable_levels))

    def infer(
        self,
        event: Mapping[str, Sequence[str]],
        evidence: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> float:
        """
        Probability of an event, optionally given evidence.

        Every parent variable must be pinned by evidence to exactly one
        level. Evidence on head variables conditions the result.

        Args:
            event: Variable name -> allowed level names
            evidence: Variable name -> allowed level names

        Returns:
            Probability; 0 for unknown variables or levels in the event

        Raises:
            ValueError: If a parent is not pinned to exactly one known level
        """
        evidence = {k: _as_list(v) for k, v in (evidence or {}).items()}
        event = {k: _as_list(v) for k, v in event.items()}

        parent_combination: List[int] = []
        pinned: Dict[str, str] = {}
        for name, levels in self._parents:
            chosen = set(evidence.get(name, ()))
            if len(chosen) != 1:
                raise ValueError(f"Evidence must pin parent variable {name!r} to exactly one level")
            level = chosen.pop()
            if level not in levels:
                raise ValueError(f"Level {level!r} is not a level of parent variable {name!r}")
            parent_combination.append(levels.index(level))
            pinned[name] = level

        head_names = {n for n, _ in self._heads}
        for name, levels in event.items():
            if name in pinned:
                if pinned[name] not in levels:
                    return 0.0
            elif name not in head_names:
                return 0.0

        column = combination_to_index(parent_combination, [len(l) for _, l in self._parents])
        block = self._potentials.reshape(self.head_size, self.parent_size)[:, column]
        block = block.reshape(tuple(len(levels) for _, levels in self._heads))

        def mass(constraints: Mapping[str, Sequence[str]]) -> float:
            selected = block
            for axis, (name, levels) in enumerate(self._heads):
                if name in constraints:
                    idx = [levels.index(l) for l in levels if l in constraints[name]]
                    selected = np.take(selected, idx, axis=axis)
            return stable_sum(selected)

        head_evidence = {n: v for n, v in evidence.items() if n in head_names}
        joint = dict(head_evidence)
        for name, levels in event.items():
            if name in head_names:
                joint[name] = [l for l in levels if l in set(joint.get(name, levels))]

        denominator = mass(head_evidence)
        if denominator == 0.0:
            return 0.0
        return mass(joint) / denominator

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible representation."""
        return {
            "head_variables": [{"name": n, "levels": list(l)} for n, l in self._heads],
            "parent_variables": [{"name": n, "levels": list(l)} for n, l in self._parents],
            "potentials": self._potentials.tolist(),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Distribution":
        return Distribution(
            head_variables=[(v["name"], v["levels"]) for v in data["head_variables"]],
            parent_variables=[(v["name"], v["levels"]) for v in data["parent_variables"]],
            potentials=data["potentials"],
        )

    def __repr__(self) -> str:
        heads = ",".join(n for n, _ in self._heads)
        if not self._parents:
            return f"Distribution(P({heads}))"
        parents = ",".join(n for n, _ in self._parents)
        return f"Distribution(P({heads}|{parents}))"
