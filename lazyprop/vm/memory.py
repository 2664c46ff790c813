"""
lazyprop/vm/memory.py

Potentials cache, parallel to the formula graph.

An entry is None when the formula has not been evaluated under the current
evidence and distributions; otherwise it is the full (uncompacted) potential
of that formula.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

FormulaID = int
Snapshot = List[Optional[np.ndarray]]


class PotentialCache:
    """
    List-backed cache of formula potentials.

    Grows on demand as the formula graph grows.
    """

    def __init__(self, size: int = 0):
        self.data: List[Optional[np.ndarray]] = [None] * size

    def __len__(self) -> int:
        return len(self.data)

    def get(self, formula_id: FormulaID) -> Optional[np.ndarray]:
        """Cached potential, or None if absent."""
        if 0 <= formula_id < len(self.data):
            return self.data[formula_id]
        return None

    def has(self, formula_id: FormulaID) -> bool:
        return self.get(formula_id) is not None

    def __contains__(self, formula_id: FormulaID) -> bool:
        return self.has(formula_id)

    def put(self, formula_id: FormulaID, values: np.ndarray) -> None:
        """Store a potential, growing the cache as needed."""
        if formula_id >= len(self.data):
            self.data.extend([None] * (formula_id + 1 - len(self.data)))
        self.data[formula_id] = values

    def clear(self, formula_id: FormulaID) -> None:
        if 0 <= formula_id < len(self.data):
            self.data[formula_id] = None

    def clear_all(self) -> None:
        self.data = [None] * len(self.data)

    def snapshot(self) -> Snapshot:
        """Shallow copy of the entries."""
        return list(self.data)

    def restore(self, snapshot: Sequence[Optional[np.ndarray]]) -> int:
        """
        Reset every entry that changed since the snapshot.

        Entries added after the snapshot was taken become None.

        Returns:
            Number of entries reset
        """
        reset = 0
        for i in range(len(self.data)):
            old = snapshot[i] if i < len(snapshot) else None
            if self.data[i] is not old:
                self.data[i] = old
                reset += 1
        return reset
