"""
lazyprop/runtime/evidence.py

Evidence handling.

Evidence is injected through per-variable indicator factors (evidence
functions) rather than by slicing domains, so that it can be retracted
without rebuilding the formula graph.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from lazyprop.core.registry import NodeRegistry
from lazyprop.errors import InvalidEvidence


def evidence_potential(levels: Optional[Sequence[int]], number_of_levels: int) -> np.ndarray:
    """
    Evaluate an evidence function.

    Args:
        levels: Allowed level indices, or None for no restriction
        number_of_levels: Level count of the variable

    Returns:
        All-ones vector when unrestricted, else a 0/1 indicator vector
    """
    if levels is None:
        return np.ones(number_of_levels, dtype=np.float64)
    data = np.zeros(number_of_levels, dtype=np.float64)
    data[list(levels)] = 1.0
    return data


def resolve_evidence(
    registry: NodeRegistry,
    evidence: Mapping[str, Sequence[str]],
) -> Dict[int, Tuple[int, ...]]:
    """
    Translate user evidence (name -> level names) into level indices.

    Unknown variables and empty level lists are ignored. Every level is
    checked before anything is returned, so callers can validate a whole
    mapping before mutating state.

    Args:
        registry: Variable registry
        evidence: Map from variable name to allowed level names

    Returns:
        Map from node id to sorted unique level indices

    Raises:
        InvalidEvidence: If a level does not exist for its variable
    """
    resolved: Dict[int, Tuple[int, ...]] = {}
    for name, level_names in evidence.items():
        node = registry.find(name)
        if node is None:
            continue
        if isinstance(level_names, str):
            level_names = [level_names]
        indices: List[int] = []
        for level in level_names:
            idx = node.level_index(level)
            if idx is None:
                raise InvalidEvidence(
                    f"Cannot set evidence on {name!r}: level {level!r} is not one of {list(node.levels)}"
                )
            indices.append(idx)
        if indices:
            resolved[node.id] = tuple(sorted(set(indices)))
    return resolved


def event_levels(
    registry: NodeRegistry,
    event: Mapping[str, Sequence[str]],
) -> Optional[Dict[int, List[int]]]:
    """
    Translate a query event into level indices.

    Returns None when the event names an unknown variable or only unknown
    levels for some variable, i.e. when the event has probability 0.
    """
    resolved: Dict[int, List[int]] = {}
    for name, level_names in event.items():
        node = registry.find(name)
        if node is None:
            return None
        if isinstance(level_names, str):
            level_names = [level_names]
        indices = sorted({node.level_index(l) for l in level_names} - {None})
        if not indices:
            return None
        resolved[node.id] = indices
    return resolved
