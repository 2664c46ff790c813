"""
lazyprop/api/cpt.py

Conversion of user-supplied local distributions into node potentials.

A node potential is a flat array over (variable, *parents) with the
variable as the most significant position, normalized per parent
combination. Accepted inputs:

- CPT without parents: {level: p}
- CPT with parents: [{"when": {parent: level}, "then": {level: p}}, ...]
- Distribution object over the variable given its parents (any parent order)
- Flat potential function already in node-potential layout
- Nothing: uniform
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence, Tuple

import numpy as np

from lazyprop.algebra.potential import combination_to_index, evaluate_marginal, normalize_blocks, potential_size
from lazyprop.api.distribution import Distribution
from lazyprop.errors import InvalidDistribution

ParentSpec = Sequence[Tuple[str, Sequence[str]]]


def _row(name: str, levels: Sequence[str], probabilities: Mapping[str, float]) -> np.ndarray:
    unknown = set(probabilities) - set(levels)
    if unknown:
        raise InvalidDistribution(f"CPT of {name!r} names unknown levels {sorted(unknown)}")
    return np.array([float(probabilities.get(level, 0.0)) for level in levels], dtype=np.float64)


def cpt_to_potential(name: str, levels: Sequence[str], parents: ParentSpec, cpt: Any) -> np.ndarray:
    """
    Convert a CPT into a block-normalized node potential.

    Args:
        name: Variable name
        levels: Variable levels
        parents: (parent name, parent levels) pairs in node order
        cpt: {level: p} without parents, list of {"when", "then"} rows with parents

    Returns:
        Flat potential over (variable, *parents)

    Raises:
        InvalidDistribution: On unknown levels or parents, or missing parent combinations
    """
    if not parents:
        if not isinstance(cpt, Mapping):
            raise InvalidDistribution(f"CPT of {name!r} must map levels to probabilities")
        return normalize_blocks(_row(name, levels, cpt), len(levels))

    parent_levels = [tuple(pl) for _, pl in parents]
    table = np.full((len(levels), potential_size(len(pl) for pl in parent_levels)), np.nan)
    for entry in cpt:
        when = entry.get("when", {})
        combination = []
        for parent, plevels in zip(parents, parent_levels):
            level = when.get(parent[0])
            if level not in plevels:
                raise InvalidDistribution(
                    f"CPT row of {name!r} has invalid level {level!r} for parent {parent[0]!r}"
                )
            combination.append(plevels.index(level))
        column = combination_to_index(combination, [len(pl) for pl in parent_levels])
        table[:, column] = _row(name, levels, entry.get("then", {}))

    if np.isnan(table).any():
        raise InvalidDistribution(f"CPT of {name!r} does not cover every parent combination")
    return normalize_blocks(table.reshape(-1), len(levels))


def distribution_to_potential(
    distribution: Distribution,
    name: str,
    levels: Sequence[str],
    parents: ParentSpec,
) -> np.ndarray:
    """
    Reorder a distribution of a variable given its parents into node-potential layout.

    Raises:
        InvalidDistribution: If the distribution is not over exactly this variable
            given exactly these parents (with matching levels)
    """
    heads = distribution.head_variables
    if len(heads) != 1 or heads[0][0] != name:
        raise InvalidDistribution(f"Distribution must have {name!r} as its only head variable")
    if tuple(heads[0][1]) != tuple(levels):
        raise InvalidDistribution(f"Distribution levels {heads[0][1]} do not match {name!r} levels {tuple(levels)}")

    given = dict(distribution.parent_variables)
    expected = {p: tuple(pl) for p, pl in parents}
    if set(given) != set(expected):
        raise InvalidDistribution(
            f"Distribution parents {sorted(given)} do not match {name!r} parents {sorted(expected)}"
        )
    for parent, plevels in expected.items():
        if tuple(given[parent]) != plevels:
            raise InvalidDistribution(f"Distribution levels of parent {parent!r} do not match the network")

    names = distribution.variable_names
    positions = list(range(len(names)))
    keep = [names.index(name)] + [names.index(p) for p, _ in parents]
    values = evaluate_marginal(
        distribution.potentials, positions, [len(l) for l in distribution.variable_levels], keep
    )
    return normalize_blocks(values, len(levels))


def node_potential_from_spec(name: str, levels: Sequence[str], parents: ParentSpec, spec: Mapping[str, Any]) -> np.ndarray:
    """
    Build a node potential from a network entry.

    Uses "cpt", "distribution" or "potential_function", in that order, and
    falls back to uniform.
    """
    size = len(levels) * potential_size(len(pl) for _, pl in parents)
    if spec.get("cpt") is not None:
        return cpt_to_potential(name, levels, parents, spec["cpt"])
    if spec.get("distribution") is not None:
        return distribution_to_potential(spec["distribution"], name, levels, parents)
    if spec.get("potential_function") is not None:
        values = np.asarray(spec["potential_function"], dtype=np.float64).reshape(-1)
        if values.size != size:
            raise InvalidDistribution(f"Potential function of {name!r} needs {size} entries, got {values.size}")
        return normalize_blocks(values, len(levels))
    return normalize_blocks(np.ones(size, dtype=np.float64), len(levels))
