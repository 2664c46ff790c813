"""
lazyprop/algebra/potential.py

Pure potential algebra over flat combinatorial arrays.

A potential is a flat float64 array over an ordered domain of variable ids.
Index i decodes to a combination (c0, ..., ck-1) with the first domain
variable as the most significant digit, which is numpy's C order:

    i = c0*L1*...*Lk-1 + c1*L2*...*Lk-1 + ... + ck-1

Core operations:
- evaluate_product: multiply factors onto a target domain
- evaluate_marginal: sum out every variable not in a kept domain
- compact_potential: drop levels excluded by a restriction map
"""

from __future__ import annotations

import math
from typing import Iterable, Mapping, Sequence, Tuple

import numpy as np

Domain = Tuple[int, ...]
Levels = Tuple[int, ...]
Factor = Tuple[np.ndarray, Sequence[int], Sequence[int]]
Restrictions = Mapping[int, Sequence[int]]


def _shape(number_of_levels: Sequence[int]) -> Tuple[int, ...]:
    return tuple(int(n) for n in number_of_levels)


def _as_array(values, number_of_levels: Sequence[int]) -> np.ndarray:
    """View a flat potential as an n-d array with one axis per domain variable."""
    return np.asarray(values, dtype=np.float64).reshape(_shape(number_of_levels))


def potential_size(number_of_levels: Sequence[int]) -> int:
    """Number of entries of a potential with the given level counts."""
    size = 1
    for n in number_of_levels:
        size *= int(n)
    return size


def index_to_combination(index: int, number_of_levels: Sequence[int]) -> Tuple[int, ...]:
    """
    Decode a flat index into one level index per domain position.

    Args:
        index: Flat index into the potential
        number_of_levels: Level count of each domain position

    Returns:
        Tuple of level indices, most significant first
    """
    if not number_of_levels:
        return ()
    return tuple(int(c) for c in np.unravel_index(index, _shape(number_of_levels)))


def combination_to_index(combination: Sequence[int], number_of_levels: Sequence[int]) -> int:
    """Inverse of index_to_combination."""
    if not number_of_levels:
        return 0
    return int(np.ravel_multi_index(tuple(combination), _shape(number_of_levels)))


def unit_potential() -> np.ndarray:
    """The potential of the empty domain: a single 1."""
    return np.ones(1, dtype=np.float64)


def stable_sum(values: Iterable[float]) -> float:
    """Exactly rounded sum of a flat sequence of floats."""
    return math.fsum(np.asarray(values, dtype=np.float64).ravel())


def _align(
    arr: np.ndarray,
    domain: Sequence[int],
    number_of_levels: Sequence[int],
    out_domain: Sequence[int],
    out_levels: Sequence[int],
) -> np.ndarray:
    """
    Transpose and reshape arr so that numpy broadcasting lines it up with out_domain.

    Variables of out_domain missing from domain become singleton axes.

    Raises:
        ValueError: If a variable is missing from out_domain or its level count differs
    """
    out_pos = {v: i for i, v in enumerate(out_domain)}
    for v, n in zip(domain, number_of_levels):
        if v not in out_pos:
            raise ValueError(f"evaluate_product: factor variable {v} not in output domain")
        if int(out_levels[out_pos[v]]) != int(n):
            raise ValueError(f"evaluate_product: level count mismatch for variable {v}")

    order = sorted(range(len(domain)), key=lambda i: out_pos[domain[i]])
    if order != list(range(len(domain))):
        arr = np.transpose(arr, axes=order)

    present = set(domain)
    shape = tuple(int(n) if v in present else 1 for v, n in zip(out_domain, out_levels))
    return arr.reshape(shape)


def evaluate_product(
    factors: Sequence[Factor],
    domain: Sequence[int],
    number_of_levels: Sequence[int],
) -> np.ndarray:
    """
    Multiply factors into a potential over domain.

    Every factor domain must be a subset of domain. Works unchanged on
    compacted potentials when given compacted level counts.

    Args:
        factors: List of (values, domain, number_of_levels) triples
        domain: Output domain
        number_of_levels: Output level counts

    Returns:
        Flat product potential over domain
    """
    if not factors:
        return np.ones(potential_size(number_of_levels), dtype=np.float64)

    shape = _shape(number_of_levels)
    acc = None
    for values, f_domain, f_levels in factors:
        view = _align(_as_array(values, f_levels), f_domain, f_levels, domain, number_of_levels)
        if acc is None:
            acc = np.broadcast_to(view, shape).copy()
        else:
            acc = acc * view

    return acc.reshape(-1)


def evaluate_marginal(
    values: np.ndarray,
    domain: Sequence[int],
    number_of_levels: Sequence[int],
    keep_domain: Sequence[int],
) -> np.ndarray:
    """
    Sum out every variable of domain that is not in keep_domain.

    The output follows keep_domain order, so a permutation of domain permutes
    the potential. Eliminated axes are moved to the end and reduced along a
    contiguous axis, which numpy sums pairwise.

    Args:
        values: Flat inner potential
        domain: Inner domain
        number_of_levels: Inner level counts
        keep_domain: Variables to keep, in output order

    Returns:
        Flat marginal potential over keep_domain

    Raises:
        ValueError: If keep_domain is not a duplicate-free subset of domain
    """
    pos = {v: i for i, v in enumerate(domain)}
    if len(set(keep_domain)) != len(keep_domain):
        raise ValueError(f"evaluate_marginal: duplicate variables in keep domain {tuple(keep_domain)}")
    missing = [v for v in keep_domain if v not in pos]
    if missing:
        raise ValueError(f"evaluate_marginal: variables {missing} not in inner domain")

    arr = _as_array(values, number_of_levels)
    keep_axes = [pos[v] for v in keep_domain]
    keep_set = set(keep_axes)
    drop_axes = [i for i in range(len(domain)) if i not in keep_set]
    perm = keep_axes + drop_axes
    if perm != list(range(len(domain))):
        arr = np.transpose(arr, axes=perm)

    keep_size = potential_size([number_of_levels[i] for i in keep_axes])
    x = np.ascontiguousarray(arr).reshape(keep_size, -1)
    return x.sum(axis=1)


def normalize(values: np.ndarray) -> np.ndarray:
    """Divide by the total; a zero total is left as is."""
    arr = np.asarray(values, dtype=np.float64)
    total = stable_sum(arr)
    if total == 0.0:
        return arr.copy()
    return arr / total


def normalize_blocks(values: np.ndarray, head_size: int) -> np.ndarray:
    """
    Normalize a conditional potential laid out as heads followed by parents.

    Head variables are the most significant positions, so a fixed parent
    combination selects one column of the (head_size, parent_size) view.
    Each column is divided by its sum; zero columns are left unnormalized.

    Args:
        values: Flat potential over heads + parents
        head_size: Product of the head variables' level counts

    Returns:
        Flat block-normalized potential
    """
    arr = np.asarray(values, dtype=np.float64).reshape(head_size, -1)
    totals = arr.sum(axis=0)
    out = arr.copy()
    nonzero = totals != 0.0
    out[:, nonzero] = arr[:, nonzero] / totals[nonzero]
    return out.reshape(-1)


def compacted_levels(
    domain: Sequence[int],
    number_of_levels: Sequence[int],
    restrictions: Restrictions,
) -> Levels:
    """Level counts of a potential after compaction."""
    return tuple(
        len(restrictions[v]) if v in restrictions else int(n)
        for v, n in zip(domain, number_of_levels)
    )


def compact_potential(
    values: np.ndarray,
    domain: Sequence[int],
    number_of_levels: Sequence[int],
    restrictions: Restrictions,
) -> np.ndarray:
    """
    Keep only the rows whose restricted variables take allowed levels.

    Args:
        values: Flat full potential
        domain: Its domain
        number_of_levels: Its full level counts
        restrictions: Variable id -> allowed level indices (sorted)

    Returns:
        Flat potential over the same domain with compacted level counts
    """
    arr = _as_array(values, number_of_levels)
    for axis, v in enumerate(domain):
        if v in restrictions:
            arr = np.take(arr, list(restrictions[v]), axis=axis)
    return np.ascontiguousarray(arr).reshape(-1)
