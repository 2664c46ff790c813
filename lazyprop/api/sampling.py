"""
lazyprop/api/sampling.py

Random samples from the posterior distribution.

Each component is visited in preorder from its root. A clique's posterior
is conditioned on the variables already drawn (its separator with the
parent) and its remaining "head" variables are drawn from that conditional.
Samples are drawn in bulk, one vectorized inverse-CDF step per clique.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

import numpy as np

from lazyprop.algebra.potential import evaluate_marginal, potential_size
from lazyprop.compiler.plan import build_tree_plan
from lazyprop.compiler.propagation import clique_neighbors
from lazyprop.errors import InternalConsistencyError

if TYPE_CHECKING:
    from lazyprop.engine import LazyPropagationEngine

logger = logging.getLogger(__name__)

SamplingStep = Tuple[List[int], List[int], np.ndarray]


def _sampling_steps(engine: "LazyPropagationEngine") -> List[SamplingStep]:
    """(given variables, head variables, conditional table) per clique, in draw order."""
    neighbors = clique_neighbors(engine.cliques)
    drawn = set()
    steps: List[SamplingStep] = []
    for component in engine.components:
        plan = build_tree_plan(neighbors, component[0])
        for cid in plan.preorder:
            posterior = engine.graph[engine.cliques[cid].posterior]
            heads = [v for v in posterior.domain if v not in drawn]
            given = [v for v in posterior.domain if v in drawn]
            if not heads:
                raise InternalConsistencyError(f"Clique {cid} has no head variables to sample")
            values = evaluate_marginal(
                engine.evaluator.evaluate(posterior.id), posterior.domain, posterior.number_of_levels,
                given + heads,
            )
            head_size = potential_size(engine.registry[v].number_of_levels for v in heads)
            steps.append((given, heads, values.reshape(-1, head_size)))
            drawn.update(heads)
    return steps


def get_random_sample(
    engine: "LazyPropagationEngine",
    size: int,
    seed: Optional[int] = None,
) -> List[Dict[str, str]]:
    """
    Draw samples from the engine's posterior (respects current evidence).

    Args:
        engine: Inference engine
        size: Number of samples
        seed: Seed for numpy's default Generator

    Returns:
        List of {variable name: level name} dicts

    Raises:
        ValueError: If size is negative or the evidence has probability 0
    """
    if size < 0:
        raise ValueError(f"Sample size must be non-negative, got {size}")
    if size == 0:
        return []

    rng = np.random.default_rng(seed)
    codes = np.zeros((size, len(engine.registry)), dtype=np.int64)

    for given, heads, table in _sampling_steps(engine):
        if given:
            given_levels = [engine.registry[v].number_of_levels for v in given]
            rows = table[np.ravel_multi_index(tuple(codes[:, v] for v in given), given_levels)]
        else:
            rows = np.broadcast_to(table[0], (size, table.shape[1]))
        totals = rows.sum(axis=1)
        if np.any(totals <= 0.0):
            raise ValueError("Cannot sample: the current evidence has probability 0")
        cdf = np.cumsum(rows, axis=1) / totals[:, None]
        u = rng.random(size)
        picks = np.minimum((cdf <= u[:, None]).sum(axis=1), table.shape[1] - 1)
        head_levels = [engine.registry[v].number_of_levels for v in heads]
        for v, column in zip(heads, np.unravel_index(picks, head_levels)):
            codes[:, v] = column

    logger.debug("Drew %d samples over %d variables", size, len(engine.registry))
    names = [(node.name, node.levels) for node in engine.registry]
    return [
        {name: levels[code] for (name, levels), code in zip(names, row)}
        for row in codes.tolist()
    ]
