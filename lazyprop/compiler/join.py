"""
lazyprop/compiler/join.py

Join propagation: symbolic message passing that keeps a requested set of
variables.

Identical to the collect pass of compile_network, except that every
marginalization keeps separator + join domain, so requested variables
survive even when they are not in the local separator. Only components
containing a requested variable are visited. The per-component joints are
multiplied together. New formulas go through the shared upsert factory, so
repeated requests reuse earlier work.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

from lazyprop.compiler.plan import build_tree_plan
from lazyprop.compiler.propagation import DirectedEdge, build_message, clique_neighbors, evidence_ids
from lazyprop.core.registry import Clique, NodeRegistry
from lazyprop.errors import InvalidJoinRequest
from lazyprop.ir.factory import FormulaGraph
from lazyprop.ir.schema import Formula

logger = logging.getLogger(__name__)

JOIN_ERROR = "Cannot compute the join over the given head and parent variables."


def validate_join_request(
    head_ids: Sequence[int],
    parent_ids: Sequence[int],
    number_of_nodes: int,
) -> None:
    """
    Check join preconditions.

    Raises:
        InvalidJoinRequest: Naming the first violated precondition
    """
    if len(head_ids) == 0:
        raise InvalidJoinRequest(f"{JOIN_ERROR} At least one head variable is required.")
    if len(set(head_ids)) != len(head_ids):
        raise InvalidJoinRequest(f"{JOIN_ERROR} Head variables must be distinct.")
    if len(set(parent_ids)) != len(parent_ids):
        raise InvalidJoinRequest(f"{JOIN_ERROR} Parent variables must be distinct.")
    if set(head_ids) & set(parent_ids):
        raise InvalidJoinRequest(f"{JOIN_ERROR} Head and parent variables must not overlap.")
    invalid = [v for v in list(head_ids) + list(parent_ids) if not 0 <= v < number_of_nodes]
    if invalid:
        raise InvalidJoinRequest(f"{JOIN_ERROR} Unknown variable indices: {invalid}.")


def pick_root_clique(
    graph: FormulaGraph,
    cliques: Sequence[Clique],
    clique_ids: Sequence[int],
    join_domain: Sequence[int],
) -> int:
    """
    Choose the clique that holds the most join variables.

    Ties go to the smaller posterior, then fewer neighbors, then smaller id.
    """
    wanted = set(join_domain)

    def rank(cid: int) -> Tuple[int, int, int, int]:
        c = cliques[cid]
        return (-len(wanted.intersection(c.domain)), graph[c.posterior].size, len(c.neighbors), c.id)

    return min(clique_ids, key=rank)


def propagate_join_messages(
    graph: FormulaGraph,
    registry: NodeRegistry,
    cliques: Sequence[Clique],
    separators: Sequence[Tuple[int, ...]],
    components: Sequence[Sequence[int]],
    head_ids: Sequence[int],
    parent_ids: Sequence[int] = (),
) -> Formula:
    """
    Build the joint formula over head + parent variables.

    Args:
        graph: Formula graph (extended in place)
        registry: Variable registry
        cliques: All cliques
        separators: Separator variable sets by separator id
        components: Clique ids per component
        head_ids: Head variable ids
        parent_ids: Parent variable ids

    Returns:
        Joint formula over the sorted join domain

    Raises:
        InvalidJoinRequest: If the request violates a precondition
    """
    validate_join_request(head_ids, parent_ids, len(registry))

    join_set = set(head_ids) | set(parent_ids)
    neighbors = clique_neighbors(cliques)
    start = len(graph)

    per_component: List[int] = []
    for component in components:
        present = {v for c in component for v in cliques[c].domain}
        these = sorted(join_set & present)
        if not these:
            continue

        root = pick_root_clique(graph, cliques, component, these)
        plan = build_tree_plan(neighbors, root)
        messages: Dict[DirectedEdge, int] = {}
        for src, trg in plan.directed_edges_toward_root():
            messages[(src, trg)] = build_message(
                graph, registry, cliques, separators, messages, src, trg, extra_keep=these
            )

        root_clique = cliques[root]
        inbound = [messages[(n, root)] for n in root_clique.neighbors]
        product = graph.product([root_clique.prior] + evidence_ids(registry, root_clique.domain) + inbound)
        per_component.append(graph.marginal(these, product.id).id)

    joint = graph.product(per_component)
    logger.debug(
        "Join over %s: %d components, %d supplemental formulas",
        sorted(join_set), len(per_component), len(graph) - start,
    )
    return joint
