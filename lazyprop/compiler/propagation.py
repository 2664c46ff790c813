"""
lazyprop/compiler/propagation.py

Symbolic junction-tree message passing.

Builds, without evaluating any numbers, the posterior formula of every
clique, separator and variable:

1. Clique priors: product of the node potentials assigned to the clique
2. Collect: for each clique in postorder, its message to the parent is the
   marginal onto the separator of prior x evidence x messages from its
   other neighbors
3. Outward sweep: messages from parents to children by the same rule, in
   preorder, so every clique has a message from each neighbor
4. Posteriors: prior x all inbound messages x evidence of the domain
5. Separator posteriors: marginal of the smaller adjacent clique posterior
6. Node marginals: marginal of the smallest posterior containing the node
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from lazyprop.compiler.plan import build_tree_plan
from lazyprop.core.registry import Clique, NodeRegistry
from lazyprop.errors import InternalConsistencyError
from lazyprop.ir.factory import FormulaGraph

logger = logging.getLogger(__name__)

DirectedEdge = Tuple[int, int]


def clique_neighbors(cliques: Sequence[Clique]) -> Dict[int, List[int]]:
    return {c.id: list(c.neighbors) for c in cliques}


def evidence_ids(registry: NodeRegistry, domain: Iterable[int]) -> List[int]:
    """Evidence-function formula ids of the variables of a domain."""
    return [registry[v].evidence_function for v in domain]


def build_message(
    graph: FormulaGraph,
    registry: NodeRegistry,
    cliques: Sequence[Clique],
    separators: Sequence[Tuple[int, ...]],
    messages: Mapping[DirectedEdge, int],
    src: int,
    trg: int,
    extra_keep: Iterable[int] = (),
) -> int:
    """
    Build the formula of the message from clique src to clique trg.

    Args:
        graph: Formula graph
        registry: Variable registry
        cliques: All cliques
        separators: Separator variable sets by separator id
        messages: Already built messages, keyed by (src, trg)
        src: Sending clique
        trg: Receiving clique
        extra_keep: Variables never marginalized away (join domain)

    Returns:
        Formula id of the message
    """
    clique = cliques[src]
    separator = separators[clique.separator_to(trg)]
    inbound = [messages[(n, src)] for n in clique.neighbors if n != trg]
    product = graph.product([clique.prior] + evidence_ids(registry, clique.domain) + inbound)
    keep = sorted(set(separator) | set(extra_keep))
    return graph.marginal(keep, product.id).id


def compile_network(
    graph: FormulaGraph,
    registry: NodeRegistry,
    cliques: Sequence[Clique],
    separators: Sequence[Tuple[int, ...]],
    components: Sequence[Sequence[int]],
) -> List[int]:
    """
    Run symbolic message passing over every component.

    Sets prior and posterior on every clique and posterior_marginal on every
    node.

    Args:
        graph: Formula graph holding the node potentials and evidence functions
        registry: Variable registry
        cliques: Cliques with neighbors, separators and factors filled in
        separators: Separator variable sets by separator id
        components: Clique ids per component, root first

    Returns:
        Separator posterior formula ids, by separator id
    """
    start = len(graph)
    for clique in cliques:
        clique.prior = graph.product(registry[n].formula for n in clique.factors).id

    neighbors = clique_neighbors(cliques)
    messages: Dict[DirectedEdge, int] = {}
    for component in components:
        plan = build_tree_plan(neighbors, component[0])
        for src, trg in plan.directed_edges_toward_root():
            messages[(src, trg)] = build_message(graph, registry, cliques, separators, messages, src, trg)
        for src, trg in plan.directed_edges_from_root():
            messages[(src, trg)] = build_message(graph, registry, cliques, separators, messages, src, trg)

    for clique in cliques:
        inbound = [messages[(n, clique.id)] for n in clique.neighbors]
        clique.posterior = graph.product(
            [clique.prior] + evidence_ids(registry, clique.domain) + inbound
        ).id

    separator_potentials: List[int] = []
    for sid, separator in enumerate(separators):
        adjacent = [c for c in cliques if sid in c.separators]
        if len(adjacent) < 2:
            raise InternalConsistencyError(
                f"Separator {sid} {tuple(separator)} has {len(adjacent)} adjacent cliques"
            )
        smaller = min(adjacent, key=lambda c: (graph[c.posterior].size, c.id))
        separator_potentials.append(graph.marginal(separator, smaller.posterior).id)

    for node in registry:
        candidates = [(graph[cliques[c].posterior].size, cliques[c].posterior) for c in node.cliques]
        candidates += [
            (graph[separator_potentials[sid]].size, separator_potentials[sid])
            for sid, separator in enumerate(separators)
            if node.id in separator
        ]
        if not candidates:
            raise InternalConsistencyError(f"Variable {node.name!r} is not in any clique")
        _, base = min(candidates)
        node.posterior_marginal = graph.marginal([node.id], base).id

    logger.debug(
        "Symbolic propagation: %d messages, %d new formulas",
        len(messages), len(graph) - start,
    )
    return separator_potentials
