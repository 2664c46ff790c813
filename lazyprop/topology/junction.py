"""
lazyprop/topology/junction.py

Junction forest construction.

The message-passing compiler treats the junction forest as an opaque
structure: cliques, tree edges with their separator sets, connected
components (first clique is the root) and the clique each CPT is assigned
to. build_junction_forest() derives one from the network DAG:

1. Moralize the DAG (networkx)
2. Triangulate by greedy min-fill elimination
3. Keep maximal elimination cliques
4. Maximum spanning forest of the clique graph weighted by separator size
5. Connected components of the forest (scipy.sparse.csgraph)
6. Assign each CPT to the smallest clique containing its family
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, List, Tuple

import networkx as nx
import numpy as np
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import connected_components

from lazyprop.algebra.potential import potential_size
from lazyprop.core.registry import NodeRegistry
from lazyprop.errors import InternalConsistencyError, InvalidNetwork

logger = logging.getLogger(__name__)


@dataclass
class JunctionForest:
    """
    Junction forest over a network's variables.

    Attributes:
        cliques: Sorted variable-id tuples, indexed by clique id
        edges: Tree edges as (clique_a, clique_b)
        separators: Sorted separator variable ids, parallel to edges
        components: Clique ids per connected component, root first
        factor_assignment: Node id -> clique id holding its CPT
    """
    cliques: List[Tuple[int, ...]]
    edges: List[Tuple[int, int]]
    separators: List[Tuple[int, ...]]
    components: List[List[int]]
    factor_assignment: Dict[int, int] = field(default_factory=dict)

    def neighbors(self) -> Dict[int, List[int]]:
        """Adjacency lists of the forest."""
        adj: Dict[int, List[int]] = {c: [] for c in range(len(self.cliques))}
        for a, b in self.edges:
            adj[a].append(b)
            adj[b].append(a)
        return adj

    def validate(self) -> None:
        """
        Check structural consistency.

        Raises:
            InternalConsistencyError: On a separator that is not the intersection
                of its cliques, or cliques not covered by exactly one component
        """
        if len(self.edges) != len(self.separators):
            raise InternalConsistencyError("Junction forest has unpaired edges and separators")
        for (a, b), sep in zip(self.edges, self.separators):
            shared = tuple(sorted(set(self.cliques[a]) & set(self.cliques[b])))
            if shared != tuple(sep):
                raise InternalConsistencyError(
                    f"Separator {tuple(sep)} between cliques {a} and {b} is not their intersection {shared}"
                )
        seen = [c for comp in self.components for c in comp]
        if sorted(seen) != list(range(len(self.cliques))):
            raise InternalConsistencyError("Every clique must belong to exactly one connected component")
        for node_id, clique_id in self.factor_assignment.items():
            if not 0 <= clique_id < len(self.cliques) or node_id not in self.cliques[clique_id]:
                raise InternalConsistencyError(f"CPT of variable {node_id} assigned to clique {clique_id}")


def build_dag(registry: NodeRegistry) -> nx.DiGraph:
    """
    Build the network DAG.

    Raises:
        InvalidNetwork: If the parent relation has a cycle
    """
    dag = nx.DiGraph()
    dag.add_nodes_from(node.id for node in registry)
    for node in registry:
        for p in node.parents:
            dag.add_edge(p, node.id)
    if not nx.is_directed_acyclic_graph(dag):
        cycle = [registry.var_name(u) for u, _ in nx.find_cycle(dag)]
        raise InvalidNetwork(f"Network has a directed cycle through {cycle}")
    return dag


def moralize(dag: nx.DiGraph) -> nx.Graph:
    """Undirected moral graph: drop directions and marry co-parents."""
    moral = dag.to_undirected()
    for v in dag.nodes:
        moral.add_edges_from(combinations(sorted(dag.predecessors(v)), 2))
    return moral


def _fill_in(g: nx.Graph, v: int) -> int:
    nbrs = list(g.neighbors(v))
    return sum(1 for a, b in combinations(nbrs, 2) if not g.has_edge(a, b))


def triangulate(moral: nx.Graph) -> List[Tuple[int, ...]]:
    """
    Greedy min-fill elimination.

    Ties are broken by smaller degree, then smaller variable id.

    Returns:
        Maximal elimination cliques as sorted tuples, in elimination order
    """
    g = moral.copy()
    found: List[Tuple[int, ...]] = []
    while g.number_of_nodes():
        v = min(g.nodes, key=lambda u: (_fill_in(g, u), g.degree(u), u))
        nbrs = list(g.neighbors(v))
        found.append(tuple(sorted([v] + nbrs)))
        g.add_edges_from(combinations(nbrs, 2))
        g.remove_node(v)

    maximal: List[Tuple[int, ...]] = []
    for clique in found:
        s = set(clique)
        if any(s <= set(other) for other in maximal):
            continue
        if any(s < set(other) for other in found):
            continue
        maximal.append(clique)
    return maximal


def build_junction_forest(registry: NodeRegistry) -> JunctionForest:
    """
    Build a junction forest for a network.

    Args:
        registry: Variable registry

    Returns:
        Validated JunctionForest
    """
    if len(registry) == 0:
        raise InvalidNetwork("Network has no variables")

    moral = moralize(build_dag(registry))
    cliques = triangulate(moral)

    clique_graph = nx.Graph()
    clique_graph.add_nodes_from(range(len(cliques)))
    for a, b in combinations(range(len(cliques)), 2):
        shared = set(cliques[a]) & set(cliques[b])
        if shared:
            clique_graph.add_edge(a, b, weight=len(shared))
    tree = nx.maximum_spanning_tree(clique_graph, weight="weight")

    edges = sorted(tuple(sorted(e)) for e in tree.edges())
    separators = [tuple(sorted(set(cliques[a]) & set(cliques[b]))) for a, b in edges]

    k = len(cliques)
    rows = [a for a, _ in edges] + [b for _, b in edges]
    cols = [b for _, b in edges] + [a for a, _ in edges]
    adjacency = csr_matrix((np.ones(len(rows)), (rows, cols)), shape=(k, k))
    n_components, labels = connected_components(adjacency, directed=False)
    components = [[c for c in range(k) if labels[c] == lab] for lab in range(n_components)]

    sizes = [potential_size(registry[v].number_of_levels for v in clique) for clique in cliques]
    factor_assignment: Dict[int, int] = {}
    for node in registry:
        family = set(node.family)
        candidates = [c for c in range(k) if family <= set(cliques[c])]
        if not candidates:
            raise InternalConsistencyError(f"No clique contains the family of {node.name!r}")
        factor_assignment[node.id] = min(candidates, key=lambda c: (sizes[c], c))

    forest = JunctionForest(
        cliques=cliques,
        edges=edges,
        separators=separators,
        components=components,
        factor_assignment=factor_assignment,
    )
    forest.validate()
    logger.debug(
        "Junction forest: %d cliques, %d separators, %d components, largest clique %d entries",
        k, len(edges), n_components, max(sizes),
    )
    return forest

