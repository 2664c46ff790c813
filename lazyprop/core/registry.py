"""
lazyprop/core/registry.py

Variable and clique records, and the name <-> id registry.

Variables get dense ids in network definition order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from lazyprop.errors import InvalidNetwork


@dataclass
class Node:
    """
    A discrete variable.

    Attributes:
        id: Dense variable id
        name: Variable name
        levels: Ordered level names
        parents: Parent variable ids, in definition order
        children: Child variable ids
        cliques: Ids of cliques containing the variable
        formula: Id of the node-potential formula
        evidence_function: Id of the evidence-function formula
        posterior_marginal: Id of the posterior-marginal formula
    """
    id: int
    name: str
    levels: Tuple[str, ...]
    parents: Tuple[int, ...]
    children: List[int] = field(default_factory=list)
    cliques: List[int] = field(default_factory=list)
    formula: int = -1
    evidence_function: int = -1
    posterior_marginal: int = -1

    @property
    def number_of_levels(self) -> int:
        return len(self.levels)

    @property
    def family(self) -> Tuple[int, ...]:
        """The variable followed by its parents (node-potential domain)."""
        return (self.id,) + self.parents

    def level_index(self, level: str) -> Optional[int]:
        """Index of a level name, or None."""
        try:
            return self.levels.index(level)
        except ValueError:
            return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "levels": list(self.levels),
            "parents": list(self.parents),
            "children": list(self.children),
            "cliques": list(self.cliques),
            "formula": self.formula,
            "evidence_function": self.evidence_function,
            "posterior_marginal": self.posterior_marginal,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Node":
        return Node(
            id=data["id"],
            name=data["name"],
            levels=tuple(data["levels"]),
            parents=tuple(data["parents"]),
            children=list(data["children"]),
            cliques=list(data["cliques"]),
            formula=data["formula"],
            evidence_function=data["evidence_function"],
            posterior_marginal=data["posterior_marginal"],
        )


@dataclass
class Clique:
    """
    A junction-tree clique.

    Attributes:
        id: Clique id
        domain: Sorted variable ids
        neighbors: Adjacent clique ids
        separators: Separator ids, parallel to neighbors
        factors: Node ids whose CPT is assigned here
        prior: Id of the product of the assigned node potentials
        posterior: Id of prior x messages x evidence
        component: Connected-component id
    """
    id: int
    domain: Tuple[int, ...]
    neighbors: List[int] = field(default_factory=list)
    separators: List[int] = field(default_factory=list)
    factors: List[int] = field(default_factory=list)
    prior: int = -1
    posterior: int = -1
    component: int = -1

    def separator_to(self, neighbor: int) -> int:
        """Separator id on the edge to a neighbor."""
        return self.separators[self.neighbors.index(neighbor)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "domain": list(self.domain),
            "neighbors": list(self.neighbors),
            "separators": list(self.separators),
            "factors": list(self.factors),
            "prior": self.prior,
            "posterior": self.posterior,
            "component": self.component,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Clique":
        return Clique(
            id=data["id"],
            domain=tuple(data["domain"]),
            neighbors=list(data["neighbors"]),
            separators=list(data["separators"]),
            factors=list(data["factors"]),
            prior=data["prior"],
            posterior=data["posterior"],
            component=data["component"],
        )


@dataclass
class NodeRegistry:
    """
    Registry of variables with name lookup.

    Attributes:
        nodes: Variables indexed by id
        name_to_id: Variable name -> id
    """
    nodes: List[Node]
    name_to_id: Dict[str, int]

    @staticmethod
    def build(network: Mapping[str, Mapping[str, Any]]) -> "NodeRegistry":
        """
        Build the registry from a network definition.

        Args:
            network: Map from variable name to {"levels": [...], "parents": [...], ...}

        Returns:
            NodeRegistry with ids assigned in definition order

        Raises:
            InvalidNetwork: On empty/duplicate levels, unknown or duplicate parents
        """
        names = list(network.keys())
        name_to_id = {n: i for i, n in enumerate(names)}

        nodes: List[Node] = []
        for i, name in enumerate(names):
            spec = network[name]
            levels = tuple(str(l) for l in spec.get("levels", ()))
            if not levels:
                raise InvalidNetwork(f"Variable {name!r} has no levels")
            if len(set(levels)) != len(levels):
                raise InvalidNetwork(f"Variable {name!r} has duplicate levels: {levels}")

            parent_names = list(spec.get("parents", ()))
            if len(set(parent_names)) != len(parent_names):
                raise InvalidNetwork(f"Variable {name!r} has duplicate parents: {parent_names}")
            unknown = [p for p in parent_names if p not in name_to_id]
            if unknown:
                raise InvalidNetwork(f"Variable {name!r} has unknown parents: {unknown}")
            if name in parent_names:
                raise InvalidNetwork(f"Variable {name!r} is its own parent")

            nodes.append(Node(id=i, name=name, levels=levels,
                              parents=tuple(name_to_id[p] for p in parent_names)))

        for node in nodes:
            for p in node.parents:
                nodes[p].children.append(node.id)

        return NodeRegistry(nodes=nodes, name_to_id=name_to_id)

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self):
        return iter(self.nodes)

    def __getitem__(self, node_id: int) -> Node:
        return self.nodes[node_id]

    def find(self, name: str) -> Optional[Node]:
        """Get a variable by name, or None."""
        nid = self.name_to_id.get(name)
        return None if nid is None else self.nodes[nid]

    def get(self, name: str) -> Node:
        """Get a variable by name."""
        if name not in self.name_to_id:
            raise KeyError(f"Variable not found: {name}")
        return self.nodes[self.name_to_id[name]]

    def var_id(self, name: str) -> int:
        """Variable id by name, or -1 when unknown."""
        return self.name_to_id.get(name, -1)

    def var_name(self, node_id: int) -> str:
        """Variable name by id."""
        return self.nodes[node_id].name

    def names(self) -> List[str]:
        return [n.name for n in self.nodes]

    def ids(self, names: Sequence[str]) -> List[int]:
        return [self.var_id(n) for n in names]
