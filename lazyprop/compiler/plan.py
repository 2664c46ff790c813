"""
lazyprop/compiler/plan.py

Traversal plan for message passing over one junction tree.

The plan specifies:
- Tree structure (parent/children) for a chosen root
- Postorder (leaves to root) for collecting messages
- Preorder (root to leaves) for the outward sweep and sampling
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

CliqueID = int


@dataclass(frozen=True)
class TreePlan:
    """
    A rooted junction tree.

    Attributes:
        root: Root clique id
        parent: Clique -> parent clique (None for root)
        children: Clique -> child cliques
        postorder: Postorder traversal (leaves to root)
        preorder: Preorder traversal (root to leaves)
    """
    root: CliqueID
    parent: Dict[CliqueID, Optional[CliqueID]]
    children: Dict[CliqueID, Tuple[CliqueID, ...]]
    postorder: Tuple[CliqueID, ...]
    preorder: Tuple[CliqueID, ...]

    def directed_edges_toward_root(self) -> List[Tuple[CliqueID, CliqueID]]:
        """(child, parent) pairs in postorder."""
        return [(c, self.parent[c]) for c in self.postorder if self.parent[c] is not None]

    def directed_edges_from_root(self) -> List[Tuple[CliqueID, CliqueID]]:
        """(parent, child) pairs in preorder."""
        return [(self.parent[c], c) for c in self.preorder if self.parent[c] is not None]


def root_tree(
    neighbors: Mapping[CliqueID, Sequence[CliqueID]],
    root: CliqueID,
) -> Tuple[Dict[CliqueID, Optional[CliqueID]], Dict[CliqueID, List[CliqueID]]]:
    """
    Root a tree at a given clique.

    Args:
        neighbors: Adjacency lists
        root: Root clique

    Returns:
        (parent, children) where:
        - parent[clique] = parent clique (None for root)
        - children[clique] = list of child cliques
    """
    parent: Dict[CliqueID, Optional[CliqueID]] = {root: None}
    children: Dict[CliqueID, List[CliqueID]] = {root: []}

    stack = [root]
    while stack:
        u = stack.pop()
        for v in neighbors.get(u, ()):
            if v in parent:
                continue
            parent[v] = u
            children.setdefault(u, []).append(v)
            children.setdefault(v, [])
            stack.append(v)

    return parent, children


def tree_orders(
    root: CliqueID,
    children: Mapping[CliqueID, Sequence[CliqueID]],
) -> Tuple[Tuple[CliqueID, ...], Tuple[CliqueID, ...]]:
    """Compute postorder and preorder traversals without recursion."""
    pre: List[CliqueID] = []
    post: List[CliqueID] = []

    stack: List[Tuple[CliqueID, bool]] = [(root, False)]
    while stack:
        u, expanded = stack.pop()
        if expanded:
            post.append(u)
            continue
        pre.append(u)
        stack.append((u, True))
        for v in reversed(children.get(u, ())):
            stack.append((v, False))

    return tuple(post), tuple(pre)


def build_tree_plan(neighbors: Mapping[CliqueID, Sequence[CliqueID]], root: CliqueID) -> TreePlan:
    """Root the tree containing root and compute its traversal orders."""
    parent, children = root_tree(neighbors, root)
    postorder, preorder = tree_orders(root, children)
    return TreePlan(
        root=root,
        parent=parent,
        children={u: tuple(vs) for u, vs in children.items()},
        postorder=postorder,
        preorder=preorder,
    )
