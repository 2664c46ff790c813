"""
lazyprop/engine.py

Lazy junction-tree inference engine.

Construction builds the formula graph once (node potentials, evidence
functions, symbolic message passing). Queries evaluate formulas on demand
through a cached evaluator; evidence changes and distribution replacements
only invalidate the cached potentials that depend on them.

Query dispatch for infer():
- one variable: its posterior marginal
- variables inside one clique: that clique's posterior, compacted
- anything else: a join, through the compacting fast path when no evidence
  is set, else by Bayes' rule with evidence temporarily retracted
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from lazyprop.algebra.potential import (
    compact_potential,
    evaluate_marginal,
    index_to_combination,
    normalize,
    normalize_blocks,
    potential_size,
    stable_sum,
)
from lazyprop.api.cpt import distribution_to_potential, node_potential_from_spec
from lazyprop.api.distribution import Distribution
from lazyprop.api.sampling import get_random_sample as draw_samples
from lazyprop.compiler.join import pick_root_clique, propagate_join_messages
from lazyprop.compiler.propagation import compile_network
from lazyprop.core.registry import Clique, Node, NodeRegistry
from lazyprop.errors import InternalConsistencyError, InvalidDistribution
from lazyprop.ir.factory import FormulaGraph
from lazyprop.ir.schema import Formula
from lazyprop.runtime.evidence import event_levels, resolve_evidence
from lazyprop.topology.junction import JunctionForest, build_junction_forest
from lazyprop.vm.compacting import CompactingEvaluator
from lazyprop.vm.evaluator import Evaluator
from lazyprop.vm.memory import PotentialCache

logger = logging.getLogger(__name__)

Event = Mapping[str, Sequence[str]]
EvidenceLevels = Dict[int, Optional[Tuple[int, ...]]]


class LazyPropagationEngine:
    """
    Exact inference over a discrete Bayesian network.

    Example:
        >>> engine = LazyPropagationEngine({
        ...     "COIN": {"levels": ["HEADS", "TAILS"], "cpt": {"HEADS": 0.5, "TAILS": 0.5}},
        ...     "WIN": {"levels": ["TRUE", "FALSE"], "parents": ["COIN"], "cpt": [
        ...         {"when": {"COIN": "HEADS"}, "then": {"TRUE": 1.0, "FALSE": 0.0}},
        ...         {"when": {"COIN": "TAILS"}, "then": {"TRUE": 0.0, "FALSE": 1.0}},
        ...     ]},
        ... })
        >>> engine.infer({"WIN": ["TRUE"]})
        0.5
    """

    def __init__(
        self,
        network: Mapping[str, Mapping[str, Any]],
        junction_forest: Optional[JunctionForest] = None,
    ):
        """
        Args:
            network: Variable name -> {"levels", "parents", and one of "cpt",
                "distribution", "potential_function"}
            junction_forest: Precomputed junction forest; built from the
                network when omitted
        """
        self.registry = NodeRegistry.build(network)
        forest = junction_forest if junction_forest is not None else build_junction_forest(self.registry)
        forest.validate()

        self.graph = FormulaGraph()
        for node in self.registry:
            node.formula = self.graph.node_potential(
                node.id, node.family, [self.registry[v].number_of_levels for v in node.family]
            ).id
        for node in self.registry:
            node.evidence_function = self.graph.evidence_function(node.id, node.number_of_levels).id

        self.cliques: List[Clique] = [Clique(id=i, domain=tuple(sorted(d))) for i, d in enumerate(forest.cliques)]
        for sid, (a, b) in enumerate(forest.edges):
            self.cliques[a].neighbors.append(b)
            self.cliques[a].separators.append(sid)
            self.cliques[b].neighbors.append(a)
            self.cliques[b].separators.append(sid)
        missing = [n.name for n in self.registry if n.id not in forest.factor_assignment]
        if missing:
            raise InternalConsistencyError(f"No clique assigned for the CPTs of {missing}")
        for node_id, clique_id in sorted(forest.factor_assignment.items()):
            self.cliques[clique_id].factors.append(node_id)
        for component_id, component in enumerate(forest.components):
            for clique_id in component:
                self.cliques[clique_id].component = component_id
        for clique in self.cliques:
            for v in clique.domain:
                self.registry[v].cliques.append(clique.id)

        self.separators: List[Tuple[int, ...]] = [tuple(s) for s in forest.separators]
        self.components: List[List[int]] = [list(c) for c in forest.components]
        self.separator_potentials = compile_network(
            self.graph, self.registry, self.cliques, self.separators, self.components
        )
        self.base_formula_count = len(self.graph)

        self.distributions: List[np.ndarray] = [
            node_potential_from_spec(node.name, node.levels, self._parent_spec(node), network[node.name])
            for node in self.registry
        ]
        self.cache = PotentialCache(len(self.graph))
        self.evaluator = Evaluator(self.graph, self.cache, self._local_potential)

        logger.debug(
            "Engine built: %d variables, %d cliques, %d components, %d formulas",
            len(self.registry), len(self.cliques), len(self.components), len(self.graph),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _local_potential(self, node_id: int) -> np.ndarray:
        return self.distributions[node_id]

    def _parent_spec(self, node: Node) -> List[Tuple[str, Tuple[str, ...]]]:
        return [(self.registry[p].name, self.registry[p].levels) for p in node.parents]

    def _evidence_formula(self, node: Node) -> Formula:
        return self.graph[node.evidence_function]

    def _evidence_levels(self) -> EvidenceLevels:
        return {n.id: self._evidence_formula(n).levels for n in self.registry}

    def _set_evidence_levels(self, node: Node, levels: Optional[Tuple[int, ...]]) -> None:
        formula = self._evidence_formula(node)
        if formula.levels == levels:
            return
        formula.levels = levels
        self.evaluator.clear_cached_values(formula.id)

    def _apply_evidence(self, resolved: Mapping[int, Tuple[int, ...]], replace: bool) -> None:
        for node in self.registry:
            if node.id in resolved:
                self._set_evidence_levels(node, tuple(resolved[node.id]))
            elif replace:
                self._set_evidence_levels(node, None)

    def _snapshot(self) -> Tuple[list, EvidenceLevels]:
        return self.cache.snapshot(), self._evidence_levels()

    def _restore(self, snapshot: Tuple[list, EvidenceLevels]) -> None:
        potentials, evidence = snapshot
        for node in self.registry:
            self._evidence_formula(node).levels = evidence[node.id]
        reset = self.cache.restore(potentials)
        logger.debug("Restored snapshot: %d cache entries reset", reset)

    def _normalized(self, formula_id: int) -> np.ndarray:
        return normalize(self.evaluator.evaluate(formula_id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def infer(self, event: Event) -> float:
        """
        Probability of an event given the current evidence.

        Args:
            event: Variable name -> allowed level names

        Returns:
            Probability; 1 for an empty event, 0 for unknown variables or
            levels, or levels excluded by evidence
        """
        if not event:
            return 1.0
        restrictions = event_levels(self.registry, event)
        if restrictions is None:
            return 0.0

        for node_id in list(restrictions):
            allowed = self._evidence_formula(self.registry[node_id]).levels
            if allowed is not None:
                restrictions[node_id] = [i for i in restrictions[node_id] if i in allowed]
                if not restrictions[node_id]:
                    return 0.0

        if len(restrictions) == 1:
            (node_id, levels), = restrictions.items()
            marginal = self.evaluator.evaluate(self.registry[node_id].posterior_marginal)
            total = stable_sum(marginal)
            return 0.0 if total == 0.0 else stable_sum(marginal[levels]) / total

        variables = sorted(restrictions)
        clique = self.cliques[pick_root_clique(self.graph, self.cliques, range(len(self.cliques)), variables)]
        if set(variables) <= set(clique.domain):
            posterior = self.graph[clique.posterior]
            full = self.evaluator.evaluate(posterior.id)
            total = stable_sum(full)
            if total == 0.0:
                return 0.0
            compacted = compact_potential(full, posterior.domain, posterior.number_of_levels, restrictions)
            return stable_sum(compacted) / total

        if not self.has_evidence():
            return self._join_probability(restrictions)
        return self._join_probability_given_evidence(restrictions)

    def _join_probability(self, restrictions: Mapping[int, Sequence[int]]) -> float:
        """
        Event probability through compacted join evaluation (no evidence set).

        The compacted mass is divided by the joint's total mass, which is
        below 1 when a CPT has an all-zero parent block.
        """
        joint = propagate_join_messages(
            self.graph, self.registry, self.cliques, self.separators, self.components, sorted(restrictions)
        )
        mass = stable_sum(CompactingEvaluator(self.evaluator, restrictions, self.base_formula_count).evaluate(joint.id))
        if mass == 0.0:
            return 0.0
        total = stable_sum(CompactingEvaluator(self.evaluator, {}, self.base_formula_count).evaluate(joint.id))
        return 0.0 if total == 0.0 else mass / total

    def _join_probability_given_evidence(self, restrictions: Mapping[int, Sequence[int]]) -> float:
        """P(event | evidence) = P(event, evidence) / P(evidence), with evidence retracted meanwhile."""
        snapshot = self._snapshot()
        evidence = {nid: list(levels) for nid, levels in snapshot[1].items() if levels is not None}
        logger.debug("Join with evidence on %d variables: using Bayes' rule", len(evidence))
        try:
            self._apply_evidence({}, replace=True)
            both = dict(evidence)
            both.update(restrictions)
            numerator = self._join_probability(both)
            if numerator == 0.0:
                return 0.0
            denominator = self._join_probability(evidence)
        finally:
            self._restore(snapshot)
        return 0.0 if denominator == 0.0 else numerator / denominator

    def infer_all(self, precision: Optional[int] = None) -> Dict[str, Dict[str, float]]:
        """
        Posterior marginal of every variable.

        Args:
            precision: Decimal places to round to (no rounding when None)

        Returns:
            Variable name -> level name -> probability
        """
        result: Dict[str, Dict[str, float]] = {}
        for node in self.registry:
            values = self._normalized(node.posterior_marginal)
            result[node.name] = {
                level: float(p) if precision is None else round(float(p), precision)
                for level, p in zip(node.levels, values)
            }
        return result

    def get_prior_distribution(self, name: str) -> Distribution:
        """Local distribution of a variable given its parents."""
        node = self.registry.get(name)
        return Distribution(
            [(node.name, node.levels)],
            self._parent_spec(node),
            self.distributions[node.id].copy(),
        )

    def get_posterior_distribution(self, name: str) -> Distribution:
        """Posterior distribution of a variable given its parents and the evidence."""
        node = self.registry.get(name)
        return self.get_joint_distribution([node.name], [self.registry[p].name for p in node.parents])

    def get_joint_distribution(self, heads: Sequence[str], parents: Sequence[str] = ()) -> Distribution:
        """
        Joint distribution of heads, conditioned on parents and the evidence.

        Args:
            heads: Head variable names
            parents: Parent variable names

        Returns:
            Distribution over heads + parents, normalized per parent combination

        Raises:
            InvalidJoinRequest: On empty, duplicate, overlapping or unknown variables
        """
        head_ids = self.registry.ids(heads)
        parent_ids = self.registry.ids(parents)
        joint = propagate_join_messages(
            self.graph, self.registry, self.cliques, self.separators, self.components, head_ids, parent_ids
        )
        values = evaluate_marginal(
            self.evaluator.evaluate(joint.id), joint.domain, joint.number_of_levels, head_ids + parent_ids
        )
        head_size = potential_size(self.registry[v].number_of_levels for v in head_ids)
        return Distribution(
            [(self.registry[v].name, self.registry[v].levels) for v in head_ids],
            [(self.registry[v].name, self.registry[v].levels) for v in parent_ids],
            normalize_blocks(values, head_size),
        )

    def get_random_sample(self, size: int, seed: Optional[int] = None) -> List[Dict[str, str]]:
        """Draw samples from the posterior; see lazyprop.api.sampling."""
        return draw_samples(self, size, seed=seed)

    # ------------------------------------------------------------------
    # Evidence
    # ------------------------------------------------------------------

    def set_evidence(self, evidence: Event) -> None:
        """Replace all evidence. Unknown variables are ignored."""
        resolved = resolve_evidence(self.registry, evidence)
        self._apply_evidence(resolved, replace=True)

    def update_evidence(self, evidence: Event) -> None:
        """Set evidence for the given variables, keeping the rest."""
        resolved = resolve_evidence(self.registry, evidence)
        self._apply_evidence(resolved, replace=False)

    def remove_evidence(self, name: str) -> None:
        node = self.registry.find(name)
        if node is not None:
            self._set_evidence_levels(node, None)

    def remove_all_evidence(self) -> None:
        self._apply_evidence({}, replace=True)

    def get_evidence(self, name: str) -> Optional[List[str]]:
        """Level names allowed by the evidence on a variable, or None."""
        node = self.registry.find(name)
        if node is None:
            return None
        levels = self._evidence_formula(node).levels
        return None if levels is None else [node.levels[i] for i in levels]

    def get_all_evidence(self) -> Dict[str, List[str]]:
        result: Dict[str, List[str]] = {}
        for node in self.registry:
            levels = self.get_evidence(node.name)
            if levels is not None:
                result[node.name] = levels
        return result

    def has_evidence_for(self, name: str) -> bool:
        return self.get_evidence(name) is not None

    def has_evidence(self) -> bool:
        return any(self._evidence_formula(n).levels is not None for n in self.registry)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_distribution(self, distribution: Distribution) -> bool:
        """
        Replace a variable's local distribution.

        Args:
            distribution: Distribution of one variable given exactly its parents

        Returns:
            True once the distribution is installed

        Raises:
            InvalidDistribution: If the distribution does not fit a variable
        """
        heads = distribution.head_variables
        if len(heads) != 1:
            raise InvalidDistribution("Distribution must have exactly one head variable")
        node = self.registry.find(heads[0][0])
        if node is None:
            raise InvalidDistribution(f"Unknown variable: {heads[0][0]!r}")

        values = distribution_to_potential(distribution, node.name, node.levels, self._parent_spec(node))
        self.distributions[node.id] = values
        cleared = self.evaluator.clear_cached_values(node.formula)
        logger.debug("Replaced distribution of %s, %d cached potentials cleared", node.name, cleared)
        return True

    def clear_cached_values(self) -> None:
        """Drop every cached potential."""
        self.cache.clear_all()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_variables(self) -> List[str]:
        return self.registry.names()

    def get_parents(self, name: str) -> List[str]:
        return [self.registry[p].name for p in self.registry.get(name).parents]

    def get_levels(self, name: str) -> List[str]:
        return list(self.registry.get(name).levels)

    def has_variable(self, name: str) -> bool:
        return self.registry.find(name) is not None

    def has_parent(self, name: str, parent: str) -> bool:
        node = self.registry.find(name)
        return node is not None and self.registry.var_id(parent) in node.parents

    def has_level(self, name: str, level: str) -> bool:
        node = self.registry.find(name)
        return node is not None and level in node.levels

    @property
    def number_of_nodes(self) -> int:
        return len(self.registry)

    @property
    def number_of_cliques(self) -> int:
        return len(self.cliques)

    @property
    def number_of_formulas(self) -> int:
        return len(self.graph)

    def show_potential(self, formula_id: int) -> str:
        """Tab-separated table of a formula's potential, one row per combination."""
        formula = self.graph[formula_id]
        values = self.evaluator.evaluate(formula_id)
        names = [self.registry.var_name(v) for v in formula.domain]
        lines = ["\t".join(names + ["value"])]
        for i, value in enumerate(values):
            combination = index_to_combination(i, formula.number_of_levels)
            cells = [self.registry[v].levels[c] for v, c in zip(formula.domain, combination)]
            lines.append("\t".join(cells + [f"{value:.6g}"]))
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def to_json(self) -> Dict[str, Any]:
        """Structural dump of the engine state (JSON-compatible)."""
        return {
            "_class": type(self).__name__,
            "_nodes": [n.to_dict() for n in self.registry],
            "_cliques": [c.to_dict() for c in self.cliques],
            "_formulas": [f.to_dict() for f in self.graph],
            "_potentials": [None if p is None else p.tolist() for p in self.cache.data],
            "_distributions": [d.tolist() for d in self.distributions],
            "_connected_components": [list(c) for c in self.components],
            "_separators": [list(s) for s in self.separators],
            "_separator_potentials": list(self.separator_potentials),
            "_base_formula_count": self.base_formula_count,
            "_evidence": self.get_all_evidence(),
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "LazyPropagationEngine":
        """Rebuild an engine from to_json() output."""
        engine = cls.__new__(cls)
        nodes = [Node.from_dict(n) for n in data["_nodes"]]
        engine.registry = NodeRegistry(nodes=nodes, name_to_id={n.name: n.id for n in nodes})
        engine.graph = FormulaGraph()
        engine.graph.restore([Formula.from_dict(f) for f in data["_formulas"]])
        engine.cliques = [Clique.from_dict(c) for c in data["_cliques"]]
        engine.separators = [tuple(s) for s in data["_separators"]]
        engine.components = [list(c) for c in data["_connected_components"]]
        engine.separator_potentials = list(data["_separator_potentials"])
        engine.base_formula_count = data["_base_formula_count"]
        engine.distributions = [np.asarray(d, dtype=np.float64) for d in data["_distributions"]]
        engine.cache = PotentialCache(len(engine.graph))
        for i, values in enumerate(data["_potentials"]):
            if values is not None:
                engine.cache.put(i, np.asarray(values, dtype=np.float64))
        engine.evaluator = Evaluator(engine.graph, engine.cache, engine._local_potential)
        return engine


def restore_engine(
    engine: LazyPropagationEngine,
    distributions: Mapping[str, Distribution],
    evidence: Optional[Event] = None,
) -> None:
    """
    Reset an engine to new local distributions and evidence.

    Every given distribution replaces its variable's local distribution, the
    whole cache is cleared and the evidence is replaced.

    Args:
        engine: Engine to reset
        distributions: Variable name -> Distribution of it given its parents
        evidence: New evidence (none when omitted)
    """
    resolved = resolve_evidence(engine.registry, evidence or {})
    staged: Dict[int, np.ndarray] = {}
    for name, distribution in distributions.items():
        node = engine.registry.get(name)
        staged[node.id] = distribution_to_potential(
            distribution, node.name, node.levels, engine._parent_spec(node)
        )
    for node_id, values in staged.items():
        engine.distributions[node_id] = values
    engine.cache.clear_all()
    for node in engine.registry:
        engine._evidence_formula(node).levels = resolved.get(node.id)
