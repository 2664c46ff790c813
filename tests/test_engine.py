"""
Tests for the inference engine: queries, evidence, distributions.
"""

import copy

import numpy as np
import pytest

from lazyprop import Distribution, LazyPropagationEngine
from lazyprop.errors import InvalidDistribution, InvalidEvidence, InvalidNetwork


class TestInfer:
    def test_empty_event(self, sprinkler_network):
        assert LazyPropagationEngine(sprinkler_network).infer({}) == 1.0

    def test_unknown_variable_or_level(self, sprinkler_network):
        engine = LazyPropagationEngine(sprinkler_network)
        assert engine.infer({"NOPE": ["T"]}) == 0.0
        assert engine.infer({"RAIN": ["MAYBE"]}) == 0.0
        assert np.isclose(engine.infer({"RAIN": ["MAYBE", "T"]}), 0.2)

    def test_coin(self, coin_network):
        engine = LazyPropagationEngine(coin_network)
        assert np.isclose(engine.infer({"WIN": ["TRUE"]}), 0.5)
        assert np.isclose(engine.infer({"COIN": ["HEADS"], "WIN": ["TRUE"]}), 0.5)
        assert np.isclose(engine.infer({"COIN": ["TAILS"], "WIN": ["TRUE"]}), 0.0)
        engine.set_evidence({"COIN": ["HEADS"]})
        assert np.isclose(engine.infer({"WIN": ["TRUE"]}), 1.0)
        engine.set_evidence({"WIN": ["FALSE"]})
        assert np.isclose(engine.infer({"COIN": ["TAILS"]}), 1.0)

    def test_sprinkler_joint(self, sprinkler_network):
        engine = LazyPropagationEngine(sprinkler_network)
        p = engine.infer({"RAIN": ["T"], "SPRINKLER": ["T"], "GRASS_WET": ["T"]})
        assert np.isclose(p, 0.00198)

    def test_sprinkler_posterior(self, sprinkler_network):
        engine = LazyPropagationEngine(sprinkler_network)
        engine.set_evidence({"GRASS_WET": ["T"]})
        assert np.isclose(engine.infer({"RAIN": ["T"]}), 0.16038 / 0.44838)

    def test_all_levels_is_certain(self, four_node_network):
        engine = LazyPropagationEngine(four_node_network)
        assert np.isclose(engine.infer({"S": ["A", "B", "C"]}), 1.0)

    def test_evidence_excludes_event(self, sprinkler_network):
        engine = LazyPropagationEngine(sprinkler_network)
        engine.set_evidence({"RAIN": ["T"]})
        assert engine.infer({"RAIN": ["F"]}) == 0.0
        assert engine.infer({"RAIN": ["F"], "GRASS_WET": ["T"]}) == 0.0

    def test_single_variables_match_enumeration(self, any_network, brute_force):
        engine = LazyPropagationEngine(any_network)
        oracle = brute_force(any_network)
        for name, spec in any_network.items():
            for level in spec["levels"]:
                assert np.isclose(engine.infer({name: [level]}), oracle.probability({name: [level]}))

    def test_infer_all(self, four_node_network, brute_force):
        engine = LazyPropagationEngine(four_node_network)
        oracle = brute_force(four_node_network)
        engine.set_evidence({"S": ["B"]})
        marginals = engine.infer_all()
        for name, dist in marginals.items():
            assert np.isclose(sum(dist.values()), 1.0)
            for level, p in dist.items():
                assert np.isclose(p, oracle.probability({name: [level]}, {"S": ["B"]}))

    def test_infer_all_precision(self, sprinkler_network):
        marginals = LazyPropagationEngine(sprinkler_network).infer_all(precision=2)
        assert marginals["RAIN"] == {"T": 0.2, "F": 0.8}

    def test_repeated_queries_reuse_cache(self, four_node_network):
        engine = LazyPropagationEngine(four_node_network)
        first = engine.infer({"S": ["A"]})
        cached = list(engine.cache.data)
        assert engine.infer({"S": ["A"]}) == first
        assert all(a is b for a, b in zip(cached, engine.cache.data))

    def test_repeated_join_queries_leave_cache_unchanged(self, four_node_network):
        engine = LazyPropagationEngine(four_node_network)
        event = {"B": ["T"], "S": ["A"]}
        first = engine.infer(event)
        potentials = engine.to_json()["_potentials"]
        assert engine.infer(event) == first
        assert engine.to_json()["_potentials"] == potentials

    def test_prior_equals_posterior_without_evidence(self, four_node_network):
        engine = LazyPropagationEngine(four_node_network)
        for name in engine.get_variables():
            prior = engine.get_prior_distribution(name)
            posterior = engine.get_posterior_distribution(name)
            assert np.allclose(prior.potentials, posterior.potentials)

    def test_unnormalized_cpt_rows(self, four_node_network):
        engine = LazyPropagationEngine(four_node_network)
        prior = engine.get_prior_distribution("B")
        assert np.allclose(prior.potentials, [0.01 / 0.99, 0.98 / 0.99])

    def test_prior_of_unknown_variable(self, sprinkler_network):
        with pytest.raises(KeyError):
            LazyPropagationEngine(sprinkler_network).get_prior_distribution("NOPE")


class TestEvidence:
    def test_round_trip(self, sprinkler_network):
        engine = LazyPropagationEngine(sprinkler_network)
        assert not engine.has_evidence()
        engine.set_evidence({"GRASS_WET": ["T"], "NOPE": ["x"]})
        assert engine.get_all_evidence() == {"GRASS_WET": ["T"]}
        engine.update_evidence({"RAIN": ["F", "T"]})
        assert engine.get_evidence("RAIN") == ["T", "F"]
        assert engine.has_evidence_for("GRASS_WET")
        engine.remove_evidence("GRASS_WET")
        assert not engine.has_evidence_for("GRASS_WET")
        engine.remove_all_evidence()
        assert not engine.has_evidence()
        assert engine.get_evidence("NOPE") is None

    def test_set_replaces_update_merges(self, sprinkler_network):
        engine = LazyPropagationEngine(sprinkler_network)
        engine.set_evidence({"RAIN": ["T"]})
        engine.set_evidence({"SPRINKLER": ["T"]})
        assert engine.get_all_evidence() == {"SPRINKLER": ["T"]}
        engine.update_evidence({"RAIN": ["T"]})
        assert engine.get_all_evidence() == {"RAIN": ["T"], "SPRINKLER": ["T"]}

    def test_empty_level_list_is_ignored(self, sprinkler_network):
        engine = LazyPropagationEngine(sprinkler_network)
        engine.set_evidence({"RAIN": []})
        assert not engine.has_evidence()

    def test_invalid_level_leaves_state(self, sprinkler_network):
        engine = LazyPropagationEngine(sprinkler_network)
        engine.set_evidence({"RAIN": ["T"]})
        before = engine.infer({"GRASS_WET": ["T"]})
        with pytest.raises(InvalidEvidence):
            engine.update_evidence({"SPRINKLER": ["F"], "GRASS_WET": ["MAYBE"]})
        assert engine.get_all_evidence() == {"RAIN": ["T"]}
        assert engine.infer({"GRASS_WET": ["T"]}) == before

    def test_evidence_changes_invalidate(self, sprinkler_network, brute_force):
        engine = LazyPropagationEngine(sprinkler_network)
        oracle = brute_force(sprinkler_network)
        for evidence in ({"GRASS_WET": ["T"]}, {"GRASS_WET": ["F"]}, {}, {"SPRINKLER": ["T"]}):
            engine.set_evidence(evidence)
            assert np.isclose(engine.infer({"RAIN": ["T"]}), oracle.probability({"RAIN": ["T"]}, evidence))

    def test_zero_probability_evidence(self, coin_network):
        engine = LazyPropagationEngine(coin_network)
        engine.set_evidence({"COIN": ["HEADS"], "WIN": ["FALSE"]})
        assert engine.infer({"COIN": ["HEADS"]}) == 0.0


class TestDistributions:
    def test_set_distribution(self, sprinkler_network, brute_force):
        engine = LazyPropagationEngine(sprinkler_network)
        d = Distribution(
            [("SPRINKLER", ("T", "F"))],
            [("RAIN", ("T", "F"))],
            [0.5, 0.1, 0.5, 0.9],
        )
        engine.infer({"GRASS_WET": ["T"]})
        assert engine.set_distribution(d) is True

        network = copy.deepcopy(sprinkler_network)
        network["SPRINKLER"]["cpt"] = [
            {"when": {"RAIN": "T"}, "then": {"T": 0.5, "F": 0.5}},
            {"when": {"RAIN": "F"}, "then": {"T": 0.1, "F": 0.9}},
        ]
        oracle = brute_force(network)
        assert np.isclose(engine.infer({"GRASS_WET": ["T"]}), oracle.probability({"GRASS_WET": ["T"]}))

    def test_set_distribution_with_reordered_parents(self, sprinkler_network):
        engine = LazyPropagationEngine(sprinkler_network)
        original = engine.get_prior_distribution("GRASS_WET").potentials.copy()
        rows = {(r["when"]["SPRINKLER"], r["when"]["RAIN"]): r["then"] for r in sprinkler_network["GRASS_WET"]["cpt"]}
        values = [rows[(s, r)][g] for g in ("T", "F") for r in ("T", "F") for s in ("T", "F")]
        d = Distribution(
            [("GRASS_WET", ("T", "F"))],
            [("RAIN", ("T", "F")), ("SPRINKLER", ("T", "F"))],
            values,
        )
        engine.set_distribution(d)
        assert np.allclose(engine.get_prior_distribution("GRASS_WET").potentials, original)

    def test_set_distribution_rejects_mismatch(self, sprinkler_network):
        engine = LazyPropagationEngine(sprinkler_network)
        with pytest.raises(InvalidDistribution):
            engine.set_distribution(Distribution([("NOPE", ("T", "F"))]))
        with pytest.raises(InvalidDistribution):
            engine.set_distribution(Distribution([("SPRINKLER", ("T", "F"))]))
        with pytest.raises(InvalidDistribution):
            engine.set_distribution(Distribution([("RAIN", ("T", "F")), ("SPRINKLER", ("T", "F"))]))
        with pytest.raises(InvalidDistribution):
            engine.set_distribution(Distribution([("RAIN", ("F", "T"))]))

    def test_distribution_inputs(self):
        network = {
            "A": {"levels": ["x", "y"], "distribution": Distribution([("A", ("x", "y"))], potentials=[1, 3])},
            "B": {"levels": ["x", "y"], "parents": ["A"], "potential_function": [1, 1, 0, 1]},
            "C": {"levels": ["x", "y", "z"]},
        }
        engine = LazyPropagationEngine(network)
        assert np.isclose(engine.infer({"A": ["x"]}), 0.25)
        # B=x is certain given A=x, even odds given A=y
        assert np.isclose(engine.infer({"B": ["x"]}), 0.25 + 0.75 * 0.5)
        assert np.isclose(engine.infer({"C": ["z"]}), 1 / 3)

    def test_incomplete_cpt(self):
        network = {
            "A": {"levels": ["x", "y"], "cpt": {"x": 0.5, "y": 0.5}},
            "B": {"levels": ["x", "y"], "parents": ["A"], "cpt": [{"when": {"A": "x"}, "then": {"x": 1.0}}]},
        }
        with pytest.raises(InvalidDistribution):
            LazyPropagationEngine(network)

    def test_unknown_cpt_level(self):
        with pytest.raises(InvalidDistribution):
            LazyPropagationEngine({"A": {"levels": ["x", "y"], "cpt": {"x": 0.5, "w": 0.5}}})

    def test_cyclic_network(self):
        network = {
            "A": {"levels": ["x", "y"], "parents": ["B"]},
            "B": {"levels": ["x", "y"], "parents": ["A"]},
        }
        with pytest.raises(InvalidNetwork):
            LazyPropagationEngine(network)


class TestIntrospection:
    def test_structure(self, sprinkler_network):
        engine = LazyPropagationEngine(sprinkler_network)
        assert engine.get_variables() == ["RAIN", "SPRINKLER", "GRASS_WET"]
        assert engine.get_parents("GRASS_WET") == ["SPRINKLER", "RAIN"]
        assert engine.get_levels("RAIN") == ["T", "F"]
        assert engine.has_variable("RAIN")
        assert not engine.has_variable("NOPE")
        assert engine.has_parent("GRASS_WET", "RAIN")
        assert not engine.has_parent("RAIN", "GRASS_WET")
        assert engine.has_level("RAIN", "T")
        assert not engine.has_level("RAIN", "MAYBE")
        assert engine.number_of_nodes == 3
        assert engine.number_of_cliques == 1
        assert engine.number_of_formulas == engine.base_formula_count

    def test_show_potential(self, sprinkler_network):
        engine = LazyPropagationEngine(sprinkler_network)
        text = engine.show_potential(engine.registry.get("RAIN").formula)
        lines = text.splitlines()
        assert lines[0] == "RAIN\tvalue"
        assert lines[1] == "T\t0.2"
        assert len(lines) == 3

    def test_clear_cached_values(self, sprinkler_network):
        engine = LazyPropagationEngine(sprinkler_network)
        p = engine.infer({"RAIN": ["T"]})
        engine.clear_cached_values()
        assert all(v is None for v in engine.cache.data)
        assert engine.infer({"RAIN": ["T"]}) == p
