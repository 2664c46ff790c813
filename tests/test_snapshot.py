"""
Tests for engine serialization and restore.
"""

import copy
import json

import numpy as np

from lazyprop import Distribution, LazyPropagationEngine, restore_engine


class TestJson:
    def test_keys(self, sprinkler_network):
        data = LazyPropagationEngine(sprinkler_network).to_json()
        assert data["_class"] == "LazyPropagationEngine"
        assert data["_base_formula_count"] == len(data["_formulas"])
        assert len(data["_potentials"]) == len(data["_formulas"])
        assert data["_evidence"] == {}

    def test_round_trip_answers_queries(self, four_node_network):
        engine = LazyPropagationEngine(four_node_network)
        engine.set_evidence({"S": ["A"]})
        expected = engine.infer({"B": ["T"]})
        engine.infer({"I": ["1"], "F": ["0"]})

        restored = LazyPropagationEngine.from_json(json.loads(json.dumps(engine.to_json())))
        assert restored.get_all_evidence() == {"S": ["A"]}
        assert np.isclose(restored.infer({"B": ["T"]}), expected)
        assert np.isclose(
            restored.infer({"B": ["T"], "S": ["A"]}),
            engine.infer({"B": ["T"], "S": ["A"]}),
        )
        restored.remove_all_evidence()
        engine.remove_all_evidence()
        assert np.isclose(restored.infer({"S": ["B"]}), engine.infer({"S": ["B"]}))

    def test_cached_potentials_survive(self, sprinkler_network):
        engine = LazyPropagationEngine(sprinkler_network)
        engine.infer_all()
        restored = LazyPropagationEngine.from_json(engine.to_json())
        for original, copied in zip(engine.cache.data, restored.cache.data):
            if original is None:
                assert copied is None
            else:
                assert np.allclose(original, copied)


class TestRestoreEngine:
    def test_replaces_distributions_and_evidence(self, sprinkler_network, brute_force):
        engine = LazyPropagationEngine(sprinkler_network)
        engine.set_evidence({"RAIN": ["F"]})
        engine.infer_all()

        restore_engine(
            engine,
            {"RAIN": Distribution([("RAIN", ("T", "F"))], potentials=[0.5, 0.5])},
            {"GRASS_WET": ["T"]},
        )

        network = copy.deepcopy(sprinkler_network)
        network["RAIN"]["cpt"] = {"T": 0.5, "F": 0.5}
        oracle = brute_force(network)
        assert engine.get_all_evidence() == {"GRASS_WET": ["T"]}
        assert np.isclose(engine.infer({"RAIN": ["T"]}), oracle.probability({"RAIN": ["T"]}, {"GRASS_WET": ["T"]}))

    def test_without_evidence_clears_it(self, sprinkler_network):
        engine = LazyPropagationEngine(sprinkler_network)
        engine.set_evidence({"RAIN": ["F"]})
        restore_engine(engine, {})
        assert not engine.has_evidence()
        assert np.isclose(engine.infer({"RAIN": ["T"]}), 0.2)
