"""
Example: Rain / sprinkler / grass-wet network.

RAIN -> SPRINKLER, (SPRINKLER, RAIN) -> GRASS_WET
"""

import itertools

from lazyprop import LazyPropagationEngine


def main():
    network = {
        "RAIN": {"levels": ["T", "F"], "cpt": {"T": 0.2, "F": 0.8}},
        "SPRINKLER": {"levels": ["T", "F"], "parents": ["RAIN"], "cpt": [
            {"when": {"RAIN": "T"}, "then": {"T": 0.01, "F": 0.99}},
            {"when": {"RAIN": "F"}, "then": {"T": 0.4, "F": 0.6}},
        ]},
        "GRASS_WET": {"levels": ["T", "F"], "parents": ["SPRINKLER", "RAIN"], "cpt": [
            {"when": {"SPRINKLER": "T", "RAIN": "T"}, "then": {"T": 0.99, "F": 0.01}},
            {"when": {"SPRINKLER": "T", "RAIN": "F"}, "then": {"T": 0.9, "F": 0.1}},
            {"when": {"SPRINKLER": "F", "RAIN": "T"}, "then": {"T": 0.8, "F": 0.2}},
            {"when": {"SPRINKLER": "F", "RAIN": "F"}, "then": {"T": 0.0, "F": 1.0}},
        ]},
    }

    engine = LazyPropagationEngine(network)
    print(f"Cliques: {engine.number_of_cliques}, formulas: {engine.number_of_formulas}")

    print("\nJoint probabilities with GRASS_WET=T:")
    for rain, sprinkler in itertools.product(["T", "F"], repeat=2):
        p = engine.infer({"RAIN": [rain], "SPRINKLER": [sprinkler], "GRASS_WET": ["T"]})
        print(f"  P(RAIN={rain}, SPRINKLER={sprinkler}, GRASS_WET=T) = {p:.6g}")

    print("\nPrior marginals:")
    for name, dist in engine.infer_all(precision=4).items():
        print(f"  P({name}) = {dist}")

    engine.set_evidence({"GRASS_WET": ["T"]})
    print("\nPosterior marginals given GRASS_WET=T:")
    for name, dist in engine.infer_all(precision=4).items():
        print(f"  P({name} | GRASS_WET=T) = {dist}")

    conditional = engine.get_joint_distribution(["RAIN"], ["SPRINKLER"])
    print(f"\n{conditional}: {conditional.potentials.round(4).tolist()}")

    engine.remove_all_evidence()
    print("\nSamples:")
    for sample in engine.get_random_sample(5, seed=0):
        print(f"  {sample}")


if __name__ == "__main__":
    main()
