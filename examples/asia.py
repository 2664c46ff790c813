"""
Example: The "Asia" chest-clinic network.

Queries span several cliques, so they go through join propagation.
"""

from lazyprop import LazyPropagationEngine


def tf(p):
    return {"T": p, "F": 1.0 - p}


def conditional(parents, table):
    """Build CPT rows from {(parent levels...): P(T)}."""
    return [
        {"when": dict(zip(parents, key)), "then": tf(p)}
        for key, p in table.items()
    ]


def asia_network():
    return {
        "ASIA": {"levels": ["T", "F"], "cpt": tf(0.01)},
        "SMOKE": {"levels": ["T", "F"], "cpt": tf(0.5)},
        "TUB": {"levels": ["T", "F"], "parents": ["ASIA"],
                "cpt": conditional(["ASIA"], {("T",): 0.05, ("F",): 0.01})},
        "LUNG": {"levels": ["T", "F"], "parents": ["SMOKE"],
                 "cpt": conditional(["SMOKE"], {("T",): 0.1, ("F",): 0.01})},
        "BRONC": {"levels": ["T", "F"], "parents": ["SMOKE"],
                  "cpt": conditional(["SMOKE"], {("T",): 0.6, ("F",): 0.3})},
        "EITHER": {"levels": ["T", "F"], "parents": ["TUB", "LUNG"],
                   "cpt": conditional(["TUB", "LUNG"], {
                       ("T", "T"): 1.0, ("T", "F"): 1.0, ("F", "T"): 1.0, ("F", "F"): 0.0})},
        "XRAY": {"levels": ["T", "F"], "parents": ["EITHER"],
                 "cpt": conditional(["EITHER"], {("T",): 0.98, ("F",): 0.05})},
        "DYSP": {"levels": ["T", "F"], "parents": ["EITHER", "BRONC"],
                 "cpt": conditional(["EITHER", "BRONC"], {
                     ("T", "T"): 0.9, ("T", "F"): 0.7, ("F", "T"): 0.8, ("F", "F"): 0.1})},
    }


def main():
    engine = LazyPropagationEngine(asia_network())
    print(f"Cliques: {engine.number_of_cliques}, formulas: {engine.number_of_formulas}")

    event = {"ASIA": ["T"], "DYSP": ["T"]}
    print(f"\nP(ASIA=T, DYSP=T) = {engine.infer(event):.6g}")
    print(f"Supplemental formulas after the join: {engine.number_of_formulas}")

    engine.set_evidence({"XRAY": ["T"], "SMOKE": ["F"]})
    print(f"P(ASIA=T, DYSP=T | XRAY=T, SMOKE=F) = {engine.infer(event):.6g}")

    joint = engine.get_joint_distribution(["TUB", "LUNG"])
    print(f"\n{joint} given the evidence:")
    for (tub, lung), p in zip([("T", "T"), ("T", "F"), ("F", "T"), ("F", "F")], joint.potentials):
        print(f"  TUB={tub}, LUNG={lung}: {p:.6g}")


if __name__ == "__main__":
    main()
