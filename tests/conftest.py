"""
Shared networks and a brute-force enumeration oracle.
"""

import itertools

import pytest


def _tf(p):
    return {"T": p, "F": 1.0 - p}


def _rows(parents, table):
    return [{"when": dict(zip(parents, key)), "then": then} for key, then in table.items()]


COIN = {
    "COIN": {"levels": ["HEADS", "TAILS"], "cpt": {"HEADS": 0.5, "TAILS": 0.5}},
    "WIN": {"levels": ["TRUE", "FALSE"], "parents": ["COIN"], "cpt": _rows(["COIN"], {
        ("HEADS",): {"TRUE": 1.0, "FALSE": 0.0},
        ("TAILS",): {"TRUE": 0.0, "FALSE": 1.0},
    })},
}

SPRINKLER = {
    "RAIN": {"levels": ["T", "F"], "cpt": {"T": 0.2, "F": 0.8}},
    "SPRINKLER": {"levels": ["T", "F"], "parents": ["RAIN"], "cpt": _rows(["RAIN"], {
        ("T",): _tf(0.01),
        ("F",): _tf(0.4),
    })},
    "GRASS_WET": {"levels": ["T", "F"], "parents": ["SPRINKLER", "RAIN"], "cpt": _rows(["SPRINKLER", "RAIN"], {
        ("T", "T"): _tf(0.99),
        ("T", "F"): _tf(0.9),
        ("F", "T"): _tf(0.8),
        ("F", "F"): _tf(0.0),
    })},
}

# Deliberately unnormalized rows; conversion normalizes per parent combination.
FOUR_NODE = {
    "B": {"levels": ["T", "F"], "cpt": {"T": 0.01, "F": 0.98}},
    "F": {"levels": ["-0.5", "0", "0.5"], "parents": ["B"], "cpt": _rows(["B"], {
        ("T",): {"-0.5": 0.85, "0": 0.10, "0.5": 0.5},
        ("F",): {"-0.5": 0.15, "0": 0.30, "0.5": 0.65},
    })},
    "I": {"levels": ["-1", "0", "1"], "parents": ["B"], "cpt": _rows(["B"], {
        ("T",): {"-1": 0.85, "0": 0.10, "1": 0.5},
        ("F",): {"-1": 0.15, "0": 0.30, "1": 0.65},
    })},
    "S": {"levels": ["A", "B", "C"], "parents": ["I", "F"], "cpt": _rows(["I", "F"], {
        ("-1", "-0.5"): {"A": 0.85, "B": 0.10, "C": 0.05},
        ("0", "-0.5"): {"A": 0.10, "B": 0.05, "C": 0.85},
        ("1", "-0.5"): {"A": 0.05, "B": 0.85, "C": 0.1},
        ("-1", "0"): {"A": 0.85, "B": 0.05, "C": 0.10},
        ("0", "0"): {"A": 0.05, "B": 0.10, "C": 0.85},
        ("1", "0"): {"A": 0.1, "B": 0.85, "C": 0.05},
        ("-1", "0.5"): {"A": 0.10, "B": 0.85, "C": 0.5},
        ("0", "0.5"): {"A": 0.85, "B": 0.05, "C": 0.1},
        ("1", "0.5"): {"A": 0.05, "B": 0.10, "C": 0.85},
    })},
}

ASIA = {
    "ASIA": {"levels": ["T", "F"], "cpt": _tf(0.01)},
    "SMOKE": {"levels": ["T", "F"], "cpt": _tf(0.5)},
    "TUB": {"levels": ["T", "F"], "parents": ["ASIA"], "cpt": _rows(["ASIA"], {
        ("T",): _tf(0.05), ("F",): _tf(0.01)})},
    "LUNG": {"levels": ["T", "F"], "parents": ["SMOKE"], "cpt": _rows(["SMOKE"], {
        ("T",): _tf(0.1), ("F",): _tf(0.01)})},
    "BRONC": {"levels": ["T", "F"], "parents": ["SMOKE"], "cpt": _rows(["SMOKE"], {
        ("T",): _tf(0.6), ("F",): _tf(0.3)})},
    "EITHER": {"levels": ["T", "F"], "parents": ["TUB", "LUNG"], "cpt": _rows(["TUB", "LUNG"], {
        ("T", "T"): _tf(1.0), ("T", "F"): _tf(1.0), ("F", "T"): _tf(1.0), ("F", "F"): _tf(0.0)})},
    "XRAY": {"levels": ["T", "F"], "parents": ["EITHER"], "cpt": _rows(["EITHER"], {
        ("T",): _tf(0.98), ("F",): _tf(0.05)})},
    "DYSP": {"levels": ["T", "F"], "parents": ["EITHER", "BRONC"], "cpt": _rows(["EITHER", "BRONC"], {
        ("T", "T"): _tf(0.9), ("T", "F"): _tf(0.7), ("F", "T"): _tf(0.8), ("F", "F"): _tf(0.1)})},
}

# Two disconnected components.
INDEPENDENT = {
    "COIN": {"levels": ["HEADS", "TAILS"], "cpt": {"HEADS": 0.3, "TAILS": 0.7}},
    "COIN2": {"levels": ["HEADS", "TAILS"], "cpt": {"HEADS": 0.6, "TAILS": 0.4}},
    "DIE": {"levels": ["1", "2", "3"], "parents": ["COIN2"], "cpt": _rows(["COIN2"], {
        ("HEADS",): {"1": 0.5, "2": 0.25, "3": 0.25},
        ("TAILS",): {"1": 0.1, "2": 0.1, "3": 0.8},
    })},
}


class BruteForce:
    """Exact probabilities by enumerating every joint assignment."""

    def __init__(self, network):
        self.names = list(network)
        self.levels = {n: list(network[n]["levels"]) for n in self.names}
        tables = {}
        for name, spec in network.items():
            parents = list(spec.get("parents", []))
            if parents:
                raw = {tuple(row["when"][p] for p in parents): row["then"] for row in spec["cpt"]}
            else:
                raw = {(): spec["cpt"]}
            table = {}
            for key, probs in raw.items():
                total = sum(probs.get(l, 0.0) for l in self.levels[name])
                for l in self.levels[name]:
                    table[key + (l,)] = probs.get(l, 0.0) / total if total else 0.0
            tables[name] = (parents, table)

        self.rows = []
        for combination in itertools.product(*(self.levels[n] for n in self.names)):
            assignment = dict(zip(self.names, combination))
            weight = 1.0
            for name, (parents, table) in tables.items():
                weight *= table[tuple(assignment[p] for p in parents) + (assignment[name],)]
            self.rows.append((assignment, weight))

    def mass(self, constraints):
        return sum(
            w for a, w in self.rows
            if all(a.get(n) in levels for n, levels in constraints.items())
        )

    def probability(self, event, evidence=None):
        evidence = dict(evidence or {})
        denominator = self.mass(evidence)
        if denominator == 0:
            return 0.0
        both = dict(evidence)
        for name, levels in event.items():
            both[name] = [l for l in levels if l in both.get(name, levels)]
        return self.mass(both) / denominator

    def conditional(self, heads, parents, evidence=None):
        """Flat P(heads | parents, evidence) over heads + parents, zero blocks left at 0."""
        values = []
        names = list(heads) + list(parents)
        for combination in itertools.product(*(self.levels[n] for n in names)):
            assignment = dict(zip(names, combination))
            given = dict(evidence or {})
            for p in parents:
                given[p] = [l for l in given.get(p, self.levels[p]) if l == assignment[p]]
            event = {h: [assignment[h]] for h in heads}
            values.append(self.probability(event, given))
        return values


@pytest.fixture
def coin_network():
    return COIN


@pytest.fixture
def sprinkler_network():
    return SPRINKLER


@pytest.fixture
def four_node_network():
    return FOUR_NODE


@pytest.fixture
def asia_network():
    return ASIA


@pytest.fixture
def independent_network():
    return INDEPENDENT


@pytest.fixture(params=["coin", "sprinkler", "four_node", "asia", "independent"])
def any_network(request):
    return {
        "coin": COIN,
        "sprinkler": SPRINKLER,
        "four_node": FOUR_NODE,
        "asia": ASIA,
        "independent": INDEPENDENT,
    }[request.param]


@pytest.fixture
def brute_force():
    return BruteForce
