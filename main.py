#!/usr/bin/env python3
"""
lazyprop: Lazy junction-tree inference for discrete Bayesian networks

Usage:
    # Probability of an event
    python main.py infer --input network.json --event "RAIN=T,GRASS_WET=T"

    # With evidence
    python main.py infer --input network.json --event "RAIN=T" --evidence "GRASS_WET=T"

    # Posterior marginals of every variable
    python main.py marginals --input network.json --evidence "GRASS_WET=T" --precision 4

    # Joint / conditional distribution
    python main.py joint --input network.json --heads RAIN,SPRINKLER --parents GRASS_WET

    # Random samples
    python main.py sample --input network.json --size 10 --seed 7

    # Run demos
    python main.py demo --example sprinkler

    # Run tests
    python main.py test
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

import numpy as np

from lazyprop import LazyPropagationEngine, LazyPropError, __version__


def load_network(filepath: str) -> Dict[str, Dict[str, Any]]:
    """
    Load a network definition from a JSON file.

    Expected format:
    {
        "variables": {
            "RAIN": {"levels": ["T", "F"], "cpt": {"T": 0.2, "F": 0.8}},
            "SPRINKLER": {"levels": ["T", "F"], "parents": ["RAIN"], "cpt": [
                {"when": {"RAIN": "T"}, "then": {"T": 0.01, "F": 0.99}},
                {"when": {"RAIN": "F"}, "then": {"T": 0.4, "F": 0.6}}
            ]}
        }
    }

    The top-level "variables" wrapper is optional.
    """
    with open(filepath, "r") as f:
        data = json.load(f)
    return data.get("variables", data)


def parse_assignment(text: str) -> Dict[str, List[str]]:
    """Parse 'A=T,B=F|G' into {'A': ['T'], 'B': ['F', 'G']}."""
    result: Dict[str, List[str]] = {}
    if not text:
        return result
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        if "=" not in part:
            raise ValueError(f"Expected NAME=LEVEL[|LEVEL...], got {part!r}")
        name, levels = part.split("=", 1)
        result[name.strip()] = [l.strip() for l in levels.split("|") if l.strip()]
    return result


def parse_names(text: str) -> List[str]:
    return [n.strip() for n in text.split(",") if n.strip()] if text else []


def build_engine(args) -> LazyPropagationEngine:
    network = load_network(args.input)
    engine = LazyPropagationEngine(network)
    evidence = parse_assignment(getattr(args, "evidence", None) or "")
    if evidence:
        engine.set_evidence(evidence)
    return engine


def cmd_infer(args):
    """Execute the infer command."""
    engine = build_engine(args)
    event = parse_assignment(args.event)
    p = engine.infer(event)
    print(f"P({args.event}) = {p:.10g}")
    return 0


def cmd_marginals(args):
    """Execute the marginals command."""
    engine = build_engine(args)
    marginals = engine.infer_all(precision=args.precision)
    if args.output:
        with open(args.output, "w") as f:
            json.dump(marginals, f, indent=2)
        print(f"Marginals saved to: {args.output}")
        return 0
    for name, dist in marginals.items():
        cells = ", ".join(f"{level}: {p}" for level, p in dist.items())
        print(f"  P({name}) = {{{cells}}}")
    return 0


def cmd_joint(args):
    """Execute the joint command."""
    engine = build_engine(args)
    distribution = engine.get_joint_distribution(parse_names(args.heads), parse_names(args.parents))
    if args.output:
        with open(args.output, "w") as f:
            json.dump(distribution.to_dict(), f, indent=2)
        print(f"Distribution saved to: {args.output}")
        return 0
    names = distribution.variable_names
    table = distribution.table()
    print("\t".join(names + ["p"]))
    for index in np.ndindex(*table.shape):
        cells = [levels[i] for levels, i in zip(distribution.variable_levels, index)]
        print("\t".join(cells + [f"{table[index]:.6g}"]))
    return 0


def cmd_sample(args):
    """Execute the sample command."""
    engine = build_engine(args)
    samples = engine.get_random_sample(args.size, seed=args.seed)
    for sample in samples:
        print(json.dumps(sample))
    return 0


def sprinkler_network() -> Dict[str, Dict[str, Any]]:
    return {
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


def coin_network() -> Dict[str, Dict[str, Any]]:
    return {
        "COIN": {"levels": ["HEADS", "TAILS"], "cpt": {"HEADS": 0.5, "TAILS": 0.5}},
        "WIN": {"levels": ["TRUE", "FALSE"], "parents": ["COIN"], "cpt": [
            {"when": {"COIN": "HEADS"}, "then": {"TRUE": 1.0, "FALSE": 0.0}},
            {"when": {"COIN": "TAILS"}, "then": {"TRUE": 0.0, "FALSE": 1.0}},
        ]},
    }


def _check(label: str, got: float, expected: float) -> bool:
    ok = bool(np.isclose(got, expected, rtol=1e-6, atol=1e-12))
    print(f"  {label} = {got:.6g} (expected {expected:.6g}) {'OK' if ok else 'MISMATCH'}")
    return ok


def demo_sprinkler():
    """Demo: RAIN -> SPRINKLER -> GRASS_WET"""
    print("=" * 60)
    print("Demo: Rain / Sprinkler / Grass wet")
    print("=" * 60)
    engine = LazyPropagationEngine(sprinkler_network())
    passed = _check(
        "P(RAIN=T, SPRINKLER=T, GRASS_WET=T)",
        engine.infer({"RAIN": ["T"], "SPRINKLER": ["T"], "GRASS_WET": ["T"]}),
        0.00198,
    )
    engine.set_evidence({"GRASS_WET": ["T"]})
    passed &= _check("P(RAIN=T | GRASS_WET=T)", engine.infer({"RAIN": ["T"]}), 0.16038 / 0.44838)
    return passed


def demo_coin():
    """Demo: COIN -> WIN"""
    print("=" * 60)
    print("Demo: Coin flip")
    print("=" * 60)
    engine = LazyPropagationEngine(coin_network())
    passed = _check("P(WIN=TRUE)", engine.infer({"WIN": ["TRUE"]}), 0.5)
    engine.set_evidence({"COIN": ["HEADS"]})
    passed &= _check("P(WIN=TRUE | COIN=HEADS)", engine.infer({"WIN": ["TRUE"]}), 1.0)
    return passed


def cmd_demo(args):
    """Execute the demo command."""
    demos = {
        "sprinkler": demo_sprinkler,
        "coin": demo_coin,
    }

    names = list(demos) if args.example == "all" else [args.example]
    results = []
    for name in names:
        try:
            results.append((name, demos[name]()))
        except LazyPropError as e:
            print(f"Error in {name}: {e}")
            results.append((name, False))
        print()

    print("=" * 60)
    print("Summary")
    print("=" * 60)
    for name, passed in results:
        print(f"  {name}: {'PASS' if passed else 'FAIL'}")
    return 0 if all(passed for _, passed in results) else 1


def cmd_test(args):
    """Execute the test command."""
    import subprocess

    test_dir = Path(__file__).parent / "tests"
    if not test_dir.exists():
        print(f"Test directory not found: {test_dir}")
        return 1

    cmd = [sys.executable, "-m", "pytest", str(test_dir)]
    if args.verbose_tests:
        cmd.append("-v")
    if args.coverage:
        cmd.extend(["--cov=lazyprop", "--cov-report=term-missing"])

    print(f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, cwd=Path(__file__).parent)
    return result.returncode


def cmd_info(args):
    """Display system information."""
    import networkx
    import scipy

    print(f"lazyprop v{__version__}")
    print("Lazy junction-tree inference for discrete Bayesian networks")
    print()
    print("Python:", sys.version.split()[0])
    print("NumPy:", np.__version__)
    print("SciPy:", scipy.__version__)
    print("NetworkX:", networkx.__version__)
    return 0


def _add_network_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--input", "-i", type=str, required=True, help="Network JSON file")
    parser.add_argument("--evidence", "-e", type=str, default="", help="Evidence: 'A=T,B=F|G'")


def main(argv: List[str] = None):
    parser = argparse.ArgumentParser(
        description="lazyprop: lazy junction-tree inference for discrete Bayesian networks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"lazyprop {__version__}"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    infer_parser = subparsers.add_parser("infer", help="Probability of an event")
    _add_network_args(infer_parser)
    infer_parser.add_argument("--event", type=str, required=True, help="Event: 'A=T,B=F|G'")

    marginals_parser = subparsers.add_parser("marginals", help="Posterior marginals of all variables")
    _add_network_args(marginals_parser)
    marginals_parser.add_argument("--precision", "-p", type=int, default=None, help="Decimal places")
    marginals_parser.add_argument("--output", "-o", type=str, help="Output JSON file")

    joint_parser = subparsers.add_parser("joint", help="Joint or conditional distribution")
    _add_network_args(joint_parser)
    joint_parser.add_argument("--heads", type=str, required=True, help="Head variables: 'A,B'")
    joint_parser.add_argument("--parents", type=str, default="", help="Parent variables: 'C,D'")
    joint_parser.add_argument("--output", "-o", type=str, help="Output JSON file")

    sample_parser = subparsers.add_parser("sample", help="Draw random samples from the posterior")
    _add_network_args(sample_parser)
    sample_parser.add_argument("--size", "-n", type=int, default=10, help="Number of samples")
    sample_parser.add_argument("--seed", type=int, default=None, help="Random seed")

    demo_parser = subparsers.add_parser("demo", help="Run demonstration examples")
    demo_parser.add_argument(
        "--example",
        choices=["sprinkler", "coin", "all"],
        default="all",
        help="Which example to run (default: all)"
    )

    test_parser = subparsers.add_parser("test", help="Run test suite")
    test_parser.add_argument("--verbose-tests", dest="verbose_tests", action="store_true", help="Verbose pytest output")
    test_parser.add_argument("--coverage", "-c", action="store_true", help="With coverage")

    subparsers.add_parser("info", help="Show system information")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s %(levelname)s %(message)s")

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "infer": cmd_infer,
        "marginals": cmd_marginals,
        "joint": cmd_joint,
        "sample": cmd_sample,
        "demo": cmd_demo,
        "test": cmd_test,
        "info": cmd_info,
    }
    try:
        return commands[args.command](args)
    except (LazyPropError, KeyError, ValueError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
