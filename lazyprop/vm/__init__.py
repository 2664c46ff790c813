"""
VM module: On-demand evaluation of formula potentials.
"""

from lazyprop.vm.memory import PotentialCache
from lazyprop.vm.evaluator import Evaluator
from lazyprop.vm.compacting import CompactingEvaluator

__all__ = [
    "PotentialCache",
    "Evaluator",
    "CompactingEvaluator",
]
