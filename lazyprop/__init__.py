"""
lazyprop: Lazy junction-tree inference for discrete Bayesian networks

Message passing builds a symbolic formula for every posterior once; the
numeric potentials those formulas denote are computed on demand and cached,
so evidence changes and distribution replacements only invalidate what
depends on them.

Key components:
- algebra: Potential product, marginal and compaction over flat arrays
- ir: Formula records and the deduplicating formula graph
- topology: Junction forest construction
- compiler: Symbolic message passing and join propagation
- vm: Cached evaluator, invalidation and compacting evaluation
- runtime: Evidence handling
- core: Variable and clique records
- api: Distributions, CPT conversion and sampling
"""

__version__ = "1.0.0"

from lazyprop.api.distribution import Distribution
from lazyprop.engine import LazyPropagationEngine, restore_engine
from lazyprop.errors import (
    InternalConsistencyError,
    InvalidDistribution,
    InvalidEvidence,
    InvalidJoinRequest,
    InvalidNetwork,
    LazyPropError,
)
from lazyprop.topology.junction import JunctionForest, build_junction_forest

__all__ = [
    # Engine
    "LazyPropagationEngine",
    "restore_engine",
    "Distribution",
    # Junction forest
    "JunctionForest",
    "build_junction_forest",
    # Errors
    "LazyPropError",
    "InvalidJoinRequest",
    "InvalidEvidence",
    "InvalidNetwork",
    "InvalidDistribution",
    "InternalConsistencyError",
]
