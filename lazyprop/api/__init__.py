"""
API module: Distributions, CPT conversion and sampling.
"""

from lazyprop.api.distribution import Distribution
from lazyprop.api.cpt import cpt_to_potential, distribution_to_potential
from lazyprop.api.sampling import get_random_sample

__all__ = [
    "Distribution",
    "cpt_to_potential",
    "distribution_to_potential",
    "get_random_sample",
]
