"""
lazyprop/errors.py

Exception taxonomy.

- Precondition violations (bad join requests, bad evidence, bad networks,
  bad distributions) are ValueErrors raised before any state is mutated.
- Internal consistency failures (dangling references, broken junction
  forests) are RuntimeErrors and indicate a construction bug.
"""

from __future__ import annotations


class LazyPropError(Exception):
    """Base class for all lazyprop errors."""


class InvalidJoinRequest(LazyPropError, ValueError):
    """Head/parent variable sets violate a join precondition."""


class InvalidEvidence(LazyPropError, ValueError):
    """Evidence names a level that does not exist for its variable."""


class InvalidNetwork(LazyPropError, ValueError):
    """Network definition is malformed (unknown parents, cycles, bad levels)."""


class InvalidDistribution(LazyPropError, ValueError):
    """A distribution or CPT does not match the variable it is assigned to."""


class InternalConsistencyError(LazyPropError, RuntimeError):
    """The formula graph or junction forest is inconsistent."""
