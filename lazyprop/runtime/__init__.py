"""
Runtime module: Evidence handling.
"""

from lazyprop.runtime.evidence import event_levels, evidence_potential, resolve_evidence

__all__ = [
    "event_levels",
    "evidence_potential",
    "resolve_evidence",
]
