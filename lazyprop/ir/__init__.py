"""
IR module: Formula records and the formula graph.
"""

from lazyprop.ir.schema import Formula, FormulaID, FormulaKind
from lazyprop.ir.factory import FormulaGraph

__all__ = [
    "Formula",
    "FormulaID",
    "FormulaKind",
    "FormulaGraph",
]
