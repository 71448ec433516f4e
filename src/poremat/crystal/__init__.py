"""
This module implements functionality associated with
3D periodic porous frameworks (`Framework`), including their unit cells (`Box`),
the atoms and point charges they contain (`Atoms`, `Charges`) and symmetry
operations in fractional coordinates (`SymmetryOperation`).
"""

from .box import Box
from .framework import Framework
from .sites import Atoms, Charges
from .symmetry_operation import SymmetryOperation, is_symmetry_equal

__all__ = [
    "Atoms",
    "Box",
    "Charges",
    "Framework",
    "SymmetryOperation",
    "is_symmetry_equal",
]
