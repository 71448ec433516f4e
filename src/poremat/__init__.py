from .core import Element
from .crystal import Atoms, Box, Charges, Framework, SymmetryOperation
from .exceptions import PorematError

__all__ = [
    "Atoms",
    "Box",
    "Charges",
    "Element",
    "Framework",
    "PorematError",
    "SymmetryOperation",
]
