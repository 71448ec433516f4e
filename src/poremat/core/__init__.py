from .element import Element, atomic_mass, chemical_formula

__all__ = ["Element", "atomic_mass", "chemical_formula"]
