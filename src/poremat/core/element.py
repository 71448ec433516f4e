"""Module for static information about chemical elements, chiefly their masses."""

import functools
import numbers
from collections import Counter

from poremat.exceptions import InvalidArgument


_ELEMENT_DATA = (
    # symbol name mass (amu)
    ("H", "hydrogen", 1.00794),
    ("He", "helium", 4.002602),
    ("Li", "lithium", 6.941),
    ("Be", "beryllium", 9.012182),
    ("B", "boron", 10.811),
    ("C", "carbon", 12.0107),
    ("N", "nitrogen", 14.0067),
    ("O", "oxygen", 15.9994),
    ("F", "fluorine", 18.998403),
    ("Ne", "neon", 20.1797),
    ("Na", "sodium", 22.98977),
    ("Mg", "magnesium", 24.305),
    ("Al", "aluminium", 26.981538),
    ("Si", "silicon", 28.0855),
    ("P", "phosphorus", 30.973761),
    ("S", "sulfur", 32.065),
    ("Cl", "chlorine", 35.453),
    ("Ar", "argon", 39.948),
    ("K", "potassium", 39.0983),
    ("Ca", "calcium", 40.078),
    ("Sc", "scandium", 44.95591),
    ("Ti", "titanium", 47.867),
    ("V", "vanadium", 50.9415),
    ("Cr", "chromium", 51.9961),
    ("Mn", "manganese", 54.938049),
    ("Fe", "iron", 55.845),
    ("Co", "cobalt", 58.9332),
    ("Ni", "nickel", 58.6934),
    ("Cu", "copper", 63.546),
    ("Zn", "zinc", 65.409),
    ("Ga", "gallium", 69.723),
    ("Ge", "germanium", 72.64),
    ("As", "arsenic", 74.9216),
    ("Se", "selenium", 78.96),
    ("Br", "bromine", 79.904),
    ("Kr", "krypton", 83.798),
    ("Rb", "rubidium", 85.4678),
    ("Sr", "strontium", 87.62),
    ("Y", "yttrium", 88.90585),
    ("Zr", "zirconium", 91.224),
    ("Nb", "niobium", 92.90638),
    ("Mo", "molybdenum", 95.94),
    ("Tc", "technetium", 98.0),
    ("Ru", "ruthenium", 101.07),
    ("Rh", "rhodium", 102.9055),
    ("Pd", "palladium", 106.42),
    ("Ag", "silver", 107.8682),
    ("Cd", "cadmium", 112.411),
    ("In", "indium", 114.818),
    ("Sn", "tin", 118.71),
    ("Sb", "antimony", 121.76),
    ("Te", "tellurium", 127.6),
    ("I", "iodine", 126.90447),
    ("Xe", "xenon", 131.293),
    ("Cs", "caesium", 132.90545),
    ("Ba", "barium", 137.327),
    ("La", "lanthanum", 138.9055),
    ("Ce", "cerium", 140.116),
    ("Pr", "praseodymium", 140.90765),
    ("Nd", "neodymium", 144.24),
    ("Pm", "promethium", 145.0),
    ("Sm", "samarium", 150.36),
    ("Eu", "europium", 151.964),
    ("Gd", "gadolinium", 157.25),
    ("Tb", "terbium", 158.92534),
    ("Dy", "dysprosium", 162.5),
    ("Ho", "holmium", 164.93032),
    ("Er", "erbium", 167.259),
    ("Tm", "thulium", 168.93421),
    ("Yb", "ytterbium", 173.04),
    ("Lu", "lutetium", 174.967),
    ("Hf", "hafnium", 178.49),
    ("Ta", "tantalum", 180.9479),
    ("W", "tungsten", 183.84),
    ("Re", "rhenium", 186.207),
    ("Os", "osmium", 190.23),
    ("Ir", "iridium", 192.217),
    ("Pt", "platinum", 195.078),
    ("Au", "gold", 196.96655),
    ("Hg", "mercury", 200.59),
    ("Tl", "thallium", 204.3833),
    ("Pb", "lead", 207.2),
    ("Bi", "bismuth", 208.98038),
    ("Po", "polonium", 209.0),
    ("At", "astatine", 210.0),
    ("Rn", "radon", 222.0),
    ("Fr", "francium", 223.0),
    ("Ra", "radium", 226.0),
    ("Ac", "actinium", 227.0),
    ("Th", "thorium", 232.0381),
    ("Pa", "protactinium", 231.03588),
    ("U", "uranium", 238.02891),
    ("Np", "neptunium", 237.0),
    ("Pu", "plutonium", 244.0),
    ("Am", "americium", 243.0),
    ("Cm", "curium", 247.0),
    ("Bk", "berkelium", 247.0),
    ("Cf", "californium", 251.0),
    ("Es", "einsteinium", 252.0),
    ("Fm", "fermium", 257.0),
    ("Md", "mendelevium", 258.0),
    ("No", "nobelium", 259.0),
    ("Lr", "lawrencium", 262.0),
)

_EL_FROM_SYM = {
    s: (i, s, n, m) for i, (s, n, m) in enumerate(_ELEMENT_DATA, start=1)
}

_EL_FROM_NAME = {
    n: (i, s, n, m) for i, (s, n, m) in enumerate(_ELEMENT_DATA, start=1)
}


class _ElementMeta(type):
    def __getitem__(cls, val):
        if isinstance(val, numbers.Integral):
            return cls.from_atomic_number(val)
        elif isinstance(val, str):
            return cls.from_string(val)
        else:
            raise InvalidArgument("cannot construct element from provided type")


@functools.total_ordering
class Element(metaclass=_ElementMeta):
    """Storage class for information about a chemical element.

    Examples:
        >>> Element["Ca"].mass
        40.078
        >>> Element.from_atomic_number(8)
        O

        Elements sort in formula order, carbon and hydrogen first then
        by atomic number.

        >>> sorted([Element["O"], Element["H"], Element["Si"], Element["C"]])
        [C, H, O, Si]
    """

    def __init__(self, atomic_number, symbol, name, mass):
        self.atomic_number = atomic_number
        self.symbol = symbol
        self.name = name
        self.mass = mass

    @staticmethod
    def from_string(s: str) -> "Element":
        """Create an element from a given element symbol or name.

        Args:
            s (str): element symbol (case insensitive) or element name

        Returns:
            Element: the matching element, an `InvalidArgument` is raised
            if there is none

        Examples:
            >>> Element.from_string("zn")
            Zn
            >>> Element["oxygen"].symbol
            'O'
        """
        symbol = s.strip().capitalize()
        if symbol == "D":
            symbol = "H"
        if symbol.isdigit():
            return Element.from_atomic_number(int(symbol))
        if symbol in _EL_FROM_SYM:
            return Element(*_EL_FROM_SYM[symbol])
        name = symbol.lower()
        if name in _EL_FROM_NAME:
            return Element(*_EL_FROM_NAME[name])
        raise InvalidArgument(f"Unknown element: {s}")

    @staticmethod
    def from_atomic_number(n: int) -> "Element":
        """Create an element from a given atomic number.

        Examples:
            >>> Element.from_atomic_number(14)
            Si
            >>> Element[79].name
            'gold'
        """
        if n < 1 or n > len(_ELEMENT_DATA):
            raise InvalidArgument(
                f"Atomic number must be between [1,{len(_ELEMENT_DATA)}], got {n}"
            )
        return Element(n, *_ELEMENT_DATA[n - 1])

    def __repr__(self):
        return self.symbol

    def __hash__(self):
        return int(self.atomic_number)

    def _is_valid_operand(self, other):
        return hasattr(other, "atomic_number")

    def __eq__(self, other):
        if not self._is_valid_operand(other):
            return NotImplemented
        return self.atomic_number == other.atomic_number

    def __lt__(self, other):
        if not self._is_valid_operand(other):
            return NotImplemented
        n1, n2 = self.atomic_number, other.atomic_number
        if n1 == n2:
            return False
        if n1 == 6:
            return True
        elif n2 == 6:
            return False
        else:
            return n1 < n2


def atomic_mass(species) -> float:
    """Atomic mass (amu) of the element with the given symbol.

    >>> atomic_mass("O")
    15.9994
    """
    try:
        return Element.from_string(species).mass
    except InvalidArgument as e:
        raise InvalidArgument(f"No atomic mass available for species '{species}'") from e


def chemical_formula(species, subscript=False):
    """Chemical formula string for the given list of element symbols.

    Symbols that are not chemical elements (pseudo atoms) are placed
    after the real elements in alphabetical order.

    Examples:
        >>> chemical_formula(["O", "Si", "O"])
        'O2Si'
        >>> chemical_formula(["H", "C", "H", "H", "H"])
        'CH4'
    """
    elements = []
    other = []
    for s in species:
        try:
            elements.append(Element.from_string(s))
        except InvalidArgument:
            other.append(s)
    count = Counter(str(x) for x in sorted(elements))
    count.update(sorted(other))
    blocks = []
    for el, c in count.items():
        if subscript:
            c = "".join(chr(0x2080 + int(i)) for i in str(c)) if c > 1 else ""
        else:
            c = c if c > 1 else ""
        blocks.append(f"{el}{c}")
    return "".join(blocks)
