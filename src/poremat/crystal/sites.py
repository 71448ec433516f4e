import logging

import numpy as np

from poremat.exceptions import InvalidArgument

LOG = logging.getLogger(__name__)

# fractional coordinates this close below 1 are wrapped to 0
WRAP_TOLERANCE = 1e-9


def wrap_fractional(coords) -> np.ndarray:
    """
    Wrap fractional coordinates into [0, 1).

    Values within `WRAP_TOLERANCE` of 1 (typically round-off from a
    Cartesian round trip of a coordinate at 0) are mapped to 0.

    >>> wrap_fractional([1.25, -0.25, 1.0])
    array([0.25, 0.75, 0.  ])
    """
    wrapped = np.mod(np.asarray(coords, dtype=np.float64), 1.0)
    wrapped[wrapped > 1.0 - WRAP_TOLERANCE] = 0.0
    return wrapped


def strip_label(label: str) -> str:
    """
    Strip everything from the first non-letter onward in a site label,
    leaving the element symbol e.g. C12 -> C, Ba12A_3 -> Ba.

    Labels that do not start with a letter are returned unchanged.

    >>> strip_label("Zn1")
    'Zn'
    >>> strip_label("O_carboxyl")
    'O'
    """
    for i, ch in enumerate(label):
        if not ch.isalpha():
            if i == 0:
                return label
            return label[:i]
    return label


def _as_positions(positions, n):
    positions = np.array(positions, dtype=np.float64)
    if positions.size == 0:
        positions = positions.reshape(0, 3)
    if positions.ndim != 2 or positions.shape[1] != 3:
        raise InvalidArgument(
            f"Fractional positions must be an (N, 3) array, got shape {positions.shape}"
        )
    if positions.shape[0] != n:
        raise InvalidArgument(
            f"Number of positions ({positions.shape[0]}) does not match the number of values ({n})"
        )
    positions.flags.writeable = False
    return positions


def _as_index(mask):
    mask = np.asarray(mask)
    if mask.dtype != bool:
        mask = mask.astype(int)
    return mask


class Atoms:
    """
    Storage class for the atoms in a unit cell: their species and
    fractional coordinates.

    Attributes:
        species (Tuple[str]): N element symbols (or pseudo-atom tags)
        xf (np.ndarray): (N, 3) read-only array of fractional coordinates
        n_atoms (int): the number of atoms
    """

    def __init__(self, species, xf):
        self.species = tuple(str(s) for s in species)
        self.xf = _as_positions(xf, len(self.species))
        self.n_atoms = len(self.species)

    @classmethod
    def empty(cls):
        return cls([], np.empty((0, 3)))

    def with_stripped_labels(self) -> "Atoms":
        "A copy with each species reduced by `strip_label`"
        return Atoms([strip_label(s) for s in self.species], self.xf)

    def wrapped(self) -> "Atoms":
        "A copy with all coordinates wrapped into [0, 1)"
        return Atoms(self.species, wrap_fractional(self.xf))

    def subset(self, mask) -> "Atoms":
        "A copy containing only the atoms selected by `mask` (boolean or indices)"
        idx = np.arange(self.n_atoms)[_as_index(mask)]
        return Atoms([self.species[i] for i in idx], self.xf[idx])

    def isclose(self, other, atol=1e-6) -> bool:
        "Same species in the same order, with positions within `atol`"
        if self.n_atoms != other.n_atoms or self.species != other.species:
            return False
        return bool(np.allclose(self.xf, other.xf, atol=atol))

    def __add__(self, other):
        if not isinstance(other, Atoms):
            return NotImplemented
        return Atoms(self.species + other.species, np.vstack((self.xf, other.xf)))

    def __len__(self):
        return self.n_atoms

    def __repr__(self):
        return "<{}: {} atoms>".format(self.__class__.__name__, self.n_atoms)


class Charges:
    """
    Storage class for the point charges in a unit cell. Charges with a
    value of exactly zero are dropped on construction.

    Attributes:
        q (np.ndarray): (N,) read-only array of charges (electrons)
        xf (np.ndarray): (N, 3) read-only array of fractional coordinates
        n_charges (int): the number of charges
    """

    def __init__(self, q, xf):
        q = np.array(q, dtype=np.float64).reshape(-1)
        xf = _as_positions(xf, len(q))
        nonzero = q != 0.0
        if not np.all(nonzero):
            LOG.debug("Dropping %d zero charges", np.sum(~nonzero))
            q = q[nonzero]
            xf = xf[nonzero]
        self.q = q
        self.xf = xf
        self.q.flags.writeable = False
        self.xf.flags.writeable = False
        self.n_charges = len(self.q)

    @classmethod
    def empty(cls):
        return cls([], np.empty((0, 3)))

    @property
    def total(self) -> float:
        "Net charge"
        return float(np.sum(self.q)) if self.n_charges else 0.0

    def wrapped(self) -> "Charges":
        "A copy with all coordinates wrapped into [0, 1)"
        return Charges(self.q, wrap_fractional(self.xf))

    def subset(self, mask) -> "Charges":
        "A copy containing only the charges selected by `mask` (boolean or indices)"
        idx = np.arange(self.n_charges)[_as_index(mask)]
        return Charges(self.q[idx], self.xf[idx])

    def isclose(self, other, atol=1e-6) -> bool:
        "Same charge values in the same order, with positions within `atol`"
        if self.n_charges != other.n_charges:
            return False
        return bool(
            np.allclose(self.q, other.q, atol=atol)
            and np.allclose(self.xf, other.xf, atol=atol)
        )

    def __add__(self, other):
        if not isinstance(other, Charges):
            return NotImplemented
        return Charges(np.hstack((self.q, other.q)), np.vstack((self.xf, other.xf)))

    def __len__(self):
        return self.n_charges

    def __repr__(self):
        return "<{}: {} charges, net {:.4f}>".format(
            self.__class__.__name__, self.n_charges, self.total
        )
