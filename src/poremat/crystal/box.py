import logging
import numbers

import numpy as np

from poremat.exceptions import GeometryError, InvalidArgument

LOG = logging.getLogger(__name__)


class Box:
    """
    The unit cell (Bravais lattice) of a periodic framework.

    Lengths are in Angstroms and angles in radians. The lattice is
    oriented with vector a along x and vector b in the x-y plane.

    Attributes:
        a, b, c (float): lattice side lengths
        alpha, beta, gamma (float): lattice angles (radians)
        f_to_c (np.ndarray): (3, 3) fractional to Cartesian transform, its
            columns are the lattice vectors i.e. `cart = f_to_c @ frac`
        c_to_f (np.ndarray): (3, 3) Cartesian to fractional transform,
            the inverse of `f_to_c`
        volume (float): the cell volume in cubic Angstroms
    """

    def __init__(self, a, b, c, alpha, beta, gamma):
        """
        Create a Box from its lattice parameters.

        Args:
            a, b, c (float): lattice side lengths in Angstroms
            alpha, beta, gamma (float): lattice angles in radians

        Raises:
            GeometryError: if the lengths or angles do not describe a
                parallelepiped with positive volume.
        """
        lengths = np.array((a, b, c), dtype=np.float64)
        angles = np.array((alpha, beta, gamma), dtype=np.float64)
        if np.any(lengths <= 0.0):
            raise GeometryError(f"Box side lengths must be positive, got {lengths}")
        if np.any(angles <= 0.0) or np.any(angles >= np.pi):
            raise GeometryError(
                f"Box angles must lie in (0, pi), got {angles}. "
                "Are you sure your angles are not in degrees?"
            )

        ca, cb, cg = np.cos(angles)
        sg = np.sin(angles[2])
        volume_term = 1 - ca * ca - cb * cb - cg * cg + 2 * ca * cb * cg
        if volume_term <= 0.0:
            raise GeometryError(
                "Box angles alpha={:.4f}, beta={:.4f}, gamma={:.4f} do not "
                "form a valid unit cell".format(*angles)
            )
        self._lengths = lengths
        self._angles = angles
        self.volume = float(np.prod(lengths) * np.sqrt(volume_term))

        a, b, c = lengths
        v = self.volume
        direct = np.array(
            (
                (a, 0, 0),
                (b * cg, b * sg, 0),
                (c * cb, c * (ca - cb * cg) / sg, v / (a * b * sg)),
            )
        )
        inverse = np.array(
            (
                (1.0 / a, 0.0, 0.0),
                (-cg / (a * sg), 1 / (b * sg), 0),
                (
                    b * c * (ca * cg - cb) / v / sg,
                    a * c * (cb * cg - ca) / v / sg,
                    a * b * sg / v,
                ),
            )
        )
        self.f_to_c = direct.T.copy()
        self.c_to_f = inverse.T.copy()
        for arr in (self._lengths, self._angles, self.f_to_c, self.c_to_f):
            arr.flags.writeable = False

    @classmethod
    def from_lengths_and_angles(cls, lengths, angles, unit="radians"):
        """
        Construct a new Box from the provided lengths and angles.

        Args:
            lengths (array_like): lattice side lengths (a, b, c) in Angstroms.
            angles (array_like): lattice angles (alpha, beta, gamma) in `unit`
            unit (str, optional): 'radians' (default) or 'degrees'

        Returns:
            Box: a new box

        Raises:
            InvalidArgument: if `unit` is not one of the above
        """
        if unit == "degrees":
            angles = np.radians(angles)
        elif unit != "radians":
            raise InvalidArgument(f"Unknown angle unit '{unit}', expected 'radians' or 'degrees'")
        return cls(*lengths, *angles)

    @classmethod
    def cubic(cls, length):
        "A cubic box with side `length`"
        return cls(length, length, length, np.pi / 2, np.pi / 2, np.pi / 2)

    @property
    def a(self) -> float:
        "Length of lattice vector a"
        return float(self._lengths[0])

    @property
    def b(self) -> float:
        "Length of lattice vector b"
        return float(self._lengths[1])

    @property
    def c(self) -> float:
        "Length of lattice vector c"
        return float(self._lengths[2])

    @property
    def alpha(self) -> float:
        "Angle between lattice vectors b and c"
        return float(self._angles[0])

    @property
    def beta(self) -> float:
        "Angle between lattice vectors a and c"
        return float(self._angles[1])

    @property
    def gamma(self) -> float:
        "Angle between lattice vectors a and b"
        return float(self._angles[2])

    @property
    def lengths(self) -> np.ndarray:
        return self._lengths

    @property
    def angles(self) -> np.ndarray:
        return self._angles

    @property
    def angles_deg(self) -> np.ndarray:
        return np.degrees(self._angles)

    @property
    def parameters(self) -> np.ndarray:
        "single vector of lattice side lengths and angles in radians"
        return np.hstack((self._lengths, self._angles))

    @property
    def vertices(self) -> np.ndarray:
        "(8, 3) array of the Cartesian positions of the corners of this box"
        v_a, v_b, v_c = self.f_to_c.T
        return np.array(
            [
                np.zeros(3),
                v_a,
                v_a + v_b,
                v_b,
                v_c,
                v_a + v_c,
                v_a + v_b + v_c,
                v_b + v_c,
            ]
        )

    def to_cartesian(self, coords) -> np.ndarray:
        """
        Transform coordinates from fractional space to Cartesian space.

        Args:
            coords (array_like): (N, 3) or (3,) array of fractional coordinates

        Returns:
            np.ndarray: Cartesian coordinates with the same shape
        """
        return np.dot(np.asarray(coords, dtype=np.float64), self.f_to_c.T)

    def to_fractional(self, coords) -> np.ndarray:
        """
        Transform coordinates from Cartesian space to fractional space.

        Args:
            coords (array_like): (N, 3) or (3,) array of Cartesian coordinates

        Returns:
            np.ndarray: fractional coordinates with the same shape
        """
        return np.dot(np.asarray(coords, dtype=np.float64), self.c_to_f.T)

    def replicate(self, repfactors) -> "Box":
        """
        A new box extended by integer factors along each lattice vector.

        Args:
            repfactors (Tuple[int, int, int]): replication factors along a, b and c

        Returns:
            Box: the supercell box, with volume `volume * ra * rb * rc`
        """
        repfactors = check_replication_factors(repfactors)
        LOG.debug("Replicating %r by %s", self, repfactors)
        lengths = self._lengths * np.array(repfactors)
        return Box(*lengths, *self._angles)

    def isclose(self, other, rtol=1e-5, atol=1e-8) -> bool:
        "True if all six lattice parameters of the boxes agree within tolerance"
        return bool(np.allclose(self.parameters, other.parameters, rtol=rtol, atol=atol))

    def __eq__(self, other):
        if not isinstance(other, Box):
            return NotImplemented
        return self.isclose(other)

    __hash__ = None

    def __repr__(self):
        s = "<{}: {:.3f} {:.3f} {:.3f} {:.2f} {:.2f} {:.2f}>"
        return s.format(self.__class__.__name__, *self._lengths, *self.angles_deg)

    def __str__(self):
        lines = [
            "Bravais unit cell of a crystal.",
            "\tUnit cell angles alpha = {:f} deg. beta = {:f} deg. gamma = {:f} deg.".format(
                *self.angles_deg
            ),
            "\tUnit cell dimensions a = {:f} A. b = {:f} A. c = {:f} A.".format(
                *self._lengths
            ),
            "\tVolume of unit cell: {:f} A^3".format(self.volume),
        ]
        return "\n".join(lines)


def check_replication_factors(repfactors):
    """
    Validate a triple of replication factors.

    Returns:
        Tuple[int, int, int]: the factors as plain ints

    Raises:
        InvalidArgument: unless there are exactly three positive integers
    """
    try:
        factors = tuple(repfactors)
    except TypeError as e:
        raise InvalidArgument(f"Replication factors must be a triple, got {repfactors}") from e
    if len(factors) != 3:
        raise InvalidArgument(f"Replication factors must be a triple, got {repfactors}")
    for r in factors:
        if isinstance(r, bool) or not isinstance(r, numbers.Integral) or r < 1:
            raise InvalidArgument(
                f"Replication factors must be positive integers, got {repfactors}"
            )
    return tuple(int(r) for r in factors)
