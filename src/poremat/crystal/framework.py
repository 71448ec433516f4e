import itertools
import logging
import math
from collections import Counter
from functools import reduce
from pathlib import Path
from typing import Dict, List, Tuple

import numpy as np
from scipy.spatial import cKDTree as KDTree

from poremat.core.element import atomic_mass, chemical_formula as formula_string
from poremat.exceptions import (
    ChargeNeutralityError,
    InconsistentStructureError,
    InvalidArgument,
    OverlapError,
    UnsupportedFormat,
)
from poremat.fmt.cif import Cif, parse_cif_string
from poremat.fmt.cssr import parse_cssr_string
from poremat.fmt.vtk import box_outline_mesh, write_box_vtk
from poremat.fmt.xyz_file import to_xyz_string
from .box import Box, check_replication_factors
from .sites import Atoms, Charges, wrap_fractional
from .symmetry_operation import (
    SymmetryOperation,
    apply_all,
    is_p1_rules,
    is_symmetry_equal,
    parse_symmetry_rules,
)

LOG = logging.getLogger(__name__)

DEFAULT_NET_CHARGE_TOL = 0.001
DEFAULT_OVERLAP_TOL = 0.1
# amu / A^3 -> kg / m^3
DENSITY_CONVERSION = 1660.53892

# every translation to a neighbouring cell, including the cell itself
_NEIGHBOUR_SHIFTS = np.array(list(itertools.product((-1, 0, 1), repeat=3)))


def overlap(xf1, xf2, box, overlap_tol=DEFAULT_OVERLAP_TOL) -> bool:
    """
    Determine whether two fractional positions lie closer than `overlap_tol`
    (Angstroms) under periodic boundary conditions, using the minimum
    image convention.

    Args:
        xf1, xf2 (array_like): (3,) fractional coordinates
        box (Box): the unit cell
        overlap_tol (float, optional): the distance below which the
            positions overlap

    Returns:
        bool: True if the nearest images are less than `overlap_tol` apart
    """
    dxf = wrap_fractional(xf1) - wrap_fractional(xf2)
    dxf -= np.round(dxf)
    return bool(np.linalg.norm(box.to_cartesian(dxf)) < overlap_tol)


def overlapping_pairs(positions, box, overlap_tol=DEFAULT_OVERLAP_TOL) -> List[Tuple[int, int]]:
    """
    Find every unordered pair of positions that overlap in the sense of
    :obj:`overlap`.

    Candidate pairs are found with a KDTree built over the 27 neighbouring
    images of the wrapped positions, then confirmed with the exact
    minimum image test.

    Args:
        positions (array_like): (N, 3) fractional coordinates
        box (Box): the unit cell
        overlap_tol (float, optional): the distance below which positions overlap

    Returns:
        List[Tuple[int, int]]: sorted pairs (i, j) with i > j
    """
    xf = wrap_fractional(np.asarray(positions, dtype=np.float64).reshape(-1, 3))
    n = xf.shape[0]
    if n < 2:
        return []
    images = (xf[np.newaxis, :, :] + _NEIGHBOUR_SHIFTS[:, np.newaxis, :]).reshape(-1, 3)
    tree = KDTree(box.to_cartesian(images))
    neighbours = tree.query_ball_point(box.to_cartesian(xf), overlap_tol)
    pairs = set()
    for i, idxs in enumerate(neighbours):
        for k in idxs:
            j = k % n
            if j < i and overlap(xf[i], xf[j], box, overlap_tol):
                pairs.add((i, j))
    return sorted(pairs)


class Framework:
    """
    A periodic crystal structure: the unit cell, the atoms and point charges
    inside it, and its crystallographic symmetry.

    Frameworks are not modified once constructed, every transformation
    returns a new Framework.

    Attributes:
        name (str): identifier, usually the name of the file it was read from
        box (Box): the unit cell
        atoms (Atoms): species and fractional coordinates of the atoms
        charges (Charges): values and fractional coordinates of the point charges
        symmetry (Tuple[SymmetryOperation]): the symmetry operations
        space_group (str): the space group label
        is_p1 (bool): whether the structure is in P1 i.e. `symmetry`
            is only the identity
    """

    def __init__(
        self,
        name: str,
        box: Box,
        atoms: Atoms,
        charges: Charges = None,
        symmetry=None,
        space_group: str = "P1",
        is_p1: bool = True,
    ):
        """
        Construct a new framework.

        Args:
            name (str): identifier for the framework
            box (Box): the unit cell
            atoms (Atoms): the atoms in the unit cell
            charges (Charges, optional): the point charges, none by default
            symmetry (list, optional): symmetry operations, as accepted by
                :obj:`parse_symmetry_rules`. Defaults to the identity.
            space_group (str, optional): space group label, default 'P1'
            is_p1 (bool, optional): whether the structure is in P1, default True

        Raises:
            InconsistentStructureError: if `is_p1` is set but the symmetry
                operations are anything other than the identity, or there are
                no symmetry operations at all
        """
        if symmetry is None:
            symmetry = [SymmetryOperation.identity()]
        symmetry = parse_symmetry_rules(symmetry)
        if not symmetry:
            raise InconsistentStructureError(
                f"Framework {name} needs at least one symmetry operation"
            )
        if is_p1 and not is_p1_rules(symmetry):
            raise InconsistentStructureError(
                f"Framework {name} is marked as P1 but has symmetry operations "
                + "; ".join(str(x) for x in symmetry)
            )
        self.name = name
        self.box = box
        self.atoms = atoms
        self.charges = charges if charges is not None else Charges.empty()
        self.symmetry = tuple(symmetry)
        self.space_group = space_group
        self.is_p1 = bool(is_p1)

    def _evolve(self, atoms=None, charges=None, **kwargs) -> "Framework":
        "A new framework, identical apart from the given members"
        members = {
            "name": self.name,
            "box": self.box,
            "atoms": self.atoms if atoms is None else atoms,
            "charges": self.charges if charges is None else charges,
            "symmetry": self.symmetry,
            "space_group": self.space_group,
            "is_p1": self.is_p1,
        }
        members.update(kwargs)
        return Framework(**members)

    @classmethod
    def from_framework_data(
        cls, name, data, convert_to_p1=True, **kwargs
    ) -> "Framework":
        """
        Build a framework from the data extracted by one of the readers in
        :obj:`poremat.fmt`, then validate it.

        Site labels are reduced to their element symbols (e.g. C12 -> C),
        and all coordinates are wrapped into the unit cell.

        Args:
            name (str): name for the new framework
            data (dict): framework data, see
                :obj:`poremat.fmt.cif.framework_data_from_cif`
            convert_to_p1 (bool, optional): expand non-P1 structures into P1
                by applying their symmetry operations (default True)
            **kwargs: validation options, see :obj:`Framework.validated`

        Returns:
            Framework: the new framework
        """
        box = Box.from_lengths_and_angles(data["lengths"], data["angles"], unit="degrees")
        coordinates = np.array(data["coordinates"], dtype=np.float64).reshape(-1, 3)
        if data["cartesian"]:
            coordinates = box.to_fractional(coordinates)
        coordinates = wrap_fractional(coordinates)
        atoms = Atoms(data["labels"], coordinates).with_stripped_labels()
        charges = Charges(data["charges"], coordinates)
        if data["is_p1"]:
            symmetry = [SymmetryOperation.identity()]
        else:
            symmetry = data["symmetry"]

        framework = cls(
            name,
            box,
            atoms,
            charges,
            symmetry=symmetry,
            space_group=data["space_group"],
            is_p1=data["is_p1"],
        )
        LOG.debug("Read %r", framework)

        if not framework.is_p1:
            if convert_to_p1:
                LOG.warning(
                    "%s is not in P1 symmetry (space group %s), converting to P1 "
                    "using its %d symmetry operations",
                    name,
                    framework.space_group,
                    len(framework.symmetry),
                )
                return framework.apply_symmetry_rules(**kwargs)
            LOG.warning(
                "%s is not in P1 symmetry and is not being converted. It must be "
                "converted to P1 with apply_symmetry_rules before it is used in "
                "a simulation",
                name,
            )
        return framework.validated(**kwargs)

    @classmethod
    def _ext_load_map(cls):
        return {".cif": cls.from_cif_file, ".cssr": cls.from_cssr_file}

    @classmethod
    def load(cls, filename, fmt=None, **kwargs) -> "Framework":
        """
        Load a framework from file (.cif, .cssr)

        Args:
            filename (str): the path to the crystal structure file
            fmt (str, optional): the file format, e.g. "cif" or ".cssr", to use
                instead of the file extension
            **kwargs: reader options, see :obj:`Framework.from_framework_data`

        Returns:
            Framework: the framework, named after the file

        Raises:
            UnsupportedFormat: if the file extension is not one of the above
        """
        fpath = Path(filename)
        extension_map = cls._ext_load_map()
        extension = (fmt or fpath.suffix).lower()
        if not extension.startswith("."):
            extension = "." + extension
        if extension not in extension_map:
            raise UnsupportedFormat(
                f"Can only read {', '.join(extension_map)} crystal structure files, "
                f"not '{fpath.name}'"
            )
        return extension_map[extension](filename, **kwargs)

    @classmethod
    def from_cif_string(cls, contents, name=None, data_block_name=None, **kwargs) -> "Framework":
        "Initialize a framework from the contents of a CIF, named after its data block by default"
        block, data = parse_cif_string(contents, data_block_name=data_block_name)
        return cls.from_framework_data(block if name is None else name, data, **kwargs)

    @classmethod
    def from_cif_file(cls, filename, **kwargs) -> "Framework":
        "Initialize a framework from a CIF file"
        path = Path(filename)
        kwargs.setdefault("name", path.name)
        return cls.from_cif_string(path.read_text(), **kwargs)

    @classmethod
    def from_cssr_string(cls, contents, name="", **kwargs) -> "Framework":
        "Initialize a framework from the contents of a CSSR file"
        return cls.from_framework_data(name, parse_cssr_string(contents), **kwargs)

    @classmethod
    def from_cssr_file(cls, filename, **kwargs) -> "Framework":
        "Initialize a framework from a CSSR file"
        path = Path(filename)
        kwargs.setdefault("name", path.name)
        return cls.from_cssr_string(path.read_text(), **kwargs)

    def validated(
        self,
        check_charge_neutrality=True,
        net_charge_tol=DEFAULT_NET_CHARGE_TOL,
        check_atom_and_charge_overlap=True,
        remove_overlap=False,
        overlap_tol=DEFAULT_OVERLAP_TOL,
        verbose=False,
    ) -> "Framework":
        """
        Check this framework for charge neutrality and overlapping atoms or
        charges.

        Args:
            check_charge_neutrality (bool, optional): fail if the net charge
                is not below `net_charge_tol` (default True)
            net_charge_tol (float, optional): tolerated net charge (default 0.001)
            check_atom_and_charge_overlap (bool, optional): fail if any atoms
                or charges overlap (default True)
            remove_overlap (bool, optional): remove overlapping duplicates
                instead of checking for them (default False)
            overlap_tol (float, optional): distance in Angstroms below which
                atoms or charges overlap (default 0.1)
            verbose (bool, optional): log each overlapping pair

        Returns:
            Framework: this framework, or a copy without duplicates
            if `remove_overlap` is set

        Raises:
            ChargeNeutralityError: if the framework is not charge neutral
            OverlapError: if atoms or charges overlap
        """
        if check_charge_neutrality and not self.charge_neutral(net_charge_tol):
            raise ChargeNeutralityError(
                f"Framework {self.name} is not charge neutral; net charge is "
                f"{self.total_charge():f} e. Pass check_charge_neutrality=False "
                "or increase net_charge_tol to ignore this"
            )

        if remove_overlap:
            return self.remove_overlapping_atoms_and_charges(
                atom_overlap_tol=overlap_tol,
                charge_overlap_tol=overlap_tol,
                verbose=verbose,
            )

        if check_atom_and_charge_overlap:
            atoms_overlap = self.atom_overlap(overlap_tol=overlap_tol, verbose=verbose)
            charges_overlap = self.charge_overlap(overlap_tol=overlap_tol, verbose=verbose)
            if atoms_overlap or charges_overlap:
                raise OverlapError(
                    f"At least one pair of atoms/charges overlap in {self.name}. "
                    "Consider passing remove_overlap=True"
                )
        return self

    def apply_symmetry_rules(self, **kwargs) -> "Framework":
        """
        Convert this framework to P1 by applying each of its symmetry
        operations to every atom and charge.

        The new atoms are ordered operation by operation, so a framework with
        k operations and n atoms becomes one with k * n atoms in P1.

        Args:
            **kwargs: validation options, see :obj:`Framework.validated`

        Returns:
            Framework: the expanded framework, with only the identity operation
        """
        k = len(self.symmetry)
        atoms = Atoms(
            self.atoms.species * k,
            wrap_fractional(apply_all(self.symmetry, self.atoms.xf)),
        )
        charges = Charges(
            np.tile(self.charges.q, k),
            wrap_fractional(apply_all(self.symmetry, self.charges.xf)),
        )
        LOG.debug(
            "Applied %d symmetry operations: %d -> %d atoms", k, self.atoms.n_atoms, atoms.n_atoms
        )
        expanded = self._evolve(
            atoms=atoms,
            charges=charges,
            symmetry=[SymmetryOperation.identity()],
            space_group="P1",
            is_p1=True,
        )
        return expanded.validated(**kwargs)

    def replicate(self, repfactors) -> "Framework":
        """
        Replicate the atoms and charges of this framework along the positive
        directions of each lattice vector. `replicate((1, 1, 1))` gives back
        an equivalent framework.

        Args:
            repfactors (Tuple[int, int, int]): the number of copies along a, b and c

        Returns:
            Framework: the supercell, with the same symmetry and space group

        Raises:
            InvalidArgument: if the factors are not three positive integers
        """
        repfactors = check_replication_factors(repfactors)
        box = self.box.replicate(repfactors)
        offsets = np.array(list(itertools.product(*(range(r) for r in repfactors))))
        scale = np.array(repfactors, dtype=np.float64)

        def tiled(xf):
            return ((xf[np.newaxis, :, :] + offsets[:, np.newaxis, :]) / scale).reshape(-1, 3)

        n_cells = len(offsets)
        atoms = Atoms(self.atoms.species * n_cells, tiled(self.atoms.xf))
        charges = Charges(np.tile(self.charges.q, n_cells), tiled(self.charges.xf))

        assert atoms.n_atoms == self.atoms.n_atoms * n_cells
        assert charges.n_charges == self.charges.n_charges * n_cells
        return Framework(
            self.name,
            box,
            atoms,
            charges,
            symmetry=self.symmetry,
            space_group=self.space_group,
            is_p1=self.is_p1,
        )

    def _log_overlaps(self, kind, pairs, overlap_tol):
        for i, j in pairs:
            LOG.warning(
                "%s %d and %d in %s are less than %g A apart", kind, i, j, self.name, overlap_tol
            )

    def atom_overlap(self, overlap_tol=DEFAULT_OVERLAP_TOL, verbose=False) -> bool:
        """
        Determine whether any two atoms in this framework are closer than
        `overlap_tol` (Angstroms) under periodic boundary conditions.

        Args:
            overlap_tol (float, optional): the minimum distance between two
                atoms without them overlapping
            verbose (bool, optional): log a warning for every overlapping pair

        Returns:
            bool: True if any pair of atoms overlap
        """
        pairs = overlapping_pairs(self.atoms.xf, self.box, overlap_tol)
        if verbose:
            self._log_overlaps("Atoms", pairs, overlap_tol)
        return len(pairs) > 0

    def charge_overlap(self, overlap_tol=DEFAULT_OVERLAP_TOL, verbose=False) -> bool:
        "As :obj:`atom_overlap`, for the point charges"
        pairs = overlapping_pairs(self.charges.xf, self.box, overlap_tol)
        if verbose:
            self._log_overlaps("Charges", pairs, overlap_tol)
        return len(pairs) > 0

    def remove_overlapping_atoms_and_charges(
        self,
        atom_overlap_tol=DEFAULT_OVERLAP_TOL,
        charge_overlap_tol=DEFAULT_OVERLAP_TOL,
        verbose=False,
    ) -> "Framework":
        """
        Remove duplicate atoms and charges: of each overlapping pair
        only the one that appears first is kept.

        Args:
            atom_overlap_tol (float, optional): distance below which atoms overlap
            charge_overlap_tol (float, optional): distance below which charges overlap
            verbose (bool, optional): log a warning for every overlapping pair

        Returns:
            Framework: a new framework without overlapping atoms or charges

        Raises:
            OverlapError: if overlapping atoms are of different species, or
                overlapping charges have different values
        """
        atoms_to_keep = np.ones(self.atoms.n_atoms, dtype=bool)
        pairs = overlapping_pairs(self.atoms.xf, self.box, atom_overlap_tol)
        if verbose:
            self._log_overlaps("Atoms", pairs, atom_overlap_tol)
        for i, j in pairs:
            si, sj = self.atoms.species[i], self.atoms.species[j]
            if si != sj:
                raise OverlapError(
                    f"Atom {i} ({si}) and atom {j} ({sj}) in {self.name} overlap but "
                    "are not the same element, so neither will be removed"
                )
            atoms_to_keep[i] = False

        charges_to_keep = np.ones(self.charges.n_charges, dtype=bool)
        pairs = overlapping_pairs(self.charges.xf, self.box, charge_overlap_tol)
        if verbose:
            self._log_overlaps("Charges", pairs, charge_overlap_tol)
        for i, j in pairs:
            qi, qj = self.charges.q[i], self.charges.q[j]
            if not np.isclose(qi, qj):
                raise OverlapError(
                    f"Charge {i} ({qi:f}) and charge {j} ({qj:f}) in {self.name} overlap "
                    "but are not the same charge, so neither will be removed"
                )
            charges_to_keep[i] = False

        LOG.info(
            "Removed %d overlapping atoms and %d overlapping charges from %s",
            np.sum(~atoms_to_keep),
            np.sum(~charges_to_keep),
            self.name,
        )
        result = self._evolve(
            atoms=self.atoms.subset(atoms_to_keep),
            charges=self.charges.subset(charges_to_keep),
        )
        assert not result.atom_overlap(overlap_tol=atom_overlap_tol)
        assert not result.charge_overlap(overlap_tol=charge_overlap_tol)
        return result

    def chemical_formula(self) -> Dict[str, int]:
        """
        The irreducible chemical formula of this framework i.e. the count of
        each species divided by the greatest common divisor of the counts.

        >>> framework.chemical_formula()  # doctest: +SKIP
        {'Si': 1, 'O': 2}
        """
        counts = Counter(self.atoms.species)
        if not counts:
            return {}
        divisor = reduce(math.gcd, counts.values())
        return {species: count // divisor for species, count in counts.items()}

    @property
    def formula(self) -> str:
        "The irreducible chemical formula as a string e.g. 'O2Si'"
        species = []
        for s, count in self.chemical_formula().items():
            species.extend([s] * count)
        return formula_string(species)

    def molecular_weight(self) -> float:
        "Mass of the atoms in the unit cell (amu)"
        return float(sum(atomic_mass(s) for s in self.atoms.species))

    def crystal_density(self) -> float:
        "Crystal density (kg/m^3)"
        return self.molecular_weight() / self.box.volume * DENSITY_CONVERSION

    def total_charge(self) -> float:
        "Net charge of the point charges (electrons)"
        return self.charges.total

    def charge_neutral(self, net_charge_tol=DEFAULT_NET_CHARGE_TOL) -> bool:
        "True if the absolute net charge is below `net_charge_tol`"
        return abs(self.total_charge()) < net_charge_tol

    def charged(self, verbose=False) -> bool:
        "True if this framework has any point charges"
        charged = self.charges.n_charges > 0
        if verbose:
            LOG.info("Framework atoms of %s have charges? %s", self.name, charged)
        return charged

    def assign_charges(self, charges, net_charge_tol=1e-5) -> "Framework":
        """
        Place a point charge on each atom, replacing any existing charges.

        Examples:
            >>> framework.assign_charges({"Si": 1.2, "O": -0.6})  # doctest: +SKIP
            >>> framework.assign_charges([1.2, -0.6, -0.6])  # doctest: +SKIP

        Args:
            charges (dict or array_like): either a mapping from species to
                charge, or one charge per atom in the order of `atoms`
                (electrons)
            net_charge_tol (float, optional): the net charge tolerated in the
                resulting framework

        Returns:
            Framework: a new framework with the assigned charges

        Raises:
            InvalidArgument: if a species is missing from the mapping, or the
                number of charges differs from the number of atoms
            ChargeNeutralityError: if the net charge exceeds `net_charge_tol`
        """
        if self.charges.n_charges != 0:
            LOG.warning(
                "Charges are already present in %s, replacing them with the "
                "assigned charges",
                self.name,
            )

        if isinstance(charges, dict):
            missing = sorted(set(self.atoms.species) - set(charges))
            if missing:
                raise InvalidArgument(
                    f"Species {', '.join(missing)} in {self.name} are not present "
                    "in the charges passed to assign_charges"
                )
            values = [charges[s] for s in self.atoms.species]
        else:
            values = np.asarray(charges, dtype=np.float64).reshape(-1)
            if len(values) != self.atoms.n_atoms:
                raise InvalidArgument(
                    f"Number of charges passed to assign_charges ({len(values)}) is not "
                    f"equal to the number of atoms in {self.name} ({self.atoms.n_atoms})"
                )

        result = self._evolve(charges=Charges(values, self.atoms.xf))
        if abs(result.total_charge()) > net_charge_tol:
            raise ChargeNeutralityError(
                f"Net charge of framework {self.name} = {result.total_charge():f} > net "
                f"charge tolerance {net_charge_tol:f}. Pass a larger net_charge_tol "
                "if charge neutrality is not a problem"
            )
        return result

    def to_cif_data(self, fractional=True) -> dict:
        """
        Convert this framework to cif data dict, with one atom site per atom
        and its charge (0 where the atoms are not charged).

        Raises:
            InconsistentStructureError: if the framework has charges that do
                not sit one on each atom
        """
        q = np.zeros(self.atoms.n_atoms)
        if self.charged():
            if self.charges.n_charges != self.atoms.n_atoms:
                raise InconsistentStructureError(
                    "Writing a CIF requires equal numbers of charges and atoms (or no "
                    f"charges), {self.name} has {self.charges.n_charges} charges and "
                    f"{self.atoms.n_atoms} atoms"
                )
            if not np.allclose(self.charges.xf, self.atoms.xf):
                raise InconsistentStructureError(
                    f"Writing a CIF requires the charges in {self.name} to sit on its atoms"
                )
            q = self.charges.q

        base_name = self.name.split(".")[0]
        data_block_name = f"{base_name}_PM" if base_name else "PM"
        if fractional:
            keys = ("atom_site_fract_x", "atom_site_fract_y", "atom_site_fract_z")
            positions = self.atoms.xf
        else:
            keys = ("atom_site_Cartn_x", "atom_site_Cartn_y", "atom_site_Cartn_z")
            positions = self.box.to_cartesian(self.atoms.xf)

        alpha, beta, gamma = self.box.angles_deg
        cif_data = {
            "symmetry_space_group_name_H-M": self.space_group,
            "cell_length_a": self.box.a,
            "cell_length_b": self.box.b,
            "cell_length_c": self.box.c,
            "cell_angle_alpha": float(alpha),
            "cell_angle_beta": float(beta),
            "cell_angle_gamma": float(gamma),
            "symmetry_Int_Tables_number": 1,
            "symmetry_equiv_pos_as_xyz": [x.cif_form for x in self.symmetry],
            "atom_site_label": list(self.atoms.species),
        }
        for i, k in enumerate(keys):
            cif_data[k] = [float(x) for x in positions[:, i]]
        cif_data["atom_site_charge"] = [float(x) for x in q]
        return {data_block_name: cif_data}

    def to_cif_string(self, fractional=True) -> str:
        "Represent this framework in the CIF format"
        return Cif(self.to_cif_data(fractional=fractional)).to_string()

    def to_cif_file(self, filename, fractional=True) -> Path:
        """
        Write this framework to a CIF, adding the .cif extension to `filename`
        if it is missing.

        Args:
            filename (str): the destination path
            fractional (bool, optional): write fractional rather than Cartesian
                coordinates (default True)

        Returns:
            Path: the path written to
        """
        path = Path(filename)
        if path.suffix != ".cif":
            path = path.with_name(path.name + ".cif")
        path.write_text(self.to_cif_string(fractional=fractional))
        LOG.debug("Wrote %s to %s", self.name, path)
        return path

    def _default_filename(self, extension):
        stem = self.name.replace(".cif", "").replace(".cssr", "")
        return (stem or "framework") + extension

    def to_xyz_string(self, comment="", center=False) -> str:
        """
        Represent the atoms of this framework in the xmol .xyz format,
        with Cartesian coordinates.

        Args:
            comment (str, optional): the comment line
            center (bool, optional): shift the coordinates so the centre of
                the box is at the origin
        """
        positions = self.box.to_cartesian(self.atoms.xf).reshape(-1, 3)
        if center:
            positions = positions - self.box.to_cartesian([0.5, 0.5, 0.5])
        return to_xyz_string(self.atoms.species, positions, comment=comment)

    def to_xyz_file(self, filename=None, comment="", center=False) -> Path:
        "Write the atoms of this framework to an .xyz file, by default named after the framework"
        path = Path(filename if filename is not None else self._default_filename(".xyz"))
        path.write_text(self.to_xyz_string(comment=comment, center=center))
        return path

    def unit_cell_mesh(self):
        "The outline of the unit cell as a :obj:`pyvista.PolyData` line mesh"
        return box_outline_mesh(self.box)

    def to_vtk_file(self, filename=None) -> Path:
        "Write the outline of the unit cell to a .vtk file, by default named after the framework"
        if filename is None:
            filename = (self.name.split(".")[0] or "framework") + ".vtk"
        return write_box_vtk(self.box, filename)

    def isclose(self, other, checknames=False, atol=1e-6) -> bool:
        """
        Approximate equality: same box, atoms, charges (in the same order) and
        equivalent symmetry operations.

        Args:
            other (Framework): the framework to compare with
            checknames (bool, optional): also require identical names
            atol (float, optional): tolerance on positions and charges
        """
        if checknames and self.name != other.name:
            return False
        if self.atoms.n_atoms != other.atoms.n_atoms:
            return False
        if self.charges.n_charges != other.charges.n_charges:
            return False
        return (
            self.box.isclose(other.box)
            and self.atoms.isclose(other.atoms, atol=atol)
            and self.charges.isclose(other.charges, atol=atol)
            and is_symmetry_equal(self.symmetry, other.symmetry)
        )

    @classmethod
    def union(cls, *frameworks, check_overlap=True) -> "Framework":
        """
        Combine frameworks sharing the same box, symmetry and space group
        into one holding all of their atoms and charges.

        Args:
            *frameworks (Framework): the frameworks to combine
            check_overlap (bool, optional): log a warning if the combined
                framework has overlapping atoms or charges

        Returns:
            Framework: the combined framework, with the names joined by '_'

        Raises:
            InconsistentStructureError: if the boxes, symmetry or space groups differ
        """
        if not frameworks:
            raise InvalidArgument("union requires at least one framework")
        first = frameworks[0]
        for f in frameworks[1:]:
            if not first.box.isclose(f.box):
                raise InconsistentStructureError(f"Framework {f.name} has a different box")
            if not is_symmetry_equal(first.symmetry, f.symmetry):
                raise InconsistentStructureError(
                    f"Framework {f.name} has different symmetry rules"
                )
            if first.space_group != f.space_group:
                raise InconsistentStructureError(
                    f"Framework {f.name} has a different space group "
                    f"({f.space_group} != {first.space_group})"
                )
        atoms = reduce(lambda x, y: x + y, (f.atoms for f in frameworks))
        charges = reduce(lambda x, y: x + y, (f.charges for f in frameworks))
        result = first._evolve(
            atoms=atoms, charges=charges, name="_".join(f.name for f in frameworks)
        )
        if check_overlap:
            if result.atom_overlap():
                LOG.warning(
                    "%s has overlapping atoms, use remove_overlapping_atoms_and_charges "
                    "to remove them",
                    result.name,
                )
            if result.charge_overlap():
                LOG.warning(
                    "%s has overlapping charges, use remove_overlapping_atoms_and_charges "
                    "to remove them",
                    result.name,
                )
        return result

    def __add__(self, other):
        if not isinstance(other, Framework):
            return NotImplemented
        return Framework.union(self, other)

    def __repr__(self):
        return "<{} {}: {} {} atoms, {} charges>".format(
            self.__class__.__name__,
            self.name,
            self.formula,
            self.atoms.n_atoms,
            self.charges.n_charges,
        )

    def __str__(self):
        lines = [
            f"Name: {self.name}",
            str(self.box),
            f"Number of atoms = {self.atoms.n_atoms}",
            f"Number of charges = {self.charges.n_charges}",
            f"Chemical formula: {self.chemical_formula()}",
            f"Space Group: {self.space_group}",
            "Symmetry Operations:",
        ]
        lines.extend(f"\t'{x}'" for x in self.symmetry)
        return "\n".join(lines)
