import itertools
import logging
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
import numpy as np
from poremat.crystal import Atoms, Box, Charges, Framework
from poremat.crystal.framework import overlap, overlapping_pairs
from poremat.fmt.xyz_file import parse_xyz_string
from poremat.exceptions import (
    ChargeNeutralityError,
    InconsistentStructureError,
    InvalidArgument,
    OverlapError,
    ParseError,
    UnsupportedFormat,
)
from poremat.tests import TEST_FILES

LOG = logging.getLogger(__name__)


def _argon_pair(x1, x2, length=10.0, name="argon"):
    return Framework(name, Box.cubic(length), Atoms(["Ar", "Ar"], [x1, x2]))


class FrameworkReadTestCase(unittest.TestCase):
    def test_load_p1_cif(self):
        f = Framework.load(TEST_FILES["p1_sio2.cif"])
        self.assertEqual(f.name, "p1_sio2.cif")
        self.assertEqual(f.atoms.species, ("Si", "O", "O"))
        self.assertEqual(f.charges.n_charges, 3)
        self.assertTrue(f.is_p1)
        self.assertEqual(f.space_group, "P1")
        self.assertEqual(len(f.symmetry), 1)
        self.assertTrue(f.symmetry[0].is_identity())
        np.testing.assert_allclose(f.atoms.xf[2], [0.0, 0.5, 0.0])
        np.testing.assert_allclose(f.charges.q, [1.2, -0.6, -0.6])
        self.assertTrue(f.box.isclose(Box.cubic(10.0)))

    def test_load_cssr(self):
        f = Framework.load(TEST_FILES["p1_sio2.cssr"])
        self.assertEqual(f.name, "p1_sio2.cssr")
        self.assertEqual(f.atoms.species, ("Si", "O", "O"))
        self.assertTrue(f.is_p1)
        self.assertTrue(f.isclose(Framework.load(TEST_FILES["p1_sio2.cif"])))
        self.assertFalse(f.isclose(Framework.load(TEST_FILES["p1_sio2.cif"]), checknames=True))

    def test_load_cartesian(self):
        f = Framework.load(TEST_FILES["cartesian_ar.cif"])
        self.assertEqual(f.atoms.species, ("Ar", "Ar"))
        np.testing.assert_allclose(f.atoms.xf, [[0.1, 0.2, 0.3], [0.9, 0.0, 0.0]], atol=1e-12)
        self.assertFalse(f.charged())

    def test_symmetry_expansion_on_read(self):
        with self.assertLogs("poremat.crystal.framework", level="WARNING"):
            f = Framework.load(TEST_FILES["inversion.cif"])
        self.assertTrue(f.is_p1)
        self.assertEqual(f.space_group, "P1")
        self.assertEqual(f.atoms.species, ("C", "H", "C", "H"))
        np.testing.assert_allclose(f.atoms.xf[2], [0.9, 0.8, 0.7])
        np.testing.assert_allclose(f.atoms.xf[3], [0.75, 0.75, 0.75])
        np.testing.assert_allclose(f.box.lengths, [10.0, 12.0, 14.0])

    def test_no_conversion(self):
        with self.assertLogs("poremat.crystal.framework", level="WARNING"):
            f = Framework.load(TEST_FILES["inversion.cif"], convert_to_p1=False)
        self.assertFalse(f.is_p1)
        self.assertEqual(f.space_group, "P -1")
        self.assertEqual(f.atoms.n_atoms, 2)
        self.assertEqual(len(f.symmetry), 2)
        p1 = f.apply_symmetry_rules()
        self.assertEqual(p1.atoms.n_atoms, 4)
        self.assertTrue(p1.is_p1)
        self.assertTrue(p1.isclose(Framework.load(TEST_FILES["inversion.cif"])))

    def test_special_positions(self):
        with self.assertRaises(OverlapError):
            Framework.load(TEST_FILES["special_position.cif"])
        f = Framework.load(TEST_FILES["special_position.cif"], remove_overlap=True)
        self.assertEqual(f.atoms.species, ("Zn", "O", "O", "O"))
        np.testing.assert_allclose(f.atoms.xf[3], [0.9, 0.9, 0.9])
        self.assertFalse(f.atom_overlap())
        self.assertFalse(f.charged())

    def test_unsupported_format(self):
        with self.assertRaises(UnsupportedFormat):
            Framework.load("structure.xyz")
        with self.assertRaises(UnsupportedFormat):
            Framework.load("structure")

    def test_load_explicit_format(self):
        with TemporaryDirectory() as tmpdirname:
            path = Path(tmpdirname, "sio2.txt")
            path.write_text(TEST_FILES["p1_sio2.cif"].read_text())
            with self.assertRaises(UnsupportedFormat):
                Framework.load(path)
            f = Framework.load(path, fmt="CIF")
            self.assertEqual(f.atoms.n_atoms, 3)
            with self.assertRaises(UnsupportedFormat):
                Framework.load(path, fmt="xyz")

    def test_parse_errors(self):
        no_symmetry = TEST_FILES["inversion.cif"].read_text().replace(
            "_symmetry_equiv_pos_as_xyz", "_symmetry_equiv_pos_something"
        )
        with self.assertRaises(ParseError):
            Framework.from_cif_string(no_symmetry)
        no_atoms = TEST_FILES["p1_sio2.cif"].read_text().replace("_fract_", "_frac_")
        with self.assertRaises(ParseError):
            Framework.from_cif_string(no_atoms)
        no_rows = TEST_FILES["p1_sio2.cif"].read_text().split("Si1 Si")[0]
        with self.assertRaises(ParseError):
            Framework.from_cif_string(no_rows)

    def test_comment_inside_atom_site_loop(self):
        contents = TEST_FILES["p1_sio2.cif"].read_text().replace(
            "_atom_site_charge\n", "_atom_site_charge\n# sites follow\n"
        )
        f = Framework.from_cif_string(contents)
        self.assertEqual(f.atoms.n_atoms, 3)
        self.assertEqual(f.atoms.species, ("Si", "O", "O"))
        self.assertEqual(f.charges.n_charges, 3)

    def test_charge_neutrality_on_read(self):
        charged = TEST_FILES["p1_sio2.cif"].read_text().replace("1.2000", "1.2500")
        with self.assertRaises(ChargeNeutralityError):
            Framework.from_cif_string(charged)
        f = Framework.from_cif_string(charged, check_charge_neutrality=False)
        self.assertAlmostEqual(f.total_charge(), 0.05)
        f = Framework.from_cif_string(charged, net_charge_tol=0.1)
        self.assertEqual(f.name, "p1_sio2")


class FrameworkOperationsTestCase(unittest.TestCase):
    def setUp(self):
        self.sio2 = Framework.load(TEST_FILES["p1_sio2.cif"])

    def test_construction(self):
        f = Framework("empty", Box.cubic(5.0), Atoms.empty())
        self.assertEqual(f.charges.n_charges, 0)
        self.assertEqual(f.chemical_formula(), {})
        with self.assertRaises(InconsistentStructureError):
            Framework(
                "bad", Box.cubic(5.0), Atoms.empty(), symmetry=["x,y,z", "-x,-y,-z"], is_p1=True
            )
        f = Framework(
            "p-1",
            Box.cubic(5.0),
            Atoms.empty(),
            symmetry=["x,y,z", "-x,-y,-z"],
            space_group="P -1",
            is_p1=False,
        )
        self.assertEqual(len(f.symmetry), 2)

    def test_replicate_identity(self):
        self.assertTrue(self.sio2.replicate((1, 1, 1)).isclose(self.sio2))

    def test_replicate(self):
        for repfactors in ((2, 3, 1), (1, 1, 4), (2, 2, 2)):
            r = self.sio2.replicate(repfactors)
            n = int(np.prod(repfactors))
            self.assertEqual(r.atoms.n_atoms, 3 * n)
            self.assertEqual(r.charges.n_charges, 3 * n)
            self.assertAlmostEqual(r.box.volume, n * self.sio2.box.volume)
            self.assertEqual(r.chemical_formula(), {"Si": 1, "O": 2})
            self.assertTrue(r.charge_neutral())
            self.assertTrue(np.all(r.atoms.xf < 1.0) and np.all(r.atoms.xf >= 0.0))
            self.assertFalse(r.atom_overlap())
        r = self.sio2.replicate((2, 1, 1))
        np.testing.assert_allclose(r.atoms.xf[3], [0.5, 0.0, 0.0])
        np.testing.assert_allclose(r.atoms.xf[4], [0.75, 0.0, 0.0])
        with self.assertRaises(InvalidArgument):
            self.sio2.replicate((0, 1, 1))

    def test_p1_idempotence(self):
        p1 = self.sio2.apply_symmetry_rules()
        self.assertEqual(p1.atoms.n_atoms, self.sio2.atoms.n_atoms)
        self.assertEqual(p1.charges.n_charges, self.sio2.charges.n_charges)
        self.assertEqual(len(p1.symmetry), 1)
        self.assertTrue(p1.symmetry[0].is_identity())
        self.assertTrue(p1.isclose(self.sio2))

    def test_chemical_formula(self):
        self.assertEqual(self.sio2.chemical_formula(), {"Si": 1, "O": 2})
        f = Framework(
            "c2h6", Box.cubic(20.0), Atoms(["C"] * 4 + ["H"] * 12, np.random.rand(16, 3))
        )
        self.assertEqual(f.chemical_formula(), {"C": 1, "H": 3})
        f = Framework(
            "cao2", Box.cubic(20.0), Atoms(["Ca"] * 4 + ["O"] * 8, np.random.rand(12, 3))
        )
        self.assertEqual(f.chemical_formula(), {"Ca": 1, "O": 2})
        self.assertEqual(self.sio2.formula, "O2Si")

    def test_mass_and_density(self):
        mass = 28.0855 + 2 * 15.9994
        self.assertAlmostEqual(self.sio2.molecular_weight(), mass)
        self.assertAlmostEqual(self.sio2.crystal_density(), mass / 1000.0 * 1660.53892)
        f = Framework("x", Box.cubic(5.0), Atoms(["Xx"], [[0, 0, 0]]))
        with self.assertRaises(InvalidArgument):
            f.molecular_weight()

    def test_charge_neutral(self):
        box = Box.cubic(10.0)
        atoms = Atoms(["Ar"], [[0, 0, 0]])
        f = Framework("q", box, atoms, Charges([0.0005], [[0, 0, 0]]))
        self.assertTrue(f.charge_neutral(0.001))
        self.assertTrue(f.charged())
        f = Framework("q", box, atoms, Charges([0.01], [[0, 0, 0]]))
        self.assertFalse(f.charge_neutral(0.001))
        self.assertAlmostEqual(f.total_charge(), 0.01)
        self.assertTrue(self.sio2.charge_neutral())

    def test_assign_charges(self):
        uncharged = Framework("sio2", self.sio2.box, self.sio2.atoms)
        self.assertFalse(uncharged.charged())
        f = uncharged.assign_charges({"Si": 1.2, "O": -0.6})
        self.assertEqual(f.charges.n_charges, 3)
        np.testing.assert_allclose(f.charges.xf, f.atoms.xf)
        np.testing.assert_allclose(f.charges.q, [1.2, -0.6, -0.6])
        f = uncharged.assign_charges([1.0, -0.5, -0.5])
        np.testing.assert_allclose(f.charges.q, [1.0, -0.5, -0.5])
        with self.assertLogs("poremat.crystal.framework", level="WARNING"):
            self.sio2.assign_charges([1.0, -0.5, -0.5])
        with self.assertRaises(InvalidArgument):
            uncharged.assign_charges({"Si": 1.2})
        with self.assertRaises(InvalidArgument):
            uncharged.assign_charges([1.0, -1.0])
        with self.assertRaises(ChargeNeutralityError):
            uncharged.assign_charges({"Si": 1.0, "O": -0.6})
        f = uncharged.assign_charges({"Si": 1.0, "O": -0.6}, net_charge_tol=0.5)
        self.assertAlmostEqual(f.total_charge(), -0.2)

    def test_union(self):
        a = Framework("a", Box.cubic(10.0), Atoms(["Ar"], [[0.1, 0.1, 0.1]]))
        b = Framework(
            "b",
            Box.cubic(10.0),
            Atoms(["Kr"], [[0.5, 0.5, 0.5]]),
            Charges([0.1], [[0.5, 0.5, 0.5]]),
        )
        c = a + b
        self.assertEqual(c.name, "a_b")
        self.assertEqual(c.atoms.species, ("Ar", "Kr"))
        self.assertEqual(c.charges.n_charges, 1)
        d = Framework.union(a, b, c)
        self.assertEqual(d.name, "a_b_a_b")
        self.assertEqual(d.atoms.n_atoms, 4)
        with self.assertRaises(InconsistentStructureError):
            a + Framework("big", Box.cubic(11.0), Atoms.empty())
        other_sym = Framework(
            "p-1",
            Box.cubic(10.0),
            Atoms.empty(),
            symmetry=["x,y,z", "-x,-y,-z"],
            space_group="P -1",
            is_p1=False,
        )
        with self.assertRaises(InconsistentStructureError):
            a + other_sym
        with self.assertLogs("poremat.crystal.framework", level="WARNING"):
            a + a
        self.assertEqual((a + a).atoms.n_atoms, 2)

    def test_repr(self):
        self.assertEqual(repr(self.sio2), "<Framework p1_sio2.cif: O2Si 3 atoms, 3 charges>")
        s = str(self.sio2)
        self.assertIn("Name: p1_sio2.cif", s)
        self.assertIn("Space Group: P1", s)
        self.assertIn("'x,y,z'", s)


class FrameworkOverlapTestCase(unittest.TestCase):
    def test_minimum_image(self):
        f = _argon_pair([0.01, 0.0, 0.0], [0.99, 0.0, 0.0])
        self.assertTrue(f.atom_overlap(overlap_tol=0.5))
        self.assertFalse(f.atom_overlap(overlap_tol=0.1))
        box = f.box
        self.assertTrue(overlap([0.01, 0, 0], [-0.01, 0, 0], box, 0.5))
        self.assertTrue(overlap([0.01, 0, 0], [1.01, 1.0, 2.0], box, 0.1))
        f = _argon_pair([0.01, 0.01, 0.01], [0.99, 0.99, 0.99])
        self.assertTrue(f.atom_overlap(overlap_tol=0.5))
        self.assertFalse(f.atom_overlap(overlap_tol=0.1))

    def test_symmetric(self):
        box = Box.from_lengths_and_angles((7.0, 8.0, 9.0), (70.0, 100.0, 110.0), unit="degrees")
        points = np.random.RandomState(1).uniform(0, 1, size=(12, 3))
        for x1, x2 in itertools.combinations(points, 2):
            self.assertEqual(overlap(x1, x2, box, 4.0), overlap(x2, x1, box, 4.0))
        atoms = Atoms(["C"] * 12, points)
        f = Framework("c", box, atoms)
        reordered = Framework("c", box, atoms.subset(np.arange(12)[::-1]))
        for tol in (0.5, 2.0, 4.0):
            self.assertEqual(f.atom_overlap(overlap_tol=tol), reordered.atom_overlap(overlap_tol=tol))

    def test_overlapping_pairs_exhaustive(self):
        box = Box.from_lengths_and_angles((7.0, 8.0, 9.0), (70.0, 100.0, 110.0), unit="degrees")
        points = np.random.RandomState(0).uniform(-0.5, 1.5, size=(40, 3))
        for tol in (0.5, 2.0, 3.5):
            expected = [
                (i, j)
                for i in range(len(points))
                for j in range(i)
                if overlap(points[i], points[j], box, tol)
            ]
            self.assertEqual(overlapping_pairs(points, box, tol), expected)
        self.assertEqual(overlapping_pairs(np.empty((0, 3)), box), [])
        self.assertEqual(overlapping_pairs([[0.5, 0.5, 0.5]], box), [])

    def test_verbose(self):
        f = _argon_pair([0.0, 0.0, 0.0], [0.001, 0.0, 0.0])
        with self.assertLogs("poremat.crystal.framework", level="WARNING") as cm:
            self.assertTrue(f.atom_overlap(verbose=True))
        self.assertEqual(len(cm.output), 1)

    def test_remove_overlap(self):
        box = Box.cubic(10.0)
        atoms = Atoms(
            ["Ar", "Ne", "Ar", "Ar"],
            [[0, 0, 0], [0.5, 0.5, 0.5], [0.999, 0, 0], [0.0, 0.0, 1.0]],
        )
        charges = Charges([0.5, -0.5, 0.5], [[0, 0, 0], [0.5, 0.5, 0.5], [1.0, 0, 0]])
        f = Framework("dupes", box, atoms, charges)
        self.assertTrue(f.atom_overlap())
        self.assertTrue(f.charge_overlap())
        deduped = f.remove_overlapping_atoms_and_charges()
        self.assertEqual(deduped.atoms.species, ("Ar", "Ne"))
        np.testing.assert_allclose(deduped.atoms.xf, [[0, 0, 0], [0.5, 0.5, 0.5]])
        self.assertEqual(deduped.charges.n_charges, 2)
        self.assertFalse(deduped.atom_overlap())
        self.assertFalse(deduped.charge_overlap())

    def test_remove_overlap_mismatch(self):
        box = Box.cubic(10.0)
        f = Framework("mixed", box, Atoms(["Ar", "Ne"], [[0, 0, 0], [0, 0, 0.001]]))
        with self.assertRaises(OverlapError):
            f.remove_overlapping_atoms_and_charges()
        f = Framework(
            "mixed",
            box,
            Atoms(["Ar"], [[0, 0, 0]]),
            Charges([0.5, -0.5], [[0, 0, 0], [0, 0, 0]]),
        )
        with self.assertRaises(OverlapError):
            f.remove_overlapping_atoms_and_charges()


class FrameworkWriteTestCase(unittest.TestCase):
    def setUp(self):
        self.sio2 = Framework.load(TEST_FILES["p1_sio2.cif"])

    def test_cif_round_trip(self):
        for name in ("p1_sio2.cif", "cartesian_ar.cif", "p1_sio2.cssr"):
            f = Framework.load(TEST_FILES[name])
            for fractional in (True, False):
                contents = f.to_cif_string(fractional=fractional)
                g = Framework.from_cif_string(contents)
                self.assertTrue(g.isclose(f), f"{name}, fractional={fractional}")

    def test_cif_contents(self):
        contents = self.sio2.to_cif_string()
        self.assertTrue(contents.startswith("data_p1_sio2_PM\n"))
        self.assertIn("_symmetry_Int_Tables_number 1", contents)
        self.assertIn("_atom_site_charge", contents)
        self.assertIn("_atom_site_fract_x", contents)
        self.assertIn("_atom_site_Cartn_x", self.sio2.to_cif_string(fractional=False))

    def test_non_p1_round_trip(self):
        f = Framework.load(TEST_FILES["inversion.cif"], convert_to_p1=False)
        g = Framework.from_cif_string(f.to_cif_string(), convert_to_p1=False)
        self.assertTrue(g.isclose(f))
        self.assertEqual(g.space_group, "P -1")
        self.assertTrue(Framework.from_cif_string(f.to_cif_string()).is_p1)

    def test_cif_file(self):
        with TemporaryDirectory() as tmpdirname:
            path = self.sio2.to_cif_file(Path(tmpdirname, "sio2"))
            self.assertEqual(path.name, "sio2.cif")
            self.assertTrue(Framework.load(path).isclose(self.sio2))
            path = self.sio2.to_cif_file(Path(tmpdirname, "other.cif"))
            self.assertEqual(path.name, "other.cif")

    def test_cif_inconsistent_charges(self):
        f = Framework(
            "partial",
            self.sio2.box,
            self.sio2.atoms,
            Charges([0.5, -0.5], self.sio2.atoms.xf[:2]),
        )
        with self.assertRaises(InconsistentStructureError):
            f.to_cif_string()
        f = Framework(
            "moved",
            self.sio2.box,
            self.sio2.atoms,
            Charges(self.sio2.charges.q, self.sio2.atoms.xf[::-1]),
        )
        with self.assertRaises(InconsistentStructureError):
            f.to_cif_string()

    def test_xyz(self):
        contents = self.sio2.to_xyz_string(comment="silica")
        species, positions, comment = parse_xyz_string(contents)
        self.assertEqual(species, ["Si", "O", "O"])
        self.assertEqual(comment, "silica")
        np.testing.assert_allclose(positions[1], [5.0, 0.0, 0.0])
        _, centered, _ = parse_xyz_string(self.sio2.to_xyz_string(center=True))
        np.testing.assert_allclose(centered[0], [-5.0, -5.0, -5.0])
        with TemporaryDirectory() as tmpdirname:
            path = self.sio2.to_xyz_file(Path(tmpdirname, "sio2.xyz"))
            self.assertEqual(path.read_text(), self.sio2.to_xyz_string())

    def test_vtk(self):
        mesh = self.sio2.unit_cell_mesh()
        self.assertEqual(mesh.n_points, 8)
        np.testing.assert_allclose(mesh.bounds, (0, 10, 0, 10, 0, 10), atol=1e-8)
        with TemporaryDirectory() as tmpdirname:
            path = self.sio2.to_vtk_file(Path(tmpdirname, "sio2.vtk"))
            self.assertEqual(path.name, "sio2.vtk")
            self.assertTrue(path.read_text().startswith("# vtk"))
        with TemporaryDirectory() as tmpdirname:
            path = self.sio2.to_vtk_file(Path(tmpdirname, "cell"))
            self.assertEqual(path.name, "cell.vtk")
