import unittest
from tempfile import TemporaryDirectory
from pathlib import Path
import numpy as np
import pyvista as pv
from poremat.crystal import Box
from poremat.fmt.vtk import BOX_EDGES, box_outline_mesh, write_box_vtk


class VtkTestCase(unittest.TestCase):
    def test_box_outline(self):
        box = Box.cubic(2.0)
        mesh = box_outline_mesh(box)
        self.assertEqual(mesh.n_points, 8)
        np.testing.assert_allclose(mesh.points, box.vertices)
        np.testing.assert_equal(mesh.lines.reshape(-1, 3)[:, 1:], BOX_EDGES)
        np.testing.assert_equal(mesh.lines.reshape(-1, 3)[:, 0], 2)

    def test_write(self):
        with TemporaryDirectory() as tmpdirname:
            path = write_box_vtk(Box.cubic(2.0), Path(tmpdirname, "cell"))
            self.assertEqual(path.name, "cell.vtk")
            self.assertTrue(path.read_text().startswith("# vtk"))
            mesh = pv.read(str(path))
            self.assertEqual(mesh.n_points, 8)
            self.assertEqual(len(mesh.lines), 3 * len(BOX_EDGES))
            np.testing.assert_allclose(mesh.bounds, (0, 2, 0, 2, 0, 2))
