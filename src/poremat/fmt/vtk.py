import logging
from pathlib import Path
import numpy as np

LOG = logging.getLogger(__name__)

# pairs of indices into Box.vertices forming the 12 edges of the cell
BOX_EDGES = (
    (0, 1), (1, 2), (2, 3), (3, 0),
    (4, 5), (5, 6), (6, 7), (7, 4),
    (0, 4), (1, 5), (2, 6), (3, 7),
)


def box_outline_mesh(box):
    """Construct the outline of a unit cell as a line mesh,
    for visualisation e.g. in VisIt or ParaView.

    Parameters
    ----------
    box: :obj:`poremat.crystal.box.Box`
        the unit cell to draw

    Returns
    -------
    :obj:`pyvista.PolyData`
        the 8 corners of the box joined by 12 line segments
    """
    import pyvista as pv

    lines = np.hstack([(2, i, j) for i, j in BOX_EDGES])
    return pv.PolyData(np.asarray(box.vertices, dtype=np.float64), lines=lines)


def write_box_vtk(box, filename, binary=False):
    "Write the outline of `box` to a legacy .vtk file"
    path = Path(filename)
    if path.suffix != ".vtk":
        path = path.with_name(path.name + ".vtk")
    box_outline_mesh(box).save(str(path), binary=binary)
    LOG.debug("Wrote unit cell outline to %s", path)
    return path
