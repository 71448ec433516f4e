import logging
from pathlib import Path
import numpy as np

from poremat.exceptions import ParseError

LOG = logging.getLogger(__name__)


def parse_xyz_string(contents, filename=None):
    """Convert provided xmol .xyz file contents into a list of
    species and cartesian positions

    Parameters
    ----------
    contents: str
        text contents of the .xyz file to read

    Returns
    -------
    tuple of (list of str, :obj:`np.ndarray`)
        (N) species and (N, 3) Cartesian positions, and the comment line
        read from the given file
    """
    lines = contents.splitlines()
    try:
        natom = int(lines[0].strip())
    except (IndexError, ValueError) as e:
        raise ParseError("First line of an .xyz file must be the number of atoms") from e
    LOG.debug("Expecting %d atoms %s", natom, "in " + filename if filename else "")
    comment = lines[1] if len(lines) > 1 else ""
    species = []
    positions = []
    for line in lines[2:]:
        if not line.strip():
            break
        tokens = line.strip().split()
        try:
            xyz = tuple(float(x) for x in tokens[1:4])
        except ValueError as e:
            raise ParseError(f"Invalid coordinates in .xyz line: {line}") from e
        if len(xyz) != 3:
            raise ParseError(f"Expected species and 3 coordinates in .xyz line: {line}")
        positions.append(xyz)
        species.append(tokens[0])
    if len(species) != natom:
        raise ParseError(f"Expected {natom} atoms in .xyz file, found {len(species)}")
    LOG.debug(
        "Found %d atoms lines %s",
        len(species),
        "in " + filename if filename else "",
    )
    return species, np.asarray(positions).reshape(-1, 3), comment


def parse_xyz_file(filename):
    """Convert a provided xmol .xyz file into a list of
    species and cartesian positions

    Parameters
    ----------
    filename: str
        path to the .xyz file to read

    Returns
    -------
    tuple
        see :obj:`parse_xyz_string`
    """
    path = Path(filename)
    return parse_xyz_string(path.read_text(), filename=str(path.absolute()))


def to_xyz_string(species, positions, comment=""):
    """Represent species and Cartesian positions as xmol .xyz
    file contents

    Parameters
    ----------
    species: list of str
        (N) element symbols or pseudo-atom tags
    positions: array_like
        (N, 3) Cartesian positions in Angstroms
    comment: str, optional
        text for the comment (second) line

    Returns
    -------
    str
        the .xyz file contents
    """
    positions = np.asarray(positions).reshape(-1, 3)
    lines = [str(len(species)), comment.replace("\n", " ")]
    for s, (x, y, z) in zip(species, positions):
        lines.append(f"{s:<4s} {x:16.8f} {y:16.8f} {z:16.8f}")
    return "\n".join(lines) + "\n"
