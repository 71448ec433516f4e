import logging
from pathlib import Path

from poremat.exceptions import ParseError

LOG = logging.getLogger(__name__)

# 0-based token index of the partial charge on an atom line
CHARGE_TOKEN = 13


def _floats(tokens, line_number, what):
    try:
        return [float(x) for x in tokens]
    except ValueError as e:
        raise ParseError(f"Invalid {what} on line {line_number} of CSSR file") from e


def parse_cssr_string(contents, filename=None):
    """Convert provided CSSR file contents into framework data.

    The layout is fixed: cell lengths on line 1, cell angles (degrees)
    on line 2, the number of atoms as the first token of line 3, a title
    on line 4, then one line per atom of the form
    `index label x y z connectivity... charge`, with the charge in the
    14th field (0 if absent).

    Parameters
    ----------
    contents: str
        text contents of the CSSR file

    Returns
    -------
    dict
        framework data, with the same members as
        :obj:`poremat.fmt.cif.framework_data_from_cif`. CSSR
        structures are always P1.
    """
    lines = contents.splitlines()
    if len(lines) < 4:
        raise ParseError("CSSR file must contain at least 4 header lines")
    lengths = _floats(lines[0].split()[:3], 1, "cell lengths")
    angles = _floats(lines[1].split()[:3], 2, "cell angles")
    if len(lengths) != 3 or len(angles) != 3:
        raise ParseError("CSSR file must give 3 cell lengths and 3 cell angles")
    try:
        n_atoms = int(lines[2].split()[0])
    except (IndexError, ValueError) as e:
        raise ParseError("Line 3 of a CSSR file must start with the number of atoms") from e
    LOG.debug("Expecting %d atoms %s", n_atoms, "in " + filename if filename else "")

    atom_lines = lines[4 : 4 + n_atoms]
    if len(atom_lines) != n_atoms:
        raise ParseError(
            f"CSSR file declares {n_atoms} atoms but only has {len(atom_lines)} atom lines"
        )

    labels = []
    coordinates = []
    charges = []
    for i, line in enumerate(atom_lines, start=5):
        tokens = line.split()
        if len(tokens) < 5:
            raise ParseError(f"Expected index, label and 3 coordinates on line {i}")
        labels.append(tokens[1])
        coordinates.append(_floats(tokens[2:5], i, "coordinates"))
        if len(tokens) > CHARGE_TOKEN:
            charges.append(_floats(tokens[CHARGE_TOKEN : CHARGE_TOKEN + 1], i, "charge")[0])
        else:
            charges.append(0.0)

    return {
        "lengths": tuple(lengths),
        "angles": tuple(angles),
        "labels": labels,
        "coordinates": coordinates,
        "cartesian": False,
        "charges": charges,
        "symmetry": [],
        "space_group": "P1",
        "is_p1": True,
    }


def parse_cssr_file(filename):
    "Read framework data from a CSSR file, see :obj:`parse_cssr_string`"
    path = Path(filename)
    return parse_cssr_string(path.read_text(), filename=str(path.absolute()))
