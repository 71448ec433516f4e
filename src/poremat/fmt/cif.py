import logging
import re
from itertools import groupby

from poremat.exceptions import ParseError

LOG = logging.getLogger(__name__)
NUM_ERR_REGEX = re.compile(r"([-+]?(\d+([.,]\d*)?|[.,]\d+)([eE][-+]?\d+)?)(\(\d+\))?")
QUOTE_REGEX = r"{0}\s*([^{0}]*)\s*{0}"
VALUES_REGEX = re.compile(r"""('.*?'|".*?"|;.*?;|\S+)""")

P1_NAMES = ("P1", "P 1", "-P1")
SPACE_GROUP_DATA_NAMES = ("symmetry_space_group_name_H-M", "space_group_name_H-M_alt")
SYMOP_DATA_NAMES = ("symmetry_equiv_pos_as_xyz", "space_group_symop_operation_xyz")
FRACTIONAL_DATA_NAMES = ("atom_site_fract_x", "atom_site_fract_y", "atom_site_fract_z")
CARTESIAN_DATA_NAMES = ("atom_site_Cartn_x", "atom_site_Cartn_y", "atom_site_Cartn_z")
UNKNOWN_VALUES = ("?", ".")


def parse_value(string, with_uncertainty=False):
    """parse a value from a cif file to its appropriate type
    e.g. int, float, str etc. Will handle uncertainty values
    contained in parentheses.

    Parameters
    ----------
    string: str
        the string containing the value to parse

    with_uncertainty: bool, optional
        return a tuple including uncertainty if a numeric type is expected

    Returns
    -------
    value
        the value coerced into the appropriate type

    >>> parse_value("2.3(1)", with_uncertainty=True)
    (2.3, 1)
    >>> parse_value("'-x, y, z'")
    '-x, y, z'
    >>> parse_value("90.0")
    90
    """
    match = NUM_ERR_REGEX.match(string)
    if match and match.span()[1] == len(string):
        groups = match.groups()
        number, uncertainty = groups[0], groups[-1]
        number = float(number.replace(",", "."))
        if number.is_integer():
            number = int(number)
        if with_uncertainty:
            return number, int(uncertainty.strip("()")) if uncertainty else 0
        return number
    else:
        s = string.strip()
        if s and s[0] == s[-1] and s[0] in ("'", ";", '"'):
            return parse_quote(string, delimiter=s[0])
    return string


def parse_quote(string, delimiter=";"):
    """extract a value contained within quotes, with an optional change
    of delimiter

    >>> parse_quote(";quote text;")
    'quote text'
    >>> parse_quote("'-y, x-y, z'", delimiter="'")
    '-y, x-y, z'
    """
    regex = QUOTE_REGEX.format(delimiter)
    match = re.match(regex, string)
    if match:
        return match.groups()[0]
    return string


def needs_quote(string):
    "check if a string needs to be quoted (i.e. it is empty or has a space but no quotation marks in it)"
    if not isinstance(string, str):
        return False
    return (" " in string or not string) and (not ('"' in string or "'" in string))


def is_scalar(value):
    "check if the value is a string or has no __len__ dunder method"
    return isinstance(value, str) or (not hasattr(value, "__len__"))


def format_field(x):
    "format a field to fixed precision if float otherwise as a string"
    if isinstance(x, float):
        return f"{x:20.12f}"
    elif isinstance(x, int):
        return f"{x:20d}"
    elif isinstance(x, str):
        if needs_quote(x):
            return f"'{x}'"
        else:
            return x
    else:
        return str(x)


class Cif:
    """Class to represent data extracted from a CIF
    standard file format.

    Parameters
    ----------
    cif_data : dict
        dictionary of data block names to dictionaries of CIF keys and values
    """

    def __init__(self, cif_data):
        self.data = cif_data
        self.line_dispatch = {
            "#": self.parse_comment_line,
            "loop_": self.parse_loop_block,
        }
        self.current_data_block_name = "unknown"
        self.content_lines = []

    def is_comment_line(self, line):
        "check if the line is a comment i.e. starts with '#'"
        return line.strip().startswith("#")

    def is_data_name_line(self, line):
        "check if the line is a data_name i.e. starts with a single '_'"
        return line.strip().startswith("_")

    def is_empty_line(self, line):
        "check if the line is empty/blank"
        if line and line.strip():
            return False
        return True

    def is_data_line(self, line):
        "check if the line contains a value for the current key"
        if self.is_empty_line(line):
            return False
        if self.is_comment_line(line):
            return False
        if self.is_data_name_line(line):
            return False
        token = line.split()[0]
        if token in self.line_dispatch or token.startswith("data_"):
            return False
        return True

    def parse_quoted_block(self, delimiter=";"):
        "parse an entire quoted block, delimited by delimiter"
        LOG.debug("Parsing quoted block at line %d", self.line_index)
        i = self.line_index + 1
        j = i
        n = 1
        while j < len(self.content_lines) and delimiter not in self.content_lines[j]:
            j += 1
            n += 1
        if j >= len(self.content_lines):
            raise ParseError(f"Unmatched quotation on line {self.line_index + 1}")
        section = " ".join(x.strip() for x in self.content_lines[i - 1 : j + 1])
        self.line_index += n
        return parse_quote(section, delimiter=delimiter)

    def parse_data_name(self):
        "parse a single data name i.e key for the cif_data dictionary"
        tokens = self.content_lines[self.line_index].strip()[1:].split()
        k = tokens[0]
        v = None
        if len(tokens) == 1:
            self.line_index += 1
            while (
                self.line_index < len(self.content_lines)
                and self.is_comment_line(self.content_lines[self.line_index])
            ):
                self.line_index += 1
            if self.line_index >= len(self.content_lines):
                raise ParseError(f"Missing value for CIF data name '_{k}' at end of file")
            next_line = self.content_lines[self.line_index]
            if next_line.strip().startswith(";"):
                v = self.parse_quoted_block().strip()
            else:
                v = next_line.strip()
        else:
            v = " ".join(tokens[1:])
        self.current_data_block[k] = parse_value(v)
        self.line_index += 1
        LOG.debug("Parsed data name: %s = %s", k, v)

    def parse_loop_block(self):
        "parse values contained in a _loop block"
        LOG.debug("Parsing loop block at line %d", self.line_index)
        self.line_index += 1
        keys = []
        while self.line_index < len(self.content_lines):
            line = self.content_lines[self.line_index]
            if not self.is_data_name_line(line):
                break
            keys.append(line.strip()[1:].split()[0])
            self.line_index += 1
            while self.line_index < len(self.content_lines) and self.is_comment_line(
                self.content_lines[self.line_index]
            ):
                self.line_index += 1

        rows = []
        merge_column = len(keys) - 1
        for name in SYMOP_DATA_NAMES:
            if name in keys:
                merge_column = keys.index(name)
        pending = []
        while self.line_index < len(self.content_lines):
            line = self.content_lines[self.line_index]
            if self.is_comment_line(line) or self.is_empty_line(line):
                self.line_index += 1
                continue
            if not self.is_data_line(line):
                break
            LOG.debug("Parsing data line: %s", line)
            tokens = re.findall(VALUES_REGEX, line.strip())
            # trailing comment
            for n, token in enumerate(tokens):
                if token.startswith("#"):
                    tokens = tokens[:n]
                    break
            pending.extend(tokens)
            self.line_index += 1
            if len(pending) < len(keys):
                continue
            if len(pending) > len(keys):
                # unquoted values containing spaces e.g. x, y, z
                i, j = merge_column, merge_column + len(pending) - len(keys) + 1
                pending = pending[:i] + [" ".join(pending[i:j])] + pending[j:]
            rows.append(pending)
            pending = []
        if pending:
            raise ParseError(
                f"Incomplete row in loop block ending on line {self.line_index}: {pending}"
            )

        for k in keys:
            self.current_data_block[k] = []
        for row in rows:
            for k, v in zip(keys, row):
                self.current_data_block[k].append(parse_value(v))
        LOG.debug("Parsed loop block with %d keys and %d rows", len(keys), len(rows))

    def parse_comment_line(self):
        "ignore comment lines"
        self.line_index += 1

    def parse_data_block_name(self):
        "parse a data block name"
        line = self.content_lines[self.line_index]
        self.current_data_block_name = line.strip()[5:].strip()
        self.line_index += 1
        LOG.debug("Parsed data block name: %s", self.current_data_block_name)

    def parse(self):
        "parse the entire CIF contents"
        self.line_index = 0
        line_count = len(self.content_lines)
        while self.line_index < line_count:
            line = self.content_lines[self.line_index].strip()
            if line:
                token = line.split()[0]
                if token in self.line_dispatch or token.startswith("#"):
                    self.line_dispatch.get(token, self.parse_comment_line)()
                elif token.startswith("_"):
                    self.parse_data_name()
                elif token.startswith("data_"):
                    self.parse_data_block_name()
                else:
                    LOG.debug("Skipping unknown line: %s", line)
                    self.line_index += 1
            else:
                self.line_index += 1
        self.line_index = 0
        return self.data

    @property
    def current_data_block(self):
        "return the current data block, adding the key if necessary"
        if self.current_data_block_name not in self.data:
            self.data[self.current_data_block_name] = {}
        return self.data[self.current_data_block_name]

    @classmethod
    def from_string(cls, contents):
        "initialize a :obj:`Cif` from string contents"
        c = cls({})
        c.content_lines = contents.splitlines()
        c.parse()
        return c

    def to_string(self):
        "represent the data in this :obj`Cif` textually in the CIF format"
        lines = []
        for data_block_name, data_block_data in self.data.items():
            lines.append(f"data_{data_block_name}")
            vector_data_names = []
            for data_name, data_value in data_block_data.items():
                if is_scalar(data_value):
                    quote = ""
                    if needs_quote(data_value):
                        quote = "'"
                    lines.append(f"_{data_name} {quote}{data_value}{quote}")
                else:
                    vector_data_names.append(data_name)

            for name_section, names in groupby(
                vector_data_names, key=lambda x: x.split("_")[0]
            ):
                for section, names in groupby(
                    names, key=lambda x: len(data_block_data[x])
                ):
                    lines.append("")
                    lines.append("loop_")
                    loop_values = []
                    for name in names:
                        lines.append(f"_{name}")
                        loop_values.append(data_block_data[name])
                    for row in zip(*loop_values):
                        lines.append(" ".join(format_field(x) for x in row))

        lines.append("#END")
        return "\n".join(lines) + "\n"


def _as_float(value, data_name):
    if isinstance(value, (int, float)):
        return float(value)
    raise ParseError(f"Expected a number for _{data_name}, found '{value}'")


def _first_present(cif_data, names):
    for name in names:
        if name in cif_data:
            return name
    return None


def framework_data_from_cif(cif_data):
    """
    Extract the pieces of a framework from a parsed CIF data block.

    Args:
        cif_data (dict): a single data block, as in `Cif.data[name]`

    Returns:
        dict: with members

            lengths: cell lengths (a, b, c)
            angles: cell angles (alpha, beta, gamma) in degrees
            labels: site labels or type symbols, as they appear in the file
            coordinates: (N, 3) list of site coordinates
            cartesian: True if `coordinates` are Cartesian rather than fractional
            charges: N site charges (0 where none were given)
            symmetry: symmetry operation strings (empty if none were read)
            space_group: the space group label ('P1' for any P1 variant)
            is_p1: whether the structure is in P1

    Raises:
        ParseError: if the atom sites, cell or (for non-P1 structures)
            the symmetry operations are missing or malformed
    """
    space_group = ""
    sg_name = _first_present(cif_data, SPACE_GROUP_DATA_NAMES)
    if sg_name is not None:
        space_group = str(cif_data[sg_name]).strip()
    is_p1 = space_group in P1_NAMES
    if is_p1:
        space_group = "P1"

    symmetry = []
    symop_name = _first_present(cif_data, SYMOP_DATA_NAMES)
    if symop_name is not None and not is_p1:
        symmetry = [str(x) for x in cif_data[symop_name]]
        if not space_group and len(symmetry) == 1:
            ops = [x.replace(" ", "").lower().split(",") for x in symmetry]
            if ops[0] in (["x", "y", "z"], ["+x", "+y", "+z"]):
                LOG.debug("Only the identity operation present, treating as P1")
                is_p1 = True
                space_group = "P1"
                symmetry = []

    fractional = all(k in cif_data for k in FRACTIONAL_DATA_NAMES)
    cartesian = all(k in cif_data for k in CARTESIAN_DATA_NAMES) and not fractional
    if not (fractional or cartesian):
        raise ParseError(
            "Could not find _atom_site_fract_{x,y,z} or _atom_site_Cartn_{x,y,z} "
            "in a loop_ block of the CIF"
        )
    coordinate_names = FRACTIONAL_DATA_NAMES if fractional else CARTESIAN_DATA_NAMES

    label_name = _first_present(cif_data, ("atom_site_type_symbol", "atom_site_label"))
    if label_name is None:
        raise ParseError(
            "Unable to determine species in CIF, need one of _atom_site_label "
            "or _atom_site_type_symbol"
        )
    labels = [str(x) for x in cif_data[label_name]]
    if not labels:
        raise ParseError("No atom sites found in the atom_site loop of the CIF")
    columns = [cif_data[k] for k in coordinate_names]
    if any(len(col) != len(labels) for col in columns):
        raise ParseError("Atom site columns have different lengths")
    coordinates = [
        [_as_float(v, k) for v, k in zip(row, coordinate_names)] for row in zip(*columns)
    ]

    charges = [0.0] * len(labels)
    if "atom_site_charge" in cif_data:
        charges = [
            0.0 if q in UNKNOWN_VALUES else _as_float(q, "atom_site_charge")
            for q in cif_data["atom_site_charge"]
        ]

    cell = {}
    for k in ("length_a", "length_b", "length_c", "angle_alpha", "angle_beta", "angle_gamma"):
        name = f"cell_{k}"
        if name not in cif_data:
            raise ParseError(f"Missing _{name} in CIF")
        cell[k] = _as_float(cif_data[name], name)

    if not is_p1 and not symmetry:
        raise ParseError(
            "Structure is not in P1 symmetry, so it must list its symmetry "
            "operations (_symmetry_equiv_pos_as_xyz)"
        )

    return {
        "lengths": (cell["length_a"], cell["length_b"], cell["length_c"]),
        "angles": (cell["angle_alpha"], cell["angle_beta"], cell["angle_gamma"]),
        "labels": labels,
        "coordinates": coordinates,
        "cartesian": cartesian,
        "charges": charges,
        "symmetry": symmetry,
        "space_group": space_group,
        "is_p1": is_p1,
    }


def parse_cif_string(contents, data_block_name=None):
    """
    Parse CIF text into framework data (see `framework_data_from_cif`).

    Args:
        contents (str): the CIF text
        data_block_name (str, optional): the data block to read, by default
            the first one in the file

    Returns:
        Tuple[str, dict]: the data block name and the framework data
    """
    cif = Cif.from_string(contents)
    if not cif.data:
        raise ParseError("No data found in CIF")
    if data_block_name is None:
        data_block_name = next(iter(cif.data))
    elif data_block_name not in cif.data:
        raise ParseError(f"No data block named '{data_block_name}' in CIF")
    return data_block_name, framework_data_from_cif(cif.data[data_block_name])
