"""
Exceptions raised while reading, building or transforming crystal structures.

All of them derive from :obj:`ValueError` as well as :obj:`PorematError`,
so callers may catch either.
"""


class PorematError(Exception):
    "Base class for all errors raised by poremat"


class UnsupportedFormat(PorematError, ValueError):
    "The file extension does not correspond to a readable crystal format"


class ParseError(PorematError, ValueError):
    "Malformed or incomplete file contents, or an unparseable symmetry expression"


class GeometryError(PorematError, ValueError):
    "Degenerate or otherwise invalid unit cell"


class ChargeNeutralityError(PorematError, ValueError):
    "Net charge exceeds the tolerance"


class OverlapError(PorematError, ValueError):
    "Unresolved overlap between atoms or charges"


class InvalidArgument(PorematError, ValueError):
    "Mismatched lengths, bad replication factors, missing species etc."


class InconsistentStructureError(PorematError, ValueError):
    "Structures or their parts do not correspond to one another"
