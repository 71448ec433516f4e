import itertools
import logging
import re
from fractions import Fraction

import numpy as np

from poremat.exceptions import ParseError

LOG = logging.getLogger(__name__)

_SYMBOLS = "xyz"
_TOKEN_REGEX = re.compile(r"\s*(?:(\d+\.\d*|\.\d+|\d+)|([xyz])|([-+*/]))", re.IGNORECASE)

# every combination of 0 and 1/4 along the three axes
PROBE_POINTS = np.array(list(itertools.product((0.0, 0.25), repeat=3)))


def _tokenize(expression):
    tokens = []
    pos = 0
    expression = expression.strip()
    while pos < len(expression):
        match = _TOKEN_REGEX.match(expression, pos)
        if match is None or match.end() == pos:
            raise ParseError(
                f"Unexpected character '{expression[pos]}' in symmetry "
                f"expression '{expression}'"
            )
        number, symbol, op = match.groups()
        if number is not None:
            tokens.append(("num", Fraction(number)))
        elif symbol is not None:
            tokens.append(("var", _SYMBOLS.index(symbol.lower())))
        else:
            tokens.append(("op", op))
        pos = match.end()
    return tokens


def parse_symmetry_expression(expression):
    """
    Parse one axis of a symmetry operation e.g. '-x+1/2' into the
    coefficients of x, y, z and a constant term.

    Only sums of terms are accepted, where each term is a product or
    quotient of numbers with at most one of x, y, z (and never dividing
    by it). No code is evaluated.

    >>> parse_symmetry_expression("-x+1/2")
    ((Fraction(-1, 1), Fraction(0, 1), Fraction(0, 1)), Fraction(1, 2))
    >>> parse_symmetry_expression("x - y")[0]
    (Fraction(1, 1), Fraction(-1, 1), Fraction(0, 1))

    Args:
        expression (str): the expression for a single axis

    Returns:
        Tuple[Tuple[Fraction, Fraction, Fraction], Fraction]: coefficients of
        (x, y, z) and the constant term

    Raises:
        ParseError: if the expression is not of the accepted form
    """
    tokens = _tokenize(expression)
    if not tokens:
        raise ParseError("Empty symmetry expression")
    pos = 0

    def fail(reason):
        raise ParseError(f"Invalid symmetry expression '{expression}': {reason}")

    def peek():
        return tokens[pos] if pos < len(tokens) else None

    def take():
        nonlocal pos
        pos += 1
        return tokens[pos - 1]

    def signed_factor():
        sign = 1
        while peek() in (("op", "+"), ("op", "-")):
            if take()[1] == "-":
                sign = -sign
        tok = peek()
        if tok is None:
            fail("unexpected end of expression")
        if tok[0] == "op":
            fail(f"unexpected operator '{tok[1]}'")
        return sign, take()

    def term():
        sign, (kind, value) = signed_factor()
        coef, var = Fraction(sign), None
        if kind == "var":
            var = value
        else:
            coef *= value
        while True:
            tok = peek()
            if tok is None or tok in (("op", "+"), ("op", "-")):
                return coef, var
            if tok[0] == "num":
                fail("missing operator before number")
            if tok[0] == "var":
                # implicit multiplication e.g. 2x
                if var is not None:
                    fail("products of coordinates are not affine")
                var = take()[1]
                continue
            op = take()[1]
            factor_sign, (factor_kind, factor_value) = signed_factor()
            coef *= factor_sign
            if op == "*":
                if factor_kind == "var":
                    if var is not None:
                        fail("products of coordinates are not affine")
                    var = factor_value
                else:
                    coef *= factor_value
            else:
                if factor_kind == "var":
                    fail("division by a coordinate is not affine")
                if factor_value == 0:
                    fail("division by zero")
                coef /= factor_value

    coefficients = [Fraction(0)] * 3
    constant = Fraction(0)
    while pos < len(tokens):
        coef, var = term()
        if var is None:
            constant += coef
        else:
            coefficients[var] += coef
    return tuple(coefficients), constant


def encode_symm_str(rotation, translation):
    """
    Encode a rotation matrix and translation vector into string form
    e.g. -x+1/2,y,-z

    >>> encode_symm_str(((-1, 0, 0), (0, 0, 1), (0, 1, 0)), (0, 0.5, 1/3))
    '-x,z+1/2,y+1/3'

    Args:
        rotation (array_like): (3,3) matrix of coefficients
        translation (array_like): (3) translation vector

    Returns:
        str: the encoded symmetry operation
    """
    return ",".join(
        _encode_axis(rotation[i], translation[i]) for i in range(3)
    )


def _format_number(value):
    f = Fraction(value).limit_denominator(12)
    if abs(float(f) - value) > 1e-8:
        return repr(float(value))
    return str(f)


def _encode_axis(row, t):
    v = ""
    for j in range(3):
        c = float(row[j])
        if c == 0:
            continue
        s = "-" if c < 0 else "+"
        magnitude = "" if abs(c) == 1 else _format_number(abs(c)) + "*"
        v += s + magnitude + _SYMBOLS[j]
    if t != 0:
        s = "-" if t < 0 else "+"
        v += s + _format_number(abs(float(t)))
    if not v:
        return "0"
    return v[1:] if v.startswith("+") else v


class SymmetryOperation:
    """
    A crystallographic symmetry operation acting on fractional coordinates,
    x' = R x + t.

    The expressions it was created from are kept so that the operation
    is written back out exactly as it was read.

    Attributes:
        rotation (np.ndarray): (3, 3) coefficient matrix
        translation (np.ndarray): (3) translation vector
        expressions (Tuple[str, str, str]): per-axis expressions
    """

    def __init__(self, rotation, translation, expressions=None):
        self.rotation = np.array(rotation, dtype=np.float64)
        self.translation = np.array(translation, dtype=np.float64)
        if self.rotation.shape != (3, 3) or self.translation.shape != (3,):
            raise ParseError("Symmetry operations need a (3, 3) rotation and (3) translation")
        self.rotation.flags.writeable = False
        self.translation.flags.writeable = False
        if expressions is None:
            expressions = encode_symm_str(self.rotation, self.translation).split(",")
        self.expressions = tuple(expressions)

    @classmethod
    def from_expressions(cls, expressions):
        """
        Construct from three per-axis expressions e.g. ('-x', 'y+1/2', 'z').

        Raises:
            ParseError: if there are not three expressions or any of them
                cannot be parsed
        """
        expressions = tuple(x.strip() for x in expressions)
        if len(expressions) != 3:
            raise ParseError(
                f"A symmetry operation needs 3 expressions, got {len(expressions)}: {expressions}"
            )
        rotation = np.zeros((3, 3))
        translation = np.zeros(3)
        for i, expression in enumerate(expressions):
            coefficients, constant = parse_symmetry_expression(expression)
            rotation[i, :] = [float(x) for x in coefficients]
            translation[i] = float(constant)
        return cls(rotation, translation, expressions=expressions)

    @classmethod
    def from_string_code(cls, code: str):
        """
        Construct from a comma separated operation e.g. '-x, y+1/2, z'.

        Surrounding quotes are ignored.
        """
        code = code.strip().strip("'\"")
        return cls.from_expressions(code.split(","))

    @classmethod
    def identity(cls):
        "The identity operation x,y,z"
        return cls(np.eye(3), np.zeros(3), expressions=("x", "y", "z"))

    def is_identity(self) -> bool:
        "True if this is the identity x,y,z"
        return bool(
            np.allclose(self.rotation, np.eye(3)) and np.allclose(self.translation, 0.0)
        )

    @property
    def cif_form(self) -> str:
        "This operation as written in CIF files e.g. 'x,y,z'"
        return str(self)

    @property
    def seitz_matrix(self) -> np.ndarray:
        "The (4, 4) Seitz matrix form of this operation"
        s = np.eye(4, dtype=np.float64)
        s[:3, :3] = self.rotation
        s[:3, 3] = self.translation
        return s

    def apply(self, coordinates) -> np.ndarray:
        """
        Apply this symmetry operation to fractional coordinates. The
        results are not wrapped back into the unit cell.

        Args:
            coordinates (array_like): (3,) or (N, 3) fractional coordinates

        Returns:
            np.ndarray: transformed coordinates with the same shape
        """
        coordinates = np.asarray(coordinates, dtype=np.float64)
        return np.dot(coordinates, self.rotation.T) + self.translation

    def __call__(self, coordinates):
        return self.apply(coordinates)

    def __eq__(self, other):
        if not isinstance(other, SymmetryOperation):
            return NotImplemented
        return bool(
            np.allclose(self.rotation, other.rotation)
            and np.allclose(self.translation, other.translation)
        )

    def __hash__(self):
        return hash(
            (tuple(np.round(self.rotation, 6).ravel()), tuple(np.round(self.translation, 6)))
        )

    def __str__(self):
        return ",".join(self.expressions)

    def __repr__(self):
        return "<{}: {}>".format(self.__class__.__name__, self)


def parse_symmetry_rules(rules):
    """
    Normalise a collection of symmetry rules into a list of `SymmetryOperation`.

    Each rule may be a `SymmetryOperation`, a string such as 'x,-y,z+1/2'
    or a sequence of three per-axis expressions.
    """
    result = []
    for rule in rules:
        if isinstance(rule, SymmetryOperation):
            result.append(rule)
        elif isinstance(rule, str):
            result.append(SymmetryOperation.from_string_code(rule))
        else:
            result.append(SymmetryOperation.from_expressions(rule))
    return result


def is_p1_rules(rules) -> bool:
    "True if `rules` contains only the identity operation"
    return len(rules) == 1 and rules[0].is_identity()


def apply_all(rules, coordinates) -> np.ndarray:
    """
    Apply every rule to every coordinate, stacking the results rule by rule
    i.e. the first N rows come from rules[0].

    Returns:
        np.ndarray: (len(rules) * N, 3) array
    """
    coordinates = np.asarray(coordinates, dtype=np.float64).reshape(-1, 3)
    if not rules:
        return np.empty((0, 3))
    return np.vstack([rule.apply(coordinates) for rule in rules])


def is_symmetry_equal(rules1, rules2, atol=1e-6) -> bool:
    """
    Determine whether two sets of symmetry rules are equivalent, by applying
    them to the same probe points and comparing the resulting point sets
    irrespective of order.

    This is a heuristic, two different sets of rules that happen to map
    the probe points identically will be reported equal.

    Args:
        rules1 (List[SymmetryOperation]): the first set of rules
        rules2 (List[SymmetryOperation]): the second set of rules
        atol (float, optional): tolerance when comparing points

    Returns:
        bool: False if the number of rules differ or the generated points differ
    """
    rules1 = parse_symmetry_rules(rules1)
    rules2 = parse_symmetry_rules(rules2)
    if len(rules1) != len(rules2):
        return False
    points1 = apply_all(rules1, PROBE_POINTS)
    points2 = apply_all(rules2, PROBE_POINTS)
    close = np.all(np.abs(points1[:, None, :] - points2[None, :, :]) < atol, axis=2)
    return bool(np.all(close.any(axis=1)) and np.all(close.any(axis=0)))
