from dataclasses import dataclass, field
from typing import Optional, Iterator
import itertools
import logging
import string
import math

import numpy as np
import sigfig


logger = logging.getLogger(__name__)


# results smaller than this, relative to the largest load, are reported as exactly zero
ZERO_TOLERANCE = 1e-9

# member forces within this of zero, relative to the largest member force,
# are drawn and classified as unloaded
FORCE_EPSILON = 1e-6

# largest residual, relative to the largest constant, accepted for a solved system
RESIDUAL_TOLERANCE = 1e-6

DEFAULT_SIG_FIGS = 4


@dataclass(frozen=True)
class Vector:

    """
    An immutable vector in the plane of the truss.
    """

    x: float = 0.0
    y: float = 0.0

    def __add__(self, other: "Vector") -> "Vector":
        return Vector(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Vector") -> "Vector":
        return Vector(self.x - other.x, self.y - other.y)

    def __neg__(self) -> "Vector":
        return Vector(-self.x, -self.y)

    def __mul__(self, factor: float) -> "Vector":
        return self.scale(factor)

    __rmul__ = __mul__

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"

    def dot(self, other: "Vector") -> float:
        return self.x * other.x + self.y * other.y

    def cross(self, other: "Vector") -> float:

        """
        The z-component of the cross product, i.e. the moment of `other`
        applied at this position about the origin (anticlockwise positive).
        """

        return self.x * other.y - self.y * other.x

    def length(self) -> float:
        return math.hypot(self.x, self.y)

    def scale(self, factor: float) -> "Vector":
        return Vector(self.x * factor, self.y * factor)

    def with_length(self, magnitude: float = 1.0) -> "Vector":

        """
        Returns a vector in the same direction with the given length. A zero vector
        has no direction, so the zero vector is returned instead of NaNs.
        """

        length = self.length()
        if length == 0:
            return Vector(0.0, 0.0)
        return self.scale(magnitude / length)

    def perpendicular(self) -> "Vector":
        """Rotated by 90 degrees anticlockwise."""
        return Vector(-self.y, self.x)


ZERO_VECTOR = Vector(0.0, 0.0)
X_AXIS = Vector(1.0, 0.0)
Y_AXIS = Vector(0.0, 1.0)


@dataclass(frozen=True)
class Equation:

    """
    A linear equation `sum(coefficient * variable) + constant = 0`,
    with the variables identified by name.
    """

    terms: dict[str, float] = field(default_factory=dict)
    constant: float = 0.0

    def __str__(self) -> str:
        return format_equation(self)


def iter_all_strings(start: int = 0):
    for size in itertools.count(1):
        for s in itertools.islice(
            itertools.product(string.ascii_uppercase, repeat=size), start, None
        ):
            yield "".join(s)
        start = max(0, start - len(string.ascii_uppercase) ** size)


def zero_if_small(num: float, scale: float = 1.0) -> float:
    return num if abs(num) > ZERO_TOLERANCE * scale else 0.0


def round_sigfig(num: float | list[float] | Vector, sig_figs: Optional[int]):
    if sig_figs is None:
        return num
    if isinstance(num, Vector):
        return Vector(*round_sigfig([num.x, num.y], sig_figs))
    if isinstance(num, (list, tuple)):
        return type(num)([round_sigfig(x, sig_figs) for x in num])
    if not math.isfinite(num) or num == 0:
        return num
    return float(sigfig.round(float(num), sigfigs=sig_figs))


def format_equation(equation: Equation, sig_figs: Optional[int] = None) -> str:
    parts = [
        f"{round_sigfig(coefficient, sig_figs)}*[{name}]"
        for name, coefficient in equation.terms.items()
    ]
    parts.append(str(round_sigfig(equation.constant, sig_figs)))
    return " + ".join(parts) + " = 0"


def format_matrix(matrix: np.ndarray, sig_figs: Optional[int] = None) -> str:
    matrix = np.atleast_2d(matrix)
    rows = [
        "[" + ", ".join(str(round_sigfig(float(v), sig_figs)) for v in row) + "]"
        for row in matrix
    ]
    return "[" + ",\n ".join(rows) + "]"


# LINEAR EQUATION SOLVER


def assemble_linear_system(
    equations: list[Equation],
) -> tuple[list[str], np.ndarray, np.ndarray]:

    """
    Builds the matrix equation `A * X = B` from a list of equations.

    The columns of `A` follow the order in which the variable names are first seen,
    a variable missing from an equation has a zero coefficient there,
    and `B` holds the negated constants.
    """

    variables = []
    for equation in equations:
        for name in equation.terms:
            if name not in variables:
                variables.append(name)

    column = {name: i for i, name in enumerate(variables)}
    a = np.zeros((len(equations), len(variables)))
    for row, equation in enumerate(equations):
        for name, coefficient in equation.terms.items():
            a[row, column[name]] += coefficient

    b = np.array([-1 * equation.constant for equation in equations], dtype=float)

    return variables, a, b


def get_independent_rows(a: np.ndarray) -> list[int]:

    """
    Greedily picks rows of `a`, in order, which are linearly independent of
    the rows already picked, until there are as many as there are columns.
    """

    rows = []
    for i in range(a.shape[0]):
        if len(rows) == a.shape[1]:
            break
        if np.linalg.matrix_rank(a[rows + [i]]) > len(rows):
            rows.append(i)

    return rows


def solve_linear_equations(
    equations: list[Equation], overdetermined: bool = False
) -> Optional[dict[str, float]]:

    """
    Solves a system of linear equations by inverting its coefficient matrix.
    Returns a mapping of variable name to value, or None if the system does not have
    exactly one solution (too few equations, a singular matrix, or equations which
    contradict each other).

    If `overdetermined` is set, a system with more equations than unknowns is allowed.
    It is reduced to a square system of independent equations, and the result is only
    accepted if it satisfies all of the original equations.
    """

    variables, a, b = assemble_linear_system(equations)
    n_equations, n_variables = a.shape
    logger.debug(
        "Assembled %d equations in %d unknowns", n_equations, n_variables
    )

    if n_variables == 0 or n_equations < n_variables:
        return None

    if not (np.all(np.isfinite(a)) and np.all(np.isfinite(b))):
        logger.debug("System has non-finite coefficients or constants")
        return None

    if n_equations == n_variables:
        square_a, square_b = a, b
    elif overdetermined:
        rows = get_independent_rows(a)
        if len(rows) < n_variables:
            return None
        square_a, square_b = a[rows], b[rows]
    else:
        return None

    try:
        if np.linalg.matrix_rank(square_a) < n_variables:
            return None
        x = np.linalg.inv(square_a) @ square_b
    except np.linalg.LinAlgError as e:
        logger.debug("Matrix inversion failed: %s", e)
        return None

    scale = float(np.abs(b).max(initial=0.0))
    if not np.all(np.isfinite(x)) or not np.allclose(
        a @ x, b, rtol=0, atol=RESIDUAL_TOLERANCE * scale
    ):
        logger.debug("Solution does not satisfy all %d equations", n_equations)
        return None

    return {name: float(value) for name, value in zip(variables, x)}


def rotate_coords(p: tuple[float], x: float, y: float, a: float) -> tuple[float]:
    """
    Rotate a coordinate `p = (_x, _y)` about a centre `(x, y)` by `a` radians counterclockwise.
    """

    return (
        x + (p[0] - x) * math.cos(a) - (p[1] - y) * math.sin(a),
        y + (p[0] - x) * math.sin(a) + (p[1] - y) * math.cos(a),
    )
