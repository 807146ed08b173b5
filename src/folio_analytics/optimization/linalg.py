"""
Exact-decimal linear algebra for the mean-variance optimizers.

The solvers work on ``Decimal`` matrices (lists of rows) so that weights keep
full decimal precision. numpy is only used for diagnostics that do not feed
back into the numbers: positive semi-definiteness of a correlation matrix and
the conditioning of a covariance matrix.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal

import numpy as np

from folio_analytics.common.decimal_utils import ZERO
from folio_analytics.common.enums import ErrorReason
from folio_analytics.common.errors import AnalyticsCalculationError

logger = logging.getLogger(__name__)

Matrix = list[list[Decimal]]
Vector = list[Decimal]

PIVOT_EPSILON = Decimal("1e-24")
STEP_EPSILON = Decimal("1e-20")
MULTIPLIER_EPSILON = Decimal("1e-18")
PSD_TOLERANCE = 1e-10
MAX_CONDITION_NUMBER = 1e12


# ---------------------------------------------------------------------------
# Basic operations
# ---------------------------------------------------------------------------


def dot(a: Sequence[Decimal], b: Sequence[Decimal]) -> Decimal:
    return sum((x * y for x, y in zip(a, b)), ZERO)


def mat_vec(matrix: Sequence[Sequence[Decimal]], vector: Sequence[Decimal]) -> Vector:
    return [dot(row, vector) for row in matrix]


def quadratic_form(matrix: Sequence[Sequence[Decimal]], vector: Sequence[Decimal]) -> Decimal:
    return dot(vector, mat_vec(matrix, vector))


def covariance_matrix(volatilities: Sequence[Decimal], correlations: Sequence[Sequence[Decimal]]) -> Matrix:
    """Σ_ij = ρ_ij · σ_i · σ_j"""
    n = len(volatilities)
    return [[correlations[i][j] * volatilities[i] * volatilities[j] for j in range(n)] for i in range(n)]


def submatrix(matrix: Sequence[Sequence[Decimal]], indices: Sequence[int]) -> Matrix:
    return [[matrix[i][j] for j in indices] for i in indices]


def solve(matrix: Sequence[Sequence[Decimal]], rhs: Sequence[Decimal]) -> Vector:
    """Solve ``matrix @ x = rhs`` by Gaussian elimination with partial pivoting."""
    n = len(rhs)
    aug = [list(matrix[i]) + [rhs[i]] for i in range(n)]

    for col in range(n):
        pivot_row = max(range(col, n), key=lambda r: abs(aug[r][col]))
        if abs(aug[pivot_row][col]) <= PIVOT_EPSILON:
            raise AnalyticsCalculationError(
                ErrorReason.SINGULAR_COVARIANCE_MATRIX,
                "linear system is singular",
            )
        if pivot_row != col:
            aug[col], aug[pivot_row] = aug[pivot_row], aug[col]
        pivot = aug[col][col]
        for r in range(col + 1, n):
            factor = aug[r][col] / pivot
            if factor:
                row_r, row_c = aug[r], aug[col]
                for c in range(col, n + 1):
                    row_r[c] -= factor * row_c[c]

    x = [ZERO] * n
    for i in range(n - 1, -1, -1):
        acc = aug[i][n] - sum((aug[i][j] * x[j] for j in range(i + 1, n)), ZERO)
        x[i] = acc / aug[i][i]
    return x


# ---------------------------------------------------------------------------
# numpy diagnostics
# ---------------------------------------------------------------------------


def is_positive_semidefinite(matrix: Sequence[Sequence[Decimal]]) -> bool:
    values = np.linalg.eigvalsh(np.array(matrix, dtype=float))
    return bool(values.min() >= -PSD_TOLERANCE)


def is_well_conditioned(matrix: Sequence[Sequence[Decimal]]) -> bool:
    condition = np.linalg.cond(np.array(matrix, dtype=float))
    return bool(np.isfinite(condition) and condition <= MAX_CONDITION_NUMBER)


# ---------------------------------------------------------------------------
# Long-only quadratic programming
# ---------------------------------------------------------------------------


def _independent_rows(rows: list[Vector]) -> list[int]:
    """Indices of a linearly independent subset of (at most two) rows."""
    kept: list[int] = []
    for idx, row in enumerate(rows):
        if all(v == ZERO for v in row):
            continue
        dependent = False
        for k in kept:
            base = rows[k]
            pivot = next(i for i, v in enumerate(base) if v != ZERO)
            ratio = row[pivot] / base[pivot]
            if all(abs(row[i] - ratio * base[i]) <= MULTIPLIER_EPSILON for i in range(len(row))):
                dependent = True
                break
        if not dependent:
            kept.append(idx)
    return kept


def _rank_on(equalities: Sequence[Sequence[Decimal]], indices: Sequence[int]) -> int:
    return len(_independent_rows([[row[i] for i in indices] for row in equalities]))


def _initial_working_set(equalities: Sequence[Sequence[Decimal]], start: Sequence[Decimal]) -> set[int]:
    """Zero-weight indices to pin, keeping the equalities full rank on the free ones."""
    free = [i for i, value in enumerate(start) if value != ZERO]
    working = {i for i, value in enumerate(start) if value == ZERO}
    target_rank = _rank_on(equalities, range(len(start)))
    for j in sorted(working):
        current = _rank_on(equalities, free)
        if current >= target_rank:
            break
        if _rank_on(equalities, free + [j]) > current:
            free.append(j)
            working.discard(j)
    return working


def solve_long_only_qp(
    covariance: Sequence[Sequence[Decimal]],
    equalities: Sequence[Sequence[Decimal]],
    start: Sequence[Decimal],
    *,
    max_iterations: int | None = None,
) -> Vector:
    """
    Minimize ``wᵀΣw`` subject to ``A w = b`` and ``w ≥ 0``.

    Primal active-set method. ``start`` must be feasible; ``b`` is implied by
    it. The working set holds the indices pinned at zero. Each iteration
    solves the equality-constrained subproblem over the free indices via its
    KKT system, then either takes a (possibly blocked) step or releases the
    pinned index with the most negative multiplier.
    """
    n = len(start)
    w = list(start)
    working = _initial_working_set(equalities, w)
    limit = max_iterations or (10 * n + 20)

    for _ in range(limit):
        free = [i for i in range(n) if i not in working]
        rows = [[row[i] for i in free] for row in equalities]
        active_rows = _independent_rows(rows)
        m = len(active_rows)
        k = len(free)

        gradient = mat_vec(covariance, w)
        kkt: Matrix = []
        for a, i in enumerate(free):
            line = [covariance[i][j] for j in free]
            line.extend(-rows[r][a] for r in active_rows)
            kkt.append(line)
        for r in active_rows:
            kkt.append(list(rows[r]) + [ZERO] * m)
        rhs = [-gradient[i] for i in free] + [ZERO] * m

        solution = solve(kkt, rhs)
        step = solution[:k]
        multipliers = solution[k:]

        if all(abs(p) <= STEP_EPSILON for p in step):
            worst_index: int | None = None
            worst_value = -MULTIPLIER_EPSILON
            for j in working:
                mu = gradient[j] - sum(
                    (multipliers[pos] * equalities[r][j] for pos, r in enumerate(active_rows)),
                    ZERO,
                )
                if mu < worst_value:
                    worst_index, worst_value = j, mu
            if worst_index is None:
                return w
            working.discard(worst_index)
            continue

        alpha = Decimal(1)
        blocking: int | None = None
        for pos, i in enumerate(free):
            if step[pos] < ZERO:
                ratio = -w[i] / step[pos]
                if ratio < alpha:
                    alpha, blocking = ratio, i
        for pos, i in enumerate(free):
            w[i] += alpha * step[pos]
        if blocking is not None:
            w[blocking] = ZERO
            working.add(blocking)

    logger.debug("Active-set solver hit its iteration limit (%d)", limit)
    raise AnalyticsCalculationError(
        ErrorReason.OPTIMIZATION_NOT_CONVERGED,
        f"active-set solver did not converge in {limit} iterations",
    )
