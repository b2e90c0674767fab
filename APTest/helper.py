# =============================================================================
# module: helper.py
# Purpose: Input coercion and small linear-algebra helpers shared across testers
# Key Functions: as_panel, panel_labels, check_same_periods, spd_solve,
#                condition_check, wald_pinv
# Dependencies: numpy, pandas, scipy.linalg, warnings, .exceptions
# =============================================================================

from typing import Any, List
import warnings

import numpy as np
import pandas as pd
from scipy import linalg

from .exceptions import DimensionMismatchError, IllConditionedWarning

# Condition number above which the optional diagnostic warns
CONDITION_THRESHOLD = 1e10


def as_panel(data: Any, name: str) -> np.ndarray:
    """
    Return ``data`` as a 2-D float array with periods in rows.

    A 1-D input (Series or vector) becomes a single column.

    Raises
    ------
    DimensionMismatchError
        If ``data`` has more than two dimensions.
    ValueError
        If ``data`` is empty or contains NaN / infinite values.
    """
    arr = np.asarray(data, dtype=float)
    if arr.ndim == 1:
        arr = arr[:, None]
    if arr.ndim != 2:
        raise DimensionMismatchError(f"{name} must be 1-D or 2-D, got {arr.ndim} dimensions.")
    if arr.size == 0:
        raise ValueError(f"{name} is empty.")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} contains NaN or infinite values.")
    return arr


def panel_labels(data: Any, prefix: str, n: int) -> List[str]:
    """Column labels of a DataFrame/Series, else ``prefix1..prefixn``."""
    if isinstance(data, pd.DataFrame):
        return [str(c) for c in data.columns]
    if isinstance(data, pd.Series) and data.name is not None:
        return [str(data.name)]
    return [f"{prefix}{i + 1}" for i in range(n)]


def check_same_periods(returns: np.ndarray, factors: np.ndarray) -> None:
    if returns.shape[0] != factors.shape[0]:
        raise DimensionMismatchError(
            f"returns have {returns.shape[0]} periods but factors have {factors.shape[0]}."
        )


def spd_solve(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Solve ``a x = b`` for symmetric positive definite ``a`` via Cholesky.

    Raises
    ------
    numpy.linalg.LinAlgError
        If ``a`` is not positive definite.
    """
    c, lower = linalg.cho_factor(a, check_finite=False)
    return linalg.cho_solve((c, lower), b, check_finite=False)


def condition_check(a: np.ndarray, label: str) -> float:
    """Warn with :class:`IllConditionedWarning` if ``cond(a)`` is large."""
    cond = float(np.linalg.cond(a))
    if cond > CONDITION_THRESHOLD:
        warnings.warn(
            f"{label} is ill-conditioned (condition number {cond:.3g}).",
            IllConditionedWarning,
            stacklevel=3
        )
    return cond


def wald_pinv(theta: np.ndarray, cov: np.ndarray) -> float:
    """
    Wald quadratic form ``theta' pinv(cov) theta`` for a symmetric ``cov``.

    Eigenvalues below ``1/CONDITION_THRESHOLD`` of the largest are treated as
    zero, so the rounding noise in the null space of a rank-deficient
    pricing-error covariance is discarded.
    """
    theta = np.asarray(theta, dtype=float).ravel()
    return float(theta @ linalg.pinvh(cov, rtol=1.0 / CONDITION_THRESHOLD) @ theta)


def sym(a: np.ndarray) -> np.ndarray:
    return 0.5 * (a + a.T)


def factor_moments(factors: np.ndarray):
    """Sample mean and covariance (ddof 1) of a T×K factor panel."""
    ef = factors.mean(axis=0)
    cov_f = np.atleast_2d(np.cov(factors, rowvar=False, ddof=1))
    return ef, cov_f
