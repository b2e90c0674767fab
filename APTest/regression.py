# =============================================================================
# module: regression.py
# Purpose: First-stage multivariate time-series regression of returns on factors
# Key Types/Classes: RegressionResult, FirstStageRegressor
# Key Functions: design_matrix
# Dependencies: numpy, pandas, scipy.linalg, logging, dataclasses, .covariance
# =============================================================================

from dataclasses import dataclass, field
from typing import Any, List, Optional
import logging

import numpy as np
import pandas as pd

from .config import CovPolicy
from .covariance import CovarianceEstimator
from .exceptions import SingularDesignError
from .helper import as_panel, panel_labels, check_same_periods, spd_solve, condition_check

logger = logging.getLogger(__name__)


def design_matrix(factors: np.ndarray) -> np.ndarray:
    """Prepend a column of ones to a T×K factor panel."""
    factors = np.asarray(factors, dtype=float)
    if factors.ndim == 1:
        factors = factors[:, None]
    return np.column_stack([np.ones(factors.shape[0]), factors])


@dataclass(frozen=True)
class RegressionResult:
    """
    Output of the first-stage regressions.

    Attributes
    ----------
    alpha : np.ndarray
        (N,) intercepts.
    beta : np.ndarray
        (N, K) factor exposures.
    resid : np.ndarray
        (T, N) residuals.
    cov_resid : np.ndarray
        (N, N) residual covariance under the chosen policy.
    design : np.ndarray
        (T, K+1) design matrix ``[1 | factors]``.
    assets, factors : list of str
        Asset and factor labels.
    """
    alpha: np.ndarray
    beta: np.ndarray
    resid: np.ndarray
    cov_resid: np.ndarray
    design: np.ndarray
    assets: List[str] = field(default_factory=list)
    factors: List[str] = field(default_factory=list)

    @property
    def nobs(self) -> int:
        return self.resid.shape[0]

    @property
    def n_assets(self) -> int:
        return self.beta.shape[0]

    @property
    def n_factors(self) -> int:
        return self.beta.shape[1]

    @property
    def fitted(self) -> np.ndarray:
        """``X·[alpha; beta']``, so that ``returns = fitted + resid``."""
        return self.design @ np.vstack([self.alpha, self.beta.T])

    def to_frame(self) -> pd.DataFrame:
        """
        Alphas and betas by asset.

        Example output structure
        ------------------------
        ┌───────┬─────────┬────────┐
        │ Asset │ alpha   │ Mkt-RF │
        ├───────┼─────────┼────────┤
        │ P1    │ 0.0012  │ 1.04   │
        │ P2    │ -0.0003 │ 0.97   │
        └───────┴─────────┴────────┘
        """
        df = pd.DataFrame(self.beta, index=self.assets, columns=self.factors)
        df.insert(0, 'alpha', self.alpha)
        df.index.name = 'Asset'
        return df


class FirstStageRegressor:
    """
    Regress each asset's excess returns on an intercept and the factors.

    Parameters
    ----------
    policy : CovPolicy, optional
        Policy for the residual covariance matrix; defaults to time-iid.
    check_condition : bool, default False
        Warn with :class:`IllConditionedWarning` if ``X'X`` is badly conditioned.

    Example
    -------
    >>> res = FirstStageRegressor().fit(returns_df, factors_df)
    >>> res.to_frame()
    """

    def __init__(self, policy: CovPolicy = None, check_condition: bool = False):
        self.policy = policy if policy is not None else CovPolicy()
        self.check_condition = check_condition

    def fit(self, returns: Any, factors: Any) -> RegressionResult:
        """
        Run the regressions.

        Parameters
        ----------
        returns : array-like
            (T, N) excess returns.
        factors : array-like
            (T, K) factor realizations (excess returns).

        Raises
        ------
        DimensionMismatchError
            If the panels have different numbers of periods.
        SingularDesignError
            If ``T <= K + 1`` or ``X'X`` is singular.
        """
        Y = as_panel(returns, 'returns')
        F = as_panel(factors, 'factors')
        return self.fit_panel(
            Y, F,
            assets=panel_labels(returns, 'asset', Y.shape[1]),
            factors=panel_labels(factors, 'factor', F.shape[1]),
        )

    def fit_panel(
        self,
        Y: np.ndarray,
        F: np.ndarray,
        assets: Optional[List[str]] = None,
        factors: Optional[List[str]] = None
    ) -> RegressionResult:
        """
        Run the regressions on panels already coerced by :func:`as_panel`.

        ``assets`` and ``factors`` label the columns; they default to
        ``asset1..assetN`` and ``factor1..factorK``.
        """
        check_same_periods(Y, F)
        T, N = Y.shape
        K = F.shape[1]
        if T <= K + 1:
            raise SingularDesignError(
                f"First-stage regression needs more than K+1={K + 1} periods; got T={T}."
            )

        X = design_matrix(F)
        XtX = X.T @ X
        if np.linalg.matrix_rank(X) < K + 1:
            raise SingularDesignError("Factor panel is rank deficient (collinear factors).")
        if self.check_condition:
            condition_check(XtX, "X'X")
        try:
            B = spd_solve(XtX, X.T @ Y)
        except np.linalg.LinAlgError as exc:
            raise SingularDesignError(f"X'X is not invertible: {exc}") from exc

        resid = Y - X @ B
        cov_resid = CovarianceEstimator(self.policy, demean=True).estimate(resid)
        logger.debug("First stage fitted: T=%d, N=%d, K=%d, cov_method=%s",
                     T, N, K, self.policy.method.value)
        return RegressionResult(
            alpha=B[0].copy(),
            beta=B[1:].T.copy(),
            resid=resid,
            cov_resid=cov_resid,
            design=X,
            assets=list(assets) if assets is not None else panel_labels(Y, 'asset', N),
            factors=list(factors) if factors is not None else panel_labels(F, 'factor', K),
        )
