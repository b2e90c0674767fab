# =============================================================================
# module: crosssection.py
# Purpose: Two-pass cross-sectional asset pricing tests
# Key Types/Classes: SecondStage, CrossSectionalResult, CrossSectionalTester
# Key Functions: shanken_factor, ols_second_stage, gls_second_stage, ap_test_cross
# Dependencies: numpy, pandas, scipy.stats, logging, dataclasses, .regression, .gmm
# =============================================================================
"""Cross-sectional tests of a linear factor model.

First stage: time-series regressions of excess returns on the factors give
the betas. Second stage: a cross-sectional regression (without intercept) of
average excess returns on the betas gives the risk premia ``lam``; the
residuals ``alpha`` are the pricing errors, jointly zero under the model.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union
import logging

import numpy as np
import pandas as pd
from scipy import stats

from .config import CovPolicy, CovMethod, CrossSectionMethod
from .distribution import ChiSquare, TestResult
from .exceptions import InsufficientDegreesOfFreedomError, SingularCovarianceError
from .gmm import GMMTester
from .helper import as_panel, factor_moments, panel_labels, spd_solve, sym, wald_pinv
from .regression import FirstStageRegressor, RegressionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SecondStage:
    """Point estimates and covariances of one second-stage estimator."""
    lam: np.ndarray
    alpha: np.ndarray
    cov_alpha: np.ndarray
    cov_lambda: np.ndarray
    statistic: float


def shanken_factor(lam: np.ndarray, cov_f: np.ndarray) -> float:
    """Shanken (1992) errors-in-variables inflation ``1 + lam' cov_f^-1 lam``."""
    lam = np.atleast_1d(np.asarray(lam, dtype=float))
    return float(1.0 + lam @ spd_solve(np.atleast_2d(cov_f), lam))


def _gls_solve(cov_resid: np.ndarray, b: np.ndarray) -> np.ndarray:
    try:
        return spd_solve(cov_resid, b)
    except np.linalg.LinAlgError as exc:
        raise SingularCovarianceError(
            f"Residual covariance is not positive definite: {exc}"
        ) from exc


def ols_second_stage(
    beta: np.ndarray,
    ere: np.ndarray,
    cov_resid: np.ndarray,
    nobs: int,
    cov_f: Optional[np.ndarray] = None
) -> SecondStage:
    """
    OLS cross-sectional regression of ``ere`` on ``beta``.

    With ``cov_f`` given, the pricing-error and risk-premium covariances carry
    the Shanken correction.

    Notes
    -----
    ``cov_alpha = Q cov_resid Q / T`` with ``Q = I - beta (beta'beta)^-1 beta'``
    has rank ``N - K``; the Wald statistic uses its pseudo-inverse.
    """
    N = beta.shape[0]
    btb = beta.T @ beta
    proj = spd_solve(btb, beta.T)  # (beta'beta)^-1 beta'
    lam = proj @ ere
    alpha = ere - beta @ lam

    Q = np.eye(N) - beta @ proj
    cov_alpha = sym(Q @ cov_resid @ Q) / nobs
    cov_lambda = sym(proj @ cov_resid @ proj.T) / nobs
    if cov_f is not None:
        c = shanken_factor(lam, cov_f)
        cov_alpha = cov_alpha * c
        cov_lambda = cov_lambda * c + np.atleast_2d(cov_f) / nobs

    return SecondStage(lam, alpha, cov_alpha, cov_lambda, wald_pinv(alpha, cov_alpha))


def gls_second_stage(
    beta: np.ndarray,
    ere: np.ndarray,
    cov_resid: np.ndarray,
    nobs: int,
    cov_f: Optional[np.ndarray] = None
) -> SecondStage:
    """
    GLS cross-sectional regression weighting by ``cov_resid^-1``.

    The statistic is ``T alpha' cov_resid^-1 alpha``, multiplied by the Shanken
    factor when ``cov_f`` is given.

    Raises
    ------
    SingularCovarianceError
        If ``cov_resid`` is not positive definite.
    """
    sinv_beta = _gls_solve(cov_resid, beta)
    btsb = beta.T @ sinv_beta
    lam = spd_solve(btsb, sinv_beta.T @ ere)
    alpha = ere - beta @ lam

    quad = float(alpha @ _gls_solve(cov_resid, alpha))
    cov_alpha = sym(cov_resid - beta @ spd_solve(btsb, beta.T)) / nobs
    cov_lambda = sym(spd_solve(btsb, np.eye(btsb.shape[0]))) / nobs
    statistic = nobs * quad
    if cov_f is not None:
        c = shanken_factor(lam, cov_f)
        cov_alpha = cov_alpha * c
        cov_lambda = cov_lambda * c + np.atleast_2d(cov_f) / nobs
        statistic = statistic * c

    return SecondStage(lam, alpha, cov_alpha, cov_lambda, statistic)


@dataclass(frozen=True)
class CrossSectionalResult:
    """
    Outcome of a cross-sectional test.

    Attributes
    ----------
    Ere : np.ndarray
        (N,) average excess returns.
    lam : np.ndarray
        (K,) risk premia.
    alpha : np.ndarray
        (N,) pricing errors.
    cov_alpha : np.ndarray
        (N, N) covariance of the pricing errors.
    cov_lambda : np.ndarray
        (K, K) covariance of the risk premia.
    test : TestResult
        Wald test that the pricing errors are jointly zero.
    method : CrossSectionMethod
    first_stage : RegressionResult
    """
    Ere: np.ndarray
    lam: np.ndarray
    alpha: np.ndarray
    cov_alpha: np.ndarray
    cov_lambda: np.ndarray
    test: TestResult
    method: CrossSectionMethod
    first_stage: RegressionResult

    @property
    def statistic(self) -> float:
        return self.test.statistic

    @property
    def pvalue(self) -> float:
        return self.test.pvalue

    @property
    def lambda_se(self) -> np.ndarray:
        return np.sqrt(np.clip(np.diag(self.cov_lambda), 0.0, None))

    def premia_frame(self) -> pd.DataFrame:
        """
        Risk premia with standard errors and normal-approximation p-values.

        Example output structure
        ------------------------
        ┌────────┬────────┬───────────┬────────┬─────────┐
        │ Factor │ Lambda │ Std Error │ t-stat │ P-value │
        ├────────┼────────┼───────────┼────────┼─────────┤
        │ Mkt-RF │ 0.0061 │ 0.0021    │ 2.90   │ 0.0037  │
        └────────┴────────┴───────────┴────────┴─────────┘
        """
        se = self.lambda_se
        with np.errstate(divide='ignore', invalid='ignore'):
            tstat = np.where(se > 0, self.lam / se, np.nan)
        df = pd.DataFrame({
            'Lambda': self.lam,
            'Std Error': se,
            't-stat': tstat,
            'P-value': 2.0 * stats.norm.sf(np.abs(tstat)),
        }, index=self.first_stage.factors)
        df.index.name = 'Factor'
        return df

    def pricing_errors(self) -> pd.DataFrame:
        """Average return, fitted return and pricing error by asset."""
        df = pd.DataFrame({
            'E[Re]': self.Ere,
            'Fitted': self.Ere - self.alpha,
            'Alpha': self.alpha,
        }, index=self.first_stage.assets)
        df.index.name = 'Asset'
        return df


class CrossSectionalTester:
    """
    Two-pass cross-sectional test of a linear factor model.

    Parameters
    ----------
    policy : CovPolicy, optional
        Residual and moment covariance policy; defaults to time-iid.
    method : CrossSectionMethod or str, default 'shanken'
        Second-stage estimator: 'ols', 'gls', 'shanken', 'gls_shanken',
        'gmm' or 'gls_gmm'.
    check_condition : bool, default False
        Forwarded to the first-stage and GMM solvers.

    Example
    -------
    >>> tester = CrossSectionalTester(CovPolicy('newey_west', 3), 'gls_shanken')
    >>> res = tester.test(returns_df, factors_df)
    >>> res.pvalue, res.premia_frame()
    """

    def __init__(
        self,
        policy: CovPolicy = None,
        method: Union[str, CrossSectionMethod] = CrossSectionMethod.SHANKEN,
        check_condition: bool = False
    ):
        self.policy = policy if policy is not None else CovPolicy()
        self.method = CrossSectionMethod.parse(method)
        self.check_condition = check_condition
        self._dispatch: Dict[CrossSectionMethod, Callable[..., SecondStage]] = {
            CrossSectionMethod.OLS: self._ols,
            CrossSectionMethod.GLS: self._gls,
            CrossSectionMethod.SHANKEN: self._shanken,
            CrossSectionMethod.GLS_SHANKEN: self._gls_shanken,
            CrossSectionMethod.GMM: self._gmm,
            CrossSectionMethod.GLS_GMM: self._gls_gmm,
        }

    def test(self, returns: Any, factors: Any) -> CrossSectionalResult:
        """
        Run the test.

        Raises
        ------
        InsufficientDegreesOfFreedomError
            If ``N <= K``, or for GMM if ``T <= N(K+1) + K``.
        """
        Y = as_panel(returns, 'returns')
        F = as_panel(factors, 'factors')
        first = FirstStageRegressor(self.policy, self.check_condition).fit_panel(
            Y, F,
            assets=panel_labels(returns, 'asset', Y.shape[1]),
            factors=panel_labels(factors, 'factor', F.shape[1]),
        )
        T, N = Y.shape
        K = F.shape[1]
        if N <= K:
            raise InsufficientDegreesOfFreedomError(
                f"Cross-sectional test needs more assets than factors; got N={N}, K={K}."
            )
        if self.method.is_gmm and T <= N * (K + 1) + K:
            raise InsufficientDegreesOfFreedomError(
                f"GMM cross-sectional test needs T > N(K+1)+K = {N * (K + 1) + K}; got T={T}."
            )

        ere = Y.mean(axis=0)
        _, cov_f = factor_moments(F)
        stage = self._dispatch[self.method](first, Y, ere, cov_f)
        result = TestResult(stage.statistic, ChiSquare(N - K))
        logger.debug("Cross-sectional %s test: stat=%.4f, p=%.4f",
                     self.method.value, result.statistic, result.pvalue)
        return CrossSectionalResult(
            Ere=ere,
            lam=stage.lam,
            alpha=stage.alpha,
            cov_alpha=stage.cov_alpha,
            cov_lambda=stage.cov_lambda,
            test=result,
            method=self.method,
            first_stage=first,
        )

    # --- second-stage estimators ---------------------------------------------

    def _ols(self, first, Y, ere, cov_f):
        return ols_second_stage(first.beta, ere, first.cov_resid, first.nobs)

    def _gls(self, first, Y, ere, cov_f):
        return gls_second_stage(first.beta, ere, first.cov_resid, first.nobs)

    def _shanken(self, first, Y, ere, cov_f):
        return ols_second_stage(first.beta, ere, first.cov_resid, first.nobs, cov_f=cov_f)

    def _gls_shanken(self, first, Y, ere, cov_f):
        return gls_second_stage(first.beta, ere, first.cov_resid, first.nobs, cov_f=cov_f)

    def _gmm(self, first, Y, ere, cov_f):
        point = ols_second_stage(first.beta, ere, first.cov_resid, first.nobs)
        return self._gmm_stage(first, Y, point, cov_resid=None)

    def _gls_gmm(self, first, Y, ere, cov_f):
        # same OLS point estimates as GMM; only the weighting matrix changes
        point = ols_second_stage(first.beta, ere, first.cov_resid, first.nobs)
        return self._gmm_stage(first, Y, point, cov_resid=first.cov_resid)

    def _gmm_stage(self, first, Y, point, cov_resid):
        gmm = GMMTester(self.policy, self.check_condition).cross_section(
            first.design, first.resid, Y, first.beta, point.lam, cov_resid=cov_resid
        )
        cov_alpha = gmm.pricing_error_cov
        return SecondStage(
            lam=point.lam,
            alpha=point.alpha,
            cov_alpha=cov_alpha,
            cov_lambda=gmm.lambda_cov,
            statistic=GMMTester.wald(point.alpha, cov_alpha),
        )


def ap_test_cross(
    re: Any,
    factors: Any,
    cov_method: Union[str, CovMethod] = 'time_iid',
    lag: int = 0,
    test_method: Union[str, CrossSectionMethod] = 'shanken'
) -> CrossSectionalResult:
    """
    Cross-sectional asset pricing test from the string configuration surface.

    Parameters
    ----------
    re : array-like
        (T, N) excess returns.
    factors : array-like
        (T, K) factors; must be excess returns.
    cov_method : str, default 'time_iid'
        'iid', 'time_iid', 'newey_west' ('NW') or 'hansen_hodrick' ('HH').
    lag : int, default 0
        Lags for Newey-West / Hansen-Hodrick.
    test_method : str, default 'shanken'
        'ols', 'gls', 'shanken', 'gls_shanken', 'gmm' or 'gls_gmm'.
    """
    policy = CovPolicy.from_config(cov_method, lag)
    return CrossSectionalTester(policy, test_method).test(re, factors)
