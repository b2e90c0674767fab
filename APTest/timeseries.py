# =============================================================================
# module: timeseries.py
# Purpose: Time-series asset pricing tests on first-stage intercepts
# Key Types/Classes: TimeSeriesResult, TimeSeriesTester
# Key Functions: ap_test_time
# Dependencies: numpy, logging, dataclasses, .regression, .gmm, .distribution
# =============================================================================
"""Time-series tests of a linear factor model.

When the factors are excess returns, the model implies that the intercepts of
the time-series regressions of test-asset excess returns on the factors are
jointly zero.
"""

from dataclasses import dataclass
from typing import Any, Union
import logging

import numpy as np

from .config import CovPolicy, CovMethod, TimeSeriesMethod
from .distribution import ChiSquare, FDist, TestResult
from .exceptions import InsufficientDegreesOfFreedomError, SingularCovarianceError
from .gmm import GMMTester
from .helper import as_panel, factor_moments, panel_labels, spd_solve
from .regression import FirstStageRegressor, RegressionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeSeriesResult:
    """
    Outcome of a time-series test.

    Attributes
    ----------
    first_stage : RegressionResult
        Alphas, betas, residuals and residual covariance.
    test : TestResult
        Joint test that the alphas are zero.
    method : TimeSeriesMethod
    """
    first_stage: RegressionResult
    test: TestResult
    method: TimeSeriesMethod

    @property
    def alpha(self) -> np.ndarray:
        return self.first_stage.alpha

    @property
    def beta(self) -> np.ndarray:
        return self.first_stage.beta

    @property
    def resid(self) -> np.ndarray:
        return self.first_stage.resid

    @property
    def cov_resid(self) -> np.ndarray:
        return self.first_stage.cov_resid

    @property
    def statistic(self) -> float:
        return self.test.statistic

    @property
    def pvalue(self) -> float:
        return self.test.pvalue


class TimeSeriesTester:
    """
    Joint test of the time-series intercepts.

    Parameters
    ----------
    policy : CovPolicy, optional
        Residual and moment covariance policy; defaults to time-iid.
    method : TimeSeriesMethod or str, default 'asymptotic'
        - 'asymptotic': ``T/q · alpha' S^-1 alpha`` ~ Chi2(N)
        - 'finite': Gibbons-Ross-Shanken ``(T-N-K)/N/q · alpha' S^-1 alpha`` ~ F(N, T-N-K)
        - 'gmm_asymptotic': ``alpha' V_alpha^-1 alpha`` ~ Chi2(N) with ``V_alpha``
          from the GMM sandwich of the time-series moments
        - 'gmm_finite': the GMM statistic rescaled to the F(N, T-N-K) scale
        where ``q = 1 + Ef' cov_f^-1 Ef``.
    check_condition : bool, default False
        Forwarded to the first-stage and GMM solvers.
    """

    def __init__(
        self,
        policy: CovPolicy = None,
        method: Union[str, TimeSeriesMethod] = TimeSeriesMethod.ASYMPTOTIC,
        check_condition: bool = False
    ):
        self.policy = policy if policy is not None else CovPolicy()
        self.method = TimeSeriesMethod.parse(method)
        self.check_condition = check_condition

    def test(self, returns: Any, factors: Any) -> TimeSeriesResult:
        """
        Run the test.

        Raises
        ------
        InsufficientDegreesOfFreedomError
            For finite-sample variants when ``T <= N + K``; for GMM variants
            when ``T <= N(K+1)``.
        SingularCovarianceError
            If the residual covariance is not positive definite.
        """
        Y = as_panel(returns, 'returns')
        F = as_panel(factors, 'factors')
        T, N = Y.shape
        K = F.shape[1]
        finite = self.method in (TimeSeriesMethod.FINITE, TimeSeriesMethod.GMM_FINITE)
        gmm = self.method in (TimeSeriesMethod.GMM_ASYMPTOTIC, TimeSeriesMethod.GMM_FINITE)
        if finite and T <= N + K:
            raise InsufficientDegreesOfFreedomError(
                f"Finite-sample test needs T > N+K = {N + K}; got T={T}."
            )
        if gmm and T <= N * (K + 1):
            raise InsufficientDegreesOfFreedomError(
                f"GMM time-series test needs T > N(K+1) = {N * (K + 1)}; got T={T}."
            )

        first = FirstStageRegressor(self.policy, self.check_condition).fit_panel(
            Y, F,
            assets=panel_labels(returns, 'asset', N),
            factors=panel_labels(factors, 'factor', K),
        )
        ef, cov_f = factor_moments(F)
        q = 1.0 + float(ef @ spd_solve(cov_f, ef))
        alpha = first.alpha

        if gmm:
            sandwich = GMMTester(self.policy, self.check_condition).time_series(first.design, first.resid)
            try:
                wald = float(alpha @ spd_solve(sandwich.alpha_cov, alpha))
            except np.linalg.LinAlgError as exc:
                raise SingularCovarianceError(
                    f"GMM covariance of the intercepts is not positive definite: {exc}"
                ) from exc
        else:
            try:
                wald = T / q * float(alpha @ spd_solve(first.cov_resid, alpha))
            except np.linalg.LinAlgError as exc:
                raise SingularCovarianceError(
                    f"Residual covariance is not positive definite: {exc}"
                ) from exc

        # Both asymptotic statistics are on the Chi2 scale T/q; the finite
        # variants rescale to (T-N-K)/(N q).
        if finite:
            result = TestResult(wald * (T - N - K) / (N * T), FDist(N, T - N - K))
        else:
            result = TestResult(wald, ChiSquare(N))
        logger.debug("Time-series %s test: T=%d, N=%d, K=%d, stat=%.4f, p=%.4f",
                     self.method.value, T, N, K, result.statistic, result.pvalue)
        return TimeSeriesResult(first_stage=first, test=result, method=self.method)


def ap_test_time(
    re: Any,
    factors: Any,
    cov_method: Union[str, CovMethod] = 'time_iid',
    lag: int = 0,
    test_method: Union[str, TimeSeriesMethod] = 'asymptotic'
) -> TimeSeriesResult:
    """
    Time-series asset pricing test from the string configuration surface.

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
    test_method : str, default 'asymptotic'
        'asymptotic', 'finite' ('GRS'), 'gmm_asymptotic' or 'gmm_finite'.
    """
    policy = CovPolicy.from_config(cov_method, lag)
    return TimeSeriesTester(policy, test_method).test(re, factors)
