# =============================================================================
# module: famamacbeth.py
# Purpose: Fama-MacBeth cross-sectional test
# Key Types/Classes: FamaMacBethResult, FamaMacBethTester
# Key Functions: ap_test_fm
# Dependencies: numpy, pandas, logging, dataclasses, .regression
# =============================================================================
"""Fama-MacBeth (1973) procedure.

Betas come from the full-sample first stage; a cross-sectional regression is
then run every period and the per-period premia and pricing errors are
averaged. The standard errors ignore that the betas are estimated.
"""

from dataclasses import dataclass
from typing import Any
import logging

import numpy as np
import pandas as pd

from .config import CovPolicy
from .distribution import ChiSquare, TestResult
from .exceptions import InsufficientDegreesOfFreedomError
from .helper import as_panel, panel_labels, spd_solve, wald_pinv
from .regression import FirstStageRegressor, RegressionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FamaMacBethResult:
    """
    Attributes
    ----------
    lam_t : np.ndarray
        (T, K) per-period risk premia.
    alpha_t : np.ndarray
        (T, N) per-period pricing errors.
    lam : np.ndarray
        (K,) average risk premia.
    lam_se : np.ndarray
        (K,) Fama-MacBeth standard errors of ``lam``.
    alpha : np.ndarray
        (N,) average pricing errors.
    cov_alpha : np.ndarray
        (N, N) covariance of ``alpha``.
    test : TestResult
    first_stage : RegressionResult
    """
    lam_t: np.ndarray
    alpha_t: np.ndarray
    lam: np.ndarray
    lam_se: np.ndarray
    alpha: np.ndarray
    cov_alpha: np.ndarray
    test: TestResult
    first_stage: RegressionResult

    @property
    def statistic(self) -> float:
        return self.test.statistic

    @property
    def pvalue(self) -> float:
        return self.test.pvalue

    def premia_frame(self) -> pd.DataFrame:
        df = pd.DataFrame({
            'Lambda': self.lam,
            'Std Error': self.lam_se,
            't-stat': self.lam / self.lam_se,
        }, index=self.first_stage.factors)
        df.index.name = 'Factor'
        return df


class FamaMacBethTester:
    """
    Fama-MacBeth test that the average pricing errors are jointly zero.

    The first stage uses the time-iid residual covariance; the per-period
    regressions need no covariance policy.
    """

    def test(self, returns: Any, factors: Any) -> FamaMacBethResult:
        """
        Raises
        ------
        InsufficientDegreesOfFreedomError
            If ``N <= K``.
        """
        Y = as_panel(returns, 'returns')
        F = as_panel(factors, 'factors')
        first = FirstStageRegressor(CovPolicy()).fit_panel(
            Y, F,
            assets=panel_labels(returns, 'asset', Y.shape[1]),
            factors=panel_labels(factors, 'factor', F.shape[1]),
        )
        T, N = Y.shape
        K = first.n_factors
        if N <= K:
            raise InsufficientDegreesOfFreedomError(
                f"Fama-MacBeth test needs more assets than factors; got N={N}, K={K}."
            )

        beta = first.beta
        # all T cross-sections share beta, so solve them in one call
        lam_t = spd_solve(beta.T @ beta, beta.T @ Y.T).T
        alpha_t = Y - lam_t @ beta.T

        lam = lam_t.mean(axis=0)
        lam_se = lam_t.std(axis=0, ddof=1) / np.sqrt(T)
        alpha = alpha_t.mean(axis=0)
        dev = alpha_t - alpha
        cov_alpha = dev.T @ dev / T ** 2

        result = TestResult(wald_pinv(alpha, cov_alpha), ChiSquare(N - K))
        logger.debug("Fama-MacBeth test: T=%d, N=%d, K=%d, stat=%.4f", T, N, K, result.statistic)
        return FamaMacBethResult(
            lam_t=lam_t,
            alpha_t=alpha_t,
            lam=lam,
            lam_se=lam_se,
            alpha=alpha,
            cov_alpha=cov_alpha,
            test=result,
            first_stage=first,
        )


def ap_test_fm(re: Any, factors: Any) -> FamaMacBethResult:
    """Fama-MacBeth test of ``re`` (T×N excess returns) on ``factors`` (T×K)."""
    return FamaMacBethTester().test(re, factors)
