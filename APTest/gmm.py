# =============================================================================
# module: gmm.py
# Purpose: GMM moment conditions, Jacobian, weighting matrix and sandwich
#          covariance for the time-series and cross-sectional asset pricing tests
# Key Types/Classes: GMMResult, GMMTester
# Key Functions: time_series_moments, cross_section_moments, jacobian,
#                weighting_matrix
# Dependencies: numpy, scipy.linalg, logging, dataclasses, .covariance
# =============================================================================
"""GMM machinery shared by the time-series and cross-sectional testers.

Parameters are ordered intercept-first and asset-major within each
regressor: index ``j*N + n`` is the coefficient of regressor ``j`` (0 is the
intercept) for asset ``n``. Risk premia, when present, follow as the last
``K`` parameters. Moments use the same ordering, with the ``N`` pricing-error
moments appended after the ``N(K+1)`` time-series moments.
"""

from dataclasses import dataclass
from typing import Optional
import logging

import numpy as np
from scipy import linalg

from .config import CovPolicy
from .covariance import CovarianceEstimator
from .exceptions import SingularMomentSystemError, SingularCovarianceError
from .helper import spd_solve, sym, condition_check, wald_pinv

logger = logging.getLogger(__name__)


def time_series_moments(h: np.ndarray, resid: np.ndarray) -> np.ndarray:
    """
    Per-period time-series moments ``kron(h[t], resid[t])``.

    Parameters
    ----------
    h : np.ndarray
        (T, K+1) design matrix with leading ones.
    resid : np.ndarray
        (T, N) first-stage residuals.

    Returns
    -------
    np.ndarray
        (T, N(K+1)) with column ``j*N + n`` equal to ``h[:, j] * resid[:, n]``.
    """
    T = h.shape[0]
    return (h[:, :, None] * resid[:, None, :]).reshape(T, -1)


def cross_section_moments(returns: np.ndarray, beta: np.ndarray, lam: np.ndarray) -> np.ndarray:
    """Per-period pricing errors ``re[t] - beta·lam``, shape (T, N)."""
    return returns - (beta @ lam)[None, :]


def jacobian(
    h: np.ndarray,
    n_assets: int,
    beta: Optional[np.ndarray] = None,
    lam: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Jacobian of the sample moments with respect to the parameters.

    Without ``beta``/``lam`` this is the square time-series block
    ``-kron(h'h/T, I_N)``. With them, the pricing-error rows
    ``[kron([0, lam'], I_N), -beta]`` and the ``K`` risk-premium columns are
    added.
    """
    T, k1 = h.shape
    eye = np.eye(n_assets)
    d_ts = -np.kron(h.T @ h / T, eye)
    if beta is None:
        return d_ts

    K = beta.shape[1]
    n_ts = n_assets * k1
    D = np.zeros((n_ts + n_assets, n_ts + K))
    D[:n_ts, :n_ts] = d_ts
    D[n_ts:, :n_ts] = np.kron(np.concatenate([[0.0], lam])[None, :], eye)
    D[n_ts:, n_ts:] = -beta
    return D


def weighting_matrix(beta: np.ndarray, n_ts: int, cov_resid: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Moment-selection matrix ``A``.

    Identity on the time-series moments; ``beta'`` (GMM) or
    ``beta' cov_resid^-1`` (GLS-GMM, when ``cov_resid`` is given) on the
    pricing-error moments.

    Raises
    ------
    SingularCovarianceError
        If ``cov_resid`` is given but not positive definite.
    """
    N, K = beta.shape
    A = np.zeros((n_ts + K, n_ts + N))
    A[:n_ts, :n_ts] = np.eye(n_ts)
    if cov_resid is None:
        A[n_ts:, n_ts:] = beta.T
    else:
        try:
            A[n_ts:, n_ts:] = spd_solve(cov_resid, beta).T
        except np.linalg.LinAlgError as exc:
            raise SingularCovarianceError(
                f"Residual covariance is not positive definite: {exc}"
            ) from exc
    return A


@dataclass(frozen=True)
class GMMResult:
    """
    GMM building blocks and derived covariances.

    Attributes
    ----------
    moments : np.ndarray
        (T, q) moment series.
    jacobian : np.ndarray
        (q, p) Jacobian ``D``.
    weighting : np.ndarray or None
        (p, q) weighting matrix ``A``; None for the exactly identified
        time-series system.
    spectral_density : np.ndarray
        (q, q) spectral density of the moments.
    param_cov : np.ndarray
        (p, p) asymptotic covariance of the parameters.
    varmom : np.ndarray or None
        (q, q) asymptotic covariance of the sample moments; None when exactly
        identified.
    n_assets : int
    """
    moments: np.ndarray
    jacobian: np.ndarray
    weighting: Optional[np.ndarray]
    spectral_density: np.ndarray
    param_cov: np.ndarray
    varmom: Optional[np.ndarray]
    n_assets: int

    @property
    def n_time_series(self) -> int:
        """Number of time-series moments, ``N(K+1)``."""
        if self.weighting is None:
            return self.jacobian.shape[0]
        return self.jacobian.shape[0] - self.n_assets

    @property
    def alpha_cov(self) -> np.ndarray:
        """(N, N) covariance block of the first-stage intercepts."""
        N = self.n_assets
        return self.param_cov[:N, :N]

    @property
    def pricing_error_cov(self) -> np.ndarray:
        """(N, N) block of ``varmom`` for the pricing-error moments."""
        if self.varmom is None:
            raise ValueError("No pricing-error moments in an exactly identified system.")
        n_ts = self.n_time_series
        return self.varmom[n_ts:, n_ts:]

    @property
    def lambda_cov(self) -> np.ndarray:
        """(K, K) covariance block of the risk premia."""
        if self.weighting is None:
            raise ValueError("No risk-premium parameters in an exactly identified system.")
        p_ts = self.n_time_series
        return self.param_cov[p_ts:, p_ts:]


class GMMTester:
    """
    Build and evaluate the GMM system for a first-stage regression.

    Parameters
    ----------
    policy : CovPolicy, optional
        Policy for the spectral density of the moments; defaults to time-iid.
    check_condition : bool, default False
        Warn with :class:`IllConditionedWarning` if ``A·D`` is badly conditioned.
    """

    def __init__(self, policy: CovPolicy = None, check_condition: bool = False):
        self.policy = policy if policy is not None else CovPolicy()
        self.check_condition = check_condition

    def spectral_density(self, f: np.ndarray) -> np.ndarray:
        return CovarianceEstimator(self.policy).estimate(f)

    def time_series(self, design: np.ndarray, resid: np.ndarray) -> GMMResult:
        """
        Exactly identified system of the time-series regressions.

        ``param_cov = D^-1 S D^-T / T`` with ``S`` the spectral density of the
        moments.

        Raises
        ------
        SingularMomentSystemError
            If ``D`` is singular.
        """
        T, N = resid.shape
        f = time_series_moments(design, resid)
        D = jacobian(design, N)
        S = self.spectral_density(f)
        if self.check_condition:
            condition_check(D, 'GMM Jacobian')
        try:
            dinv_s = linalg.solve(D, S)
            param_cov = linalg.solve(D, dinv_s.T).T / T
        except np.linalg.LinAlgError as exc:
            raise SingularMomentSystemError(f"GMM Jacobian is singular: {exc}") from exc
        logger.debug("Time-series GMM: T=%d, moments=%d", T, f.shape[1])
        return GMMResult(
            moments=f,
            jacobian=D,
            weighting=None,
            spectral_density=S,
            param_cov=sym(param_cov),
            varmom=None,
            n_assets=N,
        )

    def cross_section(
        self,
        design: np.ndarray,
        resid: np.ndarray,
        returns: np.ndarray,
        beta: np.ndarray,
        lam: np.ndarray,
        cov_resid: Optional[np.ndarray] = None
    ) -> GMMResult:
        """
        Over-identified system adding the pricing-error moments.

        Parameters
        ----------
        design, resid : np.ndarray
            First-stage design matrix and residuals.
        returns : np.ndarray
            (T, N) excess returns.
        beta : np.ndarray
            (N, K) first-stage betas.
        lam : np.ndarray
            (K,) risk premia.
        cov_resid : np.ndarray, optional
            Residual covariance. When given, the pricing-error moments are
            weighted by ``beta' cov_resid^-1`` (GLS-GMM) instead of ``beta'``.

        Raises
        ------
        SingularMomentSystemError
            If ``A·D`` is singular.
        """
        T, N = resid.shape
        n_ts = N * design.shape[1]
        f = np.hstack([
            time_series_moments(design, resid),
            cross_section_moments(returns, beta, lam)
        ])
        D = jacobian(design, N, beta=beta, lam=lam)
        A = weighting_matrix(beta, n_ts, cov_resid)
        AD = A @ D
        if self.check_condition:
            condition_check(AD, 'GMM A·D')
        try:
            # (A D)^-1 A without forming the inverse
            ad_a = linalg.solve(AD, A)
        except np.linalg.LinAlgError as exc:
            raise SingularMomentSystemError(f"GMM A·D is singular: {exc}") from exc

        S = self.spectral_density(f)
        premom = np.eye(D.shape[0]) - D @ ad_a
        varmom = premom @ S @ premom.T / T
        param_cov = ad_a @ S @ ad_a.T / T
        logger.debug("Cross-sectional GMM: T=%d, moments=%d, params=%d, gls=%s",
                     T, f.shape[1], D.shape[1], cov_resid is not None)
        return GMMResult(
            moments=f,
            jacobian=D,
            weighting=A,
            spectral_density=S,
            param_cov=sym(param_cov),
            varmom=sym(varmom),
            n_assets=N,
        )

    @staticmethod
    def wald(alpha: np.ndarray, block: np.ndarray) -> float:
        """``alpha' pinv(block) alpha``."""
        return wald_pinv(alpha, block)
