# =============================================================================
# module: covariance.py
# Purpose: Lag-robust covariance / spectral density estimation
# Key Types/Classes: CovarianceEstimator
# Key Functions: cov_moment
# Dependencies: numpy, logging, .config, .helper
# =============================================================================
"""Covariance and spectral density estimation for time-indexed observations.

The estimator does not demean its input: callers pass regression residuals
(already mean zero) or raw moment realizations (zero mean under the null).
Both the contemporaneous term and each lag term are normalized by ``T - 1``
less the lag, where ``T`` is the row count of the matrix passed in.
"""

import logging

import numpy as np

from .config import CovMethod, CovPolicy
from .helper import sym

logger = logging.getLogger(__name__)


class CovarianceEstimator:
    """
    Symmetric q×q covariance of a T×q observation matrix under a lag policy.

    Parameters
    ----------
    policy : CovPolicy, optional
        Estimation policy; defaults to time-iid.
    demean : bool, default False
        Subtract column means before estimating. Regression residuals are
        already mean zero; GMM moment series are used as they are.

    Notes
    -----
    - time_iid: ``f'f / (T-1)``.
    - iid: the time_iid matrix with off-diagonal entries set to zero.
    - newey_west: adds ``w_i (G_i + G_i')`` for ``i = 1..m`` with
      ``G_i = f[:T-i]' f[i:] / (T-1-i)`` and ``w_i = 1 - i/(m+1)``.
    - hansen_hodrick: same sum with ``w_i = 1``.

    Example
    -------
    >>> f = np.array([[1., 2.], [2., 1.], [-1., 0.], [0., -1.], [1., 1.]])
    >>> CovarianceEstimator().estimate(f)
    array([[1.75, 1.25],
           [1.25, 1.75]])
    >>> CovarianceEstimator(demean=True).estimate(f)
    array([[1.3, 0.8],
           [0.8, 1.3]])
    """

    def __init__(self, policy: CovPolicy = None, demean: bool = False):
        self.policy = policy if policy is not None else CovPolicy()
        self.demean = demean

    def estimate(self, f: np.ndarray) -> np.ndarray:
        f = np.asarray(f, dtype=float)
        if f.ndim == 1:
            f = f[:, None]
        T = f.shape[0]
        self.policy.validate(T)
        if self.demean:
            f = f - f.mean(axis=0)

        method = self.policy.method
        S = f.T @ f / (T - 1)
        if method is CovMethod.IID:
            return np.diag(np.diag(S))
        if method is CovMethod.TIME_IID:
            return sym(S)

        # Newey-West and Hansen-Hodrick differ only in the lag weight
        for i in range(1, self.policy.lag + 1):
            gamma = f[:T - i].T @ f[i:] / (T - 1 - i)
            S = S + self.policy.weight(i) * (gamma + gamma.T)
        logger.debug("%s covariance: T=%d, q=%d, lag=%d", method.value, T, f.shape[1], self.policy.lag)
        return sym(S)


def cov_moment(f: np.ndarray, policy: CovPolicy = None, demean: bool = False) -> np.ndarray:
    """Functional shortcut for ``CovarianceEstimator(policy, demean).estimate(f)``."""
    return CovarianceEstimator(policy, demean=demean).estimate(f)
