# =============================================================================
# module: simulate.py
# Purpose: Synthetic factor-model panels and Monte Carlo size calibration
# Key Types/Classes: None
# Key Functions: simulate_factor_panel, rejection_rate
# Dependencies: numpy, pandas, tqdm, logging, .timeseries, .crosssection
# =============================================================================
"""Simulation helpers for checking the size of the asset pricing tests.

Randomness only enters through an explicit seed or ``numpy.random.Generator``.
"""

from typing import Optional, Sequence, Tuple, Union
import logging

import numpy as np
import pandas as pd
from tqdm import tqdm

from .config import CovPolicy, CrossSectionMethod, TimeSeriesMethod
from .crosssection import CrossSectionalTester
from .timeseries import TimeSeriesTester

logger = logging.getLogger(__name__)

SeedLike = Union[None, int, np.random.Generator]


def simulate_factor_panel(
    T: int,
    beta: Sequence,
    alpha: Optional[Sequence] = None,
    factor_mean: Union[float, Sequence[float]] = 0.005,
    factor_cov: Optional[np.ndarray] = None,
    resid_cov: Optional[np.ndarray] = None,
    seed: SeedLike = None
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Draw returns from ``re_t = alpha + beta f_t + e_t`` with Gaussian factors
    and residuals.

    Parameters
    ----------
    T : int
        Number of periods.
    beta : array-like
        (N,) or (N, K) factor exposures.
    alpha : array-like, optional
        (N,) true intercepts; zero by default.
    factor_mean : float or array-like, default 0.005
        Mean of each factor.
    factor_cov : np.ndarray, optional
        (K, K) factor covariance; defaults to ``0.04**2 * I``.
    resid_cov : np.ndarray, optional
        (N, N) residual covariance; defaults to ``0.01 * I``.
    seed : int or numpy.random.Generator, optional

    Returns
    -------
    returns : pd.DataFrame
        (T, N) excess returns with columns ``P1..PN``.
    factors : pd.DataFrame
        (T, K) factors with columns ``F1..FK``.

    Example
    -------
    >>> re, f = simulate_factor_panel(200, [1.0, 1.2, 0.8], seed=7)
    >>> re.shape, f.shape
    ((200, 3), (200, 1))
    """
    rng = np.random.default_rng(seed)
    B = np.asarray(beta, dtype=float)
    if B.ndim == 1:
        B = B[:, None]
    N, K = B.shape
    a = np.zeros(N) if alpha is None else np.asarray(alpha, dtype=float)
    mu = np.broadcast_to(np.asarray(factor_mean, dtype=float), (K,))
    sf = 0.04 ** 2 * np.eye(K) if factor_cov is None else np.atleast_2d(factor_cov)
    se = 0.01 * np.eye(N) if resid_cov is None else np.atleast_2d(resid_cov)

    f = rng.multivariate_normal(mu, sf, size=T)
    e = rng.multivariate_normal(np.zeros(N), se, size=T)
    re = a + f @ B.T + e

    factors = pd.DataFrame(f, columns=[f"F{k + 1}" for k in range(K)])
    returns = pd.DataFrame(re, columns=[f"P{n + 1}" for n in range(N)])
    return returns, factors


def rejection_rate(
    T: int,
    beta: Sequence,
    n_sims: int = 500,
    level: float = 0.05,
    cov_method: str = 'time_iid',
    lag: int = 0,
    test_method: Union[str, TimeSeriesMethod, CrossSectionMethod] = 'asymptotic',
    seed: SeedLike = None,
    show_progress: bool = False,
    **panel_kwargs
) -> float:
    """
    Share of simulated panels for which the test rejects at ``level``.

    ``test_method`` selects a time-series method ('asymptotic', 'finite',
    'gmm_asymptotic', 'gmm_finite') or a cross-sectional one ('ols', 'gls',
    'shanken', 'gls_shanken', 'gmm', 'gls_gmm'). Under the default zero
    alphas the rate estimates the size of the test.

    Extra keyword arguments are passed to :func:`simulate_factor_panel`.
    """
    policy = CovPolicy.from_config(cov_method, lag)
    try:
        tester = TimeSeriesTester(policy, TimeSeriesMethod.parse(test_method))
    except ValueError:
        tester = CrossSectionalTester(policy, CrossSectionMethod.parse(test_method))

    rng = np.random.default_rng(seed)
    rejections = 0
    for _ in tqdm(range(n_sims), desc='Simulating', disable=not show_progress):
        returns, factors = simulate_factor_panel(T, beta, seed=rng, **panel_kwargs)
        if tester.test(returns, factors).test.rejects(level):
            rejections += 1
    rate = rejections / n_sims
    logger.info("Monte Carlo %s: T=%d, sims=%d, rejection rate %.3f at level %.2f",
                tester.method.value, T, n_sims, rate, level)
    return rate
