# =============================================================================
# module: randomwalk.py
# Purpose: Random-walk tests on a price series
# Key Types/Classes: RandomWalkResult
# Key Functions: rw_test, log_increments, autocorrelations
# Dependencies: numpy, statsmodels, logging, dataclasses
# =============================================================================
"""Tests of the random-walk hypothesis on log-price increments.

- Box-Pierce (1970) and Ljung-Box (1978): sum of squared autocorrelations of
  the increments up to lag ``m``, Chi2(m) under uncorrelated increments (RW3).
- Variance ratio: the variance of ``m``-period increments is ``m`` times the
  one-period variance under iid increments (RW1).

Autocorrelations are uncentered: ``rho_k = sum r_t r_{t+k} / sum r_t^2``.
"""

from dataclasses import dataclass
from typing import Any, Tuple, Union
import logging

import numpy as np
from statsmodels.tsa.stattools import acovf

from .config import RandomWalkMethod
from .distribution import ChiSquare, Normal, TestResult
from .exceptions import InvalidConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RandomWalkResult:
    method: RandomWalkMethod
    lags: int
    test: TestResult

    @property
    def statistic(self) -> float:
        return self.test.statistic

    @property
    def pvalue(self) -> float:
        return self.test.pvalue


def log_increments(prices: Any) -> np.ndarray:
    """First differences of log prices."""
    p = np.asarray(prices, dtype=float).ravel()
    if p.size < 2:
        raise ValueError("At least two prices are required.")
    if not np.all(np.isfinite(p)) or np.any(p <= 0):
        raise ValueError("Prices must be positive and finite.")
    return np.diff(np.log(p))


def autocorrelations(r: np.ndarray, lags: int) -> np.ndarray:
    """
    Uncentered autocorrelations ``rho_1..rho_lags`` of ``r``.

    Example
    -------
    >>> autocorrelations(np.array([1., 2., 1., 2.]), 1)
    array([0.6])
    """
    gamma = acovf(r, adjusted=False, demean=False, fft=False, nlag=lags)
    return gamma[1:] / gamma[0]


def _q_statistic(prices: Any, lags: int) -> Tuple[int, float]:
    r = log_increments(prices)
    rho = autocorrelations(r, lags)
    return r.size, float(rho @ rho)


def _box_pierce(prices: Any, lags: int) -> TestResult:
    T, q = _q_statistic(prices, lags)
    return TestResult(T * q, ChiSquare(lags))


def _ljung_box(prices: Any, lags: int) -> TestResult:
    T, q = _q_statistic(prices, lags)
    return TestResult(T * (T + 2) / (T - lags) * q, ChiSquare(lags))


def _variance_ratio(prices: Any, lags: int) -> TestResult:
    if lags < 2:
        raise InvalidConfigurationError("Variance ratio test needs lags >= 2.")
    r = log_increments(prices)
    T = r.size
    k = np.arange(1, lags)
    vr = 1.0 + 2.0 * float(np.sum((1.0 - k / lags) * autocorrelations(r, lags - 1)))
    stat = np.sqrt(T * lags) * (vr - 1.0) / np.sqrt(2.0 * (lags - 1))
    return TestResult(stat, Normal())


_rw_test_dict = {
    RandomWalkMethod.BOX_PIERCE: _box_pierce,
    RandomWalkMethod.LJUNG_BOX: _ljung_box,
    RandomWalkMethod.VARIANCE_RATIO: _variance_ratio,
}


def rw_test(
    prices: Any,
    method: Union[str, RandomWalkMethod] = RandomWalkMethod.VARIANCE_RATIO,
    lags: int = 2
) -> RandomWalkResult:
    """
    Test the random-walk hypothesis on a price series.

    Parameters
    ----------
    prices : array-like
        (T+1,) positive prices.
    method : str, default 'variance_ratio'
        'box_pierce' ('bp'), 'ljung_box' ('lb') or 'variance_ratio' ('vr').
    lags : int, default 2
        Autocorrelation lags (Box-Pierce, Ljung-Box) or holding period
        (variance ratio).

    Returns
    -------
    RandomWalkResult
        Upper-tail test: Chi2(lags) for the Q statistics, N(0, 1) for the
        variance ratio (rejecting for positive autocorrelation).

    Raises
    ------
    InvalidConfigurationError
        If ``lags`` is not a positive integer or too large for the sample.
    """
    method = RandomWalkMethod.parse(method)
    if isinstance(lags, bool) or not isinstance(lags, int) or lags < 1:
        raise InvalidConfigurationError(f"lags must be a positive integer, got {lags!r}.")
    n_increments = np.asarray(prices).size - 1
    if n_increments < lags + 2:
        raise InvalidConfigurationError(
            f"lags={lags} needs at least {lags + 2} price increments; got {n_increments}."
        )
    result = _rw_test_dict[method](prices, lags)
    logger.debug("Random-walk %s test: lags=%d, stat=%.4f", method.value, lags, result.statistic)
    return RandomWalkResult(method=method, lags=lags, test=result)
