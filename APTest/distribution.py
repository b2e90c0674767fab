# =============================================================================
# module: distribution.py
# Purpose: Reference distributions and the test result value type
# Key Types/Classes: ReferenceDistribution, ChiSquare, FDist, Normal, TestResult
# Key Functions: None
# Dependencies: dataclasses, numpy, scipy.stats
# =============================================================================

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np
from scipy import stats


class ReferenceDistribution(ABC):
    """Null distribution of a test statistic."""

    @abstractmethod
    def cdf(self, x: float) -> float:
        ...

    @abstractmethod
    def sf(self, x: float) -> float:
        """Upper tail probability ``1 - cdf(x)``."""
        ...

    def pvalue(self, statistic: float) -> float:
        """Upper-tail p-value of ``statistic``, clipped to [0, 1]."""
        return float(np.clip(self.sf(statistic), 0.0, 1.0))


@dataclass(frozen=True)
class ChiSquare(ReferenceDistribution):
    df: int

    def cdf(self, x: float) -> float:
        return float(stats.chi2.cdf(x, self.df))

    def sf(self, x: float) -> float:
        return float(stats.chi2.sf(x, self.df))

    def __str__(self) -> str:
        return f"Chi2({self.df})"


@dataclass(frozen=True)
class FDist(ReferenceDistribution):
    df1: int
    df2: int

    def cdf(self, x: float) -> float:
        return float(stats.f.cdf(x, self.df1, self.df2))

    def sf(self, x: float) -> float:
        return float(stats.f.sf(x, self.df1, self.df2))

    def __str__(self) -> str:
        return f"F({self.df1}, {self.df2})"


@dataclass(frozen=True)
class Normal(ReferenceDistribution):
    """Standard normal."""

    def cdf(self, x: float) -> float:
        return float(stats.norm.cdf(x))

    def sf(self, x: float) -> float:
        return float(stats.norm.sf(x))

    def __str__(self) -> str:
        return "N(0, 1)"


@dataclass(frozen=True)
class TestResult:
    """
    Outcome of a single hypothesis test.

    Parameters
    ----------
    statistic : float
        Value of the test statistic.
    distribution : ReferenceDistribution
        Distribution of the statistic under the null.

    Attributes
    ----------
    pvalue : float
        Upper-tail probability of ``statistic`` under ``distribution``.

    Examples
    --------
    >>> res = TestResult(3.84, ChiSquare(1))
    >>> round(res.pvalue, 3)
    0.05
    """
    __test__ = False  # not a pytest test class

    statistic: float
    distribution: ReferenceDistribution
    pvalue: float = field(init=False)

    def __post_init__(self):
        statistic = float(self.statistic)
        object.__setattr__(self, 'statistic', statistic)
        object.__setattr__(self, 'pvalue', self.distribution.pvalue(statistic))

    def rejects(self, level: float = 0.05) -> bool:
        """True if the null is rejected at significance ``level``."""
        return self.pvalue < level
