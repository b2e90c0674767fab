# =============================================================================
# module: test.py
# Purpose: Model testing framework with base and concrete asset pricing tests
# Key Types/Classes: ModelTestBase, PricingTestBase, TimeSeriesTest,
#                    CrossSectionTest, FamaMacBethTest, RandomWalkTest,
#                    PremiumSignificance
# Dependencies: pandas, abc, typing, .timeseries, .crosssection, .famamacbeth, .randomwalk
# =============================================================================
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union
import pandas as pd

from .config import CovPolicy, CovMethod, TimeSeriesMethod, CrossSectionMethod, RandomWalkMethod
from .crosssection import CrossSectionalTester, CrossSectionalResult
from .famamacbeth import FamaMacBethTester
from .randomwalk import rw_test
from .timeseries import TimeSeriesTester

# ----------------------------------------------------------------------------
# ModelTestBase class
# ----------------------------------------------------------------------------

class ModelTestBase(ABC):
    """
    Abstract base class for model testing frameworks.

    Parameters
    ----------
    alias : Optional[str]
        Custom and human-readable name for the test instance (defaults to class name).
    filter_mode : str, default 'moderate'
        How to evaluate passed results: 'strict' or 'moderate'.
    filter_on : bool, default True
        Whether the test counts towards ``TestSet.filter_pass``.
    """
    category: str = 'base'
    _allowed_modes = {'strict', 'moderate'}  # Allowed evaluation modes

    def __init__(
        self,
        alias: Optional[str] = None,
        filter_mode: str = 'moderate',
        filter_on: bool = True,
    ):
        if filter_mode not in self._allowed_modes:
            raise ValueError(f"filter_mode must be one of {self._allowed_modes}")
        self.alias = alias or ''
        self.filter_mode = filter_mode
        self.filter_on = filter_on

    @property
    def name(self) -> str:
        """
        Display name for the test: alias if provided, else class name.
        """
        return self.alias or type(self).__name__

    @property
    @abstractmethod
    def test_result(self) -> Any:
        """
        Execute the test(s) and return a print-friendly result object.
        """
        ...

    @property
    @abstractmethod
    def test_filter(self) -> bool:
        """
        Return True/False based on the chosen filter_mode and the
        content of `test_result`.
        """
        ...

# ----------------------------------------------------------------------------
# PricingTestBase class
# ----------------------------------------------------------------------------

class PricingTestBase(ModelTestBase):
    """
    Base class for hypothesis tests whose null is "the model prices the assets".

    A test passes when the null is NOT rejected.

    Parameters
    ----------
    alias : str, optional
        Display name for this test (defaults to class name).
    filter_mode : {'strict','moderate'}, default 'moderate'
        - 'strict'   → require p-value ≥ 0.10.
        - 'moderate' → require p-value ≥ 0.05.
    filter_on : bool, default True
    """
    category = 'pricing'

    thresholds = {'strict': 0.10, 'moderate': 0.05}

    def __init__(
        self,
        alias: Optional[str] = None,
        filter_mode: str = 'moderate',
        filter_on: bool = True
    ):
        super().__init__(alias=alias, filter_mode=filter_mode, filter_on=filter_on)
        self._result = None

    @property
    def filter_mode_descs(self) -> Dict[str, str]:
        return {
            'strict':   f"Require p-value ≥ {self.thresholds['strict']} (null not rejected).",
            'moderate': f"Require p-value ≥ {self.thresholds['moderate']} (null not rejected)."
        }

    @property
    def filter_mode_desc(self) -> str:
        return self.filter_mode_descs[self.filter_mode]

    @abstractmethod
    def _run(self) -> Any:
        """Run the underlying tester; the returned object exposes ``.test``."""
        ...

    @property
    def result(self) -> Any:
        """Full result object of the underlying tester, computed once."""
        if self._result is None:
            self._result = self._run()
        return self._result

    @property
    def test_result(self) -> pd.DataFrame:
        """
        One-row summary of the hypothesis test.

        Example output structure
        ------------------------
        ┌──────────────┬───────────┬──────────────┬─────────┬────────┐
        │ Test         │ Statistic │ Distribution │ P-value │ Passed │
        ├──────────────┼───────────┼──────────────┼─────────┼────────┤
        │ GRS Test     │ 1.42      │ F(25, 559)   │ 0.085   │ True   │
        └──────────────┴───────────┴──────────────┴─────────┴────────┘
        """
        res = self.result.test
        df = pd.DataFrame([{
            'Statistic':    res.statistic,
            'Distribution': str(res.distribution),
            'P-value':      res.pvalue,
            'Passed':       res.pvalue >= self.thresholds[self.filter_mode]
        }], index=[self.name])
        df.index.name = 'Test'
        return df

    @property
    def test_filter(self) -> bool:
        return bool(self.test_result['Passed'].iloc[0])


# ----------------------------------------------------------------------------
# Time-series test
# ----------------------------------------------------------------------------

class TimeSeriesTest(PricingTestBase):
    """
    Joint test that the time-series regression intercepts are zero.

    Parameters
    ----------
    returns : array-like or pd.DataFrame
        (T, N) excess returns of the test assets.
    factors : array-like or pd.DataFrame
        (T, K) factors, which must be excess returns.
    cov_method : str, default 'time_iid'
        Residual covariance policy.
    lag : int, default 0
        Lags for Newey-West / Hansen-Hodrick.
    test_method : str, default 'asymptotic'
        'asymptotic', 'finite', 'gmm_asymptotic' or 'gmm_finite'.
    """

    def __init__(
        self,
        returns: Any,
        factors: Any,
        cov_method: Union[str, CovMethod] = 'time_iid',
        lag: int = 0,
        test_method: Union[str, TimeSeriesMethod] = 'asymptotic',
        alias: Optional[str] = None,
        filter_mode: str = 'moderate',
        filter_on: bool = True
    ):
        super().__init__(alias=alias, filter_mode=filter_mode, filter_on=filter_on)
        self.returns = returns
        self.factors = factors
        self.tester = TimeSeriesTester(CovPolicy.from_config(cov_method, lag), test_method)

    def _run(self):
        return self.tester.test(self.returns, self.factors)


# ----------------------------------------------------------------------------
# Cross-sectional test
# ----------------------------------------------------------------------------

class CrossSectionTest(PricingTestBase):
    """
    Joint test that the second-stage pricing errors are zero.

    Parameters
    ----------
    returns, factors : array-like or pd.DataFrame
        (T, N) excess returns and (T, K) factors.
    cov_method : str, default 'time_iid'
    lag : int, default 0
    test_method : str, default 'shanken'
        'ols', 'gls', 'shanken', 'gls_shanken', 'gmm' or 'gls_gmm'.
    """

    def __init__(
        self,
        returns: Any,
        factors: Any,
        cov_method: Union[str, CovMethod] = 'time_iid',
        lag: int = 0,
        test_method: Union[str, CrossSectionMethod] = 'shanken',
        alias: Optional[str] = None,
        filter_mode: str = 'moderate',
        filter_on: bool = True
    ):
        super().__init__(alias=alias, filter_mode=filter_mode, filter_on=filter_on)
        self.returns = returns
        self.factors = factors
        self.tester = CrossSectionalTester(CovPolicy.from_config(cov_method, lag), test_method)

    def _run(self):
        return self.tester.test(self.returns, self.factors)


class FamaMacBethTest(PricingTestBase):
    """Fama-MacBeth test that the average pricing errors are zero."""

    def __init__(
        self,
        returns: Any,
        factors: Any,
        alias: Optional[str] = None,
        filter_mode: str = 'moderate',
        filter_on: bool = True
    ):
        super().__init__(alias=alias, filter_mode=filter_mode, filter_on=filter_on)
        self.returns = returns
        self.factors = factors

    def _run(self):
        return FamaMacBethTester().test(self.returns, self.factors)


class RandomWalkTest(PricingTestBase):
    """
    Random-walk test on a price series; passes when the random walk is not rejected.

    Parameters
    ----------
    prices : array-like
        Positive price series.
    method : str, default 'variance_ratio'
        'box_pierce', 'ljung_box' or 'variance_ratio'.
    lags : int, default 2
    """
    category = 'assumption'

    def __init__(
        self,
        prices: Any,
        method: Union[str, RandomWalkMethod] = 'variance_ratio',
        lags: int = 2,
        alias: Optional[str] = None,
        filter_mode: str = 'moderate',
        filter_on: bool = False
    ):
        super().__init__(alias=alias, filter_mode=filter_mode, filter_on=filter_on)
        self.prices = prices
        self.method = RandomWalkMethod.parse(method)
        self.lags = lags

    def _run(self):
        return rw_test(self.prices, self.method, self.lags)


# ----------------------------------------------------------------------------
# PremiumSignificance class
# ----------------------------------------------------------------------------

class PremiumSignificance(ModelTestBase):
    """
    Report risk premia with standard errors from a cross-sectional test.

    Parameters
    ----------
    source : CrossSectionTest or CrossSectionalResult
        Cross-sectional test (run on demand) or a finished result.
    alias : str, optional
    filter_mode : {'strict','moderate'}, default 'moderate'
        Not used: always passes. Exists to satisfy ModelTestBase interface.
    """
    category = 'measure'

    def __init__(
        self,
        source: Union[CrossSectionTest, CrossSectionalResult],
        alias: Optional[str] = None,
        filter_mode: str = 'moderate',
        filter_on: bool = False
    ):
        super().__init__(alias=alias, filter_mode=filter_mode, filter_on=filter_on)
        self.source = source

    @property
    def test_result(self) -> pd.DataFrame:
        """
        Risk premia table.

        Example output structure
        ------------------------
        ┌────────┬────────┬───────────┬────────┬─────────┐
        │ Factor │ Lambda │ Std Error │ t-stat │ P-value │
        ├────────┼────────┼───────────┼────────┼─────────┤
        │ Mkt-RF │ 0.0061 │ 0.0021    │ 2.90   │ 0.0037  │
        │ SMB    │ 0.0012 │ 0.0015    │ 0.80   │ 0.4237  │
        └────────┴────────┴───────────┴────────┴─────────┘
        """
        res = self.source.result if isinstance(self.source, CrossSectionTest) else self.source
        return res.premia_frame()

    @property
    def test_filter(self) -> bool:
        """
        Always pass: this test is for reporting measures, not for filtering.
        """
        return True
