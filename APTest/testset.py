# =============================================================================
# module: testset.py
# Purpose: Test set aggregation and the standard asset pricing test battery.
# Key Types/Classes: TestSet
# Key Functions: ap_testset_func
# Dependencies: pandas, numpy, logging, typing, .test module classes
#
# BATTERY REQUIREMENTS:
# =====================
# ap_testset_func only adds tests the panel can support:
# 1. Finite-sample time-series tests need T > N + K
# 2. GMM time-series tests need T > N(K+1)
# 3. Cross-sectional and Fama-MacBeth tests need N > K
# 4. GMM cross-sectional tests need T > N(K+1) + K
# =============================================================================

from typing import Any, Dict, List, Tuple, Union
import logging

import numpy as np
import pandas as pd

from .config import CovMethod
from .test import (
    ModelTestBase, PricingTestBase, TimeSeriesTest, CrossSectionTest,
    FamaMacBethTest, PremiumSignificance
)

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------------
# TestSet class
# ----------------------------------------------------------------------------

class TestSet:
    """
    Ordered collection of asset pricing tests keyed by display alias.

    Parameters
    ----------
    tests : dict
        Mapping from alias to ModelTestBase instance. The alias overrides the
        test's own name and the mapping order is kept.
    """
    __test__ = False  # not a pytest test class

    def __init__(self, tests: Dict[str, ModelTestBase]):
        for alias, test_obj in tests.items():
            test_obj.alias = alias
        self.tests: List[ModelTestBase] = list(tests.values())

    @property
    def active_tests(self) -> List[ModelTestBase]:
        """Tests that count towards :meth:`filter_pass`."""
        return [t for t in self.tests if t.filter_on]

    @property
    def all_test_results(self) -> Dict[str, Any]:
        """``test_result`` of every test, active or not, keyed by name."""
        return {t.name: t.test_result for t in self.tests}

    @property
    def test_info(self) -> Dict[str, Dict[str, str]]:
        """Filter mode and its description for each test, keyed by name."""
        return {
            t.name: {'filter_mode': t.filter_mode, 'desc': getattr(t, 'filter_mode_desc', '')}
            for t in self.tests
        }

    def filter_pass(self, fast_filter: bool = False) -> Tuple[bool, List[str]]:
        """
        Evaluate the active tests.

        Parameters
        ----------
        fast_filter : bool, default False
            Stop at the first failing test.

        Returns
        -------
        passed : bool
            True if every active test passes.
        failed_tests : list of str
            Names of the active tests that failed, in set order.
        """
        failed = []
        for t in self.active_tests:
            if t.test_filter:
                continue
            failed.append(t.name)
            if fast_filter:
                break
        return not failed, failed

    def summary(self) -> pd.DataFrame:
        """
        Stack the one-row results of all hypothesis tests in the set.

        Example output structure
        ------------------------
        ┌─────────────────┬───────────┬──────────────┬─────────┬────────┐
        │ Test            │ Statistic │ Distribution │ P-value │ Passed │
        ├─────────────────┼───────────┼──────────────┼─────────┼────────┤
        │ TS Asymptotic   │ 28.1      │ Chi2(25)     │ 0.30    │ True   │
        │ CS GLS Shanken  │ 31.7      │ Chi2(22)     │ 0.08    │ True   │
        └─────────────────┴───────────┴──────────────┴─────────┴────────┘
        """
        frames = [t.test_result for t in self.tests if isinstance(t, PricingTestBase)]
        if not frames:
            return pd.DataFrame(columns=['Statistic', 'Distribution', 'P-value', 'Passed'])
        return pd.concat(frames)


def ap_testset_func(
    returns: Any,
    factors: Any,
    cov_method: Union[str, CovMethod] = 'time_iid',
    lag: int = 0,
    filter_mode: str = 'moderate'
) -> Dict[str, ModelTestBase]:
    """
    Pre-defined battery of asset pricing tests for one return/factor panel:
    - Time-series intercept tests (asymptotic, GRS finite, GMM asymptotic, GMM finite)
    - Cross-sectional pricing-error tests (OLS, GLS, Shanken, GLS Shanken, GMM, GLS GMM)
    - Fama-MacBeth test
    - Risk premia of the Shanken cross-sectional regression (measure only)

    Only the Shanken-corrected GLS cross-sectional and the GRS time-series
    tests count towards filtering; the rest are reported.
    """
    T = np.shape(returns)[0]
    N = np.shape(returns)[1] if np.ndim(returns) > 1 else 1
    K = np.shape(factors)[1] if np.ndim(factors) > 1 else 1
    common = dict(cov_method=cov_method, lag=lag, filter_mode=filter_mode)

    tests: Dict[str, ModelTestBase] = {}

    # --- Time-series tests ---
    tests['TS Asymptotic'] = TimeSeriesTest(returns, factors, test_method='asymptotic',
                                            filter_on=False, **common)
    if T > N + K:
        tests['GRS Finite'] = TimeSeriesTest(returns, factors, test_method='finite', **common)
    else:
        logger.info("Skipping finite-sample time-series tests: T=%d <= N+K=%d", T, N + K)
    if T > N * (K + 1):
        tests['TS GMM Asymptotic'] = TimeSeriesTest(returns, factors, test_method='gmm_asymptotic',
                                                    filter_on=False, **common)
        if T > N + K:
            tests['TS GMM Finite'] = TimeSeriesTest(returns, factors, test_method='gmm_finite',
                                                    filter_on=False, **common)
    else:
        logger.info("Skipping GMM time-series tests: T=%d <= N(K+1)=%d", T, N * (K + 1))

    # --- Cross-sectional tests ---
    if N <= K:
        logger.info("Skipping cross-sectional tests: N=%d <= K=%d", N, K)
        return tests

    labels = {
        'ols': 'CS OLS',
        'gls': 'CS GLS',
        'shanken': 'CS Shanken',
        'gls_shanken': 'CS GLS Shanken',
    }
    for method, label in labels.items():
        tests[label] = CrossSectionTest(returns, factors, test_method=method,
                                        filter_on=(method == 'gls_shanken'), **common)
    if T > N * (K + 1) + K:
        tests['CS GMM'] = CrossSectionTest(returns, factors, test_method='gmm',
                                           filter_on=False, **common)
        tests['CS GLS GMM'] = CrossSectionTest(returns, factors, test_method='gls_gmm',
                                               filter_on=False, **common)
    else:
        logger.info("Skipping GMM cross-sectional tests: T=%d <= N(K+1)+K=%d", T, N * (K + 1) + K)

    tests['Fama-MacBeth'] = FamaMacBethTest(returns, factors, filter_mode=filter_mode, filter_on=False)
    tests['Risk Premia'] = PremiumSignificance(tests['CS Shanken'])

    return tests
