# =============================================================================
# Package: APTest
# Purpose: Expose covariance estimation, first-stage regression, time-series,
#          cross-sectional, GMM, Fama-MacBeth and random-walk tests in a
#          unified API.
# =============================================================================

"""
APTest API

This package provides:
  - CovPolicy and the method enums for configuring covariance estimation and tests.
  - CovarianceEstimator for iid, time-iid, Newey-West and Hansen-Hodrick covariances.
  - FirstStageRegressor for the time-series regressions of returns on factors.
  - TimeSeriesTester, CrossSectionalTester, FamaMacBethTester and GMMTester.
  - rw_test for Box-Pierce, Ljung-Box and variance-ratio random-walk tests.
  - ModelTestBase subclasses and TestSet for filtering and reporting.
  - simulate_factor_panel and rejection_rate for Monte Carlo checks.

Importing * from this package will provide all top-level modules and classes.
"""

from .exceptions import *
from .config import *
from .distribution import *
from .covariance import *
from .regression import *
from .gmm import *
from .crosssection import *
from .timeseries import *
from .famamacbeth import *
from .randomwalk import *
from .test import *
from .testset import *
from .simulate import *
