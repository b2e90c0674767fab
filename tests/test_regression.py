import unittest
import os
import sys

import numpy as np
import pandas as pd
import statsmodels.api as sm

# Ensure the repository root is in sys.path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from APTest.config import CovPolicy
from APTest.exceptions import DimensionMismatchError, SingularDesignError, IllConditionedWarning
from APTest.regression import FirstStageRegressor, design_matrix


class TestFirstStageRegressor(unittest.TestCase):
    def setUp(self):
        rng = np.random.default_rng(42)
        self.T, self.N, self.K = 120, 4, 2
        self.F = rng.normal(0.005, 0.04, size=(self.T, self.K))
        B = rng.normal(1.0, 0.3, size=(self.N, self.K))
        self.Y = 0.001 + self.F @ B.T + rng.normal(0, 0.02, size=(self.T, self.N))

    def test_shapes(self):
        res = FirstStageRegressor().fit(self.Y, self.F)
        self.assertEqual(res.alpha.shape, (self.N,))
        self.assertEqual(res.beta.shape, (self.N, self.K))
        self.assertEqual(res.resid.shape, (self.T, self.N))
        self.assertEqual(res.cov_resid.shape, (self.N, self.N))
        self.assertEqual(res.design.shape, (self.T, self.K + 1))

    def test_reconstruction(self):
        res = FirstStageRegressor().fit(self.Y, self.F)
        X = design_matrix(self.F)
        rebuilt = X @ np.vstack([res.alpha, res.beta.T]) + res.resid
        np.testing.assert_allclose(rebuilt, self.Y, atol=1e-12)
        np.testing.assert_allclose(res.fitted + res.resid, self.Y, atol=1e-12)

    def test_matches_statsmodels_ols(self):
        res = FirstStageRegressor().fit(self.Y, self.F)
        exog = sm.add_constant(self.F)
        for n in range(self.N):
            params = sm.OLS(self.Y[:, n], exog).fit().params
            np.testing.assert_allclose(params[0], res.alpha[n], rtol=1e-8, atol=1e-12)
            np.testing.assert_allclose(params[1:], res.beta[n], rtol=1e-8)

    def test_residual_covariance_policy(self):
        res = FirstStageRegressor(CovPolicy('iid')).fit(self.Y, self.F)
        self.assertTrue(np.all(res.cov_resid[~np.eye(self.N, dtype=bool)] == 0.0))
        np.testing.assert_allclose(
            np.diag(res.cov_resid), np.var(res.resid, axis=0, ddof=1), rtol=1e-10
        )

    def test_labels_from_dataframes(self):
        returns = pd.DataFrame(self.Y, columns=['P1', 'P2', 'P3', 'P4'])
        factors = pd.DataFrame(self.F, columns=['Mkt-RF', 'SMB'])
        frame = FirstStageRegressor().fit(returns, factors).to_frame()
        self.assertEqual(list(frame.columns), ['alpha', 'Mkt-RF', 'SMB'])
        self.assertEqual(list(frame.index), ['P1', 'P2', 'P3', 'P4'])
        self.assertEqual(frame.index.name, 'Asset')

    def test_fit_panel_labels(self):
        res = FirstStageRegressor().fit_panel(self.Y, self.F, factors=['Mkt-RF', 'SMB'])
        self.assertEqual(res.assets, ['asset1', 'asset2', 'asset3', 'asset4'])
        self.assertEqual(res.factors, ['Mkt-RF', 'SMB'])
        np.testing.assert_allclose(res.beta, FirstStageRegressor().fit(self.Y, self.F).beta)

    def test_single_factor_vector(self):
        res = FirstStageRegressor().fit(self.Y, self.F[:, 0])
        self.assertEqual(res.beta.shape, (self.N, 1))

    def test_mismatched_periods(self):
        with self.assertRaises(DimensionMismatchError):
            FirstStageRegressor().fit(self.Y[:-1], self.F)

    def test_collinear_factors(self):
        F = np.column_stack([self.F[:, 0], 2.0 * self.F[:, 0]])
        with self.assertRaises(SingularDesignError):
            FirstStageRegressor().fit(self.Y, F)

    def test_too_few_periods(self):
        with self.assertRaises(SingularDesignError):
            FirstStageRegressor().fit(self.Y[:3], self.F[:3])

    def test_non_finite_input(self):
        Y = self.Y.copy()
        Y[5, 1] = np.nan
        with self.assertRaises(ValueError):
            FirstStageRegressor().fit(Y, self.F)

    def test_condition_warning(self):
        rng = np.random.default_rng(1)
        f1 = rng.normal(size=self.T)
        F = np.column_stack([f1, f1 + 1e-6 * rng.normal(size=self.T)])
        with self.assertWarns(IllConditionedWarning):
            FirstStageRegressor(check_condition=True).fit(self.Y, F)


if __name__ == '__main__':
    unittest.main()
