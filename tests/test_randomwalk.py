import unittest
import os
import sys

import numpy as np

# Ensure the repository root is in sys.path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from APTest.config import RandomWalkMethod
from APTest.distribution import ChiSquare, Normal
from APTest.exceptions import InvalidConfigurationError
from APTest.randomwalk import autocorrelations, log_increments, rw_test


def _prices(increments: np.ndarray) -> np.ndarray:
    return 100.0 * np.exp(np.concatenate([[0.0], np.cumsum(increments)]))


class TestRandomWalk(unittest.TestCase):
    def setUp(self):
        rng = np.random.default_rng(17)
        self.walk = _prices(0.01 * rng.normal(size=500))

        # AR(1) increments with strong positive autocorrelation
        eps = 0.01 * rng.normal(size=1000)
        r = np.zeros_like(eps)
        for t in range(1, eps.size):
            r[t] = 0.5 * r[t - 1] + eps[t]
        self.trending = _prices(r)

    def test_log_increments(self):
        r = log_increments([1.0, np.e, np.e ** 3])
        np.testing.assert_allclose(r, [1.0, 2.0])

    def test_autocorrelations_are_uncentered(self):
        r = log_increments(self.walk)
        rho = autocorrelations(r, 3)
        expected = [np.sum(r[:-k] * r[k:]) / np.sum(r * r) for k in (1, 2, 3)]
        np.testing.assert_allclose(rho, expected)

    def test_alternating_increments(self):
        # increments +1, -1, ... give rho_1 = -5/6 and rho_2 = 4/6
        prices = _prices(np.array([1.0, -1.0, 1.0, -1.0, 1.0, -1.0]))
        self.assertAlmostEqual(rw_test(prices, 'bp', 2).statistic, 41.0 / 6.0)
        self.assertAlmostEqual(rw_test(prices, 'lb', 2).statistic, 41.0 / 3.0)
        self.assertAlmostEqual(rw_test(prices, 'vr', 2).statistic, -5.0 * np.sqrt(6.0) / 6.0)

    def test_constant_drift_is_autocorrelated(self):
        # constant increments give rho_k = (T - k) / T
        prices = _prices(np.full(20, 0.01))
        rho = np.array([19.0, 18.0, 17.0, 16.0]) / 20.0
        bp = rw_test(prices, 'box_pierce', 4)
        self.assertAlmostEqual(bp.statistic, 20.0 * np.sum(rho ** 2))
        vr = rw_test(prices, 'variance_ratio', 4)
        self.assertAlmostEqual(vr.statistic, np.sqrt(80.0) * 2.75 / np.sqrt(6.0))
        self.assertLess(vr.pvalue, 1e-6)

    def test_all_methods_return_valid_pvalues(self):
        for method in RandomWalkMethod:
            with self.subTest(method=method):
                res = rw_test(self.walk, method, lags=5)
                self.assertEqual(res.method, method)
                self.assertEqual(res.lags, 5)
                self.assertTrue(0.0 <= res.pvalue <= 1.0)

    def test_reference_distributions(self):
        self.assertEqual(rw_test(self.walk, 'bp', 4).test.distribution, ChiSquare(4))
        self.assertEqual(rw_test(self.walk, 'LB', 4).test.distribution, ChiSquare(4))
        self.assertEqual(rw_test(self.walk, 'vr', 4).test.distribution, Normal())

    def test_ljung_box_exceeds_box_pierce(self):
        bp = rw_test(self.walk, 'box_pierce', 6)
        lb = rw_test(self.walk, 'ljung_box', 6)
        self.assertGreater(lb.statistic, bp.statistic)

    def test_rejects_autocorrelated_increments(self):
        for method in RandomWalkMethod:
            with self.subTest(method=method):
                self.assertLess(rw_test(self.trending, method, lags=2).pvalue, 0.01)

    def test_invalid_lags(self):
        with self.assertRaises(InvalidConfigurationError):
            rw_test(self.walk, 'ljung_box', 0)
        with self.assertRaises(InvalidConfigurationError):
            rw_test(self.walk, 'variance_ratio', 1)
        with self.assertRaises(InvalidConfigurationError):
            rw_test(self.walk[:5], 'box_pierce', 3)

    def test_unknown_method(self):
        with self.assertRaises(InvalidConfigurationError):
            rw_test(self.walk, 'runs_test')

    def test_non_positive_prices(self):
        prices = self.walk.copy()
        prices[10] = -1.0
        with self.assertRaises(ValueError):
            rw_test(prices, 'box_pierce', 2)


if __name__ == '__main__':
    unittest.main()
