import unittest
import os
import sys

import numpy as np

# Ensure the repository root is in sys.path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from APTest.config import CovPolicy, CovMethod
from APTest.covariance import CovarianceEstimator, cov_moment
from APTest.exceptions import InvalidConfigurationError


class TestCovarianceEstimator(unittest.TestCase):
    def setUp(self):
        self.f_small = np.array([[1., 2.], [2., 1.], [-1., 0.], [0., -1.], [1., 1.]])
        rng = np.random.default_rng(0)
        self.f = rng.normal(size=(60, 4))

    def test_time_iid_hand_computed(self):
        # f'f = [[7, 5], [5, 7]], divided by T-1 = 4
        expected = np.array([[1.75, 1.25], [1.25, 1.75]])
        result = cov_moment(self.f_small, CovPolicy(CovMethod.TIME_IID))
        np.testing.assert_allclose(result, expected)

    def test_demeaned_equals_sample_covariance(self):
        # column means are 0.6; deviations give [[5.2, 3.2], [3.2, 5.2]] / 4
        expected = np.array([[1.3, 0.8], [0.8, 1.3]])
        result = CovarianceEstimator(CovPolicy(), demean=True).estimate(self.f_small)
        np.testing.assert_allclose(result, expected)
        np.testing.assert_allclose(result, np.cov(self.f_small, rowvar=False))

    def test_zero_lag_matches_time_iid(self):
        base = cov_moment(self.f, CovPolicy('time_iid'))
        for method in ('newey_west', 'hansen_hodrick'):
            with self.subTest(method=method):
                np.testing.assert_array_equal(cov_moment(self.f, CovPolicy(method, 0)), base)

    def test_iid_zeroes_off_diagonal(self):
        base = cov_moment(self.f, CovPolicy('time_iid'))
        iid = cov_moment(self.f, CovPolicy('iid'))
        off_diag = iid[~np.eye(4, dtype=bool)]
        self.assertTrue(np.all(off_diag == 0.0))
        np.testing.assert_array_equal(np.diag(iid), np.diag(base))

    def test_newey_west_bartlett_weights(self):
        T, m = self.f.shape[0], 2
        expected = self.f.T @ self.f / (T - 1)
        for i in range(1, m + 1):
            w = 1 - i / (m + 1)
            g = self.f[:-i].T @ self.f[i:] / (T - 1 - i)
            expected = expected + w * (g + g.T)
        result = cov_moment(self.f, CovPolicy('NW', m))
        np.testing.assert_allclose(result, expected, rtol=1e-12)

    def test_hansen_hodrick_unit_weights(self):
        T = self.f.shape[0]
        g = self.f[:-1].T @ self.f[1:]
        expected = self.f.T @ self.f / (T - 1) + (g + g.T) / (T - 2)
        result = cov_moment(self.f, CovPolicy('HH', 1))
        np.testing.assert_allclose(result, expected, rtol=1e-12)

    def test_result_is_exactly_symmetric(self):
        for policy in (CovPolicy('NW', 3), CovPolicy('HH', 3), CovPolicy('time_iid')):
            with self.subTest(policy=policy):
                S = cov_moment(self.f, policy)
                np.testing.assert_array_equal(S, S.T)

    def test_lag_too_large_for_sample(self):
        cov_moment(self.f_small, CovPolicy('NW', 3))
        with self.assertRaises(InvalidConfigurationError):
            cov_moment(self.f_small, CovPolicy('NW', 4))

    def test_negative_lag_rejected_at_construction(self):
        with self.assertRaises(InvalidConfigurationError):
            CovPolicy('newey_west', -1)

    def test_vector_input(self):
        S = cov_moment(np.array([1., -1., 2., 0.]))
        self.assertEqual(S.shape, (1, 1))
        self.assertAlmostEqual(S[0, 0], 6.0 / 3.0)


if __name__ == '__main__':
    unittest.main()
