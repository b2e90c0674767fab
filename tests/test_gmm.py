import unittest
import os
import sys

import numpy as np

# Ensure the repository root is in sys.path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from APTest.config import CovPolicy
from APTest.covariance import cov_moment
from APTest.crosssection import CrossSectionalTester
from APTest.exceptions import SingularMomentSystemError, SingularCovarianceError
from APTest.gmm import (
    GMMTester, time_series_moments, cross_section_moments, jacobian, weighting_matrix
)
from APTest.regression import FirstStageRegressor
from APTest.simulate import simulate_factor_panel


class TestGMMBuildingBlocks(unittest.TestCase):
    def setUp(self):
        rng = np.random.default_rng(3)
        self.T, self.N, self.K = 40, 3, 2
        self.h = np.column_stack([np.ones(self.T), rng.normal(size=(self.T, self.K))])
        self.resid = rng.normal(size=(self.T, self.N))
        self.beta = rng.normal(1.0, 0.2, size=(self.N, self.K))
        self.lam = np.array([0.01, -0.005])

    def test_moment_column_order(self):
        f = time_series_moments(self.h, self.resid)
        self.assertEqual(f.shape, (self.T, self.N * (self.K + 1)))
        for j in range(self.K + 1):
            for n in range(self.N):
                np.testing.assert_array_equal(f[:, j * self.N + n], self.h[:, j] * self.resid[:, n])

    def test_cross_section_moments(self):
        returns = np.ones((self.T, self.N))
        g = cross_section_moments(returns, self.beta, self.lam)
        np.testing.assert_allclose(g[7], 1.0 - self.beta @ self.lam)

    def test_time_series_jacobian(self):
        D = jacobian(self.h, self.N)
        n_ts = self.N * (self.K + 1)
        self.assertEqual(D.shape, (n_ts, n_ts))
        np.testing.assert_allclose(D, -np.kron(self.h.T @ self.h / self.T, np.eye(self.N)))

    def test_cross_section_jacobian_blocks(self):
        D = jacobian(self.h, self.N, beta=self.beta, lam=self.lam)
        n_ts = self.N * (self.K + 1)
        self.assertEqual(D.shape, (n_ts + self.N, n_ts + self.K))
        # intercept columns do not enter the pricing-error moments
        np.testing.assert_array_equal(D[n_ts:, :self.N], np.zeros((self.N, self.N)))
        for j in range(self.K):
            block = D[n_ts:, (j + 1) * self.N:(j + 2) * self.N]
            np.testing.assert_allclose(block, self.lam[j] * np.eye(self.N))
        np.testing.assert_array_equal(D[n_ts:, n_ts:], -self.beta)
        np.testing.assert_array_equal(D[:n_ts, n_ts:], np.zeros((n_ts, self.K)))

    def test_weighting_matrix(self):
        n_ts = self.N * (self.K + 1)
        A = weighting_matrix(self.beta, n_ts)
        self.assertEqual(A.shape, (n_ts + self.K, n_ts + self.N))
        np.testing.assert_array_equal(A[:n_ts, :n_ts], np.eye(n_ts))
        np.testing.assert_array_equal(A[n_ts:, n_ts:], self.beta.T)

        cov = np.diag([0.5, 1.0, 2.0])
        A_gls = weighting_matrix(self.beta, n_ts, cov_resid=cov)
        np.testing.assert_allclose(A_gls[n_ts:, n_ts:], self.beta.T @ np.linalg.inv(cov))

    def test_weighting_matrix_rejects_indefinite_covariance(self):
        with self.assertRaises(SingularCovarianceError):
            weighting_matrix(self.beta, 9, cov_resid=-np.eye(self.N))


class TestGMMTester(unittest.TestCase):
    def setUp(self):
        returns, factors = simulate_factor_panel(150, [1.0, 1.2, 0.8, 0.9], seed=11)
        self.Y = returns.values
        self.first = FirstStageRegressor().fit(returns, factors)
        ere = self.Y.mean(axis=0)
        beta = self.first.beta
        self.lam = np.linalg.solve(beta.T @ beta, beta.T @ ere)

    def test_exactly_identified_sandwich(self):
        res = GMMTester(CovPolicy('NW', 2)).time_series(self.first.design, self.first.resid)
        h = self.first.design
        T, N = self.first.resid.shape
        m_inv = np.kron(np.linalg.inv(h.T @ h / T), np.eye(N))
        S = cov_moment(time_series_moments(h, self.first.resid), CovPolicy('NW', 2))
        expected = m_inv @ S @ m_inv.T / T
        np.testing.assert_allclose(res.param_cov, expected, rtol=1e-8, atol=1e-10 * np.abs(expected).max())
        self.assertIsNone(res.varmom)
        self.assertEqual(res.alpha_cov.shape, (N, N))
        self.assertTrue(np.all(np.linalg.eigvalsh(res.alpha_cov) > 0))

    def test_moment_projection_annihilated_by_weights(self):
        res = GMMTester().cross_section(
            self.first.design, self.first.resid, self.Y, self.first.beta, self.lam
        )
        scale = np.abs(res.varmom).max()
        np.testing.assert_allclose(res.weighting @ res.varmom, 0.0, atol=1e-9 * scale)
        np.testing.assert_array_equal(res.varmom, res.varmom.T)

    def test_cross_section_shapes(self):
        N, K = self.first.n_assets, self.first.n_factors
        res = GMMTester().cross_section(
            self.first.design, self.first.resid, self.Y, self.first.beta, self.lam,
            cov_resid=self.first.cov_resid
        )
        self.assertEqual(res.n_time_series, N * (K + 1))
        self.assertEqual(res.moments.shape, (150, N * (K + 1) + N))
        self.assertEqual(res.pricing_error_cov.shape, (N, N))
        self.assertEqual(res.lambda_cov.shape, (K, K))
        self.assertGreater(res.lambda_cov[0, 0], 0.0)

    def test_exactly_identified_has_no_lambda_block(self):
        res = GMMTester().time_series(self.first.design, self.first.resid)
        with self.assertRaises(ValueError):
            res.lambda_cov
        with self.assertRaises(ValueError):
            res.pricing_error_cov

    def test_singular_moment_system(self):
        zero_beta = np.zeros_like(self.first.beta)
        with self.assertRaises(SingularMomentSystemError):
            GMMTester().cross_section(
                self.first.design, self.first.resid, self.Y, zero_beta, self.lam
            )

    def test_wald(self):
        self.assertAlmostEqual(GMMTester.wald(np.array([1.0, 2.0]), np.diag([0.5, 2.0])), 4.0)


class TestCrossSectionGMMStatistic(unittest.TestCase):
    """Cross-sectional GMM statistics against a system assembled block by block."""

    def setUp(self):
        self.returns, self.factors = simulate_factor_panel(
            200, [[1.0, 0.2], [1.2, -0.3], [0.8, 0.5], [0.9, 0.0], [1.1, 0.8]], seed=31
        )

    def _statistic(self, gls):
        Y = self.returns.values
        T, N = Y.shape
        h = np.column_stack([np.ones(T), self.factors.values])
        K = h.shape[1] - 1
        coef = np.linalg.lstsq(h, Y, rcond=None)[0]
        resid = Y - h @ coef
        beta = coef[1:].T
        ere = Y.mean(axis=0)
        lam = np.linalg.solve(beta.T @ beta, beta.T @ ere)
        alpha = ere - beta @ lam

        n_ts = N * (K + 1)
        f = np.zeros((T, n_ts + N))
        for j in range(K + 1):
            for n in range(N):
                f[:, j * N + n] = h[:, j] * resid[:, n]
        f[:, n_ts:] = Y - beta @ lam
        S = f.T @ f / (T - 1)

        D = np.zeros((n_ts + N, n_ts + K))
        D[:n_ts, :n_ts] = -np.kron(h.T @ h / T, np.eye(N))
        for j in range(K):
            D[n_ts:, (j + 1) * N:(j + 2) * N] = lam[j] * np.eye(N)
        D[n_ts:, n_ts:] = -beta

        A = np.zeros((n_ts + K, n_ts + N))
        A[:n_ts, :n_ts] = np.eye(n_ts)
        if gls:
            A[n_ts:, n_ts:] = beta.T @ np.linalg.inv(np.cov(resid, rowvar=False))
        else:
            A[n_ts:, n_ts:] = beta.T

        premom = np.eye(n_ts + N) - D @ np.linalg.inv(A @ D) @ A
        varmom = premom @ S @ premom.T / T
        block = varmom[n_ts:, n_ts:]
        block = 0.5 * (block + block.T)
        return alpha @ np.linalg.pinv(block, rcond=1e-10, hermitian=True) @ alpha

    def test_gmm_statistic(self):
        res = CrossSectionalTester(method='gmm').test(self.returns, self.factors)
        self.assertAlmostEqual(res.statistic / self._statistic(gls=False), 1.0, places=6)

    def test_gls_gmm_statistic(self):
        res = CrossSectionalTester(method='gls_gmm').test(self.returns, self.factors)
        self.assertAlmostEqual(res.statistic / self._statistic(gls=True), 1.0, places=6)


if __name__ == '__main__':
    unittest.main()
