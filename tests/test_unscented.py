import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from robo_fusion.settings import PredictionSettings
from robo_fusion.fusion.unscented import (
    INF_SENTINEL,
    VARIANCE_FLOOR,
    compute_weights,
    condition_covariance,
    generate_sigma_points,
    matrix_sqrt,
    needs_conditioning,
    sanitize_covariance,
    scaling_parameter,
    weighted_cross_covariance,
    weighted_mean,
)


class TestWeights:
    """Test unscented transform weights"""

    @pytest.mark.parametrize("alpha,kappa", [(1.0, 0.0), (0.5, 1.0), (0.1, 2.0)])
    def test_mean_weights_sum_to_one(self, alpha, kappa):
        """Test the mean weights are normalized"""
        weights = compute_weights(True, PredictionSettings(alpha=alpha, kappa=kappa))

        assert weights.shape == (11,)
        assert np.sum(weights) == pytest.approx(1.0)

    def test_covariance_weight_correction(self):
        """Test the central covariance weight carries the 1 - α² + β term"""
        settings = PredictionSettings(alpha=0.5, kappa=1.0)
        mean_weights = compute_weights(True, settings)
        cov_weights = compute_weights(False, settings)

        assert cov_weights[0] == pytest.approx(mean_weights[0] + 1.0 - 0.25 + 2.0)
        np.testing.assert_allclose(cov_weights[1:], mean_weights[1:])

    def test_default_scaling(self):
        """Test λ vanishes for α = 1 and κ = 0"""
        settings = PredictionSettings()
        assert scaling_parameter(settings) == pytest.approx(0.0)
        np.testing.assert_allclose(compute_weights(True, settings)[1:], 0.1)


class TestSigmaPoints:
    """Test sigma point generation"""

    def setup_method(self):
        self.settings = PredictionSettings(alpha=0.8, kappa=1.0)
        self.mean = np.array([1.0, -2.0, 0.5, 0.3, -0.1])
        self.covariance = np.diag([1.0, 2.0, 0.5, 0.1, 0.05])
        self.covariance[0, 1] = self.covariance[1, 0] = 0.3

    def test_layout_and_symmetry(self):
        """Test the central point is the mean and perturbations mirror each other"""
        points = generate_sigma_points(self.mean, self.covariance, self.settings)

        assert points.shape == (11, 5)
        np.testing.assert_allclose(points[0], self.mean)
        np.testing.assert_allclose(points[1:6] + points[6:], np.tile(2 * self.mean, (5, 1)), atol=1e-12)

    def test_moments_are_reproduced(self):
        """Test weighted sigma points recover the mean and covariance"""
        points = generate_sigma_points(self.mean, self.covariance, self.settings)
        mean_weights = compute_weights(True, self.settings)
        cov_weights = compute_weights(False, self.settings)

        mean = weighted_mean(mean_weights, points)
        covariance = weighted_cross_covariance(cov_weights, points, mean)

        np.testing.assert_allclose(mean, self.mean, atol=1e-10)
        np.testing.assert_allclose(covariance, self.covariance, atol=1e-8)

    def test_zero_covariance_collapses_points(self):
        """Test a zero covariance puts every sigma point on the mean"""
        points = generate_sigma_points(self.mean, np.zeros((5, 5)), self.settings)
        np.testing.assert_allclose(points, np.tile(self.mean, (11, 1)), atol=1e-12)

    def test_dimension_mismatch(self):
        """Test mismatched mean and covariance are rejected"""
        with pytest.raises(ValueError):
            generate_sigma_points(self.mean, np.eye(4), self.settings)

    def test_non_finite_root_collapses(self):
        """Test the square root of a non-finite matrix is zero"""
        matrix = np.eye(3)
        matrix[1, 1] = np.nan
        np.testing.assert_array_equal(matrix_sqrt(matrix), np.zeros((3, 3)))


class TestCrossCovariance:
    """Test weighted outer product sums"""

    def test_cross_covariance_of_two_sets(self):
        """Test the cross term pairs rows of both point sets"""
        weights = np.array([0.5, 0.5])
        a = np.array([[1.0, 0.0], [-1.0, 0.0]])
        b = np.array([[2.0], [-2.0]])

        cross = weighted_cross_covariance(weights, a, np.zeros(2), b, np.zeros(1))

        np.testing.assert_allclose(cross, [[2.0], [0.0]])


class TestConditioning:
    """Test covariance health checks and repair"""

    def test_healthy_covariance(self):
        """Test symmetric positive semi-definite matrices pass"""
        assert not needs_conditioning(np.eye(5))
        assert not needs_conditioning(np.zeros((5, 5)))

    def test_unhealthy_covariance(self):
        """Test NaN, asymmetric and indefinite matrices are detected"""
        with_nan = np.eye(3)
        with_nan[0, 2] = np.nan
        asymmetric = np.eye(3)
        asymmetric[0, 1] = 0.5
        indefinite = np.diag([1.0, -0.5, 1.0])

        assert needs_conditioning(with_nan)
        assert needs_conditioning(asymmetric)
        assert needs_conditioning(indefinite)

    def test_zero_diagonal_is_floored(self):
        """Test zero variances become the floor and cross terms vanish"""
        covariance = np.zeros((5, 5))
        covariance[0, 1] = covariance[1, 0] = 0.4

        conditioned = condition_covariance(covariance)

        np.testing.assert_allclose(np.diag(conditioned), VARIANCE_FLOOR)
        assert np.count_nonzero(conditioned - np.diag(np.diag(conditioned))) == 0

    def test_non_finite_diagonal(self):
        """Test NaN, negative and infinite variances are replaced"""
        covariance = np.diag([np.nan, -2.0, np.inf, 3.0])

        conditioned = condition_covariance(covariance)

        np.testing.assert_allclose(np.diag(conditioned),
                                   [VARIANCE_FLOOR, VARIANCE_FLOOR, INF_SENTINEL, 3.0])

    def test_tiny_variances_are_floored(self):
        """Test float-noise variances are raised to the floor"""
        covariance = np.diag([1e-31, 5e-4, 0.5])

        conditioned = condition_covariance(covariance)

        np.testing.assert_allclose(np.diag(conditioned), [VARIANCE_FLOOR, VARIANCE_FLOOR, 0.5])

    def test_conditioning_leaves_input_untouched(self):
        """Test the repaired matrix is a copy"""
        covariance = np.array([[0.0, 1.0], [1.0, 0.0]])
        condition_covariance(covariance)
        np.testing.assert_array_equal(covariance, [[0.0, 1.0], [1.0, 0.0]])

    def test_sanitize_covariance(self):
        """Test NaN entries are zeroed and infinities of either sign become the sentinel"""
        covariance = np.array([[np.nan, np.inf], [-np.inf, 1.0]])

        sanitized = sanitize_covariance(covariance)

        np.testing.assert_array_equal(sanitized, [[0.0, INF_SENTINEL], [INF_SENTINEL, 1.0]])
