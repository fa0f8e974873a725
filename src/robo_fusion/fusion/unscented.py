"""
Unscented transform and covariance maintenance.

Sigma points:
    λ = α²(n + κ) - n
    S = sqrt((n + λ)·Σ)                       (principal matrix square root)
    X₀ = μ,  Xᵢ = μ + Sᵢ,  Xₙ₊ᵢ = μ - Sᵢ        (i = 1..n, Sᵢ the i-th column)

Weights:
    w_m[0] = λ/(n+λ)
    w_c[0] = λ/(n+λ) + (1 - α² + 2)
    w_m[i] = w_c[i] = 1/(2(n+λ))              (i = 1..2n)

The square root is a general (Schur based) matrix root rather than a
Cholesky factor. Covariances that went through many predict/update
cycles are not guaranteed to be symmetric positive definite; a general
root keeps working, and its complex part is discarded. A numerically
singular root yields near-zero columns, so the sigma points collapse
toward the mean. That outcome is accepted, not retried.

Covariances that drifted too far are repaired by
:func:`condition_covariance`, which keeps only a positive diagonal.
"""

import logging
from typing import Optional

import numpy as np
import scipy.linalg

from ..settings import PredictionSettings, STATE_DIM

logger = logging.getLogger(__name__)

# Replacement for non-positive variances on the diagonal
VARIANCE_FLOOR = 0.001

# Finite stand-in for infinite covariance entries
INF_SENTINEL = 1e10

# Prior knowledge of the distribution (2 is optimal for Gaussians)
BETA = 2.0


def scaling_parameter(settings: PredictionSettings, n: int = STATE_DIM) -> float:
    """Composite scaling parameter λ = α²(n + κ) - n."""
    return settings.alpha ** 2 * (n + settings.kappa) - n


def compute_weights(for_mean: bool, settings: PredictionSettings,
                    n: int = STATE_DIM) -> np.ndarray:
    """
    Compute the weights of the unscented transform.

    The weights depend only on n, α and κ, so callers compute them once
    per settings change and reuse them.

    Args:
        for_mean: True for the mean weights, False for the covariance weights
        settings: Settings providing α and κ
        n: State dimension

    Returns:
        Weight vector of length 2n+1
    """
    lam = scaling_parameter(settings, n)
    weights = np.full(2 * n + 1, 1.0 / (2.0 * (n + lam)))
    weights[0] = lam / (n + lam)
    if not for_mean:
        weights[0] += 1.0 - settings.alpha ** 2 + BETA
    return weights


def matrix_sqrt(matrix: np.ndarray) -> np.ndarray:
    """
    Principal square root of a general square matrix.

    Complex components are discarded and non-finite entries are zeroed,
    which collapses the affected directions instead of failing.
    """
    if not np.all(np.isfinite(matrix)):
        logger.warning("Cannot take the square root of a non-finite matrix, collapsing sigma points")
        return np.zeros_like(matrix, dtype=float)
    root = np.real(scipy.linalg.sqrtm(matrix))
    if not np.all(np.isfinite(root)):
        logger.warning("Matrix square root is not finite, collapsing affected sigma points")
        root = np.nan_to_num(root, nan=0.0, posinf=0.0, neginf=0.0)
    return root


def generate_sigma_points(mean: np.ndarray, covariance: np.ndarray,
                          settings: PredictionSettings) -> np.ndarray:
    """
    Generate the 2n+1 sigma points of a distribution.

    Args:
        mean: Mean vector μ (n)
        covariance: Covariance matrix Σ (n x n)
        settings: Settings providing α and κ

    Returns:
        Array of shape (2n+1, n); row 0 is the mean, rows 1..n the positive
        and rows n+1..2n the negative perturbations

    Raises:
        ValueError: If mean and covariance dimensions disagree
    """
    mean = np.asarray(mean, dtype=float)
    n = mean.shape[0]
    if covariance.shape != (n, n):
        raise ValueError(f"Covariance shape must be ({n}, {n}), got {covariance.shape}")

    lam = scaling_parameter(settings, n)
    root = matrix_sqrt((n + lam) * covariance)

    sigma_points = np.empty((2 * n + 1, n))
    sigma_points[0] = mean
    sigma_points[1:n + 1] = mean + root.T
    sigma_points[n + 1:] = mean - root.T
    return sigma_points


def weighted_mean(weights: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Weighted sum of the rows of ``points``."""
    return weights @ points


def weighted_cross_covariance(weights: np.ndarray, a: np.ndarray, a_mean: np.ndarray,
                              b: Optional[np.ndarray] = None,
                              b_mean: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Weighted sum of outer products Σ wᵢ (aᵢ - ā)(bᵢ - b̄)ᵀ.

    With ``b`` omitted this is the weighted covariance of ``a``.
    """
    da = a - a_mean
    db = da if b is None else b - b_mean
    return (weights[:, None] * da).T @ db


def needs_conditioning(covariance: np.ndarray, tolerance: float = 1e-9) -> bool:
    """
    Check whether a covariance drifted from symmetric positive semi-definite.

    Returns:
        True if the matrix holds NaN/Inf entries, is not symmetric within
        tolerance, or has an eigenvalue clearly below zero
    """
    if not np.all(np.isfinite(covariance)):
        return True
    scale = max(1.0, float(np.max(np.abs(covariance))))
    if not np.allclose(covariance, covariance.T, rtol=1e-6, atol=tolerance * scale):
        return True
    try:
        eigenvalues = np.linalg.eigvalsh(0.5 * (covariance + covariance.T))
    except np.linalg.LinAlgError:
        return True
    return bool(np.min(eigenvalues) < -tolerance * scale)


def condition_covariance(covariance: np.ndarray, floor: float = VARIANCE_FLOOR) -> np.ndarray:
    """
    Repair a covariance matrix into a diagonal, positive one.

    Variances below ``floor`` (including NaN) are raised to it, infinite ones
    are replaced by the finite sentinel, and all cross-correlations are
    discarded. The input matrix is left untouched.

    Args:
        covariance: Square matrix to repair
        floor: Smallest variance kept on the diagonal

    Returns:
        Diagonal covariance matrix
    """
    if floor <= 0:
        raise ValueError(f"Variance floor must be positive, got {floor}")
    variances = np.nan_to_num(np.diag(covariance).astype(float), nan=floor,
                              posinf=INF_SENTINEL, neginf=floor)
    variances = np.maximum(variances, floor)
    return np.diag(variances)


def sanitize_covariance(covariance: np.ndarray) -> np.ndarray:
    """Zero NaN entries and replace infinite entries of either sign with 1e10."""
    return np.nan_to_num(covariance, nan=0.0, posinf=INF_SENTINEL, neginf=INF_SENTINEL)
