"""
Rating of the tracking camera confidence.

The raw confidence c ∈ [0, 1] reported with every camera pose is turned
into the trust used by the filter:

    rated = c^e              or          rated = sin(c·π/2)^e

The exponent e controls how quickly trust decays for imperfect tracking:
at e = 0 the camera is always fully trusted, larger exponents penalize
anything short of full confidence harder. The sine mapping lifts mid-range
confidences before the exponent is applied.
"""

import numpy as np


def rate_confidence(confidence, exponent: float = 1.0, use_sin: bool = False):
    """
    Rate a raw camera confidence.

    Args:
        confidence: Raw confidence (scalar or array), clipped to [0, 1]
        exponent: Non-negative exponent, 0 trusts the camera fully
        use_sin: Map the confidence through sin(c·π/2) first

    Returns:
        Rated confidence in [0, 1], a float for scalar input

    Raises:
        ValueError: If the exponent is negative
    """
    if exponent < 0:
        raise ValueError(f"Confidence exponent must be non-negative, got {exponent}")

    rated = np.clip(np.asarray(confidence, dtype=float), 0.0, 1.0)
    if use_sin:
        rated = np.sin(rated * np.pi / 2)
    rated = np.power(rated, exponent)
    return float(rated) if np.ndim(rated) == 0 else rated
