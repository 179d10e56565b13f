"""Robust weighting (M-estimators) for outlier handling in ICP."""

import numpy as np

from .exceptions import ConfigurationError


def huber_loss_weights(residuals, delta=1.0):
    """
    Compute Huber loss weights for robust estimation.

    Good for handling 10-20% outliers. Transitions from quadratic to linear
    penalty at the delta threshold.

    Args:
        residuals: Array of residual norms
        delta: Threshold for switching from quadratic to linear

    Returns:
        Array of weights in (0, 1] for each correspondence
    """
    residuals = np.asarray(residuals, dtype=np.float64)
    weights = np.ones_like(residuals)
    outlier_mask = residuals > delta
    weights[outlier_mask] = delta / residuals[outlier_mask]
    return weights


class MEstimator:
    """Maps residual norms to least-squares weights."""

    name = None

    def weights(self, residual_norms):
        raise NotImplementedError

    def weight(self, residual_norm):
        return float(self.weights(np.array([residual_norm]))[0])

    def __repr__(self):
        return f"{type(self).__name__}()"


class HuberWeights(MEstimator):
    """Huber M-estimator: weight 1 up to ``threshold``, ``threshold / r`` beyond."""

    name = "huber"

    def __init__(self, threshold=1.0):
        if not threshold > 0:
            raise ConfigurationError(f"Huber threshold must be positive, got {threshold}")
        self.threshold = float(threshold)

    def weights(self, residual_norms):
        return huber_loss_weights(residual_norms, self.threshold)

    def __repr__(self):
        return f"HuberWeights(threshold={self.threshold})"


class UniformWeights(MEstimator):
    """Plain least squares, every correspondence weighs 1."""

    name = "none"

    def weights(self, residual_norms):
        return np.ones_like(np.asarray(residual_norms, dtype=np.float64))


def get_mestimator(name='huber', params=None):
    """
    Get an M-estimator by name.

    Args:
        name: One of 'huber', 'none'
        params: Dictionary of estimator parameters ('threshold' for Huber)

    Returns:
        MEstimator instance
    """
    if params is None:
        params = {}

    if name == 'huber':
        return HuberWeights(threshold=params.get('threshold', 1.0))
    if name == 'none':
        return UniformWeights()
    raise ConfigurationError(f"unknown M-estimator {name!r}, expected 'huber' or 'none'")
