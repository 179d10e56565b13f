"""Tests for the M-estimator weights."""

import numpy as np
import pytest

from icpreg import ConfigurationError, HuberWeights, UniformWeights, get_mestimator
from icpreg.losses import huber_loss_weights


def test_huber_weight_is_one_below_threshold():
    huber = HuberWeights(threshold=0.5)

    assert huber.weight(0.0) == 1.0
    assert huber.weight(0.25) == 1.0
    assert huber.weight(0.5) == 1.0


def test_huber_weight_decays_above_threshold():
    huber = HuberWeights(threshold=0.5)

    assert huber.weight(1.0) == pytest.approx(0.5)
    assert huber.weight(5.0) == pytest.approx(0.1)


def test_huber_weights_are_monotone_and_never_zero():
    norms = np.linspace(0.0, 1e6, 1000)
    weights = HuberWeights(threshold=2.0).weights(norms)

    assert np.all(weights > 0)
    assert np.all(weights <= 1)
    assert np.all(np.diff(weights) <= 0)


def test_huber_loss_weights_does_not_modify_input():
    residuals = np.array([0.5, 3.0])
    huber_loss_weights(residuals, delta=1.0)
    assert residuals.tolist() == [0.5, 3.0]


def test_uniform_weights():
    assert UniformWeights().weights(np.array([0.0, 10.0, 1e9])).tolist() == [1.0, 1.0, 1.0]


def test_get_mestimator():
    huber = get_mestimator('huber', {'threshold': 0.2})
    assert isinstance(huber, HuberWeights)
    assert huber.threshold == 0.2
    assert isinstance(get_mestimator('none'), UniformWeights)

    with pytest.raises(ConfigurationError):
        get_mestimator('cauchy')
    with pytest.raises(ConfigurationError):
        HuberWeights(threshold=0.0)
