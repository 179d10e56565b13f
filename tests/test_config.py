"""Tests for configuration loading."""

import math

import pytest
import yaml
from pydantic import ValidationError

from icpreg import ConfigurationError, IcpParameters, RegistrationConfig, load_config


def test_parameter_defaults():
    params = IcpParameters()

    assert params.lambda_ == 1.0
    assert params.max_iter == 10
    assert params.min_variation == pytest.approx(1e-4)
    assert math.isinf(params.max_correspondance_distance)
    assert params.initial_guess is None


def test_parameters_accept_the_lambda_alias():
    assert IcpParameters(**{"lambda": 0.5}).lambda_ == 0.5
    assert IcpParameters(lambda_=0.25).lambda_ == 0.25


def test_parameters_are_immutable():
    params = IcpParameters()
    with pytest.raises(ValidationError):
        params.max_iter = 3


@pytest.mark.parametrize("kwargs", [
    {"lambda_": 0.0},
    {"max_iter": -1},
    {"min_variation": 0.0},
    {"max_correspondance_distance": -0.1},
    {"initial_guess": (0.0, 0.0, 0.0)},
])
def test_parameters_are_validated(kwargs):
    with pytest.raises(ValidationError):
        IcpParameters(**kwargs)


def test_load_config(tmp_path):
    config_path = tmp_path / "icp.yaml"
    config_path.write_text(yaml.safe_dump(
        {
            "metric": "point_to_plane",
            "mestimator": "huber",
            "mestimator_params": {"threshold": 0.1},
            "n_jobs": 2,
            "parameters": {
                "lambda": 0.5,
                "max_iter": 40,
                "min_variation": 1e-6,
                "max_correspondance_distance": 0.2,
                "initial_guess": [0.0, 0.1, 0.0, 0.0, 0.0, 0.0],
            },
        },
    ), encoding="utf-8")

    cfg = load_config(config_path)

    assert isinstance(cfg, RegistrationConfig)
    assert cfg.metric == "point_to_plane"
    assert cfg.mestimator_params == {"threshold": 0.1}
    assert cfg.n_jobs == 2
    assert cfg.parameters.lambda_ == 0.5
    assert cfg.parameters.max_correspondance_distance == 0.2
    assert cfg.parameters.initial_guess == (0.0, 0.1, 0.0, 0.0, 0.0, 0.0)


def test_overrides_are_merged_into_the_file(tmp_path):
    config_path = tmp_path / "icp.yaml"
    config_path.write_text(yaml.safe_dump({"parameters": {"lambda": 0.5, "max_iter": 40}}),
                           encoding="utf-8")

    cfg = load_config(config_path, {"mestimator": "none", "parameters": {"max_iter": 5}})

    assert cfg.mestimator == "none"
    assert cfg.parameters.lambda_ == 0.5
    assert cfg.parameters.max_iter == 5


def test_invalid_files_raise_configuration_errors(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "missing.yaml")

    bad = tmp_path / "bad.yaml"
    bad.write_text(yaml.safe_dump({"parameters": {"max_iter": 0}}), encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(bad)

    not_a_mapping = tmp_path / "list.yaml"
    not_a_mapping.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(not_a_mapping)
