"""Parameters of a registration run and their YAML loader."""

import math
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigurationError


class IcpParameters(BaseModel):
    """Optimisation parameters, fixed for the duration of a run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    # Damping of every Gauss-Newton step
    lambda_: float = Field(1.0, gt=0, alias="lambda")
    max_iter: int = Field(10, gt=0)
    # Stop once the error changes less than this between two iterations
    min_variation: float = Field(1e-4, gt=0)
    max_correspondance_distance: float = Field(math.inf, gt=0)
    # Twist of the current cloud pose relative to the reference; None means identity
    initial_guess: Optional[Tuple[float, ...]] = None

    @field_validator("initial_guess")
    @classmethod
    def check_twist_length(cls, value):
        if value is not None and len(value) not in (6, 7):
            raise ValueError(f"initial_guess must have 6 or 7 components, got {len(value)}")
        return value

    def __str__(self):
        guess = "identity" if self.initial_guess is None else list(self.initial_guess)
        return (
            f"Lambda: {self.lambda_}\n"
            f"Max iterations: {self.max_iter}\n"
            f"Min variation: {self.min_variation}\n"
            f"Max correspondance distance: {self.max_correspondance_distance}\n"
            f"Initial guess (twist): {guess}"
        )


class RegistrationConfig(BaseModel):
    """Choice of error metric and M-estimator together with the run parameters."""

    model_config = ConfigDict(frozen=True)

    metric: str = "point_to_point"
    mestimator: str = "huber"
    mestimator_params: Dict[str, float] = Field(default_factory=dict)
    n_jobs: int = 1
    parameters: IcpParameters = Field(default_factory=IcpParameters)

    @field_validator("n_jobs")
    @classmethod
    def check_n_jobs(cls, value):
        if value == 0:
            raise ValueError("n_jobs must be a positive number of workers or negative (joblib style)")
        return value


def load_config(path, overrides=None):
    """
    Load a registration configuration from a YAML file.

    Args:
        path: YAML file; keys mirror ``RegistrationConfig``, with the run
            parameters nested under ``parameters``
        overrides: Optional keys replacing the ones of the file (``parameters``
            is merged rather than replaced)

    Raises:
        ConfigurationError: if the file is missing or does not validate
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"configuration file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")

    return build_config(data, overrides)


def build_config(data, overrides=None):
    data = dict(data)
    for key, value in (overrides or {}).items():
        if key == "parameters":
            merged = dict(data.get("parameters") or {})
            merged.update(value)
            data["parameters"] = merged
        else:
            data[key] = value

    try:
        return RegistrationConfig(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid registration configuration:\n{exc}") from exc
