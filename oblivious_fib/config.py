"""
Run configuration.

Defaults match the reference setup: 16-bit ciphertexts and the largest index
whose Fibonacci number fits in them (24). Environment variables override the
defaults; see load_config().
"""

import logging
import os
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import ConfigError
from .recurrence import max_fibonacci_index

logger = logging.getLogger(__name__)

BACKENDS = ("jaxite", "mock")


class FibConfig(BaseModel):
    bound: int = Field(24, ge=1)
    width: int = Field(16, ge=2, le=32)
    backend: str = "jaxite"
    workers: int = Field(4, ge=1)
    seed: Optional[int] = None
    log_level: str = "INFO"
    server_url: str = "http://localhost:8000"

    @model_validator(mode="after")
    def _check_domain(self):
        limit = max_fibonacci_index(self.width)
        if self.bound > limit:
            raise ValueError(
                f"bound {self.bound} overflows {self.width}-bit values (max index {limit})"
            )
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown backend: {self.backend}. Available: {list(BACKENDS)}")
        return self

    @property
    def max_value(self) -> int:
        return (1 << self.width) - 1


# env var -> (field, converter)
ENV_OVERRIDES = {
    "OBLIVIOUS_FIB_BOUND": ("bound", int),
    "OBLIVIOUS_FIB_WIDTH": ("width", int),
    "OBLIVIOUS_FIB_BACKEND": ("backend", str.lower),
    "OBLIVIOUS_FIB_WORKERS": ("workers", int),
    "OBLIVIOUS_FIB_SEED": ("seed", int),
    "LOG_LEVEL": ("log_level", str.upper),
    "OBLIVIOUS_FIB_SERVER_URL": ("server_url", str),
}


def load_config(**overrides) -> FibConfig:
    """
    Build a FibConfig from defaults, environment overrides, then keyword
    overrides (highest priority).

    Raises ConfigError on any invalid value. Unlike a best-effort loader this
    never falls back to defaults: a bound that silently changed would change
    which indices the engine accepts.
    """
    data = {}
    for var, (field_name, convert) in ENV_OVERRIDES.items():
        raw = os.getenv(var)
        if raw is None or raw == "":
            continue
        try:
            data[field_name] = convert(raw)
        except ValueError as e:
            raise ConfigError(f"Invalid value for {var}: {raw!r}") from e
    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = FibConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e

    logger.debug(f"Loaded config: {config}")
    return config
