"""Client configuration.

Settings can be built in code, loaded from YAML, or read from ``AUTOCODE_*``
environment variables:

    server_host: optimizer.internal
    server_port: 10000
    client_host: 0.0.0.0
    client_port: 10001
    client_name: my-client
    imports: [numpy, my_pkg.strategies]
    integer_coercion: strict
"""

import os
from pathlib import Path
from typing import List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .types import IntegerCoercion

ENV_PREFIX = "AUTOCODE_"

_LOG_LEVELS = {"critical", "error", "warning", "info", "debug", "trace"}


class OptimizationConfig(BaseModel):
    """Where the optimizer lives, where the client listens, and how values resolve."""

    server_host: str = "localhost"
    server_port: int = 10000
    client_host: str = "localhost"
    client_port: int = 10001
    client_name: str = "autocode-client"
    imports: List[str] = Field(default_factory=list)  # Modules visible to hydrated options
    integer_coercion: IntegerCoercion = IntegerCoercion.STRICT
    prepare_timeout: Optional[float] = None  # None waits forever
    log_level: str = "info"

    @field_validator('server_port', 'client_port')
    def validate_port(cls, v):
        if not (0 < v < 65536):
            raise ValueError(f"Port must be in 1..65535, got {v}")
        return v

    @field_validator('prepare_timeout')
    def validate_timeout(cls, v):
        if v is not None and v <= 0:
            raise ValueError("prepare_timeout must be positive or None")
        return v

    @field_validator('log_level')
    def validate_log_level(cls, v):
        v = v.strip().lower()
        if v not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return v

    @property
    def server_url(self) -> str:
        return f"http://{self.server_host}:{self.server_port}"

    @property
    def client_url(self) -> str:
        return f"http://{self.client_host}:{self.client_port}"

    @classmethod
    def from_yaml(cls, path: Path) -> 'OptimizationConfig':
        """Load from a specific YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls(**(data or {}))

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> 'OptimizationConfig':
        """Load from YAML string."""
        data = yaml.safe_load(yaml_str)
        return cls(**(data or {}))

    def to_yaml_string(self) -> str:
        """Export to YAML string."""
        data = self.model_dump(mode="json", exclude_none=True)
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'OptimizationConfig':
        """Build from ``AUTOCODE_*`` variables; unset ones keep their defaults.

        ``AUTOCODE_IMPORTS`` is a comma-separated module list.
        """
        environ = os.environ if environ is None else environ
        data = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            if name == "imports":
                data[name] = [m.strip() for m in raw.split(",") if m.strip()]
            else:
                data[name] = raw
        return cls(**data)


__all__ = ["ENV_PREFIX", "OptimizationConfig"]
