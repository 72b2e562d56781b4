"""
Configuration loading and validation.

Loads client configuration from a YAML file. The session token is resolved
from an environment variable and never stored in the config file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator


class ServerConfig(BaseModel):
    url: str = "http://localhost:8000"
    verify_tls: bool = True
    request_timeout_seconds: float = 30
    session_token_env: str = "TRACKLINE_SESSION_TOKEN"

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def session_token(self) -> str | None:
        return os.environ.get(self.session_token_env)


class OptimisticConfig(BaseModel):
    mutation_timeout_seconds: float = Field(default=15, gt=0)


class LoggingConfig(BaseModel):
    level: str = "info"
    format: Literal["json", "text"] = "text"


class ClientConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    optimistic: OptimisticConfig = Field(default_factory=OptimisticConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: str | Path) -> ClientConfig:
    """Load and validate client configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return ClientConfig.model_validate(raw)
