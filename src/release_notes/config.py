"""Service configuration.

Settings are resolved in three layers, later layers winning:
1. Defaults on the Settings model
2. An optional YAML file
3. Environment variables (a local .env is loaded by the CLI beforehand)

Example YAML:

    github_api_url: https://api.github.com
    cache_capacity: 1024
    port: 4200
    log_level: DEBUG

The GitHub token should come from the environment (GITHUB_TOKEN, or
GITHUB_AT for older deployments) rather than from a committed file.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

DEFAULT_CACHE_CAPACITY = 8192

# setting name -> environment variables, first one set wins
ENV_VARS: dict[str, tuple[str, ...]] = {
    "github_token": ("GITHUB_TOKEN", "GITHUB_AT"),
    "github_api_url": ("GITHUB_API_URL",),
    "request_timeout": ("REQUEST_TIMEOUT",),
    "cache_capacity": ("RELEASE_NOTES_CACHE_CAPACITY",),
    "host": ("HOST",),
    "port": ("PORT",),
    "environment": ("ENVIRONMENT",),
    "log_level": ("LOG_LEVEL",),
}


class Settings(BaseModel):
    """Runtime configuration for the release notes service.

    Attributes:
        github_token: Personal access token for the GitHub API (optional,
                      unauthenticated requests are heavily rate limited)
        github_api_url: Base URL of the GitHub REST API
        request_timeout: Timeout in seconds for one upstream request
        cache_capacity: Maximum number of release records kept in memory
        host: Interface the HTTP server binds to
        port: Port the HTTP server listens on
        environment: "development" or "production" (controls log format)
        log_level: Logging level name
    """

    github_token: str | None = None
    github_api_url: str = "https://api.github.com"
    request_timeout: float = Field(30.0, gt=0)
    cache_capacity: int = Field(DEFAULT_CACHE_CAPACITY, gt=0)
    host: str = "0.0.0.0"
    port: int = Field(4200, gt=0, lt=65536)
    environment: str = "development"
    log_level: str = "INFO"


def _env_overrides(environ: Mapping[str, str]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for field, names in ENV_VARS.items():
        for name in names:
            value = environ.get(name)
            if value:
                overrides[field] = value
                break
    return overrides


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from an optional YAML file and the environment.

    Args:
        path: Path to a YAML settings file. A missing file is ignored.
        environ: Environment mapping to read (defaults to os.environ).

    Returns:
        Validated Settings.

    Raises:
        ValueError: If the YAML is invalid or a value fails validation.
    """
    raw: dict = {}
    if path is not None and Path(path).exists():
        try:
            raw = yaml.safe_load(Path(path).read_text()) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ValueError(f"Invalid settings in {path}: expected a mapping")

    raw.update(_env_overrides(os.environ if environ is None else environ))

    try:
        return Settings.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid settings: {exc}") from exc
