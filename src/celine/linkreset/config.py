"""Link reset settings.

Settings can be provided via:
1. A YAML config file (default ./linkreset.yaml), with ${VAR} interpolation
2. Environment variables (CELINE_LINKRESET_*), for values the file omits
3. CLI arguments (--server-url, --real-run, etc.)

Example YAML:
    server_url: https://keycloak.celine.localhost
    client_realm: master
    client_id: celine-linkreset
    client_secret_env: LINKRESET_CLIENT_SECRET
    idp_realm: idir
    application_realm: celine
    real_run: false
    user_max: 500
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from celine.linkreset.models import RunConfiguration

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("linkreset.yaml")

# Pattern for ${VAR} and ${VAR:-default} interpolation
_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(:-([^}]*))?\}")

# pydantic error types that mean "value absent" rather than "value wrong"
_MISSING_ERROR_TYPES = {"missing", "string_too_short"}


class ConfigError(Exception):
    """Configuration could not be loaded."""


class InvalidSettingError(ConfigError):
    """A setting is present but its value cannot be used."""

    def __init__(self, name: str, value: Any, reason: str):
        super().__init__(f"Invalid value for {name}: {value!r} ({reason})")
        self.name = name
        self.value = value


def _resolve_env_str(s: str) -> str:
    """Resolve environment variable placeholders in a string."""
    def repl(m: re.Match[str]) -> str:
        var = m.group(1)
        default = m.group(3)
        val = os.getenv(var)
        if val is None or val == "":
            return default if default is not None else ""
        return val

    prev = None
    cur = s
    for _ in range(5):
        if cur == prev:
            break
        prev = cur
        cur = _ENV_PATTERN.sub(repl, cur)
    return cur


def _resolve_env(value: Any) -> Any:
    """Recursively resolve environment variables in a data structure."""
    if isinstance(value, str):
        return _resolve_env_str(value)
    if isinstance(value, list):
        return [_resolve_env(v) for v in value]
    if isinstance(value, dict):
        return {k: _resolve_env(v) for k, v in value.items()}
    return value


class LinkResetSettings(BaseSettings):
    """Keycloak connection, target realms and safety settings."""

    model_config = SettingsConfigDict(
        env_prefix="CELINE_LINKRESET_",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    # Connection
    server_url: str = Field(..., min_length=1, description="Keycloak base URL")
    client_realm: str = Field(
        ..., min_length=1, description="Realm of the service account client"
    )
    client_id: str = Field(..., min_length=1, description="Service account client ID")
    client_secret_env: str = Field(
        ...,
        min_length=1,
        description="Name of the environment variable holding the client secret",
    )
    timeout: float = Field(default=30.0, description="HTTP request timeout in seconds")

    # Targets
    idp_realm: str = Field(..., min_length=1, description="Federated realm to purge")
    application_realm: str = Field(
        ..., min_length=1, description="Realm whose federation links are removed"
    )

    # Safety
    real_run: bool = Field(..., description="Apply changes; false simulates the run")
    user_max: int = Field(
        ..., gt=0, description="Maximum number of users a realm may hold"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @property
    def client_secret(self) -> str | None:
        """Read the client secret from the configured environment variable."""
        return os.environ.get(self.client_secret_env) or None

    @property
    def token_url(self) -> str:
        """Get the token endpoint of the client realm."""
        return (
            f"{self.server_url.rstrip('/')}/realms/{self.client_realm}"
            "/protocol/openid-connect/token"
        )

    def admin_url(self, realm: str) -> str:
        """Get the admin API URL for a realm."""
        return f"{self.server_url.rstrip('/')}/admin/realms/{realm}"

    def run_configuration(self) -> RunConfiguration:
        """Snapshot the values the reconciliation engine works with."""
        return RunConfiguration(
            idp_realm=self.idp_realm,
            application_realm=self.application_realm,
            client_realm=self.client_realm,
            ceiling=self.user_max,
            simulate=not self.real_run,
        )


def _validate(values: dict[str, Any]) -> LinkResetSettings:
    """Build settings, translating validation errors into ConfigError."""
    try:
        return LinkResetSettings(**values)
    except ValidationError as e:
        # Report the first problem, missing values before invalid ones
        errors = sorted(
            e.errors(), key=lambda err: err["type"] not in _MISSING_ERROR_TYPES
        )
        err = errors[0]
        name = ".".join(str(p) for p in err["loc"]) or "settings"
        if err["type"] in _MISSING_ERROR_TYPES:
            raise ConfigError(f"Missing required setting: {name}") from e
        raise InvalidSettingError(name, err.get("input"), err["msg"]) from e


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text())
    except OSError as e:
        raise ConfigError(f"Unable to read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file is not valid YAML: {path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file must be a YAML mapping: {path}")
    return _resolve_env(raw)


def load_settings(
    path: Path | None = None,
    *,
    require_secret: bool = True,
    **overrides: Any,
) -> LinkResetSettings:
    """Load settings from a YAML file, the environment and CLI overrides.

    Args:
        path: YAML config file. If None, DEFAULT_CONFIG_FILE is used when it
              exists, otherwise only the environment is read.
        require_secret: Fail when the client secret variable is unset.
        overrides: CLI values; None entries are ignored.

    Raises:
        ConfigError: A required value is missing or the file is unusable.
        InvalidSettingError: A value is present but cannot be parsed.
    """
    values: dict[str, Any] = {}

    if path is None and DEFAULT_CONFIG_FILE.exists():
        path = DEFAULT_CONFIG_FILE
    if path is not None:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        # Blank values count as absent so the environment can fill them
        values = {k: v for k, v in _read_yaml(path).items() if v not in ("", None)}
        logger.debug("Loaded %d settings from %s", len(values), path)

    values.update({k: v for k, v in overrides.items() if v is not None})
    settings = _validate(values)

    if require_secret and not settings.client_secret:
        raise ConfigError(
            f"Client secret environment variable {settings.client_secret_env} is not set"
        )

    return settings
