"""Environment-driven settings for the launch dashboard.

Every field can be set through a ``LAUNCHPAD_*`` environment variable; keyword
overrides passed to :func:`load_settings` win over the environment.

Example:
    >>> settings = load_settings(mail_test_mode=True)
    >>> settings.mail_test_mode
    True
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from .errors import ConfigurationError

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class Settings:
    """Runtime configuration.

    Attributes:
        projects_collection: Store collection holding project documents.
        mail_endpoint: URL of the mail boundary the dispatcher posts to.
        mail_timeout: Seconds before a mail request is abandoned.
        mail_test_mode: Redirect every outgoing mail to ``mail_test_address``.
        mail_test_address: Recipient used while ``mail_test_mode`` is on.
        banner_seconds: Lifetime of a banner message before it is dismissed.
        serialize_moves: Queue moves of the same task behind each other.
        log_level: Root level for :func:`launchpad.logging_config.setup_logging`.
    """

    projects_collection: str = "projects"
    mail_endpoint: str = "http://localhost:8000/api/send-email"
    mail_timeout: float = 10.0
    mail_test_mode: bool = False
    mail_test_address: str = "test@example.com"
    banner_seconds: float = 3.0
    serialize_moves: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.banner_seconds <= 0:
            raise ConfigurationError("banner_seconds must be positive", details={"value": str(self.banner_seconds)})
        if self.mail_timeout <= 0:
            raise ConfigurationError("mail_timeout must be positive", details={"value": str(self.mail_timeout)})
        if not self.projects_collection:
            raise ConfigurationError("projects_collection must not be empty")


def _env_name(field_name: str) -> str:
    return f"LAUNCHPAD_{field_name.upper()}"


def _coerce(field_name: str, raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"Invalid boolean for {_env_name(field_name)}", details={"value": raw})
    if isinstance(default, float):
        try:
            return float(raw)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid number for {_env_name(field_name)}", details={"value": raw}) from exc
    return raw.strip()


def load_settings(environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> Settings:
    """Build :class:`Settings` from the environment plus keyword overrides."""

    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    for setting in fields(Settings):
        raw = env.get(_env_name(setting.name))
        if raw is not None:
            values[setting.name] = _coerce(setting.name, raw, setting.default)

    unknown = set(overrides) - {setting.name for setting in fields(Settings)}
    if unknown:
        raise ConfigurationError("Unknown settings", details={"keys": ", ".join(sorted(unknown))})
    values.update(overrides)
    return Settings(**values)
