"""
Autologout settings and the per-session timeout policy.

The settings model is the validated output of the administration component;
`resolve_policy` turns it into the immutable `TimeoutPolicy` a controller is
built from.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from AutoLogout.config import config
from AutoLogout.core.exceptions import ConfigInvalid

logger = logging.getLogger(__name__)

MIN_TIMEOUT = 60


@dataclass(frozen=True)
class TimeoutPolicy:
    """
    Immutable timeout policy, loaded once per session.

    Attributes:
        idle_timeout_seconds: Inactivity before the warning (>= 60)
        warning_padding_seconds: Grace period while the dialog is shown
        redirect_url: Internal path to send the user to after logout
        warning_message: Text of the warning dialog
        skip_dialog: Log out right away instead of warning
        refresh_only: Keep the session alive but never log out
        inactivity_message: Shown after an inactivity logout (may be empty)
        use_alt_logout_method: Log out by navigating to alt_logout_url
        alt_logout_url: Page that ends the session server-side and redirects
    """
    idle_timeout_seconds: int
    warning_padding_seconds: int
    redirect_url: str
    warning_message: str = config.DEFAULT_MESSAGE
    skip_dialog: bool = False
    refresh_only: bool = False
    inactivity_message: str = config.DEFAULT_INACTIVITY_MESSAGE
    use_alt_logout_method: bool = False
    alt_logout_url: str = config.BASE_PATH + config.ALT_LOGOUT_PATH

    def __post_init__(self):
        if self.idle_timeout_seconds < MIN_TIMEOUT:
            raise ConfigInvalid(
                "Idle timeout must be at least 60 seconds",
                {"idle_timeout_seconds": self.idle_timeout_seconds}
            )
        if self.warning_padding_seconds < 0:
            raise ConfigInvalid(
                "Warning padding cannot be negative",
                {"warning_padding_seconds": self.warning_padding_seconds}
            )
        if not self.redirect_url.startswith("/"):
            raise ConfigInvalid(
                "Redirect URL must begin with a '/'",
                {"redirect_url": self.redirect_url}
            )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeoutPolicy":
        fields = cls.__dataclass_fields__
        try:
            return cls(**{k: v for k, v in data.items() if k in fields})
        except TypeError as e:
            raise ConfigInvalid(f"Incomplete timeout policy: {e}") from e


class AutologoutSettings(BaseModel):
    """Site-wide autologout settings, as saved by the administration form."""

    model_config = ConfigDict(extra="ignore")

    timeout: int = config.DEFAULT_TIMEOUT
    max_timeout: int = config.DEFAULT_MAX_TIMEOUT
    padding: int = config.DEFAULT_PADDING
    role_logout: bool = False
    role_timeouts: Dict[str, int] = Field(default_factory=dict)
    redirect_url: str = config.DEFAULT_REDIRECT_URL
    no_dialog: bool = False
    use_alt_logout_method: bool = False
    message: str = config.DEFAULT_MESSAGE
    inactivity_message: str = config.DEFAULT_INACTIVITY_MESSAGE
    enforce_admin: bool = False

    @model_validator(mode="after")
    def _check_ranges(self) -> "AutologoutSettings":
        if self.max_timeout < MIN_TIMEOUT:
            raise ValueError("The max timeout must be at least 60 seconds")
        if not MIN_TIMEOUT <= self.timeout <= self.max_timeout:
            raise ValueError(
                f"The timeout must be an integer greater than 60 and less then {self.max_timeout}"
            )
        if self.padding < 0:
            raise ValueError("The timeout padding cannot be negative")
        for role, value in self.role_timeouts.items():
            if value != 0 and not MIN_TIMEOUT <= value <= self.max_timeout:
                raise ValueError(
                    f"{role} role timeout must be an integer greater than 60, "
                    f"less then {self.max_timeout} or 0 to disable autologout for that role"
                )
        if not self.redirect_url.startswith("/"):
            raise ValueError(
                f"The user-entered string {self.redirect_url} must begin with a '/'"
            )
        return self


def validate_settings(data: Dict[str, Any]) -> AutologoutSettings:
    """
    Validate raw settings values.

    Raises:
        ConfigInvalid: with the pydantic error list in details
    """
    try:
        return AutologoutSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigInvalid(
            "Invalid autologout settings",
            {"errors": [err["msg"] for err in e.errors()]}
        ) from e


def load_settings(path: Optional[str] = None) -> AutologoutSettings:
    """Load settings from a JSON file; defaults apply when the file is absent."""
    path = path or config.SETTINGS_FILE
    if not os.path.exists(path):
        logger.debug("Settings file %s not found, using defaults", path)
        return AutologoutSettings()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        raise ConfigInvalid(f"Cannot read settings file {path}: {e}") from e
    return validate_settings(data)


def resolve_timeout(settings: AutologoutSettings, roles: Iterable[str]) -> int:
    """
    Timeout for a user holding the given roles.

    With role timeouts enabled the lowest timeout among the user's configured
    roles wins; 0 means the user is never logged out.
    """
    if settings.role_logout:
        configured = [
            settings.role_timeouts[role]
            for role in roles
            if role in settings.role_timeouts
        ]
        if configured:
            return min(configured)
    return settings.timeout


def resolve_policy(
    settings: AutologoutSettings,
    roles: Iterable[str] = (),
    refresh_only: bool = False,
    admin_page: bool = False
) -> Optional[TimeoutPolicy]:
    """
    Build the policy for one session.

    Returns:
        TimeoutPolicy, or None when autologout does not apply (role timeout
        of 0, or an administration page without enforcement)
    """
    if admin_page and not settings.enforce_admin:
        return None

    timeout = resolve_timeout(settings, roles)
    if timeout == 0:
        return None

    return TimeoutPolicy(
        idle_timeout_seconds=timeout,
        warning_padding_seconds=settings.padding,
        redirect_url=settings.redirect_url,
        warning_message=settings.message,
        skip_dialog=settings.no_dialog,
        refresh_only=refresh_only,
        inactivity_message=settings.inactivity_message,
        use_alt_logout_method=settings.use_alt_logout_method,
    )
