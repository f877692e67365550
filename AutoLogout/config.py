"""
Configuration module for AutoLogout application.
Stores server settings and the defaults of the autologout settings.
"""

import os
from typing import Dict, Any


class Config:
    """Application configuration class."""

    # Session token signing
    JWT_SECRET = os.environ.get("JWT_SECRET", "default-secret-key-change-in-production")
    JWT_ALGORITHM = "HS256"

    # Server Configuration
    DEFAULT_HOST = os.environ.get("AUTOLOGOUT_HOST", "localhost")
    DEFAULT_API_PORT = int(os.environ.get("AUTOLOGOUT_PORT", "8766"))
    BASE_PATH = "/"

    # Client Configuration
    API_TIMEOUT_SECONDS = float(os.environ.get("AUTOLOGOUT_API_TIMEOUT", "30"))

    # Administration output (validated settings, JSON)
    SETTINGS_FILE = os.environ.get("AUTOLOGOUT_SETTINGS", "autologout_settings.json")

    # Autologout defaults
    DEFAULT_TIMEOUT = 1800
    DEFAULT_MAX_TIMEOUT = 172800
    DEFAULT_PADDING = 20
    DEFAULT_REDIRECT_URL = "/user/login"
    DEFAULT_MESSAGE = "Your session is about to expire. Do you want to reset it?"
    DEFAULT_INACTIVITY_MESSAGE = "You have been logged out due to inactivity."
    DIALOG_TITLE = "Session expiring"

    # Paths of the autologout endpoints, relative to BASE_PATH
    TIME_LEFT_PATH = "autologout_ajax_get_time_left"
    SET_LAST_PATH = "autologout_ahah_set_last"
    LOGOUT_PATH = "autologout_ahah_logout"
    ALT_LOGOUT_PATH = "autologout_alt_logout"

    @classmethod
    def get_config(cls) -> Dict[str, Any]:
        """Get all configuration values as a dictionary."""
        return {
            "JWT_SECRET": cls.JWT_SECRET,
            "JWT_ALGORITHM": cls.JWT_ALGORITHM,
            "DEFAULT_HOST": cls.DEFAULT_HOST,
            "DEFAULT_API_PORT": cls.DEFAULT_API_PORT,
            "BASE_PATH": cls.BASE_PATH,
            "API_TIMEOUT_SECONDS": cls.API_TIMEOUT_SECONDS,
            "SETTINGS_FILE": cls.SETTINGS_FILE,
            "DEFAULT_TIMEOUT": cls.DEFAULT_TIMEOUT,
            "DEFAULT_MAX_TIMEOUT": cls.DEFAULT_MAX_TIMEOUT,
            "DEFAULT_PADDING": cls.DEFAULT_PADDING,
            "DEFAULT_REDIRECT_URL": cls.DEFAULT_REDIRECT_URL,
        }


# Create config instance
config = Config()
