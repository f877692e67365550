"""
Logging system for AutoLogout.

Library modules log through `logging.getLogger(__name__)` and never install
handlers; entry points configure the root logger once:

    from AutoLogout.core.logging import auto_configure, get_logger

    auto_configure()                  # AUTOLOGOUT_ENV=development|production|testing
    logger = get_logger(__name__)
    logger.info("Session controller attached")

Session transitions are logged by `AutoLogout.core.controller` at INFO,
ignored events and timer arming at DEBUG, server failures at INFO/WARNING.
"""

import json
import logging
import logging.handlers
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

LOG_FILE_NAME = "autologout.log"
ERROR_LOG_FILE_NAME = "autologout_errors.log"


@dataclass
class LogConfig:
    """
    Configuration for the logging system.

    Attributes:
        level: Minimum log level name
        log_dir: Directory for log files
        console_output: Log to stdout
        file_output: Log to rotating files in log_dir
        json_output: Use JsonFormatter for the file handlers
        max_bytes: Size of a log file before rotation
        backup_count: Rotated files to keep
        format_string: Custom format for log lines
        date_format: Format of asctime
        component_levels: Logger name -> level name overrides
    """
    level: str = "INFO"
    log_dir: str = "./logs"
    console_output: bool = True
    file_output: bool = True
    json_output: bool = False
    max_bytes: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    format_string: Optional[str] = None
    date_format: str = "%Y-%m-%d %H:%M:%S"
    component_levels: Dict[str, str] = field(default_factory=dict)


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name on terminals."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt: str, datefmt: str = None, use_colors: bool = True):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and sys.platform != 'win32' and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors or record.levelname not in self.COLORS:
            return super().format(record)
        original = record.levelname
        record.levelname = f"{self.COLORS[original]}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class JsonFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }
        if record.exc_info:
            data['exception'] = self.formatException(record.exc_info)
        if hasattr(record, 'extra_data'):
            data.update(record.extra_data)
        return json.dumps(data, default=str)


def get_default_format() -> str:
    return "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_detailed_format() -> str:
    return (
        "%(asctime)s - %(name)s - %(levelname)s - "
        "[%(filename)s:%(lineno)d - %(funcName)s] - %(message)s"
    )


def _level(name: Union[str, int]) -> int:
    if isinstance(name, int):
        return name
    return getattr(logging, name.upper())


class LoggingManager:
    """
    Process-wide owner of the root logger's handlers.

    Reconfiguring replaces the handlers installed by the previous call.
    """

    _instance: Optional['LoggingManager'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._config = None
            cls._instance._handlers = []
        return cls._instance

    @property
    def config(self) -> Optional[LogConfig]:
        return self._config

    def configure(self, config: LogConfig) -> None:
        self._config = config
        level = _level(config.level)

        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        for handler in self._handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self._handlers: List[logging.Handler] = []

        if config.console_output:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            console_handler.setFormatter(
                ColoredFormatter(config.format_string or get_default_format(), config.date_format)
            )
            self.add_handler(console_handler)

        if config.file_output:
            Path(config.log_dir).mkdir(parents=True, exist_ok=True)
            if config.json_output:
                formatter = JsonFormatter()
            else:
                formatter = logging.Formatter(
                    config.format_string or get_detailed_format(), config.date_format
                )

            file_handler = logging.handlers.RotatingFileHandler(
                os.path.join(config.log_dir, LOG_FILE_NAME),
                maxBytes=config.max_bytes,
                backupCount=config.backup_count,
                encoding='utf-8'
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            self.add_handler(file_handler)

            error_handler = logging.handlers.RotatingFileHandler(
                os.path.join(config.log_dir, ERROR_LOG_FILE_NAME),
                maxBytes=config.max_bytes,
                backupCount=config.backup_count,
                encoding='utf-8'
            )
            error_handler.setLevel(logging.ERROR)
            error_handler.setFormatter(formatter)
            self.add_handler(error_handler)

        for component, component_level in config.component_levels.items():
            logging.getLogger(component).setLevel(_level(component_level))

        logging.getLogger(__name__).debug("Logging configured with level %s", config.level)

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)

    def set_level(self, level: Union[str, int]) -> None:
        level = _level(level)
        logging.getLogger().setLevel(level)
        for handler in self._handlers:
            if handler.level != logging.ERROR:
                handler.setLevel(level)

    def add_handler(self, handler: logging.Handler) -> None:
        logging.getLogger().addHandler(handler)
        self._handlers.append(handler)

    def shutdown(self) -> None:
        logging.shutdown()


_logging_manager = LoggingManager()


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (typically for __name__)."""
    return _logging_manager.get_logger(name)


def configure_logging(config: LogConfig) -> None:
    """Configure the logging system."""
    _logging_manager.configure(config)


def get_logging_manager() -> LoggingManager:
    return _logging_manager


def create_development_config() -> LogConfig:
    return LogConfig(
        level="DEBUG",
        log_dir="./logs/dev",
        max_bytes=5 * 1024 * 1024,
        backup_count=3,
        format_string=get_detailed_format(),
        component_levels={
            "aiohttp": "WARNING",
            "asyncio": "WARNING",
            "uvicorn.access": "INFO",
        }
    )


def create_production_config() -> LogConfig:
    return LogConfig(
        level="INFO",
        log_dir="./logs/prod",
        console_output=False,
        json_output=True,
        max_bytes=50 * 1024 * 1024,
        backup_count=10,
        component_levels={
            "aiohttp": "ERROR",
            "uvicorn.access": "WARNING",
        }
    )


def create_testing_config() -> LogConfig:
    return LogConfig(
        level="DEBUG",
        file_output=False,
        format_string="%(levelname)s - %(name)s - %(message)s",
        component_levels={
            "asyncio": "WARNING",
        }
    )


def auto_configure(env: Optional[str] = None) -> None:
    """
    Configure logging for an environment.

    Args:
        env: development, production or testing (and their short forms);
             read from AUTOLOGOUT_ENV when omitted
    """
    if env is None:
        env = os.environ.get("AUTOLOGOUT_ENV", "development").lower()

    factories = {
        "development": create_development_config,
        "dev": create_development_config,
        "production": create_production_config,
        "prod": create_production_config,
        "testing": create_testing_config,
        "test": create_testing_config,
    }
    configure_logging(factories.get(env, create_development_config)())
    get_logger(__name__).info("Logging auto-configured for environment: %s", env)


__all__ = [
    'LogConfig',
    'LoggingManager',
    'ColoredFormatter',
    'JsonFormatter',
    'get_logger',
    'configure_logging',
    'get_logging_manager',
    'create_development_config',
    'create_production_config',
    'create_testing_config',
    'auto_configure',
    'get_default_format',
    'get_detailed_format',
]
