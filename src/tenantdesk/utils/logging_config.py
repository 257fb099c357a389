"""
Centralized logging configuration for TenantDesk.
Provides component-specific loggers, optionally with separate log files.
"""

import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from ..config import get_config

DETAILED_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - "
    "%(funcName)s() - %(message)s"
)
SIMPLE_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


class ComponentLogger:
    """Manages component-specific logging."""

    _loggers: Dict[str, logging.Logger] = {}
    _initialized = False
    _log_dir: Optional[Path] = None
    _unified_handler: Optional[logging.Handler] = None

    # Component definitions with their log levels
    COMPONENTS = {
        "api": {"level": logging.INFO, "file": "api.log"},
        "auth": {"level": logging.INFO, "file": "auth.log"},
        "database": {"level": logging.INFO, "file": "database.log"},
        "audit": {"level": logging.INFO, "file": "audit.log"},
        "services": {"level": logging.INFO, "file": "services.log"},
        "main": {"level": logging.INFO, "file": "main.log"},
        "error": {"level": logging.ERROR, "file": "errors.log"},
    }

    @classmethod
    def initialize(cls, log_dir: Optional[str] = None, debug: Optional[bool] = None) -> None:
        """
        Initialize the logging system with component-specific loggers.

        Args:
            log_dir: Directory for log files. Defaults to config.app.log_dir
            debug: Enable debug logging for all components. Defaults to server.debug
        """
        if cls._initialized:
            return

        config = get_config()
        if debug is None:
            debug = config.server.debug
        base_level = logging.DEBUG if debug else getattr(
            logging, config.app.log_level, logging.INFO
        )

        detailed_formatter = logging.Formatter(DETAILED_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        simple_formatter = logging.Formatter(SIMPLE_FORMAT, datefmt="%H:%M:%S")

        if config.app.log_to_file:
            session_dir = datetime.now().strftime("%Y%m%d_%H%M%S")
            cls._log_dir = Path(log_dir or config.app.log_dir) / session_dir
            cls._log_dir.mkdir(parents=True, exist_ok=True)

            cls._unified_handler = logging.handlers.RotatingFileHandler(
                cls._log_dir / "unified.log",
                maxBytes=20 * 1024 * 1024,  # 20MB
                backupCount=3,
                encoding="utf-8",
            )
            cls._unified_handler.setLevel(base_level)
            cls._unified_handler.setFormatter(detailed_formatter)

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(simple_formatter)

        for component_name, component_config in cls.COMPONENTS.items():
            logger = logging.getLogger(f"tenantdesk.{component_name}")
            logger.handlers.clear()
            logger.propagate = False

            level = logging.DEBUG if debug else max(component_config["level"], base_level)
            logger.setLevel(level)

            if cls._log_dir is not None:
                file_handler = logging.handlers.RotatingFileHandler(
                    cls._log_dir / component_config["file"],
                    maxBytes=10 * 1024 * 1024,  # 10MB
                    backupCount=5,
                    encoding="utf-8",
                )
                file_handler.setLevel(level)
                file_handler.setFormatter(detailed_formatter)
                logger.addHandler(file_handler)
                logger.addHandler(cls._unified_handler)
                # Errors always reach the console
                if component_name in ("error", "main"):
                    error_console = logging.StreamHandler(sys.stderr)
                    error_console.setLevel(logging.ERROR)
                    error_console.setFormatter(simple_formatter)
                    logger.addHandler(error_console)
            else:
                logger.addHandler(console_handler)

            cls._loggers[component_name] = logger

        cls._initialized = True

        main_logger = cls._loggers["main"]
        main_logger.debug(
            f"Logging initialized (debug={debug}, log_dir={cls._log_dir or 'console only'})"
        )

    @classmethod
    def _component_for(cls, name: str) -> str:
        """Map a module path such as ``tenantdesk.api.tickets`` to a component."""
        if not name.startswith("tenantdesk"):
            return name

        parts = name.split(".")
        if len(parts) < 2:
            return "main"
        if parts[1] == "api":
            return "api"
        if parts[1] == "auth":
            return "auth"
        if parts[1] in ("db", "repositories"):
            return "database"
        if parts[1] == "services" and parts[-1] == "audit":
            return "audit"
        if parts[1] in ("services", "domain", "core"):
            return "services"
        return "main"

    @classmethod
    def get_logger(cls, component: str) -> logging.Logger:
        """
        Get a logger for a specific component.

        Args:
            component: Component name (api, auth, database, audit, ...)
                      or a module path like 'tenantdesk.api.accounts'

        Returns:
            Logger instance for the component
        """
        if not cls._initialized:
            cls.initialize()

        component = cls._component_for(component)
        logger = cls._loggers.get(component)
        if logger is None:
            cls._create_component_logger(component)
            logger = cls._loggers.get(component, cls._loggers["main"])
        return logger

    @classmethod
    def _create_component_logger(cls, component: str) -> None:
        """Create a component logger on-demand, sharing the main logger's handlers."""
        if component in cls._loggers:
            return

        main_logger = cls._loggers["main"]
        logger = logging.getLogger(f"tenantdesk.{component}")
        logger.handlers.clear()
        logger.propagate = False
        logger.setLevel(main_logger.level)
        for handler in main_logger.handlers:
            logger.addHandler(handler)
        cls._loggers[component] = logger

    @classmethod
    def log_exception(
        cls, component: str, exc: BaseException, context: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log an exception with context to both component and error logs.

        Args:
            component: Component where the exception occurred
            exc: The exception to log
            context: Additional context information
        """
        component_logger = cls.get_logger(component)
        error_logger = cls.get_logger("error")

        context_str = ""
        if context:
            context_str = " | Context: " + ", ".join(f"{k}={v}" for k, v in context.items())

        component_logger.error(
            f"Exception in {component}: {type(exc).__name__}: {exc}{context_str}",
            exc_info=exc,
        )
        if error_logger is not component_logger:
            error_logger.error(
                f"[{component}] {type(exc).__name__}: {exc}{context_str}", exc_info=exc
            )

    @classmethod
    def get_log_directory(cls) -> Optional[Path]:
        """Get the current log directory path."""
        return cls._log_dir


# Convenience functions
def get_logger(component: str) -> logging.Logger:
    """Get a logger for a component or module path (``get_logger(__name__)``)."""
    return ComponentLogger.get_logger(component)


def initialize_logging(log_dir: Optional[str] = None, debug: Optional[bool] = None) -> None:
    """Initialize the logging system."""
    ComponentLogger.initialize(log_dir=log_dir, debug=debug)


def log_exception(
    component: str, exc: BaseException, context: Optional[Dict[str, Any]] = None
) -> None:
    """Log an exception with context."""
    ComponentLogger.log_exception(component, exc, context)


def get_log_directory() -> Optional[Path]:
    """Get the current log directory path."""
    return ComponentLogger.get_log_directory()
