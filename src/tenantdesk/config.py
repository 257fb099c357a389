"""
Configuration management for TenantDesk.

Builds the runtime configuration from defaults, an optional JSON config file
and ``TENANTDESK_*`` environment variables.
"""

import json
import logging
import os
import secrets
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

# List of known weak/default JWT secrets that should be rejected
WEAK_JWT_SECRETS = {
    "your-secret-key-change-in-production",
    "secret",
    "key",
    "password",
    "jwt-secret",
    "secret-key",
    "change-me",
    "default",
    "test",
    "development",
    "dev",
    "demo",
    "example",
    "sample",
}

ENV_PREFIX = "TENANTDESK_"


def _validate_jwt_secret_key(jwt_secret_key: str) -> None:
    """Validate JWT secret key security and reject weak/default keys.

    Args:
        jwt_secret_key: The JWT secret key to validate

    Raises:
        SystemExit: If the secret key is weak, default, or insecure
    """
    if not jwt_secret_key:
        logging.critical(
            "JWT secret key is empty - this is a critical security vulnerability"
        )
        sys.exit(1)

    if len(jwt_secret_key) < 32:
        logging.critical(
            f"JWT secret key is too short ({len(jwt_secret_key)} chars). "
            f"Minimum 32 characters required for security."
        )
        sys.exit(1)

    if jwt_secret_key.lower() in WEAK_JWT_SECRETS:
        logging.critical(
            f"JWT secret key '{jwt_secret_key}' is a known weak/default secret. "
            f"Set {ENV_PREFIX}JWT_SECRET_KEY environment variable with a secure key."
        )
        sys.exit(1)

    unique_chars = len(set(jwt_secret_key))
    if unique_chars < 8:
        logging.critical(
            f"JWT secret key has insufficient entropy ({unique_chars} unique characters). "
            f"Use a cryptographically secure random key."
        )
        sys.exit(1)

    logging.debug(
        f"JWT secret key validation passed ({len(jwt_secret_key)} chars, {unique_chars} unique)"
    )


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logging.warning(f"Ignoring non-integer value for {ENV_PREFIX}{name}: {raw!r}")
        return default


@dataclass
class DatabaseConfig:
    """Database configuration."""

    url: str = "sqlite:///tenantdesk.db"
    echo: bool = False
    log_queries: bool = False  # Log query timings (slow queries as warnings)


@dataclass
class ServerConfig:
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    auto_reload: bool = False
    workers: int = 1
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://127.0.0.1:5173", "http://localhost:5173"]
    )


@dataclass
class AppConfig:
    """Main application configuration."""

    app_name: str = "TenantDesk"
    description: str = "Multi-tenant account administration backend"

    # JWT Configuration - secret key is generated at runtime when not provided
    jwt_secret_key: str = ""
    jwt_access_token_expires_minutes: int = 15
    jwt_refresh_token_expires_days: int = 30

    password_hash_iterations: int = 120_000

    # Request handling
    default_page_limit: int = 50
    max_page_limit: int = 200
    max_body_bytes: int = 1_048_576  # 1 MiB

    impersonation_ttl_minutes: int = 60

    # Login rate limiting
    rate_limit_login_requests: int = 10
    rate_limit_window_seconds: int = 60
    rate_limit_max_failures: int = 5
    rate_limit_failure_penalty_minutes: int = 15
    # Reverse proxies allowed to set X-Forwarded-For / X-Real-IP
    trusted_proxies: List[str] = field(default_factory=list)

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False
    log_dir: str = "logs"


@dataclass
class TenantDeskConfig:
    """Complete configuration for TenantDesk."""

    app: AppConfig
    server: ServerConfig
    database: DatabaseConfig

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "app": asdict(self.app),
            "server": asdict(self.server),
            "database": asdict(self.database),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TenantDeskConfig":
        """Create from dictionary."""
        return cls(
            app=AppConfig(**data.get("app", {})),
            server=ServerConfig(**data.get("server", {})),
            database=DatabaseConfig(**data.get("database", {})),
        )


class ConfigManager:
    """Manages configuration loading and environment overrides."""

    def __init__(self):
        self.config_file: Optional[Path] = None
        self.config: Optional[TenantDeskConfig] = None

    def get_config_file_path(self) -> Optional[Path]:
        """Get the path for the JSON config file, if one is configured."""
        raw = os.getenv(ENV_PREFIX + "CONFIG_FILE")
        return Path(raw) if raw else None

    def _read_file(self) -> Dict[str, Any]:
        self.config_file = self.get_config_file_path()
        if self.config_file is None or not self.config_file.exists():
            return {}

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            logging.info(f"Loaded configuration from {self.config_file}")
            return data
        except (OSError, ValueError) as e:
            logging.warning(f"Failed to load config from {self.config_file}: {e}")
            return {}

    def _apply_environment(self, config: TenantDeskConfig) -> None:
        """Apply TENANTDESK_* environment overrides in place."""
        db_url = os.getenv(ENV_PREFIX + "DATABASE_URL") or os.getenv("DATABASE_URL")
        if db_url:
            config.database.url = db_url
        config.database.log_queries = _env_bool("LOG_QUERIES", config.database.log_queries)

        config.server.host = os.getenv(ENV_PREFIX + "HOST", config.server.host)
        config.server.port = _env_int("PORT", config.server.port)
        config.server.debug = _env_bool("DEBUG", config.server.debug)
        origins = os.getenv(ENV_PREFIX + "CORS_ORIGINS")
        if origins:
            config.server.cors_origins = [o.strip() for o in origins.split(",") if o.strip()]

        app = config.app
        app.jwt_access_token_expires_minutes = _env_int(
            "JWT_ACCESS_MINUTES", app.jwt_access_token_expires_minutes
        )
        app.password_hash_iterations = _env_int(
            "PASSWORD_HASH_ITERATIONS", app.password_hash_iterations
        )
        app.max_body_bytes = _env_int("MAX_BODY_BYTES", app.max_body_bytes)
        app.impersonation_ttl_minutes = _env_int(
            "IMPERSONATION_TTL_MINUTES", app.impersonation_ttl_minutes
        )
        proxies = os.getenv(ENV_PREFIX + "TRUSTED_PROXIES")
        if proxies:
            app.trusted_proxies = [p.strip() for p in proxies.split(",") if p.strip()]
        app.log_level = os.getenv(ENV_PREFIX + "LOG_LEVEL", app.log_level).upper()
        app.log_to_file = _env_bool("LOG_TO_FILE", app.log_to_file)
        app.log_dir = os.getenv(ENV_PREFIX + "LOG_DIR", app.log_dir)

        jwt_secret_key = os.getenv(ENV_PREFIX + "JWT_SECRET_KEY")
        if jwt_secret_key:
            app.jwt_secret_key = jwt_secret_key
            logging.info(f"Using JWT secret key from {ENV_PREFIX}JWT_SECRET_KEY")
        elif not app.jwt_secret_key:
            app.jwt_secret_key = secrets.token_urlsafe(64)
            logging.info("Generated new JWT secret key (not from environment)")

    def load_config(self) -> TenantDeskConfig:
        """Build configuration from file and environment."""
        data = self._read_file()
        try:
            config = TenantDeskConfig.from_dict(data)
        except TypeError as e:
            logging.warning(f"Ignoring invalid config file contents: {e}")
            config = TenantDeskConfig.from_dict({})

        self._apply_environment(config)
        _validate_jwt_secret_key(config.app.jwt_secret_key)

        self.config = config
        return config

    def get(self) -> TenantDeskConfig:
        """Return the cached configuration, loading it on first use."""
        if self.config is None:
            self.load_config()
        return self.config

    def reset(self) -> None:
        """Drop the cached configuration so the next access reloads it."""
        self.config = None

    def save_config(self, config: Optional[TenantDeskConfig] = None) -> bool:
        """Save configuration to the configured JSON file."""
        config = config or self.config
        path = self.config_file or self.get_config_file_path()
        if config is None or path is None:
            logging.error("No configuration or config file path to save to")
            return False

        try:
            data = config.to_dict()
            data["app"].pop("jwt_secret_key", None)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            logging.info(f"Saved configuration to {path}")
            return True
        except OSError as e:
            logging.error(f"Failed to save config to {path}: {e}")
            return False

    def validate_config(self) -> List[str]:
        """Validate configuration and return list of warnings."""
        config = self.get()
        issues = []

        if config.app.default_page_limit > config.app.max_page_limit:
            issues.append(
                "default_page_limit is larger than max_page_limit; the max wins"
            )

        db_url = config.database.url
        if db_url.startswith("sqlite:///") and db_url != "sqlite:///:memory:":
            db_dir = Path(db_url.replace("sqlite:///", "")).parent
            if db_dir.exists() and not os.access(db_dir, os.W_OK):
                issues.append(f"Database directory is not writable: {db_dir}")

        if "*" in config.server.cors_origins:
            issues.append("CORS allows any origin; credentials will be rejected by browsers")

        return issues


# Global config manager instance
config_manager = ConfigManager()


def get_config() -> TenantDeskConfig:
    """Get the current configuration."""
    return config_manager.get()


def get_database_url() -> str:
    """Get the database URL."""
    return get_config().database.url


def validate_startup_security() -> None:
    """Validate security configuration at application startup.

    Raises:
        SystemExit: If critical security vulnerabilities are detected
    """
    _validate_jwt_secret_key(get_config().app.jwt_secret_key)
    logging.info("Startup security validation completed successfully")
