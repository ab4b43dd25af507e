"""Configuration loader for Tilly."""

import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from shared.config.env_validator import EnvValidationError, validate_env

BASE_DIR = Path(__file__).parent

TRANSPORTS = ('cookie', 'bearer')


class ConfigError(Exception):
    """Raised when configuration is missing or invalid."""
    pass


class Config:
    """
    Configuration manager for Tilly.

    Loads config.yaml and environment variables, providing a clean interface
    to all configuration values needed by the application.
    """

    def __init__(self, config_path: Optional[str] = None) -> None:
        """
        Initialize configuration.

        Args:
            config_path: Path to config.yaml. If None, looks in same directory as this file.

        Raises:
            ConfigError: If required configuration is missing or invalid.
        """
        # Bot-level .env first, then whatever is in the working directory
        load_dotenv(BASE_DIR / '.env', override=False)
        load_dotenv(override=False)

        if config_path is None:
            config_path = BASE_DIR / "config.yaml"
        else:
            config_path = Path(config_path)

        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            self._config = yaml.safe_load(f) or {}

        self._validate_config()

    def _validate_config(self) -> None:
        """Validate that all required configuration is present."""
        for key in ['name', 'version', 'server', 'auth']:
            if key not in self._config:
                raise ConfigError(f"Missing required config key: {key}")

        if self.auth_transport not in TRANSPORTS:
            raise ConfigError(
                f"auth.transport must be one of {', '.join(TRANSPORTS)}, "
                f"got '{self.auth_transport}'"
            )

        try:
            validate_env(BASE_DIR / '.env.example')
        except EnvValidationError as e:
            raise ConfigError(str(e)) from e

    # Application metadata
    @property
    def name(self) -> str:
        return self._config['name']

    @property
    def version(self) -> str:
        return self._config['version']

    @property
    def description(self) -> str:
        return self._config.get('description', '')

    @property
    def emoji(self) -> str:
        return self._config.get('emoji', '✅')

    # Server configuration
    @property
    def server_host(self) -> str:
        return self._config['server'].get('host', '0.0.0.0')

    @property
    def server_port(self) -> int:
        return int(self._config['server'].get('port', 8030))

    @property
    def log_level(self) -> str:
        return self._config['server'].get('log_level', 'INFO').upper()

    # Authentication
    @property
    def auth_transport(self) -> str:
        """'cookie' or 'bearer'; one per deployment."""
        return self._config['auth'].get('transport', 'cookie')

    @property
    def oauth_provider(self) -> str:
        return self._config['auth'].get('provider', 'google')

    @property
    def csrf_header(self) -> str:
        return self._config['auth'].get('csrf_header', 'X-Requested-With')

    @property
    def csrf_value(self) -> str:
        return self._config['auth'].get('csrf_value', 'XMLHttpRequest')

    # Session cookie
    @property
    def refresh_margin_seconds(self) -> int:
        """Refresh the provider session when it expires within this many seconds."""
        return int(self._config.get('session', {}).get('refresh_margin_seconds', 90))

    @property
    def session_lifetime_days(self) -> int:
        return int(self._config.get('session', {}).get('lifetime_days', 7))

    @property
    def session_cookie_secure(self) -> bool:
        return bool(self._config.get('session', {}).get('cookie_secure', True))

    # Supabase
    @property
    def supabase_url(self) -> str:
        return os.getenv('SUPABASE_URL', '').rstrip('/')

    @property
    def supabase_publishable_key(self) -> str:
        return os.getenv('SUPABASE_PUBLISHABLE_KEY', '')

    @property
    def supabase_secret_key(self) -> str:
        return os.getenv('SUPABASE_SECRET_KEY', '')

    @property
    def supabase_timeout(self) -> int:
        return int(self._config.get('supabase', {}).get('timeout', 10))

    # Tasks
    @property
    def title_max_length(self) -> int:
        return int(self._config.get('tasks', {}).get('title_max_length', 200))

    # Security
    @property
    def flask_secret_key(self) -> str:
        return os.getenv('FLASK_SECRET_KEY', '')

    @property
    def debug(self) -> bool:
        return os.getenv('FLASK_DEBUG', 'false').lower() == 'true'
