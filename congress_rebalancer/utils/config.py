"""Configuration management for Congress Rebalancer.

This module provides simple YAML configuration loading and access, plus the
environment-backed credentials (.env) for the quote provider and email.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from congress_rebalancer.utils.exceptions import ConfigurationError

ROOT_DIR = Path(__file__).parent.parent.parent


class Config:
    """Simple configuration loader and accessor.

    Loads YAML configuration files and provides dict-like access to settings.

    Example:
        >>> config = Config.from_file("config/default.yaml")
        >>> log_level = config.get("logging.level", "INFO")
    """

    def __init__(self, config_dict: dict[str, Any]) -> None:
        """Initialize with configuration dictionary.

        Args:
            config_dict: Configuration data as nested dictionary
        """
        self._config = config_dict

    @classmethod
    def from_file(cls, filepath: str | Path) -> "Config":
        """Load configuration from YAML file.

        Args:
            filepath: Path to YAML configuration file

        Returns:
            Config instance with loaded configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        with open(path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)

        if config_dict is None:
            config_dict = {}

        return cls(config_dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Supports nested keys using dot notation (e.g., "logging.level").

        Args:
            key: Configuration key (supports dot notation for nested keys)
            default: Default value if key not found

        Returns:
            Configuration value or default

        Example:
            >>> config.get("database.path")
            'data/trades.db'
            >>> config.get("missing.key", "fallback")
            'fallback'
        """
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value using dot notation.

        Intermediate sections are created when missing.

        Args:
            key: Configuration key (supports dot notation)
            value: Value to store
        """
        keys = key.split(".")
        section = self._config
        for k in keys[:-1]:
            if not isinstance(section.get(k), dict):
                section[k] = {}
            section = section[k]
        section[keys[-1]] = value


def load_config(filepath: str | Path = None) -> Config:
    """Helper function to load configuration.

    Args:
        filepath: Path to YAML configuration file. If None, uses default path.

    Returns:
        Config instance
    """
    if filepath is None:
        filepath = ROOT_DIR / "config" / "default.yaml"
    return Config.from_file(filepath)


def load_app_config(
    config_file: str | Path = None,
    env_file: str | Path = None,
) -> tuple[Config, dict[str, str | None]]:
    """Load bot configuration from YAML and environment variables.

    The .env file is optional: credentials may come from the process
    environment directly. Missing credentials are not an error here; the
    price oracle and the email dispatcher degrade when theirs are absent.

    Args:
        config_file: Path to YAML file. If None, uses config/default.yaml.
        env_file: Path to .env file. If None, uses .env at the project root.

    Returns:
        Tuple of (Config object, credentials dict)
        where credentials dict contains:
            - alpha_vantage_api_key: Alpha Vantage API key
            - email_user: SMTP login, also used as sender and recipient
            - email_pass: SMTP password

    Raises:
        FileNotFoundError: If config file not found
        ConfigurationError: If DEFAULT_PORTFOLIO_VALUE is not a number

    Example:
        >>> config, creds = load_app_config()
        >>> delay = config.get("price_oracle.request_delay_seconds")
        >>> api_key = creds["alpha_vantage_api_key"]
    """
    if env_file is None:
        env_file = ROOT_DIR / ".env"

    if Path(env_file).exists():
        load_dotenv(env_file)

    config = load_config(config_file)

    portfolio_value = os.getenv("DEFAULT_PORTFOLIO_VALUE")
    if portfolio_value:
        try:
            config.set("portfolio.initial_value", float(portfolio_value))
        except ValueError as e:
            raise ConfigurationError(
                f"DEFAULT_PORTFOLIO_VALUE must be a number, got {portfolio_value!r}"
            ) from e

    credentials = {
        "alpha_vantage_api_key": os.getenv("ALPHA_VANTAGE_API_KEY"),
        "email_user": os.getenv("EMAIL_USER"),
        "email_pass": os.getenv("EMAIL_PASS"),
    }

    return config, credentials
