"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from offline_shell.exceptions import ConfigurationError
from offline_shell.models.config import DEFAULT_SEED_PATHS, ShellConfig

log = logging.getLogger(__name__)

_LIST_KEYS = {"seed_paths"}


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> ShellConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated ShellConfig object.

        Raises:
            ConfigurationError: If the config file is missing, invalid, or validation
            fails.
        """
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'. "
                "Please run 'offline-shell init' first."
            )

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        if self._migrate_if_needed():
            log.info(
                "[yellow]Configuration file was updated with new default values."
                "[/yellow]"
            )

        try:
            config_from_file = self._get_config_as_dict()
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

        # Override with CLI options
        if cli_options:
            config_from_file.update(cli_options)

        try:
            config_dir = self.config_file_path.parent
            return ShellConfig(**config_from_file, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save. Must contain 'origin'.
        """
        try:
            validated = ShellConfig(**settings)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings:\n{e}") from e

        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}
        for key in sorted(ShellConfig.get_ini_keys()):
            config["DEFAULT"][key] = self._to_ini_value(getattr(validated, key))

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    @staticmethod
    def _to_ini_value(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, list):
            return ",".join(map(str, value))
        return str(value)

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        values: dict[str, Any] = {
            "origin": section.get("origin", ""),
            "cache_prefix": section.get("cache_prefix", "app"),
            "version": section.get("version", "1"),
            "seed_paths": [
                p.strip()
                for p in section.get("seed_paths", ",".join(DEFAULT_SEED_PATHS)).split(",")
                if p.strip()
            ],
            "store": section.get("store", "file"),
            "cache_dir": section.get("cache_dir", ""),
            "sync_tag": section.get("sync_tag", ""),
            "log_dir": section.get("log_dir", ""),
            "host": section.get("host", "127.0.0.1"),
            "port": section.getint("port", 8080),
            "fetch_timeout": section.getfloat("fetch_timeout", 30.0),
            "max_connections": section.getint("max_connections", 32),
            "circuit_failure_threshold": section.getint("circuit_failure_threshold", 5),
            "circuit_recovery_timeout": section.getint("circuit_recovery_timeout", 30),
        }
        return values

    def get_raw_values(self) -> dict[str, str]:
        """Returns the INI values as written, for display."""
        self._parser.read(self.config_file_path, encoding="utf-8")
        return dict(self._parser["DEFAULT"])

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        origin = self._parser["DEFAULT"].get("origin", "")
        try:
            defaults = ShellConfig(origin=origin)
        except ValidationError:
            # Nothing sensible to migrate against; validation will report it
            return False

        config_section = self._parser["DEFAULT"]
        needs_saving = False
        for key in ShellConfig.get_ini_keys():
            if key in config_section:
                continue
            if key == "sync_tag":
                # Derived from cache_prefix at load time
                config_section[key] = ""
            else:
                config_section[key] = self._to_ini_value(getattr(defaults, key))
            needs_saving = True
            log.debug(
                f"Migrating config: added missing key '{key}' with "
                f"value '{config_section[key]}'."
            )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
