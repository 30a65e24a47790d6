"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from syncraft_updater.exceptions import ConfigurationError
from syncraft_updater.models.config import UpdaterConfig

log = logging.getLogger(__name__)


class ConfigManager:
    """Handles all operations related to the updater's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser()

    def load_config(self, cli_options: dict[str, Any] | None = None) -> UpdaterConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        The file is optional: without it the defaults apply.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated UpdaterConfig object.

        Raises:
            ConfigurationError: If the config file is unreadable or validation fails.
        """
        config_from_file: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e

            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            config_from_file = self._get_config_as_dict()
        else:
            log.debug(f"No configuration file at '{self.config_file_path}', using defaults.")

        # Override with CLI options
        if cli_options:
            config_from_file.update(cli_options)

        try:
            config_dir = self.config_file_path.parent
            return UpdaterConfig(**config_from_file, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any] | None = None) -> None:
        """
        Creates and saves a new configuration file holding every setting.

        Args:
            settings: Values to store instead of the defaults.
        """
        config = configparser.ConfigParser()
        config["DEFAULT"] = {}
        settings = settings or {}

        defaults = UpdaterConfig()
        for key in sorted(UpdaterConfig.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key))
            config["DEFAULT"][key] = self._to_ini(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section, converting each value to its field's type."""
        section = self._parser["DEFAULT"]
        getters = {
            bool: section.getboolean,
            int: section.getint,
            float: section.getfloat,
        }
        values: dict[str, Any] = {}
        for key in sorted(UpdaterConfig.get_ini_keys()):
            if key not in section:
                continue
            getter = getters.get(UpdaterConfig.model_fields[key].annotation, section.get)
            try:
                values[key] = getter(key)
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for '{key}' in configuration file: {e}"
                ) from e
        return values

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = UpdaterConfig()
        needs_saving = False

        config_section = self._parser["DEFAULT"]

        for key in sorted(UpdaterConfig.get_ini_keys()):
            if key not in config_section:
                config_section[key] = self._to_ini(getattr(defaults, key))
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

    @staticmethod
    def _to_ini(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)
