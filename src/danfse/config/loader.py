import os
import copy
import logging
from typing import Dict, Any, List, Optional

try:
    import tomllib # Python 3.11+
except ImportError:
    import tomli as tomllib # Fallback for Python < 3.11

from pydantic import ValidationError

from .models import RenderSettings

logger = logging.getLogger(__name__)


class ConfigManager:
    """Loads ``danfse.toml`` and turns it into :class:`RenderSettings`.

    The file has a ``[render]`` table with the document settings and optional
    ``[municipality]`` and ``[payer_city]`` tables.
    """

    def __init__(self, config_file_path: str = "danfse.toml"):
        self.config_file_path = config_file_path
        self._raw_config: Dict[str, Any] = self._load_raw_config()

    def _load_raw_config(self) -> Dict[str, Any]:
        if not os.path.exists(self.config_file_path):
            # Every setting has a default, so a missing file only means a plainer header.
            logger.info(
                "Configuration file '%s' not found. Using default settings.",
                self.config_file_path,
            )
            return {}
        try:
            with open(self.config_file_path, "rb") as f:
                return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Error decoding TOML file '{self.config_file_path}': {e}") from e

    def _deep_merge_dicts(self, base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        merged = copy.deepcopy(base)
        for key, value in update.items():
            if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
                merged[key] = self._deep_merge_dicts(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _set_nested_value(self, data_dict: Dict[str, Any], path_str: str, value_str: str) -> None:
        keys = path_str.split('.')
        current_level = data_dict
        for key in keys[:-1]:
            current_level = current_level.setdefault(key, {})
            if not isinstance(current_level, dict):
                # e.g. render.title.subfield=X when render.title is a string
                raise ValueError(f"Cannot set nested value: '{key}' in path '{path_str}' is not a dictionary.")

        # All settings are strings or paths, so no type coercion here
        current_level[keys[-1]] = value_str

    def _apply_cli_overrides(self, config_dict: Dict[str, Any], overrides: Optional[List[str]]) -> Dict[str, Any]:
        if not overrides:
            return config_dict

        modified_config_dict = copy.deepcopy(config_dict)

        for override_entry in overrides:
            if '=' not in override_entry:
                logger.warning(
                    "Invalid override format '%s'. Skipping. Expected 'path.to.key=value'.",
                    override_entry,
                )
                continue

            path_str, value_str = override_entry.split('=', 1)
            try:
                self._set_nested_value(modified_config_dict, path_str.strip(), value_str.strip())
            except ValueError as e:
                logger.warning(
                    "Could not apply override '%s': %s. Skipping.", override_entry, e
                )

        return modified_config_dict

    def get_render_settings(self, overrides: Optional[List[str]] = None,
                            extra: Optional[Dict[str, Any]] = None) -> RenderSettings:
        """Build the settings for a render.

        Args:
            overrides: ``path.to.key=value`` strings from the command line.
            extra: Values set by dedicated CLI options; they win over the file.

        Raises:
            ValueError: If the merged configuration does not validate.
        """
        raw_config = self._apply_cli_overrides(self._raw_config, overrides)

        current_config = copy.deepcopy(raw_config.get("render", {}))
        for section in ("municipality", "payer_city"):
            if section in raw_config:
                current_config[section] = copy.deepcopy(raw_config[section])

        if extra:
            current_config = self._deep_merge_dicts(current_config, extra)

        try:
            return RenderSettings(**current_config)
        except ValidationError as e:
            raise ValueError(
                f"Invalid configuration in '{self.config_file_path}': {e}"
            ) from e
