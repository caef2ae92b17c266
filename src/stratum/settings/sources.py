"""Custom pydantic-settings source for stratum's own settings.

This module provides:

- LayeredYamlSettingsSource: a pydantic-settings source that loads
  layered YAML files and merges them with LayerModel.merge, the same
  recursive merge the engine applies to configuration layers.

Settings layers (in precedence order, highest first):
1. Environment variables (handled by pydantic-settings)
2. Project settings: .stratum/settings.yaml in the project root
3. User settings: ~/.config/stratum/settings.yaml (or STRATUM_CONFIG_DIR)
4. Built-in defaults: bundled defaults/settings.yaml

Environment variables:
- STRATUM_CONFIG_DIR: Override user settings directory (default: ~/.config/stratum)
"""

import collections.abc as _abc
import logging as _logging
import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic.fields as _pydantic_fields
import pydantic_settings as _pydantic_settings
import yaml as _yaml

import stratum.model as model

_logger = _logging.getLogger(__name__)

# Environment variable for overriding the user settings directory
ENV_CONFIG_DIR = "STRATUM_CONFIG_DIR"

SETTINGS_FILE_NAME = "settings.yaml"
PROJECT_DIR_NAME = ".stratum"


class SettingsFileError(Exception):
    """Error loading or parsing a settings file."""

    def __init__(self, path: _pathlib.Path, message: str) -> None:
        self.path = path
        super().__init__(f"Error in settings file {path}: {message}")


class LayeredYamlSettingsSource(_pydantic_settings.PydanticBaseSettingsSource):
    """
    Settings source that loads layered YAML files.

    Flow:
        1. Load each YAML file into a dict
        2. Wrap each dict in a LayerModel and merge them, later layers
           winning (mappings merge, everything else replaces)
        3. Return the merged dict to pydantic-settings for validation

    Layers (lowest to highest precedence):
    1. Built-in defaults (src/stratum/settings/defaults/settings.yaml)
    2. User settings (~/.config/stratum/settings.yaml)
    3. Project settings (.stratum/settings.yaml)
    """

    def __init__(
        self,
        settings_cls: type[_pydantic_settings.BaseSettings],
        project_root: _pathlib.Path | None = None,
        *,
        user_config_path: _pathlib.Path | None = None,
        builtin_config_path: _pathlib.Path | None = None,
    ) -> None:
        """
        Initialize the settings source.

        Args:
            settings_cls: The Settings class being populated.
            project_root: Optional project root for project-level settings.
            user_config_path: Override path for the user settings file.
                If not provided, uses STRATUM_CONFIG_DIR or the XDG path.
            builtin_config_path: Override path for builtin defaults.
                If not provided, uses the bundled defaults/settings.yaml.
        """
        super().__init__(settings_cls)
        self._project_root = project_root
        self._user_config_path = user_config_path
        self._builtin_config_path = builtin_config_path
        # (layer name, path) of layers actually loaded, lowest precedence first
        self._loaded_layers: list[tuple[str, _pathlib.Path]] = []
        self._merged = self._load_layers()

    def _load_layers(self) -> model.LayerModel:
        """Load the settings files and merge them, lowest precedence first."""
        layers: list[model.LayerModel] = []
        layer_info: list[tuple[str, _pathlib.Path]] = []

        # Built-in defaults are required; a missing or empty file is an
        # installation problem
        builtin_path = self._get_builtin_config_path()
        if not builtin_path.exists():
            raise SettingsFileError(
                builtin_path,
                "built-in defaults not found (possible installation problem)",
            )
        builtin_content = self._load_yaml_file(builtin_path)
        if not builtin_content:
            raise SettingsFileError(
                builtin_path,
                "built-in defaults file is empty (possible installation problem)",
            )
        layers.append(model.LayerModel(builtin_content))
        layer_info.append(("built-in", builtin_path))

        user_path = self._get_user_config_path()
        if user_path.exists():
            content = self._load_yaml_file(user_path)
            if content:
                layers.append(model.LayerModel(content))
                layer_info.append(("user", user_path))

        if self._project_root:
            project_path = get_project_config_path(self._project_root)
            if project_path.exists():
                content = self._load_yaml_file(project_path)
                if content:
                    layers.append(model.LayerModel(content))
                    layer_info.append(("project", project_path))

        self._loaded_layers = layer_info
        _logger.debug("Loaded settings layers: %s", layer_info)
        return layers[0].merge(*layers[1:])

    def get_loaded_layers(self) -> list[tuple[str, _pathlib.Path]]:
        """
        Get the layers that were actually loaded.

        Returns:
            List of (layer_name, path) tuples, lowest precedence first.
        """
        return list(self._loaded_layers)

    def get_layer_paths(self) -> list[tuple[str, _pathlib.Path, bool]]:
        """
        Get info about all settings layers.

        Returns:
            List of (layer_name, path, exists) tuples, highest precedence
            first (project, user, builtin).
        """
        layers: list[tuple[str, _pathlib.Path, bool]] = []

        if self._project_root:
            project_path = get_project_config_path(self._project_root)
            layers.append(("project", project_path, project_path.exists()))

        user_path = self._get_user_config_path()
        layers.append(("user", user_path, user_path.exists()))

        builtin_path = self._get_builtin_config_path()
        layers.append(("built-in", builtin_path, builtin_path.exists()))

        return layers

    def _get_builtin_config_path(self) -> _pathlib.Path:
        if self._builtin_config_path is not None:
            return self._builtin_config_path
        return get_builtin_defaults_path()

    def _get_user_config_path(self) -> _pathlib.Path:
        if self._user_config_path is not None:
            return self._user_config_path
        return get_user_config_path()

    def _load_yaml_file(
        self,
        path: _pathlib.Path,
    ) -> dict[str, _typing.Any] | None:
        """
        Load a YAML file and return its contents as a dict.

        Returns:
            Parsed YAML contents, or None if the file is empty.

        Raises:
            SettingsFileError: If the file cannot be read, is malformed YAML,
                or is not a mapping at the top level.
        """
        try:
            content = path.read_text(encoding="utf-8")
        except PermissionError as e:
            raise SettingsFileError(path, f"permission denied: {e}") from e
        except OSError as e:
            raise SettingsFileError(path, f"cannot read file: {e}") from e

        try:
            parsed = _yaml.safe_load(content)
        except _yaml.YAMLError as e:
            raise SettingsFileError(path, f"invalid YAML: {e}") from e

        if parsed is None:
            return None

        if not isinstance(parsed, dict):
            type_name = type(parsed).__name__
            raise SettingsFileError(
                path,
                f"settings must be a YAML mapping (dict), got {type_name}",
            )

        return parsed

    def get_field_value(
        self,
        field: _pydantic_fields.FieldInfo,  # noqa: ARG002 - required by pydantic-settings interface
        field_name: str,
    ) -> tuple[_typing.Any, str, bool]:
        """
        Get the merged value for one top-level field.

        Returns:
            Tuple of (value, field_name, is_complex).
        """
        value = self._merged.get_value(field_name)
        if value is None:
            return None, field_name, False
        return value, field_name, isinstance(value, (_abc.Mapping, list))

    def __call__(self) -> dict[str, _typing.Any]:
        """
        Return the merged settings as a plain dict.

        Unknown keys are included so Settings can report them.
        """
        return self._merged.get_value()


def get_builtin_defaults_path() -> _pathlib.Path:
    """Get the path to the bundled defaults/settings.yaml."""
    return _pathlib.Path(__file__).parent / "defaults" / SETTINGS_FILE_NAME


def get_user_config_dir() -> _pathlib.Path:
    """
    Get the user settings directory.

    Respects STRATUM_CONFIG_DIR if set, otherwise uses the XDG path.
    """
    config_dir_env = _os.environ.get(ENV_CONFIG_DIR)
    if config_dir_env:
        return _pathlib.Path(config_dir_env)
    return _pathlib.Path.home() / ".config" / "stratum"


def get_user_config_path() -> _pathlib.Path:
    """Get the path to the user settings file."""
    return get_user_config_dir() / SETTINGS_FILE_NAME


def get_project_config_path(project_root: _pathlib.Path) -> _pathlib.Path:
    """Get the path to .stratum/settings.yaml within a project."""
    return project_root / PROJECT_DIR_NAME / SETTINGS_FILE_NAME


def find_project_root(start_path: _pathlib.Path | None = None) -> _pathlib.Path | None:
    """
    Find the nearest directory at or above ``start_path`` holding ``.stratum/``.

    Args:
        start_path: Directory to start from. Defaults to the current directory.

    Returns:
        The project root, or None if no ancestor has a ``.stratum`` directory.
    """
    if start_path is None:
        start_path = _pathlib.Path.cwd()

    current = start_path.resolve()
    for candidate in (current, *current.parents):
        if (candidate / PROJECT_DIR_NAME).is_dir():
            return candidate
    return None
