"""
Settings of the stratum engine itself.

Uses pydantic-settings for environment variable loading and layered YAML
files for user and project settings.
"""

from stratum.settings.settings import Settings
from stratum.settings.sources import (
    LayeredYamlSettingsSource,
    SettingsFileError,
    find_project_root,
)
from stratum.settings.types import (
    ConfigBase,
    EventsConfig,
    FoldersConfig,
    PathsConfig,
    WritesConfig,
)

__all__ = [
    "ConfigBase",
    "EventsConfig",
    "FoldersConfig",
    "LayeredYamlSettingsSource",
    "PathsConfig",
    "Settings",
    "SettingsFileError",
    "WritesConfig",
    "find_project_root",
]
