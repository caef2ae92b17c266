"""
Engine settings using pydantic-settings.

Loads settings from:
1. Constructor arguments (highest precedence)
2. Environment variables with STRATUM_ prefix
3. Layered YAML settings files:
   - Project settings: .stratum/settings.yaml (highest)
   - User settings: ~/.config/stratum/settings.yaml
   - Built-in defaults: bundled defaults/settings.yaml (lowest)

Nested settings use double underscore delimiter:
  STRATUM_EVENTS__DROP_EMPTY=false
  STRATUM_WRITES__FALLBACK_TARGET=user
"""

import logging as _logging
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import stratum.settings.sources as sources
import stratum.settings.types as types

_logger = _logging.getLogger(__name__)


class Settings(_pydantic_settings.BaseSettings):
    """
    Settings of the configuration engine itself.

    All settings can be overridden via environment variables with the
    STRATUM_ prefix, e.g. STRATUM_FOLDERS__ENFORCE_SCOPE=false.

    Precedence (highest to lowest):
    1. Constructor arguments
    2. Environment variables (STRATUM_*)
    3. Project settings (.stratum/settings.yaml)
    4. User settings (~/.config/stratum/settings.yaml)
    5. Built-in defaults
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="STRATUM_",
        env_nested_delimiter="__",  # STRATUM_EVENTS__DROP_EMPTY
        extra="allow",  # Preserve unknown fields so they can be reported
    )

    paths: types.PathsConfig = _pydantic.Field(default_factory=types.PathsConfig)
    """Resource identity comparison."""

    events: types.EventsConfig = _pydantic.Field(default_factory=types.EventsConfig)
    """Change-event publishing."""

    writes: types.WritesConfig = _pydantic.Field(default_factory=types.WritesConfig)
    """Write-target policy."""

    folders: types.FoldersConfig = _pydantic.Field(default_factory=types.FoldersConfig)
    """Folder layer filtering."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[_pydantic_settings.BaseSettings],
        init_settings: _pydantic_settings.PydanticBaseSettingsSource,
        env_settings: _pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,
        file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
        """
        Configure settings sources with precedence:
        1. init_settings (constructor args), highest
        2. env_settings (STRATUM_* env vars)
        3. dotenv_settings (only when an env file is configured)
        4. yaml_settings (layered settings.yaml files)
        5. (defaults via Field definitions), lowest
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            sources.LayeredYamlSettingsSource(
                settings_cls, sources.find_project_root()
            ),
            file_secret_settings,
        )

    @classmethod
    def builtin(cls) -> "Settings":
        """
        Create Settings from the field defaults only.

        No environment variable or settings file is read. Used when the
        engine is embedded without explicit settings, and in tests.
        """
        return cls.model_construct()

    @_pydantic.model_validator(mode="after")
    def _warn_unknown_fields(self) -> "Settings":
        """Log unknown keys, which usually are typos."""
        extras = self.collect_all_extra_fields()
        if extras:
            _logger.warning("Unknown stratum settings: %s", ", ".join(sorted(extras)))
        return self

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def config_dir(self) -> _pathlib.Path:
        """User settings directory."""
        return sources.get_user_config_dir()

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Get unknown fields at the top level."""
        return dict(self.model_extra) if self.model_extra else {}

    def collect_all_extra_fields(self) -> dict[str, _typing.Any]:
        """
        Recursively collect unknown fields from Settings and its sections.

        Returns a flat dict with dotted paths as keys, e.g.
        ``{"events.drop_emtpy": False}``.
        """
        result: dict[str, _typing.Any] = dict(self.get_extra_fields())

        for field_name in ["paths", "events", "writes", "folders"]:
            nested = getattr(self, field_name, None)
            if nested is not None and hasattr(nested, "collect_all_extra_fields"):
                result.update(nested.collect_all_extra_fields(prefix=field_name))

        return result

    def has_extra_fields(self) -> bool:
        """Check if there are any unknown fields anywhere in the settings."""
        return bool(self.collect_all_extra_fields())

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert settings to a plain dictionary."""
        return self.model_dump(include={"paths", "events", "writes", "folders"})
