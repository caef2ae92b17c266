"""
Schema registry: declared defaults and scopes of configuration keys.

The engine never reads a global registry. A registry is injected into
the Configuration aggregate and the service, which call it to:
- rebuild the default layer
- decide whether a folder layer may supply a key (scope)
- validate selector writes (LANGUAGE_OVERRIDABLE scope)

SchemaRegistry is the protocol the engine depends on. StaticSchemaRegistry
is an in-memory implementation suitable for embedding and tests.
"""

from __future__ import annotations

import collections.abc as _abc
import enum as _enum
import logging as _logging
import typing as _typing

import pydantic as _pydantic

import stratum.model as model

_logger = _logging.getLogger(__name__)

RegistryListener: _typing.TypeAlias = _typing.Callable[[list[str]], None]
"""Called with the keys whose schema was (de)registered."""


class ConfigurationScope(_enum.Enum):
    """Where a setting may receive a distinct value."""

    WINDOW = "window"
    """One value per window; never read from a folder layer in multi-root."""

    RESOURCE = "resource"
    """May differ per folder."""

    LANGUAGE_OVERRIDABLE = "language-overridable"
    """May differ per folder and per selector."""

    @property
    def is_resource_scoped(self) -> bool:
        """Whether folder layers may supply this setting."""
        return self in {
            ConfigurationScope.RESOURCE,
            ConfigurationScope.LANGUAGE_OVERRIDABLE,
        }


class PropertySchema(_pydantic.BaseModel):
    """
    Declaration of one configuration key.

    Unknown fields (type, enum, ...) are preserved so registries can carry
    richer schemas without the engine interpreting them.
    """

    model_config = _pydantic.ConfigDict(extra="allow", frozen=True)

    default: _typing.Any = None
    """Default value, contributed to the default layer."""

    scope: ConfigurationScope = ConfigurationScope.WINDOW
    """Where the setting may be overridden."""

    description: str = ""
    """Human-readable description."""

    executable: bool = False
    """Setting names something to run; never read from folder layers."""


class SchemaRegistry(_typing.Protocol):
    """What the engine needs from a schema registry."""

    def get_default_configuration_model(self) -> model.LayerModel:
        """Build a fresh default layer from the registered defaults."""
        ...

    def get_scope(self, key: str) -> ConfigurationScope:
        """Get the scope of a key (WINDOW when unknown)."""
        ...

    def get_property(self, key: str) -> PropertySchema | None:
        """Get the schema of a key, or None when unknown."""
        ...

    def on_did_register_configuration(
        self, listener: RegistryListener
    ) -> _typing.Callable[[], None]:
        """Subscribe to schema changes. Returns an unsubscribe callable."""
        ...


class StaticSchemaRegistry:
    """
    In-memory schema registry.

    Example:
        >>> registry = StaticSchemaRegistry()
        >>> registry.register_properties({
        ...     "editor.fontSize": {"default": 12, "scope": "language-overridable"},
        ... })
        ['editor.fontSize']
        >>> registry.get_default_configuration_model().get_value("editor.fontSize")
        12
    """

    def __init__(
        self,
        properties: _abc.Mapping[str, PropertySchema | _abc.Mapping[str, _typing.Any]]
        | None = None,
    ) -> None:
        self._properties: dict[str, PropertySchema] = {}
        self._default_overrides: dict[str, _typing.Any] = {}
        self._listeners: list[RegistryListener] = []
        if properties:
            self._add_properties(properties)

    @property
    def properties(self) -> dict[str, PropertySchema]:
        """Registered schemas by key."""
        return dict(self._properties)

    def register_properties(
        self,
        properties: _abc.Mapping[str, PropertySchema | _abc.Mapping[str, _typing.Any]],
    ) -> list[str]:
        """
        Register (or re-register) key schemas and notify listeners.

        Override-pattern keys (``[markdown]``) are not properties and are
        skipped; use register_default_overrides for them.

        Args:
            properties: Schemas keyed by dotted key. Plain mappings are
                validated into PropertySchema.

        Returns:
            The keys that were registered.
        """
        keys = self._add_properties(properties)
        if keys:
            self._fire(keys)
        return keys

    def deregister_properties(self, keys: _abc.Iterable[str]) -> list[str]:
        """Remove key schemas and notify listeners. Returns removed keys."""
        removed = [key for key in keys if self._properties.pop(key, None) is not None]
        if removed:
            self._fire(removed)
        return removed

    def register_default_overrides(self, raw: _abc.Mapping[str, _typing.Any]) -> list[str]:
        """
        Register selector-specific defaults.

        Args:
            raw: Mapping of override keys to trees, e.g.
                ``{"[markdown]": {"editor.wordWrap": "on"}}``.

        Returns:
            The override keys that were registered.
        """
        keys: list[str] = []
        for key, value in raw.items():
            if not model.is_override_key(key):
                _logger.warning("Ignoring default override %s: not an override key", key)
                continue
            self._default_overrides[key] = value
            keys.append(key)
        if keys:
            self._fire(keys)
        return keys

    def get_default_configuration_model(self) -> model.LayerModel:
        raw: dict[str, _typing.Any] = {
            key: schema.default for key, schema in self._properties.items()
        }
        raw.update(self._default_overrides)
        return model.LayerModel.from_raw(raw)

    def get_property(self, key: str) -> PropertySchema | None:
        return self._properties.get(key)

    def get_scope(self, key: str) -> ConfigurationScope:
        """
        Get the scope of ``key``.

        Falls back to the closest registered dotted ancestor (an object
        setting covers its members), then to WINDOW.
        """
        segments = key.split(model.SEPARATOR)
        for end in range(len(segments), 0, -1):
            schema = self._properties.get(model.SEPARATOR.join(segments[:end]))
            if schema is not None:
                return schema.scope
        return ConfigurationScope.WINDOW

    def on_did_register_configuration(
        self, listener: RegistryListener
    ) -> _typing.Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _add_properties(
        self,
        properties: _abc.Mapping[str, PropertySchema | _abc.Mapping[str, _typing.Any]],
    ) -> list[str]:
        keys: list[str] = []
        for key, schema in properties.items():
            if model.is_override_key(key):
                _logger.debug("Skipping override key %s in property registration", key)
                continue
            if not isinstance(schema, PropertySchema):
                schema = PropertySchema.model_validate(schema)
            self._properties[key] = schema
            keys.append(key)
        return keys

    def _fire(self, keys: list[str]) -> None:
        _logger.debug("Schema registry changed: %s", keys)
        for listener in list(self._listeners):
            listener(list(keys))
