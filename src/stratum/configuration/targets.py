"""
Write targets and the policy that picks one.

A write lands in exactly one layer. When the caller does not name the
layer, derive_target chooses the most specific layer that already defines
the key. validate_target checks that a chosen layer can hold the key.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import typing as _typing

import stratum.configuration.errors as errors
import stratum.model as model
import stratum.registry as registry
import stratum.workspace as workspace


class ConfigurationTarget(_enum.Enum):
    """Configuration layers, lowest precedence first."""

    DEFAULT = "default"
    """Registry defaults. Never writable."""

    ORGANIZATION = "organization"
    """Organization policy."""

    USER = "user"
    """User preferences."""

    WORKSPACE = "workspace"
    """Workspace settings (the single folder's settings in FOLDER state)."""

    WORKSPACE_FOLDER = "workspace-folder"
    """Settings of one folder of a multi-root workspace."""

    MEMORY = "memory"
    """Transient in-memory values."""

    @classmethod
    def from_name(cls, name: str) -> ConfigurationTarget:
        """Parse a target from its value (``"user"``) or member name (``"USER"``)."""
        try:
            return cls(name.lower())
        except ValueError:
            return cls[name.upper()]


@_dataclasses.dataclass(frozen=True, slots=True)
class ConfigurationOverrides:
    """Context of a read or write: active selector and/or resource."""

    selector: str | None = None
    """Override identifier, e.g. a language id."""

    resource: str | None = None
    """Resource identity used to pick the folder layer."""


@_dataclasses.dataclass(frozen=True, slots=True)
class Inspection:
    """
    Value of one key at every layer, plus the effective value.

    Layers that do not define the key hold UNSET. None is a defined value
    (explicit null).
    """

    key: str
    default: _typing.Any = model.UNSET
    organization: _typing.Any = model.UNSET
    user: _typing.Any = model.UNSET
    workspace: _typing.Any = model.UNSET
    workspace_folder: _typing.Any = model.UNSET
    memory: _typing.Any = model.UNSET
    value: _typing.Any = model.UNSET
    override_identifiers: tuple[str, ...] = ()
    """Selectors that override the key in at least one layer."""

    def value_for(self, target: ConfigurationTarget) -> _typing.Any:
        """Get the value recorded for one layer."""
        return getattr(self, _INSPECTION_FIELDS[target])

    @property
    def defined_targets(self) -> list[ConfigurationTarget]:
        """Layers that define the key, lowest precedence first."""
        return [
            target
            for target in ConfigurationTarget
            if self.value_for(target) is not model.UNSET
        ]


_INSPECTION_FIELDS: dict[ConfigurationTarget, str] = {
    ConfigurationTarget.DEFAULT: "default",
    ConfigurationTarget.ORGANIZATION: "organization",
    ConfigurationTarget.USER: "user",
    ConfigurationTarget.WORKSPACE: "workspace",
    ConfigurationTarget.WORKSPACE_FOLDER: "workspace_folder",
    ConfigurationTarget.MEMORY: "memory",
}

# Most specific first
_DERIVABLE_TARGETS = (
    ConfigurationTarget.WORKSPACE_FOLDER,
    ConfigurationTarget.WORKSPACE,
    ConfigurationTarget.USER,
)


def derive_target(
    key: str,
    value: _typing.Any,
    inspection: Inspection,
    target: ConfigurationTarget | None = None,
    fallback: ConfigurationTarget = ConfigurationTarget.ORGANIZATION,
) -> ConfigurationTarget | None:
    """
    Decide which layer a write of ``value`` to ``key`` should land in.

    Args:
        key: Dotted key being written.
        value: New value. None means "remove".
        inspection: Current per-layer values of the key.
        target: Explicit target; returned unchanged when given.
        fallback: Layer used when no derivable layer defines the key.

    Returns:
        The target, or None when no write is needed (the value is None or
        equals the current effective value).
    """
    if target is not None:
        return target

    if value is None or value == inspection.value:
        return None

    for candidate in _DERIVABLE_TARGETS:
        if inspection.value_for(candidate) is not model.UNSET:
            return candidate
    return fallback


def validate_target(
    key: str,
    target: ConfigurationTarget,
    overrides: ConfigurationOverrides,
    topology: workspace.Workspace,
    schemas: registry.SchemaRegistry,
    *,
    enforce_scope: bool = True,
) -> None:
    """
    Check that ``target`` can hold a write of ``key``.

    Raises:
        ConfigurationError: INVALID_TARGET when the layer does not exist in
            the current topology or cannot hold a window-scoped key;
            UNSUPPORTED for executable keys in folder layers and selector
            writes of keys that are not language-overridable.
    """
    state = topology.state
    schema = schemas.get_property(key)

    if target is ConfigurationTarget.DEFAULT:
        raise errors.ConfigurationError(
            errors.ConfigurationErrorKind.INVALID_TARGET,
            "Default settings cannot be written",
            key=key,
            target=target,
        )

    if target is ConfigurationTarget.WORKSPACE and state is workspace.WorkbenchState.EMPTY:
        raise errors.ConfigurationError(
            errors.ConfigurationErrorKind.INVALID_TARGET,
            f"Cannot write {key} to workspace settings: no workspace is open",
            key=key,
            target=target,
        )

    if target is ConfigurationTarget.WORKSPACE_FOLDER:
        if not topology.contains(overrides.resource or ""):
            raise errors.ConfigurationError(
                errors.ConfigurationErrorKind.INVALID_TARGET,
                f"Cannot write {key} to folder settings: "
                f"no folder contains resource {overrides.resource!r}",
                key=key,
                target=target,
            )
        if schema is not None and schema.executable:
            raise errors.ConfigurationError(
                errors.ConfigurationErrorKind.UNSUPPORTED,
                f"{key} is executable and cannot be set in folder settings",
                key=key,
                target=target,
            )
        if (
            enforce_scope
            and state is workspace.WorkbenchState.WORKSPACE
            and not schemas.get_scope(key).is_resource_scoped
        ):
            raise errors.ConfigurationError(
                errors.ConfigurationErrorKind.INVALID_TARGET,
                f"{key} is window-scoped and cannot be set in folder settings",
                key=key,
                target=target,
            )

    if (
        overrides.selector is not None
        and schema is not None
        and schema.scope is not registry.ConfigurationScope.LANGUAGE_OVERRIDABLE
    ):
        raise errors.ConfigurationError(
            errors.ConfigurationErrorKind.UNSUPPORTED,
            f"{key} cannot be overridden for [{overrides.selector}]",
            key=key,
            target=target,
        )
