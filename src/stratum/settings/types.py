"""Section models for the engine's own settings.

Each class is one YAML section of ``settings.yaml``:
- PathsConfig: resource identity comparison
- EventsConfig: change-event publishing
- WritesConfig: write-target policy
- FoldersConfig: which keys folder layers may supply

All types use ``extra="allow"`` so unknown keys are preserved rather than
dropped. ``collect_all_extra_fields()`` reports them for auditing.
"""

import typing as _typing

import pydantic as _pydantic

# =============================================================================
# Base class with introspection
# =============================================================================


class ConfigBase(_pydantic.BaseModel):
    """
    Base class for settings sections.

    Unknown fields are kept in ``model_extra`` so typos can be reported.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Return fields that were provided but are not in the schema."""
        return dict(self.model_extra) if self.model_extra else {}

    def has_extra_fields(self) -> bool:
        """Check if this section has any unrecognized fields."""
        return bool(self.model_extra)

    def collect_all_extra_fields(
        self,
        prefix: str = "",
    ) -> dict[str, _typing.Any]:
        """
        Recursively collect extra fields from this section and nested ones.

        Args:
            prefix: Dotted path prefix (used in recursion).

        Returns:
            Flat dict of dotted path → value, e.g. ``{"events.drop_emtpy": False}``.
        """
        result: dict[str, _typing.Any] = {}

        for key, value in self.get_extra_fields().items():
            path = f"{prefix}.{key}" if prefix else key
            result[path] = value

        for field_name in self.__class__.model_fields:
            value = getattr(self, field_name, None)
            if isinstance(value, ConfigBase):
                child_prefix = f"{prefix}.{field_name}" if prefix else field_name
                result.update(value.collect_all_extra_fields(child_prefix))

        return result


# =============================================================================
# Sections
# =============================================================================


class PathsConfig(ConfigBase):
    """
    Resource identity comparison.

    YAML section: paths.*
    """

    case_sensitive: bool | None = None
    """Compare folder and resource identities case-sensitively.
    None uses the platform default (sensitive on Linux only)."""


class EventsConfig(ConfigBase):
    """
    Change-event publishing.

    YAML section: events.*
    """

    drop_empty: bool = True
    """Do not publish events that affect no key."""


class WritesConfig(ConfigBase):
    """
    Write-target policy.

    YAML section: writes.*
    """

    fallback_target: _typing.Literal["organization", "user"] = "organization"
    """Layer a write lands in when no user, workspace or folder layer
    defines the key yet."""


class FoldersConfig(ConfigBase):
    """
    Folder layer filtering.

    YAML section: folders.*
    """

    enforce_scope: bool = True
    """In a multi-root workspace, read only resource-scoped keys from
    folder layers."""

    exclude_executable: bool = True
    """Never read keys marked executable from folder layers."""
