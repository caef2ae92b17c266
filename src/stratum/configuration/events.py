"""
Change events: which keys changed, globally or for one resource.

A ConfigurationChangeEvent is produced by every layer swap. Consumers ask
``affects_configuration(key, resource)`` to decide whether to react; the
query is ancestor-aware in both directions, so a change to
``window.zoomLevel`` affects ``window`` and a change to ``window`` affects
``window.zoomLevel``.
"""

from __future__ import annotations

import collections.abc as _abc
import copy as _copy
import dataclasses as _dataclasses
import typing as _typing

import stratum.configuration.targets as targets
import stratum.model as model

if _typing.TYPE_CHECKING:
    import stratum.configuration.aggregate as aggregate
    import stratum.workspace as workspace


@_dataclasses.dataclass(frozen=True, slots=True)
class ConfigurationDiff:
    """Keys whose effective value was added, updated or removed."""

    added: tuple[str, ...] = ()
    updated: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()

    @property
    def all_keys(self) -> list[str]:
        """Added, then updated, then removed keys."""
        return [*self.added, *self.updated, *self.removed]

    def __bool__(self) -> bool:
        return bool(self.added or self.updated or self.removed)


def compare_configurations(
    before: aggregate.Configuration,
    after: aggregate.Configuration,
    keys: _abc.Iterable[str] | None = None,
    *,
    resource: str | None = None,
    selector: str | None = None,
) -> ConfigurationDiff:
    """
    Diff the effective values of two configuration snapshots.

    A candidate is added when absent before and present after, removed in
    the reverse case, and updated when present in both with different
    values. When an override section (``[markdown]``) changed, the keys
    inside it whose selector-specific value changed are reported too.

    Args:
        before: Snapshot before the change.
        after: Snapshot after the change.
        keys: Candidate keys. Defaults to every key of both snapshots.
        resource: Compare the values seen at this resource.
        selector: Compare the values seen while this selector is active.

    Returns:
        The ConfigurationDiff, keys in candidate order.
    """
    if keys is None:
        candidates = _unique([*before.all_keys(), *after.all_keys()])
    else:
        candidates = _unique(keys)

    overrides = targets.ConfigurationOverrides(selector=selector, resource=resource)
    added: list[str] = []
    updated: list[str] = []
    removed: list[str] = []

    def classify(key: str, old: _typing.Any, new: _typing.Any) -> bool:
        if old is model.UNSET and new is model.UNSET:
            return False
        if old is model.UNSET:
            added.append(key)
        elif new is model.UNSET:
            removed.append(key)
        elif old != new:
            updated.append(key)
        else:
            return False
        return True

    for key in candidates:
        old = before.inspect(key, overrides).value
        new = after.inspect(key, overrides).value
        if not classify(key, old, new) or not model.is_override_key(key):
            continue

        inner = _unique(
            [
                *(model.leaf_keys(old) if model.kind_of(old) is model.ValueKind.MAPPING else []),
                *(model.leaf_keys(new) if model.kind_of(new) is model.ValueKind.MAPPING else []),
            ]
        )
        for identifier in model.identifiers_from_key(key):
            scoped = targets.ConfigurationOverrides(selector=identifier, resource=resource)
            for inner_key in inner:
                if inner_key in added or inner_key in updated or inner_key in removed:
                    continue
                classify(
                    inner_key,
                    before.inspect(inner_key, scoped).value,
                    after.inspect(inner_key, scoped).value,
                )

    return ConfigurationDiff(tuple(added), tuple(updated), tuple(removed))


class ConfigurationChangeEvent:
    """
    Set of affected keys, global or scoped to a resource.

    Example:
        >>> event = ConfigurationChangeEvent().change(["window.zoomLevel"])
        >>> event.affects_configuration("window")
        True
        >>> event.affects_configuration("windows")
        False
    """

    def __init__(
        self,
        keys: _abc.Iterable[str] = (),
        resource: str | None = None,
        *,
        source: targets.ConfigurationTarget | None = None,
        source_config: model.Tree | None = None,
    ) -> None:
        # dicts as insertion-ordered sets
        self._global: dict[str, None] = {}
        self._scoped: dict[str, dict[str, None]] = {}
        self._source = source
        self._source_config = source_config
        self.change(keys, resource)

    @classmethod
    def compare(
        cls,
        before: aggregate.Configuration,
        after: aggregate.Configuration,
        keys: _abc.Iterable[str] | None = None,
        resource: str | None = None,
    ) -> ConfigurationChangeEvent:
        """
        Build an event from the keys whose effective value differs.

        Args:
            before: Snapshot before the change.
            after: Snapshot after the change.
            keys: Candidate keys. Defaults to every key of both snapshots.
            resource: Compare at this resource and scope the keys to it.
        """
        diff = compare_configurations(before, after, keys, resource=resource)
        return cls(diff.all_keys, resource)

    # =========================================================================
    # Contents
    # =========================================================================

    @property
    def global_keys(self) -> list[str]:
        """Keys affected for every resource."""
        return list(self._global)

    @property
    def scoped_keys(self) -> dict[str, list[str]]:
        """Keys affected only for one resource, by resource."""
        return {resource: list(keys) for resource, keys in self._scoped.items()}

    @property
    def affected_keys(self) -> list[str]:
        """
        Every affected key, most specific form only.

        Global keys come first, then each resource's keys. A key is dropped
        when one of its dotted descendants is also affected.
        """
        ordered: dict[str, None] = dict(self._global)
        for keys in self._scoped.values():
            ordered.update(keys)
        return [
            key
            for key in ordered
            if not any(model.is_ancestor(key, other) for other in ordered)
        ]

    @property
    def source(self) -> targets.ConfigurationTarget | None:
        """Layer whose change produced this event."""
        return self._source

    @property
    def source_config(self) -> model.Tree | None:
        """Contents of the changed layer after the change."""
        return _copy.deepcopy(self._source_config)

    def is_empty(self) -> bool:
        return not self._global and not any(self._scoped.values())

    def __bool__(self) -> bool:
        return not self.is_empty()

    # =========================================================================
    # Building
    # =========================================================================

    def change(
        self,
        keys: _abc.Iterable[str] | ConfigurationChangeEvent,
        resource: str | None = None,
    ) -> ConfigurationChangeEvent:
        """
        Add affected keys.

        Args:
            keys: Keys to add, or another event to merge into this one.
            resource: Scope the keys to this resource. Ignored when
                ``keys`` is an event.

        Returns:
            This event, for chaining.
        """
        if isinstance(keys, ConfigurationChangeEvent):
            self._add_global(keys._global)
            for scoped_resource, scoped in keys._scoped.items():
                self._add_scoped(scoped_resource, scoped)
            return self

        if resource is None:
            self._add_global(keys)
        else:
            self._add_scoped(resource, keys)
        return self

    def merge(self, other: ConfigurationChangeEvent) -> ConfigurationChangeEvent:
        """
        Combine two events into a new one.

        Keys global in either event are global in the result; scoped keys
        are united per resource. The result keeps this event's source.
        """
        merged = ConfigurationChangeEvent(
            source=self._source, source_config=self._source_config
        )
        return merged.change(self).change(other)

    def with_source(
        self,
        source: targets.ConfigurationTarget,
        source_config: model.Tree | None = None,
    ) -> ConfigurationChangeEvent:
        """Record which layer changed. Returns this event."""
        self._source = source
        self._source_config = _copy.deepcopy(source_config)
        return self

    def _add_global(self, keys: _abc.Iterable[str]) -> None:
        for key in keys:
            self._global[key] = None
            for scoped in self._scoped.values():
                scoped.pop(key, None)
        self._scoped = {resource: keys for resource, keys in self._scoped.items() if keys}

    def _add_scoped(self, resource: str, keys: _abc.Iterable[str]) -> None:
        added = {key: None for key in keys if key not in self._global}
        if added:
            self._scoped.setdefault(resource, {}).update(added)

    # =========================================================================
    # Queries
    # =========================================================================

    def affects_configuration(self, key: str, resource: str | None = None) -> bool:
        """
        Check whether the change affects ``key``, optionally at ``resource``.

        Without ``resource`` every affected key counts. With it, global keys
        and keys scoped to ``resource`` count; keys scoped to other
        resources do not.
        """
        if _any_related(self._global, key):
            return True
        if resource is None:
            return any(_any_related(keys, key) for keys in self._scoped.values())
        return _any_related(self._scoped.get(resource, {}), key)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(global_keys={self.global_keys!r}, "
            f"scoped_keys={self.scoped_keys!r}, source={self._source!r})"
        )


class AllKeysConfigurationChangeEvent(ConfigurationChangeEvent):
    """Event for an initial load: every key changed for every resource."""

    def __init__(
        self,
        keys: _abc.Iterable[str],
        source: targets.ConfigurationTarget | None = None,
        source_config: model.Tree | None = None,
    ) -> None:
        super().__init__(keys, source=source, source_config=source_config)


class WorkspaceConfigurationChangeEvent(ConfigurationChangeEvent):
    """
    Change event that understands the workspace topology.

    Resource queries that miss are retried with the folder containing the
    resource, so a change scoped to a folder affects every file inside it.
    Resource identities are compared with the workspace's case rule.
    """

    def __init__(
        self,
        event: ConfigurationChangeEvent,
        topology: workspace.Workspace,
    ) -> None:
        super().__init__(source=event.source, source_config=event._source_config)
        self.change(event)
        self._topology = topology

    def affects_configuration(self, key: str, resource: str | None = None) -> bool:
        if super().affects_configuration(key, resource):
            return True
        if resource is None:
            return False

        folder = self._topology.get_folder(resource)
        for scoped_resource, keys in self._scoped.items():
            same = self._topology.same_resource(scoped_resource, resource) or (
                folder is not None
                and self._topology.same_resource(scoped_resource, folder)
            )
            if same and _any_related(keys, key):
                return True
        return False


def _any_related(keys: _abc.Iterable[str], key: str) -> bool:
    return any(model.is_related(affected, key) for affected in keys)


def _unique(keys: _abc.Iterable[str]) -> list[str]:
    return list(dict.fromkeys(keys))
