"""
The Configuration aggregate: every layer, and the effective values.

Layers, lowest precedence first:

    default → organization → user → workspace → folder[id] → memory
                                                           → memory[resource]

The aggregate owns the layer models. Reads return deep copies or resolved
values; updates swap a layer and return the ConfigurationChangeEvent
describing which effective values changed.

Example:
    >>> config = Configuration(
    ...     defaults=LayerModel({"editor": {"fontSize": 12}}),
    ...     user=LayerModel({"editor": {"fontSize": 14}}),
    ... )
    >>> config.get_value("editor.fontSize")
    14
    >>> config.inspect("editor.fontSize").default
    12
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import logging as _logging
import typing as _typing

import stratum.configuration.data as data
import stratum.configuration.events as events
import stratum.configuration.targets as targets
import stratum.model as model
import stratum.registry as schemas
import stratum.settings as engine_settings
import stratum.workspace as workspaces

_logger = _logging.getLogger(__name__)

LayerModel = model.LayerModel


@_dataclasses.dataclass(frozen=True, slots=True)
class LayerKeys:
    """Keys defined by each layer, as seen from one resource."""

    default: tuple[str, ...] = ()
    organization: tuple[str, ...] = ()
    user: tuple[str, ...] = ()
    workspace: tuple[str, ...] = ()
    workspace_folder: tuple[str, ...] = ()
    memory: tuple[str, ...] = ()


class Configuration:
    """
    All configuration layers of one window, plus the workspace topology.

    Args:
        defaults: Default layer. Built from the registry when omitted.
        organization: Organization policy layer.
        user: User layer.
        workspace: Workspace layer.
        folders: Folder layers by folder identity.
        memory: In-memory layer.
        workspace_topology: Open folders. Empty when omitted.
        registry: Schema registry used for scopes and defaults.
        memory_by_resource: In-memory layers scoped to one resource.
        settings: Engine settings. Field defaults when omitted.

    Note:
        **Thread safety:** Not thread-safe. Callers serialise updates; a
        snapshot() taken before an update keeps returning the old values.
    """

    def __init__(
        self,
        defaults: model.LayerModel | None = None,
        organization: model.LayerModel | None = None,
        user: model.LayerModel | None = None,
        workspace: model.LayerModel | None = None,
        folders: _abc.Mapping[str, model.LayerModel] | None = None,
        memory: model.LayerModel | None = None,
        workspace_topology: workspaces.Workspace | None = None,
        registry: schemas.SchemaRegistry | None = None,
        memory_by_resource: _abc.Mapping[str, model.LayerModel] | None = None,
        settings: engine_settings.Settings | None = None,
    ) -> None:
        self._settings = settings if settings is not None else engine_settings.Settings.builtin()
        self._registry: schemas.SchemaRegistry = (
            registry if registry is not None else schemas.StaticSchemaRegistry()
        )
        self._topology = (
            workspace_topology
            if workspace_topology is not None
            else workspaces.Workspace(case_sensitive=self._settings.paths.case_sensitive)
        )

        self._default = (
            defaults if defaults is not None else self._registry.get_default_configuration_model()
        )
        self._organization = organization if organization is not None else LayerModel()
        self._user = user if user is not None else LayerModel()
        self._workspace = workspace if workspace is not None else LayerModel()
        self._memory = memory if memory is not None else LayerModel()
        self._folders: dict[str, model.LayerModel] = {
            workspaces.normalize_resource(folder): layer
            for folder, layer in (folders or {}).items()
        }
        self._memory_by_resource: dict[str, model.LayerModel] = {
            workspaces.normalize_resource(resource): layer
            for resource, layer in (memory_by_resource or {}).items()
        }

        # (folder, resource with its own memory layer, selector) -> merged model
        self._consolidated: dict[
            tuple[str | None, str | None, str | None], model.LayerModel
        ] = {}
        # folder -> folder layer with unsupported keys removed
        self._folder_views: dict[str, model.LayerModel] = {}
        self._sync_single_folder()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def topology(self) -> workspaces.Workspace:
        return self._topology

    @property
    def state(self) -> workspaces.WorkbenchState:
        return self._topology.state

    @property
    def registry(self) -> schemas.SchemaRegistry:
        return self._registry

    @property
    def settings(self) -> engine_settings.Settings:
        return self._settings

    @property
    def folders(self) -> list[str]:
        """Identities of folders that have a layer."""
        return list(self._folders)

    def get_layer_model(
        self,
        target: targets.ConfigurationTarget,
        folder: str | None = None,
        resource: str | None = None,
    ) -> model.LayerModel:
        """
        Get a copy of one layer's model.

        Args:
            target: The layer.
            folder: Folder identity, for WORKSPACE_FOLDER.
            resource: Resource identity, for a resource-scoped MEMORY layer.

        Returns:
            An independent copy (empty when the layer does not exist yet).
        """
        if target is targets.ConfigurationTarget.WORKSPACE_FOLDER:
            layer = self._folders.get(workspaces.normalize_resource(folder or ""))
        elif target is targets.ConfigurationTarget.MEMORY and resource:
            layer = self._memory_by_resource.get(workspaces.normalize_resource(resource))
        else:
            layer = self._layer_for(target)
        return layer.copy() if layer is not None else LayerModel()

    # =========================================================================
    # Reads
    # =========================================================================

    def get_value(
        self,
        key: str | None = None,
        overrides: targets.ConfigurationOverrides | None = None,
        default: _typing.Any = None,
    ) -> _typing.Any:
        """
        Get the effective value of ``key``.

        Args:
            key: Dotted key. None returns the whole effective tree.
            overrides: Active selector and/or resource.
            default: Returned when no layer defines the key.
        """
        value = self._effective_model(overrides).lookup(key)
        return default if value is model.UNSET else value

    def inspect(
        self,
        key: str,
        overrides: targets.ConfigurationOverrides | None = None,
    ) -> targets.Inspection:
        """
        Get the value of ``key`` at every layer plus the effective value.

        With a selector, each layer is read through its override view. With
        a resource, the folder containing it supplies ``workspace_folder``
        and a resource-scoped memory layer is merged into ``memory``.
        """
        overrides = overrides or targets.ConfigurationOverrides()
        folder = self._topology.get_folder(overrides.resource)
        folder_view = self._folder_view(folder)
        memory = self._memory_for(overrides.resource)

        def read(layer: model.LayerModel | None) -> _typing.Any:
            if layer is None:
                return model.UNSET
            if overrides.selector:
                layer = layer.override(overrides.selector)
            return layer.lookup(key)

        layers = [
            self._default,
            self._organization,
            self._user,
            self._workspace,
            *([folder_view] if folder_view is not None else []),
            memory,
        ]
        identifiers: dict[str, None] = {}
        for layer in layers:
            for fragment in layer.overrides:
                if model.lookup(fragment.contents, key) is not model.UNSET:
                    identifiers.update(dict.fromkeys(fragment.identifiers))

        return targets.Inspection(
            key=key,
            default=read(self._default),
            organization=read(self._organization),
            user=read(self._user),
            workspace=read(self._workspace),
            workspace_folder=read(folder_view),
            memory=read(memory),
            value=self._effective_model(overrides).lookup(key),
            override_identifiers=tuple(identifiers),
        )

    lookup = inspect

    def get_section(
        self,
        section: str | None = None,
        overrides: targets.ConfigurationOverrides | None = None,
    ) -> _typing.Any:
        """Get the effective subtree at ``section`` ({} when absent)."""
        value = self.get_value(section, overrides)
        return {} if value is None else value

    def keys(self, resource: str | None = None) -> LayerKeys:
        """Get the keys each layer defines, as seen from ``resource``."""
        folder_view = self._folder_view(self._topology.get_folder(resource))
        return LayerKeys(
            default=tuple(self._default.keys),
            organization=tuple(self._organization.keys),
            user=tuple(self._user.keys),
            workspace=tuple(self._workspace.keys),
            workspace_folder=tuple(folder_view.keys) if folder_view is not None else (),
            memory=tuple(self._memory_for(resource).keys),
        )

    def all_keys(self) -> list[str]:
        """
        Every key of every layer, override keys included.

        Folder layers contribute only the keys they may supply.
        """
        layers = [self._default, self._organization, self._user, self._workspace]
        layers.extend(
            view
            for view in (self._folder_view(folder) for folder in self._folders)
            if view is not None
        )
        layers.append(self._memory)
        layers.extend(self._memory_by_resource.values())

        seen: dict[str, None] = {}
        for layer in layers:
            seen.update(dict.fromkeys(layer.keys))
            seen.update(dict.fromkeys(layer.override_keys))
        return list(seen)

    def unsupported_keys(self, folder: str) -> list[str]:
        """
        Keys of a folder layer that are ignored when resolving values.

        In a multi-root workspace these are window-scoped keys; executable
        keys are ignored in every state.
        """
        layer = self._folders.get(workspaces.normalize_resource(folder))
        if layer is None:
            return []
        return self._unsupported_in(layer)

    # =========================================================================
    # Layer swaps
    # =========================================================================

    def update_default_configuration(
        self, layer: model.LayerModel
    ) -> events.ConfigurationChangeEvent:
        """Swap the default layer. Returns the change event."""
        return self._update_layer(targets.ConfigurationTarget.DEFAULT, layer)

    def update_organization_configuration(
        self, layer: model.LayerModel
    ) -> events.ConfigurationChangeEvent:
        """Swap the organization layer. Returns the change event."""
        return self._update_layer(targets.ConfigurationTarget.ORGANIZATION, layer)

    def update_user_configuration(
        self, layer: model.LayerModel
    ) -> events.ConfigurationChangeEvent:
        """Swap the user layer. Returns the change event."""
        return self._update_layer(targets.ConfigurationTarget.USER, layer)

    def update_workspace_configuration(
        self, layer: model.LayerModel
    ) -> events.ConfigurationChangeEvent:
        """Swap the workspace layer. Returns the change event."""
        return self._update_layer(targets.ConfigurationTarget.WORKSPACE, layer)

    def update_folder_configuration(
        self, folder: str, layer: model.LayerModel
    ) -> events.ConfigurationChangeEvent:
        """
        Swap one folder's layer.

        Keys are scoped to the folder. A folder without a previous layer
        reports all its keys. When the folder is the single folder of a
        FOLDER-state workspace, its layer is also the workspace layer and
        the keys are reported globally.
        """
        folder = workspaces.normalize_resource(folder)
        old = self._folders.get(folder)
        before = self.snapshot()

        single = self._is_single_folder(folder)
        self._folders[folder] = layer
        self._clear_cache()
        if single:
            self._sync_single_folder()

        scope = None if single else folder
        if old is None:
            keys = [*layer.keys, *layer.override_keys]
        else:
            candidates = model.compare(old, layer).all_keys
            keys = events.compare_configurations(
                before, self, candidates, resource=folder
            ).all_keys

        _logger.debug("Updated folder layer %s: %d keys changed", folder, len(keys))
        return events.ConfigurationChangeEvent(keys, scope)

    def delete_folder_configuration(self, folder: str) -> events.ConfigurationChangeEvent:
        """
        Remove one folder's layer.

        When the folder is the single folder of a FOLDER-state workspace,
        the workspace layer it supplied is cleared too and the keys whose
        effective value changed are reported globally.

        Returns:
            An event with every key the layer defined, scoped to the folder.
            Empty when the folder had no layer.
        """
        folder = workspaces.normalize_resource(folder)
        old = self._folders.get(folder)
        if old is None:
            return events.ConfigurationChangeEvent()

        before = self.snapshot()
        single = self._is_single_folder(folder)
        del self._folders[folder]
        self._clear_cache()
        _logger.debug("Deleted folder layer %s", folder)

        keys = [*old.keys, *old.override_keys]
        if not single:
            return events.ConfigurationChangeEvent(keys, folder)

        self._workspace = LayerModel()
        return events.ConfigurationChangeEvent(
            events.compare_configurations(before, self, keys).all_keys
        )

    def update_value(
        self,
        key: str,
        value: _typing.Any,
        overrides: targets.ConfigurationOverrides | None = None,
    ) -> events.ConfigurationChangeEvent:
        """
        Write ``value`` to the memory layer.

        A None value removes the key. A selector writes into the memory
        override fragment; a resource writes into that resource's memory
        layer. The installed memory model is copied, never mutated.
        """
        overrides = overrides or targets.ConfigurationOverrides()
        resource = (
            workspaces.normalize_resource(overrides.resource) if overrides.resource else None
        )
        before = self.snapshot()

        layer = self.get_layer_model(targets.ConfigurationTarget.MEMORY, resource=resource)
        apply_write(layer, key, value, overrides.selector)

        if resource is None:
            self._memory = layer
        elif layer.is_empty():
            self._memory_by_resource.pop(resource, None)
        else:
            self._memory_by_resource[resource] = layer
        self._clear_cache()

        diff = events.compare_configurations(
            before, self, [key], resource=resource, selector=overrides.selector
        )
        return events.ConfigurationChangeEvent(diff.all_keys, resource)

    def update_workspace(
        self, topology: workspaces.Workspace
    ) -> events.ConfigurationChangeEvent:
        """
        Install a new workspace topology.

        Folder layers of folders no longer listed are dropped. A workspace
        layer supplied by the previous single folder is cleared; in FOLDER
        state the new single folder supplies it. The event holds every key
        whose effective value changed, globally and per folder.
        """
        before = self.snapshot()
        if self._folder_view(self._single_folder()) is not None:
            self._workspace = LayerModel()

        listed = topology.folders
        for folder in list(self._folders):
            if not any(topology.same_resource(folder, other) for other in listed):
                del self._folders[folder]
        self._topology = topology
        self._clear_cache()
        self._sync_single_folder()
        return self.compare(before)

    def invalidate(self) -> None:
        """Drop cached merged models, e.g. after the registry changed."""
        self._clear_cache()
        self._sync_single_folder()

    # =========================================================================
    # Snapshots
    # =========================================================================

    def snapshot(self) -> Configuration:
        """
        Copy this aggregate, sharing its layer models.

        Layers are swapped rather than mutated, so the snapshot keeps
        returning the values of this moment.
        """
        copy = Configuration(
            self._default,
            self._organization,
            self._user,
            self._workspace,
            self._folders,
            self._memory,
            self._topology,
            self._registry,
            self._memory_by_resource,
            self._settings,
        )
        copy._consolidated = dict(self._consolidated)
        copy._folder_views = dict(self._folder_views)
        return copy

    def compare(self, other: Configuration) -> events.ConfigurationChangeEvent:
        """
        Get the keys whose effective value differs from ``other`` to this.

        Keys that differ globally are global in the event; keys that differ
        only inside a folder are scoped to it.
        """
        event = events.ConfigurationChangeEvent(
            events.compare_configurations(other, self).all_keys
        )
        folders = dict.fromkeys([*other.topology.folders, *self._topology.folders])
        for folder in folders:
            diff = events.compare_configurations(other, self, resource=folder)
            event.change(diff.all_keys, folder)
        return event

    def to_data(self) -> data.ConfigurationData:
        """Serialise every layer and the topology."""
        return data.ConfigurationData(
            defaults=data.LayerModelData.from_model(self._default),
            organization=data.LayerModelData.from_model(self._organization),
            user=data.LayerModelData.from_model(self._user),
            workspace=data.LayerModelData.from_model(self._workspace),
            folders={
                folder: data.LayerModelData.from_model(layer)
                for folder, layer in self._folders.items()
            },
            memory=data.LayerModelData.from_model(self._memory),
            memory_by_resource={
                resource: data.LayerModelData.from_model(layer)
                for resource, layer in self._memory_by_resource.items()
            },
            topology=data.WorkspaceData.from_workspace(self._topology),
        )

    @classmethod
    def from_data(
        cls,
        snapshot: data.ConfigurationData,
        registry: schemas.SchemaRegistry | None = None,
        workspace: workspaces.Workspace | None = None,
        settings: engine_settings.Settings | None = None,
    ) -> Configuration:
        """
        Rebuild an aggregate from serialised data.

        Args:
            snapshot: Data produced by to_data().
            registry: Registry for scope lookups.
            workspace: Topology. Taken from the data when omitted.
            settings: Engine settings.
        """
        return cls(
            defaults=snapshot.defaults.to_model(),
            organization=snapshot.organization.to_model(),
            user=snapshot.user.to_model(),
            workspace=snapshot.workspace.to_model(),
            folders={
                folder: layer.to_model() for folder, layer in snapshot.folders.items()
            },
            memory=snapshot.memory.to_model(),
            workspace_topology=(
                workspace if workspace is not None else snapshot.topology.to_workspace()
            ),
            registry=registry,
            memory_by_resource={
                resource: layer.to_model()
                for resource, layer in snapshot.memory_by_resource.items()
            },
            settings=settings,
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _layer_for(self, target: targets.ConfigurationTarget) -> model.LayerModel:
        if target is targets.ConfigurationTarget.DEFAULT:
            return self._default
        if target is targets.ConfigurationTarget.ORGANIZATION:
            return self._organization
        if target is targets.ConfigurationTarget.USER:
            return self._user
        if target is targets.ConfigurationTarget.WORKSPACE:
            return self._workspace
        if target is targets.ConfigurationTarget.MEMORY:
            return self._memory
        raise ValueError(f"{target} is not a single layer")

    def _set_layer(self, target: targets.ConfigurationTarget, layer: model.LayerModel) -> None:
        if target is targets.ConfigurationTarget.DEFAULT:
            self._default = layer
        elif target is targets.ConfigurationTarget.ORGANIZATION:
            self._organization = layer
        elif target is targets.ConfigurationTarget.USER:
            self._user = layer
        elif target is targets.ConfigurationTarget.WORKSPACE:
            self._workspace = layer
        elif target is targets.ConfigurationTarget.MEMORY:
            self._memory = layer
        else:
            raise ValueError(f"{target} is not a single layer")

    def _update_layer(
        self, target: targets.ConfigurationTarget, layer: model.LayerModel
    ) -> events.ConfigurationChangeEvent:
        old = self._layer_for(target)
        before = self.snapshot()
        self._set_layer(target, layer)
        self._clear_cache()

        candidates = model.compare(old, layer).all_keys
        diff = events.compare_configurations(before, self, candidates)
        _logger.debug(
            "Updated %s layer: %d candidate keys, %d changed",
            target.value,
            len(candidates),
            len(diff.all_keys),
        )
        return events.ConfigurationChangeEvent(diff.all_keys)

    def _is_single_folder(self, folder: str) -> bool:
        if self._topology.state is not workspaces.WorkbenchState.FOLDER:
            return False
        return self._topology.same_resource(self._topology.folders[0], folder)

    def _single_folder(self) -> str | None:
        if self._topology.state is not workspaces.WorkbenchState.FOLDER:
            return None
        return workspaces.normalize_resource(self._topology.folders[0])

    def _sync_single_folder(self) -> None:
        """In FOLDER state, install the single folder's view as the workspace layer."""
        view = self._folder_view(self._single_folder())
        if view is not None:
            # Executable keys stay out of the workspace layer too
            self._workspace = view

    def _memory_for(self, resource: str | None) -> model.LayerModel:
        scoped = self._memory_by_resource.get(workspaces.normalize_resource(resource or ""))
        return self._memory.merge(scoped) if scoped is not None else self._memory

    def _effective_model(
        self, overrides: targets.ConfigurationOverrides | None
    ) -> model.LayerModel:
        """
        Merge the layers seen from one resource, lowest precedence first.

        With a selector, each layer is read through its override view before
        merging, so a plain value in a higher layer beats a selector section
        of a lower one.
        """
        overrides = overrides or targets.ConfigurationOverrides()
        folder = self._topology.get_folder(overrides.resource)
        memory_key = (
            workspaces.normalize_resource(overrides.resource) if overrides.resource else None
        )
        if memory_key not in self._memory_by_resource:
            memory_key = None

        cache_key = (folder, memory_key, overrides.selector or None)
        cached = self._consolidated.get(cache_key)
        if cached is None:
            layers = [self._default, self._organization, self._user, self._workspace]
            folder_view = self._folder_view(folder)
            if folder_view is not None:
                layers.append(folder_view)
            layers.append(self._memory)
            if memory_key is not None:
                layers.append(self._memory_by_resource[memory_key])
            if overrides.selector:
                layers = [layer.override(overrides.selector) for layer in layers]
            cached = layers[0].merge(*layers[1:])
            self._consolidated[cache_key] = cached
        return cached

    def _folder_view(self, folder: str | None) -> model.LayerModel | None:
        if folder is None:
            return None
        layer = self._folders.get(folder)
        if layer is None:
            return None

        view = self._folder_views.get(folder)
        if view is None:
            unsupported = self._unsupported_in(layer)
            view = layer
            if unsupported:
                view = layer.copy()
                for key in unsupported:
                    view.remove_value(key)
                    for fragment in layer.overrides:
                        view.remove_value_in_overrides(fragment.identifiers, key)
            self._folder_views[folder] = view
        return view

    def _unsupported_in(self, layer: model.LayerModel) -> list[str]:
        keys: dict[str, None] = dict.fromkeys(layer.keys)
        for fragment in layer.overrides:
            if model.kind_of(fragment.contents) is model.ValueKind.MAPPING:
                keys.update(dict.fromkeys(model.leaf_keys(fragment.contents)))
        return [key for key in keys if self._is_unsupported_in_folder(key)]

    def _is_unsupported_in_folder(self, key: str) -> bool:
        folder_settings = self._settings.folders
        if folder_settings.exclude_executable:
            schema = _property_for(self._registry, key)
            if schema is not None and schema.executable:
                return True
        return (
            folder_settings.enforce_scope
            and self._topology.state is workspaces.WorkbenchState.WORKSPACE
            and not self._registry.get_scope(key).is_resource_scoped
        )

    def _clear_cache(self) -> None:
        """Clear merged models and folder views."""
        self._consolidated.clear()
        self._folder_views.clear()

    def __repr__(self) -> str:
        return (
            f"Configuration(state={self._topology.state.value}, "
            f"folders={list(self._folders)!r})"
        )


def apply_write(
    layer: model.LayerModel,
    key: str,
    value: _typing.Any,
    selector: str | None = None,
) -> None:
    """
    Apply one write to a layer model in place.

    None removes the key. With a selector, the write goes to the fragment
    for that selector.
    """
    if selector:
        if value is None:
            layer.remove_value_in_overrides(selector, key)
        else:
            layer.set_value_in_overrides(selector, key, value)
    elif value is None:
        layer.remove_value(key)
    else:
        layer.set_value(key, value)


def _property_for(
    registry: schemas.SchemaRegistry, key: str
) -> schemas.PropertySchema | None:
    """Get the schema of ``key`` or of its closest registered ancestor."""
    segments = key.split(model.SEPARATOR)
    for end in range(len(segments), 0, -1):
        schema = registry.get_property(model.SEPARATOR.join(segments[:end]))
        if schema is not None:
            return schema
    return None
