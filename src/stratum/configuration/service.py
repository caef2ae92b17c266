"""
Configuration service: the publishing surface around a Configuration.

Layer sources call the ``update_*`` entry points with freshly parsed
layers; the service swaps the layer and publishes the resulting
ConfigurationChangeEvent to every listener registered with
``on_did_change_configuration``. Writes go through ``update_value``, which
picks and validates a target layer before anything changes.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import logging as _logging
import typing as _typing

import stratum.configuration.aggregate as aggregate
import stratum.configuration.errors as errors
import stratum.configuration.events as events
import stratum.configuration.targets as targets
import stratum.model as model
import stratum.registry as schemas
import stratum.settings as engine_settings
import stratum.workspace as workspaces

_logger = _logging.getLogger(__name__)

ChangeListener: _typing.TypeAlias = _typing.Callable[[events.ConfigurationChangeEvent], None]
"""Called with every published change event."""


@_dataclasses.dataclass(frozen=True, slots=True)
class WriteRequest:
    """
    A validated write, handed to the persistence collaborator.

    ``layer`` is the target layer as it will be once the write is applied.
    """

    key: str
    value: _typing.Any
    target: targets.ConfigurationTarget
    overrides: targets.ConfigurationOverrides
    folder: str | None
    layer: model.LayerModel


Writer: _typing.TypeAlias = _typing.Callable[[WriteRequest], None]
"""Persists a write. Raising aborts the write before the layer is swapped."""


class ConfigurationService:
    """
    Owns a Configuration and publishes its changes.

    Args:
        registry: Schema registry. The service subscribes to it and rebuilds
            the default layer when schemas are registered.
        workspace: Workspace topology. Empty when omitted.
        settings: Engine settings. Field defaults when omitted.
        writer: Persistence collaborator called for every non-memory write.
        configuration: Initial aggregate. Built from the arguments above
            when omitted.
    """

    def __init__(
        self,
        registry: schemas.SchemaRegistry | None = None,
        workspace: workspaces.Workspace | None = None,
        settings: engine_settings.Settings | None = None,
        writer: Writer | None = None,
        configuration: aggregate.Configuration | None = None,
    ) -> None:
        self._settings = settings if settings is not None else engine_settings.Settings.builtin()
        self._registry: schemas.SchemaRegistry = (
            registry if registry is not None else schemas.StaticSchemaRegistry()
        )
        self._writer = writer
        self._listeners: list[ChangeListener] = []
        self._configuration = (
            configuration
            if configuration is not None
            else aggregate.Configuration(
                workspace_topology=workspace,
                registry=self._registry,
                settings=self._settings,
            )
        )
        self._unsubscribe_registry = self._registry.on_did_register_configuration(
            self._on_registry_change
        )

    @property
    def configuration(self) -> aggregate.Configuration:
        return self._configuration

    @property
    def registry(self) -> schemas.SchemaRegistry:
        return self._registry

    @property
    def settings(self) -> engine_settings.Settings:
        return self._settings

    @property
    def workspace(self) -> workspaces.Workspace:
        return self._configuration.topology

    # =========================================================================
    # Subscription
    # =========================================================================

    def on_did_change_configuration(
        self, listener: ChangeListener
    ) -> _typing.Callable[[], None]:
        """
        Register a listener for change events.

        Returns:
            A callable that unregisters the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispose(self) -> None:
        """Unsubscribe from the registry and drop all listeners."""
        self._unsubscribe_registry()
        self._listeners.clear()

    # =========================================================================
    # Reads
    # =========================================================================

    def get_value(
        self,
        key: str | None = None,
        overrides: targets.ConfigurationOverrides | None = None,
        default: _typing.Any = None,
    ) -> _typing.Any:
        return self._configuration.get_value(key, overrides, default)

    def inspect(
        self,
        key: str,
        overrides: targets.ConfigurationOverrides | None = None,
    ) -> targets.Inspection:
        return self._configuration.inspect(key, overrides)

    def keys(self, resource: str | None = None) -> aggregate.LayerKeys:
        return self._configuration.keys(resource)

    def get_section(
        self,
        section: str | None = None,
        overrides: targets.ConfigurationOverrides | None = None,
    ) -> _typing.Any:
        return self._configuration.get_section(section, overrides)

    # =========================================================================
    # Reloads
    # =========================================================================

    def reload_configuration(
        self, configuration: aggregate.Configuration
    ) -> events.ConfigurationChangeEvent:
        """
        Replace the whole aggregate, e.g. on initial load.

        Publishes an event in which every key of the new aggregate changed.
        """
        self._configuration = configuration
        event = events.AllKeysConfigurationChangeEvent(configuration.all_keys())
        return self._publish(event)

    def update_default_configuration(
        self, layer: model.LayerModel | None = None
    ) -> events.ConfigurationChangeEvent:
        """Swap the default layer, rebuilding it from the registry when omitted."""
        if layer is None:
            layer = self._registry.get_default_configuration_model()
        event = self._configuration.update_default_configuration(layer)
        return self._publish(event, targets.ConfigurationTarget.DEFAULT, layer)

    def update_organization_configuration(
        self, layer: model.LayerModel
    ) -> events.ConfigurationChangeEvent:
        event = self._configuration.update_organization_configuration(layer)
        return self._publish(event, targets.ConfigurationTarget.ORGANIZATION, layer)

    def update_user_configuration(
        self, layer: model.LayerModel
    ) -> events.ConfigurationChangeEvent:
        event = self._configuration.update_user_configuration(layer)
        return self._publish(event, targets.ConfigurationTarget.USER, layer)

    def update_workspace_configuration(
        self, layer: model.LayerModel
    ) -> events.ConfigurationChangeEvent:
        event = self._configuration.update_workspace_configuration(layer)
        return self._publish(event, targets.ConfigurationTarget.WORKSPACE, layer)

    def update_folder_configuration(
        self, folder: str, layer: model.LayerModel
    ) -> events.ConfigurationChangeEvent:
        event = self._configuration.update_folder_configuration(folder, layer)
        return self._publish(event, targets.ConfigurationTarget.WORKSPACE_FOLDER, layer)

    def delete_folder_configuration(self, folder: str) -> events.ConfigurationChangeEvent:
        event = self._configuration.delete_folder_configuration(folder)
        return self._publish(event, targets.ConfigurationTarget.WORKSPACE_FOLDER)

    def set_workspace(self, topology: workspaces.Workspace) -> events.ConfigurationChangeEvent:
        """Install a new topology and publish the keys whose values changed."""
        event = self._configuration.update_workspace(topology)
        return self._publish(event)

    # =========================================================================
    # Writes
    # =========================================================================

    def update_value(
        self,
        key: str,
        value: _typing.Any,
        overrides: targets.ConfigurationOverrides | None = None,
        target: targets.ConfigurationTarget | None = None,
    ) -> events.ConfigurationChangeEvent:
        """
        Write ``value`` to ``key``.

        Without ``target``, the most specific layer that already defines the
        key is chosen (folder, then workspace, then user), falling back to
        ``writes.fallback_target``. None removes the key from the target.

        Args:
            key: Dotted key.
            value: New value, or None to remove.
            overrides: Selector and/or resource of the write.
            target: Explicit target layer.

        Returns:
            The published change event.

        Raises:
            ConfigurationError: When no write is needed (NO_OP_WRITE), the
                target cannot hold the key (INVALID_TARGET) or the key
                cannot be written this way (UNSUPPORTED). Nothing changes.
        """
        overrides = overrides or targets.ConfigurationOverrides()
        fallback = targets.ConfigurationTarget.from_name(self._settings.writes.fallback_target)
        inspection = self._configuration.inspect(key, overrides)

        resolved = targets.derive_target(key, value, inspection, target, fallback)
        if resolved is None:
            raise errors.ConfigurationError(
                errors.ConfigurationErrorKind.NO_OP_WRITE,
                f"Writing {value!r} to {key} would not change its value",
                key=key,
            )

        topology = self._configuration.topology
        folder: str | None = None
        if (
            resolved is targets.ConfigurationTarget.WORKSPACE
            and topology.state is workspaces.WorkbenchState.FOLDER
        ):
            # A single folder's settings are the workspace settings
            resolved = targets.ConfigurationTarget.WORKSPACE_FOLDER
            folder = topology.folders[0]
            overrides = targets.ConfigurationOverrides(overrides.selector, folder)

        targets.validate_target(
            key,
            resolved,
            overrides,
            topology,
            self._registry,
            enforce_scope=self._settings.folders.enforce_scope,
        )

        if resolved is targets.ConfigurationTarget.MEMORY:
            event = self._configuration.update_value(key, value, overrides)
            return self._publish(event, resolved)

        if resolved is targets.ConfigurationTarget.WORKSPACE_FOLDER:
            folder = topology.get_folder(overrides.resource)

        layer = self._configuration.get_layer_model(resolved, folder)
        aggregate.apply_write(layer, key, value, overrides.selector)

        if self._writer is not None:
            self._writer(WriteRequest(key, value, resolved, overrides, folder, layer.copy()))

        _logger.debug("Writing %s to %s layer", key, resolved.value)
        if resolved is targets.ConfigurationTarget.WORKSPACE_FOLDER:
            return self.update_folder_configuration(_typing.cast(str, folder), layer)
        if resolved is targets.ConfigurationTarget.ORGANIZATION:
            return self.update_organization_configuration(layer)
        if resolved is targets.ConfigurationTarget.USER:
            return self.update_user_configuration(layer)
        return self.update_workspace_configuration(layer)

    # =========================================================================
    # Publishing
    # =========================================================================

    def _on_registry_change(self, keys: list[str]) -> None:
        """Rebuild defaults and folder filters after schemas changed."""
        self._configuration.invalidate()
        layer = self._registry.get_default_configuration_model()
        event = self._configuration.update_default_configuration(layer)
        event.change(keys)
        self._publish(event, targets.ConfigurationTarget.DEFAULT, layer)

    def _publish(
        self,
        event: events.ConfigurationChangeEvent,
        source: targets.ConfigurationTarget | None = None,
        layer: model.LayerModel | None = None,
    ) -> events.ConfigurationChangeEvent:
        """
        Tag ``event`` with its source and deliver it to every listener.

        Listener failures are logged and do not stop delivery.

        Returns:
            The published (workspace-aware) event.
        """
        if source is not None:
            event.with_source(source, layer.get_value() if layer is not None else None)
        published = events.WorkspaceConfigurationChangeEvent(
            event, self._configuration.topology
        )

        if published.is_empty() and self._settings.events.drop_empty:
            _logger.debug("Dropping empty change event from %s", source)
            return published

        _logger.debug("Publishing %r", published)
        for listener in list(self._listeners):
            try:
                listener(published)
            except Exception as e:
                _logger.warning("Configuration listener %r failed: %s", listener, e)
        return published
