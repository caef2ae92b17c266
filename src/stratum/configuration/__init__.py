"""
Layer aggregate, change events, write targets and the publishing service.
"""

from stratum.configuration.aggregate import Configuration, LayerKeys, apply_write
from stratum.configuration.data import (
    ConfigurationData,
    LayerModelData,
    OverrideData,
    WorkspaceData,
)
from stratum.configuration.errors import ConfigurationError, ConfigurationErrorKind
from stratum.configuration.events import (
    AllKeysConfigurationChangeEvent,
    ConfigurationChangeEvent,
    ConfigurationDiff,
    WorkspaceConfigurationChangeEvent,
    compare_configurations,
)
from stratum.configuration.service import ConfigurationService, WriteRequest
from stratum.configuration.targets import (
    ConfigurationOverrides,
    ConfigurationTarget,
    Inspection,
    derive_target,
    validate_target,
)

__all__ = [
    "AllKeysConfigurationChangeEvent",
    "Configuration",
    "ConfigurationChangeEvent",
    "ConfigurationData",
    "ConfigurationDiff",
    "ConfigurationError",
    "ConfigurationErrorKind",
    "ConfigurationOverrides",
    "ConfigurationService",
    "ConfigurationTarget",
    "Inspection",
    "LayerKeys",
    "LayerModelData",
    "OverrideData",
    "WorkspaceConfigurationChangeEvent",
    "WorkspaceData",
    "WriteRequest",
    "apply_write",
    "compare_configurations",
    "derive_target",
    "validate_target",
]
