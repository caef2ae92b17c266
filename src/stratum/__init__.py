"""
Stratum - layered configuration resolution

Computes effective configuration values from precedence-ordered layers
(default, organization, user, workspace, folder, memory), each of which
may carry selector-scoped overrides, and reports exactly which keys
changed when a layer is swapped.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("stratum")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)

from stratum.configuration import (  # noqa: E402
    Configuration,
    ConfigurationChangeEvent,
    ConfigurationError,
    ConfigurationErrorKind,
    ConfigurationOverrides,
    ConfigurationService,
    ConfigurationTarget,
)
from stratum.model import UNSET, LayerModel  # noqa: E402
from stratum.registry import ConfigurationScope, StaticSchemaRegistry  # noqa: E402
from stratum.settings import Settings  # noqa: E402
from stratum.workspace import WorkbenchState, Workspace  # noqa: E402

__all__ = [
    "__version__",
    "__version_info__",
    "UNSET",
    "Configuration",
    "ConfigurationChangeEvent",
    "ConfigurationError",
    "ConfigurationErrorKind",
    "ConfigurationOverrides",
    "ConfigurationScope",
    "ConfigurationService",
    "ConfigurationTarget",
    "LayerModel",
    "Settings",
    "StaticSchemaRegistry",
    "WorkbenchState",
    "Workspace",
]
