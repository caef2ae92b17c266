"""
Errors raised by the configuration write path.

Reads and layer swaps never raise. A write whose target cannot be
determined or is not allowed for the key raises ConfigurationError before
anything is mutated, so the caller can retry with another target.
"""

from __future__ import annotations

import enum as _enum
import typing as _typing

if _typing.TYPE_CHECKING:
    import stratum.configuration.targets as targets


class ConfigurationErrorKind(_enum.Enum):
    """Why a write was rejected."""

    INVALID_TARGET = "invalid-target"
    """The target layer does not exist or cannot hold the key."""

    NO_OP_WRITE = "no-op-write"
    """The write would not change the effective value."""

    UNSUPPORTED = "unsupported"
    """The key cannot be written this way (executable, not overridable)."""


class ConfigurationError(Exception):
    """A configuration write that was rejected without mutation."""

    def __init__(
        self,
        kind: ConfigurationErrorKind,
        message: str,
        *,
        key: str | None = None,
        target: targets.ConfigurationTarget | None = None,
    ) -> None:
        self.kind = kind
        self.key = key
        self.target = target
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"ConfigurationError({self.kind.name}, {str(self)!r}, "
            f"key={self.key!r}, target={self.target!r})"
        )
