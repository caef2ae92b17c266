"""
Type aliases and value classification for configuration trees.

This module provides:
- Tree: A nested mapping of string segments to values
- UNSET: Sentinel marking a value that no layer defines
- ValueKind: Classification of a value (scalar, sequence, mapping)
"""

from __future__ import annotations

import collections.abc as _abc
import enum as _enum
import typing as _typing

# A configuration tree: internal nodes are mappings, leaves are opaque values
# Example: {"editor": {"fontSize": 12}} represents editor.fontSize = 12
Tree: _typing.TypeAlias = dict[str, _typing.Any]

# Segment path of a dotted key
# Example: ("editor", "fontSize") represents editor.fontSize
Path: _typing.TypeAlias = tuple[str, ...]

SEPARATOR = "."
"""Separator between segments of a dotted key."""


# Helper function to reconstruct UNSET singleton during unpickle
def _get_unset_singleton() -> _UnsetType:
    """Return the UNSET singleton. Called by pickle to reconstruct."""
    return UNSET


class _UnsetType:
    """Sentinel type marking a key that is not defined.

    Distinct from None, which is an explicit JSON null.
    """

    __slots__ = ()

    def __repr__(self) -> str:
        return "<UNSET>"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> tuple[_typing.Callable[[], _UnsetType], tuple[()]]:
        """Pickle support: ensure singleton is preserved."""
        return (_get_unset_singleton, ())


UNSET: _typing.Final = _UnsetType()


class ValueKind(_enum.Enum):
    """Shape of a configuration value, used to pick a merge rule."""

    SCALAR = "scalar"
    """str, int, float, bool or None."""

    SEQUENCE = "sequence"
    """A list. Lists always replace, they never merge element-wise."""

    MAPPING = "mapping"
    """A subtree. Two mappings merge recursively."""


def kind_of(value: _typing.Any) -> ValueKind:
    """
    Classify a value.

    Args:
        value: Any tree value.

    Returns:
        MAPPING for mappings, SEQUENCE for non-string sequences,
        SCALAR otherwise.
    """
    if isinstance(value, _abc.Mapping):
        return ValueKind.MAPPING
    if isinstance(value, _abc.Sequence) and not isinstance(value, (str, bytes)):
        return ValueKind.SEQUENCE
    return ValueKind.SCALAR


def is_mapping(value: _typing.Any) -> bool:
    """Check whether a value is a subtree."""
    return kind_of(value) is ValueKind.MAPPING
