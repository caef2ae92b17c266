"""
Key-level diff between two versions of a layer.
"""

from __future__ import annotations

import dataclasses as _dataclasses

import stratum.model._layer as _layer


@_dataclasses.dataclass(frozen=True, slots=True)
class LayerDiff:
    """Keys added, updated and removed between two layer models."""

    added: tuple[str, ...] = ()
    updated: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()

    @property
    def all_keys(self) -> list[str]:
        """Added, then updated, then removed keys."""
        return [*self.added, *self.updated, *self.removed]

    def __bool__(self) -> bool:
        return bool(self.added or self.updated or self.removed)


def compare(before: _layer.LayerModel | None, after: _layer.LayerModel | None) -> LayerDiff:
    """
    Diff two versions of a layer.

    Keys are the leaf keys plus the override keys (``[markdown]``) of both
    models. A key present in both is updated when its value (or fragment
    contents, for override keys) differs.

    Args:
        before: The current layer. None is treated as empty.
        after: The replacement layer. None is treated as empty.

    Returns:
        The LayerDiff.
    """
    before = before if before is not None else _layer.LayerModel()
    after = after if after is not None else _layer.LayerModel()

    before_keys = [*before.keys, *before.override_keys]
    after_keys = [*after.keys, *after.override_keys]
    before_set = set(before_keys)
    after_set = set(after_keys)

    added = tuple(key for key in after_keys if key not in before_set)
    removed = tuple(key for key in before_keys if key not in after_set)
    updated = tuple(
        key
        for key in after_keys
        if key in before_set and before.lookup(key) != after.lookup(key)
    )
    return LayerDiff(added, updated, removed)
