"""
LayerModel: the configuration tree of a single layer.

A LayerModel holds three things:
- contents: nested tree of values
- keys: ordered dotted paths of every leaf in contents
- overrides: selector-scoped fragments (see _overrides)

The key index is kept in sync with contents on every mutation, so
iterating ``keys`` is deterministic and never lists a path that is no
longer reachable.

Example:
    >>> model = LayerModel({"a": {"b": 1}})
    >>> model.set_value("f", 1)
    >>> model.keys
    ['a.b', 'f']
    >>> model.remove_value("a.b")
    >>> model.contents
    {'f': 1}
"""

from __future__ import annotations

import collections.abc as _abc
import copy as _copy
import logging as _logging
import typing as _typing

import stratum.model._overrides as _overrides
import stratum.model._tree as _tree
import stratum.model._types as _types

_logger = _logging.getLogger(__name__)


class LayerModel:
    """
    Tree of configuration values for one layer, plus override fragments.

    Mutations (``set_value``, ``remove_value`` and the override variants)
    modify the model in place. ``override`` and ``merge`` always return
    new, independent models.

    Args:
        contents: Nested tree. Stored by reference.
        keys: Leaf key index. Computed by walking ``contents`` when omitted.
        overrides: Override fragments. Stored by reference.

    Note:
        **Thread safety:** Not thread-safe for concurrent writes. Layers are
        expected to be replaced wholesale rather than mutated while other
        threads read them.
    """

    __slots__ = ("_contents", "_keys", "_overrides", "_override_cache")

    def __init__(
        self,
        contents: _types.Tree | None = None,
        keys: _abc.Iterable[str] | None = None,
        overrides: _abc.Iterable[_overrides.OverrideFragment] | None = None,
    ) -> None:
        self._contents: _types.Tree = contents if contents is not None else {}
        self._keys: list[str] = (
            list(keys) if keys is not None else _tree.leaf_keys(self._contents)
        )
        self._overrides: list[_overrides.OverrideFragment] = (
            list(overrides) if overrides is not None else []
        )
        # selector -> (contents, keys) of the override view
        self._override_cache: dict[str, tuple[_types.Tree, list[str]]] = {}

    @classmethod
    def from_raw(
        cls,
        raw: _typing.Any,
        on_conflict: _typing.Callable[[str], None] | None = None,
    ) -> LayerModel:
        """
        Build a model from a raw parsed tree.

        Dotted keys are expanded into nested mappings and top-level
        ``[selector]`` sections become override fragments. Anything other
        than a mapping (None, "", a list) yields an empty model.

        Args:
            raw: Parsed tree as produced by a layer source.
            on_conflict: Called with a message for every dotted key that
                conflicts with an existing non-mapping value. Defaults to
                logging a warning.

        Returns:
            A new LayerModel.
        """
        if on_conflict is None:
            on_conflict = _log_conflict

        if not _types.is_mapping(raw):
            return cls()

        plain: dict[str, _typing.Any] = {}
        fragments: list[_overrides.OverrideFragment] = []
        for key, value in raw.items():
            if _overrides.is_override_key(key):
                if not _types.is_mapping(value):
                    on_conflict(f"Ignoring {key} as its value is not an object")
                    continue
                fragments.append(
                    _overrides.OverrideFragment(
                        _overrides.identifiers_from_key(key),
                        _tree.to_values_tree(value, on_conflict),
                    )
                )
            else:
                plain[key] = value

        return cls(
            _tree.to_values_tree(plain, on_conflict),
            overrides=_overrides.merge_fragments(fragments),
        )

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def contents(self) -> _types.Tree:
        """The value tree. Treat as read-only; use the mutation methods."""
        return self._contents

    @property
    def keys(self) -> list[str]:
        """Dotted paths of every leaf, in insertion order."""
        return list(self._keys)

    @property
    def overrides(self) -> list[_overrides.OverrideFragment]:
        """Override fragments, in order."""
        return list(self._overrides)

    @property
    def override_identifiers(self) -> list[str]:
        """Every selector served by at least one fragment, first-seen order."""
        seen: dict[str, None] = {}
        for fragment in self._overrides:
            for identifier in fragment.identifiers:
                seen.setdefault(identifier, None)
        return list(seen)

    @property
    def override_keys(self) -> list[str]:
        """Override keys of the fragments, e.g. ``["[markdown]"]``."""
        return [fragment.key for fragment in self._overrides]

    def is_empty(self) -> bool:
        """True when the model defines no values and no fragments."""
        return not self._contents and not self._overrides

    def lookup(self, key: str | None) -> _typing.Any:
        """
        Get a deep copy of the value at ``key``, or UNSET.

        Override keys (``[markdown]``) resolve to the contents of the
        fragment serving exactly those selectors.
        """
        if key and _overrides.is_override_key(key):
            fragment = _overrides.find_fragment(
                self._overrides, _overrides.identifiers_from_key(key)
            )
            if fragment is None:
                return _types.UNSET
            return _copy.deepcopy(fragment.contents)

        value = _tree.lookup(self._contents, key)
        if value is _types.UNSET:
            return value
        return _copy.deepcopy(value)

    def get_value(self, key: str | None = None, default: _typing.Any = None) -> _typing.Any:
        """
        Get a deep copy of the value at ``key``.

        Args:
            key: Dotted key. None returns the whole contents.
            default: Returned when any segment is missing.
        """
        value = self.lookup(key)
        return default if value is _types.UNSET else value

    def get_section_contents(self, section: str) -> _typing.Any:
        """Get the subtree or value at ``section``, or None when absent."""
        return self.get_value(section)

    def has_value(self, key: str) -> bool:
        """Check whether ``key`` resolves to a value (including None)."""
        return self.lookup(key) is not _types.UNSET

    def get_override_contents(self, identifiers: str | _abc.Iterable[str]) -> _typing.Any:
        """Get a copy of the fragment serving exactly ``identifiers``, or None."""
        fragment = _overrides.find_fragment(
            self._overrides, _overrides.normalize_identifiers(identifiers)
        )
        return _copy.deepcopy(fragment.contents) if fragment is not None else None

    # =========================================================================
    # Mutation
    # =========================================================================

    def set_value(self, key: str, value: _typing.Any) -> None:
        """
        Set ``value`` at dotted ``key``, creating intermediate mappings.

        Existing keys keep their position. Keys made unreachable by the
        write (an ancestor or descendant of ``key``) are replaced in place
        by the new leaf path(s). Setting an override key replaces that
        fragment's contents.
        """
        self._clear_cache()

        if _overrides.is_override_key(key):
            identifiers = _overrides.identifiers_from_key(key)
            fragment = _overrides.find_fragment(self._overrides, identifiers)
            if fragment is None:
                self._overrides.append(
                    _overrides.OverrideFragment(identifiers, _copy.deepcopy(value))
                )
            else:
                fragment.contents = _copy.deepcopy(value)
            return

        _tree.set_at(self._contents, _tree.split_key(key), _copy.deepcopy(value))
        self._keys = _index_keys(self._keys, key, value)

    def remove_value(self, key: str) -> None:
        """
        Remove the value at ``key`` and prune empty parents.

        Removing ``"a.b"`` from ``{"a": {"b": 1}}`` leaves ``{}``. Absent
        keys are a no-op. Removing an override key drops the fragment.
        """
        if _overrides.is_override_key(key):
            wanted = frozenset(_overrides.identifiers_from_key(key))
            remaining = [f for f in self._overrides if f.selector_set != wanted]
            if len(remaining) != len(self._overrides):
                self._clear_cache()
                self._overrides = remaining
            return

        if not _tree.remove_at(self._contents, _tree.split_key(key)):
            return

        self._clear_cache()
        self._keys = [
            existing
            for existing in self._keys
            if existing != key and not _tree.is_ancestor(key, existing)
        ]

    def set_value_in_overrides(
        self,
        selector: str | _abc.Iterable[str],
        key: str,
        value: _typing.Any,
    ) -> None:
        """
        Set ``value`` at ``key`` inside the fragment for ``selector``.

        A single selector addresses the fragment serving only that selector.
        Pass every identifier to address a combined fragment. A missing
        fragment is appended.
        """
        self._clear_cache()

        identifiers = _overrides.normalize_identifiers(selector)
        fragment = _overrides.find_fragment(self._overrides, identifiers)
        if fragment is None:
            fragment = _overrides.OverrideFragment(identifiers)
            self._overrides.append(fragment)
        if not _types.is_mapping(fragment.contents):
            fragment.contents = {}

        _tree.set_at(fragment.contents, _tree.split_key(key), _copy.deepcopy(value))

    def remove_value_in_overrides(
        self,
        selector: str | _abc.Iterable[str],
        key: str,
    ) -> None:
        """
        Remove ``key`` from the fragment for ``selector``.

        Empty parents are pruned; a fragment left empty is dropped.
        """
        identifiers = _overrides.normalize_identifiers(selector)
        fragment = _overrides.find_fragment(self._overrides, identifiers)
        if fragment is None or not _types.is_mapping(fragment.contents):
            return

        if not _tree.remove_at(fragment.contents, _tree.split_key(key)):
            return

        self._clear_cache()
        if not fragment.contents:
            self._overrides.remove(fragment)

    def _clear_cache(self) -> None:
        """Clear cached override views."""
        self._override_cache.clear()

    # =========================================================================
    # Derived models
    # =========================================================================

    def override(self, selector: str) -> LayerModel:
        """
        Get the model as seen while ``selector`` is active.

        Fragments serving ``selector`` are deep-merged into the contents,
        fragment values winning. A mapping replaced by a non-mapping (or the
        reverse) is replaced wholesale. When no fragment contributes, the
        result equals this model.

        Returns:
            A new, independent LayerModel.
        """
        cached = self._override_cache.get(selector)
        if cached is None:
            merged = _overrides.resolve(self._contents, self._overrides, selector)
            if merged is None:
                cached = (self._contents, self._keys)
            else:
                cached = (merged, _tree.leaf_keys(merged))
            self._override_cache[selector] = cached

        contents, keys = cached
        return LayerModel(
            _copy.deepcopy(contents),
            list(keys),
            [fragment.copy() for fragment in self._overrides],
        )

    def merge(self, *others: LayerModel) -> LayerModel:
        """
        Merge other models on top of this one.

        Contents merge recursively, later models winning. Keys keep this
        model's order, with new keys from the others appended; keys that
        are no longer leaves of the merged tree are dropped. Fragments serving
        the same selectors are merged.

        Returns:
            A new, independent LayerModel.
        """
        contents = _copy.deepcopy(self._contents)
        keys = list(self._keys)
        seen = set(keys)
        for other in others:
            _tree.merge_into(contents, other._contents)
            for key in other._keys:
                if key not in seen:
                    seen.add(key)
                    keys.append(key)

        keys = [key for key in keys if _is_leaf(_tree.lookup(contents, key))]
        overrides = _overrides.merge_fragments(
            self._overrides, *(other._overrides for other in others)
        )
        return LayerModel(contents, keys, overrides)

    def copy(self) -> LayerModel:
        """Return an independent deep copy."""
        return LayerModel(
            _copy.deepcopy(self._contents),
            list(self._keys),
            [fragment.copy() for fragment in self._overrides],
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LayerModel):
            return NotImplemented
        return (
            self._contents == other._contents
            and self._keys == other._keys
            and self._overrides == other._overrides
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        parts = [repr(self._contents)]
        if self._overrides:
            parts.append(f"overrides={self._overrides!r}")
        return f"LayerModel({', '.join(parts)})"


def _index_keys(keys: list[str], key: str, value: _typing.Any) -> list[str]:
    """
    Update a key index after writing ``value`` at ``key``.

    Keys related to ``key`` (equal, ancestor or descendant) are replaced by
    the leaf paths of the new value, at the position of the first one.
    """
    if _types.is_mapping(value) and value:
        new_keys = [f"{key}{_types.SEPARATOR}{leaf}" for leaf in _tree.leaf_keys(value)]
    else:
        new_keys = [key]

    position: int | None = None
    remaining: list[str] = []
    for existing in keys:
        if _tree.is_related(existing, key):
            if position is None:
                position = len(remaining)
        else:
            remaining.append(existing)

    if position is None:
        position = len(remaining)
    remaining[position:position] = new_keys
    return remaining


def _is_leaf(value: _typing.Any) -> bool:
    """A leaf is present and is not a non-empty mapping."""
    if value is _types.UNSET:
        return False
    return not (_types.is_mapping(value) and value)


def _log_conflict(message: str) -> None:
    """Default conflict handler for from_raw."""
    _logger.warning("Conflict while building configuration layer: %s", message)
