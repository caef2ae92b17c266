"""
Path helpers and deep merge for configuration trees.

All helpers are total: a missing segment or a non-mapping intermediate
yields UNSET (or a no-op) rather than an exception.

Example:
    >>> tree = {}
    >>> set_at(tree, ("editor", "fontSize"), 12)
    >>> lookup(tree, "editor.fontSize")
    12
    >>> remove_at(tree, ("editor", "fontSize"))
    True
    >>> tree
    {}
"""

from __future__ import annotations

import collections.abc as _abc
import copy as _copy
import typing as _typing

import stratum.model._types as _types


def split_key(key: str) -> _types.Path:
    """Split a dotted key into its segments."""
    return tuple(key.split(_types.SEPARATOR))


def join_path(path: _abc.Iterable[str]) -> str:
    """Join segments into a dotted key."""
    return _types.SEPARATOR.join(path)


def is_ancestor(ancestor: str, key: str) -> bool:
    """
    Check whether ``ancestor`` is a strict dotted prefix of ``key``.

    ``"window"`` is an ancestor of ``"window.zoomLevel"`` but not of
    ``"windows"``.
    """
    return key.startswith(ancestor + _types.SEPARATOR)


def is_related(first: str, second: str) -> bool:
    """True if the keys are equal or one is a dotted ancestor of the other."""
    return first == second or is_ancestor(first, second) or is_ancestor(second, first)


def lookup(tree: _typing.Any, key: str | None) -> _typing.Any:
    """
    Get the value at a dotted key.

    Args:
        tree: The tree to walk.
        key: Dotted key. None or "" returns the tree itself.

    Returns:
        The value (not copied), or UNSET if any segment is missing.
    """
    if not key:
        return tree
    return lookup_path(tree, split_key(key))


def lookup_path(tree: _typing.Any, path: _types.Path) -> _typing.Any:
    """Get the value at a segment path, or UNSET."""
    current = tree
    for segment in path:
        if not _types.is_mapping(current) or segment not in current:
            return _types.UNSET
        current = current[segment]
    return current


def set_at(tree: _types.Tree, path: _types.Path, value: _typing.Any) -> None:
    """
    Set a value at a segment path, creating intermediate mappings.

    A non-mapping intermediate is replaced by a mapping.

    Args:
        tree: The tree to modify in place.
        path: Segments leading to the value. Must not be empty.
        value: The value to store (stored by reference).
    """
    if not path:
        return

    current = tree
    for segment in path[:-1]:
        if segment not in current or not _types.is_mapping(current[segment]):
            current[segment] = {}
        current = current[segment]

    current[path[-1]] = value


def remove_at(tree: _types.Tree, path: _types.Path) -> bool:
    """
    Remove the value at a segment path and prune empty parents.

    Every mapping left empty by the removal is removed from its parent,
    recursively up to the root.

    Args:
        tree: The tree to modify in place.
        path: Segments leading to the value.

    Returns:
        True if a value was removed, False if the path was absent.
    """
    if not path:
        return False

    # Collect the chain of parents so the prune can walk back up
    parents: list[_types.Tree] = []
    current: _typing.Any = tree
    for segment in path[:-1]:
        if not _types.is_mapping(current) or segment not in current:
            return False
        parents.append(current)
        current = current[segment]

    if not _types.is_mapping(current) or path[-1] not in current:
        return False

    del current[path[-1]]

    # Prune upward: current is the direct parent of the removed value
    child = current
    for depth in range(len(parents) - 1, -1, -1):
        if child:
            break
        del parents[depth][path[depth]]
        child = parents[depth]

    return True


def merge_into(target: _types.Tree, source: _abc.Mapping[str, _typing.Any]) -> _types.Tree:
    """
    Deep merge ``source`` into ``target`` in place, source winning.

    Rules, dispatched on the kinds of both values:
    - key absent in target: take the source value (deep copied)
    - mapping and mapping: recurse
    - any other pair: the source value replaces the target value

    Args:
        target: The tree to modify.
        source: The higher-priority tree.

    Returns:
        The target, for chaining.
    """
    for key, value in source.items():
        existing = target.get(key, _types.UNSET)
        if (
            _types.kind_of(existing) is _types.ValueKind.MAPPING
            and _types.kind_of(value) is _types.ValueKind.MAPPING
        ):
            merge_into(existing, value)
        else:
            target[key] = _copy.deepcopy(value)
    return target


def merge_trees(*trees: _abc.Mapping[str, _typing.Any]) -> _types.Tree:
    """Merge trees left to right into a new tree, later trees winning."""
    result: _types.Tree = {}
    for tree in trees:
        merge_into(result, tree)
    return result


def leaf_keys(tree: _abc.Mapping[str, _typing.Any], prefix: str = "") -> list[str]:
    """
    List the dotted paths of every leaf in a tree, depth first.

    A leaf is any non-mapping value or an empty mapping.

    Args:
        tree: The tree to walk.
        prefix: Dotted prefix prepended to every path (used in recursion).

    Returns:
        Dotted paths in insertion order.
    """
    result: list[str] = []
    for segment, value in tree.items():
        path = f"{prefix}{_types.SEPARATOR}{segment}" if prefix else segment
        if _types.is_mapping(value) and value:
            result.extend(leaf_keys(value, path))
        else:
            result.append(path)
    return result


def to_values_tree(
    flat: _abc.Mapping[str, _typing.Any],
    on_conflict: _typing.Callable[[str], None],
) -> _types.Tree:
    """
    Expand dotted keys of a raw mapping into a nested tree.

    Example:
        >>> to_values_tree({"editor.fontSize": 12, "files": {"x": 1}}, print)
        {'editor': {'fontSize': 12}, 'files': {'x': 1}}

    A dotted key whose intermediate segment already holds a non-mapping
    value is a conflict: it is reported through ``on_conflict`` and skipped.

    Args:
        flat: Raw mapping, keys may contain dots.
        on_conflict: Called with a message for every conflicting key.

    Returns:
        A new nested tree (values deep copied).
    """
    root: _types.Tree = {}
    for key, value in flat.items():
        path = split_key(key)
        current = root
        conflict = False
        for index, segment in enumerate(path[:-1]):
            existing = current.get(segment, _types.UNSET)
            if existing is _types.UNSET:
                current[segment] = {}
            elif not _types.is_mapping(existing):
                on_conflict(
                    f"Ignoring {key} as {join_path(path[: index + 1])} is {existing!r}"
                )
                conflict = True
                break
            current = current[segment]
        if conflict:
            continue

        final = path[-1]
        existing = current.get(final, _types.UNSET)
        if _types.is_mapping(existing) and _types.is_mapping(value):
            merge_into(existing, value)
        else:
            current[final] = _copy.deepcopy(value)
    return root
