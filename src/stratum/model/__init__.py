"""
Configuration layer model.

This package provides the tree of a single configuration layer and the
algorithms that operate on it: dotted-path access with cascading prune,
deep merge, selector overrides, and layer diffs.

Example:
    >>> from stratum.model import LayerModel
    >>> model = LayerModel.from_raw(
    ...     {"editor.fontSize": 12, "[markdown]": {"editor.fontSize": 16}}
    ... )
    >>> model.get_value("editor.fontSize")
    12
    >>> model.override("markdown").get_value("editor.fontSize")
    16
"""

from stratum.model._diff import LayerDiff, compare
from stratum.model._layer import LayerModel
from stratum.model._overrides import (
    OverrideFragment,
    identifiers_from_key,
    is_override_key,
    key_from_identifiers,
)
from stratum.model._tree import (
    is_ancestor,
    is_related,
    leaf_keys,
    lookup,
    merge_trees,
    to_values_tree,
)
from stratum.model._types import UNSET, SEPARATOR, Tree, ValueKind, kind_of

__all__ = [
    "SEPARATOR",
    "UNSET",
    "LayerDiff",
    "LayerModel",
    "OverrideFragment",
    "Tree",
    "ValueKind",
    "compare",
    "identifiers_from_key",
    "is_ancestor",
    "is_override_key",
    "is_related",
    "key_from_identifiers",
    "kind_of",
    "leaf_keys",
    "lookup",
    "merge_trees",
    "to_values_tree",
]
