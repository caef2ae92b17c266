"""
Selector-scoped override fragments and the override resolver.

A layer can carry fragments that apply only while a selector (for example
a language id) is active. In raw trees a fragment is a top-level section
whose key names its selectors in brackets:

    {
        "editor": {"fontSize": 12},
        "[markdown]": {"editor": {"fontSize": 16}},
        "[javascript][typescript]": {"editor": {"tabSize": 2}},
    }

Resolving a selector deep-merges every fragment that lists it into the
base tree, the fragment winning on conflicts.
"""

from __future__ import annotations

import collections.abc as _abc
import copy as _copy
import dataclasses as _dataclasses
import re as _re
import typing as _typing

import stratum.model._tree as _tree
import stratum.model._types as _types

# One or more bracketed identifiers and nothing else: "[a]" or "[a][b]"
OVERRIDE_KEY_PATTERN = _re.compile(r"^(\[[^\[\]]+\])+$")
_IDENTIFIER_PATTERN = _re.compile(r"\[([^\[\]]+)\]")


def is_override_key(key: str) -> bool:
    """Check whether a key names override selectors, e.g. ``[markdown]``."""
    return bool(OVERRIDE_KEY_PATTERN.match(key))


def identifiers_from_key(key: str) -> tuple[str, ...]:
    """
    Extract the selectors named by an override key.

    Example:
        >>> identifiers_from_key("[javascript][typescript]")
        ('javascript', 'typescript')

    Returns:
        The identifiers in order, or an empty tuple if ``key`` is not an
        override key.
    """
    if not is_override_key(key):
        return ()
    return tuple(_IDENTIFIER_PATTERN.findall(key))


def key_from_identifiers(identifiers: str | _abc.Iterable[str]) -> str:
    """Render selectors as an override key: ``("a", "b")`` -> ``"[a][b]"``."""
    if isinstance(identifiers, str):
        identifiers = (identifiers,)
    return "".join(f"[{identifier}]" for identifier in identifiers)


def normalize_identifiers(selector: str | _abc.Iterable[str]) -> tuple[str, ...]:
    """Turn a single selector or an iterable of selectors into a tuple."""
    if isinstance(selector, str):
        return (selector,)
    return tuple(selector)


@_dataclasses.dataclass(eq=False, slots=True)
class OverrideFragment:
    """
    Contents that apply only while one of ``identifiers`` is active.

    Two fragments are equal when they serve the same set of identifiers
    (order does not matter) and hold equal contents.
    """

    identifiers: tuple[str, ...]
    contents: _typing.Any = _dataclasses.field(default_factory=dict)

    @property
    def selector_set(self) -> frozenset[str]:
        """Identifiers as a set, used to match fragments."""
        return frozenset(self.identifiers)

    @property
    def key(self) -> str:
        """Override key for this fragment, e.g. ``[markdown]``."""
        return key_from_identifiers(self.identifiers)

    def applies_to(self, selector: str) -> bool:
        """Check whether this fragment serves ``selector``."""
        return selector in self.identifiers

    def copy(self) -> OverrideFragment:
        """Return an independent deep copy."""
        return OverrideFragment(self.identifiers, _copy.deepcopy(self.contents))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OverrideFragment):
            return NotImplemented
        return self.selector_set == other.selector_set and self.contents == other.contents

    def __repr__(self) -> str:
        return f"OverrideFragment({self.key}, {self.contents!r})"


def find_fragment(
    fragments: _abc.Iterable[OverrideFragment],
    identifiers: _abc.Iterable[str],
) -> OverrideFragment | None:
    """Find the fragment serving exactly ``identifiers`` (as a set)."""
    wanted = frozenset(identifiers)
    for fragment in fragments:
        if fragment.selector_set == wanted:
            return fragment
    return None


def resolve(
    contents: _abc.Mapping[str, _typing.Any],
    fragments: _abc.Iterable[OverrideFragment],
    selector: str,
) -> _types.Tree | None:
    """
    Compute the selector-specialised contents of a layer.

    Every fragment serving ``selector`` is merged, in order, into a copy
    of ``contents``. Fragments whose contents are not a mapping, or are
    an empty mapping, are skipped.

    Args:
        contents: The base tree.
        fragments: The layer's override fragments.
        selector: The active selector.

    Returns:
        The merged tree, or None if no fragment contributed anything
        (the base applies unchanged).
    """
    applicable = [
        fragment.contents
        for fragment in fragments
        if fragment.applies_to(selector)
        and _types.is_mapping(fragment.contents)
        and fragment.contents
    ]
    if not applicable:
        return None

    result = _copy.deepcopy(dict(contents))
    for fragment_contents in applicable:
        _tree.merge_into(result, fragment_contents)
    return result


def merge_fragments(
    *fragment_lists: _abc.Iterable[OverrideFragment],
) -> list[OverrideFragment]:
    """
    Concatenate fragment lists, merging fragments that serve the same set.

    Later fragments win on conflicts. The result holds independent copies.

    Returns:
        Fragments with pairwise distinct identifier sets, in first-seen order.
    """
    result: list[OverrideFragment] = []
    for fragments in fragment_lists:
        for fragment in fragments:
            existing = find_fragment(result, fragment.identifiers)
            if existing is None:
                result.append(fragment.copy())
            elif _types.is_mapping(existing.contents) and _types.is_mapping(
                fragment.contents
            ):
                _tree.merge_into(existing.contents, fragment.contents)
            else:
                existing.contents = _copy.deepcopy(fragment.contents)
    return result
