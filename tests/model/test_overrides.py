"""Tests for override keys and fragment resolution."""

import stratum.model as model
import stratum.model._overrides as overrides


class TestOverrideKeys:
    """Parsing and rendering of [selector] keys."""

    def test_single_identifier(self) -> None:
        assert model.is_override_key("[markdown]")
        assert model.identifiers_from_key("[markdown]") == ("markdown",)

    def test_combined_identifiers(self) -> None:
        assert model.identifiers_from_key("[javascript][typescript]") == (
            "javascript",
            "typescript",
        )

    def test_plain_keys_are_not_override_keys(self) -> None:
        assert not model.is_override_key("editor.fontSize")
        assert not model.is_override_key("[]")
        assert not model.is_override_key("[a]b")
        assert model.identifiers_from_key("editor") == ()

    def test_render(self) -> None:
        assert model.key_from_identifiers("markdown") == "[markdown]"
        assert model.key_from_identifiers(["a", "b"]) == "[a][b]"


class TestOverrideFragment:
    """Fragment identity and matching."""

    def test_equality_ignores_identifier_order(self) -> None:
        first = model.OverrideFragment(("a", "b"), {"x": 1})
        second = model.OverrideFragment(("b", "a"), {"x": 1})
        assert first == second

    def test_applies_to_any_identifier(self) -> None:
        fragment = model.OverrideFragment(("javascript", "typescript"))
        assert fragment.applies_to("typescript")
        assert not fragment.applies_to("markdown")

    def test_copy_is_independent(self) -> None:
        fragment = model.OverrideFragment(("a",), {"x": {"y": 1}})
        copied = fragment.copy()
        copied.contents["x"]["y"] = 2
        assert fragment.contents == {"x": {"y": 1}}


class TestResolve:
    """Selector-specialised contents."""

    def test_no_applicable_fragment(self) -> None:
        fragments = [model.OverrideFragment(("python",), {"a": 1})]
        assert overrides.resolve({"a": 0}, fragments, "markdown") is None

    def test_empty_or_non_mapping_fragment_is_skipped(self) -> None:
        fragments = [
            model.OverrideFragment(("markdown",), {}),
            model.OverrideFragment(("markdown",), "not a mapping"),
        ]
        assert overrides.resolve({"a": 0}, fragments, "markdown") is None

    def test_fragments_apply_in_order(self) -> None:
        fragments = [
            model.OverrideFragment(("markdown",), {"a": 1, "b": 1}),
            model.OverrideFragment(("markdown", "latex"), {"b": 2}),
        ]
        assert overrides.resolve({"a": 0}, fragments, "markdown") == {"a": 1, "b": 2}


class TestMergeFragments:
    """Combining fragment lists."""

    def test_same_identifier_set_is_merged(self) -> None:
        merged = overrides.merge_fragments(
            [model.OverrideFragment(("a",), {"x": 1, "y": {"z": 1}})],
            [model.OverrideFragment(("a",), {"y": {"w": 2}})],
        )
        assert merged == [model.OverrideFragment(("a",), {"x": 1, "y": {"z": 1, "w": 2}})]

    def test_distinct_sets_are_concatenated(self) -> None:
        merged = overrides.merge_fragments(
            [model.OverrideFragment(("a",), {"x": 1})],
            [model.OverrideFragment(("a", "b"), {"x": 2})],
        )
        assert [fragment.key for fragment in merged] == ["[a]", "[a][b]"]

    def test_later_fragment_wins(self) -> None:
        merged = overrides.merge_fragments(
            [model.OverrideFragment(("a",), {"x": 1})],
            [model.OverrideFragment(("a",), {"x": 2})],
        )
        assert merged[0].contents == {"x": 2}

    def test_inputs_are_not_modified(self) -> None:
        first = model.OverrideFragment(("a",), {"x": {"y": 1}})
        overrides.merge_fragments([first], [model.OverrideFragment(("a",), {"x": {"z": 2}})])
        assert first.contents == {"x": {"y": 1}}
