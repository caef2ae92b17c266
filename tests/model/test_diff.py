"""Tests for layer diffs."""

import stratum.model as model


class TestCompare:
    """compare(before, after)."""

    def test_added_updated_removed(self) -> None:
        before = model.LayerModel({"a": 1, "b": {"c": 1}, "d": 1})
        after = model.LayerModel({"a": 2, "b": {"c": 1}, "e": 1})
        diff = model.compare(before, after)
        assert diff.added == ("e",)
        assert diff.updated == ("a",)
        assert diff.removed == ("d",)
        assert diff.all_keys == ["e", "a", "d"]

    def test_identical_models(self) -> None:
        layer = model.LayerModel({"a": {"b": [1, 2]}})
        diff = model.compare(layer, layer.copy())
        assert not diff
        assert diff.all_keys == []

    def test_none_is_empty(self) -> None:
        diff = model.compare(None, model.LayerModel({"a": 1}))
        assert diff.added == ("a",)
        assert model.compare(model.LayerModel({"a": 1}), None).removed == ("a",)

    def test_override_keys(self) -> None:
        before = model.LayerModel.from_raw({"[markdown]": {"a": 1}, "[python]": {"a": 1}})
        after = model.LayerModel.from_raw({"[markdown]": {"a": 2}, "[latex]": {"a": 1}})
        diff = model.compare(before, after)
        assert diff.added == ("[latex]",)
        assert diff.updated == ("[markdown]",)
        assert diff.removed == ("[python]",)

    def test_null_to_value_is_update(self) -> None:
        diff = model.compare(model.LayerModel({"a": None}), model.LayerModel({"a": 0}))
        assert diff.updated == ("a",)
