"""Tests for write target derivation and validation."""

import pytest as _pytest

import stratum.configuration as configuration
import stratum.model as model
import stratum.registry as registry
import stratum.workspace as workspace

Target = configuration.ConfigurationTarget


def _inspection(**layers: object) -> configuration.Inspection:
    values = dict(layers)
    value = model.UNSET
    for name in ("default", "organization", "user", "workspace", "workspace_folder", "memory"):
        if name in values:
            value = values[name]
    return configuration.Inspection(key="editor.fontSize", value=value, **values)


class TestTargetNames:
    """Parsing targets from settings values."""

    @_pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("user", Target.USER),
            ("USER", Target.USER),
            ("workspace-folder", Target.WORKSPACE_FOLDER),
            ("WORKSPACE_FOLDER", Target.WORKSPACE_FOLDER),
        ],
    )
    def test_from_name(self, name: str, expected: configuration.ConfigurationTarget) -> None:
        assert Target.from_name(name) is expected

    def test_unknown_name(self) -> None:
        with _pytest.raises(KeyError):
            Target.from_name("galaxy")


class TestInspection:
    """Per-layer values of one key."""

    def test_defined_targets(self) -> None:
        inspection = _inspection(default=12, user=None)
        assert inspection.defined_targets == [Target.DEFAULT, Target.USER]
        assert inspection.value_for(Target.USER) is None
        assert inspection.value_for(Target.WORKSPACE) is model.UNSET


class TestDeriveTarget:
    """Choosing a layer when the caller names none."""

    def test_explicit_target_is_kept(self) -> None:
        inspection = _inspection(default=12)
        assert (
            configuration.derive_target("editor.fontSize", 12, inspection, Target.MEMORY)
            is Target.MEMORY
        )

    def test_value_equal_to_effective_value(self) -> None:
        inspection = _inspection(default=12, user=14)
        assert configuration.derive_target("editor.fontSize", 14, inspection) is None

    def test_none_value_without_target(self) -> None:
        inspection = _inspection(default=12, user=14)
        assert configuration.derive_target("editor.fontSize", None, inspection) is None

    @_pytest.mark.parametrize(
        ("layers", "expected"),
        [
            (
                {"default": 12, "user": 13, "workspace": 14, "workspace_folder": 15},
                Target.WORKSPACE_FOLDER,
            ),
            ({"default": 12, "user": 13, "workspace": 14}, Target.WORKSPACE),
            ({"default": 12, "user": 13}, Target.USER),
        ],
    )
    def test_most_specific_defining_layer(
        self, layers: dict[str, int], expected: configuration.ConfigurationTarget
    ) -> None:
        inspection = _inspection(**layers)
        assert configuration.derive_target("editor.fontSize", 20, inspection) is expected

    def test_fallback(self) -> None:
        inspection = _inspection(default=12, organization=13)
        assert (
            configuration.derive_target("editor.fontSize", 20, inspection)
            is Target.ORGANIZATION
        )
        assert (
            configuration.derive_target(
                "editor.fontSize", 20, inspection, fallback=Target.USER
            )
            is Target.USER
        )

    def test_memory_value_does_not_attract_writes(self) -> None:
        inspection = _inspection(default=12, memory=13)
        assert (
            configuration.derive_target("editor.fontSize", 20, inspection)
            is Target.ORGANIZATION
        )


class TestValidateTarget:
    """Rejecting targets that cannot hold a write."""

    @_pytest.fixture
    def empty(self) -> workspace.Workspace:
        return workspace.Workspace(case_sensitive=True)

    def _validate(
        self,
        key: str,
        target: configuration.ConfigurationTarget,
        topology: workspace.Workspace,
        schemas: registry.StaticSchemaRegistry,
        overrides: configuration.ConfigurationOverrides | None = None,
        **kwargs: bool,
    ) -> None:
        configuration.validate_target(
            key,
            target,
            overrides or configuration.ConfigurationOverrides(),
            topology,
            schemas,
            **kwargs,
        )

    def test_default_is_never_writable(
        self, schema_registry: registry.StaticSchemaRegistry, empty: workspace.Workspace
    ) -> None:
        with _pytest.raises(configuration.ConfigurationError) as exc_info:
            self._validate("editor.fontSize", Target.DEFAULT, empty, schema_registry)
        assert exc_info.value.kind is configuration.ConfigurationErrorKind.INVALID_TARGET
        assert exc_info.value.key == "editor.fontSize"
        assert exc_info.value.target is Target.DEFAULT

    def test_workspace_requires_open_workspace(
        self, schema_registry: registry.StaticSchemaRegistry, empty: workspace.Workspace
    ) -> None:
        with _pytest.raises(configuration.ConfigurationError) as exc_info:
            self._validate("editor.fontSize", Target.WORKSPACE, empty, schema_registry)
        assert exc_info.value.kind is configuration.ConfigurationErrorKind.INVALID_TARGET

    def test_user_and_memory_always_valid(
        self, schema_registry: registry.StaticSchemaRegistry, empty: workspace.Workspace
    ) -> None:
        self._validate("window.zoomLevel", Target.USER, empty, schema_registry)
        self._validate("window.zoomLevel", Target.MEMORY, empty, schema_registry)
        self._validate("window.zoomLevel", Target.ORGANIZATION, empty, schema_registry)

    def test_folder_requires_containing_folder(
        self,
        schema_registry: registry.StaticSchemaRegistry,
        multi_root: workspace.Workspace,
    ) -> None:
        with _pytest.raises(configuration.ConfigurationError) as exc_info:
            self._validate(
                "editor.tabSize",
                Target.WORKSPACE_FOLDER,
                multi_root,
                schema_registry,
                configuration.ConfigurationOverrides(resource="/elsewhere/x.py"),
            )
        assert exc_info.value.kind is configuration.ConfigurationErrorKind.INVALID_TARGET

    def test_folder_rejects_executable_keys(
        self,
        schema_registry: registry.StaticSchemaRegistry,
        multi_root: workspace.Workspace,
    ) -> None:
        with _pytest.raises(configuration.ConfigurationError) as exc_info:
            self._validate(
                "terminal.shell",
                Target.WORKSPACE_FOLDER,
                multi_root,
                schema_registry,
                configuration.ConfigurationOverrides(resource="/work/app/x.py"),
            )
        assert exc_info.value.kind is configuration.ConfigurationErrorKind.UNSUPPORTED

    def test_folder_rejects_window_keys_in_multi_root(
        self,
        schema_registry: registry.StaticSchemaRegistry,
        multi_root: workspace.Workspace,
    ) -> None:
        overrides = configuration.ConfigurationOverrides(resource="/work/app/x.py")
        with _pytest.raises(configuration.ConfigurationError) as exc_info:
            self._validate(
                "window.zoomLevel", Target.WORKSPACE_FOLDER, multi_root, schema_registry, overrides
            )
        assert exc_info.value.kind is configuration.ConfigurationErrorKind.INVALID_TARGET

        self._validate(
            "window.zoomLevel",
            Target.WORKSPACE_FOLDER,
            multi_root,
            schema_registry,
            overrides,
            enforce_scope=False,
        )
        self._validate(
            "editor.tabSize", Target.WORKSPACE_FOLDER, multi_root, schema_registry, overrides
        )

    def test_selector_requires_overridable_key(
        self, schema_registry: registry.StaticSchemaRegistry, empty: workspace.Workspace
    ) -> None:
        overrides = configuration.ConfigurationOverrides(selector="markdown")
        with _pytest.raises(configuration.ConfigurationError) as exc_info:
            self._validate("editor.tabSize", Target.USER, empty, schema_registry, overrides)
        assert exc_info.value.kind is configuration.ConfigurationErrorKind.UNSUPPORTED

        self._validate("editor.fontSize", Target.USER, empty, schema_registry, overrides)
        # Unregistered keys may be overridden
        self._validate("unknown.key", Target.USER, empty, schema_registry, overrides)
