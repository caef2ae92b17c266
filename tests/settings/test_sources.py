"""Tests for the layered YAML settings source.

Covers:
- Path helpers and STRATUM_CONFIG_DIR
- Merge order of built-in, user and project files
- Malformed and missing files
- Project root discovery
"""

import pathlib as _pathlib

import pydantic_settings as _pydantic_settings
import pytest as _pytest

import stratum.settings as settings
import stratum.settings.sources as sources


def _write(path: _pathlib.Path, text: str) -> _pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestHelperFunctions:
    """Path helpers."""

    def test_builtin_defaults_path(self) -> None:
        """The bundled defaults ship inside the package."""
        path = sources.get_builtin_defaults_path()
        assert path.name == "settings.yaml"
        assert path.parent.name == "defaults"
        assert path.exists()

    def test_user_config_dir_default(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        """Without STRATUM_CONFIG_DIR the XDG directory is used."""
        monkeypatch.delenv("STRATUM_CONFIG_DIR", raising=False)
        assert sources.get_user_config_dir() == _pathlib.Path.home() / ".config" / "stratum"

    def test_user_config_path_with_env_var(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STRATUM_CONFIG_DIR", "/custom/dir")
        assert sources.get_user_config_path() == _pathlib.Path("/custom/dir/settings.yaml")

    def test_project_config_path(self) -> None:
        root = _pathlib.Path("/some/project")
        assert sources.get_project_config_path(root) == root / ".stratum" / "settings.yaml"


class TestFindProjectRoot:
    """Discovery of the nearest .stratum directory."""

    def test_found_from_subdirectory(self, tmp_path: _pathlib.Path) -> None:
        (tmp_path / ".stratum").mkdir()
        nested = tmp_path / "src" / "pkg"
        nested.mkdir(parents=True)
        assert settings.find_project_root(nested) == tmp_path.resolve()

    def test_not_found(self, tmp_path: _pathlib.Path) -> None:
        """A .stratum file (not a directory) does not mark a project."""
        (tmp_path / ".stratum").write_text("", encoding="utf-8")
        assert settings.find_project_root(tmp_path) != tmp_path.resolve()


class TestLayerMerging:
    """Built-in, user and project layers."""

    def test_is_pydantic_settings_source(self) -> None:
        assert issubclass(
            settings.LayeredYamlSettingsSource,
            _pydantic_settings.PydanticBaseSettingsSource,
        )

    def test_builtin_only(self, isolated_env: _pathlib.Path) -> None:
        """With no user or project file only the defaults load."""
        source = settings.LayeredYamlSettingsSource(settings.Settings)
        merged = source()
        assert merged["events"] == {"drop_empty": True}
        assert merged["writes"] == {"fallback_target": "organization"}
        assert [name for name, _ in source.get_loaded_layers()] == ["built-in"]

    def test_user_then_project(self, isolated_env: _pathlib.Path, tmp_path: _pathlib.Path) -> None:
        """Project settings win over user settings, which win over defaults."""
        _write(
            isolated_env / "settings.yaml",
            "events:\n  drop_empty: false\nwrites:\n  fallback_target: user\n",
        )
        project = tmp_path / "project"
        _write(
            project / ".stratum" / "settings.yaml",
            "writes:\n  fallback_target: organization\n",
        )

        source = settings.LayeredYamlSettingsSource(settings.Settings, project)
        merged = source()
        assert merged["events"] == {"drop_empty": False}
        assert merged["writes"] == {"fallback_target": "organization"}
        assert merged["folders"] == {"enforce_scope": True, "exclude_executable": True}
        assert [name for name, _ in source.get_loaded_layers()] == ["built-in", "user", "project"]

    def test_empty_user_file_is_skipped(self, isolated_env: _pathlib.Path) -> None:
        _write(isolated_env / "settings.yaml", "# nothing here\n")
        source = settings.LayeredYamlSettingsSource(settings.Settings)
        assert [name for name, _ in source.get_loaded_layers()] == ["built-in"]

    def test_explicit_paths(self, tmp_path: _pathlib.Path) -> None:
        builtin = _write(tmp_path / "builtin.yaml", "events:\n  drop_empty: true\n")
        user = _write(tmp_path / "user.yaml", "events:\n  drop_empty: false\n")
        source = settings.LayeredYamlSettingsSource(
            settings.Settings, user_config_path=user, builtin_config_path=builtin
        )
        assert source() == {"events": {"drop_empty": False}}

    def test_layer_paths(self, isolated_env: _pathlib.Path, tmp_path: _pathlib.Path) -> None:
        """Layer paths are listed highest precedence first."""
        source = settings.LayeredYamlSettingsSource(settings.Settings, tmp_path)
        layers = source.get_layer_paths()
        assert [name for name, _, _ in layers] == ["project", "user", "built-in"]
        assert [exists for _, _, exists in layers] == [False, False, True]

    def test_field_value(self, isolated_env: _pathlib.Path) -> None:
        source = settings.LayeredYamlSettingsSource(settings.Settings)
        value, name, is_complex = source.get_field_value(
            settings.Settings.model_fields["events"], "events"
        )
        assert value == {"drop_empty": True}
        assert name == "events"
        assert is_complex


class TestSettingsFileErrors:
    """Malformed settings files."""

    def test_invalid_yaml(self, isolated_env: _pathlib.Path) -> None:
        path = _write(isolated_env / "settings.yaml", "events: [unclosed\n")
        with _pytest.raises(settings.SettingsFileError) as exc_info:
            settings.LayeredYamlSettingsSource(settings.Settings)
        assert exc_info.value.path == path
        assert "invalid YAML" in str(exc_info.value)

    def test_top_level_must_be_mapping(self, isolated_env: _pathlib.Path) -> None:
        _write(isolated_env / "settings.yaml", "- a\n- b\n")
        with _pytest.raises(settings.SettingsFileError, match="got list"):
            settings.LayeredYamlSettingsSource(settings.Settings)

    def test_missing_builtin_defaults(self, tmp_path: _pathlib.Path) -> None:
        with _pytest.raises(settings.SettingsFileError, match="built-in defaults not found"):
            settings.LayeredYamlSettingsSource(
                settings.Settings, builtin_config_path=tmp_path / "missing.yaml"
            )

    def test_empty_builtin_defaults(self, tmp_path: _pathlib.Path) -> None:
        empty = _write(tmp_path / "empty.yaml", "")
        with _pytest.raises(settings.SettingsFileError, match="is empty"):
            settings.LayeredYamlSettingsSource(settings.Settings, builtin_config_path=empty)
