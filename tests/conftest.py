"""
Shared pytest fixtures for stratum tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import os as _os
import pathlib as _pathlib
import typing as _typing

import pytest as _pytest

import stratum.configuration as configuration
import stratum.registry as registry
import stratum.settings as settings
import stratum.workspace as workspace

# Folder identities used across tests
FOLDER_A = "/work/app"
FOLDER_B = "/work/lib"

# Schemas registered by the ``schema_registry`` fixture
SCHEMAS: dict[str, dict[str, _typing.Any]] = {
    "editor.fontSize": {"default": 12, "scope": "language-overridable"},
    "editor.wordWrap": {"default": "off", "scope": "language-overridable"},
    "editor.tabSize": {"default": 4, "scope": "resource"},
    "window.zoomLevel": {"default": 0, "scope": "window"},
    "files.exclude": {"default": {"**/.git": True}, "scope": "resource"},
    "terminal.shell": {"default": "/bin/sh", "scope": "resource", "executable": True},
}


@_pytest.fixture
def isolated_env(
    monkeypatch: _pytest.MonkeyPatch,
    tmp_path: _pathlib.Path,
) -> _pathlib.Path:
    """
    Isolate tests from STRATUM_* variables and the user's settings files.

    Returns the temporary user settings directory (STRATUM_CONFIG_DIR).
    """
    for key in list(_os.environ):
        if key.startswith("STRATUM_"):
            monkeypatch.delenv(key)
    config_dir = tmp_path / "user-config"
    config_dir.mkdir()
    monkeypatch.setenv("STRATUM_CONFIG_DIR", str(config_dir))
    monkeypatch.chdir(tmp_path)
    return config_dir


@_pytest.fixture
def builtin_settings() -> settings.Settings:
    """Engine settings with field defaults only."""
    return settings.Settings.builtin()


@_pytest.fixture
def schema_registry() -> registry.StaticSchemaRegistry:
    """Registry declaring a small, representative set of keys."""
    return registry.StaticSchemaRegistry(SCHEMAS)


@_pytest.fixture
def multi_root() -> workspace.Workspace:
    """Multi-root workspace with two folders."""
    return workspace.Workspace(
        [FOLDER_A, FOLDER_B], "/work/project.code-workspace", case_sensitive=True
    )


@_pytest.fixture
def single_folder() -> workspace.Workspace:
    """Workspace with one folder opened directly."""
    return workspace.Workspace([FOLDER_A], case_sensitive=True)


@_pytest.fixture
def service(
    schema_registry: registry.StaticSchemaRegistry,
    multi_root: workspace.Workspace,
    builtin_settings: settings.Settings,
) -> configuration.ConfigurationService:
    """Service over the test registry and a multi-root workspace."""
    return configuration.ConfigurationService(
        schema_registry, multi_root, builtin_settings
    )


@_pytest.fixture
def recorded_events(
    service: configuration.ConfigurationService,
) -> list[configuration.ConfigurationChangeEvent]:
    """Events published by the ``service`` fixture, in order."""
    events: list[configuration.ConfigurationChangeEvent] = []
    service.on_did_change_configuration(events.append)
    return events

