"""
Tests that enforce coding standards.

These tests verify that the codebase follows our conventions:
- imports use ``import X as _x`` (external) or ``import X as x`` (internal)
- the library never configures logging handlers
- every source module has a docstring
"""

import ast as _ast
import pathlib as _pathlib

import pytest as _pytest

SRC_DIR = _pathlib.Path(__file__).parent.parent / "src" / "stratum"
TESTS_DIR = _pathlib.Path(__file__).parent.parent / "tests"

# Calls that install handlers or change global logging state
_LOGGING_SETUP_CALLS = ("basicConfig", "addHandler", "dictConfig", "fileConfig")


def _get_python_files(directory: _pathlib.Path) -> list[_pathlib.Path]:
    """Get all Python files in a directory, recursively."""
    return sorted(directory.rglob("*.py"))


def _extract_imports(content: str) -> list[tuple[int, str]]:
    """
    Extract 'from X import Y' statements from file content.

    Returns list of (line_number, line_content) tuples.
    Excludes:
    - 'from __future__ import' (allowed)
    - Lines inside TYPE_CHECKING blocks (allowed)
    """
    imports: list[tuple[int, str]] = []
    in_type_checking = False

    for i, line in enumerate(content.split("\n"), start=1):
        stripped = line.strip()

        if "if TYPE_CHECKING:" in line or "if _typing.TYPE_CHECKING:" in line:
            in_type_checking = True
            continue

        if (
            in_type_checking
            and stripped
            and not stripped.startswith("#")
            and not line.startswith((" ", "\t"))
        ):
            in_type_checking = False

        if in_type_checking:
            continue

        if stripped.startswith("from ") and " import " in stripped:
            if "from __future__ import" in stripped:
                continue
            imports.append((i, stripped))

    return imports


def _import_violations(paths: list[_pathlib.Path]) -> list[str]:
    violations: list[str] = []
    for path in paths:
        # __init__.py files re-export
        if path.name == "__init__.py":
            continue
        for line_num, line in _extract_imports(path.read_text()):
            violations.append(f"{path}:{line_num}: {line}")
    return violations


def _logging_setup_calls(content: str) -> list[str]:
    """Find calls such as ``_logging.basicConfig(...)`` in source code."""
    found: list[str] = []
    for node in _ast.walk(_ast.parse(content)):
        if (
            isinstance(node, _ast.Call)
            and isinstance(node.func, _ast.Attribute)
            and node.func.attr in _LOGGING_SETUP_CALLS
        ):
            found.append(f"line {node.lineno}: {node.func.attr}")
    return found


class TestImportStyle:
    """Tests for import style compliance."""

    def test_src_no_from_imports(self) -> None:
        """Source files should not use 'from X import Y' pattern."""
        violations = _import_violations(_get_python_files(SRC_DIR))
        if violations:
            _pytest.fail(
                "Found forbidden 'from X import Y' imports:\n"
                + "\n".join(f"  {v}" for v in violations)
            )

    def test_tests_no_from_imports(self) -> None:
        """Test files should not use 'from X import Y' pattern."""
        paths = [
            path
            for path in _get_python_files(TESTS_DIR)
            if path.name != "test_coding_standards.py"
        ]
        violations = _import_violations(paths)
        if violations:
            _pytest.fail(
                "Found forbidden 'from X import Y' imports:\n"
                + "\n".join(f"  {v}" for v in violations)
            )


class TestLibraryConventions:
    """Tests for conventions of the library code."""

    def test_src_never_configures_logging(self) -> None:
        """The library logs through module loggers and never installs handlers."""
        violations: list[str] = []
        for path in _get_python_files(SRC_DIR):
            violations.extend(
                f"{path}: {call}" for call in _logging_setup_calls(path.read_text())
            )
        assert violations == []

    def test_src_modules_have_docstrings(self) -> None:
        """Every non-empty source module starts with a docstring."""
        missing = [
            str(path)
            for path in _get_python_files(SRC_DIR)
            if path.read_text().strip()
            and _ast.get_docstring(_ast.parse(path.read_text())) is None
        ]
        assert missing == []


class TestImportExtraction:
    """Tests for the import extraction logic itself."""

    def test_detects_from_import(self) -> None:
        """Should detect basic from imports."""
        imports = _extract_imports("from pathlib import Path")
        assert imports == [(1, "from pathlib import Path")]

    def test_allows_future_imports(self) -> None:
        """Should allow __future__ imports."""
        assert _extract_imports("from __future__ import annotations") == []

    def test_ignores_type_checking_block(self) -> None:
        """Should ignore imports inside TYPE_CHECKING blocks and detect later ones."""
        content = """
import typing as _typing

if _typing.TYPE_CHECKING:
    from allowed import Type

from forbidden import Other
"""
        imports = _extract_imports(content)
        assert len(imports) == 1
        assert "from forbidden import Other" in imports[0][1]


class TestLoggingSetupDetection:
    """Tests for the logging setup detection itself."""

    def test_detects_basic_config(self) -> None:
        """basicConfig through an aliased module is detected."""
        content = "import logging as _logging\n_logging.basicConfig(level=10)\n"
        assert _logging_setup_calls(content) == ["line 2: basicConfig"]

    def test_ignores_get_logger(self) -> None:
        """Creating a module logger is allowed."""
        content = "import logging as _logging\n_logger = _logging.getLogger(__name__)\n"
        assert _logging_setup_calls(content) == []
