"""
Workspace topology: which folders are open and which folder owns a resource.

Folder and resource identities are path-like strings (file paths or URIs).
A resource belongs to the folder with the longest identity that equals the
resource or contains it at a ``/`` boundary.
"""

from __future__ import annotations

import collections.abc as _abc
import enum as _enum
import sys as _sys


class WorkbenchState(_enum.Enum):
    """Shape of the open workspace."""

    EMPTY = "empty"
    """No folder and no workspace file."""

    FOLDER = "folder"
    """A single folder opened directly; its settings are the workspace settings."""

    WORKSPACE = "workspace"
    """A workspace file listing any number of folders (multi-root)."""


def default_case_sensitive() -> bool:
    """Whether resource paths compare case-sensitively on this platform."""
    return _sys.platform.startswith("linux")


def normalize_resource(resource: str) -> str:
    """Strip trailing separators so ``/a/b/`` and ``/a/b`` are one identity."""
    stripped = resource.rstrip("/")
    return stripped or resource


class Workspace:
    """
    Ordered list of folder identities, plus an optional workspace file.

    Args:
        folders: Folder identities in display order.
        configuration: Identity of the workspace file, if any. Its presence
            makes the state WORKSPACE even with a single folder.
        case_sensitive: Compare identities case-sensitively. None uses the
            platform default (sensitive on Linux only).
    """

    def __init__(
        self,
        folders: _abc.Iterable[str] = (),
        configuration: str | None = None,
        *,
        case_sensitive: bool | None = None,
    ) -> None:
        self._folders: list[str] = []
        for folder in folders:
            folder = normalize_resource(folder)
            if folder not in self._folders:
                self._folders.append(folder)
        self._configuration = configuration
        self._case_sensitive = (
            default_case_sensitive() if case_sensitive is None else case_sensitive
        )

    @property
    def folders(self) -> list[str]:
        """Folder identities in order."""
        return list(self._folders)

    @property
    def configuration(self) -> str | None:
        """Identity of the workspace file, if any."""
        return self._configuration

    @property
    def case_sensitive(self) -> bool:
        return self._case_sensitive

    @property
    def state(self) -> WorkbenchState:
        """Classify the workspace."""
        if self._configuration is not None:
            return WorkbenchState.WORKSPACE
        if len(self._folders) == 1:
            return WorkbenchState.FOLDER
        if self._folders:
            # Several folders without a workspace file still behave as multi-root
            return WorkbenchState.WORKSPACE
        return WorkbenchState.EMPTY

    def get_folder(self, resource: str | None) -> str | None:
        """
        Find the folder containing ``resource``.

        Returns:
            The identity of the innermost containing folder, or None.
        """
        if not resource:
            return None

        candidate = self._fold(normalize_resource(resource))
        best: str | None = None
        for folder in self._folders:
            folded = self._fold(folder)
            if candidate == folded or candidate.startswith(folded.rstrip("/") + "/"):
                if best is None or len(folder) > len(best):
                    best = folder
        return best

    def contains(self, resource: str) -> bool:
        """Check whether ``resource`` lies inside an open folder."""
        return self.get_folder(resource) is not None

    def same_resource(self, first: str, second: str) -> bool:
        """Compare two identities using this workspace's case rule."""
        return self._fold(normalize_resource(first)) == self._fold(
            normalize_resource(second)
        )

    def with_folders(self, folders: _abc.Iterable[str]) -> Workspace:
        """Return a copy of this workspace listing ``folders``."""
        return Workspace(
            folders, self._configuration, case_sensitive=self._case_sensitive
        )

    def _fold(self, identity: str) -> str:
        return identity if self._case_sensitive else identity.lower()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Workspace):
            return NotImplemented
        return (
            self._folders == other._folders
            and self._configuration == other._configuration
            and self._case_sensitive == other._case_sensitive
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Workspace(folders={self._folders!r}, configuration={self._configuration!r})"
