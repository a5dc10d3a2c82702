"""Exception hierarchy for dotlink."""

from __future__ import annotations

from pathlib import Path


class DotlinkError(RuntimeError):
    """Raised when dotlink encounters an unrecoverable state."""


class PathEscapeError(DotlinkError):
    """Raised when a configured target resolves outside the home directory."""

    def __init__(self, path: Path, base: Path, label: str = "Symlink target") -> None:
        super().__init__(f"{label} '{path}' resolves outside of '{base}'")
        self.path = path
        self.base = base


class ConflictAbortedError(DotlinkError):
    """Raised when the operator aborts the run at a conflict prompt."""


class NoRunStateError(DotlinkError):
    """Raised by rollback when no previous run was recorded."""


class BackupError(DotlinkError):
    """Raised when a backup cannot be located or restored."""


class HookError(DotlinkError):
    """Raised when a configured link hook exits non-zero or cannot start."""
