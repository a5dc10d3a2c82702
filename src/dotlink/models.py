"""Shared models and enums for dotlink."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class Platform(str, Enum):
    """Operating systems dotlink knows how to target."""

    DARWIN = "darwin"
    LINUX = "linux"


class EntryType(str, Enum):
    """Kinds of filesystem entries dotlink may encounter at a target."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


class LinkStatus(str, Enum):
    """State of a configured link on disk."""

    LINKED = "linked"
    MISSING = "missing"
    CONFLICT = "conflict"
    BACKUP = "backup"
    SOURCE_MISSING = "source-missing"


class RunCommand(str, Enum):
    """Commands that record run state for rollback."""

    INSTALL = "install"
    LINK = "link"
    SYNC = "sync"


class ConflictAction(str, Enum):
    SKIP = "skip"
    BACKUP = "backup"
    OVERWRITE = "overwrite"
    ABORT = "abort"


@dataclass(frozen=True, slots=True)
class ConflictChoice:
    """Resolution for a conflicting target.

    ``apply_to_all`` makes the choice sticky for the rest of the run.
    """

    action: ConflictAction
    apply_to_all: bool = False


@dataclass(frozen=True, slots=True)
class ConflictPrompt:
    """Request handed to a responder when a target is already occupied."""

    source: Path
    target: Path
    display_target: str


@dataclass(frozen=True, slots=True)
class LinkOptions:
    dry_run: bool = False
    force: bool = False
    no_interactive: bool = False


@dataclass(frozen=True, slots=True)
class SymlinkState:
    """Outcome of evaluating one configured link."""

    source: Path
    target: Path
    status: LinkStatus
    backup_path: Path | None = None
    applicable: bool = True
    details: str | None = None


@dataclass(frozen=True, slots=True)
class BackupEntry:
    """A displaced file and the timestamped copy it was moved to."""

    original: Path
    backup: Path
    timestamp: int


@dataclass(frozen=True, slots=True)
class LinkedEntry:
    source: Path
    target: Path


class UnlinkAction(str, Enum):
    """Outcome of removing a configured link."""

    REMOVED = "removed"
    NOT_FOUND = "not_found"
    NOT_A_SYMLINK = "not_a_symlink"
    SKIPPED = "skipped"
    DRY_RUN = "dry_run"


@dataclass(frozen=True, slots=True)
class UnlinkResult:
    target: Path
    action: UnlinkAction
    details: str | None = None


class RollbackAction(str, Enum):
    """Outcome of reverting one entry of the recorded run."""

    REMOVED = "removed"
    NOT_FOUND = "not_found"
    NOT_A_SYMLINK = "not_a_symlink"
    RESTORED = "restored"
    FAILED = "failed"
    DRY_RUN = "dry_run"


@dataclass(frozen=True, slots=True)
class RollbackResult:
    path: Path
    action: RollbackAction
    details: str | None = None
    backup: Path | None = None


class TemplateAction(str, Enum):
    CREATED = "created"
    EXISTS = "exists"
    TEMPLATE_MISSING = "template_missing"
    DRY_RUN = "dry_run"


@dataclass(frozen=True, slots=True)
class TemplateResult:
    template: Path
    target: Path
    action: TemplateAction
