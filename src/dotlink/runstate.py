"""Run state persistence and rollback for dotlink."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from .backup import BackupStore, parse_backup_path
from .errors import BackupError, NoRunStateError
from .models import (
    BackupEntry,
    LinkedEntry,
    LinkStatus,
    RollbackAction,
    RollbackResult,
    RunCommand,
    SymlinkState,
)

logger = logging.getLogger(__name__)

RUN_STATE_FILENAME = ".dotfiles-last-run.json"


@dataclass(frozen=True, slots=True)
class RunState:
    """What the most recent mutating run changed."""

    timestamp: str
    command: RunCommand
    backups: tuple[BackupEntry, ...]
    symlinks: tuple[LinkedEntry, ...]

    @classmethod
    def from_states(
        cls,
        command: RunCommand,
        states: Iterable[SymlinkState],
        *,
        now: datetime | None = None,
    ) -> "RunState":
        """Build a run state from engine results.

        Only ``linked`` outcomes and backups that were actually written are kept.
        """

        states = list(states)
        backups: list[BackupEntry] = []
        for state in states:
            if state.backup_path is None:
                continue
            parsed = parse_backup_path(state.backup_path)
            timestamp = parsed.timestamp if parsed is not None else 0
            backups.append(BackupEntry(original=state.target, backup=state.backup_path, timestamp=timestamp))

        symlinks = [
            LinkedEntry(source=state.source, target=state.target)
            for state in states
            if state.status is LinkStatus.LINKED
        ]
        moment = now or datetime.now(timezone.utc)
        return cls(
            timestamp=moment.isoformat(),
            command=command,
            backups=tuple(backups),
            symlinks=tuple(symlinks),
        )

    @property
    def is_empty(self) -> bool:
        return not self.backups and not self.symlinks


class RunStateRecorder:
    """Reads and writes the single persisted run state."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def for_home(cls, home: Path) -> "RunStateRecorder":
        return cls(home / RUN_STATE_FILENAME)

    def save(self, state: RunState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "timestamp": state.timestamp,
            "command": state.command.value,
            "backups": [
                {"original": str(entry.original), "backup": str(entry.backup), "timestamp": entry.timestamp}
                for entry in state.backups
            ],
            "symlinks": [{"source": str(entry.source), "target": str(entry.target)} for entry in state.symlinks],
        }
        with self.path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
            handle.write("\n")
        logger.debug("Saved run state to %s", self.path)

    def load(self) -> RunState | None:
        """Return the persisted run, or ``None`` if there is none or it is unreadable."""

        if not self.path.exists():
            return None

        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
            return RunState(
                timestamp=data["timestamp"],
                command=RunCommand(data["command"]),
                backups=tuple(
                    BackupEntry(
                        original=Path(item["original"]),
                        backup=Path(item["backup"]),
                        timestamp=int(item["timestamp"]),
                    )
                    for item in data.get("backups", [])
                ),
                symlinks=tuple(
                    LinkedEntry(source=Path(item["source"]), target=Path(item["target"]))
                    for item in data.get("symlinks", [])
                ),
            )
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Failed to parse last run state %s: %s", self.path, exc)
            return None

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


@dataclass(frozen=True, slots=True)
class RollbackReport:
    state: RunState
    results: tuple[RollbackResult, ...]

    @property
    def failures(self) -> tuple[RollbackResult, ...]:
        return tuple(result for result in self.results if result.action is RollbackAction.FAILED)


def rollback(recorder: RunStateRecorder, store: BackupStore, *, dry_run: bool = False) -> RollbackReport:
    """Undo the most recent recorded run.

    Recorded links are removed, then recorded backups are moved back. A
    failed restoration is reported and the remaining ones still run. The
    run state is deleted afterwards so a second rollback has nothing to do.

    Raises:
        NoRunStateError: if no run has been recorded.
    """

    state = recorder.load()
    if state is None:
        raise NoRunStateError("No previous run state found. Cannot rollback.")

    logger.info("Rolling back %s run from %s", state.command.value, state.timestamp)
    results: list[RollbackResult] = []

    for entry in state.symlinks:
        results.append(_remove_link(entry.target, dry_run=dry_run))

    for entry in state.backups:
        if dry_run:
            results.append(RollbackResult(entry.original, RollbackAction.DRY_RUN, "would restore", backup=entry.backup))
            continue
        try:
            store.restore(entry.backup, original=entry.original)
        except (OSError, BackupError) as exc:
            logger.error("Failed to restore %s: %s", entry.original, exc)
            results.append(RollbackResult(entry.original, RollbackAction.FAILED, str(exc)))
            continue
        results.append(RollbackResult(entry.original, RollbackAction.RESTORED, "restored", backup=entry.backup))

    if not dry_run:
        recorder.clear()

    return RollbackReport(state=state, results=tuple(results))


def _remove_link(target: Path, *, dry_run: bool) -> RollbackResult:
    if target.is_symlink():
        if dry_run:
            return RollbackResult(target, RollbackAction.DRY_RUN, "would remove symlink")
        try:
            target.unlink()
        except FileNotFoundError:
            return RollbackResult(target, RollbackAction.NOT_FOUND)
        except OSError as exc:
            logger.error("Failed to remove %s: %s", target, exc)
            return RollbackResult(target, RollbackAction.FAILED, str(exc))
        return RollbackResult(target, RollbackAction.REMOVED)
    if target.exists():
        return RollbackResult(target, RollbackAction.NOT_A_SYMLINK, "left in place")
    return RollbackResult(target, RollbackAction.NOT_FOUND)
