"""Timestamped backups of files displaced by links."""

from __future__ import annotations

import logging
import re
import time
from collections import defaultdict
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .config import BackupPolicy
from .errors import BackupError
from .filesystem import lexists, remove_path
from .models import BackupEntry

logger = logging.getLogger(__name__)

BACKUP_PATTERN = re.compile(r"^(?P<original>.+)\.backup\.(?P<timestamp>\d+)$")

# Directories, relative to home, where dotfiles commonly live.
WELL_KNOWN_DIRS = (
    ".",
    ".config",
    ".config/starship",
    ".config/ghostty",
    ".config/kitty",
    ".claude",
)

MILLIS_PER_DAY = 24 * 60 * 60 * 1000


def epoch_millis() -> int:
    return time.time_ns() // 1_000_000


def backup_path_for(path: Path, timestamp: int) -> Path:
    """Return the backup name for ``path`` taken at ``timestamp``."""

    return path.with_name(f"{path.name}.backup.{timestamp}")


def parse_backup_path(path: Path) -> BackupEntry | None:
    """Recover the ``BackupEntry`` encoded in a backup's file name."""

    match = BACKUP_PATTERN.match(path.name)
    if match is None:
        return None
    return BackupEntry(
        original=path.with_name(match["original"]),
        backup=path,
        timestamp=int(match["timestamp"]),
    )


class BackupStore:
    """Creates, finds, restores and prunes ``<path>.backup.<epoch-millis>`` files."""

    def __init__(
        self,
        search_roots: Iterable[Path] = (),
        *,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        self.search_roots: tuple[Path, ...] = tuple(dict.fromkeys(search_roots))
        self._clock = clock

    @classmethod
    def for_home(cls, home: Path, extra_roots: Iterable[Path] = (), **kwargs) -> "BackupStore":
        roots = [home / relative if relative != "." else home for relative in WELL_KNOWN_DIRS]
        roots.extend(extra_roots)
        return cls(roots, **kwargs)

    def next_backup_path(self, path: Path) -> Path:
        """Return the name ``backup`` would use for ``path`` right now."""

        timestamp = self._clock()
        candidate = backup_path_for(path, timestamp)
        while lexists(candidate):
            timestamp += 1
            candidate = backup_path_for(path, timestamp)
        return candidate

    def backup(self, path: Path) -> Path:
        """Move ``path`` aside and return where it went."""

        if not lexists(path):
            raise BackupError(f"Cannot back up '{path}': it does not exist")
        destination = self.next_backup_path(path)
        path.rename(destination)
        logger.debug("Backed up %s to %s", path, destination)
        return destination

    def restore(self, backup_path: Path, original: Path | None = None) -> Path:
        """Move ``backup_path`` back over its original location.

        The original location is parsed from the backup name unless given.
        Whatever currently occupies it is removed first.
        """

        entry = parse_backup_path(backup_path)
        if entry is None:
            raise BackupError(f"Not a valid backup file: {backup_path}")
        if not lexists(backup_path):
            raise BackupError(f"Backup file not found: {backup_path}")

        destination = original if original is not None else entry.original
        remove_path(destination)
        backup_path.rename(destination)
        logger.debug("Restored %s from %s", destination, backup_path)
        return destination

    def list_all(self, search_roots: Iterable[Path] | None = None) -> list[BackupEntry]:
        """Scan the search roots for backups, newest first."""

        roots = self.search_roots if search_roots is None else tuple(dict.fromkeys(search_roots))
        found: dict[Path, BackupEntry] = {}
        for root in roots:
            for entry in _scan_directory(root):
                found.setdefault(entry.backup, entry)

        return sorted(found.values(), key=lambda entry: entry.timestamp, reverse=True)

    def prune(
        self,
        policy: BackupPolicy,
        entries: Sequence[BackupEntry] | None = None,
        *,
        dry_run: bool = False,
        now: int | None = None,
    ) -> list[BackupEntry]:
        """Remove backups that are too old or beyond the per-file count.

        Returns the entries removed (or that would be removed in a dry run).
        Failures are logged and do not stop the remaining removals.
        """

        candidates = self.list_all() if entries is None else list(entries)
        current = self._clock() if now is None else now
        max_age_ms = policy.max_age_days * MILLIS_PER_DAY

        by_original: dict[Path, list[BackupEntry]] = defaultdict(list)
        for entry in candidates:
            by_original[entry.original].append(entry)

        removed: list[BackupEntry] = []
        for group in by_original.values():
            group.sort(key=lambda entry: entry.timestamp, reverse=True)
            for index, entry in enumerate(group):
                too_old = current - entry.timestamp > max_age_ms
                too_many = index >= policy.max_count
                if not (too_old or too_many):
                    continue
                if dry_run:
                    removed.append(entry)
                    continue
                try:
                    remove_path(entry.backup)
                except OSError as exc:
                    logger.error("Failed to remove %s: %s", entry.backup, exc)
                    continue
                removed.append(entry)

        return removed


def _scan_directory(directory: Path) -> list[BackupEntry]:
    try:
        children = list(directory.iterdir())
    except OSError:
        return []

    entries: list[BackupEntry] = []
    for child in children:
        entry = parse_backup_path(child)
        if entry is not None:
            entries.append(entry)
    return entries
