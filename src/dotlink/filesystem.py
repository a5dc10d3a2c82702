"""Filesystem helpers for dotlink."""

from __future__ import annotations

import os
import shutil
from hashlib import blake2b
from pathlib import Path

from .models import EntryType, LinkStatus


def ensure_parent(path: Path) -> None:
    """Ensure the parent directory exists."""

    path.parent.mkdir(parents=True, exist_ok=True)


def lexists(path: Path) -> bool:
    """Return ``True`` if anything, including a dangling symlink, occupies ``path``."""

    return path.exists() or path.is_symlink()


def detect_entry_type(path: Path) -> EntryType:
    """Determine the ``EntryType`` for ``path``."""

    if path.is_symlink():
        return EntryType.SYMLINK
    if path.is_dir():
        return EntryType.DIRECTORY
    return EntryType.FILE


def hash_path(path: Path) -> str:
    """Return a BLAKE2 hash for ``path`` contents and structure."""

    hasher = blake2b(digest_size=32)

    entry_type = detect_entry_type(path)
    hasher.update(entry_type.value.encode())
    if entry_type == EntryType.SYMLINK:
        hasher.update(b"\0")
        hasher.update(os.readlink(path).encode())
        return hasher.hexdigest()

    if entry_type == EntryType.FILE:
        _update_hash_with_file(hasher, path)
        return hasher.hexdigest()

    for child in _iter_directory(path):
        rel = child.relative_to(path).as_posix().encode()
        child_type = detect_entry_type(child)
        hasher.update(child_type.value.encode())
        hasher.update(b"\0")
        hasher.update(rel)
        hasher.update(b"\0")
        if child_type == EntryType.FILE:
            _update_hash_with_file(hasher, child)
        elif child_type == EntryType.SYMLINK:
            hasher.update(os.readlink(child).encode())

    return hasher.hexdigest()


def _update_hash_with_file(hasher, path: Path) -> None:
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            hasher.update(chunk)


def _iter_directory(path: Path) -> list[Path]:
    entries: list[Path] = []
    for child in path.iterdir():
        entries.append(child)
        if child.is_dir() and not child.is_symlink():
            entries.extend(_iter_directory(child))
    return sorted(entries)


def symlink_points_to(link: Path, source: Path) -> bool:
    """Return ``True`` if ``link`` is a symlink to ``source``.

    Both encodings are accepted: a value that normalizes to ``source`` once
    joined with the link's directory, or one stored literally as ``source``.
    """

    if not link.is_symlink():
        return False
    try:
        value = os.readlink(link)
    except OSError:
        return False
    if value == str(source):
        return True
    joined = os.path.normpath(os.path.join(link.parent, value))
    return joined == os.path.normpath(source)


def classify_link(source: Path, target: Path) -> LinkStatus:
    """Classify ``target`` relative to the desired link to ``source``.

    Read-only; classifying a correctly linked target always yields ``LINKED``.
    """

    try:
        source.stat()
    except OSError:
        return LinkStatus.SOURCE_MISSING

    if symlink_points_to(target, source):
        return LinkStatus.LINKED
    if lexists(target):
        return LinkStatus.CONFLICT
    return LinkStatus.MISSING


def create_symlink(source: Path, target: Path) -> None:
    """Create ``target`` as an absolute symlink to ``source``."""

    ensure_parent(target)
    target.symlink_to(source)


def remove_path(path: Path) -> None:
    """Delete ``path`` whether it is a file, directory, or symlink."""

    if not lexists(path):
        return
    if path.is_symlink() or path.is_file():
        path.unlink()
        return
    shutil.rmtree(path)
