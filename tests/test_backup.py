from __future__ import annotations

from pathlib import Path

import pytest

from dotlink.backup import BackupStore, backup_path_for, parse_backup_path
from dotlink.config import BackupPolicy
from dotlink.errors import BackupError
from dotlink.models import BackupEntry

DAY_MS = 24 * 60 * 60 * 1000
NOW = 1_700_000_000_000


def _store(home: Path, now: int = NOW) -> BackupStore:
    return BackupStore.for_home(home, clock=lambda: now)


def test_backup_moves_file_to_timestamped_sibling(tmp_path: Path) -> None:
    original = tmp_path / ".zshrc"
    original.write_bytes(b"old\x00bytes")

    backup = _store(tmp_path).backup(original)

    assert backup == tmp_path / f".zshrc.backup.{NOW}"
    assert not original.exists()
    assert backup.read_bytes() == b"old\x00bytes"


def test_backup_name_collision_bumps_timestamp(tmp_path: Path) -> None:
    original = tmp_path / ".zshrc"
    original.write_text("first")
    store = _store(tmp_path)
    first = store.backup(original)

    original.write_text("second")
    second = store.backup(original)

    assert first != second
    assert second.name == f".zshrc.backup.{NOW + 1}"


def test_backup_missing_path_raises(tmp_path: Path) -> None:
    with pytest.raises(BackupError):
        _store(tmp_path).backup(tmp_path / "absent")


def test_parse_backup_path_round_trips_name(tmp_path: Path) -> None:
    backup = backup_path_for(tmp_path / "app.conf", 1234)
    entry = parse_backup_path(backup)

    assert entry == BackupEntry(original=tmp_path / "app.conf", backup=backup, timestamp=1234)
    assert parse_backup_path(tmp_path / "app.conf.bak") is None


def test_restore_is_byte_for_byte_and_replaces_occupant(tmp_path: Path) -> None:
    original = tmp_path / ".gitconfig"
    original.write_bytes(b"[user]\n\tname = me\n")
    store = _store(tmp_path)
    backup = store.backup(original)

    # Something now sits where the original was, e.g. the managed symlink.
    original.symlink_to(tmp_path / "elsewhere")

    restored = store.restore(backup)

    assert restored == original
    assert not original.is_symlink()
    assert original.read_bytes() == b"[user]\n\tname = me\n"
    assert not backup.exists()


def test_restore_directory_backup(tmp_path: Path) -> None:
    original = tmp_path / ".vim"
    (original / "colors").mkdir(parents=True)
    (original / "colors" / "theme.vim").write_text("hi\n")
    store = _store(tmp_path)

    backup = store.backup(original)
    store.restore(backup)

    assert (original / "colors" / "theme.vim").read_text() == "hi\n"


def test_restore_rejects_invalid_or_missing(tmp_path: Path) -> None:
    store = _store(tmp_path)
    with pytest.raises(BackupError, match="Not a valid backup"):
        store.restore(tmp_path / "plain.txt")
    with pytest.raises(BackupError, match="not found"):
        store.restore(tmp_path / ".zshrc.backup.1")


def test_list_all_scans_roots_newest_first(tmp_path: Path) -> None:
    home = tmp_path / "home"
    (home / ".config" / "kitty").mkdir(parents=True)
    (home / ".zshrc.backup.100").write_text("a")
    (home / ".zshrc.backup.300").write_text("b")
    (home / ".config" / "kitty" / "kitty.conf.backup.200").write_text("c")
    (home / ".zshrc").write_text("current")
    (home / "notes.backup.txt").write_text("not a backup")

    entries = _store(home).list_all()

    assert [entry.timestamp for entry in entries] == [300, 200, 100]
    assert entries[1].original == home / ".config" / "kitty" / "kitty.conf"


def test_list_all_includes_extra_roots(tmp_path: Path) -> None:
    home = tmp_path / "home"
    extra = home / ".local" / "share" / "app"
    extra.mkdir(parents=True)
    (extra / "settings.json.backup.5").write_text("{}")

    assert _store(home).list_all() == []
    store = BackupStore.for_home(home, extra_roots=[extra])
    assert [entry.backup for entry in store.list_all()] == [extra / "settings.json.backup.5"]


def test_prune_by_count_keeps_newest(tmp_path: Path) -> None:
    for offset in range(4):
        (tmp_path / f".zshrc.backup.{NOW - offset}").write_text(str(offset))
    (tmp_path / f".vimrc.backup.{NOW}").write_text("v")
    store = BackupStore([tmp_path], clock=lambda: NOW)

    removed = store.prune(BackupPolicy(max_age_days=30, max_count=2))

    assert sorted(entry.timestamp for entry in removed) == [NOW - 3, NOW - 2]
    remaining = sorted(path.name for path in tmp_path.iterdir())
    assert remaining == [f".vimrc.backup.{NOW}", f".zshrc.backup.{NOW - 1}", f".zshrc.backup.{NOW}"]


def test_prune_by_age_even_within_count(tmp_path: Path) -> None:
    fresh = tmp_path / f".zshrc.backup.{NOW - DAY_MS}"
    stale = tmp_path / f".zshrc.backup.{NOW - 10 * DAY_MS}"
    fresh.write_text("fresh")
    stale.write_text("stale")
    store = BackupStore([tmp_path], clock=lambda: NOW)

    removed = store.prune(BackupPolicy(max_age_days=7, max_count=5))

    assert [entry.backup for entry in removed] == [stale]
    assert fresh.exists()
    assert not stale.exists()


def test_prune_dry_run_removes_nothing(tmp_path: Path) -> None:
    stale = tmp_path / f".zshrc.backup.{NOW - 90 * DAY_MS}"
    stale.write_text("stale")
    store = BackupStore([tmp_path], clock=lambda: NOW)

    removed = store.prune(BackupPolicy(), dry_run=True)

    assert [entry.backup for entry in removed] == [stale]
    assert stale.exists()


def test_prune_accepts_explicit_entries(tmp_path: Path) -> None:
    kept = tmp_path / f"a.backup.{NOW}"
    kept.write_text("x")
    store = BackupStore([tmp_path], clock=lambda: NOW)

    entry = parse_backup_path(kept)
    assert entry is not None
    assert store.prune(BackupPolicy(max_count=0), [entry]) == [entry]
    assert not kept.exists()
