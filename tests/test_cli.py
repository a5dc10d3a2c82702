from __future__ import annotations

from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

from dotlink.cli import app
from dotlink.config import DEFAULT_CONFIG_FILENAME
from dotlink.runstate import RUN_STATE_FILENAME

runner = CliRunner()


def _write_config(repo: Path, body: str) -> Path:
    config_path = repo / DEFAULT_CONFIG_FILENAME
    config_path.write_text(body)
    return config_path


def _write_source(repo: Path, relative: str, content: str = "managed\n") -> Path:
    path = repo / "config" / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def test_cli_link_and_status_flow(repo: Path, fake_home: Path) -> None:
    _write_source(repo, "shell/zshrc")
    config_path = _write_config(repo, '[symlinks]\n"shell/zshrc" = ".zshrc"\n')

    link_result = runner.invoke(app, ["link", "--config", str(config_path)])
    assert link_result.exit_code == 0
    assert "linked" in link_result.stdout
    assert "Linked: 1" in link_result.stdout
    assert (fake_home / ".zshrc").is_symlink()

    status_result = runner.invoke(app, ["status", "--config", str(repo)])
    assert status_result.exit_code == 0
    assert "linked" in status_result.stdout
    assert "Last run: link" in status_result.stdout


def test_cli_conflict_without_tty_is_skipped(repo: Path, fake_home: Path) -> None:
    _write_source(repo, "shell/zshrc")
    (fake_home / ".zshrc").write_text("old")
    config_path = _write_config(repo, '[symlinks]\n"shell/zshrc" = ".zshrc"\n')

    result = runner.invoke(app, ["link", "--config", str(config_path)])

    assert result.exit_code == 0
    assert "Conflict: ~/.zshrc exists" in result.stdout
    assert "Conflicts: 1" in result.stdout
    assert (fake_home / ".zshrc").read_text() == "old"

    forced = runner.invoke(app, ["link", "--config", str(config_path), "--force"])

    assert forced.exit_code == 0
    assert "Backed up: 1" in forced.stdout
    assert (fake_home / ".zshrc").is_symlink()
    [backup] = fake_home.glob(".zshrc.backup.*")
    assert backup.read_text() == "old"


def test_cli_dry_run(repo: Path, fake_home: Path) -> None:
    _write_source(repo, "shell/zshrc")
    config_path = _write_config(repo, '[symlinks]\n"shell/zshrc" = ".zshrc"\n')

    result = runner.invoke(app, ["link", "--config", str(config_path), "--dry-run"])

    assert result.exit_code == 0
    assert "This was a dry run" in result.stdout
    assert not (fake_home / ".zshrc").exists()
    assert not (fake_home / RUN_STATE_FILENAME).exists()


def test_cli_path_escape_fails_without_changes(repo: Path, fake_home: Path) -> None:
    _write_source(repo, "shell/zshrc")
    _write_source(repo, "evil")
    config_path = _write_config(repo, '[symlinks]\n"shell/zshrc" = ".zshrc"\n"evil" = "../escape"\n')

    result = runner.invoke(app, ["link", "--config", str(config_path), "--force"])

    assert result.exit_code == 1
    assert "Nothing was changed" in result.stdout
    assert not (fake_home / ".zshrc").exists()


def test_cli_templates_are_generated(repo: Path, fake_home: Path) -> None:
    _write_source(repo, "shell/zshrc")
    _write_source(repo, "templates/local.zsh", "# machine specific\n")
    config_path = _write_config(
        repo,
        '[symlinks]\n"shell/zshrc" = ".zshrc"\n\n[templates]\n"templates/local.zsh" = ".zshrc.local"\n',
    )

    result = runner.invoke(app, ["link", "--config", str(config_path)])

    assert result.exit_code == 0
    assert "created" in result.stdout
    assert (fake_home / ".zshrc.local").read_text() == "# machine specific\n"
    assert not (fake_home / ".zshrc.local").is_symlink()


def test_cli_rollback_without_state(fake_home: Path) -> None:
    result = runner.invoke(app, ["rollback"])

    assert result.exit_code == 1
    assert "No previous run state" in result.stdout


def test_cli_backup_commands(repo: Path, fake_home: Path) -> None:
    config_path = _write_config(repo, "[backup]\nmax_age_days = 1000000\nmax_count = 1\n\n[symlinks]\n")
    (fake_home / ".zshrc.backup.1000").write_text("older")
    (fake_home / ".zshrc.backup.2000").write_text("newer")

    listed = runner.invoke(app, ["backup", "list", "--config", str(config_path)])
    assert listed.exit_code == 0
    assert "Total: 2 backup(s)" in listed.stdout

    cleaned = runner.invoke(app, ["backup", "clean", "--config", str(config_path)])
    assert cleaned.exit_code == 0
    assert "Removed 1 backup(s)" in cleaned.stdout
    assert not (fake_home / ".zshrc.backup.1000").exists()

    restored = runner.invoke(
        app,
        ["backup", "restore", str(fake_home / ".zshrc.backup.2000"), "--config", str(config_path)],
    )
    assert restored.exit_code == 0
    assert "Restored ~/.zshrc from backup" in restored.stdout
    assert (fake_home / ".zshrc").read_text() == "newer"

    empty = runner.invoke(app, ["backup", "list", "--config", str(config_path)])
    assert "No backup files found." in empty.stdout


def test_cli_backup_restore_rejects_invalid_name(repo: Path, fake_home: Path) -> None:
    config_path = _write_config(repo, "[symlinks]\n")
    (fake_home / "notes.txt").write_text("x")

    result = runner.invoke(app, ["backup", "restore", "~/notes.txt", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "Not a valid backup file" in result.stdout


def test_cli_missing_config(tmp_path: Path, fake_home: Path) -> None:
    result = runner.invoke(app, ["status", "--config", str(tmp_path / "nope.toml")])

    assert result.exit_code == 1
    assert "DOTLINK_REPO" in result.stdout


def test_cli_handles_permission_error(monkeypatch: pytest.MonkeyPatch) -> None:
    class DummyEngine:
        def validate(self, *_args, **_kwargs):  # noqa: ANN001
            raise PermissionError("mocked")

    monkeypatch.setattr("dotlink.cli._load_engine", lambda _config: DummyEngine())

    result = runner.invoke(app, ["link"])
    assert result.exit_code == 1
    assert "Permission denied" in result.stdout


def test_cli_escaping_template_target_changes_nothing(repo: Path, fake_home: Path) -> None:
    _write_source(repo, "shell/zshrc")
    _write_source(repo, "tpl")
    config_path = _write_config(
        repo,
        '[symlinks]\n"shell/zshrc" = ".zshrc"\n\n[templates]\n"tpl" = "../outside"\n',
    )

    result = runner.invoke(app, ["link", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "Template target" in result.stdout
    assert not (fake_home / ".zshrc").is_symlink()
    assert not (fake_home / RUN_STATE_FILENAME).exists()
    assert list(fake_home.iterdir()) == []


def test_cli_link_runs_hooks_around_linking(repo: Path, fake_home: Path) -> None:
    _write_source(repo, "shell/zshrc")
    config_path = _write_config(
        repo,
        '[symlinks]\n"shell/zshrc" = ".zshrc"\n\n'
        "[hooks]\n"
        'pre_link = \'test -L "$DOTLINK_HOME/.zshrc" || echo before > "$DOTLINK_HOME/pre.txt"\'\n'
        'post_link = [\'test -L "$DOTLINK_HOME/.zshrc" && echo after > "$DOTLINK_HOME/post.txt"\']\n',
    )

    result = runner.invoke(app, ["link", "--config", str(config_path)])

    assert result.exit_code == 0
    assert "Ran pre_link hook" in result.stdout
    assert (fake_home / "pre.txt").read_text() == "before\n"
    assert (fake_home / "post.txt").read_text() == "after\n"


def test_cli_dry_run_skips_hooks(repo: Path, fake_home: Path) -> None:
    _write_source(repo, "shell/zshrc")
    config_path = _write_config(
        repo,
        '[symlinks]\n"shell/zshrc" = ".zshrc"\n\n[hooks]\npre_link = \'touch "$DOTLINK_HOME/ran"\'\n',
    )

    result = runner.invoke(app, ["link", "--config", str(config_path), "--dry-run"])

    assert result.exit_code == 0
    assert "Would run pre_link hook" in result.stdout
    assert not (fake_home / "ran").exists()


def test_cli_failing_pre_link_hook_stops_before_linking(repo: Path, fake_home: Path) -> None:
    _write_source(repo, "shell/zshrc")
    config_path = _write_config(
        repo,
        '[symlinks]\n"shell/zshrc" = ".zshrc"\n\n[hooks]\npre_link = "exit 3"\n',
    )

    result = runner.invoke(app, ["link", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "exit code 3" in result.stdout
    assert not (fake_home / ".zshrc").exists()
    assert not (fake_home / RUN_STATE_FILENAME).exists()


def test_cli_rollback_shows_backup_relative_to_home(
    repo: Path, fake_home: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write_source(repo, "shell/zshrc")
    (fake_home / ".zshrc").write_text("old")
    config_path = _write_config(repo, '[symlinks]\n"shell/zshrc" = ".zshrc"\n')
    runner.invoke(app, ["link", "--config", str(config_path), "--force"])
    wide = Console(width=300, record=True)
    monkeypatch.setattr("dotlink.cli.console", wide)

    result = runner.invoke(app, ["rollback"])

    assert result.exit_code == 0
    output = wide.export_text()
    assert "restored from ~/.zshrc.backup." in output
    assert str(fake_home) not in output
