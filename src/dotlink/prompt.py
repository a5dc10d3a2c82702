"""Interactive conflict prompt."""

from __future__ import annotations

import difflib
from pathlib import Path
from typing import Callable

from rich.console import Console
from rich.syntax import Syntax

from .filesystem import hash_path
from .models import ConflictAction, ConflictChoice, ConflictPrompt

CHOICE_HINT = "[s/b/o/d/a/S/B]"
DIFF_KEY = "d"

KEY_CHOICES: dict[str, ConflictChoice] = {
    "s": ConflictChoice(ConflictAction.SKIP),
    "b": ConflictChoice(ConflictAction.BACKUP),
    "o": ConflictChoice(ConflictAction.OVERWRITE),
    "a": ConflictChoice(ConflictAction.ABORT),
    "S": ConflictChoice(ConflictAction.SKIP, apply_to_all=True),
    "B": ConflictChoice(ConflictAction.BACKUP, apply_to_all=True),
}

MENU = """
[yellow]⚠ {target} already exists[/yellow]

  \\[s] Skip this file
  \\[b] Backup & link
  \\[o] Overwrite (no backup)
  \\[d] Show diff
  \\[a] Abort
  ─────────────────────
  \\[S] Skip all remaining
  \\[B] Backup all remaining
"""


def ask_conflict(
    prompt: ConflictPrompt,
    *,
    read_key: Callable[[str], str],
    show_diff: Callable[[ConflictPrompt], None],
    write: Callable[[str], None],
) -> ConflictChoice:
    """Run the key-driven conflict exchange until a resolving key is given.

    ``d`` only displays the diff and asks again; unknown keys print an error
    and ask again. Running out of input aborts.
    """

    write(MENU.format(target=prompt.display_target))
    question = f"Choice {CHOICE_HINT}: "

    while True:
        try:
            key = read_key(question).strip()
        except EOFError:
            return ConflictChoice(ConflictAction.ABORT)

        choice = KEY_CHOICES.get(key)
        if choice is not None:
            return choice

        if key == DIFF_KEY:
            show_diff(prompt)
            question = f"\nChoice {CHOICE_HINT}: "
            continue

        write("[red]Invalid choice.[/red]")
        question = f"Choice {CHOICE_HINT}: "


def render_diff(existing: Path, source: Path) -> str | None:
    """Return a unified diff from ``existing`` to ``source``.

    ``None`` means the two are identical.
    """

    if existing.is_file() and source.is_file():
        old = existing.read_bytes()
        new = source.read_bytes()
        if old == new:
            return None
        try:
            old_lines = old.decode().splitlines(keepends=True)
            new_lines = new.decode().splitlines(keepends=True)
        except UnicodeDecodeError:
            return "Binary files differ\n"
        return "".join(
            difflib.unified_diff(old_lines, new_lines, fromfile=str(existing), tofile=str(source))
        )

    if hash_path(existing) == hash_path(source):
        return None
    return f"Cannot show a line diff between '{existing}' and '{source}'\n"


class TerminalResponder:
    """Responder that asks the operator on the controlling terminal."""

    def __init__(self, console: Console) -> None:
        self.console = console

    def __call__(self, prompt: ConflictPrompt) -> ConflictChoice:
        return ask_conflict(
            prompt,
            read_key=self.console.input,
            show_diff=self._show_diff,
            write=self.console.print,
        )

    def _show_diff(self, prompt: ConflictPrompt) -> None:
        diff = render_diff(prompt.target, prompt.source)
        if diff is None:
            self.console.print("[blue]Files are identical[/blue]")
            return
        self.console.print(Syntax(diff, "diff", theme="ansi_dark"))
