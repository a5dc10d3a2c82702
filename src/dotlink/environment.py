"""Machine facts that dotlink decisions depend on."""

from __future__ import annotations

import os
import socket
import sys
from dataclasses import dataclass
from pathlib import Path

from .errors import DotlinkError, PathEscapeError
from .models import Platform


def current_platform() -> Platform:
    """Return the ``Platform`` for the running interpreter."""

    if sys.platform == "darwin":
        return Platform.DARWIN
    if sys.platform.startswith("linux"):
        return Platform.LINUX
    raise DotlinkError(f"Unsupported platform: {sys.platform}. Only macOS and Linux are supported.")


@dataclass(frozen=True, slots=True)
class Environment:
    """Home directory, platform, hostname and terminal state of one machine.

    Everything that would otherwise be read from process-global state is
    captured here once so that tests can describe arbitrary machines.
    """

    home: Path
    platform: Platform
    hostname: str
    interactive: bool = False

    @classmethod
    def detect(cls) -> "Environment":
        home = os.environ.get("HOME")
        if not home:
            raise DotlinkError("Could not determine home directory. HOME environment variable not set.")
        return cls(
            home=Path(os.path.abspath(home)),
            platform=current_platform(),
            hostname=socket.gethostname(),
            interactive=sys.stdin is not None and sys.stdin.isatty(),
        )

    def resolve_target(self, relative: Path | str) -> Path:
        """Join ``relative`` onto the home directory and normalize it lexically.

        Absolute values replace the home directory entirely, which
        ``ensure_within_home`` then rejects.
        """

        return Path(os.path.normpath(self.home / Path(relative)))

    def ensure_within_home(self, path: Path, *, label: str = "Symlink target") -> None:
        home = Path(os.path.normpath(self.home))
        candidate = Path(os.path.normpath(path))
        if candidate == home or home not in candidate.parents:
            raise PathEscapeError(candidate, home, label)

    def expand(self, raw: str | Path) -> Path:
        """Expand a leading ``~`` against this environment's home directory."""

        text = str(raw)
        if text == "~":
            return self.home
        if text.startswith("~/"):
            return self.home / text[2:]
        return Path(os.path.abspath(text))

    def contract(self, path: Path | str) -> str:
        """Return ``path`` with the home directory shown as ``~``."""

        text = str(path)
        home = str(self.home)
        if text == home:
            return "~"
        if text.startswith(home + os.sep):
            return "~" + text[len(home) :]
        return text
