"""Shell commands run before and after ``dotlink link``."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Sequence

from .environment import Environment
from .errors import HookError

logger = logging.getLogger(__name__)


def hook_environment(env: Environment, repo_dir: Path) -> dict[str, str]:
    """Process environment for hook commands, with the machine facts exported."""

    variables = dict(os.environ)
    variables.update(
        {
            "DOTLINK_PLATFORM": env.platform.value,
            "DOTLINK_HOSTNAME": env.hostname,
            "DOTLINK_HOME": str(env.home),
            "DOTLINK_REPO_DIR": str(repo_dir),
        }
    )
    return variables


def run_hook(
    name: str,
    commands: Sequence[str],
    env: Environment,
    repo_dir: Path,
    *,
    dry_run: bool = False,
) -> list[str]:
    """Run ``commands`` in order with ``sh -c`` from the repository directory.

    The first command that fails stops the hook. In a dry run nothing is
    executed. Returns the commands that ran (or would have run).

    Raises:
        HookError: if a command exits non-zero or cannot be started.
    """

    if not commands:
        return []

    variables = hook_environment(env, repo_dir)
    ran: list[str] = []
    for command in commands:
        if dry_run:
            logger.debug("Skipping %s hook in dry run: %s", name, command)
            ran.append(command)
            continue

        logger.debug("Running %s hook: %s", name, command)
        try:
            subprocess.run(["sh", "-c", command], cwd=repo_dir, env=variables, check=True)
        except subprocess.CalledProcessError as exc:
            raise HookError(f"{name} hook failed with exit code {exc.returncode}: {command}") from exc
        except OSError as exc:
            raise HookError(f"{name} hook could not be started: {exc}") from exc
        ran.append(command)

    return ran
