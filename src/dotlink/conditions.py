"""Decide whether a configured link applies to the current machine."""

from __future__ import annotations

import re
from dataclasses import dataclass

from .config import SymlinkCondition
from .environment import Environment


@dataclass(frozen=True, slots=True)
class ConditionResult:
    applies: bool
    reason: str | None = None


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a hostname glob into a regular expression matched against whole names.

    ``*`` matches any run of characters and ``?`` a single character; all
    other characters match literally.
    """

    escaped = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(escaped)


def match_glob(value: str, pattern: str) -> bool:
    return glob_to_regex(pattern).fullmatch(value) is not None


def evaluate(condition: SymlinkCondition | None, env: Environment) -> ConditionResult:
    """Evaluate ``condition`` against ``env``.

    The platform predicate is checked before the hostname predicate and the
    first failure is reported.
    """

    if condition is None:
        return ConditionResult(applies=True)

    if condition.platform is not None and condition.platform != env.platform:
        return ConditionResult(
            applies=False,
            reason=f"platform {condition.platform.value} ≠ {env.platform.value}",
        )

    if condition.hostname is not None and not match_glob(env.hostname, condition.hostname):
        return ConditionResult(
            applies=False,
            reason=f"hostname {condition.hostname} ≠ {env.hostname}",
        )

    return ConditionResult(applies=True)
