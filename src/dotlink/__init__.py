"""Core package for the dotlink project."""

from .backup import BackupStore
from .cli import app, run
from .conditions import ConditionResult, evaluate
from .config import BackupPolicy, Config, ConfigError, LinkHooks, Settings, SymlinkCondition, SymlinkSpec, TemplateSpec
from .engine import LinkSummary, SymlinkEngine, summarize
from .environment import Environment
from .errors import BackupError, ConflictAbortedError, DotlinkError, HookError, NoRunStateError, PathEscapeError
from .hooks import run_hook
from .models import (
    BackupEntry,
    ConflictAction,
    ConflictChoice,
    ConflictPrompt,
    LinkOptions,
    LinkStatus,
    Platform,
    RunCommand,
    SymlinkState,
)
from .resolver import ConflictResolver
from .runstate import RunState, RunStateRecorder, rollback

__all__ = [
    "BackupStore",
    "ConditionResult",
    "evaluate",
    "BackupPolicy",
    "Config",
    "ConfigError",
    "LinkHooks",
    "Settings",
    "SymlinkCondition",
    "SymlinkSpec",
    "TemplateSpec",
    "LinkSummary",
    "SymlinkEngine",
    "summarize",
    "Environment",
    "run_hook",
    "BackupError",
    "ConflictAbortedError",
    "DotlinkError",
    "HookError",
    "NoRunStateError",
    "PathEscapeError",
    "BackupEntry",
    "ConflictAction",
    "ConflictChoice",
    "ConflictPrompt",
    "LinkOptions",
    "LinkStatus",
    "Platform",
    "RunCommand",
    "SymlinkState",
    "ConflictResolver",
    "RunState",
    "RunStateRecorder",
    "rollback",
    "app",
    "run",
]
