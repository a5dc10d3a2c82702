"""High level orchestration for dotlink operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from .backup import BackupStore
from .conditions import ConditionResult, evaluate
from .config import Config, SymlinkSpec
from .environment import Environment
from .errors import ConflictAbortedError, PathEscapeError
from .filesystem import classify_link, create_symlink, remove_path
from .models import (
    ConflictAction,
    ConflictChoice,
    ConflictPrompt,
    LinkOptions,
    LinkStatus,
    RunCommand,
    SymlinkState,
    UnlinkAction,
    UnlinkResult,
)
from .resolver import ConflictResolver, DecisionSource, Responder
from .runstate import RunState, RunStateRecorder

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PlannedLink:
    """A spec with its absolute paths and its condition already evaluated."""

    spec: SymlinkSpec
    source: Path
    target: Path
    condition: ConditionResult


@dataclass(frozen=True, slots=True)
class LinkSummary:
    linked: int = 0
    backups: int = 0
    conflicts: int = 0
    missing: int = 0
    source_missing: int = 0
    skipped: int = 0


def summarize(states: Iterable[SymlinkState]) -> LinkSummary:
    """Count outcomes; entries excluded by their condition count as skipped."""

    counts = {status: 0 for status in LinkStatus}
    skipped = 0
    for state in states:
        if not state.applicable:
            skipped += 1
            continue
        counts[state.status] += 1

    return LinkSummary(
        linked=counts[LinkStatus.LINKED],
        backups=counts[LinkStatus.BACKUP],
        conflicts=counts[LinkStatus.CONFLICT],
        missing=counts[LinkStatus.MISSING],
        source_missing=counts[LinkStatus.SOURCE_MISSING],
        skipped=skipped,
    )


class SymlinkEngine:
    """Coordinates link, unlink and status operations for configured specs."""

    def __init__(
        self,
        config: Config,
        env: Environment,
        *,
        responder: Responder | None = None,
        backups: BackupStore | None = None,
        recorder: RunStateRecorder | None = None,
    ) -> None:
        self.config = config
        self.env = env
        self.responder = responder
        self.backups = backups or BackupStore.for_home(env.home, extra_roots=self.target_directories())
        self.recorder = recorder or RunStateRecorder.for_home(env.home)
        self._warnings: list[str] = []

    def apply(
        self,
        specs: Sequence[SymlinkSpec] | None = None,
        options: LinkOptions = LinkOptions(),
        *,
        command: RunCommand = RunCommand.LINK,
    ) -> list[SymlinkState]:
        """Create the links for ``specs`` (all configured specs by default).

        Every applicable target is checked against the home directory before
        anything is touched. Per-entry problems end up in the returned states;
        a path escape or an operator abort raises.
        """

        plan = self._plan(specs)
        resolver = ConflictResolver(options, responder=self.responder, interactive=self.env.interactive)
        states: list[SymlinkState] = []
        pending: ConflictChoice | None = None
        self._warnings.clear()

        try:
            for planned in plan:
                if not planned.condition.applies:
                    logger.debug("Skipping %s: %s", planned.target, planned.condition.reason)
                    states.append(self._inapplicable_state(planned))
                    continue
                state, pending = self._link_entry(planned, options, resolver, pending)
                states.append(state)
        except ConflictAbortedError:
            if not options.dry_run:
                self._record(command, states, partial=True)
            raise

        if not options.dry_run:
            self._record(command, states)
        return states

    def remove(
        self,
        specs: Sequence[SymlinkSpec] | None = None,
        options: LinkOptions = LinkOptions(),
    ) -> list[UnlinkResult]:
        """Remove configured targets that are symlinks; anything else is left alone."""

        results: list[UnlinkResult] = []
        for planned in self._plan(specs):
            target = planned.target
            if not planned.condition.applies:
                results.append(UnlinkResult(target, UnlinkAction.SKIPPED, planned.condition.reason))
                continue

            if target.is_symlink():
                if options.dry_run:
                    results.append(UnlinkResult(target, UnlinkAction.DRY_RUN, "would remove symlink"))
                    continue
                target.unlink()
                logger.debug("Removed %s", target)
                results.append(UnlinkResult(target, UnlinkAction.REMOVED))
            elif target.exists():
                results.append(UnlinkResult(target, UnlinkAction.NOT_A_SYMLINK, "not a symlink"))
            else:
                results.append(UnlinkResult(target, UnlinkAction.NOT_FOUND))

        return results

    def status(self, specs: Sequence[SymlinkSpec] | None = None) -> list[SymlinkState]:
        """Classify every spec without changing anything."""

        states: list[SymlinkState] = []
        for planned in self._plan(specs):
            if not planned.condition.applies:
                states.append(self._inapplicable_state(planned))
                continue
            status = classify_link(planned.source, planned.target)
            details = None
            if status is LinkStatus.SOURCE_MISSING:
                details = f"source not found: {self.env.contract(planned.source)}"
            elif status is LinkStatus.CONFLICT:
                details = "target exists and is not the managed link"
            states.append(SymlinkState(planned.source, planned.target, status, details=details))
        return states

    def validate(self, specs: Sequence[SymlinkSpec] | None = None) -> None:
        """Check every applicable target against the home directory without touching anything.

        Raises:
            PathEscapeError: if any applicable target lies outside home.
        """

        self._plan(specs)

    def target_directories(self) -> list[Path]:
        """Parent directories of configured targets that lie inside home."""

        directories: list[Path] = []
        for spec in self.config.symlinks:
            target = self.env.resolve_target(spec.target)
            try:
                self.env.ensure_within_home(target)
            except PathEscapeError:
                continue
            if target.parent not in directories:
                directories.append(target.parent)
        return directories

    def pull_warnings(self) -> list[str]:
        messages = list(self._warnings)
        self._warnings.clear()
        return messages

    # ------------------------------------------------------------------
    # Internal helpers

    def _plan(self, specs: Sequence[SymlinkSpec] | None) -> list[PlannedLink]:
        selected = self.config.symlinks if specs is None else tuple(specs)
        plan: list[PlannedLink] = []
        for spec in selected:
            target = self.env.resolve_target(spec.target)
            condition = evaluate(spec.condition, self.env)
            if condition.applies:
                self.env.ensure_within_home(target)
            plan.append(
                PlannedLink(
                    spec=spec,
                    source=self.config.source_path(spec.source),
                    target=target,
                    condition=condition,
                )
            )
        return plan

    def _inapplicable_state(self, planned: PlannedLink) -> SymlinkState:
        return SymlinkState(
            planned.source,
            planned.target,
            LinkStatus.MISSING,
            applicable=False,
            details=f"skipped: {planned.condition.reason}",
        )

    def _link_entry(
        self,
        planned: PlannedLink,
        options: LinkOptions,
        resolver: ConflictResolver,
        pending: ConflictChoice | None,
    ) -> tuple[SymlinkState, ConflictChoice | None]:
        source, target = planned.source, planned.target
        display = self.env.contract(target)
        status = classify_link(source, target)

        if status is LinkStatus.SOURCE_MISSING:
            logger.debug("Source file not found: %s", source)
            details = f"source not found: {self.env.contract(source)}"
            return SymlinkState(source, target, LinkStatus.SOURCE_MISSING, details=details), pending

        if status is LinkStatus.LINKED:
            return SymlinkState(source, target, LinkStatus.LINKED, details="already linked"), pending

        result_status = LinkStatus.LINKED
        backup_path: Path | None = None
        notes: list[str] = []

        if status is LinkStatus.CONFLICT:
            decision = resolver.decide(ConflictPrompt(source, target, display), pending)
            pending = decision.pending
            action = decision.choice.action

            if action is ConflictAction.ABORT:
                raise ConflictAbortedError("Aborted by user")

            if action is ConflictAction.SKIP:
                if decision.source is DecisionSource.NON_INTERACTIVE:
                    self._warnings.append(f"Conflict: {display} exists (use --force to backup and replace)")
                    details = "target exists; use --force to backup and replace"
                else:
                    details = "skipped by user"
                return SymlinkState(source, target, LinkStatus.CONFLICT, details=details), pending

            if action is ConflictAction.OVERWRITE:
                if options.dry_run:
                    notes.append("would overwrite (no backup)")
                else:
                    remove_path(target)
                    notes.append("overwritten (no backup)")
            else:
                result_status = LinkStatus.BACKUP
                if options.dry_run:
                    planned_backup = self.backups.next_backup_path(target)
                    notes.append(f"would back up to {self.env.contract(planned_backup)}")
                else:
                    try:
                        backup_path = self.backups.backup(target)
                    except OSError as exc:
                        logger.error("Failed to back up %s: %s", target, exc)
                        return (
                            SymlinkState(source, target, LinkStatus.CONFLICT, details=f"backup failed: {exc}"),
                            pending,
                        )
                    notes.append(f"backed up to {self.env.contract(backup_path)}")

        if options.dry_run:
            notes.append(f"would link to {self.env.contract(source)}")
        else:
            try:
                create_symlink(source, target)
            except OSError as exc:
                logger.error("Failed to link %s: %s", target, exc)
                notes.append(f"link failed: {exc}")
                failed_status = LinkStatus.BACKUP if backup_path is not None else LinkStatus.MISSING
                return (
                    SymlinkState(source, target, failed_status, backup_path, details="; ".join(notes)),
                    pending,
                )
            logger.debug("Linked %s -> %s", target, source)
            notes.append("linked")

        return SymlinkState(source, target, result_status, backup_path, details="; ".join(notes)), pending

    def _record(self, command: RunCommand, states: Sequence[SymlinkState], *, partial: bool = False) -> None:
        run = RunState.from_states(command, states)
        # An aborted run that changed nothing keeps the previous run recoverable.
        if partial and run.is_empty:
            return
        self.recorder.save(run)
