"""Turn a detected conflict into a resolution decision."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .models import ConflictAction, ConflictChoice, ConflictPrompt, LinkOptions

Responder = Callable[[ConflictPrompt], ConflictChoice]


class DecisionSource(str, Enum):
    """Where a decision came from, in priority order."""

    STICKY = "sticky"
    FORCED = "forced"
    NON_INTERACTIVE = "non_interactive"
    OPERATOR = "operator"


@dataclass(frozen=True, slots=True)
class Decision:
    """A resolved conflict plus the sticky choice to carry forward."""

    choice: ConflictChoice
    pending: ConflictChoice | None
    source: DecisionSource


class ConflictResolver:
    """Sources conflict decisions for one run.

    The resolver holds no per-run state itself: the sticky choice is passed
    in and handed back through ``Decision.pending`` so the caller threads it
    from one entry to the next.
    """

    def __init__(
        self,
        options: LinkOptions,
        *,
        responder: Responder | None = None,
        interactive: bool = False,
    ) -> None:
        self.options = options
        self.responder = responder
        self.interactive = interactive

    @property
    def can_prompt(self) -> bool:
        return self.responder is not None and self.interactive and not self.options.no_interactive

    def decide(self, prompt: ConflictPrompt, pending: ConflictChoice | None = None) -> Decision:
        if pending is not None:
            return Decision(choice=pending, pending=pending, source=DecisionSource.STICKY)

        if self.options.force:
            return Decision(
                choice=ConflictChoice(ConflictAction.BACKUP),
                pending=None,
                source=DecisionSource.FORCED,
            )

        responder = self.responder
        if responder is None or not self.can_prompt:
            return Decision(
                choice=ConflictChoice(ConflictAction.SKIP),
                pending=None,
                source=DecisionSource.NON_INTERACTIVE,
            )

        choice = responder(prompt)
        return Decision(
            choice=choice,
            pending=choice if choice.apply_to_all else None,
            source=DecisionSource.OPERATOR,
        )
