"""Forward-only phase tracking."""

from dataclasses import dataclass
from typing import final

from launchpad.enums import Phase
from launchpad.exceptions import PhaseTransitionError
from launchpad.utils import get_timestamp


@dataclass(frozen=True, slots=True)
class PhaseEntry:
    """When a phase was entered."""

    phase: Phase
    entered_at: str


@final
class PhaseTracker:
    """Holds the current phase and refuses to move backwards.

    The tracker starts in PREFLIGHT. Phases may be skipped but never
    revisited.
    """

    __slots__ = ("_history",)

    def __init__(self) -> None:
        self._history: list[PhaseEntry] = [
            PhaseEntry(phase=Phase.PREFLIGHT, entered_at=get_timestamp())
        ]

    @property
    def current(self) -> Phase:
        return self._history[-1].phase

    @property
    def history(self) -> tuple[PhaseEntry, ...]:
        return tuple(self._history)

    def advance(self, phase: Phase) -> None:
        """Enter ``phase``.

        Re-entering the current phase is a no-op.

        Raises:
            PhaseTransitionError: If ``phase`` comes before the current phase.
        """
        current = self.current
        if phase is current:
            return
        if phase.index < current.index:
            msg = f"Cannot move from {current.value} back to {phase.value}"
            raise PhaseTransitionError(
                msg, details={"from": current.value, "to": phase.value}
            )
        self._history.append(PhaseEntry(phase=phase, entered_at=get_timestamp()))
