"""
Error taxonomy for the fixture engine, the match clock and the orchestrator.

Every error here is a normal, recoverable rejection: the command did not
apply and no state changed.  The web layer maps each class to an HTTP
status in kickoff/web/app.py.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kickoff.fixtures.analyzer import AnalysisResult


class TournamentError(Exception):
    """Base class for every rejection raised by kickoff."""


class InfeasibleConfigurationError(TournamentError):
    """The requested format cannot be scheduled for the current team count."""

    def __init__(self, analysis: AnalysisResult) -> None:
        self.analysis = analysis
        summary = "; ".join(analysis.warnings) or "configuration is not feasible"
        super().__init__(summary)

    @property
    def warnings(self) -> list[str]:
        return self.analysis.warnings

    @property
    def recommendations(self) -> list[str]:
        return self.analysis.recommendations


class InvalidTransitionError(TournamentError):
    """A clock command was issued in a state that forbids it."""

    def __init__(self, command: str, state: str, reason: str = "") -> None:
        self.command = command
        self.state = state
        message = f"Cannot {command} while match is {state}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ConcurrentLiveMatchError(TournamentError):
    """Another match is already live."""

    def __init__(self, live_match_id: str) -> None:
        self.live_match_id = live_match_id
        super().__init__(
            f"Match {live_match_id!r} is already live; finish or abort it first"
        )


class NotFoundError(TournamentError):
    """Unknown match or team id."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key!r}")


class InvalidOperationError(TournamentError):
    """An admin command that does not fit the current tournament state."""
