"""
Live match clock: a timestamp-based state machine for the one match that is
currently being played.

The clock never ticks.  It stores absolute timestamps (kick-off, pause start,
second-half start) and accumulated pause time, and match_time() derives the
displayed time from them.  Any consumer (admin view, public view, the
periodic broadcaster) calls match_time() with its own "now", so a client that
reconnects after a network drop shows the same time as everyone else.

States:
    not_started → first_half → halftime_break → second_half → finished
    with an orthogonal paused flag on either half, and aborted as a terminal
    state of this clock instance (the match itself can be started again).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Literal, NoReturn

from kickoff.errors import InvalidOperationError, InvalidTransitionError
from kickoff.models import KNOCKOUT_PHASES, LiveMatchState, Match

logger = logging.getLogger(__name__)

ClockPhase = Literal[
    "not_started",
    "first_half",
    "halftime_break",
    "second_half",
    "finished",
    "aborted",
]
TimeStatus = Literal[
    "not_started",
    "running",
    "paused",
    "halftime",
    "half_ended",
    "full_time",
]

_MS = timedelta(milliseconds=1)


@dataclass(frozen=True)
class MatchTime:
    """What every view shows for the live match at a given instant."""

    elapsed_ms: int
    minute: int
    second: int
    display: str      # "MM:SS", capped at 99:59
    status: TimeStatus
    label: str


def match_time(live: LiveMatchState | None, now: datetime) -> MatchTime:
    """
    Compute the displayed time of a live match at ``now``.

    Elapsed time of the current half is ``now - half_start - paused_ms``,
    frozen at ``pause_start_time`` while paused and clamped to
    ``[0, half_time_minutes]``.  Reaching the cap only changes the status to
    "half_ended" / "full_time"; the admin still has to trigger the transition.
    """
    if live is None:
        return MatchTime(0, 0, 0, format_clock(0, 0), "not_started", "Not started")

    cap_ms = live.half_time_minutes * 60_000

    if live.half_time_break:
        return MatchTime(
            cap_ms, live.half_time_minutes, 0,
            format_clock(live.half_time_minutes, 0),
            "halftime", "Halftime",
        )

    if live.current_half == 1:
        half_start = live.start_time
    else:
        half_start = live.second_half_start_time or live.start_time

    reference = now
    if live.is_paused and live.pause_start_time is not None:
        reference = live.pause_start_time

    elapsed = (reference - half_start) // _MS - live.paused_ms
    elapsed = max(0, elapsed)
    capped = elapsed >= cap_ms
    if capped:
        elapsed = cap_ms

    if live.is_paused:
        status, label = "paused", "Paused"
    elif capped and live.current_half == 1:
        status, label = "half_ended", "First half ended"
    elif capped:
        status, label = "full_time", "Full time"
    else:
        status = "running"
        label = "1st half" if live.current_half == 1 else "2nd half"

    total_seconds = elapsed // 1000
    minute, second = divmod(total_seconds, 60)
    return MatchTime(elapsed, minute, second, format_clock(minute, second), status, label)


def format_clock(minutes: int, seconds: int) -> str:
    mins = min(max(minutes, 0), 99)
    secs = min(max(seconds, 0), 59)
    return f"{mins:02d}:{secs:02d}"


class LiveMatchClock:
    """
    Drives the live state of a single Match.

    Every command validates first and mutates afterwards, so a rejected
    command (InvalidTransitionError) leaves the match untouched.  The
    single-live-match guard lives in the orchestrator, which knows about the
    other matches; this class only knows its own match.
    """

    def __init__(
        self,
        match: Match,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.match = match
        self._now = now
        self._aborted = False

    # ------------------------------------------------------------------ #
    # State                                                               #
    # ------------------------------------------------------------------ #

    @property
    def phase(self) -> ClockPhase:
        if self._aborted:
            return "aborted"
        if self.match.completed:
            return "finished"
        live = self.match.live
        if live is None:
            return "not_started"
        if live.half_time_break:
            return "halftime_break"
        return "first_half" if live.current_half == 1 else "second_half"

    @property
    def is_paused(self) -> bool:
        return self.match.live is not None and self.match.live.is_paused

    def describe(self) -> str:
        phase = self.phase.replace("_", " ")
        return f"{phase} (paused)" if self.is_paused else phase

    def time(self, now: datetime | None = None) -> MatchTime:
        return match_time(self.match.live, now or self._now())

    # ------------------------------------------------------------------ #
    # Commands                                                            #
    # ------------------------------------------------------------------ #

    def start(self, half_time_minutes: int, now: datetime | None = None) -> LiveMatchState:
        if self.phase != "not_started":
            self._reject("start")
        if not self.match.is_ready:
            self._reject("start", "both teams must be known")
        if half_time_minutes < 1:
            raise InvalidOperationError("half_time_minutes must be >= 1")

        self.match.live = LiveMatchState(
            start_time=now or self._now(),
            half_time_minutes=half_time_minutes,
        )
        logger.info("Match %s kicked off (%d min halves)", self.match.id, half_time_minutes)
        return self.match.live

    def pause(self, now: datetime | None = None) -> LiveMatchState:
        if self.phase not in ("first_half", "second_half") or self.is_paused:
            self._reject("pause")
        live = self.match.live
        live.is_paused = True
        live.pause_start_time = now or self._now()
        return live

    def resume(self, now: datetime | None = None) -> LiveMatchState:
        if not self.is_paused or self.phase not in ("first_half", "second_half"):
            self._reject("resume")
        live = self.match.live
        live.paused_ms += max(0, ((now or self._now()) - live.pause_start_time) // _MS)
        live.is_paused = False
        live.pause_start_time = None
        return live

    def start_halftime(self, now: datetime | None = None) -> LiveMatchState:
        if self.phase != "first_half" or self.is_paused:
            self._reject("start halftime")
        live = self.match.live
        live.half_time_break = True
        live.first_half_end_time = now or self._now()
        return live

    def start_second_half(self, now: datetime | None = None) -> LiveMatchState:
        if self.phase != "halftime_break":
            self._reject("start second half")
        live = self.match.live
        live.half_time_break = False
        live.current_half = 2
        live.second_half_start_time = now or self._now()
        # pause accounting is per half
        live.first_half_paused_ms = live.paused_ms
        live.paused_ms = 0
        return live

    def set_score(self, score1: int, score2: int, now: datetime | None = None) -> LiveMatchState:
        if self.phase not in ("first_half", "halftime_break", "second_half"):
            self._reject("update the score")
        if score1 < 0 or score2 < 0:
            raise InvalidOperationError("Scores cannot be negative")
        live = self.match.live
        live.score1 = score1
        live.score2 = score2
        live.minute = self.time(now).minute
        return live

    def finish(
        self,
        penalty_score1: int | None = None,
        penalty_score2: int | None = None,
    ) -> Match:
        """Fold the live score into the match result and drop the live block."""
        if self.phase != "second_half" or self.is_paused:
            self._reject("finish")
        live = self.match.live
        if self.match.is_penalty_shootout and live.score1 == live.score2:
            self._reject("finish", "a penalty shootout needs a winner")
        if self.match.phase in KNOCKOUT_PHASES and live.score1 == live.score2:
            if (
                penalty_score1 is None
                or penalty_score2 is None
                or penalty_score1 == penalty_score2
            ):
                self._reject("finish", "a level knockout match needs a penalty winner")

        match = self.match
        match.score1 = live.score1
        match.score2 = live.score2
        if penalty_score1 is not None and penalty_score2 is not None:
            match.penalty_score1 = penalty_score1
            match.penalty_score2 = penalty_score2
        match.completed = True
        match.live = None
        logger.info("Match %s finished %d:%d", match.id, match.score1, match.score2)
        return match

    def abort(self) -> Match:
        """Emergency stop: discard the live block without a result."""
        if self.phase not in ("first_half", "halftime_break", "second_half"):
            self._reject("abort")
        self.match.live = None
        self._aborted = True
        logger.warning("Match %s aborted", self.match.id)
        return self.match

    def _reject(self, command: str, reason: str = "") -> NoReturn:
        raise InvalidTransitionError(command, self.describe(), reason)
