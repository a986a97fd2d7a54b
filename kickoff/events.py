"""
Tournament event dataclasses: the shared language between the orchestrator
and any consumer (WebSocket broadcaster, CLI, tests).

Every successful mutation publishes exactly one of these.  Events are frozen
and carry a deep copy of the affected Match, so a later mutation never
changes an event that was already published.  kickoff.serialization.to_json_dict()
turns them into JSON-compatible dicts with a "type" key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar

from kickoff.clock import MatchTime
from kickoff.models import Group, Match, Team, Tournament


@dataclass(frozen=True)
class MatchStartedEvent:
    name: ClassVar[str] = "match-started"

    match: Match
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class MatchPausedEvent:
    name: ClassVar[str] = "match-paused"

    match: Match
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class MatchResumedEvent:
    name: ClassVar[str] = "match-resumed"

    match: Match
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class HalftimeStartedEvent:
    name: ClassVar[str] = "halftime-started"

    match: Match
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class SecondHalfStartedEvent:
    name: ClassVar[str] = "second-half-started"

    match: Match
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class MatchFinishedEvent:
    name: ClassVar[str] = "match-finished"

    match: Match
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class MatchAbortedEvent:
    """The live match was stopped without a result; it can be restarted."""

    name: ClassVar[str] = "match-aborted"

    match: Match
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class MatchResultAddedEvent:
    """A result entered by hand (not through the live clock)."""

    name: ClassVar[str] = "match-result-added"

    match: Match
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class LiveScoreUpdateEvent:
    """Score change or periodic snapshot of the live match."""

    name: ClassVar[str] = "live-score-update"

    match: Match
    time: MatchTime
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class FixturesGeneratedEvent:
    """Fixture list replaced or extended (close registration, reconfigure, KO, ...)."""

    name: ClassVar[str] = "fixtures-generated"

    reason: str
    matches: list[Match]
    groups: list[Group]
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class TournamentUpdatedEvent:
    """Status change, reset, schedule or manual fixture edit."""

    name: ClassVar[str] = "tournament-updated"

    reason: str
    tournament: Tournament | None
    matches: list[Match]
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class TeamsUpdatedEvent:
    name: ClassVar[str] = "teams-updated"

    reason: str
    teams: list[Team]
    timestamp: datetime = field(default_factory=datetime.now)


# Union type for type-safe pattern matching in consumers
TournamentEvent = (
    MatchStartedEvent
    | MatchPausedEvent
    | MatchResumedEvent
    | HalftimeStartedEvent
    | SecondHalfStartedEvent
    | MatchFinishedEvent
    | MatchAbortedEvent
    | MatchResultAddedEvent
    | LiveScoreUpdateEvent
    | FixturesGeneratedEvent
    | TournamentUpdatedEvent
    | TeamsUpdatedEvent
)
