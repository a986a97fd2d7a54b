"""
Tournament data model: teams, configuration, groups, matches and the live
state block of the match currently on the clock.

Standings rows are derived (see kickoff/standings.py) and never stored as the
source of truth.  Everything here is a plain dataclass so the serialiser in
kickoff/serialization.py can round-trip it through JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

FormatName = Literal["groups", "swiss", "league"]
TournamentStatus = Literal["registration", "closed", "active", "finished"]
MatchPhase = Literal["group", "knockout", "placement", "penalty"]

FORMATS: tuple[str, ...] = ("groups", "swiss", "league")
STATUSES: tuple[str, ...] = ("registration", "closed", "active", "finished")
KNOCKOUT_PHASES: tuple[str, ...] = ("knockout", "placement")


@dataclass
class Team:
    id: str
    name: str
    contact_name: str = ""
    contact_info: str = ""
    jersey_color: str | None = None
    registered_at: datetime = field(default_factory=datetime.now)


@dataclass
class KnockoutOptions:
    quarterfinals: bool = False
    third_place: bool = False
    fifth_place: bool = False
    seventh_place: bool = False


@dataclass
class TournamentConfig:
    format: FormatName = "groups"
    group_size: int = 4
    max_games_per_team: int | None = None
    swiss_rounds: int | None = None
    knockout: KnockoutOptions = field(default_factory=KnockoutOptions)
    half_time_minutes: int = 10
    shuffle_seed: int | None = None   # None = keep registration order


@dataclass
class Standing:
    """One row of a group table."""

    team: str
    games: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0
    penalty_wins: int = 0   # shootout tiebreak channel, never part of goal_diff

    @property
    def goal_diff(self) -> int:
        return self.goals_for - self.goals_against


@dataclass
class Group:
    name: str
    teams: list[str] = field(default_factory=list)
    table: list[Standing] = field(default_factory=list)


@dataclass
class Schedule:
    datetime: datetime
    field: str = "Main pitch"


@dataclass
class Referee:
    team: str
    group: str | None = None


@dataclass
class LiveMatchState:
    """Clock and score of the match currently being played."""

    start_time: datetime
    half_time_minutes: int
    current_half: Literal[1, 2] = 1
    second_half_start_time: datetime | None = None
    half_time_break: bool = False
    first_half_end_time: datetime | None = None
    is_paused: bool = False
    pause_start_time: datetime | None = None
    paused_ms: int = 0              # accumulated pause in the current half
    first_half_paused_ms: int = 0
    score1: int = 0
    score2: int = 0
    minute: int = 0                 # last computed minute, informational


@dataclass
class Match:
    id: str
    team1: str | None
    team2: str | None
    phase: MatchPhase = "group"
    group: str | None = None
    round: int | None = None
    label: str = ""
    team1_source: str | None = None   # e.g. "winner:QF-1", "loser:SF-2", "qf_loser:1"
    team2_source: str | None = None
    scheduled: Schedule | None = None
    completed: bool = False
    score1: int | None = None
    score2: int | None = None
    penalty_score1: int | None = None
    penalty_score2: int | None = None
    is_penalty_shootout: bool = False
    is_bye: bool = False
    referee: Referee | None = None
    live: LiveMatchState | None = None

    @property
    def teams(self) -> tuple[str | None, str | None]:
        return self.team1, self.team2

    @property
    def is_ready(self) -> bool:
        """Both slots filled and not a bye."""
        return self.team1 is not None and self.team2 is not None and not self.is_bye

    def involves(self, team: str) -> bool:
        return team in (self.team1, self.team2)

    def winner(self) -> str | None:
        """Winner of a completed match; penalties decide a level score."""
        if not self.completed or self.score1 is None or self.score2 is None:
            return None
        if self.score1 != self.score2:
            return self.team1 if self.score1 > self.score2 else self.team2
        if self.penalty_score1 is not None and self.penalty_score2 is not None:
            if self.penalty_score1 != self.penalty_score2:
                return self.team1 if self.penalty_score1 > self.penalty_score2 else self.team2
        return None

    def loser(self) -> str | None:
        winner = self.winner()
        if winner is None:
            return None
        return self.team2 if winner == self.team1 else self.team1


@dataclass
class Tournament:
    year: int
    status: TournamentStatus = "registration"
    config: TournamentConfig | None = None
    groups: list[Group] = field(default_factory=list)
    live_match_id: str | None = None
    knockout_seeding: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    registration_closed_at: datetime | None = None


@dataclass
class TournamentState:
    """Everything needed to reconstruct the running tournament exactly."""

    tournament: Tournament | None = None
    teams: list[Team] = field(default_factory=list)
    matches: list[Match] = field(default_factory=list)

    def find_match(self, match_id: str) -> Match | None:
        return next((m for m in self.matches if m.id == match_id), None)

    def find_team(self, team_id: str) -> Team | None:
        return next((t for t in self.teams if t.id == team_id), None)

    def team_names(self) -> list[str]:
        return [t.name for t in self.teams]
