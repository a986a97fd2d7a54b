"""
Tournament orchestrator: applies admin commands to the one running
tournament.

Every mutating command runs under a single lock, validates completely before
touching anything, and on success:
  1. recomputes the group tables and fills knockout slots,
  2. calls persist(state),
  3. publishes exactly one event via publish(event.name, event).

The orchestrator never prints, never writes files itself and knows nothing
about HTTP.  Consumers:
  Web   → kickoff/web/app.py (REST + WebSocket broadcaster)
  CLI   → main.py
  Tests → construct with in-memory persist/publish callables
"""

from __future__ import annotations

import functools
import logging
import threading
import uuid
from collections import Counter
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime, time
from typing import Any, Callable, Mapping, Sequence

from kickoff.clock import LiveMatchClock, MatchTime, match_time
from kickoff.config import TournamentDefaults
from kickoff.errors import (
    ConcurrentLiveMatchError,
    InvalidOperationError,
    NotFoundError,
)
from kickoff.events import (
    FixturesGeneratedEvent,
    HalftimeStartedEvent,
    LiveScoreUpdateEvent,
    MatchAbortedEvent,
    MatchFinishedEvent,
    MatchPausedEvent,
    MatchResultAddedEvent,
    MatchResumedEvent,
    MatchStartedEvent,
    SecondHalfStartedEvent,
    TeamsUpdatedEvent,
    TournamentEvent,
    TournamentUpdatedEvent,
)
from kickoff.fixtures import (
    AnalysisResult,
    advance_bracket,
    analyze,
    assign_referees,
    build_config,
    generate_fixtures,
    generate_knockout,
    generate_penalty_shootouts,
    generate_swiss_round,
    knockout_options,
    schedule_all,
)
from kickoff.models import (
    KNOCKOUT_PHASES,
    STATUSES,
    Group,
    KnockoutOptions,
    Match,
    MatchPhase,
    Referee,
    Schedule,
    Standing,
    Team,
    Tournament,
    TournamentState,
)
from kickoff.standings import compute_table, rank_teams

logger = logging.getLogger(__name__)

Persister = Callable[[TournamentState], None]
Publisher = Callable[[str, TournamentEvent], None]


@dataclass
class FixtureSet:
    """Result of closing registration or reconfiguring."""

    groups: list[Group]
    matches: list[Match]


def _serialized(method):
    """Run a command under the orchestrator lock."""

    @functools.wraps(method)
    def wrapper(self: TournamentOrchestrator, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


def _command(method):
    """
    Run a mutating command under the orchestrator lock.

    If the command raises, persisting included, the state it started from is
    restored so a failed command leaves nothing half-applied.
    """

    @functools.wraps(method)
    def wrapper(self: TournamentOrchestrator, *args, **kwargs):
        with self._lock:
            if self._in_command:
                return method(self, *args, **kwargs)
            checkpoint = deepcopy(self._state)
            self._in_command = True
            try:
                return method(self, *args, **kwargs)
            except Exception:
                self._state = checkpoint
                self._clock = None
                raise
            finally:
                self._in_command = False

    return wrapper


class TournamentOrchestrator:
    """Coordinates fixture engine, standings and the live match clock."""

    def __init__(
        self,
        state: TournamentState | None = None,
        *,
        persist: Persister | None = None,
        publish: Publisher | None = None,
        defaults: TournamentDefaults | None = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._lock = threading.RLock()
        self._in_command = False
        self._state = state or TournamentState()
        self._persist = persist or (lambda state: None)
        self._publish = publish or (lambda name, event: None)
        self.defaults = defaults or TournamentDefaults()
        self._now = now
        self._clock: LiveMatchClock | None = None
        self._refresh()

    # ------------------------------------------------------------------ #
    # Lifecycle                                                           #
    # ------------------------------------------------------------------ #

    @_serialized
    def load(self, state: TournamentState) -> None:
        """Replace the in-memory state (e.g. from TournamentStore.load())."""
        self._state = state
        self._clock = None
        self._refresh()
        logger.info(
            "Loaded tournament %s: %d teams, %d matches",
            state.tournament.year if state.tournament else "-",
            len(state.teams),
            len(state.matches),
        )

    @_serialized
    def snapshot(self) -> TournamentState:
        return deepcopy(self._state)

    def set_publisher(self, publish: Publisher) -> None:
        self._publish = publish

    # ------------------------------------------------------------------ #
    # Reads                                                               #
    # ------------------------------------------------------------------ #

    @property
    def tournament(self) -> Tournament | None:
        return deepcopy(self._state.tournament)

    @property
    def teams(self) -> list[Team]:
        return deepcopy(self._state.teams)

    @property
    def matches(self) -> list[Match]:
        return deepcopy(self._state.matches)

    def get_match(self, match_id: str) -> Match:
        return deepcopy(self._match(match_id))

    @_serialized
    def group_tables(self) -> list[Group]:
        self._refresh()
        return deepcopy(self._state.tournament.groups if self._state.tournament else [])

    def analyze_config(
        self,
        team_count: int | None,
        format: str,
        options: Mapping[str, Any] | None = None,
    ) -> AnalysisResult:
        if team_count is None:
            team_count = len(self._state.teams)
        return analyze(team_count, format, options)

    @staticmethod
    def recompute_standings(teams: Sequence[str], matches: Sequence[Match]) -> list[Standing]:
        return compute_table(teams, matches)

    def jersey_color_usage(self) -> dict[str, int]:
        """How many teams wear each jersey colour (case-insensitive)."""
        usage = Counter(
            t.jersey_color.strip().lower()
            for t in self._state.teams
            if t.jersey_color and t.jersey_color.strip()
        )
        return dict(usage)

    def live_match(self) -> Match | None:
        match = self._live()
        return deepcopy(match) if match else None

    def live_time(self, now: datetime | None = None) -> MatchTime | None:
        match = self._live()
        if match is None or match.live is None:
            return None
        return match_time(match.live, now or self._now())

    def next_match(self) -> Match | None:
        """The earliest scheduled open match, else the first open match."""
        open_matches = [
            m for m in self._state.matches
            if m.is_ready and not m.completed and m.live is None
        ]
        scheduled = [m for m in open_matches if m.scheduled is not None]
        if scheduled:
            return deepcopy(min(scheduled, key=lambda m: m.scheduled.datetime))
        return deepcopy(open_matches[0]) if open_matches else None

    # ------------------------------------------------------------------ #
    # Tournament & teams                                                  #
    # ------------------------------------------------------------------ #

    @_command
    def create_tournament(self, year: int | None = None) -> Tournament:
        """Start a new tournament; all teams and matches are discarded."""
        self._require_no_live("create a tournament")
        tournament = Tournament(year=year or self._now().year, created_at=self._now())
        self._state = TournamentState(tournament=tournament)
        self._clock = None
        self._commit(self._tournament_event("created"))
        logger.info("Tournament %d created", tournament.year)
        return deepcopy(tournament)

    @_command
    def register_team(
        self,
        name: str,
        contact_name: str = "",
        contact_info: str = "",
        jersey_color: str | None = None,
    ) -> Team:
        tournament = self._require_tournament()
        if tournament.status != "registration":
            raise InvalidOperationError("Registration for this tournament is closed")
        name = self._validate_team_name(name)
        team = Team(
            id=uuid.uuid4().hex[:12],
            name=name,
            contact_name=contact_name.strip(),
            contact_info=contact_info.strip(),
            jersey_color=jersey_color.strip() if jersey_color else None,
            registered_at=self._now(),
        )
        self._state.teams.append(team)
        self._commit(TeamsUpdatedEvent(reason="registered", teams=deepcopy(self._state.teams)))
        logger.info("Team %r registered (%d teams)", name, len(self._state.teams))
        return deepcopy(team)

    @_command
    def update_team(
        self,
        team_id: str,
        *,
        name: str | None = None,
        contact_name: str | None = None,
        contact_info: str | None = None,
        jersey_color: str | None = None,
    ) -> Team:
        """Edit a team; a rename is carried through groups, matches and seeding."""
        team = self._team(team_id)
        new_name = team.name
        if name is not None and name.strip() != team.name:
            new_name = self._validate_team_name(name)

        old_name = team.name
        team.name = new_name
        if contact_name is not None:
            team.contact_name = contact_name.strip()
        if contact_info is not None:
            team.contact_info = contact_info.strip()
        if jersey_color is not None:
            team.jersey_color = jersey_color.strip() or None
        if new_name != old_name:
            self._rename_references(old_name, new_name)

        self._commit(TeamsUpdatedEvent(reason="updated", teams=deepcopy(self._state.teams)))
        return deepcopy(team)

    @_command
    def delete_team(self, team_id: str) -> None:
        """
        Remove a team.  Its open matches are dropped and it loses open referee
        duties; completed matches stay in the history.
        """
        team = self._team(team_id)
        live = self._live()
        if live is not None and live.involves(team.name):
            raise InvalidOperationError(f"{team.name} is playing the live match")

        self._state.teams.remove(team)
        self._state.matches = [
            m for m in self._state.matches
            if m.completed or not m.involves(team.name)
        ]
        for match in self._state.matches:
            if not match.completed and match.referee and match.referee.team == team.name:
                match.referee = None
        if self._state.tournament:
            for group in self._state.tournament.groups:
                if team.name in group.teams:
                    group.teams.remove(team.name)
        self._commit(TeamsUpdatedEvent(reason="deleted", teams=deepcopy(self._state.teams)))
        logger.info("Team %r deleted", team.name)

    @_command
    def set_status(self, status: str) -> Tournament:
        """Admin override; backward transitions are allowed."""
        tournament = self._require_tournament()
        if status not in STATUSES:
            raise InvalidOperationError(
                f"Unknown status {status!r}. Valid: {', '.join(STATUSES)}"
            )
        tournament.status = status
        self._commit(self._tournament_event("status"))
        return deepcopy(tournament)

    # ------------------------------------------------------------------ #
    # Fixtures                                                            #
    # ------------------------------------------------------------------ #

    @_command
    def close_registration(
        self,
        format: str,
        options: Mapping[str, Any] | None = None,
    ) -> FixtureSet:
        """
        Close registration and generate the fixture list.

        Raises:
            InfeasibleConfigurationError: the format does not fit the teams.
        """
        tournament = self._require_tournament()
        if tournament.status != "registration":
            raise InvalidOperationError("No tournament in the registration phase")
        fixtures = self._build_fixtures(format, options)
        tournament.registration_closed_at = self._now()
        tournament.status = "active"
        self._commit(self._fixtures_event("registration-closed"))
        logger.info(
            "Registration closed: %d teams, %d matches (%s)",
            len(self._state.teams), len(fixtures.matches), format,
        )
        return deepcopy(fixtures)

    @_command
    def reconfigure(
        self,
        format: str,
        options: Mapping[str, Any] | None = None,
    ) -> FixtureSet:
        """Discard every fixture and result and regenerate with a new format."""
        tournament = self._require_tournament()
        if tournament.status == "registration":
            raise InvalidOperationError("Close registration before reconfiguring")
        self._require_no_live("reconfigure the tournament")
        fixtures = self._build_fixtures(format, options)
        self._commit(self._fixtures_event("reconfigured"))
        logger.info("Tournament reconfigured: %d matches (%s)", len(fixtures.matches), format)
        return deepcopy(fixtures)

    @_command
    def generate_next_swiss_round(self) -> list[Match]:
        tournament = self._require_tournament()
        config = tournament.config
        if config is None or config.format != "swiss":
            raise InvalidOperationError("The tournament is not played in the Swiss format")
        group = tournament.groups[0]
        history = [m for m in self._state.matches if m.group == group.name and m.phase == "group"]
        if any(not m.completed for m in history):
            raise InvalidOperationError("The current Swiss round is not finished")
        played_rounds = max((m.round or 0 for m in history), default=0)
        if played_rounds >= (config.swiss_rounds or 0):
            raise InvalidOperationError(f"All {config.swiss_rounds} Swiss rounds have been generated")

        table = compute_table(group.teams, history)
        new = generate_swiss_round(group.teams, table, played_rounds + 1, history, group=group.name)
        self._state.matches.extend(new)
        if self.defaults.assign_referees:
            assign_referees(self._state.matches, tournament.groups)
        self._commit(self._fixtures_event(f"swiss-round-{played_rounds + 1}"))
        return deepcopy(new)

    @_command
    def generate_knockout(
        self,
        ko_options: KnockoutOptions | Mapping[str, Any] | None = None,
        final_table: Sequence[str] | None = None,
    ) -> list[Match]:
        """
        Seed the knockout bracket.

        ``final_table`` defaults to the merged group tables, which requires
        every group match and penalty shootout to be finished.
        """
        tournament = self._require_tournament()
        if tournament.config is None:
            raise InvalidOperationError("Close registration before generating the knockout phase")
        self._require_no_live("regenerate the knockout phase")

        existing = [m for m in self._state.matches if m.phase in KNOCKOUT_PHASES]
        if any(m.completed for m in existing):
            raise InvalidOperationError(
                "The knockout phase is already under way; reset results first"
            )

        if final_table is None:
            open_group = [
                m for m in self._state.matches
                if m.phase in ("group", "penalty") and not m.completed
            ]
            if open_group:
                raise InvalidOperationError(
                    f"{len(open_group)} group match(es) or shootout(s) are still open"
                )
            self._refresh()
            final_table = rank_teams(tournament.groups)
        else:
            known = set(self._state.team_names())
            unknown = [t for t in final_table if t not in known]
            if unknown:
                raise NotFoundError("Team", ", ".join(unknown))

        if ko_options is None:
            options = tournament.config.knockout
        elif isinstance(ko_options, KnockoutOptions):
            options = ko_options
        else:
            options = knockout_options(ko_options)

        try:
            bracket = generate_knockout(final_table, options)
        except ValueError as exc:
            raise InvalidOperationError(str(exc)) from exc

        self._state.matches = [m for m in self._state.matches if m.phase not in KNOCKOUT_PHASES]
        self._state.matches.extend(bracket)
        tournament.config.knockout = options
        tournament.knockout_seeding = list(final_table)
        self._commit(self._fixtures_event("knockout"))
        logger.info("Knockout phase generated: %d matches", len(bracket))
        return deepcopy(bracket)

    @_command
    def generate_penalty_shootouts(self) -> list[Match]:
        """Shootouts for ties in every group whose group stage is over."""
        tournament = self._require_tournament()
        self._refresh()
        finished = [g for g in tournament.groups if self._group_finished(g)]
        if not finished:
            raise InvalidOperationError("No group has finished its group matches yet")

        existing = {m.id for m in self._state.matches}
        new = [m for m in generate_penalty_shootouts(finished) if m.id not in existing]
        if not new:
            return []
        self._state.matches.extend(new)
        self._commit(self._fixtures_event("penalty-shootouts"))
        logger.info("Generated %d penalty shootout(s)", len(new))
        return deepcopy(new)

    @_command
    def add_match(
        self,
        team1: str,
        team2: str,
        *,
        phase: MatchPhase = "group",
        group: str | None = None,
        label: str = "",
        scheduled: Schedule | None = None,
    ) -> Match:
        self._require_tournament()
        known = set(self._state.team_names())
        for team in (team1, team2):
            if team not in known:
                raise NotFoundError("Team", team)
        if team1 == team2:
            raise InvalidOperationError("A team cannot play against itself")
        match = Match(
            id=f"manual_{uuid.uuid4().hex[:8]}",
            team1=team1,
            team2=team2,
            phase=phase,
            group=group,
            label=label,
            scheduled=scheduled,
            is_penalty_shootout=phase == "penalty",
        )
        self._state.matches.append(match)
        self._commit(self._tournament_event("match-added"))
        return deepcopy(match)

    @_command
    def update_match(
        self,
        match_id: str,
        *,
        team1: str | None = None,
        team2: str | None = None,
        label: str | None = None,
        referee_team: str | None = None,
        remove_referee: bool = False,
    ) -> Match:
        match = self._match(match_id)
        if match.live is not None:
            raise InvalidOperationError("The live match cannot be edited")
        known = set(self._state.team_names())
        if team1 is not None or team2 is not None:
            if match.completed:
                raise InvalidOperationError("Teams of a completed match cannot be changed")
            new1 = team1 if team1 is not None else match.team1
            new2 = team2 if team2 is not None else match.team2
            for team in (new1, new2):
                if team not in known:
                    raise NotFoundError("Team", str(team))
            if new1 == new2:
                raise InvalidOperationError("A team cannot play against itself")
        if referee_team is not None:
            if referee_team not in known:
                raise NotFoundError("Team", referee_team)
            if match.involves(referee_team):
                raise InvalidOperationError("A team cannot referee its own match")

        if team1 is not None:
            match.team1 = team1
        if team2 is not None:
            match.team2 = team2
        if label is not None:
            match.label = label
        if remove_referee:
            match.referee = None
        elif referee_team is not None:
            match.referee = Referee(team=referee_team, group=self._group_of(referee_team))
        self._commit(self._tournament_event("match-updated"))
        return deepcopy(match)

    @_command
    def delete_match(self, match_id: str) -> None:
        match = self._match(match_id)
        if match.live is not None:
            raise InvalidOperationError("The live match cannot be deleted; abort it first")
        self._state.matches.remove(match)
        self._commit(self._tournament_event("match-deleted"))

    # ------------------------------------------------------------------ #
    # Scheduling                                                          #
    # ------------------------------------------------------------------ #

    @_command
    def schedule_match(self, match_id: str, when: datetime, field: str | None = None) -> Match:
        match = self._match(match_id)
        match.scheduled = Schedule(datetime=when, field=field or self.defaults.field)
        self._commit(self._tournament_event("scheduled"))
        return deepcopy(match)

    @_command
    def schedule_all(
        self,
        start: datetime | time | None = None,
        match_minutes: int | None = None,
        field: str | None = None,
    ) -> list[Match]:
        """
        Schedule every unscheduled match back to back from ``start``
        (a time of day means today).
        """
        self._require_tournament()
        if start is None:
            start = self._now()
        elif isinstance(start, time):
            start = datetime.combine(self._now().date(), start)
        minutes = match_minutes or self.defaults.match_minutes
        if minutes < 1:
            raise InvalidOperationError("Match duration must be at least 1 minute")
        if not any(
            m.scheduled is None and not m.completed and not m.is_bye
            for m in self._state.matches
        ):
            raise InvalidOperationError("There are no unscheduled matches")

        scheduled = schedule_all(self._state.matches, start, minutes, field or self.defaults.field)
        self._commit(self._tournament_event("scheduled-all"))
        logger.info("Scheduled %d matches from %s", len(scheduled), start)
        return deepcopy(scheduled)

    @_command
    def assign_referees(self) -> list[Match]:
        tournament = self._require_tournament()
        assigned = assign_referees(self._state.matches, tournament.groups)
        if assigned:
            self._commit(self._tournament_event("referees"))
        return deepcopy(assigned)

    @_command
    def reset_results(self) -> None:
        """Clear every result; knockout slots fall back to their sources."""
        self._require_tournament()
        self._require_no_live("reset results")
        for match in self._state.matches:
            if match.is_bye:
                continue
            match.completed = False
            match.score1 = match.score2 = None
            match.penalty_score1 = match.penalty_score2 = None
        self._commit(self._tournament_event("results-reset"))

    @_command
    def reset_schedules(self) -> None:
        self._require_tournament()
        for match in self._state.matches:
            match.scheduled = None
        self._commit(self._tournament_event("schedules-reset"))

    @_command
    def reset_tournament(self) -> None:
        """Drop the tournament with all teams and matches."""
        self._state = TournamentState()
        self._clock = None
        self._commit(self._tournament_event("reset"))
        logger.warning("Tournament reset")

    # ------------------------------------------------------------------ #
    # Results                                                             #
    # ------------------------------------------------------------------ #

    @_command
    def enter_result(
        self,
        match_id: str,
        score1: int,
        score2: int,
        penalty_score1: int | None = None,
        penalty_score2: int | None = None,
    ) -> Match:
        """Enter or correct a result by hand (outside the live clock)."""
        match = self._match(match_id)
        if match.live is not None:
            raise InvalidOperationError("The match is live; finish it through the clock")
        if not match.is_ready:
            raise InvalidOperationError("Both teams must be known before a result is entered")
        scores = [s for s in (score1, score2, penalty_score1, penalty_score2) if s is not None]
        if any(s < 0 for s in scores):
            raise InvalidOperationError("Scores cannot be negative")
        if match.is_penalty_shootout and score1 == score2:
            raise InvalidOperationError("A penalty shootout needs a winner")
        if match.phase in KNOCKOUT_PHASES and score1 == score2:
            if penalty_score1 is None or penalty_score2 is None or penalty_score1 == penalty_score2:
                raise InvalidOperationError("A level knockout match needs a penalty winner")

        match.score1 = score1
        match.score2 = score2
        match.penalty_score1 = penalty_score1
        match.penalty_score2 = penalty_score2
        match.completed = True
        self._commit(MatchResultAddedEvent(match=deepcopy(match)))
        logger.info("Result %s: %s %d:%d %s", match.id, match.team1, score1, score2, match.team2)
        return deepcopy(match)

    # ------------------------------------------------------------------ #
    # Live match                                                          #
    # ------------------------------------------------------------------ #

    @_command
    def start_match(self, match_id: str, half_time_minutes: int | None = None) -> Match:
        """
        Kick off a match.

        Raises:
            ConcurrentLiveMatchError: another match is live.
            InvalidTransitionError: this match is live, finished or has no teams.
        """
        match = self._match(match_id)
        live = self._live()
        if live is not None and live.id != match_id:
            raise ConcurrentLiveMatchError(live.id)

        tournament = self._state.tournament
        minutes = half_time_minutes
        if minutes is None:
            minutes = tournament.config.half_time_minutes if tournament and tournament.config else self.defaults.half_time_minutes
        clock = LiveMatchClock(match, now=self._now)
        clock.start(minutes)

        self._clock = clock
        if tournament is not None:
            tournament.live_match_id = match.id
        self._commit(MatchStartedEvent(match=deepcopy(match)))
        return deepcopy(match)

    @_command
    def pause_match(self, match_id: str) -> Match:
        match = self._run_clock(match_id, lambda clock: clock.pause())
        self._commit(MatchPausedEvent(match=deepcopy(match)))
        return deepcopy(match)

    @_command
    def resume_match(self, match_id: str) -> Match:
        match = self._run_clock(match_id, lambda clock: clock.resume())
        self._commit(MatchResumedEvent(match=deepcopy(match)))
        return deepcopy(match)

    @_command
    def start_halftime(self, match_id: str) -> Match:
        match = self._run_clock(match_id, lambda clock: clock.start_halftime())
        self._commit(HalftimeStartedEvent(match=deepcopy(match)))
        return deepcopy(match)

    @_command
    def start_second_half(self, match_id: str) -> Match:
        match = self._run_clock(match_id, lambda clock: clock.start_second_half())
        self._commit(SecondHalfStartedEvent(match=deepcopy(match)))
        return deepcopy(match)

    @_command
    def update_live_score(self, match_id: str, score1: int, score2: int) -> Match:
        match = self._run_clock(match_id, lambda clock: clock.set_score(score1, score2))
        self._commit(
            LiveScoreUpdateEvent(match=deepcopy(match), time=match_time(match.live, self._now()))
        )
        return deepcopy(match)

    @_command
    def finish_match(
        self,
        match_id: str,
        penalty_score1: int | None = None,
        penalty_score2: int | None = None,
    ) -> Match:
        match = self._run_clock(match_id, lambda clock: clock.finish(penalty_score1, penalty_score2))
        self._release_live(match_id)
        self._commit(MatchFinishedEvent(match=deepcopy(match)))
        return deepcopy(match)

    @_command
    def abort_match(self, match_id: str) -> Match:
        match = self._run_clock(match_id, lambda clock: clock.abort())
        self._release_live(match_id)
        self._commit(MatchAbortedEvent(match=deepcopy(match)))
        return deepcopy(match)

    @_serialized
    def broadcast_live_snapshot(self) -> LiveScoreUpdateEvent | None:
        """Publish a live-score-update snapshot without persisting anything."""
        match = self._live()
        if match is None or match.live is None:
            return None
        event = LiveScoreUpdateEvent(match=deepcopy(match), time=match_time(match.live, self._now()))
        self._publish(event.name, event)
        return event

    # ------------------------------------------------------------------ #
    # Internal helpers                                                    #
    # ------------------------------------------------------------------ #

    def _commit(self, event: TournamentEvent) -> None:
        self._refresh()
        try:
            self._persist(self._state)
        except Exception:
            logger.exception("Persisting failed; %s rolled back", event.name)
            raise
        logger.debug("Publishing %s", event.name)
        self._publish(event.name, event)

    def _refresh(self) -> None:
        """Recompute derived data: group tables and knockout slots."""
        tournament = self._state.tournament
        if tournament is None:
            return
        for group in tournament.groups:
            group.table = compute_table(
                group.teams,
                [m for m in self._state.matches if m.group == group.name and m.phase in ("group", "penalty")],
            )
        if tournament.knockout_seeding:
            advance_bracket(self._state.matches, tournament.knockout_seeding)

    def _build_fixtures(self, format: str, options: Mapping[str, Any] | None) -> FixtureSet:
        names = self._state.team_names()
        options = {"group_size": self.defaults.group_size, **(options or {})}
        config = build_config(len(names), format, options, self.defaults.half_time_minutes)
        groups, matches = generate_fixtures(names, config)
        if self.defaults.assign_referees:
            assign_referees(matches, groups)

        tournament = self._state.tournament
        tournament.config = config
        tournament.groups = groups
        tournament.knockout_seeding = []
        tournament.live_match_id = None
        self._state.matches = matches
        self._clock = None
        return FixtureSet(groups=groups, matches=matches)

    def _run_clock(self, match_id: str, command: Callable[[LiveMatchClock], Any]) -> Match:
        match = self._match(match_id)
        clock = self._clock
        if clock is None or clock.match is not match:
            clock = LiveMatchClock(match, now=self._now)
        command(clock)
        return match

    def _group_finished(self, group: Group) -> bool:
        played = [m for m in self._state.matches if m.group == group.name and m.phase == "group"]
        if not all(m.completed for m in played):
            return False
        config = self._state.tournament.config
        if config is not None and config.format == "swiss":
            # later rounds can still break the tie
            rounds = max((m.round or 0 for m in played), default=0)
            return rounds >= (config.swiss_rounds or 0)
        return True

    def _release_live(self, match_id: str) -> None:
        tournament = self._state.tournament
        if tournament is not None and tournament.live_match_id == match_id:
            tournament.live_match_id = None
        self._clock = None

    def _live(self) -> Match | None:
        return next((m for m in self._state.matches if m.live is not None), None)

    def _require_no_live(self, action: str) -> None:
        live = self._live()
        if live is not None:
            raise InvalidOperationError(f"Cannot {action} while match {live.id!r} is live")

    def _require_tournament(self) -> Tournament:
        if self._state.tournament is None:
            raise InvalidOperationError("No tournament has been created yet")
        return self._state.tournament

    def _match(self, match_id: str) -> Match:
        match = self._state.find_match(match_id)
        if match is None:
            raise NotFoundError("Match", match_id)
        return match

    def _team(self, team_id: str) -> Team:
        team = self._state.find_team(team_id)
        if team is None:
            raise NotFoundError("Team", team_id)
        return team

    def _group_of(self, team: str) -> str | None:
        tournament = self._state.tournament
        if tournament is None:
            return None
        return next((g.name for g in tournament.groups if team in g.teams), None)

    def _validate_team_name(self, name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise InvalidOperationError("Team name is required")
        if name in self._state.team_names():
            raise InvalidOperationError(f"Team name {name!r} is already taken")
        return name

    def _rename_references(self, old: str, new: str) -> None:
        for match in self._state.matches:
            if match.team1 == old:
                match.team1 = new
            if match.team2 == old:
                match.team2 = new
            if match.referee and match.referee.team == old:
                match.referee.team = new
        tournament = self._state.tournament
        if tournament is None:
            return
        for group in tournament.groups:
            group.teams = [new if t == old else t for t in group.teams]
        tournament.knockout_seeding = [new if t == old else t for t in tournament.knockout_seeding]

    def _tournament_event(self, reason: str) -> TournamentUpdatedEvent:
        return TournamentUpdatedEvent(
            reason=reason,
            tournament=deepcopy(self._state.tournament),
            matches=deepcopy(self._state.matches),
        )

    def _fixtures_event(self, reason: str) -> FixturesGeneratedEvent:
        groups = self._state.tournament.groups if self._state.tournament else []
        return FixturesGeneratedEvent(
            reason=reason,
            matches=deepcopy(self._state.matches),
            groups=deepcopy(groups),
        )
