"""
JSON conversion for models, events and persisted snapshots.

to_json_dict() converts any dataclass (event, match, analysis result) to a
JSON-safe dict and injects a "type" key at every level of nesting, so a
client reducer can dispatch on nested objects too.  Events additionally carry
their wire "name" ("match-started", ...).

snapshot_to_dict() / snapshot_from_dict() round-trip the full TournamentState;
the type keys written by to_json_dict() are ignored on the way back in.
"""

from __future__ import annotations

import dataclasses
import json
from datetime import date, datetime
from typing import Any

from kickoff.models import (
    Group,
    KnockoutOptions,
    LiveMatchState,
    Match,
    Referee,
    Schedule,
    Standing,
    Team,
    Tournament,
    TournamentConfig,
    TournamentState,
)

SNAPSHOT_VERSION = 1


def to_json_dict(obj: Any) -> Any:
    """Recursively convert dataclasses/lists/datetimes into JSON-safe values."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        data: dict[str, Any] = {"type": type(obj).__name__}
        name = getattr(type(obj), "name", None)
        if isinstance(name, str):
            data["name"] = name
        for f in dataclasses.fields(obj):
            data[f.name] = to_json_dict(getattr(obj, f.name))
        if isinstance(obj, Standing):
            data["goal_diff"] = obj.goal_diff
        return data
    if isinstance(obj, (list, tuple)):
        return [to_json_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): to_json_dict(v) for k, v in obj.items()}
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return obj


def to_json(obj: Any) -> str:
    return json.dumps(to_json_dict(obj))


# --------------------------------------------------------------------------- #
# Snapshots                                                                    #
# --------------------------------------------------------------------------- #

def snapshot_to_dict(state: TournamentState) -> dict[str, Any]:
    return {
        "version": SNAPSHOT_VERSION,
        "tournament": to_json_dict(state.tournament),
        "teams": to_json_dict(state.teams),
        "matches": to_json_dict(state.matches),
        "last_updated": datetime.now().isoformat(),
    }


def snapshot_from_dict(data: dict[str, Any]) -> TournamentState:
    """
    Rebuild a TournamentState.

    Raises:
        ValueError: the snapshot is malformed.
    """
    try:
        raw_tournament = data.get("tournament")
        return TournamentState(
            tournament=tournament_from_dict(raw_tournament) if raw_tournament else None,
            teams=[team_from_dict(t) for t in data.get("teams") or []],
            matches=[match_from_dict(m) for m in data.get("matches") or []],
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid tournament snapshot: {exc}") from exc


def team_from_dict(data: dict[str, Any]) -> Team:
    return Team(
        id=str(data["id"]),
        name=data["name"],
        contact_name=data.get("contact_name", ""),
        contact_info=data.get("contact_info", ""),
        jersey_color=data.get("jersey_color"),
        registered_at=_dt(data.get("registered_at")) or datetime.now(),
    )


def tournament_from_dict(data: dict[str, Any]) -> Tournament:
    raw_config = data.get("config")
    return Tournament(
        year=int(data["year"]),
        status=data.get("status", "registration"),
        config=config_from_dict(raw_config) if raw_config else None,
        groups=[group_from_dict(g) for g in data.get("groups") or []],
        live_match_id=data.get("live_match_id"),
        knockout_seeding=list(data.get("knockout_seeding") or []),
        created_at=_dt(data.get("created_at")) or datetime.now(),
        registration_closed_at=_dt(data.get("registration_closed_at")),
    )


def config_from_dict(data: dict[str, Any]) -> TournamentConfig:
    ko = data.get("knockout") or {}
    return TournamentConfig(
        format=data.get("format", "groups"),
        group_size=int(data.get("group_size", 4)),
        max_games_per_team=data.get("max_games_per_team"),
        swiss_rounds=data.get("swiss_rounds"),
        knockout=KnockoutOptions(
            quarterfinals=bool(ko.get("quarterfinals", False)),
            third_place=bool(ko.get("third_place", False)),
            fifth_place=bool(ko.get("fifth_place", False)),
            seventh_place=bool(ko.get("seventh_place", False)),
        ),
        half_time_minutes=int(data.get("half_time_minutes", 10)),
        shuffle_seed=data.get("shuffle_seed"),
    )


def group_from_dict(data: dict[str, Any]) -> Group:
    return Group(
        name=data["name"],
        teams=list(data.get("teams") or []),
        table=[standing_from_dict(s) for s in data.get("table") or []],
    )


def standing_from_dict(data: dict[str, Any]) -> Standing:
    return Standing(
        team=data["team"],
        games=int(data.get("games", 0)),
        wins=int(data.get("wins", 0)),
        draws=int(data.get("draws", 0)),
        losses=int(data.get("losses", 0)),
        goals_for=int(data.get("goals_for", 0)),
        goals_against=int(data.get("goals_against", 0)),
        points=int(data.get("points", 0)),
        penalty_wins=int(data.get("penalty_wins", 0)),
    )


def match_from_dict(data: dict[str, Any]) -> Match:
    scheduled = data.get("scheduled")
    referee = data.get("referee")
    live = data.get("live")
    return Match(
        id=str(data["id"]),
        team1=data.get("team1"),
        team2=data.get("team2"),
        phase=data.get("phase", "group"),
        group=data.get("group"),
        round=data.get("round"),
        label=data.get("label", ""),
        team1_source=data.get("team1_source"),
        team2_source=data.get("team2_source"),
        scheduled=Schedule(datetime=_dt(scheduled["datetime"]), field=scheduled.get("field", "")) if scheduled else None,
        completed=bool(data.get("completed", False)),
        score1=data.get("score1"),
        score2=data.get("score2"),
        penalty_score1=data.get("penalty_score1"),
        penalty_score2=data.get("penalty_score2"),
        is_penalty_shootout=bool(data.get("is_penalty_shootout", False)),
        is_bye=bool(data.get("is_bye", False)),
        referee=Referee(team=referee["team"], group=referee.get("group")) if referee else None,
        live=live_from_dict(live) if live else None,
    )


def live_from_dict(data: dict[str, Any]) -> LiveMatchState:
    return LiveMatchState(
        start_time=_dt(data["start_time"]),
        half_time_minutes=int(data["half_time_minutes"]),
        current_half=int(data.get("current_half", 1)),
        second_half_start_time=_dt(data.get("second_half_start_time")),
        half_time_break=bool(data.get("half_time_break", False)),
        first_half_end_time=_dt(data.get("first_half_end_time")),
        is_paused=bool(data.get("is_paused", False)),
        pause_start_time=_dt(data.get("pause_start_time")),
        paused_ms=int(data.get("paused_ms", 0)),
        first_half_paused_ms=int(data.get("first_half_paused_ms", 0)),
        score1=int(data.get("score1", 0)),
        score2=int(data.get("score2", 0)),
        minute=int(data.get("minute", 0)),
    )


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None
