"""
Tests for to_json_dict and the snapshot round trip.

Every nested dataclass must carry its own "type" key so a client reducer can
dispatch on the match inside an event, not only on the event itself.
"""

import dataclasses
import json
import unittest
from datetime import datetime

from kickoff.clock import match_time
from kickoff.events import LiveScoreUpdateEvent, MatchStartedEvent
from kickoff.models import (
    Group,
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
from kickoff.serialization import snapshot_from_dict, snapshot_to_dict, to_json, to_json_dict

KICKOFF = datetime(2026, 6, 13, 14, 0, 0)


# ── Local test dataclasses ─────────────────────────────────────────────────

@dataclasses.dataclass(frozen=True)
class _Inner:
    x: int


@dataclasses.dataclass(frozen=True)
class _Outer:
    inner: _Inner
    items: tuple


class ToJsonDictTests(unittest.TestCase):
    def test_type_at_every_level(self):
        result = to_json_dict(_Outer(inner=_Inner(x=1), items=(_Inner(x=2),)))
        self.assertEqual(result["type"], "_Outer")
        self.assertEqual(result["inner"]["type"], "_Inner")
        self.assertIsInstance(result["items"], list)
        self.assertEqual(result["items"][0]["type"], "_Inner")

    def test_event_has_name_and_nested_match_type(self):
        match = Match(id="m1", team1="Red", team2="Blue")
        result = to_json_dict(MatchStartedEvent(match=match, timestamp=KICKOFF))
        self.assertEqual(result["type"], "MatchStartedEvent")
        self.assertEqual(result["name"], "match-started")
        self.assertEqual(result["match"]["type"], "Match")
        self.assertEqual(result["timestamp"], "2026-06-13T14:00:00")

    def test_live_update_carries_computed_time(self):
        live = LiveMatchState(start_time=KICKOFF, half_time_minutes=10, score1=1)
        match = Match(id="m1", team1="Red", team2="Blue", live=live)
        event = LiveScoreUpdateEvent(match=match, time=match_time(live, KICKOFF.replace(minute=3)))
        result = json.loads(to_json(event))
        self.assertEqual(result["time"]["display"], "03:00")
        self.assertEqual(result["match"]["live"]["score1"], 1)

    def test_standing_includes_goal_diff(self):
        result = to_json_dict(Standing(team="A", goals_for=5, goals_against=1))
        self.assertEqual(result["goal_diff"], 4)


class SnapshotTests(unittest.TestCase):
    def _state(self) -> TournamentState:
        live = LiveMatchState(
            start_time=KICKOFF,
            half_time_minutes=10,
            is_paused=True,
            pause_start_time=KICKOFF.replace(minute=5),
            paused_ms=1500,
            score1=2,
        )
        tournament = Tournament(
            year=2026,
            status="active",
            config=TournamentConfig(format="groups", group_size=3, max_games_per_team=2),
            groups=[Group(name="Group A", teams=["Red", "Blue", "Green"])],
            live_match_id="group_0_0_1",
            created_at=KICKOFF,
        )
        return TournamentState(
            tournament=tournament,
            teams=[Team(id="t1", name="Red", jersey_color="red", registered_at=KICKOFF)],
            matches=[
                Match(
                    id="group_0_0_1",
                    team1="Red",
                    team2="Blue",
                    group="Group A",
                    round=1,
                    scheduled=Schedule(datetime=KICKOFF, field="Pitch 1"),
                    referee=Referee(team="Green", group="Group A"),
                    live=live,
                ),
                Match(
                    id="F",
                    team1=None,
                    team2=None,
                    phase="knockout",
                    team1_source="winner:SF-1",
                    team2_source="winner:SF-2",
                ),
            ],
        )

    def test_round_trip_restores_live_state(self):
        state = self._state()
        restored = snapshot_from_dict(json.loads(json.dumps(snapshot_to_dict(state))))
        self.assertEqual(restored.tournament, state.tournament)
        self.assertEqual(restored.teams, state.teams)
        self.assertEqual(restored.matches, state.matches)

    def test_snapshot_has_version(self):
        data = snapshot_to_dict(self._state())
        self.assertEqual(data["version"], 1)
        self.assertIn("last_updated", data)

    def test_malformed_snapshot_raises_value_error(self):
        with self.assertRaises(ValueError):
            snapshot_from_dict({"teams": [{"name": "missing id"}]})
