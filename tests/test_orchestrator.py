"""
Tests for TournamentOrchestrator: command validation, one event per
mutation, persistence hook, the single-live-match guard and the group →
shootout → knockout flow.
"""

from __future__ import annotations

import threading
import unittest
from datetime import datetime, timedelta

from kickoff.config import TournamentDefaults
from kickoff.errors import (
    ConcurrentLiveMatchError,
    InfeasibleConfigurationError,
    InvalidOperationError,
    InvalidTransitionError,
    NotFoundError,
)
from kickoff.events import (
    LiveScoreUpdateEvent,
    MatchAbortedEvent,
    MatchFinishedEvent,
    MatchResultAddedEvent,
    MatchStartedEvent,
    TeamsUpdatedEvent,
)
from kickoff.orchestrator import TournamentOrchestrator

KICKOFF = datetime(2026, 6, 13, 10, 0, 0)


class FakeClock:
    def __init__(self) -> None:
        self.now = KICKOFF

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class Recorder:
    """Collects persisted snapshots and published events."""

    def __init__(self) -> None:
        self.saved = []
        self.events = []

    def persist(self, state) -> None:
        self.saved.append(state)

    def publish(self, name, event) -> None:
        self.events.append((name, event))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]


def make_orchestrator(team_count: int = 0, **defaults) -> tuple[TournamentOrchestrator, Recorder, FakeClock]:
    recorder = Recorder()
    fake = FakeClock()
    orch = TournamentOrchestrator(
        persist=recorder.persist,
        publish=recorder.publish,
        defaults=TournamentDefaults(**defaults),
        now=fake,
    )
    orch.create_tournament(2026)
    for i in range(1, team_count + 1):
        orch.register_team(f"Team {i}", contact_name=f"Captain {i}")
    recorder.events.clear()
    recorder.saved.clear()
    return orch, recorder, fake


def play_all(orch: TournamentOrchestrator, phase: str = "group", score1: int = 1, score2: int = 0) -> None:
    for match in orch.matches:
        if match.phase == phase and not match.completed and match.is_ready:
            orch.enter_result(match.id, score1, score2)


# --------------------------------------------------------------------------- #
# Registration                                                                 #
# --------------------------------------------------------------------------- #

class RegistrationTests(unittest.TestCase):
    def test_register_publishes_and_persists(self):
        orch, rec, _ = make_orchestrator()
        team = orch.register_team("  Lions ", jersey_color="Red")
        self.assertEqual(team.name, "Lions")
        self.assertEqual(rec.names, ["teams-updated"])
        self.assertIsInstance(rec.events[0][1], TeamsUpdatedEvent)
        self.assertEqual(len(rec.saved), 1)

    def test_duplicate_and_empty_names_rejected(self):
        orch, rec, _ = make_orchestrator()
        orch.register_team("Lions")
        with self.assertRaises(InvalidOperationError):
            orch.register_team("Lions")
        with self.assertRaises(InvalidOperationError):
            orch.register_team("   ")
        self.assertEqual(len(orch.teams), 1)
        self.assertEqual(rec.names, ["teams-updated"])

    def test_registration_closed(self):
        orch, _, _ = make_orchestrator(8)
        orch.close_registration("groups", {"group_size": 4})
        with self.assertRaises(InvalidOperationError):
            orch.register_team("Late")

    def test_jersey_color_usage(self):
        orch, _, _ = make_orchestrator()
        orch.register_team("A", jersey_color="Red")
        orch.register_team("B", jersey_color=" red ")
        orch.register_team("C", jersey_color="Blue")
        orch.register_team("D")
        self.assertEqual(orch.jersey_color_usage(), {"red": 2, "blue": 1})

    def test_rename_is_carried_through_fixtures(self):
        orch, _, _ = make_orchestrator(8)
        orch.close_registration("groups", {"group_size": 4})
        team_id = orch.teams[0].id
        orch.update_team(team_id, name="Renamed")
        self.assertTrue(any(m.involves("Renamed") for m in orch.matches))
        self.assertFalse(any(m.involves("Team 1") for m in orch.matches))
        self.assertIn("Renamed", orch.tournament.groups[0].teams)

    def test_delete_team_drops_open_matches(self):
        orch, _, _ = make_orchestrator(8)
        orch.close_registration("groups", {"group_size": 4})
        team_id = orch.teams[0].id
        orch.delete_team(team_id)
        self.assertFalse(any(m.involves("Team 1") for m in orch.matches))
        self.assertFalse(any(m.referee and m.referee.team == "Team 1" for m in orch.matches))

    def test_unknown_team(self):
        orch, _, _ = make_orchestrator()
        with self.assertRaises(NotFoundError):
            orch.update_team("nope", name="X")


# --------------------------------------------------------------------------- #
# Fixtures                                                                     #
# --------------------------------------------------------------------------- #

class FixtureTests(unittest.TestCase):
    def test_close_registration_generates_groups(self):
        orch, rec, _ = make_orchestrator(8)
        fixtures = orch.close_registration("groups", {"group_size": 4})
        self.assertEqual(len(fixtures.groups), 2)
        self.assertEqual(len(fixtures.matches), 12)
        self.assertEqual(orch.tournament.status, "active")
        self.assertEqual(rec.names, ["fixtures-generated"])
        self.assertTrue(all(m.referee is not None for m in orch.matches))

    def test_infeasible_configuration_changes_nothing(self):
        orch, rec, _ = make_orchestrator(9)
        with self.assertRaises(InfeasibleConfigurationError) as ctx:
            orch.close_registration("groups", {"group_size": 3, "max_games_per_team": 1})
        self.assertTrue(ctx.exception.recommendations)
        self.assertEqual(orch.tournament.status, "registration")
        self.assertEqual(orch.matches, [])
        self.assertEqual(rec.events, [])
        self.assertEqual(rec.saved, [])

    def test_default_group_size_from_config(self):
        orch, _, _ = make_orchestrator(9, group_size=3)
        fixtures = orch.close_registration("groups")
        self.assertEqual([len(g.teams) for g in fixtures.groups], [3, 3, 3])

    def test_reconfigure_replaces_fixtures(self):
        orch, _, _ = make_orchestrator(8)
        orch.close_registration("groups", {"group_size": 4})
        play_all(orch)
        fixtures = orch.reconfigure("league", {"max_games_per_team": 3})
        self.assertEqual(len(fixtures.matches), 12)
        self.assertTrue(all(not m.completed for m in orch.matches))

    def test_swiss_rounds(self):
        orch, _, _ = make_orchestrator(6)
        orch.close_registration("swiss", {"rounds": 2})
        with self.assertRaises(InvalidOperationError):
            orch.generate_next_swiss_round()
        play_all(orch)
        second = orch.generate_next_swiss_round()
        self.assertEqual({m.round for m in second}, {2})
        play_all(orch)
        with self.assertRaises(InvalidOperationError):
            orch.generate_next_swiss_round()

    def test_group_to_knockout_flow(self):
        orch, _, _ = make_orchestrator(8)
        orch.close_registration("groups", {"group_size": 4, "quarterfinals": True, "third_place": True})
        with self.assertRaises(InvalidOperationError):
            orch.generate_knockout()
        play_all(orch, score1=2, score2=1)
        bracket = orch.generate_knockout()
        self.assertEqual(len(bracket), 8)
        self.assertEqual(orch.tournament.knockout_seeding[:2], [bracket[0].team1, bracket[1].team1])

        for match_id in ("QF-1", "QF-2", "QF-3", "QF-4"):
            orch.enter_result(match_id, 1, 0)
        semifinal = orch.get_match("SF-1")
        self.assertTrue(semifinal.is_ready)

    def test_level_knockout_result_needs_penalties(self):
        orch, _, _ = make_orchestrator(4)
        orch.close_registration("groups", {"group_size": 4})
        play_all(orch)
        orch.generate_knockout()
        with self.assertRaises(InvalidOperationError):
            orch.enter_result("SF-1", 1, 1)
        match = orch.enter_result("SF-1", 1, 1, 5, 4)
        self.assertEqual(match.winner(), match.team1)
        self.assertEqual(orch.get_match("F").team1, match.team1)

    def test_penalty_shootouts_for_tied_group(self):
        orch, rec, _ = make_orchestrator(4)
        orch.close_registration("groups", {"group_size": 4})
        play_all(orch, score1=1, score2=1)
        shootouts = orch.generate_penalty_shootouts()
        self.assertEqual(len(shootouts), 6)
        self.assertEqual(orch.generate_penalty_shootouts(), [])
        with self.assertRaises(InvalidOperationError):
            orch.generate_knockout()

        with self.assertRaises(InvalidOperationError):
            orch.enter_result(shootouts[0].id, 3, 3)
        self.assertEqual(rec.names.count("fixtures-generated"), 2)

    def test_swiss_shootouts_wait_for_the_last_round(self):
        orch, _, _ = make_orchestrator(8)
        orch.close_registration("swiss", {"rounds": 3})
        play_all(orch)
        with self.assertRaises(InvalidOperationError):
            orch.generate_penalty_shootouts()
        self.assertFalse([m for m in orch.matches if m.phase == "penalty"])

        for _ in range(2):
            orch.generate_next_swiss_round()
            play_all(orch)
        shootouts = orch.generate_penalty_shootouts()
        self.assertTrue(all(m.is_penalty_shootout for m in shootouts))

    def test_enter_result_validation(self):
        orch, _, _ = make_orchestrator(4)
        orch.close_registration("groups", {"group_size": 4})
        match_id = orch.matches[0].id
        with self.assertRaises(InvalidOperationError):
            orch.enter_result(match_id, -1, 0)
        with self.assertRaises(NotFoundError):
            orch.enter_result("missing", 1, 0)

    def test_standings_follow_results(self):
        orch, rec, _ = make_orchestrator(4)
        orch.close_registration("groups", {"group_size": 4})
        match = orch.matches[0]
        orch.enter_result(match.id, 3, 0)
        self.assertEqual(rec.names[-1], "match-result-added")
        self.assertIsInstance(rec.events[-1][1], MatchResultAddedEvent)
        table = orch.group_tables()[0].table
        self.assertEqual(table[0].team, match.team1)
        self.assertEqual(table[0].points, 3)

        orch.reset_results()
        self.assertTrue(all(row.points == 0 for row in orch.group_tables()[0].table))


# --------------------------------------------------------------------------- #
# Live match                                                                   #
# --------------------------------------------------------------------------- #

class LiveMatchTests(unittest.TestCase):
    def setUp(self) -> None:
        self.orch, self.rec, self.fake = make_orchestrator(4, half_time_minutes=10)
        self.orch.close_registration("groups", {"group_size": 4})
        self.rec.events.clear()
        self.first, self.second = [m.id for m in self.orch.matches[:2]]

    def test_only_one_live_match(self):
        self.orch.start_match(self.first)
        with self.assertRaises(ConcurrentLiveMatchError):
            self.orch.start_match(self.second)
        self.assertIsNone(self.orch.get_match(self.second).live)
        self.assertEqual(self.orch.tournament.live_match_id, self.first)

    def test_starting_live_match_again_is_a_transition_error(self):
        self.orch.start_match(self.first)
        with self.assertRaises(InvalidTransitionError):
            self.orch.start_match(self.first)

    def test_full_live_cycle(self):
        o, fake = self.orch, self.fake
        o.start_match(self.first)
        fake.advance(60)
        o.update_live_score(self.first, 1, 0)
        o.pause_match(self.first)
        fake.advance(30)
        o.resume_match(self.first)
        fake.advance(9 * 60)
        o.start_halftime(self.first)
        fake.advance(300)
        o.start_second_half(self.first)
        fake.advance(120)
        self.assertEqual(o.live_time().display, "02:00")
        match = o.finish_match(self.first)

        self.assertTrue(match.completed)
        self.assertEqual((match.score1, match.score2), (1, 0))
        self.assertIsNone(o.live_match())
        self.assertIsNone(o.tournament.live_match_id)
        self.assertEqual(
            self.rec.names,
            [
                "match-started",
                "live-score-update",
                "match-paused",
                "match-resumed",
                "halftime-started",
                "second-half-started",
                "match-finished",
            ],
        )
        self.assertIsInstance(self.rec.events[0][1], MatchStartedEvent)
        self.assertIsInstance(self.rec.events[-1][1], MatchFinishedEvent)
        self.assertEqual(o.group_tables()[0].table[0].points, 3)

        # finishing frees the slot for the next match
        o.start_match(self.second)

    def test_events_carry_snapshots(self):
        self.orch.start_match(self.first)
        self.orch.update_live_score(self.first, 2, 2)
        started = self.rec.events[0][1]
        self.assertEqual(started.match.live.score1, 0)
        update = self.rec.events[1][1]
        self.assertIsInstance(update, LiveScoreUpdateEvent)
        self.assertEqual(update.match.live.score1, 2)

    def test_rejected_transition_publishes_nothing(self):
        self.orch.start_match(self.first)
        self.rec.events.clear()
        self.rec.saved.clear()
        with self.assertRaises(InvalidTransitionError):
            self.orch.start_second_half(self.first)
        self.assertEqual(self.rec.events, [])
        self.assertEqual(self.rec.saved, [])

    def test_simultaneous_pause_and_finish_are_serialized(self):
        o = self.orch
        o.start_match(self.first)
        o.start_halftime(self.first)
        o.start_second_half(self.first)

        barrier = threading.Barrier(2)
        outcomes: dict[str, str] = {}

        def run(name, command):
            barrier.wait()
            try:
                command(self.first)
                outcomes[name] = "ok"
            except InvalidTransitionError:
                outcomes[name] = "rejected"

        threads = [
            threading.Thread(target=run, args=("pause", o.pause_match)),
            threading.Thread(target=run, args=("finish", o.finish_match)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        self.assertEqual(sorted(outcomes.values()), ["ok", "rejected"])
        match = o.get_match(self.first)
        if outcomes["finish"] == "ok":
            self.assertTrue(match.completed)
            self.assertIsNone(match.live)
        else:
            self.assertFalse(match.completed)
            self.assertTrue(match.live.is_paused)

    def test_abort_then_restart(self):
        o, fake = self.orch, self.fake
        o.start_match(self.first)
        fake.advance(60)
        o.pause_match(self.first)
        fake.advance(60)
        o.resume_match(self.first)
        o.abort_match(self.first)
        self.assertIsInstance(self.rec.events[-1][1], MatchAbortedEvent)
        self.assertIsNone(o.live_match())

        restarted = o.start_match(self.first)
        self.assertEqual(restarted.live.paused_ms, 0)
        self.assertEqual(restarted.live.start_time, fake.now)

    def test_live_match_blocks_reconfigure_and_delete(self):
        self.orch.start_match(self.first)
        with self.assertRaises(InvalidOperationError):
            self.orch.reconfigure("league")
        with self.assertRaises(InvalidOperationError):
            self.orch.delete_match(self.first)
        with self.assertRaises(InvalidOperationError):
            self.orch.enter_result(self.first, 1, 0)

    def test_broadcast_snapshot_is_not_persisted(self):
        self.assertIsNone(self.orch.broadcast_live_snapshot())
        self.orch.start_match(self.first)
        self.rec.saved.clear()
        self.rec.events.clear()
        event = self.orch.broadcast_live_snapshot()
        self.assertIsInstance(event, LiveScoreUpdateEvent)
        self.assertEqual(self.rec.names, ["live-score-update"])
        self.assertEqual(self.rec.saved, [])


# --------------------------------------------------------------------------- #
# Scheduling & admin                                                           #
# --------------------------------------------------------------------------- #

class AdminTests(unittest.TestCase):
    def test_schedule_all_and_next_match(self):
        orch, _, _ = make_orchestrator(8, match_minutes=20, field="Pitch 2")
        orch.close_registration("groups", {"group_size": 4})
        scheduled = orch.schedule_all(KICKOFF)
        self.assertEqual(len(scheduled), 12)
        self.assertEqual(scheduled[1].scheduled.datetime, KICKOFF + timedelta(minutes=20))
        self.assertEqual(scheduled[0].scheduled.field, "Pitch 2")
        self.assertEqual(orch.next_match().id, scheduled[0].id)
        with self.assertRaises(InvalidOperationError):
            orch.schedule_all(KICKOFF)

        orch.reset_schedules()
        self.assertTrue(all(m.scheduled is None for m in orch.matches))

    def test_add_update_delete_match(self):
        orch, _, _ = make_orchestrator(4)
        match = orch.add_match("Team 1", "Team 2", phase="group", label="Friendly")
        with self.assertRaises(InvalidOperationError):
            orch.add_match("Team 1", "Team 1")
        with self.assertRaises(NotFoundError):
            orch.add_match("Team 1", "Nobody")

        updated = orch.update_match(match.id, team2="Team 3", referee_team="Team 4")
        self.assertEqual(updated.team2, "Team 3")
        self.assertEqual(updated.referee.team, "Team 4")
        with self.assertRaises(InvalidOperationError):
            orch.update_match(match.id, referee_team="Team 1")

        orch.delete_match(match.id)
        with self.assertRaises(NotFoundError):
            orch.get_match(match.id)

    def test_set_status_override(self):
        orch, _, _ = make_orchestrator(8)
        orch.close_registration("groups", {"group_size": 4})
        orch.set_status("registration")
        self.assertEqual(orch.tournament.status, "registration")
        with self.assertRaises(InvalidOperationError):
            orch.set_status("paused")

    def test_reset_tournament(self):
        orch, rec, _ = make_orchestrator(4)
        orch.reset_tournament()
        self.assertIsNone(orch.tournament)
        self.assertEqual(orch.teams, [])
        self.assertEqual(rec.names, ["tournament-updated"])

    def test_returned_objects_are_copies(self):
        orch, _, _ = make_orchestrator(4)
        orch.close_registration("groups", {"group_size": 4})
        match = orch.matches[0]
        match.completed = True
        self.assertFalse(orch.get_match(match.id).completed)

    def test_analyze_uses_registered_team_count(self):
        orch, _, _ = make_orchestrator(3)
        self.assertFalse(orch.analyze_config(None, "groups").feasible)
        self.assertTrue(orch.analyze_config(8, "groups").feasible)

    def test_recompute_standings_matches_group_tables(self):
        orch, _, _ = make_orchestrator(4)
        orch.close_registration("groups", {"group_size": 4})
        play_all(orch, score1=2, score2=1)
        group = orch.group_tables()[0]
        table = TournamentOrchestrator.recompute_standings(group.teams, orch.matches)
        self.assertEqual(table, group.table)

    def test_failed_persist_rolls_back_and_publishes_nothing(self):
        recorder = Recorder()
        failing: list[bool] = []

        def persist(state) -> None:
            if failing:
                raise OSError("disk full")

        orch = TournamentOrchestrator(persist=persist, publish=recorder.publish, now=FakeClock())
        orch.create_tournament(2026)
        for i in range(1, 5):
            orch.register_team(f"Team {i}")
        orch.close_registration("groups", {"group_size": 4})
        match_id = orch.matches[0].id
        recorder.events.clear()
        failing.append(True)

        with self.assertLogs("kickoff.orchestrator", level="ERROR"):
            with self.assertRaises(OSError):
                orch.enter_result(match_id, 2, 0)
            with self.assertRaises(OSError):
                orch.start_match(match_id)

        self.assertFalse(orch.get_match(match_id).completed)
        self.assertEqual(orch.group_tables()[0].table[0].points, 0)
        self.assertIsNone(orch.live_match())
        self.assertIsNone(orch.tournament.live_match_id)
        self.assertEqual(recorder.events, [])

        failing.clear()
        self.assertTrue(orch.enter_result(match_id, 2, 0).completed)
