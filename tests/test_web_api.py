"""
Integration tests for the FastAPI app: REST commands, error mapping and the
/ws/live feed.

Uses FastAPI's synchronous TestClient (no external server required).
"""

import asyncio
import unittest

from fastapi.testclient import TestClient

from kickoff.config import Config
from kickoff.events import TeamsUpdatedEvent
from kickoff.models import Team
from kickoff.orchestrator import TournamentOrchestrator
from kickoff.web.app import LiveBroadcaster, create_app


def make_client(team_count: int = 0) -> tuple[TestClient, TournamentOrchestrator]:
    config = Config()
    orch = TournamentOrchestrator(defaults=config.tournament)
    orch.create_tournament(2026)
    for i in range(1, team_count + 1):
        orch.register_team(f"Team {i}")
    return TestClient(create_app(config, orch)), orch


class RestTests(unittest.TestCase):
    def test_register_and_list_teams(self):
        client, _ = make_client()
        response = client.post("/api/teams", json={"name": "Lions", "jersey_color": "Gold"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["type"], "Team")

        teams = client.get("/api/teams").json()
        self.assertEqual([t["name"] for t in teams], ["Lions"])
        self.assertEqual(client.get("/api/teams/jersey-colors").json(), {"gold": 1})

    def test_missing_name_is_400(self):
        client, _ = make_client()
        self.assertEqual(client.post("/api/teams", json={}).status_code, 400)

    def test_analyze(self):
        client, _ = make_client(9)
        result = client.post(
            "/api/analyze",
            json={"format": "groups", "options": {"group_size": 3, "max_games_per_team": 1}},
        ).json()
        self.assertFalse(result["feasible"])
        self.assertTrue(result["recommendations"])
        self.assertTrue(result["alternatives"])

    def test_infeasible_close_is_400_with_detail(self):
        client, _ = make_client(9)
        response = client.post(
            "/api/tournament/close-registration",
            json={"format": "groups", "options": {"group_size": 3, "max_games_per_team": 1}},
        )
        self.assertEqual(response.status_code, 400)
        detail = response.json()["detail"]
        self.assertFalse(detail["feasible"])
        self.assertTrue(detail["warnings"])
        self.assertTrue(detail["recommendations"])

    def test_close_registration_and_standings(self):
        client, _ = make_client(8)
        fixtures = client.post(
            "/api/tournament/close-registration",
            json={"format": "groups", "options": {"group_size": 4}},
        ).json()
        self.assertEqual(len(fixtures["matches"]), 12)

        first = fixtures["matches"][0]
        match_id = first["id"]
        response = client.post(f"/api/matches/{match_id}/result", json={"score1": 2, "score2": 0})
        self.assertEqual(response.status_code, 200)
        standings = {g["name"]: g["table"] for g in client.get("/api/standings").json()}
        leader = standings[first["group"]][0]
        self.assertEqual((leader["team"], leader["points"], leader["goal_diff"]), (first["team1"], 3, 2))

    def test_unknown_match_is_404(self):
        client, _ = make_client()
        response = client.get("/api/matches/nope")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"]["kind"], "Match")

    def test_live_flow_and_conflicts(self):
        client, orch = make_client(4)
        client.post("/api/tournament/close-registration", json={"format": "groups"})
        first, second = [m.id for m in orch.matches[:2]]

        self.assertEqual(client.post(f"/api/live/{first}/start").status_code, 200)
        live = client.get("/api/live-match").json()
        self.assertEqual(live["match"]["id"], first)
        self.assertEqual(live["time"]["type"], "MatchTime")

        conflict = client.post(f"/api/live/{second}/start")
        self.assertEqual(conflict.status_code, 409)
        self.assertEqual(conflict.json()["detail"]["live_match_id"], first)

        bad = client.post(f"/api/live/{first}/second-half")
        self.assertEqual(bad.status_code, 409)

        client.post(f"/api/live/{first}/score", json={"score1": 1, "score2": 0})
        partial = client.post(f"/api/live/{first}/score", json={"score2": 3})
        self.assertEqual(partial.status_code, 400)
        self.assertEqual(orch.get_match(first).live.score1, 1)
        self.assertEqual(orch.get_match(first).live.score2, 0)
        client.post(f"/api/live/{first}/halftime")
        client.post(f"/api/live/{first}/second-half")
        finished = client.post(f"/api/live/{first}/finish").json()
        self.assertTrue(finished["completed"])
        self.assertIsNone(client.get("/api/live-match").json())

    def test_next_match(self):
        client, _ = make_client(4)
        self.assertIsNone(client.get("/api/next-match").json())
        client.post("/api/tournament/close-registration", json={"format": "groups"})
        client.post("/api/schedule", json={"start": "2026-06-13T10:00:00"})
        next_match = client.get("/api/next-match").json()
        self.assertEqual(next_match["scheduled"]["datetime"], "2026-06-13T10:00:00")


class LiveFeedTests(unittest.TestCase):
    def test_snapshot_on_connect(self):
        client, _ = make_client(2)
        with client:
            with client.websocket_connect("/ws/live") as ws:
                snapshot = ws.receive_json()
        self.assertEqual(snapshot["type"], "snapshot")
        self.assertEqual(snapshot["tournament"]["year"], 2026)
        self.assertEqual(len(snapshot["teams"]), 2)
        self.assertIsNone(snapshot["live"])

    def test_events_are_pushed_with_nested_types(self):
        client, _ = make_client()
        with client:
            with client.websocket_connect("/ws/live") as ws:
                ws.receive_json()   # snapshot
                client.post("/api/teams", json={"name": "Lions"})
                event = ws.receive_json()
        self.assertEqual(event["type"], "TeamsUpdatedEvent")
        self.assertEqual(event["name"], "teams-updated")
        self.assertEqual(event["teams"][0]["type"], "Team")
        self.assertEqual(event["teams"][0]["name"], "Lions")

    def test_reconnect_sees_current_state(self):
        client, _ = make_client()
        with client:
            with client.websocket_connect("/ws/live") as ws:
                ws.receive_json()
            client.post("/api/teams", json={"name": "Lions"})
            with client.websocket_connect("/ws/live") as ws:
                snapshot = ws.receive_json()
        self.assertEqual([t["name"] for t in snapshot["teams"]], ["Lions"])


class BroadcasterTests(unittest.IsolatedAsyncioTestCase):
    async def test_publish_from_worker_thread_reaches_every_client(self):
        broadcaster = LiveBroadcaster()
        broadcaster.bind(asyncio.get_running_loop())
        first, second = broadcaster.subscribe(), broadcaster.subscribe()

        event = TeamsUpdatedEvent(reason="registered", teams=[Team(id="t1", name="Lions")])
        await asyncio.to_thread(broadcaster.publish, event.name, event)

        for queue in (first, second):
            payload = await asyncio.wait_for(queue.get(), timeout=1)
            self.assertEqual(payload["name"], "teams-updated")

    async def test_unbound_broadcaster_drops_events(self):
        broadcaster = LiveBroadcaster()
        queue = broadcaster.subscribe()
        event = TeamsUpdatedEvent(reason="registered", teams=[])
        broadcaster.publish(event.name, event)
        self.assertTrue(queue.empty())

    async def test_unsubscribed_client_gets_nothing(self):
        broadcaster = LiveBroadcaster()
        broadcaster.bind(asyncio.get_running_loop())
        queue = broadcaster.subscribe()
        broadcaster.unsubscribe(queue)
        self.assertEqual(broadcaster.client_count, 0)
        event = TeamsUpdatedEvent(reason="registered", teams=[])
        broadcaster.publish(event.name, event)
        await asyncio.sleep(0)
        self.assertTrue(queue.empty())
