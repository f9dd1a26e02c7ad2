from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient

from homehub.core import settings
from homehub.main import create_app
from homehub.services.log_service import flush_logs
from homehub.services.plugins import demo_data
from homehub.storage.hub_storage import HubStorage

DEMO = {"X-Demo-Mode": "true"}


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        tmp = Path(self._tmp.name)
        self._log_patch = patch.object(settings, "HUB_LOG_PATH", tmp / "logs" / "operations.jsonl")
        self._log_patch.start()

        self.app = create_app(storage=HubStorage(tmp / "hub.db"), start_cleanup=False)
        self.session_manager = self.app.state.session_manager
        self.client = TestClient(self.app)
        self.client.__enter__()

    def tearDown(self) -> None:
        self.client.__exit__(None, None, None)
        self._log_patch.stop()
        self._tmp.cleanup()

    def bearer(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}


class TestAuthApi(ApiTestCase):
    def test_health(self) -> None:
        resp = self.client.get("/health")
        self.assertEqual(200, resp.status_code)
        self.assertEqual(["hue", "hive", "spotify"], resp.json()["services"])
        self.assertFalse(resp.json()["session_cleanup_running"])

    def test_session_for_unpaired_bridge(self) -> None:
        resp = self.client.post("/v2/auth/session", json={"bridge_ip": "192.168.1.100"})
        self.assertEqual(404, resp.status_code)
        body = resp.json()
        self.assertEqual("missing_credentials", body["error"])
        self.assertTrue(body["requires_pairing"])
        self.assertIn("suggestion", body)

    def test_two_clients_share_one_pairing(self) -> None:
        self.session_manager.store_credentials("192.168.1.100", "abc123")

        first = self.client.post("/v2/auth/session", json={"bridge_ip": "192.168.1.100"}).json()
        second = self.client.post("/v2/auth/session", json={"bridge_ip": "192.168.1.100"}).json()
        self.assertNotEqual(first["session_token"], second["session_token"])
        self.assertEqual(self.session_manager.expires_in_sec, first["expires_in"])

        info = self.client.get("/v2/auth/session", headers=self.bearer(first["session_token"]))
        self.assertEqual(200, info.status_code)
        self.assertEqual({"bridge_ip": "192.168.1.100", "auth_method": "session"}, {k: info.json()[k] for k in ("bridge_ip", "auth_method")})

        revoked = self.client.delete("/v2/auth/session", headers=self.bearer(first["session_token"]))
        self.assertEqual({"success": True}, revoked.json())

        gone = self.client.get("/v2/auth/session", headers=self.bearer(first["session_token"]))
        self.assertEqual(401, gone.status_code)
        self.assertEqual("invalid_session", gone.json()["error"])

        still = self.client.get("/v2/auth/session", headers=self.bearer(second["session_token"]))
        self.assertEqual(200, still.status_code)
        self.assertTrue(self.session_manager.has_credentials("192.168.1.100"))

    def test_refresh_replaces_token(self) -> None:
        self.session_manager.store_credentials("192.168.1.100", "abc123")
        token = self.client.post("/v2/auth/session", json={"bridge_ip": "192.168.1.100"}).json()["session_token"]
        renewed = self.client.post("/v2/auth/refresh", headers=self.bearer(token)).json()["session_token"]
        self.assertNotEqual(token, renewed)
        self.assertEqual(401, self.client.get("/v2/auth/session", headers=self.bearer(token)).status_code)
        self.assertEqual(200, self.client.get("/v2/auth/session", headers=self.bearer(renewed)).status_code)

    def test_missing_or_malformed_token(self) -> None:
        self.assertEqual(401, self.client.get("/v2/auth/session").status_code)
        self.assertEqual(401, self.client.get("/v2/auth/session", headers={"Authorization": "Token abc"}).status_code)

    def test_bridge_status_and_stats(self) -> None:
        self.session_manager.store_credentials("192.168.1.100", "abc123")
        self.client.post("/v2/auth/session", json={"bridge_ip": "192.168.1.100"})
        status = self.client.get("/v2/auth/bridge-status", params={"bridge_ip": "192.168.1.100"}).json()
        self.assertTrue(status["has_credentials"])
        stats = self.client.get("/v2/auth/stats").json()
        self.assertEqual(1, stats["active_sessions"])
        self.assertEqual(1, stats["stored_endpoints"])

    def test_demo_mode_bypasses_sessions(self) -> None:
        created = self.client.post("/v2/auth/session", json={"bridge_ip": "anything"}, headers=DEMO).json()
        self.assertEqual("demo-session", created["session_token"])
        self.assertEqual(settings.HUB_DEMO_BRIDGE_IP, created["bridge_ip"])

        info = self.client.get("/v2/auth/session", headers=DEMO).json()
        self.assertEqual("demo", info["auth_method"])
        self.assertEqual(0, self.session_manager.get_stats()["active_sessions"])


class TestHomeApi(ApiTestCase):
    def test_home_requires_session(self) -> None:
        resp = self.client.get("/v2/home")
        self.assertEqual(401, resp.status_code)
        self.assertEqual("invalid_session", resp.json()["error"])

    def test_demo_home(self) -> None:
        resp = self.client.get("/v2/home", headers=DEMO)
        self.assertEqual(200, resp.status_code)
        home = resp.json()
        self.assertEqual(["home-room-1", "home-room-2", "home-room-3"], [r["id"] for r in home["rooms"]])
        self.assertEqual(12, home["summary"]["total_lights"])
        # Spotify demo speakers only, Hive demo starts logged out.
        self.assertEqual(2, home["summary"]["home_device_count"])

        room = self.client.get("/v2/home/rooms/home-room-2", headers=DEMO).json()
        self.assertEqual("Kitchen", room["name"])
        self.assertEqual(404, self.client.get("/v2/home/rooms/home-nowhere", headers=DEMO).status_code)

    def test_real_home_with_session_is_empty_until_connected(self) -> None:
        self.session_manager.store_credentials("192.168.1.100", "abc123")
        token = self.client.post("/v2/auth/session", json={"bridge_ip": "192.168.1.100"}).json()["session_token"]
        # The stored credential makes Hue look connected; keep the test offline.
        self.app.state.registry.unregister("hue")
        home = self.client.get("/v2/home", headers=self.bearer(token)).json()
        self.assertEqual(0, home["summary"]["room_count"])

    def test_device_update_and_scene(self) -> None:
        resp = self.client.put("/v2/home/devices/hue:light-6", json={"on": True, "brightness": 30}, headers=DEMO)
        self.assertEqual(200, resp.status_code)
        self.assertEqual("hue:light-6", resp.json()["device_id"])

        devices = self.client.get("/v2/home/devices", headers=DEMO).json()["devices"]
        light = next(d for d in devices if d["id"] == "hue:light-6")
        self.assertEqual({"on": True, "brightness": 30}, light["state"])

        self.assertEqual(200, self.client.post("/v2/home/scenes/hue:scene-1/activate", headers=DEMO).status_code)
        self.assertEqual(404, self.client.post("/v2/home/scenes/hue:scene-99/activate", headers=DEMO).status_code)

    def test_device_update_errors(self) -> None:
        unknown = self.client.put("/v2/home/devices/nest:thermo", json={"on": True}, headers=DEMO)
        self.assertEqual(404, unknown.status_code)
        self.assertEqual("service_unavailable", unknown.json()["error"])

        malformed = self.client.put("/v2/home/devices/light-6", json={"on": True}, headers=DEMO)
        self.assertEqual(400, malformed.status_code)
        self.assertEqual("validation_error", malformed.json()["error"])

        out_of_range = self.client.put("/v2/home/devices/hue:light-6", json={"brightness": 150}, headers=DEMO)
        self.assertEqual(422, out_of_range.status_code)

    def test_room_mapping_endpoints(self) -> None:
        self.client.get("/v2/home", headers=DEMO)

        merged = self.client.post(
            "/v2/home/rooms/merge",
            json={"service_room_keys": ["hue:room-2"], "target_home_room_id": "home-room-1"},
            headers=DEMO,
        )
        self.assertEqual(200, merged.status_code)
        self.assertEqual(
            [{"service_id": "hue", "room_id": "room-1"}, {"service_id": "hue", "room_id": "room-2"}],
            merged.json()["members"],
        )

        renamed = self.client.put("/v2/home/rooms/home-room-1/name", json={"name": "Open Plan"}, headers=DEMO)
        self.assertEqual(200, renamed.status_code)

        home = self.client.get("/v2/home", headers=DEMO).json()
        self.assertEqual(["home-room-1", "home-room-3"], [r["id"] for r in home["rooms"]])
        self.assertEqual("Open Plan", home["rooms"][0]["name"])
        self.assertEqual(9, home["rooms"][0]["stats"]["total_devices"])

        members = self.client.get("/v2/home/rooms/home-room-1/members", headers=DEMO).json()
        self.assertEqual("Open Plan", members["name"])

        self.assertEqual(200, self.client.delete("/v2/home/rooms/mappings/hue/room-2", headers=DEMO).status_code)
        self.assertEqual(404, self.client.delete("/v2/home/rooms/mappings/hue/room-2", headers=DEMO).status_code)
        self.assertEqual(404, self.client.put("/v2/home/rooms/home-nowhere/name", json={"name": "X"}, headers=DEMO).status_code)

    def test_merge_rejects_bad_keys(self) -> None:
        resp = self.client.post(
            "/v2/home/rooms/merge",
            json={"service_room_keys": ["room-2"], "target_home_room_id": "home-room-1"},
            headers=DEMO,
        )
        self.assertEqual(400, resp.status_code)


class TestServicesApi(ApiTestCase):
    def test_list_services(self) -> None:
        real = self.client.get("/v2/services").json()["services"]
        self.assertEqual(["hue", "hive", "spotify"], [s["id"] for s in real])
        self.assertFalse(any(s["connected"] for s in real))

        demo = self.client.get("/v2/services", headers=DEMO).json()["services"]
        self.assertEqual("Philips Hue (Demo)", demo[0]["display_name"])

    def test_unknown_service(self) -> None:
        resp = self.client.get("/v2/services/nest")
        self.assertEqual(404, resp.status_code)
        self.assertEqual("service_unavailable", resp.json()["error"])

    def test_status_requires_connection(self) -> None:
        resp = self.client.get("/v2/services/hive/status")
        self.assertEqual(401, resp.status_code)
        self.assertEqual("not_connected", resp.json()["error"])

    def test_hue_connect_requires_pairing(self) -> None:
        resp = self.client.post("/v2/services/hue/connect", json={"bridge_ip": "192.168.1.100"})
        self.assertEqual({"requires_pairing": True}, resp.json())

    def test_connect_failure_is_401(self) -> None:
        resp = self.client.post("/v2/services/hive/connect", json={"username": "a", "password": "b"})
        self.assertEqual(401, resp.status_code)

    def test_demo_hive_flow_through_plugin_routes(self) -> None:
        creds = demo_data.HIVE_DEMO_CREDENTIALS
        started = self.client.post(
            "/v2/services/hive/connect",
            json={"username": creds["username"], "password": creds["password"]},
            headers=DEMO,
        ).json()
        self.assertEqual({"requires_2fa": True, "session": "demo-2fa-session"}, started)

        bad = self.client.post("/v2/services/hive/verify-2fa", json={"code": "000000"}, headers=DEMO)
        self.assertEqual(401, bad.status_code)

        ok = self.client.post("/v2/services/hive/verify-2fa", json={"code": creds["code"]}, headers=DEMO)
        self.assertEqual({"success": True}, ok.json())

        status = self.client.get("/v2/services/hive/status", headers=DEMO).json()
        self.assertEqual(21.0, status["heating"]["target_temperature"])
        schedules = self.client.get("/v2/services/hive/schedules", headers=DEMO).json()
        self.assertEqual(3, len(schedules))

        # The real plugin is untouched by the demo login.
        self.assertEqual(401, self.client.get("/v2/services/hive/status").status_code)

        self.assertEqual({"success": True}, self.client.post("/v2/services/hive/reset-demo", headers=DEMO).json())
        self.assertEqual(401, self.client.get("/v2/services/hive/status", headers=DEMO).status_code)

    def test_demo_only_routes_are_absent_for_real_plugins(self) -> None:
        self.assertEqual(404, self.client.post("/v2/services/hive/reset-demo").status_code)

    def test_spotify_playback_route(self) -> None:
        playback = self.client.get("/v2/services/spotify/playback", headers=DEMO).json()
        self.assertFalse(playback["is_playing"])
        self.client.post("/v2/services/spotify/playback", json={"action": "play"}, headers=DEMO)
        self.assertTrue(self.client.get("/v2/services/spotify/playback", headers=DEMO).json()["is_playing"])

    def test_hue_pair_route_demo(self) -> None:
        resp = self.client.post("/v2/services/hue/pair", headers=DEMO)
        self.assertEqual(200, resp.status_code)
        self.assertEqual(settings.HUB_DEMO_USERNAME, resp.json()["username"])

    def test_disconnect(self) -> None:
        self.assertEqual({"success": True}, self.client.post("/v2/services/spotify/disconnect", headers=DEMO).json())
        self.assertEqual(401, self.client.get("/v2/services/spotify/status", headers=DEMO).status_code)

    def test_hue_disconnect_reports_disconnected(self) -> None:
        self.session_manager.store_credentials("192.168.1.100", "abc123")
        connected = self.client.post("/v2/services/hue/connect", json={"bridge_ip": "192.168.1.100"})
        self.assertEqual(200, connected.status_code)
        self.assertTrue(self.client.get("/v2/services/hue").json()["connected"])

        self.assertEqual({"success": True}, self.client.post("/v2/services/hue/disconnect").json())
        status = self.client.get("/v2/services/hue").json()
        self.assertFalse(status["connected"])
        self.assertEqual(401, self.client.get("/v2/services/hue/status").status_code)
        self.assertTrue(self.session_manager.has_credentials("192.168.1.100"))

        token = self.client.post("/v2/auth/session", json={"bridge_ip": "192.168.1.100"}).json()["session_token"]
        home = self.client.get("/v2/home", headers=self.bearer(token)).json()
        self.assertEqual(0, home["summary"]["room_count"])


class TestSettingsApi(ApiTestCase):
    def session_token(self) -> str:
        self.session_manager.store_credentials("192.168.1.100", "abc123")
        return self.client.post("/v2/auth/session", json={"bridge_ip": "192.168.1.100"}).json()["session_token"]

    def test_settings_require_session(self) -> None:
        self.assertEqual(401, self.client.get("/v2/settings").status_code)

    def test_settings_follow_the_session(self) -> None:
        token = self.session_token()
        other = self.session_token()
        self.assertEqual({"location": None, "units": "celsius"}, self.client.get("/v2/settings", headers=self.bearer(token)).json())

        updated = self.client.put("/v2/settings", json={"units": "fahrenheit"}, headers=self.bearer(token))
        self.assertEqual("fahrenheit", updated.json()["units"])
        located = self.client.put("/v2/settings/location", json={"lat": 52.52, "lon": 13.405, "name": "Berlin"}, headers=self.bearer(token))
        self.assertEqual({"lat": 52.52, "lon": 13.405, "name": "Berlin"}, located.json()["location"])
        self.assertEqual("celsius", self.client.get("/v2/settings", headers=self.bearer(other)).json()["units"])

        self.assertEqual({"success": True}, self.client.delete("/v2/settings/location", headers=self.bearer(token)).json())
        self.assertIsNone(self.client.get("/v2/settings", headers=self.bearer(token)).json()["location"])

        self.assertEqual(1, self.app.state.settings_service.session_count())
        self.client.delete("/v2/auth/session", headers=self.bearer(token))
        self.assertEqual(0, self.app.state.settings_service.session_count())

    def test_invalid_settings(self) -> None:
        token = self.session_token()
        self.assertEqual(422, self.client.put("/v2/settings", json={"units": "kelvin"}, headers=self.bearer(token)).status_code)
        self.assertEqual(422, self.client.put("/v2/settings/location", json={"lat": 91, "lon": 0}, headers=self.bearer(token)).status_code)

    def test_demo_settings(self) -> None:
        current = self.client.get("/v2/settings", headers=DEMO).json()
        self.assertEqual("London", current["location"]["name"])


class TestAutomationsApi(ApiTestCase):
    def test_automations_require_session(self) -> None:
        self.assertEqual(401, self.client.get("/v2/automations").status_code)

    def test_demo_automations(self) -> None:
        automations = self.client.get("/v2/automations", headers=DEMO).json()["automations"]
        self.assertEqual(["hue:smart-scene-1", "hue:smart-scene-2"], [a["id"] for a in automations])

        triggered = self.client.post("/v2/automations/hue:smart-scene-1/trigger", headers=DEMO)
        self.assertEqual({"success": True, "automation_id": "hue:smart-scene-1"}, triggered.json())
        automations = self.client.get("/v2/automations", headers=DEMO).json()["automations"]
        self.assertTrue(automations[0]["active"])

        missing = self.client.post("/v2/automations/hue:smart-scene-99/trigger", headers=DEMO)
        self.assertEqual(404, missing.status_code)
        self.assertEqual("resource_not_found", missing.json()["error"])


class TestLogsApi(ApiTestCase):
    def test_requests_are_logged(self) -> None:
        self.client.get("/health", headers=DEMO)
        flush_logs(timeout_sec=2.0)
        logs = self.client.get("/v2/logs/recent", params={"event_type": "http_request"}).json()["logs"]
        health = [item for item in logs if item["path"] == "/health"]
        self.assertTrue(health)
        self.assertTrue(health[0]["demo_mode"])


if __name__ == "__main__":
    unittest.main()
