"""
HTTP API tests.

The app is built with the factory and driven through `TestClient` as a context
manager so the lifespan opens storage and wires the service container.
"""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from healthbridge.api import create_app
from healthbridge.config import AppConfig


@pytest.fixture
def client(app_config: AppConfig, clock) -> Iterator[TestClient]:
    with TestClient(create_app(app_config, clock=clock)) as test_client:
        yield test_client


def reading_body(value: object, vital_type: str = "heartRate", **extra: object) -> dict:
    return {"userId": "u1", "vitalSign": {"type": vital_type, "value": value, "unit": "bpm"}, **extra}


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["channels"] == ["chat", "broadAlert"]


class TestDeviceReadings:
    def test_normal_reading(self, client: TestClient, clock) -> None:
        response = client.post("/device-reading", json=reading_body(72))

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["thresholdExceeded"] is False
        assert data["severity"] == "normal"
        assert data["alertSent"] is False
        assert data["vitalSign"]["timestamp"] == clock.now

    def test_breach_sends_alert(self, client: TestClient) -> None:
        response = client.post("/device-reading", json=reading_body(130, phoneNumber="+1555"))

        data = response.json()
        assert data["thresholdExceeded"] is True
        assert data["severity"] == "critical"
        assert data["alertSent"] is True
        assert data["alertId"] == "emergency-1"

        alerts = client.get("/emergency", params={"userId": "u1"}).json()["alerts"]
        assert [a["id"] for a in alerts] == ["emergency-1"]
        assert alerts[0]["triggerMethod"] == "threshold"

    @pytest.mark.parametrize(
        "body",
        [
            {"vitalSign": {"type": "heartRate", "value": 70}},
            {"userId": "u1"},
            {"userId": "u1", "vitalSign": {"type": "heartRate"}},
            {"userId": "u1", "vitalSign": {"type": "bloodPressure", "value": "abc"}},
        ],
    )
    def test_malformed_reading_is_400(self, client: TestClient, body: dict) -> None:
        response = client.post("/device-reading", json=body)
        assert response.status_code == 400
        assert "error" in response.json()

    def test_history(self, client: TestClient, clock) -> None:
        for value in (70, 72):
            clock.advance_minutes(1)
            client.post("/device-reading", json=reading_body(value))
        clock.advance_minutes(1)
        client.post("/device-reading", json=reading_body("120/80", "bloodPressure"))

        data = client.get("/device-reading", params={"userId": "u1", "type": "heartRate"}).json()

        assert data["userId"] == "u1"
        assert [r["value"] for r in data["vitalSigns"]] == [72, 70]
        assert {t["type"] for t in data["thresholds"]} >= {"heartRate", "bloodPressure"}

        latest = client.get("/device-reading", params={"userId": "u1", "limit": 1}).json()
        assert latest["vitalSigns"][0]["value"] == "120/80"

    def test_history_requires_user(self, client: TestClient) -> None:
        response = client.get("/device-reading")
        assert response.status_code == 400
        assert response.json() == {"error": "User ID is required"}

    def test_history_for_unknown_user_is_404(self, client: TestClient) -> None:
        response = client.get("/device-reading", params={"userId": "nobody"})
        assert response.status_code == 404
        assert response.json() == {"error": "User health profile not found"}


class TestEmergency:
    def test_manual_emergency(self, client: TestClient) -> None:
        response = client.post("/emergency", json={"phoneNumber": "+1555"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["alert"]["level"] == "urgent"
        assert data["alert"]["message"] == "Emergency alert triggered"
        assert data["channelsDelivered"] == {"chat": True, "broadAlert": True}
        assert data["emergencyServicesNotified"] is False

    def test_voice_emergency_with_location_and_vitals(self, client: TestClient) -> None:
        response = client.post(
            "/emergency",
            json={
                "phoneNumber": "+1555",
                "triggerMethod": "voice",
                "voiceCommand": "I can't breathe",
                "location": {"lat": 40.7, "long": -74.0},
                "vitalSigns": {"heartRate": 140},
            },
        )

        data = response.json()
        assert data["alert"]["level"] == "critical"
        assert data["alert"]["triggerDetails"]["voiceCommand"] == "I can't breathe"
        assert data["emergencyServicesNotified"] is True

    def test_missing_phone_is_400(self, client: TestClient) -> None:
        response = client.post("/emergency", json={"message": "help"})
        assert response.status_code == 400
        assert response.json() == {"error": "Phone number is required"}

    def test_unrecognized_voice_command_is_400(self, client: TestClient) -> None:
        response = client.post(
            "/emergency",
            json={"phoneNumber": "+1555", "triggerMethod": "voice", "voiceCommand": "order pizza"},
        )

        assert response.status_code == 400
        assert response.json() == {
            "error": "Voice command not recognized as emergency",
            "command": "order pizza",
        }
        assert client.get("/emergency").json()["alerts"] == []


class TestHealthAlerts:
    def test_create_list_and_acknowledge(self, client: TestClient) -> None:
        created = client.post(
            "/alerts", json={"phoneNumber": "+1555", "message": "Take your pills", "priority": "high"}
        ).json()["alert"]
        assert created["id"] == "alert-1"
        assert created["acknowledged"] is False

        first = client.patch("/alerts", json={"alertId": "alert-1", "acknowledged": True})
        second = client.patch("/alerts", json={"alertId": "alert-1", "acknowledged": True})
        assert first.status_code == second.status_code == 200
        assert second.json()["alert"]["acknowledged"] is True

        alerts = client.get("/alerts", params={"phoneNumber": "+1555"}).json()["alerts"]
        assert [a["acknowledged"] for a in alerts] == [True]

    def test_create_requires_phone_and_message(self, client: TestClient) -> None:
        response = client.post("/alerts", json={"message": "hello"})
        assert response.status_code == 400
        assert response.json() == {"error": "Phone number and message are required"}

    def test_acknowledge_unknown_alert(self, client: TestClient) -> None:
        client.post("/alerts", json={"phoneNumber": "+1555", "message": "hello"})

        response = client.patch("/alerts", json={"alertId": "alert-42", "acknowledged": True})

        assert response.status_code == 404
        assert response.json() == {"error": "Alert not found"}
        assert [a["acknowledged"] for a in client.get("/alerts").json()["alerts"]] == [False]

    def test_acknowledge_requires_id(self, client: TestClient) -> None:
        response = client.patch("/alerts", json={"acknowledged": True})
        assert response.status_code == 400
        assert response.json() == {"error": "Alert ID is required"}


class TestUserSettings:
    def test_thresholds_default_then_replace(self, client: TestClient) -> None:
        defaults = client.get("/users/u1/thresholds").json()["thresholds"]
        assert len(defaults) == 5

        response = client.put(
            "/users/u1/thresholds",
            json={"thresholds": [{"type": "heartRate", "min": 50, "max": 100}]},
        )
        assert response.status_code == 200

        # 105 breaches the custom bound but not the default one
        outcome = client.post("/device-reading", json=reading_body(105)).json()
        assert outcome["thresholdExceeded"] is True

    def test_duplicate_thresholds_are_rejected(self, client: TestClient) -> None:
        response = client.put(
            "/users/u1/thresholds",
            json={"thresholds": [{"type": "heartRate", "max": 100}, {"type": "heartRate", "max": 90}]},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Duplicate threshold for heartRate"}

    def test_contacts(self, client: TestClient) -> None:
        assert client.get("/users/u1/contacts").json()["contacts"] == []

        client.post(
            "/users/u1/contacts",
            json={"name": "Dr. Lee", "phoneNumber": "+1777", "type": "doctor"},
        )
        contacts = client.get("/users/u1/contacts").json()["contacts"]

        assert contacts == [
            {
                "type": "doctor",
                "name": "Dr. Lee",
                "phoneNumber": "+1777",
                "email": None,
                "notificationPreference": "all",
            }
        ]

        outcome = client.post("/device-reading", json=reading_body(30)).json()
        assert outcome["alertSent"] is True


class TestChat:
    def test_chat_reply(self, client: TestClient) -> None:
        response = client.post("/chat", json={"from": "+1555", "message": "I have chest pain"})

        data = response.json()
        assert data["success"] is True
        assert data["from"] == "+1555"
        assert data["response"]["type"] == "triage"
        assert "actions" not in data["response"]

    def test_chat_requires_sender(self, client: TestClient) -> None:
        response = client.post("/chat", json={"message": "hi"})
        assert response.status_code == 400


class TestUnexpectedErrors:
    def test_unhandled_error_is_generic_500(self, app_config: AppConfig, clock) -> None:
        with TestClient(create_app(app_config, clock=clock), raise_server_exceptions=False) as client:

            def explode(sender: str, message: str) -> None:
                raise RuntimeError("responder crashed")

            client.app.state.services.chat_responder.respond = explode
            response = client.post("/chat", json={"from": "+1555", "message": "hi"})

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
