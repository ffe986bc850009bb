"""
Tests for the HTTP endpoints.
"""

import pendulum
import pytest
from fastapi.testclient import TestClient

from slotfinder.adapters.google_calendar_client import GoogleCalendarClient
from slotfinder.adapters.mock_calendar_client import MockCalendarClient
from slotfinder.api.server import create_app
from slotfinder.config import AppConfig
from slotfinder.domain.exceptions import AuthenticationError, TokenRefreshError, UpstreamFetchError
from slotfinder.domain.models import TimeRange

TZ = "America/Chicago"
CALENDAR = "team@example.com"
NOW = pendulum.parse("2024-11-12T14:00:00Z")  # 08:00 in Chicago
DAY = {"from": "2024-11-12T06:00:00Z", "to": "2024-11-13T06:00:00Z"}


class FailingCalendarClient(MockCalendarClient):
    def get_busy(self, calendar_id, start_time, end_time, timezone):
        raise UpstreamFetchError("Failed to fetch free/busy from Google Calendar: read timed out")


class FailingAuthenticator:
    def __init__(self, error: Exception):
        self.error = error

    def get_access_token(self, force_refresh: bool = False) -> str:
        raise self.error


def _config(**overrides) -> AppConfig:
    data = {"calendar_id": CALENDAR, "timezone": TZ, "defaults": {"lead_minutes": 0}}
    data.update(overrides)
    return AppConfig(**data)


def _client(config=None, calendar=None) -> TestClient:
    calendar = calendar if calendar is not None else MockCalendarClient(events=[])
    app = create_app(config or _config(), calendar, clock=lambda: NOW)
    return TestClient(app)


def test_health():
    response = _client().get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


class TestFreeSlots:

    def test_custom_window(self):
        response = _client().get("/free-slots", params={**DAY, "limit": 3})

        assert response.status_code == 200
        data = response.json()
        assert [slot["start"] for slot in data["slots"]] == [
            "2024-11-12T15:00:00Z",
            "2024-11-12T15:30:00Z",
            "2024-11-12T16:00:00Z",
        ]
        assert data["slots"][0]["end"] == "2024-11-12T15:30:00Z"
        assert data["slots"][0]["label"] == "Tuesday, November 12, 9:00 AM (America/Chicago)"
        assert data["tz"] == TZ
        assert data["durationMin"] == 30
        assert data["window"] == {
            "fromISO": "2024-11-12T06:00:00Z",
            "toISO": "2024-11-13T06:00:00Z",
            "range": "custom",
        }

    def test_epoch_millis_bounds(self):
        response = _client().get(
            "/free-slots",
            params={"from": "1731391200000", "to": "1731477600000", "duration": 60},
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data["slots"]) == 8
        assert data["window"]["fromISO"] == "2024-11-12T06:00:00Z"

    def test_busy_times_are_excluded(self):
        calendar = MockCalendarClient(
            events=[],
            busy={
                CALENDAR: [
                    TimeRange(
                        start=pendulum.parse("2024-11-12 10:00", tz=TZ),
                        end=pendulum.parse("2024-11-12 11:00", tz=TZ),
                    )
                ]
            },
        )

        response = _client(calendar=calendar).get("/free-slots", params={**DAY, "duration": 60})

        starts = [slot["start"] for slot in response.json()["slots"]]
        assert "2024-11-12T16:00:00Z" not in starts
        assert len(starts) == 7
        assert calendar.busy_queries[0]["calendar_id"] == CALENDAR

    def test_default_range_is_month(self):
        response = _client().get("/free-slots", params={"limit": 1})

        assert response.status_code == 200
        data = response.json()
        assert data["window"]["range"] == "month"
        assert data["window"]["fromISO"] == "2024-11-12T06:00:00Z"
        assert data["slots"][0]["start"] == "2024-11-12T15:00:00Z"

    def test_limit_is_capped(self):
        config = _config(defaults={"lead_minutes": 0, "max_limit": 2})

        response = _client(config=config).get("/free-slots", params={**DAY, "limit": 50})

        assert len(response.json()["slots"]) == 2

    def test_timezone_parameter(self):
        response = _client().get(
            "/free-slots",
            params={"from": "2024-11-12T23:00:00Z", "to": "2024-11-13T23:00:00Z", "tz": "Europe/Berlin", "limit": 1},
        )

        assert response.status_code == 200
        assert response.json()["slots"][0]["start"] == "2024-11-13T08:00:00Z"

    @pytest.mark.parametrize(
        "params",
        [
            {"from": "2024-11-13T06:00:00Z", "to": "2024-11-12T06:00:00Z"},
            {**DAY, "duration": 0},
            {**DAY, "limit": -1},
            {**DAY, "tz": "Mars/Olympus_Mons"},
            {"range": "quarter"},
            {"range": "custom", "from": "2024-11-12T06:00:00Z"},
            {"from": "yesterday", "to": "2024-11-12T06:00:00Z"},
            {**DAY, "duration": "abc"},
            {**DAY, "limit": "ten"},
            {**DAY, "range": "week"},
        ],
    )
    def test_validation_errors(self, params):
        calendar = MockCalendarClient(events=[])

        response = _client(calendar=calendar).get("/free-slots", params=params)

        assert response.status_code == 400
        assert response.json()["retryable"] is False
        assert calendar.busy_queries == []

    def test_missing_calendar(self):
        calendar = MockCalendarClient(events=[])
        config = _config(calendar_id=None)

        response = _client(config=config, calendar=calendar).get("/free-slots", params=DAY)

        assert response.status_code == 400
        assert "calendarId" in response.json()["error"]
        assert calendar.busy_queries == []

    def test_upstream_failure_is_retryable(self):
        response = _client(calendar=FailingCalendarClient(events=[])).get("/free-slots", params=DAY)

        assert response.status_code == 502
        assert response.json()["retryable"] is True

    def test_unreachable_token_endpoint_is_retryable(self):
        calendar = GoogleCalendarClient(authenticator=FailingAuthenticator(TokenRefreshError("token endpoint timed out")))

        response = _client(calendar=calendar).get("/free-slots", params={"range": "week"})

        assert response.status_code == 502
        assert response.json()["retryable"] is True

    def test_rejected_credentials_are_not_retryable(self):
        calendar = GoogleCalendarClient(authenticator=FailingAuthenticator(AuthenticationError("invalid_grant")))

        response = _client(calendar=calendar).get("/free-slots", params={"range": "week"})

        assert response.status_code == 500
        assert response.json() == {"error": "invalid_grant", "retryable": False}

    def test_non_integer_duration_uses_error_envelope(self):
        response = _client().get("/free-slots", params={**DAY, "duration": "abc"})

        assert response.status_code == 400
        body = response.json()
        assert set(body) == {"error", "retryable"}
        assert body["error"].startswith("duration:")


class TestApiSecret:

    def test_missing_key_is_rejected(self):
        client = _client(config=_config(api_secret="s3cret"))

        response = client.get("/free-slots", params=DAY)

        assert response.status_code == 401
        assert response.json() == {"error": "unauthorized"}

    def test_matching_key_is_accepted(self):
        client = _client(config=_config(api_secret="s3cret"))

        response = client.get("/free-slots", params=DAY, headers={"x-api-key": "s3cret"})

        assert response.status_code == 200

    def test_health_is_open(self):
        client = _client(config=_config(api_secret="s3cret"))

        assert client.get("/health").status_code == 200

    def test_book_requires_key(self):
        client = _client(config=_config(api_secret="s3cret"))

        response = client.post("/book", json={"start": DAY["from"], "end": DAY["to"]})

        assert response.status_code == 401


class TestBook:

    def test_book_creates_event(self):
        calendar = MockCalendarClient(events=[])

        response = _client(calendar=calendar).post(
            "/book",
            json={
                "start": "2024-11-12T15:00:00Z",
                "end": 1731425400000,
                "attendees": ["guest@example.com"],
                "description": "Intro call",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["event"]["summary"] == "Consultation"
        assert body["event"]["end"] == {"dateTime": "2024-11-12T15:30:00Z", "timeZone": TZ}
        assert calendar.created_events[0]["attendees"] == [{"email": "guest@example.com"}]

    def test_book_requires_start_and_end(self):
        response = _client().post("/book", json={"start": "2024-11-12T15:00:00Z"})

        assert response.status_code == 400
        assert response.json()["error"] == "calendarId, start, end are required"

    def test_book_rejects_inverted_times(self):
        response = _client().post(
            "/book",
            json={"start": "2024-11-12T16:00:00Z", "end": "2024-11-12T15:00:00Z"},
        )

        assert response.status_code == 400

    def test_book_rejects_malformed_body(self):
        response = _client().post(
            "/book",
            json={"start": "2024-11-12T15:00:00Z", "end": "2024-11-12T15:30:00Z", "attendees": 5},
        )

        assert response.status_code == 400
        assert response.json()["retryable"] is False
