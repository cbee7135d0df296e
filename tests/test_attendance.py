import json

import pytest

from campus_events.main import create_app
from campus_events.services.qr_codes import CheckInCodec


@pytest.fixture
def event_with_attendees(create_event, register):
    event = create_event()
    tokens = {}
    for user in ("alice", "bob"):
        tokens[user] = register(event["id"], user).json["qrCode"]["qrCodeData"]
    return event, tokens


def test_attendance_list_with_stats(client, headers, event_with_attendees):
    event, _ = event_with_attendees
    response = client.get(f"/events/{event['id']}/attendance", headers=headers())
    assert response.status_code == 200
    assert response.json["event"]["id"] == event["id"]
    assert [a["userId"] for a in response.json["attendees"]] == ["alice", "bob"]
    assert all(a["attended"] is False for a in response.json["attendees"])
    assert response.json["stats"] == {
        "totalRegistered": 2,
        "totalAttended": 0,
        "attendanceRate": 0,
    }


def test_attendance_stats_without_registrants(client, headers, create_event):
    event = create_event()
    response = client.get(f"/events/{event['id']}/attendance", headers=headers())
    assert response.json["stats"] == {
        "totalRegistered": 0,
        "totalAttended": 0,
        "attendanceRate": 0,
    }


def test_attendance_is_organizer_only(client, headers, event_with_attendees):
    event, tokens = event_with_attendees
    url = f"/events/{event['id']}"

    assert client.get(f"{url}/attendance", headers=headers("alice")).status_code == 403
    response = client.post(
        f"{url}/attendance",
        json={"userId": "bob", "attended": True},
        headers=headers("alice"),
    )
    assert response.status_code == 403
    response = client.post(
        f"{url}/attendance/qr", json={"qrData": tokens["bob"]}, headers=headers("alice")
    )
    assert response.status_code == 403

    admin = client.get(f"{url}/attendance", headers=headers("staff", "admin"))
    assert admin.status_code == 200


def test_mark_one_restamps_and_toggles(client, headers, event_with_attendees):
    event, _ = event_with_attendees
    url = f"/events/{event['id']}/attendance"

    first = client.post(url, json={"userId": "alice", "attended": True}, headers=headers())
    assert first.status_code == 200
    assert first.json["attendee"]["attended"] is True
    assert first.json["attendee"]["attendedAt"] is not None

    second = client.post(url, json={"userId": "alice", "attended": True}, headers=headers())
    assert second.status_code == 200
    assert second.json["attendee"]["attended"] is True
    assert second.json["stats"]["totalAttended"] == 1
    assert second.json["stats"]["attendanceRate"] == 0.5

    absent = client.post(url, json={"userId": "alice", "attended": False}, headers=headers())
    assert absent.json["attendee"]["attended"] is False
    assert absent.json["attendee"]["attendedAt"] is None


def test_mark_one_validation_and_unknown_attendee(client, headers, event_with_attendees):
    event, _ = event_with_attendees
    url = f"/events/{event['id']}/attendance"

    response = client.post(url, json={"userId": "alice", "attended": "yes"}, headers=headers())
    assert response.status_code == 422
    assert "attended" in response.json["error"]["details"]

    response = client.post(url, json={"userId": "ghost", "attended": True}, headers=headers())
    assert response.status_code == 404
    assert response.json["error"]["reason"] == "attendee_not_found"


def test_bulk_partial_failure(client, headers, event_with_attendees):
    event, _ = event_with_attendees
    response = client.post(
        f"/events/{event['id']}/attendance/bulk",
        json={
            "attendanceData": [
                {"userId": "alice", "attended": True},
                {"userId": "ghost", "attended": True},
                {"userId": "bob", "attended": True},
            ]
        },
        headers=headers(),
    )
    assert response.status_code == 200
    assert [result["userId"] for result in response.json["results"]] == ["alice", "bob"]
    assert len(response.json["errors"]) == 1
    error = response.json["errors"][0]
    assert error["index"] == 1
    assert error["userId"] == "ghost"
    assert error["code"] == "attendee_not_found"
    assert response.json["stats"] == {
        "totalRegistered": 2,
        "totalAttended": 2,
        "attendanceRate": 1.0,
    }


def test_bulk_requires_list(client, headers, event_with_attendees):
    event, _ = event_with_attendees
    response = client.post(
        f"/events/{event['id']}/attendance/bulk",
        json={"attendanceData": {"userId": "alice"}},
        headers=headers(),
    )
    assert response.status_code == 422
    assert "attendanceData" in response.json["error"]["details"]


@pytest.mark.parametrize(
    "qr_data, message",
    [
        ("not json", "Invalid QR code format"),
        (json.dumps({"type": "ticket", "eventId": "1"}), "Invalid QR code type"),
    ],
)
def test_scan_rejects_bad_tokens(client, headers, event_with_attendees, qr_data, message):
    event, _ = event_with_attendees
    response = client.post(
        f"/events/{event['id']}/attendance/qr", json={"qrData": qr_data}, headers=headers()
    )
    assert response.status_code == 400
    assert response.json["error"]["message"] == message


def test_scan_rejects_token_for_other_event(client, headers, create_event, event_with_attendees):
    _, tokens = event_with_attendees
    other = create_event(title="Other")
    response = client.post(
        f"/events/{other['id']}/attendance/qr",
        json={"qrData": tokens["alice"]},
        headers=headers(),
    )
    assert response.status_code == 400
    assert response.json["error"]["message"] == "QR code is not for this event"


def test_scan_unknown_check_in_id(client, headers, event_with_attendees):
    event, tokens = event_with_attendees
    forged = json.loads(tokens["alice"])
    forged["qrCodeId"] = "00000000-0000-0000-0000-000000000000"
    response = client.post(
        f"/events/{event['id']}/attendance/qr",
        json={"qrData": json.dumps(forged)},
        headers=headers(),
    )
    assert response.status_code == 404
    assert response.json["error"]["message"] == "No registration matches this QR code"


def test_scan_after_cancellation_finds_no_registration(client, headers, event_with_attendees):
    event, tokens = event_with_attendees
    client.delete(f"/events/{event['id']}/register", headers=headers("bob"))
    response = client.post(
        f"/events/{event['id']}/attendance/qr",
        json={"qrData": tokens["bob"]},
        headers=headers(),
    )
    assert response.status_code == 404


def test_signed_tokens_are_verified(database_url, app):
    signed_app = create_app(
        {
            "TESTING": True,
            "DATABASE_URL": database_url,
            "CHECK_IN_CODEC": CheckInCodec(signing_secret="campus-secret"),
        }
    )
    organizer = {"X-User-Id": "organizer-1", "X-User-Name": "Olivia"}
    with signed_app.test_client() as client:
        payload = {
            "title": "Signed Event",
            "description": "Tokens carry a signature.",
            "location": "Lab",
            "startDate": "2099-01-01T10:00:00Z",
            "endDate": "2099-01-01T12:00:00Z",
            "category": "academic",
        }
        event = client.post("/events", json=payload, headers=organizer).json["event"]
        token = client.post(
            f"/events/{event['id']}/register", headers={"X-User-Id": "alice"}
        ).json["qrCode"]["qrCodeData"]
        assert "signature" in json.loads(token)

        tampered = json.loads(token)
        tampered["userName"] = "Mallory"
        rejected = client.post(
            f"/events/{event['id']}/attendance/qr",
            json={"qrData": json.dumps(tampered)},
            headers=organizer,
        )
        assert rejected.status_code == 400
        assert rejected.json["error"]["reason"] == "invalid_signature"

        accepted = client.post(
            f"/events/{event['id']}/attendance/qr", json={"qrData": token}, headers=organizer
        )
        assert accepted.status_code == 200


def test_stats_endpoint(client, headers, event_with_attendees):
    event, tokens = event_with_attendees
    client.post(
        f"/events/{event['id']}/attendance/qr", json={"qrData": tokens["bob"]}, headers=headers()
    )

    response = client.get(f"/events/{event['id']}/attendance/stats", headers=headers())
    assert response.status_code == 200
    assert response.json["stats"] == {
        "totalRegistered": 2,
        "totalAttended": 1,
        "attendanceRate": 0.5,
    }
    forbidden = client.get(f"/events/{event['id']}/attendance/stats", headers=headers("bob"))
    assert forbidden.status_code == 403
