from fastapi.testclient import TestClient

from tests.utils.auth import get_user_authentication_headers
from tests.utils.booking import RECEIVER_ID, SENDER_ID, booking_payload, create_random_booking

SENDER = get_user_authentication_headers(SENDER_ID)
RECEIVER = get_user_authentication_headers(RECEIVER_ID)
OUTSIDER = get_user_authentication_headers("user_outsider")
ADMIN = get_user_authentication_headers("user_admin", role="admin")


def _create(client: TestClient, **overrides) -> dict:
    response = client.post("/api/v1/bookings", headers=SENDER, json=booking_payload(**overrides))
    assert response.status_code == 201
    return response.json()


def _negotiate(client: TestClient, **overrides) -> dict:
    booking = _create(client, **overrides)
    response = client.post(f"/api/v1/bookings/{booking['id']}/accept", headers=RECEIVER)
    assert response.status_code == 200
    return response.json()


def _approve_both(client: TestClient, booking_id: str) -> dict:
    client.post(f"/api/v1/bookings/{booking_id}/approve", headers=SENDER)
    response = client.post(f"/api/v1/bookings/{booking_id}/approve", headers=RECEIVER)
    assert response.status_code == 200
    return response.json()


def test_health(client: TestClient):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_requires_authentication(client: TestClient):
    assert client.get("/api/v1/bookings").status_code == 401


def test_create_booking(client: TestClient):
    content = _create(client, coordinates={"latitude": 59.91, "longitude": 10.75})

    assert content["sender_id"] == SENDER_ID
    assert content["receiver_id"] == RECEIVER_ID
    assert content["status"] == "pending"
    assert content["approved_by_sender"] is False
    assert content["coordinates"] == {"latitude": 59.91, "longitude": 10.75}
    assert content["pricing_mode"] == "artist_fee"
    assert content["pricing_summary"] == "15000.00 NOK"


def test_create_booking_rejects_mixed_pricing(client: TestClient):
    payload = booking_payload(door_deal=True, by_agreement=True)
    response = client.post("/api/v1/bookings", headers=SENDER, json=payload)
    assert response.status_code == 422


def test_create_booking_with_self(client: TestClient):
    payload = booking_payload(receiver_id=SENDER_ID)
    response = client.post("/api/v1/bookings", headers=SENDER, json=payload)
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_list_and_get(client: TestClient):
    booking = _create(client)

    listed = client.get("/api/v1/bookings", headers=RECEIVER, params={"role": "receiver"})
    assert listed.status_code == 200
    assert [b["id"] for b in listed.json()] == [booking["id"]]

    assert client.get(f"/api/v1/bookings/{booking['id']}", headers=RECEIVER).status_code == 200
    assert client.get(f"/api/v1/bookings/{booking['id']}", headers=ADMIN).status_code == 200

    forbidden = client.get(f"/api/v1/bookings/{booking['id']}", headers=OUTSIDER)
    assert forbidden.status_code == 403
    assert forbidden.json()["code"] == "wrong_party"


def test_get_missing_booking(client: TestClient):
    response = client.get("/api/v1/bookings/bkg_missing", headers=SENDER)
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_sender_cannot_accept(client: TestClient):
    booking = _create(client)
    response = client.post(f"/api/v1/bookings/{booking['id']}/accept", headers=SENDER)
    assert response.status_code == 403


def test_field_update_on_pending_is_conflict(client: TestClient):
    booking = _create(client)
    response = client.patch(
        f"/api/v1/bookings/{booking['id']}/fields",
        headers=SENDER,
        json={"field_name": "venue", "value": "Blå"},
    )
    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "invalid_state"
    assert body["current_status"] == "pending"


def test_field_update(client: TestClient):
    booking = _negotiate(client)
    response = client.patch(
        f"/api/v1/bookings/{booking['id']}/fields",
        headers=RECEIVER,
        json={"field_name": "door_deal", "value": "true"},
    )
    assert response.status_code == 200
    assert response.json()["pricing_mode"] == "door_deal"
    assert response.json()["pricing_summary"] == "50% of door"


def test_invalid_field_value(client: TestClient):
    booking = _negotiate(client)
    response = client.patch(
        f"/api/v1/bookings/{booking['id']}/fields",
        headers=SENDER,
        json={"field_name": "audience_estimate", "value": "lots"},
    )
    assert response.status_code == 422
    assert response.json()["field_name"] == "audience_estimate"


def test_field_update_coordinates(client: TestClient):
    booking = _negotiate(client)
    response = client.patch(
        f"/api/v1/bookings/{booking['id']}/fields",
        headers=SENDER,
        json={"field_name": "coordinates", "value": '{"latitude": 59.9139, "longitude": 10.7522}'},
    )
    assert response.status_code == 200
    assert response.json()["coordinates"] == {"latitude": 59.9139, "longitude": 10.7522}


def test_create_rejects_amount_beyond_column_limit(client: TestClient):
    response = client.post("/api/v1/bookings", headers=SENDER, json=booking_payload(artist_fee="1e30"))
    assert response.status_code == 422


def test_proposals(client: TestClient):
    booking = _negotiate(client)
    url = f"/api/v1/bookings/{booking['id']}/proposals"

    created = client.post(url, headers=SENDER, json={"field_name": "venue", "old_value": "", "new_value": "Blå"})
    assert created.status_code == 201
    assert created.json()["new_value"] == "Blå"

    stale = client.post(url, headers=RECEIVER, json={"field_name": "venue", "old_value": "", "new_value": "Parkteatret"})
    assert stale.status_code == 409
    assert stale.json()["code"] == "stale_proposal"
    assert stale.json()["current_value"] == "Blå"

    history = client.get(url, headers=RECEIVER)
    assert history.status_code == 200
    assert len(history.json()) == 1

    acknowledged = client.post(f"{url}/acknowledge", headers=RECEIVER)
    assert acknowledged.json() == {"acknowledged": 1}


def test_full_negotiation_and_publication(client: TestClient, dispatcher):
    booking = _negotiate(client, title="Jazz Night")
    booking_id = booking["id"]

    client.post(
        f"/api/v1/bookings/{booking_id}/proposals",
        headers=SENDER,
        json={"field_name": "venue", "old_value": "", "new_value": "Blå"},
    )
    approved = _approve_both(client, booking_id)
    assert approved["status"] == "approved_by_both"

    published = client.post(f"/api/v1/bookings/{booking_id}/publish", headers=SENDER)
    assert published.status_code == 200
    public_id = published.json()["id"]

    public = client.get(f"/api/v1/public/events/{public_id}")
    assert public.status_code == 200
    content = public.json()
    assert content["title"] == "Jazz Night"
    assert content["venue"] == "Blå"
    for private in ("artist_fee", "sender_contact_info", "personal_message", "door_percentage"):
        assert private not in content

    listing = client.get("/api/v1/public/events")
    assert [e["id"] for e in listing.json()] == [public_id]

    cancelled = client.post(
        f"/api/v1/bookings/{booking_id}/cancel", headers=RECEIVER, json={"reason": "Illness"}
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["sender_contact_info"] is None
    assert cancelled.json()["venue"] == "Blå"
    assert client.get(f"/api/v1/public/events/{public_id}").status_code == 404

    event_types = [c.args[0].type for c in dispatcher.emit.call_args_list]
    assert "BookingApproved" in event_types
    assert "BookingPublished" in event_types
    assert "BookingCancelled" in event_types


def test_publish_before_approval(client: TestClient):
    booking = _negotiate(client)
    response = client.post(f"/api/v1/bookings/{booking['id']}/publish", headers=SENDER)
    assert response.status_code == 409


def test_unpublish(client: TestClient):
    booking = _negotiate(client)
    _approve_both(client, booking["id"])
    client.post(f"/api/v1/bookings/{booking['id']}/publish", headers=SENDER)

    response = client.post(f"/api/v1/bookings/{booking['id']}/unpublish", headers=RECEIVER)
    assert response.status_code == 200
    assert response.json()["is_public_after_approval"] is False
    assert response.json()["status"] == "approved_by_both"
    assert client.get("/api/v1/public/events").json() == []


def test_agreement_and_promotion(client: TestClient):
    booking = _negotiate(client)
    _approve_both(client, booking["id"])

    early = client.post(f"/api/v1/bookings/{booking['id']}/promote", headers=SENDER)
    assert early.status_code == 409

    client.post(f"/api/v1/bookings/{booking['id']}/acknowledge-agreement", headers=SENDER)
    response = client.post(f"/api/v1/bookings/{booking['id']}/acknowledge-agreement", headers=RECEIVER)
    assert response.json()["status"] == "upcoming"


def test_reject_pending(client: TestClient):
    booking = _create(client)

    response = client.post(f"/api/v1/bookings/{booking['id']}/reject", headers=RECEIVER)
    assert response.status_code == 204
    assert client.get(f"/api/v1/bookings/{booking['id']}", headers=SENDER).status_code == 404


def test_reject_after_accept_fails(client: TestClient):
    booking = _negotiate(client)
    response = client.post(f"/api/v1/bookings/{booking['id']}/reject", headers=SENDER)
    assert response.status_code == 409


def test_cancel_pending_fails(client: TestClient):
    booking = _create(client)
    response = client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=SENDER)
    assert response.status_code == 409


def test_attachments(client: TestClient):
    booking = _negotiate(client)
    url = f"/api/v1/bookings/{booking['id']}/attachments"

    created = client.post(
        url,
        headers=RECEIVER,
        json={"portfolio_file_id": "file_1", "file_url": "https://cdn.example.com/a.jpg"},
    )
    assert created.status_code == 201

    assert len(client.get(url, headers=SENDER).json()) == 1
    assert client.get(url, headers=OUTSIDER).status_code == 403

    deleted = client.delete(f"{url}/{created.json()['id']}", headers=RECEIVER)
    assert deleted.status_code == 204
    assert client.get(url, headers=SENDER).json() == []


def test_audit_log(client: TestClient):
    booking = _negotiate(client)
    response = client.get(f"/api/v1/bookings/{booking['id']}/audit-log", headers=SENDER)
    assert response.status_code == 200
    assert [entry["action"] for entry in response.json()] == ["create", "accept"]


def test_admin_purge(client: TestClient, db_session):
    booking_id = create_random_booking(db_session).id

    assert client.delete(f"/api/v1/admin/bookings/{booking_id}", headers=SENDER).status_code == 403

    response = client.delete(f"/api/v1/admin/bookings/{booking_id}", headers=ADMIN)
    assert response.status_code == 204

    again = client.delete(f"/api/v1/admin/bookings/{booking_id}", headers=ADMIN)
    assert again.status_code == 404


def test_internal_purge(client: TestClient, db_session):
    booking = create_random_booking(db_session)
    booking_id = booking.id

    unauthenticated = client.delete(f"/api/v1/admin/bookings/{booking_id}")
    assert unauthenticated.status_code == 401

    response = client.delete(
        f"/api/v1/admin/bookings/{booking_id}",
        headers={"X-Internal-Api-Key": "test-internal-key"},
    )
    assert response.status_code == 204
