import json
import logging
import time

import httpx
import pytest

from conftest import at, auth_header
from core.config import settings
from main import create_app
from models.user import Role
from services.payment_service import PaymentIntent, PaymentProvider, compute_signature, verify_signature

WEBHOOK_SECRET = "whsec_api"


class FakeProvider(PaymentProvider):
    async def create_payment_intent(self, amount_minor, currency, metadata):
        return PaymentIntent(id="pi_api", client_secret="pi_api_secret")

    def construct_event(self, payload, signature):
        verify_signature(payload, signature, WEBHOOK_SECRET)
        return json.loads(payload)


@pytest.fixture
async def client(database, seed):
    app = create_app(database=database, payment_provider=FakeProvider())
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http


def booking_body(seed, start=10, end=12):
    return {
        "nanny_user_id": seed.nanny_id,
        "start_time": at(start).isoformat(),
        "end_time": at(end).isoformat(),
        "children_count": 2,
    }


async def request_booking(client, seed, **kwargs):
    response = await client.post(
        "/api/v1/bookings", json=booking_body(seed, **kwargs), headers=auth_header(seed.parent_id, Role.PARENT)
    )
    assert response.status_code == 201, response.text
    return response.json()


async def set_status(client, seed, booking_id, status):
    return await client.patch(
        f"/api/v1/bookings/{booking_id}/status",
        json={"status": status},
        headers=auth_header(seed.nanny_id, Role.NANNY),
    )


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_missing_or_bad_token_is_unauthorized(client):
    assert (await client.get("/api/v1/bookings")).status_code == 401
    response = await client.get("/api/v1/bookings", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["success"] is False


async def test_booking_lifecycle_over_http(client, seed):
    booking = await request_booking(client, seed)
    assert booking["total_amount_nis"] == 120
    assert booking["status"] == "REQUESTED"
    assert booking["nanny"]["full_name"] == "Maya Katz"

    overlap = await client.post(
        "/api/v1/bookings", json=booking_body(seed, start=11, end=13), headers=auth_header(seed.other_parent_id, Role.PARENT)
    )
    assert overlap.status_code == 409
    assert overlap.json() == {"success": False, "message": "Nanny is not available for this time slot", "detail": None}

    assert (await set_status(client, seed, booking["id"], "ACCEPTED")).json()["status"] == "ACCEPTED"
    completed = await set_status(client, seed, booking["id"], "COMPLETED")
    assert completed.json()["status"] == "COMPLETED"

    earnings = await client.get("/api/v1/users/me/earnings", headers=auth_header(seed.nanny_id, Role.NANNY))
    assert earnings.status_code == 200
    assert earnings.json()["summary"] == {"total_earned": 102, "total_pending": 102, "total_jobs": 1}
    assert earnings.json()["earnings"][0]["booking"]["parent"]["full_name"] == "Dana Levi"


async def test_booking_validation_errors(client, seed):
    headers = auth_header(seed.parent_id, Role.PARENT)

    backwards = await client.post("/api/v1/bookings", json=booking_body(seed, start=12, end=10), headers=headers)
    assert backwards.status_code == 400

    too_many = dict(booking_body(seed), children_count=11)
    response = await client.post("/api/v1/bookings", json=too_many, headers=headers)
    assert response.status_code == 422
    assert response.json()["success"] is False


async def test_parent_cannot_accept_and_nanny_cannot_book(client, seed):
    booking = await request_booking(client, seed)
    response = await client.patch(
        f"/api/v1/bookings/{booking['id']}/status",
        json={"status": "ACCEPTED"},
        headers=auth_header(seed.parent_id, Role.PARENT),
    )
    assert response.status_code == 403

    response = await client.post(
        "/api/v1/bookings", json=booking_body(seed, start=14, end=15), headers=auth_header(seed.nanny_id, Role.NANNY)
    )
    assert response.status_code == 403

    bogus = await set_status(client, seed, booking["id"], "IN_PROGRESS")
    assert bogus.status_code == 422


async def test_list_bookings_with_status_filter(client, seed):
    first = await request_booking(client, seed)
    await request_booking(client, seed, start=14, end=15)
    await set_status(client, seed, first["id"], "DECLINED")

    headers = auth_header(seed.parent_id, Role.PARENT)
    everything = (await client.get("/api/v1/bookings", headers=headers)).json()
    declined = (await client.get("/api/v1/bookings", params={"status": "DECLINED"}, headers=headers)).json()

    assert everything["pagination"]["total"] == 2
    assert [b["id"] for b in declined["bookings"]] == [first["id"]]

    other = await client.get(f"/api/v1/bookings/{first['id']}", headers=auth_header(seed.other_parent_id, Role.PARENT))
    assert other.status_code == 403


async def test_messages_over_http(client, seed):
    booking = await request_booking(client, seed)

    sent = await client.post(
        f"/api/v1/messages/{booking['id']}", json={"text": " Hello "}, headers=auth_header(seed.parent_id, Role.PARENT)
    )
    assert sent.status_code == 201
    assert sent.json()["text"] == "Hello"

    conversations = await client.get("/api/v1/messages/conversations", headers=auth_header(seed.nanny_id, Role.NANNY))
    assert conversations.json()[0]["unread_count"] == 1

    thread = await client.get(f"/api/v1/messages/{booking['id']}", headers=auth_header(seed.nanny_id, Role.NANNY))
    assert [m["text"] for m in thread.json()["messages"]] == ["Hello"]

    blank = await client.post(
        f"/api/v1/messages/{booking['id']}", json={"text": "   "}, headers=auth_header(seed.parent_id, Role.PARENT)
    )
    assert blank.status_code == 400

    outsider = await client.get(f"/api/v1/messages/{booking['id']}", headers=auth_header(seed.other_parent_id, Role.PARENT))
    assert outsider.status_code == 403


async def test_nanny_search_and_profile(client, seed):
    response = await client.get("/api/v1/nannies", params={"language": "English", "lat": 32.0853, "lng": 34.7818})
    assert response.status_code == 200
    (nanny,) = response.json()["nannies"]
    assert nanny["user"]["full_name"] == "Maya Katz"
    assert nanny["distance_km"] == 0.0

    bad = await client.get("/api/v1/nannies", params={"min_rate": -1})
    assert bad.status_code == 422

    detail = await client.get(f"/api/v1/nannies/{seed.nanny_profile_id}")
    assert detail.json()["profile"]["city"] == "Tel Aviv"
    assert (await client.get("/api/v1/nannies/9999")).status_code == 404


async def test_nanny_updates_own_profile(client, seed):
    headers = auth_header(seed.nanny_id, Role.NANNY)
    response = await client.put("/api/v1/nannies/me", json={"hourly_rate_nis": 75, "city": "Ramat Gan"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["hourly_rate_nis"] == 75

    mine = await client.get("/api/v1/nannies/me", headers=headers)
    assert mine.json()["city"] == "Ramat Gan"

    parent = await client.get("/api/v1/nannies/me", headers=auth_header(seed.parent_id, Role.PARENT))
    assert parent.status_code == 403


async def test_review_flow_over_http(client, seed):
    booking = await request_booking(client, seed)
    headers = auth_header(seed.parent_id, Role.PARENT)

    early = await client.post("/api/v1/reviews", json={"booking_id": booking["id"], "rating": 5}, headers=headers)
    assert early.status_code == 400

    await set_status(client, seed, booking["id"], "ACCEPTED")
    await set_status(client, seed, booking["id"], "COMPLETED")
    created = await client.post("/api/v1/reviews", json={"booking_id": booking["id"], "rating": 4}, headers=headers)
    assert created.status_code == 201
    again = await client.post("/api/v1/reviews", json={"booking_id": booking["id"], "rating": 4}, headers=headers)
    assert again.status_code == 409

    listing = await client.get(f"/api/v1/reviews/nanny/{seed.nanny_id}")
    assert listing.json()["pagination"]["total"] == 1

    profile = await client.get(f"/api/v1/nannies/{seed.nanny_profile_id}")
    assert profile.json()["profile"]["rating"] == 4.0
    assert profile.json()["reviews"][0]["rating"] == 4


async def test_register_device_moves_token_between_users(client, seed):
    body = {"fcm_token": "token-123", "platform": "ios"}
    first = await client.post("/api/v1/users/me/devices", json=body, headers=auth_header(seed.parent_id, Role.PARENT))
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/users/me/devices", json=dict(body, platform="android"), headers=auth_header(seed.nanny_id, Role.NANNY)
    )
    assert second.json()["id"] == first.json()["id"]
    assert second.json()["user_id"] == seed.nanny_id
    assert second.json()["platform"] == "android"


async def test_payments_disabled_returns_503(client, seed, monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_PAYMENTS", False)
    response = await client.post(
        "/api/v1/payments/intent", json={"booking_id": 1}, headers=auth_header(seed.parent_id, Role.PARENT)
    )
    assert response.status_code == 503


async def test_payment_intent_and_webhook(client, seed, monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_PAYMENTS", True)
    booking = await request_booking(client, seed)

    intent = await client.post(
        "/api/v1/payments/intent", json={"booking_id": booking["id"]}, headers=auth_header(seed.parent_id, Role.PARENT)
    )
    assert intent.status_code == 200
    assert intent.json()["amount"] == 12000
    assert intent.json()["client_secret"] == "pi_api_secret"

    payload = json.dumps({"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_api"}}}).encode()
    timestamp = str(int(time.time()))
    signature = f"t={timestamp},v1={compute_signature(WEBHOOK_SECRET, timestamp, payload)}"

    rejected = await client.post("/api/v1/payments/webhook", content=payload, headers={"Stripe-Signature": "t=1,v1=00"})
    assert rejected.status_code == 400

    accepted = await client.post("/api/v1/payments/webhook", content=payload, headers={"Stripe-Signature": signature})
    assert accepted.json() == {"received": True}

    fetched = await client.get(f"/api/v1/bookings/{booking['id']}", headers=auth_header(seed.parent_id, Role.PARENT))
    assert fetched.json()["is_paid"] is True


class DecliningProvider(FakeProvider):
    async def create_payment_intent(self, amount_minor, currency, metadata):
        request = httpx.Request("POST", "https://payments.test/payment_intents")
        raise httpx.HTTPStatusError("card declined", request=request, response=httpx.Response(402, request=request))


async def test_internal_error_is_logged_with_traceback(database, seed, monkeypatch, caplog):
    monkeypatch.setattr(settings, "ENABLE_PAYMENTS", True)
    app = create_app(database=database, payment_provider=DecliningProvider())
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as http:
        booking = await request_booking(http, seed)
        with caplog.at_level(logging.ERROR):
            response = await http.post(
                "/api/v1/payments/intent",
                json={"booking_id": booking["id"]},
                headers=auth_header(seed.parent_id, Role.PARENT),
            )

    assert response.status_code == 500
    assert response.json()["message"] == "Payment provider error"
    logged = [record for record in caplog.records if "App Error: Payment provider error" in record.getMessage()]
    assert logged
    assert "Traceback" in logged[0].getMessage()
    assert "card declined" in logged[0].getMessage()


async def test_update_my_user_profile(client, seed):
    headers = auth_header(seed.parent_id, Role.PARENT)
    response = await client.put(
        "/api/v1/users/me",
        json={"full_name": "Dana Levi-Cohen", "phone": "050-1234567", "avatar_url": "https://cdn.test/dana.png"},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["full_name"] == "Dana Levi-Cohen"
    assert body["avatar_url"] == "https://cdn.test/dana.png"
    assert body["role"] == "PARENT"
    assert body["id"] == seed.parent_id

    # Omitted fields stay; an empty avatar clears it; a null name is ignored
    cleared = await client.put("/api/v1/users/me", json={"avatar_url": "", "full_name": None}, headers=headers)
    assert cleared.json()["avatar_url"] is None
    assert cleared.json()["full_name"] == "Dana Levi-Cohen"
    assert cleared.json()["phone"] == "050-1234567"

    short = await client.put("/api/v1/users/me", json={"full_name": "D"}, headers=headers)
    assert short.status_code == 422
    not_a_url = await client.put("/api/v1/users/me", json={"avatar_url": "ftp:/nope"}, headers=headers)
    assert not_a_url.status_code == 422

    missing = await client.put("/api/v1/users/me", json={"phone": "1"}, headers=auth_header(9999, Role.PARENT))
    assert missing.status_code == 404

    assert (await client.put("/api/v1/users/me", json={})).status_code == 401
