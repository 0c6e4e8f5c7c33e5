"""End-to-end tests for the booking session endpoints."""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from app.domain.booking.repository import BookingRepository
from app.models import Booking, ReferralCode, ReferralUsage

ITEM_UPDATES = [
    {"kind": "size", "size": "55"},
    {"kind": "service", "service_type": "standard", "base_price": "159"},
    {"kind": "wall_type", "wall_type": "plasterboard"},
    {"kind": "mount_type", "mount_type": "fixed"},
    {"kind": "location", "location": "living_room"},
]

CONTACT = {"name": "Aoife Byrne", "email": "aoife@example.ie", "phone": "087 123 4567", "address": "1 Main St"}


@pytest.fixture
def session_url():
    return f"/booking-sessions/{uuid.uuid4()}"


def configure_two_items(client, url):
    client.post(f"{url}/items/initialize", json={"count": 2})
    for index in (0, 1):
        assert client.patch(f"{url}/items/{index}", json={"updates": ITEM_UPDATES}).status_code == 200
    client.put(f"{url}/contact", json=CONTACT)


class TestSessionState:
    def test_new_session_is_empty(self, client, session_url):
        response = client.get(session_url)

        assert response.status_code == 200
        data = response.json()
        assert data["multiItem"] is False
        assert data["state"]["item_count"] == 1
        assert Decimal(data["pricing"]["total"]) == Decimal("0")

    def test_invalid_session_id(self, client):
        assert client.get("/booking-sessions/not-a-uuid").status_code == 400

    def test_mutations_persist_between_requests(self, client, session_url):
        client.post(f"{session_url}/items/initialize", json={"count": 3})
        client.patch(
            f"{session_url}/items/1",
            json={
                "updates": [
                    {"kind": "addons", "addons": [{"key": "soundbar-install", "name": "Soundbar Installation", "price": "39"}]},
                    {"kind": "base_price", "base_price": "159"},
                ]
            },
        )

        data = client.get(session_url).json()

        assert data["multiItem"] is True
        assert len(data["state"]["items"]) == 3
        assert Decimal(data["pricing"]["total"]) == Decimal("198")
        assert Decimal(data["pricing"]["addon_total"]) == Decimal("39")

    def test_reset(self, client, session_url):
        client.post(f"{session_url}/items/initialize", json={"count": 3})

        response = client.delete(session_url)

        assert response.status_code == 200
        assert client.get(session_url).json()["state"]["items"] == []

    def test_corrupt_stored_session_starts_fresh(self, client, session_url, fake_redis, session_store):
        session_id = session_url.rsplit("/", 1)[-1]
        fake_redis.setex(session_store.key_for(session_id), 60, "{broken")

        response = client.get(session_url)

        assert response.status_code == 200
        assert response.json()["state"]["items"] == []


class TestItemEndpoints:
    def test_add_and_remove_items(self, client, session_url):
        data = client.post(f"{session_url}/items").json()
        assert data["state"]["item_count"] == 2

        data = client.delete(f"{session_url}/items/0").json()
        assert data["state"]["item_count"] == 1
        assert data["multiItem"] is False

    def test_remove_out_of_range_leaves_state(self, client, session_url):
        client.post(f"{session_url}/items/initialize", json={"count": 3})
        before = client.get(session_url).json()

        response = client.delete(f"{session_url}/items/5")

        assert response.status_code == 200
        assert response.json()["state"] == before["state"]

    def test_update_out_of_range(self, client, session_url):
        client.post(f"{session_url}/items/initialize", json={"count": 2})

        response = client.patch(f"{session_url}/items/4", json={"updates": [{"kind": "size", "size": "55"}]})

        assert response.status_code == 404

    def test_unknown_update_kind_rejected(self, client, session_url):
        client.post(f"{session_url}/items/initialize", json={"count": 2})

        response = client.patch(f"{session_url}/items/0", json={"updates": [{"kind": "total", "total": "1"}]})

        assert response.status_code == 422

    def test_initialize_rejects_zero(self, client, session_url):
        assert client.post(f"{session_url}/items/initialize", json={"count": 0}).status_code == 422

    def test_current_item_navigation(self, client, session_url):
        client.post(f"{session_url}/items/initialize", json={"count": 2})

        assert client.put(f"{session_url}/items/current-index", json={"index": 1}).status_code == 200
        client.patch(f"{session_url}/items/current", json={"updates": [{"kind": "size", "size": "75"}]})

        items = client.get(session_url).json()["state"]["items"]
        assert items[1]["size"] == "75"
        assert client.put(f"{session_url}/items/current-index", json={"index": 9}).status_code == 404

    def test_toggle_addon(self, client, session_url):
        client.post(f"{session_url}/items/initialize", json={"count": 2})
        url = f"{session_url}/items/0/addons/toggle"
        client.post(url, json={"addon": {"key": "soundbar-install", "name": "Soundbar", "price": "39"}, "selected": True})

        data = client.post(url, json={"addon": {"key": "no-addons", "name": "None", "price": "0"}, "selected": True}).json()

        assert [a["key"] for a in data["state"]["items"][0]["addons"]] == ["no-addons"]

    def test_mark_step(self, client, session_url):
        client.post(f"{session_url}/items/initialize", json={"count": 2})

        data = client.post(f"{session_url}/steps", json={"step": "size", "itemIndex": 1}).json()

        assert data["state"]["completed_steps_per_item"] == {"1": ["size"]}


class TestDetails:
    def test_contact_is_normalized(self, client, session_url):
        data = client.put(f"{session_url}/contact", json=CONTACT).json()

        assert data["state"]["contact"]["phone"] == "+353871234567"

    def test_invalid_email_rejected(self, client, session_url):
        assert client.put(f"{session_url}/contact", json={"email": "not-an-email"}).status_code == 422

    def test_notes_schedule_and_provider(self, client, session_url):
        client.put(f"{session_url}/notes", json={"notes": "Gate code 1234"})
        client.put(f"{session_url}/schedule", json={"preferredDate": "2026-11-02", "preferredTime": "morning"})
        client.put(f"{session_url}/direct-provider", json={"providerId": "prov-42"})

        state = client.get(session_url).json()["state"]

        assert state["notes"] == "Gate code 1234"
        assert state["preferred_date"] == "2026-11-02"
        assert state["direct_booking"]["target_provider_id"] == "prov-42"


class TestSubmit:
    def test_submit_without_referral(self, client, session_url, db_session):
        configure_two_items(client, session_url)

        response = client.post(f"{session_url}/submit", json={})

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["finalTotal"]) == Decimal("318")
        assert data["checkout"]["referral"] is None
        booking = db_session.query(Booking).one()
        assert booking.public_id == data["publicId"]
        assert booking.item_count == 2
        assert len(booking.items) == 2
        assert client.get(session_url).json()["state"]["items"] == []

    def test_submit_with_partner_referral(self, client, session_url, db_session, make_code):
        code = make_code("HNCKMDOUG", "partner_staff", "10.00")
        configure_two_items(client, session_url)

        response = client.post(f"{session_url}/submit", json={"referralCode": "hnckmdoug"})

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["checkout"]["computedTotal"]) == Decimal("318")
        assert Decimal(data["checkout"]["referral"]["discountAmount"]) == Decimal("31.80")
        assert Decimal(data["finalTotal"]) == Decimal("286.20")

        usage = db_session.query(ReferralUsage).one()
        assert usage.booking_ref == data["publicId"]
        assert usage.booking_id == data["bookingId"]
        assert usage.subsidy_amount == Decimal("31.80")
        db_session.expire_all()
        assert db_session.query(ReferralCode).filter(ReferralCode.id == code.id).one().total_usage_count == 1

    def test_submit_with_invalid_referral(self, client, session_url, db_session):
        configure_two_items(client, session_url)

        response = client.post(f"{session_url}/submit", json={"referralCode": "NOPE"})

        assert response.status_code == 400
        assert db_session.query(Booking).count() == 0
        assert len(client.get(session_url).json()["state"]["items"]) == 2

    def test_submit_requires_contact(self, client, session_url):
        client.post(f"{session_url}/items/initialize", json={"count": 2})

        response = client.post(f"{session_url}/submit", json={})

        assert response.status_code == 400
        assert "contact" in response.json()["detail"].lower()

    def test_submit_requires_complete_items(self, client, session_url):
        client.post(f"{session_url}/items/initialize", json={"count": 2})
        client.patch(f"{session_url}/items/0", json={"updates": ITEM_UPDATES})
        client.put(f"{session_url}/contact", json=CONTACT)

        response = client.post(f"{session_url}/submit", json={})

        assert response.status_code == 400
        assert "Item 2" in response.json()["detail"]

    def test_single_item_session_needs_installation_details(self, client, session_url, db_session):
        client.put(f"{session_url}/contact", json=CONTACT)

        response = client.post(f"{session_url}/submit", json={})

        assert response.status_code == 400
        assert "incomplete" in response.json()["detail"]
        assert db_session.query(Booking).count() == 0

    def test_single_item_session_submits_when_complete(self, client, session_url):
        client.post(f"{session_url}/items/initialize", json={"count": 1})
        client.patch(f"{session_url}/items/0", json={"updates": ITEM_UPDATES})
        client.put(f"{session_url}/contact", json=CONTACT)

        response = client.post(f"{session_url}/submit", json={})

        assert response.status_code == 200
        assert Decimal(response.json()["finalTotal"]) == Decimal("159")

    def test_pool_exhaustion_returns_503(self, client, session_url, db_session, monkeypatch):
        configure_two_items(client, session_url)

        def exhausted(db, **booking_data):
            raise PoolTimeoutError("QueuePool limit of size 5 overflow 10 reached")

        monkeypatch.setattr(BookingRepository, "create_booking", staticmethod(exhausted))

        response = client.post(f"{session_url}/submit", json={})

        assert response.status_code == 503
        assert db_session.query(Booking).count() == 0
        assert len(client.get(session_url).json()["state"]["items"]) == 2
