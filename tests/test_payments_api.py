from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from tutorhub.app.db.base import Base
from tutorhub.app.db.session import SessionLocal, engine
from tutorhub.app.main import app
from tutorhub.app.models.payment import Payment
from tutorhub.app.models.user import User


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def register_and_login(client: TestClient, email: str, role: str = "student") -> tuple[str, int]:
    client.post("/api/auth/register", json={"email": email, "password": "secret", "full_name": email.split("@")[0], "role": role})
    resp = client.post("/api/auth/login", json={"email": email, "password": "secret"})
    assert resp.status_code == 200
    token = resp.json()["access_token"]
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    return token, me.json()["id"]


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def create_booking(client: TestClient, days_ahead: int = 2) -> dict:
    tutor_token, tutor_id = register_and_login(client, "tutor@example.com", "tutor")
    student_token, student_id = register_and_login(client, "student@example.com")
    scheduled_at = datetime.now(timezone.utc) + timedelta(days=days_ahead)
    resp = client.post(
        "/api/bookings/",
        json={"tutor_id": tutor_id, "title": "Algebra", "scheduled_at": scheduled_at.isoformat(), "duration": 60, "price": "45.00"},
        headers=auth(student_token),
    )
    assert resp.status_code == 201
    return {"tutor": tutor_token, "student": student_token, "student_id": student_id, "booking_id": resp.json()["id"]}


def create_intent(client: TestClient, ctx: dict, **extra):
    return client.post(
        "/api/payments/create-payment-intent",
        json={"booking_id": ctx["booking_id"], **extra},
        headers=auth(ctx["student"]),
    )


def mark_paid(payment_id: int):
    with SessionLocal() as db:
        payment = db.query(Payment).filter(Payment.id == payment_id).one()
        payment.status = "COMPLETED"
        payment.booking.status = "CONFIRMED"
        db.commit()


def payment_for_booking(booking_id: int) -> Payment:
    with SessionLocal() as db:
        payment = db.query(Payment).filter(Payment.booking_id == booking_id).one()
        db.expunge(payment)
        return payment


def test_create_payment_intent_records_pending_payment(fake_gateway):
    client = TestClient(app)
    ctx = create_booking(client)

    resp = create_intent(client, ctx)
    assert resp.status_code == 200
    data = resp.json()
    assert data["payment_intent_id"] == "pi_test_1"
    assert data["client_secret"] == "pi_test_1_secret"
    assert data["amount"] == 45.0
    assert fake_gateway.intents["pi_test_1"]["amount"] == 4500
    assert fake_gateway.intents["pi_test_1"]["metadata"]["booking_id"] == str(ctx["booking_id"])

    payment = payment_for_booking(ctx["booking_id"])
    assert payment.status == "PENDING"
    assert payment.transaction_id == "pi_test_1"
    assert payment.amount == Decimal("45.00")
    assert payment.currency == "USD"


def test_create_payment_intent_reuses_pending_intent(fake_gateway):
    client = TestClient(app)
    ctx = create_booking(client)

    first = create_intent(client, ctx).json()
    second = create_intent(client, ctx).json()
    assert first["payment_intent_id"] == second["payment_intent_id"]
    assert len(fake_gateway.intents) == 1


def test_create_payment_intent_with_saved_card_creates_new_intent(fake_gateway):
    client = TestClient(app)
    ctx = create_booking(client)
    create_intent(client, ctx)

    resp = create_intent(client, ctx, payment_method_id="pm_saved")
    assert resp.status_code == 200
    assert resp.json()["payment_intent_id"] == "pi_test_2"
    payment = payment_for_booking(ctx["booking_id"])
    assert payment.transaction_id == "pi_test_2"
    assert payment.payment_method == "saved_card"


def test_create_payment_intent_for_other_students_booking_is_forbidden(fake_gateway):
    client = TestClient(app)
    ctx = create_booking(client)
    other_token, _ = register_and_login(client, "other@example.com")

    resp = client.post("/api/payments/create-payment-intent", json={"booking_id": ctx["booking_id"]}, headers=auth(other_token))
    assert resp.status_code == 403
    resp = client.post("/api/payments/create-payment-intent", json={"booking_id": ctx["booking_id"]}, headers=auth(ctx["tutor"]))
    assert resp.status_code == 403
    assert fake_gateway.intents == {}


def test_create_payment_intent_missing_booking_returns_404(fake_gateway):
    client = TestClient(app)
    ctx = create_booking(client)
    resp = client.post("/api/payments/create-payment-intent", json={"booking_id": 999}, headers=auth(ctx["student"]))
    assert resp.status_code == 404
    assert resp.json() == {"error": "Booking not found"}


def test_create_payment_intent_for_confirmed_booking_is_rejected(fake_gateway):
    client = TestClient(app)
    ctx = create_booking(client)
    create_intent(client, ctx)
    mark_paid(payment_for_booking(ctx["booking_id"]).id)

    resp = create_intent(client, ctx)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Booking is not available for payment"}


def test_processor_failure_returns_500_without_payment(fake_gateway):
    client = TestClient(app)
    ctx = create_booking(client)
    fake_gateway.fail = True

    resp = create_intent(client, ctx)
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to create payment intent"}
    with SessionLocal() as db:
        assert db.query(Payment).count() == 0


def test_full_refund_cancels_booking_and_session(fake_gateway):
    client = TestClient(app)
    ctx = create_booking(client)
    create_intent(client, ctx)
    payment_id = payment_for_booking(ctx["booking_id"]).id
    mark_paid(payment_id)

    resp = client.post("/api/payments/refund", json={"payment_id": payment_id, "reason": "Schedule change"}, headers=auth(ctx["student"]))
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["amount"] == 45.0
    assert data["refund_id"].startswith("re_")
    assert fake_gateway.refunds[0]["amount"] == 4500
    assert fake_gateway.refunds[0]["payment_intent"] == "pi_test_1"

    payment = payment_for_booking(ctx["booking_id"])
    assert payment.status == "REFUNDED"
    assert payment.refunded_amount == Decimal("45.00")
    assert payment.refund_reason == "Schedule change"
    booking = client.get(f"/api/bookings/{ctx['booking_id']}", headers=auth(ctx["student"])).json()
    assert booking["status"] == "CANCELLED"
    assert booking["session"]["status"] == "CANCELLED"

    tutor_titles = [n["title"] for n in client.get("/api/notifications/", headers=auth(ctx["tutor"])).json()]
    assert "Session Cancelled" in tutor_titles


def test_partial_refunds_accumulate(fake_gateway):
    client = TestClient(app)
    ctx = create_booking(client)
    create_intent(client, ctx)
    payment_id = payment_for_booking(ctx["booking_id"]).id
    mark_paid(payment_id)

    resp = client.post(
        "/api/payments/refund",
        json={"payment_id": payment_id, "reason": "Shortened", "amount": "20.00"},
        headers=auth(ctx["student"]),
    )
    assert resp.status_code == 200
    assert payment_for_booking(ctx["booking_id"]).status == "PARTIALLY_REFUNDED"

    too_much = client.post(
        "/api/payments/refund",
        json={"payment_id": payment_id, "reason": "Again", "amount": "30.00"},
        headers=auth(ctx["student"]),
    )
    assert too_much.status_code == 400
    assert too_much.json() == {"error": "Refund amount exceeds the refundable balance"}

    rest = client.post("/api/payments/refund", json={"payment_id": payment_id, "reason": "Rest"}, headers=auth(ctx["student"]))
    assert rest.status_code == 200
    assert rest.json()["amount"] == 25.0
    payment = payment_for_booking(ctx["booking_id"])
    assert payment.status == "REFUNDED"
    assert payment.refunded_amount == Decimal("45.00")


def test_refund_pending_payment_is_rejected(fake_gateway):
    client = TestClient(app)
    ctx = create_booking(client)
    create_intent(client, ctx)
    payment_id = payment_for_booking(ctx["booking_id"]).id

    resp = client.post("/api/payments/refund", json={"payment_id": payment_id, "reason": "x"}, headers=auth(ctx["student"]))
    assert resp.status_code == 400
    assert resp.json() == {"error": "Payment cannot be refunded"}
    assert fake_gateway.refunds == []


def test_refund_past_session_is_rejected(fake_gateway):
    client = TestClient(app)
    ctx = create_booking(client, days_ahead=-1)
    create_intent(client, ctx)
    payment_id = payment_for_booking(ctx["booking_id"]).id
    mark_paid(payment_id)

    resp = client.post("/api/payments/refund", json={"payment_id": payment_id, "reason": "Too late"}, headers=auth(ctx["student"]))
    assert resp.status_code == 400
    assert resp.json() == {"error": "Cannot refund past sessions"}
    assert payment_for_booking(ctx["booking_id"]).status == "COMPLETED"
    assert fake_gateway.refunds == []


def test_refund_by_non_payer_is_forbidden(fake_gateway):
    client = TestClient(app)
    ctx = create_booking(client)
    create_intent(client, ctx)
    payment_id = payment_for_booking(ctx["booking_id"]).id
    mark_paid(payment_id)

    resp = client.post("/api/payments/refund", json={"payment_id": payment_id, "reason": "x"}, headers=auth(ctx["tutor"]))
    assert resp.status_code == 403


def test_admin_can_refund_another_users_payment(fake_gateway):
    client = TestClient(app)
    ctx = create_booking(client)
    create_intent(client, ctx)
    payment_id = payment_for_booking(ctx["booking_id"]).id
    mark_paid(payment_id)
    admin_token, admin_id = register_and_login(client, "admin@example.com")
    with SessionLocal() as db:
        db.query(User).filter(User.id == admin_id).update({"is_admin": True})
        db.commit()

    resp = client.post("/api/payments/refund", json={"payment_id": payment_id, "reason": "Support override"}, headers=auth(admin_token))
    assert resp.status_code == 200
    assert resp.json()["amount"] == 45.0
    payment = payment_for_booking(ctx["booking_id"])
    assert payment.status == "REFUNDED"
    assert payment.user_id != admin_id
    refund_titles = [n["title"] for n in client.get("/api/notifications/", headers=auth(ctx["student"])).json()]
    assert "Refund Processed" in refund_titles


def test_refund_missing_reason_fails_validation(fake_gateway):

    client = TestClient(app)
    ctx = create_booking(client)
    resp = client.post("/api/payments/refund", json={"payment_id": 1}, headers=auth(ctx["student"]))
    assert resp.status_code == 422


def test_payment_history_paginates_and_filters(fake_gateway):
    client = TestClient(app)
    ctx = create_booking(client)
    create_intent(client, ctx)

    resp = client.get("/api/payments/history", headers=auth(ctx["student"]))
    assert resp.status_code == 200
    data = resp.json()
    assert data["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}
    item = data["payments"][0]
    assert item["status"] == "PENDING"
    assert item["session"]["title"] == "Algebra"
    assert item["session"]["tutor"]["name"] == "tutor"

    filtered = client.get("/api/payments/history?status=COMPLETED", headers=auth(ctx["student"])).json()
    assert filtered["payments"] == []
    assert filtered["pagination"]["pages"] == 0

    other = client.get("/api/payments/history", headers=auth(ctx["tutor"])).json()
    assert other["pagination"]["total"] == 0


def test_payment_methods_lifecycle(fake_gateway):
    client = TestClient(app)
    ctx = create_booking(client)

    assert client.get("/api/payments/methods", headers=auth(ctx["student"])).json() == []
    added = client.post("/api/payments/methods", json={"payment_method_id": "pm_card_visa"}, headers=auth(ctx["student"]))
    assert added.status_code == 201

    methods = client.get("/api/payments/methods", headers=auth(ctx["student"])).json()
    assert [m["id"] for m in methods] == ["pm_card_visa"]
    assert methods[0]["card"]["last4"] == "4242"
    # The customer is created once and then reused.
    assert fake_gateway.customers == ["cus_test_1"]

    missing = client.delete("/api/payments/methods/pm_unknown", headers=auth(ctx["student"]))
    assert missing.status_code == 404
    removed = client.delete("/api/payments/methods/pm_card_visa", headers=auth(ctx["student"]))
    assert removed.status_code == 200
    assert client.get("/api/payments/methods", headers=auth(ctx["student"])).json() == []
