import asyncio

import httpx
import sqlalchemy as sa

from app.core.config import settings
from app.models.gift_order import GiftOrder
from app.models.payments import PaymentCapture, PaymentWebhookEvent
from app.models.subscription import Subscription
from app.modules.webhooks import api as webhooks_api
from app.services import ledger
from app.services.payment_signatures import sign_stripe_payload
from tests.testkit import paypal_capture_event, raw_json, stripe_checkout_event

PAYPAL_HEADERS = {
    "PAYPAL-AUTH-ALGO": "SHA256withRSA",
    "PAYPAL-CERT-ID": "cert-1",
    "PAYPAL-TRANSMISSION-ID": "tx-1",
    "PAYPAL-TRANSMISSION-TIME": "2026-10-19T10:00:00Z",
    "PAYPAL-TRANSMISSION-SIG": "sig==",
}


def _post(api, provider: str, body: bytes, headers: dict | None = None):
    return api.post(
        f"/webhooks/{provider}",
        content=body,
        headers={"Content-Type": "application/json", **(headers or {})},
    )


def test_health(api):
    r = api.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}
    assert r.headers["X-Content-Type-Options"] == "nosniff"


def test_unknown_provider_is_404(api):
    r = _post(api, "square", b"{}")
    assert r.status_code == 404


def test_invalid_json_is_400(api):
    r = _post(api, "stripe", b"{not json")
    assert r.status_code == 400


def test_stripe_bad_signature_is_401_and_nothing_is_recorded(api, factory, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test")
    user = factory.user("Ana")
    body = raw_json(
        stripe_checkout_event(
            event_id="evt_1",
            session_id="cs_1",
            reference=f"points_{user.id}_package_100_1700000000",
        )
    )

    r = _post(api, "stripe", body, {"Stripe-Signature": sign_stripe_payload(body, "whsec_other")})

    assert r.status_code == 401
    assert factory.reload_user(user.id).points_balance == 0


def test_stripe_signed_points_purchase(api, factory, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test")
    user = factory.user("Ana", points_balance=200, points_earned_total=200)
    body = raw_json(
        stripe_checkout_event(
            event_id="evt_1",
            session_id="cs_1",
            reference=f"points_{user.id}_package_1000_1700000000",
            payment_intent="pi_1",
        )
    )
    headers = {"Stripe-Signature": sign_stripe_payload(body, "whsec_test")}

    r = _post(api, "stripe", body, headers)
    assert r.status_code == 200
    out = r.json()
    assert out["ok"] is True
    assert out["provider"] == "stripe"
    assert out["kind"] == "payment_completed"
    assert out["processed"] is True
    assert out["workflow"] == "points_purchase"

    again = _post(api, "stripe", body, headers)
    assert again.status_code == 200
    assert again.json()["duplicate"] is True

    fresh = factory.reload_user(user.id)
    assert fresh.points_balance == 1350
    txs = factory.points_transactions(user.id)
    assert [t.description for t in txs] == ["Points Purchase: package_1000 via Stripe (Capture: pi_1)"]


def test_paypal_verified_donation(api, factory, monkeypatch, paypal_transport):
    monkeypatch.setattr(settings, "PAYPAL_WEBHOOK_ID", "WH-CONFIG")

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "A21"})
        return httpx.Response(200, json={"verification_status": "SUCCESS"})

    paypal_transport.transport = httpx.MockTransport(handler)
    donation = factory.donation(donor_name="Sam", amount="10.00", message="Love the stream!")
    body = raw_json(paypal_capture_event(event_id="WH-1", capture_id="CAP-1", custom_id=str(donation.id)))

    r = _post(api, "paypal", body, PAYPAL_HEADERS)

    assert r.status_code == 200
    assert r.json()["workflow"] == "donation"
    assert factory.chat_messages() == ['💰 Sam donated $10.00: "Love the stream!"']


def test_paypal_missing_signature_headers_is_401(api, factory, monkeypatch, paypal_transport):
    monkeypatch.setattr(settings, "PAYPAL_WEBHOOK_ID", "WH-CONFIG")
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"verification_status": "SUCCESS"})

    paypal_transport.transport = httpx.MockTransport(handler)
    donation = factory.donation(donor_name="Sam", amount="10.00")
    body = raw_json(paypal_capture_event(event_id="WH-1", capture_id="CAP-1", custom_id=str(donation.id)))

    r = _post(api, "paypal", body)

    assert r.status_code == 401
    assert calls == []
    assert factory.chat_messages() == []


def test_unhandled_event_is_acknowledged(api):
    body = raw_json({"id": "WH-9", "event_type": "CUSTOMER.DISPUTE.CREATED", "resource": {}})
    r = _post(api, "paypal", body)
    assert r.status_code == 200
    out = r.json()
    assert out["kind"] == "unhandled"
    assert out["status"] == "ignored"
    assert out["processed"] is False


def test_malformed_reference_is_acknowledged(api):
    body = raw_json(paypal_capture_event(event_id="WH-1", capture_id="CAP-1", custom_id="points_abc"))
    r = _post(api, "paypal", body)
    assert r.status_code == 200
    assert r.json()["status"] == "ignored"


def test_missing_event_id_is_400(api):
    r = _post(api, "stripe", raw_json({"type": "checkout.session.completed"}))
    assert r.status_code == 400


def _count(db, model) -> int:
    db.expire_all()
    return db.execute(sa.select(sa.func.count()).select_from(model)).scalar_one()


def test_ingest_runs_off_the_event_loop(api, monkeypatch):
    seen = []
    original = webhooks_api.ingest_payment_event

    def _ingest(db, **kwargs):
        try:
            asyncio.get_running_loop()
            seen.append("event_loop")
        except RuntimeError:
            seen.append("worker_thread")
        return original(db, **kwargs)

    monkeypatch.setattr(webhooks_api, "ingest_payment_event", _ingest)
    body = raw_json({"id": "WH-9", "event_type": "CUSTOMER.DISPUTE.CREATED", "resource": {}})

    r = _post(api, "paypal", body)

    assert r.status_code == 200
    assert seen == ["worker_thread"]


def test_gift_failure_rolls_back_and_redelivery_completes(api, factory, db, monkeypatch):
    gifter = factory.user("Gina")
    first = factory.user("Noa")
    second = factory.user("Nia")
    order = factory.gift_order(gifter, custom_id="gift_retry_1", recipients=[first, second], quantity=2, amount="9.98")

    original = ledger.create_subscription
    calls = []

    def _fails_on_second_grant(db, **kwargs):
        calls.append(kwargs["user_id"])
        if len(calls) == 2:
            raise RuntimeError("conexion perdida")
        return original(db, **kwargs)

    monkeypatch.setattr(ledger, "create_subscription", _fails_on_second_grant)
    body = raw_json(paypal_capture_event(event_id="WH-G1", capture_id="CAP-G1", custom_id=order.custom_id))

    r = _post(api, "paypal", body)

    assert r.status_code == 500
    assert _count(db, PaymentCapture) == 0
    assert _count(db, PaymentWebhookEvent) == 0
    assert _count(db, Subscription) == 0
    assert factory.chat_messages() == []
    assert db.get(GiftOrder, order.id).processed is False

    monkeypatch.setattr(ledger, "create_subscription", original)
    retry = _post(api, "paypal", body)

    assert retry.status_code == 200
    assert retry.json()["processed"] is True
    assert _count(db, Subscription) == 2
    assert len(factory.subscriptions(first.id)) == 1
    assert len(factory.subscriptions(second.id)) == 1
    assert db.get(GiftOrder, order.id).processed is True


def test_gift_order_closed_by_another_delivery_is_500(api, factory, db, monkeypatch):
    gifter = factory.user("Gina")
    named = factory.user("Noa")
    order = factory.gift_order(gifter, custom_id="gift_race_1", recipients=[named], quantity=1, amount="4.99")
    monkeypatch.setattr(ledger, "mark_gift_order_processed", lambda db, order_id: False)
    body = raw_json(paypal_capture_event(event_id="WH-G2", capture_id="CAP-G2", custom_id=order.custom_id))

    r = _post(api, "paypal", body)

    assert r.status_code == 500
    assert _count(db, Subscription) == 0
    assert _count(db, PaymentCapture) == 0
    assert factory.chat_messages() == []
    assert db.get(GiftOrder, order.id).processed is False
