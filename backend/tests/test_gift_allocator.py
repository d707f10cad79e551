from datetime import date, timedelta
from decimal import Decimal

import pytest
import sqlalchemy as sa

from app.core.security import today_utc
from app.models.gift_order import GiftOrder
from app.models.payments import PaymentCapture
from app.models.subscription import Subscription
from app.services import ledger
from app.services.catalog import add_months
from app.services.payment_errors import ConcurrentReconciliationError
from app.services.payments import ingest_payment_event
from tests.testkit import paypal_capture_event


def _deliver_gift(db, custom_id: str, *, event_id: str = "WH-G1", capture_id: str = "CAP-G1"):
    out = ingest_payment_event(
        db,
        provider="paypal",
        payload=paypal_capture_event(event_id=event_id, capture_id=capture_id, custom_id=custom_id, amount="24.95"),
    )
    db.commit()
    return out


def _active_end_date(factory, user_id: int) -> date:
    subs = [s for s in factory.subscriptions(user_id) if s.status == "active"]
    assert len(subs) == 1
    return subs[0].end_date


def test_named_then_community_allocation(db, factory):
    today = today_utc()
    gifter = factory.user("Gina")
    named_subscribed = factory.user("Nico")
    named_new = factory.user("Noa")
    soon = factory.user("Sol")
    later = factory.user("Lou")
    middle = factory.user("Mia")
    latest = factory.user("Max")
    banned = factory.user("Bob", is_banned=True)

    nico_end = today + timedelta(days=20)
    factory.active_subscription(named_subscribed, end_date=nico_end)
    factory.active_subscription(gifter, end_date=today + timedelta(days=1))
    factory.active_subscription(soon, end_date=today + timedelta(days=5))
    factory.active_subscription(later, end_date=today + timedelta(days=40))
    factory.active_subscription(middle, end_date=today + timedelta(days=10))
    factory.active_subscription(latest, end_date=today + timedelta(days=100))

    order = factory.gift_order(
        gifter,
        custom_id="gift_1700000000_b",
        recipients=[named_subscribed, named_new],
        quantity=5,
        gift_message="Enjoy!",
    )

    out = _deliver_gift(db, order.custom_id)

    assert out["processed"] is True
    assert out["workflow"] == "gift_order"
    assert _active_end_date(factory, named_subscribed.id) == add_months(nico_end, 1)
    assert _active_end_date(factory, named_new.id) == today + timedelta(days=30)
    assert _active_end_date(factory, soon.id) == add_months(today + timedelta(days=5), 1)
    assert _active_end_date(factory, middle.id) == add_months(today + timedelta(days=10), 1)
    assert _active_end_date(factory, later.id) == add_months(today + timedelta(days=40), 1)
    assert _active_end_date(factory, latest.id) == today + timedelta(days=100)
    assert _active_end_date(factory, gifter.id) == today + timedelta(days=1)
    assert factory.subscriptions(banned.id) == []

    new_sub = factory.subscriptions(named_new.id)[0]
    assert new_sub.amount == Decimal("4.99")
    assert new_sub.source == "gift"

    assert factory.chat_messages() == [
        "🎁 Nico received a subscription extension from Gina! 1 more month added! 👑",
        '🎁 Noa received a premium subscription gift from Gina! Welcome to the premium community! 👑 Gift message: "Enjoy!"',
        "🎉 Gina gifted 3 community subscriptions! Thank you for supporting the community! 🙏",
    ]
    db.expire_all()
    stored = db.get(GiftOrder, order.id)
    assert stored.processed is True
    assert stored.processed_at is not None


def test_community_pass_prefers_users_without_subscription(db, factory):
    today = today_utc()
    gifter = factory.user("Gina")
    subscribed = factory.user("Sub")
    free_a = factory.user("FreeA")
    free_b = factory.user("FreeB")
    factory.active_subscription(subscribed, end_date=today + timedelta(days=2))

    order = factory.gift_order(gifter, custom_id="gift_c1", recipients=[], quantity=2, amount="9.98")
    _deliver_gift(db, order.custom_id)

    assert _active_end_date(factory, free_a.id) == today + timedelta(days=30)
    assert _active_end_date(factory, free_b.id) == today + timedelta(days=30)
    assert factory.subscriptions(free_a.id)[0].source == "community_gift"
    assert _active_end_date(factory, subscribed.id) == today + timedelta(days=2)
    assert factory.subscriptions(gifter.id) == []
    assert factory.chat_messages() == [
        "🎉 Gina gifted 2 community subscriptions! Thank you for supporting the community! 🙏",
    ]


def test_gift_conservation_and_gifter_exclusion(db, factory):
    gifter = factory.user("Gina")
    named = factory.user("Nico")
    others = [factory.user(f"User{i}") for i in range(6)]

    order = factory.gift_order(gifter, custom_id="gift_c2", recipients=[named], quantity=4, amount="19.96")
    _deliver_gift(db, order.custom_id)

    granted = db.execute(
        sa.select(Subscription.user_id).where(Subscription.status == "active")
    ).scalars().all()
    assert len(granted) == 4
    assert len(set(granted)) == 4
    assert named.id in granted
    assert gifter.id not in granted
    assert set(granted) - {named.id} <= {u.id for u in others}


def test_missing_named_recipient_is_not_counted(db, factory):
    gifter = factory.user("Gina")
    named = factory.user("Nico")
    community = factory.user("Cora")

    order = factory.gift_order(gifter, custom_id="gift_c3", recipients=[named], quantity=2, amount="9.98")
    order.recipients = [{"id": 98765, "name": "Ghost"}, {"id": named.id, "name": "Nico"}]
    db.commit()

    _deliver_gift(db, order.custom_id)

    assert len(factory.subscriptions(named.id)) == 1
    assert len(factory.subscriptions(community.id)) == 1
    messages = factory.chat_messages()
    assert messages[-1] == "🎉 Gina gifted 1 community subscription! Thank you for supporting the community! 🙏"
    assert not any("Ghost" in m for m in messages)


def test_yearly_gift_extends_twelve_months(db, factory):
    gifter = factory.user("Gina")
    named = factory.user("Nico")
    end = today_utc() + timedelta(days=3)
    factory.active_subscription(named, end_date=end, billing_cycle="yearly")

    order = factory.gift_order(
        gifter,
        custom_id="gift_y1",
        recipients=[named],
        quantity=1,
        billing_cycle="yearly",
        amount="39.99",
    )
    _deliver_gift(db, order.custom_id)

    assert _active_end_date(factory, named.id) == add_months(end, 12)
    assert factory.chat_messages() == [
        "🎁 Nico received a subscription extension from Gina! 12 more months added! 👑",
    ]


def test_processed_order_is_not_allocated_again(db, factory):
    gifter = factory.user("Gina")
    named = factory.user("Nico")
    order = factory.gift_order(gifter, custom_id="gift_r1", recipients=[named], quantity=1, amount="4.99")

    _deliver_gift(db, order.custom_id, event_id="WH-1", capture_id="CAP-1")
    again = _deliver_gift(db, order.custom_id, event_id="WH-2", capture_id="CAP-2")

    assert again["processed"] is False
    assert again["status"] == "ignored"
    assert len(factory.subscriptions(named.id)) == 1
    assert len(factory.chat_messages()) == 1


def test_unknown_gift_order_is_acknowledged(db, factory):
    out = _deliver_gift(db, "gift_does_not_exist")
    assert out["status"] == "ignored"
    assert "gift_does_not_exist" in out["detail"]


def test_concurrent_extensions_do_not_lose_a_month(session_factory, factory):
    user = factory.user("Nico")
    factory.active_subscription(user, end_date=date(2030, 1, 15))

    first = session_factory()
    second = session_factory()
    try:
        sub_first = ledger.get_active_subscription(first, user.id)
        sub_second = ledger.get_active_subscription(second, user.id)

        ledger.extend_subscription(first, sub_first, months=1)
        first.commit()

        with pytest.raises(ConcurrentReconciliationError):
            ledger.extend_subscription(second, sub_second, months=1)
        second.rollback()

        # Reintento con la fila fresca.
        fresh = ledger.get_active_subscription(second, user.id)
        ledger.extend_subscription(second, fresh, months=1)
        second.commit()
    finally:
        first.close()
        second.close()

    assert _active_end_date(factory, user.id) == date(2030, 3, 15)


def test_gift_order_with_unknown_plan_does_not_claim_capture(db, factory):
    gifter = factory.user("Gina")
    named = factory.user("Nico")
    order = factory.gift_order(gifter, custom_id="gift_bad_plan", recipients=[named], quantity=1, amount="4.99")
    order.plan_type = "gold"
    db.commit()

    out = _deliver_gift(db, order.custom_id)

    assert out["status"] == "ignored"
    assert "gold" in out["detail"]
    assert db.execute(sa.select(sa.func.count()).select_from(PaymentCapture)).scalar_one() == 0
    assert factory.subscriptions(named.id) == []
    db.expire_all()
    assert db.get(GiftOrder, order.id).processed is False
