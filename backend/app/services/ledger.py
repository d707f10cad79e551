from __future__ import annotations

from datetime import date
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy.orm import Session

from app.core.security import now_utc
from app.models.donation import Donation
from app.models.gift_order import GiftOrder
from app.models.points import PointsTransaction
from app.models.subscription import Subscription
from app.models.user import User
from app.services.catalog import BillingCycle, add_months, subscription_end_date
from app.services.payment_errors import ConcurrentReconciliationError

SUBSCRIPTION_ACTIVE = "active"
DONATION_PENDING = "pending"
DONATION_COMPLETED = "completed"


def get_user(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def get_donation(db: Session, donation_id: int) -> Donation | None:
    return db.get(Donation, donation_id)


def get_gift_order(db: Session, custom_id: str) -> GiftOrder | None:
    return db.execute(sa.select(GiftOrder).where(GiftOrder.custom_id == custom_id)).scalars().first()


def get_active_subscription(db: Session, user_id: int) -> Subscription | None:
    return db.execute(
        sa.select(Subscription)
        .where(Subscription.user_id == user_id, Subscription.status == SUBSCRIPTION_ACTIVE)
        .order_by(Subscription.end_date.desc())
        .limit(1)
    ).scalars().first()


def credit_points(db: Session, *, user_id: int, points: int, description: str) -> PointsTransaction:
    # Un solo UPDATE relativo: saldo y total historico avanzan juntos.
    db.execute(
        sa.update(User)
        .where(User.id == user_id)
        .values(
            points_balance=User.points_balance + points,
            points_earned_total=User.points_earned_total + points,
            updated_at=now_utc(),
        )
    )
    tx = PointsTransaction(
        user_id=user_id,
        transaction_type="purchase",
        points_amount=points,
        description=description,
    )
    db.add(tx)
    db.flush()
    return tx


def debit_points(db: Session, *, user_id: int, points: int, description: str) -> PointsTransaction | None:
    """Spend points only if the balance covers them. Returns None otherwise."""
    result = db.execute(
        sa.update(User)
        .where(User.id == user_id, User.points_balance >= points)
        .values(points_balance=User.points_balance - points, updated_at=now_utc())
    )
    if result.rowcount != 1:
        return None
    tx = PointsTransaction(
        user_id=user_id,
        transaction_type="donation",
        points_amount=-points,
        description=description,
    )
    db.add(tx)
    db.flush()
    return tx


def complete_donation(db: Session, donation_id: int) -> bool:
    result = db.execute(
        sa.update(Donation)
        .where(Donation.id == donation_id, Donation.status == DONATION_PENDING)
        .values(status=DONATION_COMPLETED, updated_at=now_utc())
    )
    return result.rowcount == 1


def record_completed_donation(
    db: Session,
    *,
    user_id: int | None,
    donor_name: str,
    donor_email: str | None,
    amount: Decimal,
    message: str | None,
    is_anonymous: bool = False,
) -> Donation:
    donation = Donation(
        user_id=user_id,
        donor_name=donor_name,
        donor_email=donor_email,
        amount=amount,
        message=message,
        is_anonymous=is_anonymous,
        status=DONATION_COMPLETED,
    )
    db.add(donation)
    db.flush()
    return donation


def create_subscription(
    db: Session,
    *,
    user_id: int,
    plan_type: str,
    cycle: BillingCycle,
    amount: Decimal,
    start_date: date,
    source: str,
) -> Subscription:
    sub = Subscription(
        user_id=user_id,
        plan_type=plan_type,
        billing_cycle=cycle.code,
        amount=amount,
        start_date=start_date,
        end_date=subscription_end_date(start_date, cycle),
        status=SUBSCRIPTION_ACTIVE,
        source=source,
    )
    db.add(sub)
    db.execute(sa.update(User).where(User.id == user_id).values(is_subscriber=True, updated_at=now_utc()))
    db.flush()
    return sub


def extend_subscription(db: Session, sub: Subscription, *, months: int) -> date:
    # Compare-and-swap sobre end_date: si otra entrega ya extendio la fila, no se pisa.
    old_end = sub.end_date
    new_end = add_months(old_end, months)
    result = db.execute(
        sa.update(Subscription)
        .where(
            Subscription.id == sub.id,
            Subscription.status == SUBSCRIPTION_ACTIVE,
            Subscription.end_date == old_end,
        )
        .values(end_date=new_end, updated_at=now_utc())
    )
    if result.rowcount != 1:
        raise ConcurrentReconciliationError(f"Suscripcion {sub.id} modificada por otra entrega")
    return new_end


def mark_gift_order_processed(db: Session, order_id: int) -> bool:
    result = db.execute(
        sa.update(GiftOrder)
        .where(GiftOrder.id == order_id, GiftOrder.processed.is_(False))
        .values(processed=True, processed_at=now_utc(), updated_at=now_utc())
    )
    return result.rowcount == 1
