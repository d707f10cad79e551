"""Gift order distribution.

Named recipients are served first, up to the order quantity. Whatever is left
goes to the community: non-banned users other than the gifter, users without
an active subscription first, then the ones whose subscription ends soonest.
The order is flagged as processed only after every grant is written, all in
the caller's transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

import sqlalchemy as sa
from sqlalchemy.orm import Session

from app.core.security import today_utc
from app.models.gift_order import GiftOrder
from app.models.subscription import Subscription
from app.models.user import User
from app.services import announcements, ledger
from app.services.catalog import BillingCycle, get_billing_cycle
from app.services.payment_errors import ConcurrentReconciliationError

logger = logging.getLogger(__name__)

GRANT_CREATED = "created"
GRANT_EXTENDED = "extended"


@dataclass(frozen=True)
class GiftGrant:
    user_id: int
    outcome: str
    community: bool


@dataclass
class GiftAllocation:
    order_id: int
    quantity: int
    grants: list[GiftGrant] = field(default_factory=list)

    @property
    def named_count(self) -> int:
        return sum(1 for g in self.grants if not g.community)

    @property
    def community_count(self) -> int:
        return sum(1 for g in self.grants if g.community)

    @property
    def granted_user_ids(self) -> set[int]:
        return {g.user_id for g in self.grants}


def unit_amount(order: GiftOrder) -> Decimal:
    return (Decimal(order.amount) / order.quantity).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _recipient_id(recipient) -> int | None:
    if not isinstance(recipient, dict):
        return None
    raw = recipient.get("id")
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def _grant(
    db: Session,
    *,
    user_id: int,
    order: GiftOrder,
    cycle: BillingCycle,
    amount: Decimal,
    source: str,
) -> str:
    active = ledger.get_active_subscription(db, user_id)
    if active is not None:
        ledger.extend_subscription(db, active, months=cycle.extension_months)
        return GRANT_EXTENDED
    ledger.create_subscription(
        db,
        user_id=user_id,
        plan_type=order.plan_type,
        cycle=cycle,
        amount=amount,
        start_date=today_utc(),
        source=source,
    )
    return GRANT_CREATED


def community_candidates(db: Session, *, gifter_id: int, exclude_ids: set[int], limit: int) -> list[int]:
    if limit <= 0:
        return []
    active = (
        sa.select(Subscription.user_id, Subscription.end_date)
        .where(Subscription.status == ledger.SUBSCRIPTION_ACTIVE)
        .subquery()
    )
    stmt = (
        sa.select(User.id)
        .outerjoin(active, active.c.user_id == User.id)
        .where(User.is_banned.is_(False), User.id != gifter_id)
        .order_by(
            sa.case((active.c.user_id.is_(None), 0), else_=1),
            active.c.end_date.asc(),
            User.id.asc(),
        )
        .limit(limit)
    )
    if exclude_ids:
        stmt = stmt.where(User.id.not_in(sorted(exclude_ids)))
    return list(db.execute(stmt).scalars().all())


def allocate_gift_order(db: Session, order: GiftOrder) -> GiftAllocation:
    cycle = get_billing_cycle(order.plan_type, order.billing_cycle)
    per_unit = unit_amount(order)
    gifter = ledger.get_user(db, order.user_id)
    gifter_name = announcements.display_name(gifter.name if gifter else None)
    allocation = GiftAllocation(order_id=order.id, quantity=order.quantity)

    for recipient in order.recipients or []:
        if len(allocation.grants) >= order.quantity:
            break
        user_id = _recipient_id(recipient)
        user = ledger.get_user(db, user_id) if user_id is not None else None
        if user is None:
            logger.warning("[GIFT] order=%s skipping unknown recipient %r", order.id, recipient)
            continue
        if user.id in allocation.granted_user_ids:
            continue

        outcome = _grant(db, user_id=user.id, order=order, cycle=cycle, amount=per_unit, source="gift")
        allocation.grants.append(GiftGrant(user_id=user.id, outcome=outcome, community=False))

        name = recipient.get("name") or user.name
        if outcome == GRANT_EXTENDED:
            message = announcements.gift_extension_message(name, gifter_name, cycle.extension_months)
        else:
            message = announcements.gift_new_message(name, gifter_name, order.gift_message)
        announcements.emit(db, message)

    remaining = order.quantity - len(allocation.grants)
    candidates = community_candidates(
        db,
        gifter_id=order.user_id,
        exclude_ids=allocation.granted_user_ids,
        limit=remaining,
    )
    for user_id in candidates:
        outcome = _grant(db, user_id=user_id, order=order, cycle=cycle, amount=per_unit, source="community_gift")
        allocation.grants.append(GiftGrant(user_id=user_id, outcome=outcome, community=True))

    if allocation.community_count:
        announcements.emit(db, announcements.community_gift_message(gifter_name, allocation.community_count))
    if len(allocation.grants) < order.quantity:
        logger.warning(
            "[GIFT] order=%s granted %s of %s (not enough eligible users)",
            order.id,
            len(allocation.grants),
            order.quantity,
        )

    if not ledger.mark_gift_order_processed(db, order.id):
        raise ConcurrentReconciliationError(f"Orden de regalo {order.id} procesada por otra entrega")

    logger.info(
        "[GIFT] order=%s processed named=%s community=%s",
        order.id,
        allocation.named_count,
        allocation.community_count,
    )
    return allocation
