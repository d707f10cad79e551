"""Workflows that turn a completed payment into ledger entitlements.

Every workflow has the same shape ``(db, ref, event) -> WorkflowResult`` and
runs inside the delivery transaction. Validation happens first, then the
natural guard of the workflow, then the capture claim, then the writes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.core.security import today_utc
from app.services import announcements, ledger
from app.services.catalog import get_billing_cycle, get_points_package
from app.services.gift_allocator import allocate_gift_order
from app.services.idempotency import claim_capture
from app.services.payment_errors import UnknownEntityError
from app.services.payment_events import PaymentEvent
from app.services.reference_tokens import (
    DonationRef,
    GiftOrderRef,
    PointsPurchaseRef,
    ReferenceToken,
    SubscriptionRef,
    encode_reference,
)

logger = logging.getLogger(__name__)

WORKFLOW_POINTS = "points_purchase"
WORKFLOW_DONATION = "donation"
WORKFLOW_SUBSCRIPTION = "subscription"
WORKFLOW_GIFT = "gift_order"


@dataclass(frozen=True)
class WorkflowResult:
    workflow: str
    applied: bool
    detail: str
    user_id: int | None = None


def _claim(db: Session, event: PaymentEvent, *, workflow: str, ref: ReferenceToken, user_id: int | None) -> bool:
    return claim_capture(
        db,
        provider=event.provider,
        capture_id=event.capture_id or event.event_id,
        workflow=workflow,
        reference=encode_reference(ref),
        user_id=user_id,
    )


def _already_applied(workflow: str, event: PaymentEvent, user_id: int | None = None) -> WorkflowResult:
    logger.info("[PAYMENTS] capture %s already applied (%s)", event.capture_id, workflow)
    return WorkflowResult(workflow, False, "capture ya aplicada", user_id)


def apply_points_purchase(db: Session, ref: PointsPurchaseRef, event: PaymentEvent) -> WorkflowResult:
    package = get_points_package(ref.package_id)
    user = ledger.get_user(db, ref.user_id)
    if user is None:
        raise UnknownEntityError(f"Usuario {ref.user_id} no encontrado")

    if not _claim(db, event, workflow=WORKFLOW_POINTS, ref=ref, user_id=user.id):
        return _already_applied(WORKFLOW_POINTS, event, user.id)

    description = f"Points Purchase: {package.package_id} via {event.provider_label} (Capture: {event.capture_id})"
    ledger.credit_points(db, user_id=user.id, points=package.points, description=description)
    logger.info("[PAYMENTS] credited %s points to user=%s (%s)", package.points, user.id, package.package_id)
    return WorkflowResult(WORKFLOW_POINTS, True, f"+{package.points} puntos", user.id)


def apply_donation(db: Session, ref: DonationRef, event: PaymentEvent) -> WorkflowResult:
    donation = ledger.get_donation(db, ref.donation_id)
    if donation is None:
        raise UnknownEntityError(f"Donacion {ref.donation_id} no encontrada")
    if donation.status == ledger.DONATION_COMPLETED:
        return WorkflowResult(WORKFLOW_DONATION, False, "donacion ya completada", donation.user_id)

    if not _claim(db, event, workflow=WORKFLOW_DONATION, ref=ref, user_id=donation.user_id):
        return _already_applied(WORKFLOW_DONATION, event, donation.user_id)
    if not ledger.complete_donation(db, donation.id):
        return WorkflowResult(WORKFLOW_DONATION, False, "donacion ya completada", donation.user_id)

    donor = announcements.ANONYMOUS if donation.is_anonymous else donation.donor_name
    announcements.emit(db, announcements.donation_message(donor, donation.amount, donation.message))
    logger.info("[PAYMENTS] donation=%s completed (%s)", donation.id, donation.amount)
    return WorkflowResult(WORKFLOW_DONATION, True, "donacion completada", donation.user_id)


def apply_subscription(db: Session, ref: SubscriptionRef, event: PaymentEvent) -> WorkflowResult:
    cycle = get_billing_cycle(ref.plan_type, ref.billing_cycle)
    user = ledger.get_user(db, ref.user_id)
    if user is None:
        raise UnknownEntityError(f"Usuario {ref.user_id} no encontrado")
    if ledger.get_active_subscription(db, user.id) is not None:
        return WorkflowResult(WORKFLOW_SUBSCRIPTION, False, "suscripcion activa existente", user.id)

    if not _claim(db, event, workflow=WORKFLOW_SUBSCRIPTION, ref=ref, user_id=user.id):
        return _already_applied(WORKFLOW_SUBSCRIPTION, event, user.id)

    sub = ledger.create_subscription(
        db,
        user_id=user.id,
        plan_type=ref.plan_type,
        cycle=cycle,
        amount=cycle.price,
        start_date=today_utc(),
        source="purchase",
    )
    announcements.emit(db, announcements.subscription_message(user.name))
    logger.info("[PAYMENTS] subscription=%s activated for user=%s until %s", sub.id, user.id, sub.end_date)
    return WorkflowResult(WORKFLOW_SUBSCRIPTION, True, f"activa hasta {sub.end_date.isoformat()}", user.id)


def apply_gift_order(db: Session, ref: GiftOrderRef, event: PaymentEvent) -> WorkflowResult:
    order = ledger.get_gift_order(db, ref.custom_id)
    if order is None:
        raise UnknownEntityError(f"Orden de regalo {ref.custom_id} no encontrada")
    if order.processed:
        return WorkflowResult(WORKFLOW_GIFT, False, "orden ya procesada", order.user_id)
    get_billing_cycle(order.plan_type, order.billing_cycle)

    if not _claim(db, event, workflow=WORKFLOW_GIFT, ref=ref, user_id=order.user_id):
        return _already_applied(WORKFLOW_GIFT, event, order.user_id)

    allocation = allocate_gift_order(db, order)
    detail = f"{len(allocation.grants)}/{order.quantity} regalos ({allocation.community_count} comunidad)"
    return WorkflowResult(WORKFLOW_GIFT, True, detail, order.user_id)


WORKFLOWS = {
    PointsPurchaseRef: apply_points_purchase,
    DonationRef: apply_donation,
    SubscriptionRef: apply_subscription,
    GiftOrderRef: apply_gift_order,
}


def run_workflow(db: Session, ref: ReferenceToken, event: PaymentEvent) -> WorkflowResult:
    return WORKFLOWS[type(ref)](db, ref, event)
