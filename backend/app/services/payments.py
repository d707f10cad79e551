from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

import sqlalchemy as sa
from sqlalchemy.orm import Session

from app.services.payment_errors import PaymentReconciliationError
from app.services.payment_events import (
    PROVIDER_PAYPAL,
    EventKind,
    PaymentEvent,
    normalize_provider_event,
)
from app.services.reconciliation import run_workflow
from app.services.reference_tokens import decode_reference

logger = logging.getLogger(__name__)

STATUS_PROCESSED = "processed"
STATUS_IGNORED = "ignored"


@dataclass(frozen=True)
class DispatchOutcome:
    status: str
    workflow: str | None = None
    detail: str | None = None

    @property
    def processed(self) -> bool:
        return self.status == STATUS_PROCESSED


def _ignored(detail: str, workflow: str | None = None) -> DispatchOutcome:
    return DispatchOutcome(STATUS_IGNORED, workflow, detail)


def _handle_payment_completed(db: Session, event: PaymentEvent) -> DispatchOutcome:
    if event.provider == PROVIDER_PAYPAL and event.resource_status != "COMPLETED":
        logger.info("[PAYPAL] capture %s not completed (status=%s)", event.capture_id, event.resource_status)
        return _ignored(f"captura con estado {event.resource_status}")
    if not event.reference:
        logger.warning("[PAYMENTS] %s event %s has no reference token", event.provider, event.event_id)
        return _ignored("sin referencia")

    try:
        ref = decode_reference(event.reference)
        result = run_workflow(db, ref, event)
    except PaymentReconciliationError as exc:
        logger.warning(
            "[PAYMENTS] %s event %s not applied (reference=%s): %s",
            event.provider,
            event.event_id,
            event.reference,
            exc,
        )
        return _ignored(str(exc))

    if not result.applied:
        return _ignored(result.detail, result.workflow)
    return DispatchOutcome(STATUS_PROCESSED, result.workflow, result.detail)


def _handle_payment_failed(db: Session, event: PaymentEvent) -> DispatchOutcome:
    logger.warning(
        "[PAYMENTS] %s payment failed: event=%s capture=%s reference=%s",
        event.provider,
        event.event_id,
        event.capture_id,
        event.reference,
    )
    return _ignored("pago fallido")


def _handle_order_state(db: Session, event: PaymentEvent) -> DispatchOutcome:
    logger.info("[PAYMENTS] %s %s for reference=%s", event.provider, event.kind.value, event.reference)
    return _ignored(event.kind.value)


def _handle_unhandled(db: Session, event: PaymentEvent) -> DispatchOutcome:
    logger.info("[PAYMENTS] unhandled %s event type %s", event.provider, event.event_type)
    return _ignored("evento no manejado")


EVENT_HANDLERS: dict[EventKind, Callable[[Session, PaymentEvent], DispatchOutcome]] = {
    EventKind.PAYMENT_COMPLETED: _handle_payment_completed,
    EventKind.PAYMENT_FAILED: _handle_payment_failed,
    EventKind.ORDER_APPROVED: _handle_order_state,
    EventKind.ORDER_COMPLETED: _handle_order_state,
    EventKind.ORDER_EXPIRED: _handle_order_state,
    EventKind.UNHANDLED: _handle_unhandled,
}


def dispatch_event(db: Session, event: PaymentEvent) -> DispatchOutcome:
    handler = EVENT_HANDLERS.get(event.kind, _handle_unhandled)
    return handler(db, event)


def ingest_payment_event(db: Session, *, provider: str, payload: dict) -> dict:
    """Record a verified delivery and apply it. Runs in the caller's transaction."""
    event = normalize_provider_event(provider, payload)
    base = {
        "provider": event.provider,
        "event_id": event.event_id,
        "event_type": event.event_type,
        "kind": event.kind.value,
    }

    inserted = db.execute(
        sa.text(
            """
            INSERT INTO payment_webhook_events
                (provider, event_id, event_type, kind, capture_id, reference, payload, status, received_at)
            VALUES
                (:provider, :event_id, :event_type, :kind, :capture_id, :reference, :payload, 'received', CURRENT_TIMESTAMP)
            ON CONFLICT (provider, event_id) DO NOTHING
            RETURNING id
            """
        ).bindparams(sa.bindparam("payload", type_=sa.JSON)),
        {
            **base,
            "capture_id": event.capture_id,
            "reference": event.reference,
            "payload": event.payload,
        },
    ).mappings().first()
    if not inserted:
        row = db.execute(
            sa.text(
                """
                SELECT status, detail
                FROM payment_webhook_events
                WHERE provider=:provider AND event_id=:event_id
                """
            ),
            {"provider": event.provider, "event_id": event.event_id},
        ).mappings().first()
        logger.info("[PAYMENTS] duplicate %s event %s", event.provider, event.event_id)
        return {
            **base,
            "duplicate": True,
            "processed": bool(row and row["status"] == STATUS_PROCESSED),
            "status": (row["status"] if row else STATUS_IGNORED),
            "workflow": None,
            "detail": (row["detail"] if row else None),
        }

    outcome = dispatch_event(db, event)

    db.execute(
        sa.text(
            """
            UPDATE payment_webhook_events
            SET status=:status, detail=:detail, processed_at=CURRENT_TIMESTAMP
            WHERE id=:id
            """
        ),
        {"id": inserted["id"], "status": outcome.status, "detail": outcome.detail},
    )

    return {
        **base,
        "duplicate": False,
        "processed": outcome.processed,
        "status": outcome.status,
        "workflow": outcome.workflow,
        "detail": outcome.detail,
    }
