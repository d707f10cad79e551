"""Normalization of provider webhook payloads into one internal event shape."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum

PROVIDER_PAYPAL = "paypal"
PROVIDER_STRIPE = "stripe"
VALID_PROVIDERS = {PROVIDER_PAYPAL, PROVIDER_STRIPE}


class EventKind(str, Enum):
    PAYMENT_COMPLETED = "payment_completed"
    PAYMENT_FAILED = "payment_failed"
    ORDER_APPROVED = "order_approved"
    ORDER_COMPLETED = "order_completed"
    ORDER_EXPIRED = "order_expired"
    UNHANDLED = "unhandled"


@dataclass(frozen=True)
class PaymentEvent:
    provider: str
    event_id: str
    event_type: str
    kind: EventKind
    reference: str | None
    capture_id: str | None
    amount: Decimal | None = None
    currency: str | None = None
    resource_status: str | None = None
    payload: dict = field(default_factory=dict, repr=False)

    @property
    def provider_label(self) -> str:
        return "PayPal" if self.provider == PROVIDER_PAYPAL else "Stripe"


PAYPAL_EVENT_KINDS: dict[str, EventKind] = {
    "PAYMENT.CAPTURE.COMPLETED": EventKind.PAYMENT_COMPLETED,
    "PAYMENT.CAPTURE.DENIED": EventKind.PAYMENT_FAILED,
    "PAYMENT.CAPTURE.DECLINED": EventKind.PAYMENT_FAILED,
    "CHECKOUT.ORDER.APPROVED": EventKind.ORDER_APPROVED,
    "CHECKOUT.ORDER.COMPLETED": EventKind.ORDER_COMPLETED,
}

STRIPE_EVENT_KINDS: dict[str, EventKind] = {
    "checkout.session.async_payment_succeeded": EventKind.PAYMENT_COMPLETED,
    "payment_intent.succeeded": EventKind.PAYMENT_COMPLETED,
    "checkout.session.async_payment_failed": EventKind.PAYMENT_FAILED,
    "payment_intent.payment_failed": EventKind.PAYMENT_FAILED,
    "checkout.session.expired": EventKind.ORDER_EXPIRED,
}

STRIPE_PAID_STATUSES = {"paid", "no_payment_required"}


def _dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _str_or_none(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_decimal(value) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def normalize_paypal_event(payload: dict) -> PaymentEvent:
    event_id = _str_or_none(payload.get("id"))
    event_type = _str_or_none(payload.get("event_type"))
    if not event_id or not event_type:
        raise ValueError("Evento de PayPal invalido")

    resource = _dict(payload.get("resource"))
    amount = _dict(resource.get("amount"))
    return PaymentEvent(
        provider=PROVIDER_PAYPAL,
        event_id=event_id,
        event_type=event_type,
        kind=PAYPAL_EVENT_KINDS.get(event_type, EventKind.UNHANDLED),
        reference=_str_or_none(resource.get("custom_id")),
        capture_id=_str_or_none(resource.get("id")) or event_id,
        amount=_to_decimal(amount.get("value")),
        currency=_str_or_none(amount.get("currency_code")),
        resource_status=_str_or_none(resource.get("status")),
        payload=payload,
    )


def _stripe_kind(event_type: str, obj: dict) -> EventKind:
    if event_type == "checkout.session.completed":
        if str(obj.get("payment_status") or "").lower() in STRIPE_PAID_STATUSES:
            return EventKind.PAYMENT_COMPLETED
        return EventKind.ORDER_APPROVED
    return STRIPE_EVENT_KINDS.get(event_type, EventKind.UNHANDLED)


def normalize_stripe_event(payload: dict) -> PaymentEvent:
    event_id = _str_or_none(payload.get("id"))
    event_type = _str_or_none(payload.get("type"))
    if not event_id or not event_type:
        raise ValueError("Evento de Stripe invalido")

    obj = _dict(_dict(payload.get("data")).get("object"))
    metadata = _dict(obj.get("metadata"))
    reference = _str_or_none(obj.get("client_reference_id")) or _str_or_none(metadata.get("custom_id"))

    payment_intent = obj.get("payment_intent")
    if isinstance(payment_intent, dict):
        payment_intent = payment_intent.get("id")
    capture_id = _str_or_none(payment_intent) or _str_or_none(obj.get("id")) or event_id

    # Stripe expresa los importes en centavos.
    cents = obj.get("amount_total")
    if cents is None:
        cents = obj.get("amount_received", obj.get("amount"))
    amount = _to_decimal(cents)
    if amount is not None:
        amount = (amount / 100).quantize(Decimal("0.01"))

    return PaymentEvent(
        provider=PROVIDER_STRIPE,
        event_id=event_id,
        event_type=event_type,
        kind=_stripe_kind(event_type, obj),
        reference=reference,
        capture_id=capture_id,
        amount=amount,
        currency=(_str_or_none(obj.get("currency")) or "").upper() or None,
        resource_status=_str_or_none(obj.get("payment_status") or obj.get("status")),
        payload=payload,
    )


EVENT_NORMALIZERS = {
    PROVIDER_PAYPAL: normalize_paypal_event,
    PROVIDER_STRIPE: normalize_stripe_event,
}


def normalize_provider_event(provider: str, payload: dict) -> PaymentEvent:
    normalizer = EVENT_NORMALIZERS.get(provider)
    if normalizer is None:
        raise ValueError(f"Proveedor de pagos no soportado: {provider}")
    if not isinstance(payload, dict):
        raise ValueError("Payload de webhook invalido")
    return normalizer(payload)
