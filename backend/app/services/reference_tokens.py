"""Reference tokens carried through the provider checkout.

Formats::

    points_<userId>_<packageId>_<unixTs>
    sub_<userId>_<planType>_<billingCycle>
    gift_<opaqueId>
    <donationId>

Package ids and plan types may contain underscores (``package_1000``), so the
user id is always the second segment, the timestamp or billing cycle the last
one, and everything in between is the package id or plan type.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.services.payment_errors import MalformedReferenceError

POINTS_PREFIX = "points"
SUBSCRIPTION_PREFIX = "sub"
GIFT_PREFIX = "gift"


@dataclass(frozen=True)
class PointsPurchaseRef:
    user_id: int
    package_id: str
    issued_at: int


@dataclass(frozen=True)
class GiftOrderRef:
    custom_id: str


@dataclass(frozen=True)
class SubscriptionRef:
    user_id: int
    plan_type: str
    billing_cycle: str


@dataclass(frozen=True)
class DonationRef:
    donation_id: int


ReferenceToken = PointsPurchaseRef | GiftOrderRef | SubscriptionRef | DonationRef


def _parse_int(value: str, *, field: str, token: str) -> int:
    if not value or not value.isdigit():
        raise MalformedReferenceError(f"{field} invalido en referencia: {token!r}")
    return int(value)


def _split_composite(token: str, *, min_parts: int) -> tuple[int, str, str]:
    parts = token.split("_")
    if len(parts) < min_parts:
        raise MalformedReferenceError(f"Referencia incompleta: {token!r}")
    user_id = _parse_int(parts[1], field="user_id", token=token)
    middle = "_".join(parts[2:-1])
    last = parts[-1]
    if not middle or not last:
        raise MalformedReferenceError(f"Referencia incompleta: {token!r}")
    return user_id, middle, last


def decode_reference(token: str | None) -> ReferenceToken:
    raw = (token or "").strip()
    if not raw:
        raise MalformedReferenceError("Referencia vacia")

    prefix = raw.split("_", 1)[0]
    if prefix == POINTS_PREFIX:
        user_id, package_id, issued_at = _split_composite(raw, min_parts=4)
        return PointsPurchaseRef(
            user_id=user_id,
            package_id=package_id,
            issued_at=_parse_int(issued_at, field="timestamp", token=raw),
        )
    if prefix == SUBSCRIPTION_PREFIX:
        user_id, plan_type, billing_cycle = _split_composite(raw, min_parts=4)
        return SubscriptionRef(user_id=user_id, plan_type=plan_type, billing_cycle=billing_cycle)
    if prefix == GIFT_PREFIX:
        if len(raw.split("_")) < 2 or not raw[len(GIFT_PREFIX) + 1:]:
            raise MalformedReferenceError(f"Referencia de regalo incompleta: {raw!r}")
        # El custom_id completo es la clave de gift_orders.
        return GiftOrderRef(custom_id=raw)

    return DonationRef(donation_id=_parse_int(raw, field="donation_id", token=raw))


def encode_points_reference(user_id: int, package_id: str, issued_at: int) -> str:
    return f"{POINTS_PREFIX}_{int(user_id)}_{package_id}_{int(issued_at)}"


def encode_subscription_reference(user_id: int, plan_type: str, billing_cycle: str) -> str:
    return f"{SUBSCRIPTION_PREFIX}_{int(user_id)}_{plan_type}_{billing_cycle}"


def encode_gift_reference(opaque_id: str) -> str:
    if not opaque_id:
        raise MalformedReferenceError("Referencia de regalo vacia")
    return f"{GIFT_PREFIX}_{opaque_id}"


def encode_donation_reference(donation_id: int) -> str:
    return str(int(donation_id))


def encode_reference(ref: ReferenceToken) -> str:
    if isinstance(ref, PointsPurchaseRef):
        return encode_points_reference(ref.user_id, ref.package_id, ref.issued_at)
    if isinstance(ref, SubscriptionRef):
        return encode_subscription_reference(ref.user_id, ref.plan_type, ref.billing_cycle)
    if isinstance(ref, GiftOrderRef):
        return ref.custom_id
    return encode_donation_reference(ref.donation_id)
