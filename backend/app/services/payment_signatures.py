from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from typing import Mapping

import httpx

from app.core.config import settings
from app.services.payment_events import PROVIDER_PAYPAL, PROVIDER_STRIPE

logger = logging.getLogger(__name__)

PAYPAL_SIGNATURE_HEADERS = {
    "auth_algo": "paypal-auth-algo",
    "cert_id": "paypal-cert-id",
    "transmission_id": "paypal-transmission-id",
    "transmission_time": "paypal-transmission-time",
    "transmission_sig": "paypal-transmission-sig",
}


def _lower_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {str(k).lower(): v for k, v in headers.items()}


def _parse_sig_header(signature_header: str | None) -> tuple[int, list[str]]:
    if not signature_header:
        return (0, [])
    timestamp = 0
    signatures: list[str] = []
    for part in signature_header.split(","):
        if "=" not in part:
            continue
        k, v = part.split("=", 1)
        key = k.strip().lower()
        val = v.strip()
        if key == "t":
            timestamp = int(val) if val.isdigit() else 0
        elif key == "v1":
            signatures.append(val)
    return (timestamp, signatures)


def _verify_hmac_signature(raw_body: bytes, signature_header: str | None, secret: str, max_age_seconds: int) -> bool:
    timestamp, signatures = _parse_sig_header(signature_header)
    if timestamp <= 0 or not signatures:
        return False
    now = int(time.time())
    if abs(now - timestamp) > max_age_seconds:
        return False
    payload = f"{timestamp}.".encode("utf-8") + raw_body
    expected = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return any(hmac.compare_digest(expected, s) for s in signatures)


def sign_stripe_payload(raw_body: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a ``Stripe-Signature`` header value for ``raw_body``."""
    ts = int(time.time()) if timestamp is None else int(timestamp)
    digest = hmac.new(secret.encode("utf-8"), f"{ts}.".encode("utf-8") + raw_body, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def verify_stripe_webhook(headers: Mapping[str, str], raw_body: bytes) -> bool:
    secret = settings.STRIPE_WEBHOOK_SECRET
    if not secret:
        if settings.PAYMENTS_REQUIRE_WEBHOOK_SIGNATURE:
            logger.error("[STRIPE] STRIPE_WEBHOOK_SECRET not configured and signatures are required")
            return False
        logger.warning("[STRIPE] STRIPE_WEBHOOK_SECRET not configured, processing webhook unverified")
        return True

    signature = _lower_headers(headers).get("stripe-signature")
    ok = _verify_hmac_signature(raw_body, signature, secret, int(settings.STRIPE_WEBHOOK_MAX_AGE_SECONDS))
    if not ok:
        logger.warning("[STRIPE] Webhook signature mismatch")
    return ok


async def _paypal_access_token(client: httpx.AsyncClient) -> str | None:
    response = await client.post(
        f"{settings.PAYPAL_API_BASE_URL.rstrip('/')}/v1/oauth2/token",
        auth=(settings.PAYPAL_CLIENT_ID or "", settings.PAYPAL_CLIENT_SECRET or ""),
        data={"grant_type": "client_credentials"},
        headers={"Accept": "application/json"},
    )
    if response.status_code >= 400:
        logger.error("[PAYPAL] OAuth token request failed: status=%s", response.status_code)
        return None
    return response.json().get("access_token")


async def verify_paypal_webhook(
    headers: Mapping[str, str],
    raw_body: bytes,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    webhook_id = settings.PAYPAL_WEBHOOK_ID
    if not webhook_id:
        if settings.PAYMENTS_REQUIRE_WEBHOOK_SIGNATURE:
            logger.error("[PAYPAL] PAYPAL_WEBHOOK_ID not configured and signatures are required")
            return False
        logger.warning("[PAYPAL] PAYPAL_WEBHOOK_ID not configured, processing webhook unverified")
        return True

    lowered = _lower_headers(headers)
    bundle = {field: lowered.get(header) for field, header in PAYPAL_SIGNATURE_HEADERS.items()}
    missing = [PAYPAL_SIGNATURE_HEADERS[field] for field, value in bundle.items() if not value]
    if missing:
        logger.warning("[PAYPAL] Missing signature headers: %s", ", ".join(missing))
        return False

    try:
        webhook_event = json.loads(raw_body)
    except ValueError:
        logger.warning("[PAYPAL] Webhook body is not valid JSON, cannot verify signature")
        return False

    try:
        async with httpx.AsyncClient(
            timeout=settings.PAYMENTS_HTTP_TIMEOUT_SECONDS,
            transport=transport,
        ) as client:
            access_token = await _paypal_access_token(client)
            if not access_token:
                return False
            response = await client.post(
                f"{settings.PAYPAL_API_BASE_URL.rstrip('/')}/v1/notifications/verify-webhook-signature",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json",
                },
                json={**bundle, "webhook_id": webhook_id, "webhook_event": webhook_event},
            )
            if response.status_code >= 400:
                logger.error("[PAYPAL] Signature verification rejected: status=%s", response.status_code)
                return False
            status = response.json().get("verification_status")
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("[PAYPAL] Signature verification request failed: %s", exc)
        return False

    if status != "SUCCESS":
        logger.warning("[PAYPAL] Signature verification status=%s", status)
        return False
    return True


async def verify_provider_webhook_request(
    provider: str,
    headers: Mapping[str, str],
    raw_body: bytes,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    if provider == PROVIDER_PAYPAL:
        return await verify_paypal_webhook(headers, raw_body, transport=transport)
    if provider == PROVIDER_STRIPE:
        return verify_stripe_webhook(headers, raw_body)
    return False
