import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.api.deps import get_paypal_transport
from app.db.session import get_db
from app.schemas.payments import PaymentWebhookOut
from app.services.payment_events import VALID_PROVIDERS
from app.services.payment_signatures import verify_provider_webhook_request
from app.services.payments import ingest_payment_event

logger = logging.getLogger(__name__)

router = APIRouter()


def _ingest_and_commit(db: Session, provider: str, payload: dict) -> dict:
    # Sesion sincrona: corre en el threadpool, fuera del event loop.
    try:
        out = ingest_payment_event(db, provider=provider, payload=payload)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return out


@router.post("/{provider}", response_model=PaymentWebhookOut)
async def webhook_ingest(
    provider: str,
    request: Request,
    db: Session = Depends(get_db),
    transport=Depends(get_paypal_transport),
):
    provider = provider.strip().lower()
    if provider not in VALID_PROVIDERS:
        raise HTTPException(404, "Proveedor de pagos desconocido")

    raw = await request.body()
    if not await verify_provider_webhook_request(provider, request.headers, raw, transport=transport):
        logger.warning("[PAYMENTS] rejected %s webhook: invalid signature", provider)
        raise HTTPException(401, "Firma de webhook invalida")

    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(400, "Payload JSON invalido")

    if not isinstance(payload, dict):
        raise HTTPException(400, "Payload JSON invalido")

    try:
        out = await run_in_threadpool(_ingest_and_commit, db, provider, payload)
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    except Exception:
        logger.exception("[PAYMENTS] failed to process %s webhook", provider)
        raise HTTPException(500, "Error procesando webhook")

    return PaymentWebhookOut(**out)
