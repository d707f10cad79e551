from typing import Literal

from pydantic import BaseModel


PaymentProvider = Literal["paypal", "stripe"]
PaymentEventKind = Literal[
    "payment_completed",
    "payment_failed",
    "order_approved",
    "order_completed",
    "order_expired",
    "unhandled",
]


class PaymentWebhookOut(BaseModel):
    ok: bool = True
    provider: PaymentProvider
    event_id: str
    event_type: str
    kind: PaymentEventKind
    duplicate: bool
    processed: bool
    status: Literal["received", "processed", "ignored"]
    workflow: str | None = None
    detail: str | None = None
