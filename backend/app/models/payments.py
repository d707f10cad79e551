from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class PaymentWebhookEvent(Base):
    __tablename__ = "payment_webhook_events"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    provider: Mapped[str] = mapped_column(sa.Text, nullable=False)
    event_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    event_type: Mapped[str] = mapped_column(sa.Text, nullable=False)
    kind: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    capture_id: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    reference: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    payload: Mapped[dict] = mapped_column(sa.JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(sa.Text, nullable=False, server_default="received")
    detail: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    received_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
    processed_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    __table_args__ = (
        sa.CheckConstraint("provider IN ('paypal','stripe')", name="ck_payment_webhook_events_provider"),
        sa.CheckConstraint(
            "status IN ('received','processed','ignored')",
            name="ck_payment_webhook_events_status",
        ),
        sa.UniqueConstraint("provider", "event_id", name="uq_payment_webhook_events_provider_event_id"),
        sa.Index("ix_payment_webhook_events_status_received", "status", sa.text("received_at DESC")),
    )


class PaymentCapture(Base):
    """One row per provider capture that already mutated the ledger."""

    __tablename__ = "payment_captures"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    provider: Mapped[str] = mapped_column(sa.Text, nullable=False)
    capture_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    workflow: Mapped[str] = mapped_column(sa.Text, nullable=False)
    reference: Mapped[str] = mapped_column(sa.Text, nullable=False)
    user_id: Mapped[int | None] = mapped_column(sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())

    __table_args__ = (
        sa.CheckConstraint("provider IN ('paypal','stripe')", name="ck_payment_captures_provider"),
        sa.UniqueConstraint("provider", "capture_id", name="uq_payment_captures_provider_capture_id"),
    )
