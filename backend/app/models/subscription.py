from datetime import date, datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    plan_type: Mapped[str] = mapped_column(sa.Text, nullable=False)
    billing_cycle: Mapped[str] = mapped_column(sa.Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(sa.Numeric(10, 2), nullable=False)
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    status: Mapped[str] = mapped_column(sa.Text, nullable=False, server_default="active")
    source: Mapped[str] = mapped_column(sa.Text, nullable=False, server_default="purchase")
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
    updated_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())

    __table_args__ = (
        sa.CheckConstraint("billing_cycle IN ('monthly','yearly')", name="ck_subscriptions_billing_cycle"),
        sa.CheckConstraint("status IN ('active','cancelled')", name="ck_subscriptions_status"),
        sa.CheckConstraint("source IN ('purchase','gift','community_gift')", name="ck_subscriptions_source"),
        # A lo sumo una suscripcion activa por usuario.
        sa.Index(
            "uq_subscriptions_active_user",
            "user_id",
            unique=True,
            postgresql_where=sa.text("status = 'active'"),
            sqlite_where=sa.text("status = 'active'"),
        ),
        sa.Index("ix_subscriptions_status_end_date", "status", "end_date"),
    )
