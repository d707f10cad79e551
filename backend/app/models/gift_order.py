from datetime import datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class GiftOrder(Base):
    __tablename__ = "gift_orders"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    custom_id: Mapped[str] = mapped_column(sa.Text, nullable=False, unique=True)
    user_id: Mapped[int] = mapped_column(sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    recipients: Mapped[list] = mapped_column(sa.JSON, nullable=False, default=list)
    quantity: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    plan_type: Mapped[str] = mapped_column(sa.Text, nullable=False)
    billing_cycle: Mapped[str] = mapped_column(sa.Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(sa.Numeric(10, 2), nullable=False)
    gift_message: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    processed: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false())
    processed_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
    updated_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())

    __table_args__ = (
        sa.CheckConstraint("quantity >= 1 AND quantity <= 100", name="ck_gift_orders_quantity"),
        sa.CheckConstraint("billing_cycle IN ('monthly','yearly')", name="ck_gift_orders_billing_cycle"),
    )
