from datetime import datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Donation(Base):
    __tablename__ = "donations"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    donor_name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    donor_email: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    amount: Mapped[Decimal] = mapped_column(sa.Numeric(10, 2), nullable=False)
    message: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    is_anonymous: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false())
    status: Mapped[str] = mapped_column(sa.Text, nullable=False, server_default="pending")
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
    updated_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())

    __table_args__ = (
        sa.CheckConstraint("status IN ('pending','completed')", name="ck_donations_status"),
        sa.CheckConstraint("amount > 0", name="ck_donations_amount_positive"),
        sa.Index("ix_donations_status_created", "status", sa.text("created_at DESC")),
    )
