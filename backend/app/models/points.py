from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class PointsTransaction(Base):
    """Append-only points ledger. Rows are never updated or deleted."""

    __tablename__ = "points_transactions"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    transaction_type: Mapped[str] = mapped_column(sa.Text, nullable=False)
    points_amount: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    description: Mapped[str] = mapped_column(sa.Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())

    __table_args__ = (
        sa.CheckConstraint("transaction_type IN ('purchase','donation')", name="ck_points_transactions_type"),
        sa.Index("ix_points_transactions_user_created", "user_id", sa.text("created_at DESC")),
    )
