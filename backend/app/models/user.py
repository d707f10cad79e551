from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base

class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    name: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    email: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    is_subscriber: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false())
    is_banned: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false())
    points_balance: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="0")
    points_earned_total: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
    updated_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())

    __table_args__ = (
        sa.CheckConstraint("points_balance >= 0", name="ck_users_points_balance_non_negative"),
        sa.Index("ix_users_is_banned", "is_banned"),
    )
