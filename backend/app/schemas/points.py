from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator


class PointsTransactionOut(BaseModel):
    id: int
    transaction_type: str
    points_amount: int
    description: str
    created_at: datetime


class PointsMeOut(BaseModel):
    user_id: int
    points_balance: int
    points_earned_total: int
    recent_transactions: list[PointsTransactionOut]


class PointsDonationIn(BaseModel):
    donor_name: str = Field(..., min_length=1, max_length=120)
    donor_email: str | None = Field(default=None, max_length=255)
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    points_cost: int = Field(..., gt=0)
    message: str | None = Field(default=None, max_length=500)
    is_anonymous: bool = False

    @field_validator("donor_name")
    @classmethod
    def validate_donor_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("donor_name no puede estar vacio")
        return v


class PointsDonationOut(BaseModel):
    ok: bool = True
    donation_id: int
    new_points_balance: int
    detail: str
