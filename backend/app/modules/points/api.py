import logging

from fastapi import APIRouter, Depends, HTTPException, Query
import sqlalchemy as sa
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.db.session import get_db
from app.models.points import PointsTransaction
from app.models.user import User
from app.schemas.points import (
    PointsDonationIn,
    PointsDonationOut,
    PointsMeOut,
    PointsTransactionOut,
)
from app.services import announcements, ledger

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me", response_model=PointsMeOut)
def points_me(
    limit: int = Query(20, ge=1, le=100),
    current=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows = db.execute(
        sa.select(PointsTransaction)
        .where(PointsTransaction.user_id == current.id)
        .order_by(PointsTransaction.created_at.desc(), PointsTransaction.id.desc())
        .limit(limit)
    ).scalars().all()
    return PointsMeOut(
        user_id=current.id,
        points_balance=current.points_balance,
        points_earned_total=current.points_earned_total,
        recent_transactions=[
            PointsTransactionOut(
                id=r.id,
                transaction_type=r.transaction_type,
                points_amount=r.points_amount,
                description=r.description,
                created_at=r.created_at,
            )
            for r in rows
        ],
    )


@router.post("/donations", response_model=PointsDonationOut)
def donate_with_points(payload: PointsDonationIn, current=Depends(get_current_user), db: Session = Depends(get_db)):
    amount = payload.amount
    donor_name = payload.donor_name.strip()
    message = (payload.message or "").strip() or None

    tx = ledger.debit_points(
        db,
        user_id=current.id,
        points=payload.points_cost,
        description=f"Points donation: ${amount:.2f}",
    )
    if tx is None:
        db.rollback()
        raise HTTPException(400, "Saldo de puntos insuficiente")

    donation = ledger.record_completed_donation(
        db,
        user_id=current.id,
        donor_name=donor_name,
        donor_email=(payload.donor_email or "").strip() or None,
        amount=amount,
        message=message,
        is_anonymous=payload.is_anonymous,
    )
    shown_name = announcements.ANONYMOUS if payload.is_anonymous else donor_name
    announcements.emit(db, announcements.points_donation_message(shown_name, amount, message))
    db.commit()

    balance = db.execute(sa.select(User.points_balance).where(User.id == current.id)).scalar_one()
    logger.info("[POINTS] user=%s donated %s points (donation=%s)", current.id, payload.points_cost, donation.id)
    return PointsDonationOut(
        donation_id=donation.id,
        new_points_balance=balance,
        detail="Donacion con puntos registrada",
    )
