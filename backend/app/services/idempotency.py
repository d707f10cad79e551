"""Capture-level idempotency.

A capture is claimed by inserting ``(provider, capture_id)`` into
``payment_captures`` in the same transaction as the ledger writes it guards.
The unique constraint makes the claim a compare-and-swap: the loser of a race
gets no row back and treats the capture as already applied.
"""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.orm import Session


def claim_capture(
    db: Session,
    *,
    provider: str,
    capture_id: str,
    workflow: str,
    reference: str,
    user_id: int | None = None,
) -> bool:
    inserted = db.execute(
        sa.text(
            """
            INSERT INTO payment_captures (provider, capture_id, workflow, reference, user_id, created_at)
            VALUES (:provider, :capture_id, :workflow, :reference, :user_id, CURRENT_TIMESTAMP)
            ON CONFLICT (provider, capture_id) DO NOTHING
            RETURNING id
            """
        ),
        {
            "provider": provider,
            "capture_id": capture_id,
            "workflow": workflow,
            "reference": reference,
            "user_id": user_id,
        },
    ).mappings().first()
    return inserted is not None

