from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.chat import ChatMessage

ANONYMOUS = "Anonymous"


def emit(db: Session, message: str) -> ChatMessage:
    row = ChatMessage(
        user_id=None,
        username=settings.CHAT_SYSTEM_USERNAME,
        message=message,
        platform=settings.CHAT_PLATFORM,
        is_subscriber=True,
    )
    db.add(row)
    db.flush()
    return row


def display_name(name: str | None) -> str:
    return name or ANONYMOUS


def donation_message(donor_name: str | None, amount: Decimal, message: str | None) -> str:
    donor = display_name(donor_name)
    if message:
        return f'💰 {donor} donated ${amount:.2f}: "{message}"'
    return f"💰 {donor} donated ${amount:.2f}! Thank you for the support! 🙏"


def points_donation_message(donor_name: str | None, amount: Decimal, message: str | None) -> str:
    donor = display_name(donor_name)
    if message:
        return f'💰⚡ {donor} donated ${amount:.2f} using points: "{message}"'
    return f"💰⚡ {donor} donated ${amount:.2f} using points! Thank you for the support! 🙏"


def subscription_message(name: str | None) -> str:
    return f"🎉 {display_name(name)} just subscribed! Welcome to the premium community! 👑"


def gift_new_message(recipient: str | None, gifter: str | None, gift_message: str | None) -> str:
    text = (
        f"🎁 {display_name(recipient)} received a premium subscription gift from {display_name(gifter)}! "
        "Welcome to the premium community! 👑"
    )
    if gift_message:
        text += f' Gift message: "{gift_message}"'
    return text


def gift_extension_message(recipient: str | None, gifter: str | None, months: int) -> str:
    unit = "month" if months == 1 else "months"
    return (
        f"🎁 {display_name(recipient)} received a subscription extension from {display_name(gifter)}! "
        f"{months} more {unit} added! 👑"
    )


def community_gift_message(gifter: str | None, count: int) -> str:
    plural = "" if count == 1 else "s"
    return (
        f"🎉 {display_name(gifter)} gifted {count} community subscription{plural}! "
        "Thank you for supporting the community! 🙏"
    )
