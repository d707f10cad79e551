from datetime import date, datetime, timedelta, timezone

from jose import jwt

from app.core.config import settings

ALGO = "HS256"

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def today_utc() -> date:
    return now_utc().date()

def create_access_token(sub: str) -> str:
    """Issue an access token. The site's auth service mints these in production; the
    payments API only verifies them against the shared ``JWT_SECRET``."""
    exp = now_utc() + timedelta(minutes=settings.JWT_ACCESS_MINUTES)
    payload = {"sub": sub, "type": "access", "exp": exp}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGO)

def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGO])
