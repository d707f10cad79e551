import sqlalchemy as sa
from sqlalchemy.orm import sessionmaker

from app.core.config import settings


def build_engine(database_url: str) -> sa.Engine:
    if database_url.startswith("sqlite"):
        return sa.create_engine(database_url, connect_args={"check_same_thread": False})
    return sa.create_engine(
        database_url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
        pool_recycle=settings.DB_POOL_RECYCLE_SECONDS,
        pool_pre_ping=True,
    )


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
