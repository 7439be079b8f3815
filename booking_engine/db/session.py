# booking_engine/db/session.py

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from booking_engine.core.config import settings

_connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # SQLite connections are shared across FastAPI's threadpool workers.
    _connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.DATABASE_URL, pool_pre_ping=True, connect_args=_connect_args
)

# SessionLocal is a factory for creating new Session objects.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        # Always close the session, even if the endpoint raised.
        db.close()
