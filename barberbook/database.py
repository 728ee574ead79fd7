import logging
import time

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL, DB_POOL_RECYCLE, DB_POOL_SIZE, DB_SLOW_QUERY_SECONDS

logger = logging.getLogger(__name__)


def build_engine(database_url: str):
    """SQLite for local dev and tests, a pre-pinged pool for PostgreSQL"""
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_recycle=DB_POOL_RECYCLE,
        pool_size=DB_POOL_SIZE,
    )


def watch_slow_queries(engine, threshold_seconds: float) -> None:
    """Warn about statements slower than threshold_seconds"""

    @event.listens_for(engine, "before_cursor_execute")
    def _started(conn, _cursor, _statement, _parameters, _context, _executemany):
        conn.info.setdefault("booking_query_started", []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def _finished(conn, _cursor, statement, _parameters, _context, _executemany):
        elapsed = time.perf_counter() - conn.info["booking_query_started"].pop()
        if elapsed > threshold_seconds:
            logger.warning(f"🐌 Slow query ({elapsed:.2f}s): {statement[:200]}")


engine = build_engine(DATABASE_URL)
logger.info(f"✅ Database engine ready ({engine.dialect.name})")

# 0 disables the warning
if DB_SLOW_QUERY_SECONDS > 0:
    watch_slow_queries(engine, DB_SLOW_QUERY_SECONDS)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
