# market/data/database.py
from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from market.utils.logging import get_logger
from market.utils.retry import db_retry
from market.utils.settings import DATABASE_URL, DB_POOL_SIZE

logger = get_logger(__name__)

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_url(url: str) -> str:
    # hosted Postgres hands out postgres://, SQLAlchemy only knows postgresql://
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _serialize_sqlite_transactions(engine: Engine) -> None:
    """
    SQLite has no row locks, so SELECT ... FOR UPDATE compiles to a plain
    SELECT. Starting every transaction with BEGIN IMMEDIATE takes the
    database write lock up front, which gives checkouts the same
    serialization the row locks give on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # let the "begin" hook below emit BEGIN instead of pysqlite
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_engine(url: str = DATABASE_URL) -> Engine:
    url = normalize_url(url)

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        _serialize_sqlite_transactions(engine)
    else:
        engine = create_engine(url, pool_size=DB_POOL_SIZE, pool_pre_ping=True)

    return engine


engine = make_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@db_retry()
def init_db(bind: Engine | None = None) -> None:
    # models have to be imported so they are registered in Base.metadata
    import market.data.models  # noqa: F401

    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    logger.info("Database ready", tables=sorted(Base.metadata.tables))
