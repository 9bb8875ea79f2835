from contextlib import contextmanager

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from bookkeeping.core.config import settings
from bookkeeping.core.logging import get_logger

logger = get_logger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS transactions (
        id SERIAL PRIMARY KEY,
        date DATE NOT NULL,
        category VARCHAR(16) NOT NULL CHECK (category IN ('Income', 'Expense')),
        subcategory VARCHAR(255) NOT NULL,
        sender VARCHAR(255) NOT NULL,
        receiver VARCHAR(255) NOT NULL,
        remarks TEXT NOT NULL DEFAULT '',
        amount NUMERIC(14, 2) NOT NULL CHECK (amount > 0),
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS transactions_date_idx ON transactions (date DESC, created_at DESC)",
    """
    CREATE TABLE IF NOT EXISTS entities (
        id SERIAL PRIMARY KEY,
        entity_name VARCHAR(255) NOT NULL,
        entity_type VARCHAR(16) NOT NULL CHECK (entity_type IN ('sender', 'receiver', 'both')),
        IsDeleted CHAR(1) NOT NULL DEFAULT 'N',
        ModifiedDate TIMESTAMPTZ,
        IsTrial CHAR(1) NOT NULL DEFAULT 'N',
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS saved_senders (
        id SERIAL PRIMARY KEY,
        sender VARCHAR(255) UNIQUE NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
)

DB_POOL = ConnectionPool(
    settings.database_url,
    min_size=settings.db_pool_min,
    max_size=settings.db_pool_max,
    timeout=settings.db_pool_timeout,
    max_waiting=settings.db_pool_max_waiting,
    open=False,
    kwargs={"row_factory": dict_row},
)


def ensure_schema(cur) -> None:
    for statement in SCHEMA_STATEMENTS:
        cur.execute(statement)


def init_database() -> None:
    DB_POOL.open()
    with DB_POOL.connection() as conn, conn.cursor() as cur:
        ensure_schema(cur)
        conn.commit()
    logger.info("Database ready (pool %s-%s)", settings.db_pool_min, settings.db_pool_max)


def close_database() -> None:
    DB_POOL.close()


@contextmanager
def db_conn():
    with DB_POOL.connection() as conn:
        yield conn
