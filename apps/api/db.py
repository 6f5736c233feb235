from typing import Iterator

from psycopg import Connection
from psycopg_pool import ConnectionPool

from .settings import settings

# Opened by the app lifespan (see main.py) so importing this module never
# touches the network.
pool = ConnectionPool(
    conninfo=settings.DATABASE_URL,
    min_size=settings.DB_POOL_MIN_SIZE,
    max_size=settings.DB_POOL_MAX_SIZE,
    open=False,
)


def get_conn() -> Iterator[Connection]:
    """FastAPI dependency: borrow a pooled connection for one request.

    The pool commits on a clean return and rolls back if the request raised.
    """
    with pool.connection() as conn:
        yield conn


def db_ok() -> bool:
    try:
        with pool.connection() as conn, conn.cursor() as cur:
            cur.execute('select 1;')
            cur.fetchone()
        return True
    except Exception:
        return False
