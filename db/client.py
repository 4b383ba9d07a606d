import os
from pathlib import Path
from contextlib import asynccontextmanager
from urllib.parse import urlparse
import asyncpg
import aiosql
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

SCHEMA = "farmscout"
SCHEMA_FILE = Path(__file__).parent / "schema.sql"


def _parse_database_url():
    """Parse DATABASE_URL into individual components."""
    url = os.getenv("DATABASE_URL")
    if not url:
        return None

    parsed = urlparse(url)
    return {
        "host": parsed.hostname,
        "port": parsed.port or 5432,
        "database": parsed.path.lstrip("/"),
        "user": parsed.username,
        "password": parsed.password,
    }


def db_config() -> dict:
    """Connection settings: DATABASE_URL first (production), then FARMSCOUT_DB_* (local dev)."""
    return _parse_database_url() or {
        "host": os.getenv("FARMSCOUT_DB_HOST", "localhost"),
        "port": int(os.getenv("FARMSCOUT_DB_PORT", "5432")),
        "database": os.getenv("FARMSCOUT_DB_NAME", "farmscout"),
        "user": os.getenv("FARMSCOUT_DB_USER"),
        "password": os.getenv("FARMSCOUT_DB_PASSWORD"),
    }


def configured_host() -> str:
    """Host the pool will connect to (DATABASE_URL wins over FARMSCOUT_DB_HOST)."""
    return db_config()["host"] or ""


# Load queries from SQL files
queries = aiosql.from_path(
    Path(__file__).parent / "queries",
    "asyncpg",
)

# Global connection pool
_pool = None


async def _init_connection(conn):
    """Initialize each connection with search_path."""
    await conn.execute(f"SET search_path TO {SCHEMA}, public")


async def init_db():
    """Initialize connection pool once at startup."""
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(
            **db_config(),
            min_size=1,
            max_size=10,
            command_timeout=60,
            max_inactive_connection_lifetime=300,
            init=_init_connection,
        )
    return _pool


@asynccontextmanager
async def get_conn():
    """Get connection from pool (recommended pattern from asyncpg docs)."""
    pool = await init_db()
    async with pool.acquire() as conn:
        yield conn


@asynccontextmanager
async def get_transaction():
    """Get connection with transaction context."""
    pool = await init_db()
    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn


async def apply_schema():
    """Create the schema, tables and indexes (idempotent)."""
    ddl = SCHEMA_FILE.read_text()
    async with get_conn() as conn:
        await conn.execute(ddl)


async def close_db():
    """Gracefully close all connections."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
