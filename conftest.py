"""Pytest configuration and shared fixtures."""

import pytest
import asyncpg
from db.client import configured_host, init_db, close_db

# Load env vars
from dotenv import load_dotenv
load_dotenv()


# =============================================================================
# SAFETY CHECK: Prevent tests from running against production database
# =============================================================================

ALLOWED_DB_HOSTS = {"localhost", "127.0.0.1", "host.docker.internal", "db", "postgres"}


def pytest_configure(config):
    """Register custom markers and check database safety."""
    config.addinivalue_line("markers", "no_db: mark test to skip database setup")
    config.addinivalue_line("markers", "integration: mark test as integration test (needs Postgres)")
    config.addinivalue_line("markers", "online: mark test as online test (hits external APIs)")

    # Check the host the pool will actually use (DATABASE_URL takes precedence)
    db_host = configured_host()

    if db_host not in ALLOWED_DB_HOSTS:
        pytest.exit(
            f"\n\n"
            f"{'=' * 60}\n"
            f"SAFETY CHECK FAILED: Cannot run tests against production DB!\n"
            f"{'=' * 60}\n"
            f"\n"
            f"Current DB host: {db_host} (from DATABASE_URL or FARMSCOUT_DB_HOST)\n"
            f"Allowed hosts: {', '.join(sorted(ALLOWED_DB_HOSTS))}\n"
            f"\n"
            f"To run tests, unset DATABASE_URL and set FARMSCOUT_DB_HOST to 'localhost' in your .env\n"
            f"{'=' * 60}\n",
            returncode=1,
        )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="function", autouse=True)
async def setup_db(request):
    """Initialize database connection pool for tests that need it.

    Tests marked with @pytest.mark.no_db will skip database initialization.
    Tests that need the DB are skipped when Postgres is unreachable.
    """
    # Skip DB setup for tests marked with no_db
    if "no_db" in [marker.name for marker in request.node.iter_markers()]:
        yield
        return

    try:
        await init_db()
    except (OSError, asyncpg.PostgresError) as e:
        pytest.skip(f"Postgres unavailable: {e}")
    yield
    await close_db()
