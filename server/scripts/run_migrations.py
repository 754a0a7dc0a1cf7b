#!/usr/bin/env python3
"""Wait for the database and upgrade it to the latest Alembic revision.

Run before starting the API server or Celery workers.
"""
import logging
import sys
import time
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import OperationalError

# Add parent directory to path so we can import catalog modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from catalog.core.config import get_settings

logger = logging.getLogger(__name__)
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)s - %(message)s",
)


def wait_for_db(database_url: str, max_retries: int = 30, retry_interval: int = 2) -> bool:
    """Return True once a connection succeeds, False after ``max_retries`` failures."""
    logger.info("Waiting for database to become available...")
    engine = create_engine(database_url, pool_pre_ping=True)

    try:
        for attempt in range(1, max_retries + 1):
            try:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                logger.info("Database connection established")
                return True
            except OperationalError as e:
                if attempt == max_retries:
                    logger.error(f"Failed to connect to database after {max_retries} attempts: {e}")
                    return False
                logger.warning(f"Attempt {attempt}/{max_retries} failed, retrying in {retry_interval}s...")
                time.sleep(retry_interval)
    finally:
        engine.dispose()
    return False


def current_revision(database_url: str) -> str | None:
    engine = create_engine(database_url, pool_pre_ping=True)
    try:
        with engine.connect() as conn:
            if not inspect(conn).has_table("alembic_version"):
                return None
            return conn.execute(text("SELECT version_num FROM alembic_version")).scalar()
    finally:
        engine.dispose()


def run_migrations() -> bool:
    """Upgrade the configured database to ``head``."""
    alembic_ini_path = Path(__file__).parent.parent / "alembic.ini"
    if not alembic_ini_path.exists():
        logger.error(f"Alembic config not found at {alembic_ini_path}")
        return False

    settings = get_settings()
    alembic_cfg = Config(str(alembic_ini_path))
    alembic_cfg.set_main_option("script_location", str(alembic_ini_path.parent / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)

    try:
        logger.info("Current database revision: %s", current_revision(settings.database_url))
        command.upgrade(alembic_cfg, "head")
    except Exception as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        return False

    logger.info("Migrations completed successfully")
    return True


def main() -> int:
    settings = get_settings()

    if not wait_for_db(settings.database_url):
        logger.error("Database is not available. Exiting.")
        return 1

    if not run_migrations():
        logger.error("Migrations failed. Exiting.")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
