"""Schema versioning for the AnchorWeek database.

The applied version lives in SQLite's ``user_version`` pragma. Each entry of
``MIGRATIONS`` moves the schema one version forward and runs at most once.
"""

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


async def _create_tables(db: aiosqlite.Connection) -> None:
    await db.executescript(SCHEMA_PATH.read_text())


async def _index_app_data_by_update(db: aiosqlite.Connection) -> None:
    await db.execute(
        "CREATE INDEX IF NOT EXISTS idx_app_data_updated ON app_data (user_id, updated_at)"
    )


# Version N is reached by running MIGRATIONS[N - 1]
MIGRATIONS = [
    _create_tables,
    _index_app_data_by_update,
]

SCHEMA_VERSION = len(MIGRATIONS)


async def get_schema_version(db: aiosqlite.Connection) -> int:
    """Read the schema version recorded in the database file."""
    async with db.execute("PRAGMA user_version") as cursor:
        row = await cursor.fetchone()
        return row[0]


async def run_migrations(db_path: Path) -> int:
    """Bring the database at ``db_path`` up to the current schema.

    Returns:
        Number of migrations applied
    """
    async with aiosqlite.connect(db_path) as db:
        await db.execute("PRAGMA foreign_keys = ON")
        version = await get_schema_version(db)

        if version > SCHEMA_VERSION:
            raise RuntimeError(
                f"Database {db_path} has schema version {version}, "
                f"newer than supported version {SCHEMA_VERSION}"
            )

        for number, migration in enumerate(MIGRATIONS[version:], start=version + 1):
            await migration(db)
            # PRAGMA does not take bound parameters
            await db.execute(f"PRAGMA user_version = {number}")
            await db.commit()
            logger.info(f"Applied migration {number} ({migration.__name__.lstrip('_')})")

        applied = SCHEMA_VERSION - version
        if applied == 0:
            logger.debug(f"Database at {db_path} is up to date (version {version})")
        return applied
