"""Database engine setup and initialization."""

from pathlib import Path

import aiosqlite

from ..config import settings


def get_db_path(data_dir: Path | None = None) -> Path:
    """Get the database file path."""
    if data_dir is None:
        data_dir = settings.DATA_DIR
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / "trainlog.db"


async def init_db(db_path: Path | None = None) -> None:
    """Initialize the document store schema."""
    if db_path is None:
        db_path = get_db_path()

    async with aiosqlite.connect(db_path) as db:
        # One row per document; fields live in the JSON `data` column
        await db.execute("""
            CREATE TABLE IF NOT EXISTS documents (
                collection TEXT NOT NULL,
                id TEXT NOT NULL,
                seq INTEGER NOT NULL,
                data TEXT NOT NULL,
                PRIMARY KEY (collection, id)
            )
        """)

        # Indexes for the sibling-set and scope lookups
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_documents_log
            ON documents(collection, json_extract(data, '$.log_id'))
        """)
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_documents_author
            ON documents(collection, json_extract(data, '$.author_user_id'))
        """)

        await db.commit()
