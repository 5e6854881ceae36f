import sqlite3
from contextlib import contextmanager
from pathlib import Path

from .schema import SCHEMA_SQL, INDEXES_SQL, SCHEMA_VERSION

CONFIG_DIR = Path.home() / ".spellbee"
DB_PATH = CONFIG_DIR / "spellbee.db"
BUSY_TIMEOUT_SECONDS = 5.0

def init_db():
    """Initialize the database by creating tables and indexes if they don't exist."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    with get_conn() as conn:
        conn.executescript(SCHEMA_SQL)
        conn.executescript(INDEXES_SQL)
        ensure_room_version(conn)
        ensure_schema_version(conn)
        conn.commit()

def ensure_room_version(conn: sqlite3.Connection) -> None:
    """Ensure rooms table has the optimistic version column for existing installs."""
    cursor = conn.cursor()
    cursor.execute("PRAGMA table_info(rooms)")
    columns = {row[1] for row in cursor.fetchall()}
    if "version" not in columns:
        cursor.execute("ALTER TABLE rooms ADD COLUMN version INTEGER NOT NULL DEFAULT 0")

def get_schema_version(conn: sqlite3.Connection) -> int:
    """Read the SQLite schema version from PRAGMA user_version."""
    cursor = conn.cursor()
    cursor.execute("PRAGMA user_version")
    row = cursor.fetchone()
    return int(row[0]) if row else 0

def set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    """Set the SQLite schema version via PRAGMA user_version."""
    conn.execute(f"PRAGMA user_version = {int(version)}")

def ensure_schema_version(conn: sqlite3.Connection) -> None:
    """Ensure the current schema version is written to the database."""
    current = get_schema_version(conn)
    if current != SCHEMA_VERSION:
        set_schema_version(conn, SCHEMA_VERSION)

def get_schema_version_from_db() -> int:
    """Get the schema version from the on-disk database."""
    if not DB_PATH.exists():
        return SCHEMA_VERSION
    with get_conn() as conn:
        return get_schema_version(conn)

@contextmanager
def get_conn():
    """Context manager for SQLite connection, using row_factory for dict-like rows."""
    conn = sqlite3.connect(
        DB_PATH,
        detect_types=sqlite3.PARSE_DECLTYPES,
        check_same_thread=False,
        timeout=BUSY_TIMEOUT_SECONDS,
    )
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()
