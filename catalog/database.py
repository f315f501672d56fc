import asyncio
import logging
import sqlite3
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type

from catalog.config import settings
from catalog.models import Record, new_id

logger = logging.getLogger(__name__)

# Default database file; LIBRARY_DB_FILE in the environment (or .env) overrides it.
DATABASE_FILE = settings.database_file


class StoreError(Exception):
    """The database itself failed (locked, unreachable, corrupt, ...)."""


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a connection to the SQLite database."""
    conn = sqlite3.connect(db_file or DATABASE_FILE, timeout=settings.database_timeout)
    conn.row_factory = sqlite3.Row
    return conn


def create_tables(db_file: Optional[str] = None) -> None:
    """Create the catalog tables if they do not exist."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS authors (
                id TEXT PRIMARY KEY,
                first_name TEXT NOT NULL,
                family_name TEXT NOT NULL,
                date_of_birth TEXT,
                date_of_death TEXT
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS genres (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL
            )
        """)
        # genre holds a JSON array of genre ids
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                author TEXT NOT NULL,
                summary TEXT NOT NULL,
                isbn TEXT NOT NULL,
                genre TEXT NOT NULL DEFAULT '[]'
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS book_instances (
                id TEXT PRIMARY KEY,
                book TEXT NOT NULL,
                imprint TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'Maintenance',
                due_back TEXT
            )
        """)

        # Dependents are looked up by reference before every guarded delete
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_author ON books(author)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_book_instances_book ON book_instances(book)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_book_instances_status ON book_instances(status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_authors_family_name ON authors(family_name)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_genres_name ON genres(name)")
        conn.commit()
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Initialize the database, creating the schema when needed."""
    create_tables(db_file)
    logger.info(f"Database ready: {db_file or DATABASE_FILE}")


def _where(kind: Type[Record], filter: Optional[Mapping[str, Any]]) -> Tuple[str, List[Any]]:
    if not filter:
        return "", []
    clauses = []
    params: List[Any] = []
    for name, value in filter.items():
        kind.check_field(name)
        if name in kind.multi_fields:
            clauses.append(f"EXISTS (SELECT 1 FROM json_each({kind.table}.{name}) WHERE json_each.value = ?)")
        else:
            clauses.append(f"{name} = ?")
        params.append(kind.column_value(name, value))
    return " WHERE " + " AND ".join(clauses), params


def _order_by(kind: Type[Record], sort: Optional[str]) -> str:
    if not sort:
        return ""
    direction = "ASC"
    name = sort
    if sort.startswith("-"):
        direction = "DESC"
        name = sort[1:]
    kind.check_field(name)
    return f" ORDER BY {name} {direction}"


class EntityStore:
    """Async access to the four entity tables.

    Every call opens its own connection on a worker thread and commits on its
    own. Nothing spans calls: a check followed by a write is two independent
    operations.
    """

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file or DATABASE_FILE

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as e:
            raise StoreError(f"Database operation failed: {e}") from e

    # ------------------------- Reads ------------------------- #
    async def get(self, kind: Type[Record], record_id: str) -> Optional[Record]:
        return await self._run(self._get, kind, record_id)

    async def list(self, kind: Type[Record], filter: Optional[Mapping[str, Any]] = None,
                   sort: Optional[str] = None) -> List[Record]:
        """Records of ``kind`` matching every ``filter`` entry, ordered by ``sort``."""
        where, params = _where(kind, filter)
        query = f"SELECT * FROM {kind.table}{where}{_order_by(kind, sort)}"
        return await self._run(self._select, kind, query, params)

    async def count(self, kind: Type[Record], filter: Optional[Mapping[str, Any]] = None) -> int:
        where, params = _where(kind, filter)
        return await self._run(self._count, f"SELECT COUNT(*) FROM {kind.table}{where}", params)

    # ------------------------- Writes ------------------------- #
    async def insert(self, kind: Type[Record], record: Record) -> str:
        """Insert ``record`` and return its identifier, assigning one if missing."""
        return await self._run(self._insert, kind, record)

    async def replace(self, kind: Type[Record], record_id: str, record: Record) -> Optional[Record]:
        """Overwrite the stored record at ``record_id``; None when there is none."""
        return await self._run(self._replace, kind, record_id, record)

    async def delete(self, kind: Type[Record], record_id: str) -> bool:
        return await self._run(self._delete, kind, record_id)

    # ------------------------- Blocking helpers ------------------------- #
    def _get(self, kind: Type[Record], record_id: str) -> Optional[Record]:
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(f"SELECT * FROM {kind.table} WHERE id = ?", (record_id,)).fetchone()
            return kind.from_dict(dict(row)) if row else None
        finally:
            conn.close()

    def _select(self, kind: Type[Record], query: str, params: List[Any]) -> List[Record]:
        conn = get_db_connection(self.db_file)
        try:
            rows = conn.execute(query, params).fetchall()
            return [kind.from_dict(dict(row)) for row in rows]
        finally:
            conn.close()

    def _count(self, query: str, params: List[Any]) -> int:
        conn = get_db_connection(self.db_file)
        try:
            return conn.execute(query, params).fetchone()[0]
        finally:
            conn.close()

    def _insert(self, kind: Type[Record], record: Record) -> str:
        if not record.id:
            record.id = new_id()
        row: Dict[str, Any] = record.to_dict()
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        conn = get_db_connection(self.db_file)
        try:
            conn.execute(f"INSERT INTO {kind.table} ({columns}) VALUES ({placeholders})", list(row.values()))
            conn.commit()
        finally:
            conn.close()
        return record.id

    def _replace(self, kind: Type[Record], record_id: str, record: Record) -> Optional[Record]:
        row = record.to_dict()
        row.pop("id")
        set_clause = ", ".join(f"{name} = ?" for name in row)
        conn = get_db_connection(self.db_file)
        try:
            cursor = conn.execute(
                f"UPDATE {kind.table} SET {set_clause} WHERE id = ?",
                list(row.values()) + [record_id],
            )
            conn.commit()
            if cursor.rowcount == 0:
                return None
        finally:
            conn.close()
        record.id = record_id
        return record

    def _delete(self, kind: Type[Record], record_id: str) -> bool:
        conn = get_db_connection(self.db_file)
        try:
            cursor = conn.execute(f"DELETE FROM {kind.table} WHERE id = ?", (record_id,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()
