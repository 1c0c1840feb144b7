"""sqlite3 persistence for the marketplace.

Every entity is stored as a JSON document keyed by its id. A ``Session`` is one
unit of work: it runs under the database lock inside a single transaction that
commits when the block exits normally and rolls back when it raises.

    with database.session() as session:
        booking = session.bookings.get(booking_id)
        session.bookings.save(booking.model_copy(update={"status": "confirmed"}))
"""

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Generic, Iterator, List, Optional, Type, TypeVar

from pydantic import BaseModel

from lankatours.models import (
    Booking,
    BookingStatusChange,
    Guide,
    Review,
    ReviewEligibility,
    User,
    Vehicle,
)
from lankatours.services.errors import ConflictError

ModelT = TypeVar("ModelT", bound=BaseModel)

TABLES = (
    "users",
    "guides",
    "vehicles",
    "bookings",
    "booking_status_history",
    "reviews",
    "review_eligibility",
)

# (index name, table, json field)
UNIQUE_FIELDS = (
    ("ux_users_email", "users", "email"),
    ("ux_guides_owner", "guides", "owner_user_id"),
    ("ux_guides_guide_id", "guides", "guide_id"),
    ("ux_vehicles_owner", "vehicles", "owner_user_id"),
    ("ux_vehicles_plate", "vehicles", "license_plate"),
    ("ux_reviews_booking", "reviews", "booking_id"),
    ("ux_review_eligibility_booking", "review_eligibility", "booking_id"),
)

LOOKUP_FIELDS = (
    ("ix_bookings_tourist", "bookings", "tourist_id"),
    ("ix_bookings_provider", "bookings", "provider_user_id"),
    ("ix_history_booking", "booking_status_history", "booking_id"),
    ("ix_reviews_target", "reviews", "target_id"),
    ("ix_reviews_author", "reviews", "author_id"),
    ("ix_reviews_target_owner", "reviews", "target_owner_id"),
)


def _sql_value(value: Any) -> Any:
    # json_extract yields 1/0 for JSON booleans.
    if isinstance(value, bool):
        return 1 if value else 0
    return value


class Repository(Generic[ModelT]):
    def __init__(self, conn: sqlite3.Connection, table: str, model: Type[ModelT]) -> None:
        self._conn = conn
        self.table = table
        self.model = model

    def _load(self, row: sqlite3.Row) -> ModelT:
        return self.model.model_validate_json(row["data"])

    def get(self, entity_id: str) -> Optional[ModelT]:
        row = self._conn.execute(f"SELECT data FROM {self.table} WHERE id = ?", (entity_id,)).fetchone()
        return self._load(row) if row else None

    def find(self, **equals: Any) -> List[ModelT]:
        """Return entities whose fields equal the given values, oldest first."""
        clauses: List[str] = []
        params: List[Any] = []
        for field, value in equals.items():
            if field not in self.model.model_fields:
                raise KeyError(f"{self.model.__name__} has no field {field!r}")
            clauses.append(f"json_extract(data, '$.{field}') = ?")
            params.append(_sql_value(value))
        query = f"SELECT data FROM {self.table}"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY seq"
        rows = self._conn.execute(query, tuple(params)).fetchall()
        return [self._load(row) for row in rows]

    def first(self, **equals: Any) -> Optional[ModelT]:
        matches = self.find(**equals)
        return matches[0] if matches else None

    def insert(self, entity: ModelT) -> ModelT:
        try:
            self._conn.execute(
                f"INSERT INTO {self.table} (id, data) VALUES (?, ?)",
                (entity.id, entity.model_dump_json()),
            )
        except sqlite3.IntegrityError as exc:
            raise ConflictError(f"{self.model.__name__} already exists") from exc
        return entity

    def save(self, entity: ModelT) -> ModelT:
        try:
            self._conn.execute(
                f"""
                INSERT INTO {self.table} (id, data) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET data = excluded.data
                """,
                (entity.id, entity.model_dump_json()),
            )
        except sqlite3.IntegrityError as exc:
            raise ConflictError(f"{self.model.__name__} conflicts with an existing record") from exc
        return entity

    def delete(self, entity_id: str) -> bool:
        cursor = self._conn.execute(f"DELETE FROM {self.table} WHERE id = ?", (entity_id,))
        return cursor.rowcount > 0


class Session:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.users = Repository(conn, "users", User)
        self.guides = Repository(conn, "guides", Guide)
        self.vehicles = Repository(conn, "vehicles", Vehicle)
        self.bookings = Repository(conn, "bookings", Booking)
        self.booking_history = Repository(conn, "booking_status_history", BookingStatusChange)
        self.reviews = Repository(conn, "reviews", Review)
        self.eligibility = Repository(conn, "review_eligibility", ReviewEligibility)


@dataclass
class Database:
    db_path: str

    def __post_init__(self) -> None:
        self._lock = Lock()
        path = Path(self.db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = str(path)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._lock:
            conn = self._connect()
            try:
                with conn:
                    for table in TABLES:
                        conn.execute(
                            f"""
                            CREATE TABLE IF NOT EXISTS {table} (
                                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                                id TEXT NOT NULL UNIQUE,
                                data TEXT NOT NULL
                            )
                            """
                        )
                    for name, table, field in UNIQUE_FIELDS:
                        conn.execute(
                            f"CREATE UNIQUE INDEX IF NOT EXISTS {name} ON {table} (json_extract(data, '$.{field}'))"
                        )
                    for name, table, field in LOOKUP_FIELDS:
                        conn.execute(
                            f"CREATE INDEX IF NOT EXISTS {name} ON {table} (json_extract(data, '$.{field}'))"
                        )
            finally:
                conn.close()

    @contextmanager
    def session(self) -> Iterator[Session]:
        with self._lock:
            conn = self._connect()
            try:
                with conn:
                    # Reserve the write lock up front so reads and writes share one transaction.
                    conn.execute("BEGIN IMMEDIATE")
                    yield Session(conn)
            finally:
                conn.close()
