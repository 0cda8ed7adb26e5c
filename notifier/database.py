"""
SQLite persistence layer for customer address state.

A single database file (output/notifier.db) that:

  - Holds one row per customer id with the last-seen address fingerprints,
    so a restart does not turn every customer into a first observation
  - Keeps deletion tombstones so a repeated deletion webhook is recognised
  - Records every handled webhook in an append-only event log for the operator

Every public method raises StoreFailure if SQLite reports an error; the
caller treats that as fatal for the event being handled.
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from models.record import CustomerRecord
from .errors import StoreFailure
from .store import CustomerStore

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS customers (
    customer_id         TEXT PRIMARY KEY,

    -- SHA-256 hex of the default / extra address sets; '' means none
    default_fingerprint TEXT    NOT NULL DEFAULT '',
    extra_fingerprint   TEXT    NOT NULL DEFAULT '',
    extra_count         INTEGER,

    deleted             INTEGER NOT NULL DEFAULT 0,
    notified            INTEGER NOT NULL DEFAULT 0,

    updated_at          TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS event_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id TEXT    NOT NULL,
    timestamp   TEXT    NOT NULL,   -- ISO-8601 UTC
    event       TEXT    NOT NULL,   -- customer_created | addresses_synced | account_deleted
    action      TEXT,               -- classifier action for addresses_synced
    detail      TEXT                -- optional JSON blob (recipients, errors, skips)
);

CREATE INDEX IF NOT EXISTS idx_event_customer  ON event_log (customer_id);
CREATE INDEX IF NOT EXISTS idx_event_timestamp ON event_log (timestamp DESC);
"""


def _row_to_record(row: sqlite3.Row) -> CustomerRecord:
    return CustomerRecord(
        customer_id=row["customer_id"],
        default_fingerprint=row["default_fingerprint"] or "",
        extra_fingerprint=row["extra_fingerprint"] or "",
        extra_count=row["extra_count"],
        deleted=bool(row["deleted"]),
        notified=bool(row["notified"]),
        updated_at=row["updated_at"],
    )


class SqliteCustomerStore(CustomerStore):
    """Thin wrapper around an SQLite database file for customer state."""

    name = "sqlite"

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self, operation: str):
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=30)
        except sqlite3.Error as exc:
            raise StoreFailure(operation, str(exc)) from exc
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error("SQLite %s failed on %s: %s", operation, self.db_path, exc)
            raise StoreFailure(operation, str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._conn("init") as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Database schema ready: %s", self.db_path)

    # ------------------------------------------------------------------
    # Customer records
    # ------------------------------------------------------------------

    def get(self, customer_id: str) -> Optional[CustomerRecord]:
        with self._conn("get") as conn:
            row = conn.execute(
                "SELECT * FROM customers WHERE customer_id=?", (customer_id,)
            ).fetchone()
        return _row_to_record(row) if row else None

    def put(self, record: CustomerRecord) -> None:
        with self._conn("put") as conn:
            conn.execute(
                """
                INSERT INTO customers (
                    customer_id, default_fingerprint, extra_fingerprint,
                    extra_count, deleted, notified, updated_at
                ) VALUES (
                    :customer_id, :default_fingerprint, :extra_fingerprint,
                    :extra_count, :deleted, :notified, :updated_at
                )
                ON CONFLICT(customer_id) DO UPDATE SET
                    default_fingerprint = excluded.default_fingerprint,
                    extra_fingerprint   = excluded.extra_fingerprint,
                    extra_count         = excluded.extra_count,
                    deleted             = excluded.deleted,
                    notified            = excluded.notified,
                    updated_at          = excluded.updated_at
                """,
                {
                    "customer_id":         record.customer_id,
                    "default_fingerprint": record.default_fingerprint,
                    "extra_fingerprint":   record.extra_fingerprint,
                    "extra_count":         record.extra_count,
                    "deleted":             int(record.deleted),
                    "notified":            int(record.notified),
                    "updated_at":          record.updated_at
                                           or datetime.now(timezone.utc).isoformat(),
                },
            )
        logger.debug(
            "DB upserted customer %s  deleted=%s notified=%s",
            record.customer_id, record.deleted, record.notified,
        )

    def delete(self, customer_id: str) -> bool:
        with self._conn("delete") as conn:
            conn.execute("DELETE FROM customers WHERE customer_id = ?", (customer_id,))
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    def count(self) -> int:
        with self._conn("count") as conn:
            return conn.execute("SELECT COUNT(*) FROM customers").fetchone()[0]

    # ------------------------------------------------------------------
    # Event log
    # ------------------------------------------------------------------

    def log_event(
        self,
        customer_id: str,
        event: str,
        action: Optional[str] = None,
        detail: Optional[dict] = None,
    ) -> None:
        """Append one entry to the event log."""
        with self._conn("log_event") as conn:
            conn.execute(
                """INSERT INTO event_log (customer_id, timestamp, event, action, detail)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    customer_id,
                    datetime.now(timezone.utc).isoformat(),
                    event,
                    action,
                    json.dumps(detail) if detail is not None else None,
                ),
            )

    def recent_events(
        self,
        limit: int = 200,
        customer_id: Optional[str] = None,
    ) -> list[dict]:
        """Return recent event log entries, newest first."""
        where = "WHERE customer_id = ?" if customer_id else ""
        params: list = [customer_id] if customer_id else []
        params.append(limit)
        with self._conn("recent_events") as conn:
            rows = conn.execute(
                f"""SELECT id, customer_id, timestamp, event, action, detail
                    FROM event_log
                    {where}
                    ORDER BY timestamp DESC, id DESC
                    LIMIT ?""",
                params,
            ).fetchall()
        events = []
        for row in rows:
            entry = dict(row)
            entry["detail"] = json.loads(entry["detail"]) if entry["detail"] else None
            events.append(entry)
        return events
