"""
Customer state store: the per-customer baseline the classifier compares against.

The processor only needs get / put / delete by customer id, plus an
append-only event log for the operator.  Two implementations:

  MemoryCustomerStore   dict + lock, lost on restart (tests, dry runs)
  SqliteCustomerStore   single SQLite file, see notifier/database.py

Writes to one customer id are last-write-wins.
"""
import copy
import logging
import threading
from datetime import datetime, timezone
from typing import Optional

from config import Config
from models.record import CustomerRecord

logger = logging.getLogger(__name__)


class CustomerStore:
    """
    Base interface for customer stores.

    Implementations raise notifier.errors.StoreFailure when the backing
    storage cannot be read or written.
    """

    name: str = "base"

    def get(self, customer_id: str) -> Optional[CustomerRecord]:
        raise NotImplementedError("CustomerStore.get() must be implemented by subclasses")

    def put(self, record: CustomerRecord) -> None:
        """Insert the record, or fully replace the existing one."""
        raise NotImplementedError("CustomerStore.put() must be implemented by subclasses")

    def delete(self, customer_id: str) -> bool:
        """Remove the record.  Returns True if one existed; deleting twice is a no-op."""
        raise NotImplementedError("CustomerStore.delete() must be implemented by subclasses")

    def log_event(
        self,
        customer_id: str,
        event: str,
        action: Optional[str] = None,
        detail: Optional[dict] = None,
    ) -> None:
        raise NotImplementedError("CustomerStore.log_event() must be implemented by subclasses")

    def recent_events(
        self,
        limit: int = 200,
        customer_id: Optional[str] = None,
    ) -> list[dict]:
        """Event log entries, newest first."""
        raise NotImplementedError("CustomerStore.recent_events() must be implemented by subclasses")


class MemoryCustomerStore(CustomerStore):
    """Process-local store.  Records are copied in and out so callers cannot mutate state."""

    name = "memory"

    def __init__(self) -> None:
        self._records: dict[str, CustomerRecord] = {}
        self._events: list[dict] = []
        self._lock = threading.Lock()

    def get(self, customer_id: str) -> Optional[CustomerRecord]:
        with self._lock:
            record = self._records.get(customer_id)
            return record.model_copy() if record else None

    def put(self, record: CustomerRecord) -> None:
        with self._lock:
            self._records[record.customer_id] = record.model_copy()

    def delete(self, customer_id: str) -> bool:
        with self._lock:
            return self._records.pop(customer_id, None) is not None

    def log_event(
        self,
        customer_id: str,
        event: str,
        action: Optional[str] = None,
        detail: Optional[dict] = None,
    ) -> None:
        with self._lock:
            self._events.append({
                "id":          len(self._events) + 1,
                "customer_id": customer_id,
                "timestamp":   datetime.now(timezone.utc).isoformat(),
                "event":       event,
                "action":      action,
                "detail":      copy.deepcopy(detail),
            })

    def recent_events(
        self,
        limit: int = 200,
        customer_id: Optional[str] = None,
    ) -> list[dict]:
        with self._lock:
            events = [
                dict(e) for e in reversed(self._events)
                if customer_id is None or e["customer_id"] == customer_id
            ]
        return events[:limit]

    def __len__(self) -> int:
        return len(self._records)


def build_store(config: Config) -> CustomerStore:
    """Instantiate the store selected by config.store_backend."""
    backend = (config.store_backend or "sqlite").lower()
    if backend == "memory":
        logger.info("Using in-memory customer store (state is lost on restart)")
        return MemoryCustomerStore()
    if backend == "sqlite":
        from .database import SqliteCustomerStore
        config.ensure_output_dir()
        return SqliteCustomerStore(config.db_path)
    raise ValueError(f"Unknown store backend {backend!r}. Must be 'sqlite' or 'memory'")
