"""
Error kinds raised while handling a customer webhook event.

  MissingRequiredField  The payload lacks a field this event needs (id, email).
                        Raised before any state is touched.
  DispatchFailure       The notification could not be sent.  State has already
                        been committed and is NOT rolled back.
  StoreFailure          The customer store could not be read or written.
                        Nothing about the event should be assumed persisted.
"""
from typing import Optional


class NotifierError(Exception):
    """Base class for all event-handling errors."""


class MissingRequiredField(NotifierError):
    def __init__(self, field: str, event: Optional[str] = None) -> None:
        self.field = field
        self.event = event
        where = f" for {event}" if event else ""
        super().__init__(f"Missing required field '{field}'{where}")


class DispatchFailure(NotifierError):
    def __init__(self, reason: str, result=None) -> None:
        self.reason = reason
        self.result = result    # EventResult describing what was committed
        super().__init__(f"Notification dispatch failed: {reason}")


class StoreFailure(NotifierError):
    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"Customer store {operation} failed: {reason}")
