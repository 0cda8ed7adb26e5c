from pydantic import BaseModel, Field
from typing import Optional, List, Literal


ActionType = Literal[
    "no_change",
    # Default address
    "added_default_address",
    "changed_default_address",
    "removed_default_address",
    # Extra addresses
    "added_extra_address",
    "removed_extra_address",
    "updated_extra_address",
]

EventType = Literal[
    "customer_created",
    "addresses_synced",
    "account_deleted",
]


class EventResult(BaseModel):
    """
    The outcome of handling one inbound webhook event.

    Returned to the HTTP layer and written to the store's event log.
    """
    event: EventType
    customer_id: str
    action: Optional[ActionType] = None     # Set for addresses_synced only
    first_observation: bool = False         # Baseline recorded, nothing compared
    dispatched: bool = False                # At least one notification went out
    recipients: List[str] = Field(default_factory=list)
    skipped_reason: Optional[str] = None    # e.g. "already_deleted", "already_notified"
    error: Optional[str] = None             # Dispatch failure detail

    @property
    def summary(self) -> str:
        """One-line human description for logs and HTTP responses."""
        if self.error:
            return f"{self.event} for {self.customer_id}: notification failed ({self.error})"
        if self.skipped_reason:
            return f"{self.event} for {self.customer_id}: skipped ({self.skipped_reason})"
        if self.first_observation:
            return f"{self.event} for {self.customer_id}: baseline recorded"
        if self.action == "no_change":
            return f"{self.event} for {self.customer_id}: no address change"
        if self.action:
            return f"{self.event} for {self.customer_id}: {self.action} notified"
        return f"{self.event} for {self.customer_id}: notified"
