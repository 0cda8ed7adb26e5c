from pydantic import BaseModel
from typing import Optional


class CustomerRecord(BaseModel):
    """
    Last-seen address state for one customer, used as the baseline for the
    next webhook.

    An empty fingerprint means "no such address"; it is never None.
    A deleted record is a tombstone: it lets a repeated deletion webhook be
    recognised and ignored.
    """
    customer_id: str
    default_fingerprint: str = ""
    extra_fingerprint: str = ""
    extra_count: Optional[int] = None   # None → count unknown, classify by fingerprint only
    deleted: bool = False
    notified: bool = False              # Registration notice already sent since last deletion
    updated_at: Optional[str] = None    # ISO 8601 UTC
