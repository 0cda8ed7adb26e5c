"""
Address change classifier.

Given the customer's remembered state (CustomerRecord, or None) and the
fingerprints of the addresses in the current webhook, decide whether the
operator should be told and which single action to report.

Rules, first match wins:
  1. No live record (never seen, or deleted since) → record a baseline,
     report nothing.  The first webhook after registration would otherwise
     look like "default address added".
  2. Default address fingerprint changed:
       ""  → set     added_default_address
       set → ""      removed_default_address
       set → other   changed_default_address
     A default-address change is the only action reported for the event,
     even if extra addresses changed too.
  3. Extra address fingerprint changed (default unchanged):
       ""  → set     added_extra_address
       set → ""      removed_extra_address
       set → other   by count delta when both counts are known
                     (more: added, fewer: removed, same: updated),
                     otherwise updated_extra_address
  4. Nothing changed → no_change.

classify() is pure: the same (last, current) always gives the same result.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from models.customer import Customer
from models.record import CustomerRecord
from .fingerprint import extra_fingerprint, fingerprint

logger = logging.getLogger(__name__)

ACTION_NO_CHANGE       = "no_change"
ACTION_ADDED_DEFAULT   = "added_default_address"
ACTION_CHANGED_DEFAULT = "changed_default_address"
ACTION_REMOVED_DEFAULT = "removed_default_address"
ACTION_ADDED_EXTRA     = "added_extra_address"
ACTION_REMOVED_EXTRA   = "removed_extra_address"
ACTION_UPDATED_EXTRA   = "updated_extra_address"

DEFAULT_ACTIONS = {ACTION_ADDED_DEFAULT, ACTION_CHANGED_DEFAULT, ACTION_REMOVED_DEFAULT}
EXTRA_ACTIONS   = {ACTION_ADDED_EXTRA, ACTION_REMOVED_EXTRA, ACTION_UPDATED_EXTRA}
ALL_ACTIONS     = {ACTION_NO_CHANGE} | DEFAULT_ACTIONS | EXTRA_ACTIONS


@dataclass(frozen=True)
class AddressSnapshot:
    """Fingerprints of the addresses carried by one webhook."""
    default_fingerprint: str = ""
    extra_fingerprint: str = ""
    extra_count: Optional[int] = None

    @property
    def default_present(self) -> bool:
        return bool(self.default_fingerprint)

    @classmethod
    def from_customer(cls, customer: Customer) -> "AddressSnapshot":
        default = [customer.default_address] if customer.default_address else []
        extras = customer.extra_addresses
        return cls(
            default_fingerprint=fingerprint(default),
            extra_fingerprint=extra_fingerprint(extras),
            extra_count=len(extras),
        )

    def to_record(
        self,
        customer_id: str,
        notified: bool = False,
        updated_at: Optional[str] = None,
    ) -> CustomerRecord:
        return CustomerRecord(
            customer_id=customer_id,
            default_fingerprint=self.default_fingerprint,
            extra_fingerprint=self.extra_fingerprint,
            extra_count=self.extra_count,
            notified=notified,
            updated_at=updated_at,
        )


@dataclass(frozen=True)
class Classification:
    action: str = ACTION_NO_CHANGE
    first_observation: bool = False

    @property
    def should_notify(self) -> bool:
        return self.action != ACTION_NO_CHANGE and not self.first_observation


def _classify_default(last: str, current: str) -> Optional[str]:
    if last == current:
        return None
    if not last:
        return ACTION_ADDED_DEFAULT
    if not current:
        return ACTION_REMOVED_DEFAULT
    return ACTION_CHANGED_DEFAULT


def _classify_extra(
    last: str,
    current: str,
    last_count: Optional[int],
    current_count: Optional[int],
) -> Optional[str]:
    if last == current:
        return None
    if not last:
        return ACTION_ADDED_EXTRA
    if not current:
        return ACTION_REMOVED_EXTRA
    if last_count is None or current_count is None:
        return ACTION_UPDATED_EXTRA
    if current_count > last_count:
        return ACTION_ADDED_EXTRA
    if current_count < last_count:
        return ACTION_REMOVED_EXTRA
    return ACTION_UPDATED_EXTRA


def classify(last: Optional[CustomerRecord], current: AddressSnapshot) -> Classification:
    """Compare *current* against the remembered *last* state.  See module docstring."""
    if last is None or last.deleted:
        return Classification(ACTION_NO_CHANGE, first_observation=True)

    action = _classify_default(last.default_fingerprint, current.default_fingerprint)
    if action is None:
        action = _classify_extra(
            last.extra_fingerprint,
            current.extra_fingerprint,
            last.extra_count,
            current.extra_count,
        )
    return Classification(action or ACTION_NO_CHANGE)
