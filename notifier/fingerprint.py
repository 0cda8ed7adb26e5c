"""
Address fingerprinting.

A fingerprint is a SHA-256 hex digest of a list of addresses, used to decide
cheaply whether a customer's addresses changed since the last webhook.

Each address is reduced to its normalised fields (lower-cased, surrounding
whitespace stripped, missing → "") in this fixed order:

  company, address1, address2, city, province, country, zip, phone, contact name

Fields are joined with the ASCII unit separator (0x1F) and addresses with the
ASCII record separator (0x1E); neither can appear in a form field.  An empty
list fingerprints to "" so that "no address" is never confused with a digest.
"""
import hashlib
from typing import Iterable, Sequence

from models.customer import FIELD_SEPARATOR, FINGERPRINT_FIELDS, address_key

ADDRESS_SEPARATOR = "\x1e"

__all__ = [
    "FIELD_SEPARATOR", "ADDRESS_SEPARATOR", "FINGERPRINT_FIELDS",
    "address_key", "fingerprint", "extra_fingerprint",
]


def _digest(keys: Iterable[str]) -> str:
    content = ADDRESS_SEPARATOR.join(keys)
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def fingerprint(addresses: Sequence) -> str:
    """Fingerprint *addresses* in the order given.  Empty → ""."""
    if not addresses:
        return ""
    return _digest(address_key(a) for a in addresses)


def extra_fingerprint(addresses: Sequence) -> str:
    """
    Fingerprint a set of extra addresses.

    The platform does not guarantee address-book order, so the per-address
    keys are sorted before hashing; reordering alone is not a change.
    """
    if not addresses:
        return ""
    return _digest(sorted(address_key(a) for a in addresses))
