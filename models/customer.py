from pydantic import BaseModel, Field, field_validator
from typing import Optional, List


def _has_cjk(text: str) -> bool:
    """True if *text* contains any CJK Unified Ideograph (U+4E00–U+9FFF)."""
    return any("一" <= ch <= "鿿" for ch in text)


def display_name(first_name: Optional[str], last_name: Optional[str]) -> str:
    """
    Render a person's name the way the operator expects to read it.

    Chinese names are written family name first with no separator
    ("大文" + "陳" → "陳大文"); everything else is "First Last".
    """
    first = (first_name or "").strip()
    last = (last_name or "").strip()
    if _has_cjk(first + last):
        return f"{last}{first}"
    return f"{first} {last}".strip()


FIELD_SEPARATOR = "\x1f"

FINGERPRINT_FIELDS = (
    "company", "address1", "address2", "city", "province",
    "country", "zip", "phone",
)


def _normalise(value) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def address_key(address: "Address") -> str:
    """Normalised, delimiter-joined content of one address; the contact name comes last."""
    parts = [_normalise(getattr(address, name, None)) for name in FINGERPRINT_FIELDS]
    parts.append(_normalise(address.contact_name))
    return FIELD_SEPARATOR.join(parts)


def _normalise_id(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class Address(BaseModel):
    """A customer address as delivered in the platform webhook payload."""
    id: Optional[str] = None
    company: Optional[str] = None
    address1: Optional[str] = None      # Line 1, required for a populated address
    address2: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    zip: Optional[str] = None           # Postal code
    country: Optional[str] = None
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    name: Optional[str] = None          # Single display name, used when first/last are absent

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        return _normalise_id(value)

    @property
    def contact_name(self) -> str:
        if self.first_name or self.last_name:
            return display_name(self.first_name, self.last_name)
        return (self.name or "").strip()


class Customer(BaseModel):
    """
    A customer as delivered by the platform's customer webhooks.

    ``addresses`` is the platform's full address book and normally contains
    the default address too; ``extra_addresses`` is everything else.
    Platform ids arrive as integers and are normalised to strings.
    """
    id: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    default_address: Optional[Address] = None
    addresses: List[Address] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        return _normalise_id(value)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("addresses", mode="before")
    @classmethod
    def null_addresses(cls, value):
        return value or []

    @property
    def display_name(self) -> str:
        return display_name(self.first_name, self.last_name)

    def is_default(self, address: Address) -> bool:
        """
        True if *address* is the default address.

        Compared by id; when the default carries no id, by normalised content.
        """
        default = self.default_address
        if default is None:
            return False
        if default.id is not None:
            return address.id == default.id
        return address_key(address) == address_key(default)

    @property
    def extra_addresses(self) -> List[Address]:
        """Addresses other than the default, in payload order."""
        return [a for a in self.addresses if not self.is_default(a)]

    @property
    def listed_addresses(self) -> List[Address]:
        """The address book for display, with the default prepended if the payload omitted it."""
        if self.default_address is None:
            return list(self.addresses)
        if any(self.is_default(a) for a in self.addresses):
            return list(self.addresses)
        return [self.default_address] + list(self.addresses)
