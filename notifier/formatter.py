"""
Notification formatter.

Renders the plain-text emails sent to the operator and the customer from
Jinja2 templates.  Factory templates live in notifier/templates/<locale>/;
an operator can override any of them by dropping a file with the same
relative path into config/templates/ (bootstrap.py seeds that folder).

Locales:
  en       English (default)
  zh_hant  Traditional Chinese, the wording the Hong Kong shop started with

Timestamps are rendered in the operator's time zone (Config.timezone) as
YYYY/MM/DD HH:MM:SS.  Apart from reading the clock, rendering is pure.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from jinja2 import ChoiceLoader, FileSystemLoader, StrictUndefined
from jinja2.sandbox import SandboxedEnvironment

from config import Config
from models.customer import Address, Customer
from .classifier import (
    ACTION_ADDED_DEFAULT, ACTION_ADDED_EXTRA, ACTION_CHANGED_DEFAULT,
    ACTION_NO_CHANGE, ACTION_REMOVED_DEFAULT, ACTION_REMOVED_EXTRA,
    ACTION_UPDATED_EXTRA,
)

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES_DIR = Path(__file__).parent / "templates"
TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"
RULE = "─" * 18

_LOCALES: dict[str, dict] = {
    "en": {
        "placeholder": "not provided",
        "actions": {
            ACTION_NO_CHANGE:       "No address change",
            ACTION_ADDED_DEFAULT:   "Default address added",
            ACTION_CHANGED_DEFAULT: "Default address changed",
            ACTION_REMOVED_DEFAULT: "Default address removed",
            ACTION_ADDED_EXTRA:     "Address added",
            ACTION_REMOVED_EXTRA:   "Address removed",
            ACTION_UPDATED_EXTRA:   "Address updated",
        },
        "subjects": {
            "address_change":        "Customer address notice: {action}",
            "registration":          "New customer registration",
            "deletion_confirmation": "Your account has been deleted",
            "deletion_notice":       "Customer account deleted",
        },
        "zone_names": {},
    },
    "zh_hant": {
        "placeholder": "未提供",
        "actions": {
            ACTION_NO_CHANGE:       "無地址變更",
            ACTION_ADDED_DEFAULT:   "加入預設地址",
            ACTION_CHANGED_DEFAULT: "變更預設地址",
            ACTION_REMOVED_DEFAULT: "刪除預設地址",
            ACTION_ADDED_EXTRA:     "新增地址",
            ACTION_REMOVED_EXTRA:   "刪除地址",
            ACTION_UPDATED_EXTRA:   "更新地址",
        },
        "subjects": {
            "address_change":        "📢 客戶地址{action}",
            "registration":          "🆕 有新客戶註冊帳號",
            "deletion_confirmation": "✅ 您的帳戶已成功刪除",
            "deletion_notice":       "🗑️ 有客戶刪除帳戶",
        },
        "zone_names": {"Asia/Hong_Kong": "香港時間"},
    },
}

SUPPORTED_LOCALES = tuple(_LOCALES)


@dataclass
class Notification:
    """A rendered email, ready for the mailer."""
    subject: str
    body: str


class NotificationFormatter:
    """Builds subjects and bodies for every notification the processor sends."""

    def __init__(
        self,
        config: Optional[Config] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or Config()
        locale = (self.config.locale or "en").lower()
        if locale not in _LOCALES:
            logger.warning("Unknown locale %r — falling back to 'en'", locale)
            locale = "en"
        self.locale = locale
        self.strings = _LOCALES[locale]
        self.zone = ZoneInfo(self.config.timezone)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self.jinja_env = SandboxedEnvironment(
            loader=ChoiceLoader([
                FileSystemLoader(str(self.config.templates_dir)),
                FileSystemLoader(str(DEFAULT_TEMPLATES_DIR)),
            ]),
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def timestamp(self) -> str:
        return self._clock().astimezone(self.zone).strftime(TIMESTAMP_FORMAT)

    def action_label(self, action: str) -> str:
        return self.strings["actions"].get(action, action)

    def _or_placeholder(self, value: Optional[str]) -> str:
        text = (value or "").strip()
        return text or self.strings["placeholder"]

    def _address_view(self, customer: Customer, address: Address) -> dict:
        return {
            "is_default": customer.is_default(address),
            "contact":    self._or_placeholder(address.contact_name),
            "company":    self._or_placeholder(address.company),
            "address1":   self._or_placeholder(address.address1),
            "address2":   self._or_placeholder(address.address2),
            "city":       self._or_placeholder(address.city),
            "province":   self._or_placeholder(address.province),
            "country":    self._or_placeholder(address.country),
            "phone":      self._or_placeholder(address.phone),
        }

    def _context(self, customer: Customer, **extra) -> dict:
        return {
            "rule":           RULE,
            "name":           self._or_placeholder(customer.display_name),
            "first_name":     (customer.first_name or "").strip() or customer.display_name or self._or_placeholder(customer.email),
            "email":          self._or_placeholder(customer.email),
            "timestamp":      self.timestamp(),
            "timezone_label": self.strings["zone_names"].get(self.config.timezone, self.config.timezone),
            "shop_name":      self.config.shop_name,
            **extra,
        }

    def _render(self, name: str, context: dict) -> str:
        template = self.jinja_env.get_template(f"{self.locale}/{name}.txt.j2")
        return template.render(**context)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def format(self, customer: Customer, action: str) -> str:
        """Body of the address-change notice for *customer* and *action*."""
        addresses = [self._address_view(customer, a) for a in customer.listed_addresses]
        return self._render(
            "address_change",
            self._context(customer, action_label=self.action_label(action), addresses=addresses),
        )

    def address_change(self, customer: Customer, action: str) -> Notification:
        subject = self.strings["subjects"]["address_change"].format(action=self.action_label(action))
        return Notification(subject=subject, body=self.format(customer, action))

    def registration(self, customer: Customer) -> Notification:
        return Notification(
            subject=self.strings["subjects"]["registration"],
            body=self._render("registration", self._context(customer)),
        )

    def deletion_confirmation(self, customer: Customer) -> Notification:
        """The note sent to the customer confirming their account is gone."""
        return Notification(
            subject=self.strings["subjects"]["deletion_confirmation"],
            body=self._render("deletion_confirmation", self._context(customer)),
        )

    def deletion_notice(self, customer: Customer) -> Notification:
        """The operator's copy of a deletion."""
        return Notification(
            subject=self.strings["subjects"]["deletion_notice"],
            body=self._render("deletion_notice", self._context(customer)),
        )
