"""
Central configuration for the customer address notifier.

All mail, store, and notification-policy settings are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/notifier_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

# Default data locations (relative to project root)
DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "output"
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_DB_PATH    = DEFAULT_OUTPUT_DIR / "notifier.db"

STORE_BACKENDS = {"sqlite", "memory"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass
class Config:
    # --- Operator mailbox ---
    # Registration and address-change notices go here.  EMAIL_USER is the older
    # single variable for both SMTP login and inbox.
    operator_email: str = field(
        default_factory=lambda: os.getenv("OPERATOR_EMAIL", os.getenv("EMAIL_USER", ""))
    )
    shop_name: str = field(
        default_factory=lambda: os.getenv("SHOP_NAME", "Customer Service")
    )

    # --- SMTP transport ---
    smtp_host: str = field(default_factory=lambda: os.getenv("SMTP_HOST", "smtp.gmail.com"))
    smtp_port: int = field(default_factory=lambda: int(os.getenv("SMTP_PORT", "587")))
    smtp_user: Optional[str] = field(
        default_factory=lambda: os.getenv("SMTP_USER", os.getenv("EMAIL_USER"))
    )
    smtp_password: Optional[str] = field(
        default_factory=lambda: os.getenv("SMTP_PASS", os.getenv("EMAIL_PASS"))
    )
    smtp_from: Optional[str] = field(default_factory=lambda: os.getenv("SMTP_FROM"))
    smtp_starttls: bool = field(default_factory=lambda: _env_flag("SMTP_STARTTLS", True))
    smtp_timeout_seconds: int = 30
    mail_dry_run: bool = field(default_factory=lambda: _env_flag("MAIL_DRY_RUN", False))
    # mail_dry_run=True → DryRunMailer: notices are logged, never sent

    # --- Formatting ---
    timezone: str = field(
        default_factory=lambda: os.getenv("NOTIFY_TIMEZONE", "Asia/Hong_Kong")
    )
    locale: str = field(default_factory=lambda: os.getenv("NOTIFY_LOCALE", "en"))
    # locale: "en" or "zh_hant" (template subdirectory under notifier/templates)

    # --- Store ---
    store_backend: str = field(
        default_factory=lambda: os.getenv("STORE_BACKEND", "sqlite").lower()
    )
    output_dir: Path = field(
        default_factory=lambda: Path(os.getenv("OUTPUT_DIR", str(DEFAULT_OUTPUT_DIR)))
    )
    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH)))
    )
    config_dir: Path = field(
        default_factory=lambda: Path(os.getenv("CONFIG_DIR", str(DEFAULT_CONFIG_DIR)))
    )

    # --- Notification policy ---
    notify_customer_on_address_change: bool = field(
        default_factory=lambda: _env_flag("NOTIFY_CUSTOMER_ON_ADDRESS_CHANGE", False)
    )
    notify_operator_on_deletion: bool = field(
        default_factory=lambda: _env_flag("NOTIFY_OPERATOR_ON_DELETION", True)
    )
    dedupe_registration: bool = field(
        default_factory=lambda: _env_flag("DEDUPE_REGISTRATION", True)
    )
    # dedupe_registration=True → a second "new customer" webhook for a live,
    # already-notified customer does not mail the operator again.

    # --- HTTP server ---
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "3000")))

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from notifier_settings.json if present."""
        settings_file = self.config_dir / "notifier_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict = {
            "operator_email":                     str,
            "shop_name":                          str,
            "smtp_host":                          str,
            "smtp_port":                          int,
            "smtp_from":                          str,
            "smtp_starttls":                      _as_bool,
            "mail_dry_run":                       _as_bool,
            "timezone":                           str,
            "locale":                             str,
            "notify_customer_on_address_change":  _as_bool,
            "notify_operator_on_deletion":        _as_bool,
            "dedupe_registration":                _as_bool,
        }
        # Keys whose environment variable is set keep the env value
        _env_names: dict = {
            "operator_email":                     ("OPERATOR_EMAIL", "EMAIL_USER"),
            "shop_name":                          ("SHOP_NAME",),
            "smtp_host":                          ("SMTP_HOST",),
            "smtp_port":                          ("SMTP_PORT",),
            "smtp_from":                          ("SMTP_FROM",),
            "smtp_starttls":                      ("SMTP_STARTTLS",),
            "mail_dry_run":                       ("MAIL_DRY_RUN",),
            "timezone":                           ("NOTIFY_TIMEZONE",),
            "locale":                             ("NOTIFY_LOCALE",),
            "notify_customer_on_address_change":  ("NOTIFY_CUSTOMER_ON_ADDRESS_CHANGE",),
            "notify_operator_on_deletion":        ("NOTIFY_OPERATOR_ON_DELETION",),
            "dedupe_registration":                ("DEDUPE_REGISTRATION",),
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key not in _type_map or not hasattr(self, key):
                    continue
                if any(os.getenv(name) is not None for name in _env_names[key]):
                    logger.debug("Ignoring %s from notifier_settings.json: set in environment", key)
                    continue
                setattr(self, key, _type_map[key](val))
        except Exception as exc:
            logger.warning("Failed to load notifier_settings.json: %s", exc)

    @property
    def templates_dir(self) -> Path:
        """Operator-editable template overrides (populated by bootstrap.py)."""
        return self.config_dir / "templates"

    def ensure_output_dir(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
