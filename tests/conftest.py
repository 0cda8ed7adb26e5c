"""
Pytest configuration and shared fixtures for the notifier test suite.
"""
import copy
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

import pytest

PROJECT_ROOT = Path(__file__).parent.parent

# 2024-05-01 10:30:00 in Hong Kong
FIXED_NOW = datetime(2024, 5, 1, 2, 30, 0, tzinfo=timezone.utc)
OPERATOR_EMAIL = "ops@example.com"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="notifier_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> "Config":
    """Provide a test configuration with isolated directories and no real mail."""
    from config import Config

    return Config(
        operator_email=OPERATOR_EMAIL,
        shop_name="Acme Electrical",
        smtp_host="smtp.test.local",
        smtp_port=2525,
        smtp_user="sender@example.com",
        smtp_password="abcd efgh ijkl mnop",
        smtp_from=None,
        mail_dry_run=True,
        timezone="Asia/Hong_Kong",
        locale="en",
        store_backend="memory",
        output_dir=temp_dir / "output",
        db_path=temp_dir / "output" / "notifier.db",
        config_dir=temp_dir / "config",
        notify_customer_on_address_change=False,
        notify_operator_on_deletion=True,
        dedupe_registration=True,
    )


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def memory_store():
    from notifier.store import MemoryCustomerStore
    return MemoryCustomerStore()


@pytest.fixture
def test_db(test_config) -> "SqliteCustomerStore":
    """Provide a test SQLite store instance."""
    from notifier.database import SqliteCustomerStore
    return SqliteCustomerStore(test_config.db_path)


@pytest.fixture
def outbox_mailer():
    """A DryRunMailer; inspect .outbox for what would have been sent."""
    from notifier.mailer import DryRunMailer
    return DryRunMailer()


@pytest.fixture
def failing_mailer():
    """A mailer whose every send fails, like an SMTP server that is down."""
    from notifier.mailer import BaseMailer, SendResult, normalise_recipients

    class FailingMailer(BaseMailer):
        name = "failing"

        def __init__(self):
            self.attempts = []

        def send(self, recipients, subject, body):
            to = normalise_recipients(recipients)
            self.attempts.append({"recipients": to, "subject": subject, "body": body})
            return SendResult(ok=False, mailer_name=self.name, recipients=to, error="smtp down")

    return FailingMailer()


@pytest.fixture
def formatter(test_config, fixed_clock):
    from notifier.formatter import NotificationFormatter
    return NotificationFormatter(test_config, clock=fixed_clock)


@pytest.fixture
def processor(test_config, memory_store, outbox_mailer, formatter):
    from notifier.processor import CustomerEventProcessor
    return CustomerEventProcessor(
        test_config,
        store=memory_store,
        mailer=outbox_mailer,
        formatter=formatter,
    )


@pytest.fixture
def default_address_payload() -> dict:
    return {
        "id": 1001,
        "customer_id": 42,
        "first_name": "Tai Man",
        "last_name": "Chan",
        "company": "Acme Trading",
        "address1": "Flat A, 12/F, 88 Nathan Road",
        "address2": None,
        "city": "Hong Kong",
        "province": "Hong Kong Island",
        "country": "Hong Kong",
        "zip": "000000",
        "phone": "+852 2345 6789",
        "name": "Tai Man Chan",
        "default": True,
    }


@pytest.fixture
def extra_address_payload() -> dict:
    return {
        "id": 1002,
        "customer_id": 42,
        "first_name": "Siu Ming",
        "last_name": "Wong",
        "company": None,
        "address1": "3 Queen's Road Central",
        "address2": "Room 1501",
        "city": "Central",
        "province": "Hong Kong Island",
        "country": "Hong Kong",
        "zip": None,
        "phone": None,
        "name": "Siu Ming Wong",
        "default": False,
    }


@pytest.fixture
def customer_payload(default_address_payload, extra_address_payload) -> dict:
    """A customer webhook body shaped like the platform sends it."""
    return {
        "id": 42,
        "email": "taiman@example.com",
        "first_name": "Tai Man",
        "last_name": "Chan",
        "state": "enabled",
        "default_address": copy.deepcopy(default_address_payload),
        "addresses": [
            copy.deepcopy(default_address_payload),
            copy.deepcopy(extra_address_payload),
        ],
    }


@pytest.fixture
def make_customer(customer_payload):
    """Build a Customer from the sample payload, with top-level overrides."""
    from models.customer import Customer

    def _make(**overrides) -> "Customer":
        payload = copy.deepcopy(customer_payload)
        payload.update(overrides)
        return Customer.model_validate(payload)

    return _make


@pytest.fixture
def sample_payload_file(temp_dir: Path, customer_payload: dict) -> Path:
    import json
    path = temp_dir / "customer_42.json"
    path.write_text(json.dumps(customer_payload), encoding="utf-8")
    return path


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API tests")
