"""
Unit tests for the notification formatter.
"""
import pytest

from config import Config
from notifier.classifier import ACTION_CHANGED_DEFAULT, ACTION_REMOVED_EXTRA
from notifier.formatter import RULE, NotificationFormatter


@pytest.mark.unit
class TestAddressChangeBody:
    """Tests for format()."""

    def test_header_and_identity_block(self, formatter, make_customer):
        body = formatter.format(make_customer(), ACTION_CHANGED_DEFAULT)
        lines = body.splitlines()
        assert lines[0] == "Customer address notice: Default address changed"
        assert lines[1] == RULE
        assert lines[2] == "Name:     Tai Man Chan"
        assert lines[3] == "Email:    taiman@example.com"
        assert lines[4] == "Sent at:  2024/05/01 10:30:00 (Asia/Hong_Kong)"
        assert lines[5] == RULE

    def test_addresses_are_numbered_from_one(self, formatter, make_customer):
        body = formatter.format(make_customer(), ACTION_CHANGED_DEFAULT)
        assert "Addresses: 2 on file" in body
        assert f"[Address 1 (default)] {RULE}" in body
        assert f"[Address 2] {RULE}" in body
        assert body.index("Address 1: Flat A, 12/F, 88 Nathan Road") < body.index("Address 1: 3 Queen's Road Central")

    def test_missing_fields_use_placeholder(self, formatter, make_customer):
        body = formatter.format(make_customer(), ACTION_CHANGED_DEFAULT)
        # Default address has no address2; extra has no company or phone
        assert "Address 2: not provided" in body
        assert "Company:   not provided" in body
        assert "Phone:     not provided" in body

    def test_no_addresses(self, formatter, make_customer):
        body = formatter.format(make_customer(default_address=None, addresses=[]), ACTION_REMOVED_EXTRA)
        assert "Addresses: none on file" in body
        assert "[Address" not in body

    def test_missing_email_uses_placeholder(self, formatter, make_customer):
        body = formatter.format(make_customer(email=None), ACTION_CHANGED_DEFAULT)
        assert "Email:    not provided" in body

    def test_cjk_names(self, formatter, make_customer, default_address_payload):
        default = dict(default_address_payload, first_name="大文", last_name="陳")
        customer = make_customer(
            first_name="大文", last_name="陳", default_address=default, addresses=[default],
        )
        body = formatter.format(customer, ACTION_CHANGED_DEFAULT)
        assert "Name:     陳大文" in body
        assert "Contact:   陳大文" in body

    def test_is_deterministic_for_fixed_clock(self, formatter, make_customer):
        customer = make_customer()
        assert formatter.format(customer, ACTION_CHANGED_DEFAULT) == formatter.format(customer, ACTION_CHANGED_DEFAULT)


@pytest.mark.unit
class TestNotifications:
    """Tests for the subject/body pairs."""

    def test_address_change_subject(self, formatter, make_customer):
        note = formatter.address_change(make_customer(), ACTION_CHANGED_DEFAULT)
        assert note.subject == "Customer address notice: Default address changed"

    def test_registration(self, formatter, make_customer):
        note = formatter.registration(make_customer())
        assert note.subject == "New customer registration"
        assert "Name:     Tai Man Chan" in note.body
        assert "Time:     2024/05/01 10:30:00 (Asia/Hong_Kong)" in note.body

    def test_deletion_confirmation_greets_by_first_name(self, formatter, make_customer):
        note = formatter.deletion_confirmation(make_customer())
        assert note.subject == "Your account has been deleted"
        assert note.body.startswith("Dear Tai Man,")
        assert "Acme Electrical" in note.body

    def test_deletion_confirmation_without_name(self, formatter, make_customer):
        """Test that a nameless customer is greeted by email address."""
        note = formatter.deletion_confirmation(make_customer(first_name=None, last_name=None))
        assert note.body.startswith("Dear taiman@example.com,")

    def test_deletion_confirmation_last_name_only(self, formatter, make_customer):
        note = formatter.deletion_confirmation(make_customer(first_name=None))
        assert note.body.startswith("Dear Chan,")

    def test_deletion_notice(self, formatter, make_customer):
        note = formatter.deletion_notice(make_customer())
        assert note.subject == "Customer account deleted"
        assert "taiman@example.com" in note.body

    def test_unknown_action_label_passes_through(self, formatter):
        assert formatter.action_label("something_else") == "something_else"


@pytest.mark.unit
class TestLocalesAndOverrides:
    """Tests for locale selection and operator template overrides."""

    def test_zh_hant(self, test_config, fixed_clock, make_customer):
        test_config.locale = "zh_hant"
        formatter = NotificationFormatter(test_config, clock=fixed_clock)
        note = formatter.address_change(make_customer(), ACTION_CHANGED_DEFAULT)
        assert note.subject == "📢 客戶地址變更預設地址"
        assert note.body.splitlines()[0] == "📬 客戶地址變更預設地址通知"
        assert "2024/05/01 10:30:00（香港時間）" in note.body
        assert "【地址 1（預設）】" in note.body

    def test_zh_hant_placeholder(self, test_config, fixed_clock, make_customer):
        test_config.locale = "zh_hant"
        formatter = NotificationFormatter(test_config, clock=fixed_clock)
        assert "未提供" in formatter.format(make_customer(), ACTION_CHANGED_DEFAULT)

    def test_unknown_locale_falls_back_to_en(self, test_config, fixed_clock):
        test_config.locale = "fr"
        formatter = NotificationFormatter(test_config, clock=fixed_clock)
        assert formatter.locale == "en"

    def test_other_timezone(self, test_config, fixed_clock, make_customer):
        test_config.timezone = "UTC"
        formatter = NotificationFormatter(test_config, clock=fixed_clock)
        assert formatter.timestamp() == "2024/05/01 02:30:00"

    def test_config_template_overrides_default(self, test_config, fixed_clock, make_customer):
        """Test that a template in config/templates replaces the packaged one."""
        override = test_config.templates_dir / "en" / "registration.txt.j2"
        override.parent.mkdir(parents=True)
        override.write_text("Welcome aboard, {{ name }}!\n", encoding="utf-8")

        formatter = NotificationFormatter(test_config, clock=fixed_clock)
        assert formatter.registration(make_customer()).body == "Welcome aboard, Tai Man Chan!\n"
        # Templates without an override still come from the package
        assert formatter.deletion_notice(make_customer()).subject == "Customer account deleted"

    def test_default_config_builds(self, temp_dir, monkeypatch):
        monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "cfg"))
        monkeypatch.delenv("NOTIFY_LOCALE", raising=False)
        monkeypatch.delenv("NOTIFY_TIMEZONE", raising=False)
        formatter = NotificationFormatter(Config())
        assert formatter.locale == "en"
        assert formatter.config.timezone == "Asia/Hong_Kong"
