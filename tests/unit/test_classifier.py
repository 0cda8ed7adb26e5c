"""
Unit tests for the address change classifier.
"""
import pytest

from models.record import CustomerRecord
from notifier.classifier import (
    ACTION_ADDED_DEFAULT,
    ACTION_ADDED_EXTRA,
    ACTION_CHANGED_DEFAULT,
    ACTION_NO_CHANGE,
    ACTION_REMOVED_DEFAULT,
    ACTION_REMOVED_EXTRA,
    ACTION_UPDATED_EXTRA,
    DEFAULT_ACTIONS,
    AddressSnapshot,
    classify,
)
from notifier.fingerprint import fingerprint


def _record(default="", extra="", count=None, deleted=False) -> CustomerRecord:
    return CustomerRecord(
        customer_id="42",
        default_fingerprint=default,
        extra_fingerprint=extra,
        extra_count=count,
        deleted=deleted,
    )


def _snap(default="", extra="", count=None) -> AddressSnapshot:
    return AddressSnapshot(default_fingerprint=default, extra_fingerprint=extra, extra_count=count)


@pytest.mark.unit
class TestFirstObservation:
    """Tests for baseline recording."""

    def test_no_record_is_first_observation(self):
        """Test that an unseen customer never produces a notification."""
        result = classify(None, _snap(default="d1", extra="e1", count=1))
        assert result.action == ACTION_NO_CHANGE
        assert result.first_observation is True
        assert result.should_notify is False

    def test_deleted_record_is_first_observation(self):
        """Test that a tombstone counts as never seen."""
        result = classify(_record(deleted=True), _snap(default="d1"))
        assert result.first_observation is True
        assert result.should_notify is False


@pytest.mark.unit
class TestDefaultTransitions:
    """Tests for default-address transitions."""

    def test_added(self):
        assert classify(_record(), _snap(default="d1")).action == ACTION_ADDED_DEFAULT

    def test_removed(self):
        assert classify(_record(default="d1"), _snap()).action == ACTION_REMOVED_DEFAULT

    def test_changed(self):
        result = classify(_record(default="d1"), _snap(default="d2"))
        assert result.action == ACTION_CHANGED_DEFAULT
        assert result.should_notify is True

    @pytest.mark.parametrize("current_default", ["", "d2"])
    def test_default_wins_over_extra(self, current_default):
        """Test that when both change, only a default-address action is reported."""
        last = _record(default="d1", extra="e1", count=1)
        current = _snap(default=current_default, extra="e2", count=2)
        assert classify(last, current).action in DEFAULT_ACTIONS

    def test_added_default_wins_over_removed_extras(self):
        last = _record(default="", extra="e1", count=1)
        assert classify(last, _snap(default="d1")).action == ACTION_ADDED_DEFAULT


@pytest.mark.unit
class TestExtraTransitions:
    """Tests for extra-address transitions with the default unchanged."""

    def test_added_from_none(self):
        last = _record(default="d1")
        assert classify(last, _snap(default="d1", extra="e1", count=1)).action == ACTION_ADDED_EXTRA

    def test_removed_to_none(self):
        last = _record(default="d1", extra="e1", count=1)
        assert classify(last, _snap(default="d1", count=0)).action == ACTION_REMOVED_EXTRA

    def test_count_increase_is_added(self):
        last = _record(default="d1", extra="e1", count=1)
        assert classify(last, _snap(default="d1", extra="e2", count=2)).action == ACTION_ADDED_EXTRA

    def test_count_decrease_is_removed(self):
        last = _record(default="d1", extra="e1", count=3)
        assert classify(last, _snap(default="d1", extra="e2", count=2)).action == ACTION_REMOVED_EXTRA

    def test_same_count_is_updated(self):
        last = _record(default="d1", extra="e1", count=2)
        assert classify(last, _snap(default="d1", extra="e2", count=2)).action == ACTION_UPDATED_EXTRA

    def test_unknown_count_is_updated(self):
        """Test that records without a stored count fall back to updated."""
        last = _record(default="d1", extra="e1", count=None)
        assert classify(last, _snap(default="d1", extra="e2", count=5)).action == ACTION_UPDATED_EXTRA


@pytest.mark.unit
class TestNoChange:
    """Tests for the no-change outcome."""

    def test_identical_state(self):
        last = _record(default="d1", extra="e1", count=1)
        result = classify(last, _snap(default="d1", extra="e1", count=1))
        assert result.action == ACTION_NO_CHANGE
        assert result.first_observation is False
        assert result.should_notify is False

    def test_both_empty(self):
        assert classify(_record(), _snap(count=0)).action == ACTION_NO_CHANGE

    def test_is_idempotent(self):
        """Test that the same input always gives the same classification."""
        last = _record(default="d1")
        current = _snap(default="d2")
        assert classify(last, current) == classify(last, current)


@pytest.mark.unit
class TestAddressSnapshot:
    """Tests for building snapshots from customers."""

    def test_from_customer(self, make_customer):
        customer = make_customer()
        snap = AddressSnapshot.from_customer(customer)
        assert snap.default_fingerprint == fingerprint([customer.default_address])
        assert snap.extra_count == 1
        assert snap.extra_fingerprint != ""
        assert snap.default_present is True

    def test_no_addresses(self, make_customer):
        snap = AddressSnapshot.from_customer(make_customer(default_address=None, addresses=[]))
        assert snap.default_fingerprint == ""
        assert snap.extra_fingerprint == ""
        assert snap.extra_count == 0
        assert snap.default_present is False

    def test_to_record(self):
        record = _snap(default="d1", extra="e1", count=1).to_record("42", notified=True, updated_at="t")
        assert record.customer_id == "42"
        assert record.default_fingerprint == "d1"
        assert record.extra_count == 1
        assert record.notified is True
        assert record.deleted is False

    def test_record_shape(self):
        """Test that a record carries only the stored baseline fields."""
        record = _snap(default="d1").to_record("42")
        assert set(record.model_dump()) == {
            "customer_id", "default_fingerprint", "extra_fingerprint",
            "extra_count", "deleted", "notified", "updated_at",
        }
        assert not hasattr(record, "has_default")
