"""
Customer webhook event processor.

CustomerEventProcessor exposes one operation per webhook:

  handle_customer_created()   registration notice to the operator, baseline recorded
  handle_addresses_synced()   classify the address change, notify the operator
  handle_account_deleted()    tombstone the record, confirm to the customer

For each event the order is always:
  1. Validate required fields (MissingRequiredField, nothing written)
  2. Read the last state and decide what to report
  3. Write the new state
  4. Send the notification(s)

Step 3 is never undone.  If step 4 fails the event raises DispatchFailure,
but the store already holds the new fingerprints, so the same change will
not be reported again on the next webhook.  The failure is logged at ERROR.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from config import Config
from models.customer import Customer
from models.record import CustomerRecord
from models.result import EventResult
from .classifier import AddressSnapshot, classify
from .errors import DispatchFailure, MissingRequiredField
from .formatter import Notification, NotificationFormatter
from .mailer import BaseMailer, build_mailer
from .store import CustomerStore, build_store

logger = logging.getLogger(__name__)

EVENT_CUSTOMER_CREATED = "customer_created"
EVENT_ADDRESSES_SYNCED = "addresses_synced"
EVENT_ACCOUNT_DELETED  = "account_deleted"
ALL_EVENTS = (EVENT_CUSTOMER_CREATED, EVENT_ADDRESSES_SYNCED, EVENT_ACCOUNT_DELETED)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CustomerEventProcessor:
    """
    Orchestrates change detection and notification for customer webhooks.

    The store, mailer, and formatter are built from config unless injected.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional[CustomerStore] = None,
        mailer: Optional[BaseMailer] = None,
        formatter: Optional[NotificationFormatter] = None,
    ) -> None:
        self.config = config or Config()
        self.store = store if store is not None else build_store(self.config)
        self.mailer = mailer if mailer is not None else build_mailer(self.config)
        self.formatter = formatter or NotificationFormatter(self.config)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def handle(self, event: str, customer: Customer) -> EventResult:
        """Route *customer* to the handler for *event* (one of ALL_EVENTS)."""
        handlers = {
            EVENT_CUSTOMER_CREATED: self.handle_customer_created,
            EVENT_ADDRESSES_SYNCED: self.handle_addresses_synced,
            EVENT_ACCOUNT_DELETED:  self.handle_account_deleted,
        }
        if event not in handlers:
            raise ValueError(f"Unknown event {event!r}. Must be one of {ALL_EVENTS}")
        return handlers[event](customer)

    def handle_customer_created(self, customer: Customer) -> EventResult:
        """
        Record the new customer's baseline and tell the operator.

        With dedupe_registration on, a repeated registration webhook for a
        customer who was already announced (and not deleted since) is ignored.
        ``notified`` is only set once the operator mail actually went out.
        """
        customer_id = self._require_id(customer, EVENT_CUSTOMER_CREATED)
        last = self.store.get(customer_id)
        live = last is not None and not last.deleted

        if live and last.notified and self.config.dedupe_registration:
            logger.info("Customer %s already announced — registration notice skipped", customer_id)
            result = EventResult(
                event=EVENT_CUSTOMER_CREATED,
                customer_id=customer_id,
                skipped_reason="already_notified",
            )
            self._log(result)
            return result

        note = self.formatter.registration(customer)
        if live:
            # Keep the synced baseline; the next sync classifies any difference
            record = last.model_copy(update={"notified": False, "updated_at": _now()})
        else:
            record = AddressSnapshot.from_customer(customer).to_record(
                customer_id, notified=False, updated_at=_now(),
            )
        self.store.put(record)

        result = EventResult(
            event=EVENT_CUSTOMER_CREATED,
            customer_id=customer_id,
            first_observation=not live,
        )
        self._dispatch(result, [self.config.operator_email], note)
        self.store.put(record.model_copy(update={"notified": True}))
        self._log(result)
        logger.info("New customer %s announced to operator", customer_id)
        return result

    def handle_addresses_synced(self, customer: Customer) -> EventResult:
        """Classify the customer's address change and notify the operator on any action."""
        customer_id = self._require_id(customer, EVENT_ADDRESSES_SYNCED)
        snapshot = AddressSnapshot.from_customer(customer)

        last = self.store.get(customer_id)
        classification = classify(last, snapshot)
        notified = bool(last is not None and not last.deleted and last.notified)

        note = None
        if classification.should_notify:
            note = self.formatter.address_change(customer, classification.action)

        # Baseline is refreshed on every sync, no_change included
        self.store.put(snapshot.to_record(customer_id, notified=notified, updated_at=_now()))

        result = EventResult(
            event=EVENT_ADDRESSES_SYNCED,
            customer_id=customer_id,
            action=classification.action,
            first_observation=classification.first_observation,
        )
        if note is None:
            if classification.first_observation:
                logger.info("Customer %s seen for the first time — baseline recorded", customer_id)
            else:
                logger.info("Customer %s: no address change", customer_id)
            self._log(result)
            return result

        logger.info("Customer %s: %s", customer_id, classification.action)
        self._dispatch(result, self._address_change_recipients(customer), note)
        self._log(result)
        return result

    def handle_account_deleted(self, customer: Customer) -> EventResult:
        """
        Tombstone the customer and confirm the deletion to them.

        A customer who was never seen still gets the confirmation; a second
        deletion webhook for the same id sends nothing.
        """
        customer_id = self._require_id(customer, EVENT_ACCOUNT_DELETED)
        if not customer.email:
            raise MissingRequiredField("email", EVENT_ACCOUNT_DELETED)

        last = self.store.get(customer_id)
        if last is not None and last.deleted:
            logger.info("Customer %s already deleted — nothing to do", customer_id)
            result = EventResult(
                event=EVENT_ACCOUNT_DELETED,
                customer_id=customer_id,
                skipped_reason="already_deleted",
            )
            self._log(result)
            return result

        confirmation = self.formatter.deletion_confirmation(customer)
        notice = self.formatter.deletion_notice(customer) if self.config.notify_operator_on_deletion else None

        self.store.put(CustomerRecord(customer_id=customer_id, deleted=True, updated_at=_now()))

        result = EventResult(
            event=EVENT_ACCOUNT_DELETED,
            customer_id=customer_id,
            first_observation=last is None,
        )
        self._dispatch(result, [customer.email], confirmation)
        if notice is not None:
            self._dispatch(result, [self.config.operator_email], notice)
        self._log(result)
        logger.info("Customer %s deleted and confirmation sent", customer_id)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_id(customer: Customer, event: str) -> str:
        if not customer.id:
            raise MissingRequiredField("id", event)
        return customer.id

    def _address_change_recipients(self, customer: Customer) -> list[str]:
        recipients = [self.config.operator_email]
        if self.config.notify_customer_on_address_change:
            if customer.email:
                recipients.append(customer.email)
            else:
                logger.warning(
                    "Customer %s has no email — address notice goes to the operator only",
                    customer.id,
                )
        return recipients

    def _dispatch(self, result: EventResult, recipients: Iterable[Optional[str]], note: Notification) -> None:
        sent = self.mailer.send(recipients, note.subject, note.body)
        for addr in sent.recipients:
            if addr not in result.recipients:
                result.recipients.append(addr)
        if sent.ok:
            result.dispatched = True
            return

        result.error = sent.error or "unknown mailer error"
        logger.error(
            "Notification '%s' for customer %s was NOT delivered (%s). "
            "Customer state was already updated and will not be rolled back.",
            note.subject, result.customer_id, result.error,
        )
        self._log(result)
        raise DispatchFailure(result.error, result=result)

    def _log(self, result: EventResult) -> None:
        self.store.log_event(
            result.customer_id,
            result.event,
            action=result.action,
            detail={
                "first_observation": result.first_observation,
                "dispatched":        result.dispatched,
                "recipients":        result.recipients,
                "skipped_reason":    result.skipped_reason,
                "error":             result.error,
            },
        )
