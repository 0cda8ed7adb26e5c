from .fingerprint import fingerprint, extra_fingerprint, address_key
from .classifier import AddressSnapshot, Classification, classify
from .errors import NotifierError, MissingRequiredField, DispatchFailure, StoreFailure
from .store import CustomerStore, MemoryCustomerStore, build_store
from .database import SqliteCustomerStore
from .formatter import Notification, NotificationFormatter
from .mailer import BaseMailer, SmtpMailer, DryRunMailer, SendResult, build_mailer
from .processor import CustomerEventProcessor

__all__ = [
    "fingerprint", "extra_fingerprint", "address_key",
    "AddressSnapshot", "Classification", "classify",
    "NotifierError", "MissingRequiredField", "DispatchFailure", "StoreFailure",
    "CustomerStore", "MemoryCustomerStore", "SqliteCustomerStore", "build_store",
    "Notification", "NotificationFormatter",
    "BaseMailer", "SmtpMailer", "DryRunMailer", "SendResult", "build_mailer",
    "CustomerEventProcessor",
]
