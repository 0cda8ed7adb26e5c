from .customer import Address, Customer, address_key, display_name
from .record import CustomerRecord
from .result import ActionType, EventType, EventResult

__all__ = [
    "Address", "Customer", "address_key", "display_name",
    "CustomerRecord",
    "ActionType", "EventType", "EventResult",
]
