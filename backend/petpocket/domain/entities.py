"""
Domain vocabulary - enumerations and value objects shared by every layer.

No framework dependencies: the ORM models, document repositories and
controllers all import from here.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional


class Role(str, Enum):
    ADMINISTRATOR = "Administrator"
    VETERINARIAN = "Veterinarian"
    RECEPTIONIST = "Receptionist"


class OrderPaymentStatus(str, Enum):
    PAID = "Paid"
    PENDING = "Pending"
    UNPAID = "Unpaid"


class FulfillmentStatus(str, Enum):
    FULFILLED = "Fulfilled"
    IN_PROGRESS = "InProgress"
    UNFULFILLED = "Unfulfilled"


class AppointmentStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class AppointmentPaymentStatus(str, Enum):
    PAID = "Paid"
    UNPAID = "Unpaid"


class AllergySeverity(str, Enum):
    MILD = "Mild"
    MODERATE = "Moderate"
    SEVERE = "Severe"


class StockOperation(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"


DEFAULT_HEALTH_STATUS = "Healthy"


def enum_values(enum_cls) -> list:
    return [member.value for member in enum_cls]


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, as decoded from a bearer token."""

    id: int
    email: str
    role: str

    def __post_init__(self):
        if self.role not in enum_values(Role):
            raise ValueError(f"Unknown role: {self.role}")

    def has_role(self, roles: Iterable[str]) -> bool:
        return self.role in {getattr(r, "value", r) for r in roles}


@dataclass
class PageRequest:
    """Offset pagination parameters for list endpoints."""

    page: int = 1
    limit: int = 10
    search: Optional[str] = None
    filters: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.limit < 1:
            raise ValueError("limit must be >= 1")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def pagination(self, total: int) -> Dict[str, int]:
        return {
            "total": total,
            "page": self.page,
            "limit": self.limit,
            "totalPages": (total + self.limit - 1) // self.limit,
        }
