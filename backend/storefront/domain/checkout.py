"""
Checkout Domain Models

Form data for the checkout steps, stock verdicts and the result of a
state-machine transition.

Author: TM3
Date: 2025-12-02
"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import ClassVar, Optional, List, Tuple

from storefront.domain.order import Customer, ShippingAddress


class CheckoutStep(str, Enum):
    SHIPPING = "shipping"
    PAYMENT = "payment"
    REVIEW = "review"
    PLACING = "placing"
    PLACED = "placed"
    FAILED = "failed"


class CheckoutErrorCode(str, Enum):
    MISSING_FIELDS = "MissingFields"
    EMPTY_CART = "EmptyCart"
    STOCK_CONFLICT = "StockConflict"
    PERSISTENCE_ERROR = "PersistenceError"
    VALIDATION_ERROR = "ValidationError"
    INVALID_TRANSITION = "InvalidTransition"


class ShippingInfo(BaseModel):
    """Customer and address fields of the shipping step"""

    full_name: str = ""
    email: str = ""
    phone: str = ""
    address_line: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = "India"
    notes: Optional[str] = None

    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = (
        "full_name", "email", "phone", "address_line", "city", "state", "postal_code",
    )

    def missing_fields(self) -> List[str]:
        return [name for name in self.REQUIRED_FIELDS if not getattr(self, name).strip()]

    def customer(self) -> Customer:
        return Customer(name=self.full_name.strip(), email=self.email.strip(), phone=self.phone.strip())

    def address(self) -> ShippingAddress:
        return ShippingAddress(
            address_line=self.address_line.strip(),
            city=self.city.strip(),
            state=self.state.strip(),
            postal_code=self.postal_code.strip(),
            country=self.country,
        )


class PaymentMethod(str, Enum):
    COD = "cod"
    CARD = "card"
    UPI = "upi"


# Presence checks only; the gateway validates the values
PAYMENT_REQUIRED_FIELDS = {
    PaymentMethod.COD: (),
    PaymentMethod.CARD: ("card_number", "card_expiry", "card_cvv", "card_holder"),
    PaymentMethod.UPI: ("upi_id",),
}


class PaymentInfo(BaseModel):
    """
    Payment step data. Never persisted: the order only keeps the method.
    """

    method: Optional[PaymentMethod] = None
    card_number: str = ""
    card_expiry: str = ""
    card_cvv: str = ""
    card_holder: str = ""
    upi_id: str = ""

    def missing_fields(self) -> List[str]:
        if self.method is None:
            return ["method"]
        return [
            name for name in PAYMENT_REQUIRED_FIELDS[self.method]
            if not getattr(self, name).strip()
        ]

    def __repr__(self) -> str:
        # keep card data out of logs
        return f"PaymentInfo(method={self.method!r})"

    __str__ = __repr__


class StockReason(str, Enum):
    NOT_FOUND = "NotFound"
    INSUFFICIENT_STOCK = "InsufficientStock"


class StockVerdict(BaseModel):
    """Result of checking one cart line against authoritative stock"""

    product_id: str
    size: str
    requested: int
    ok: bool
    available: int = 0
    reason: Optional[StockReason] = None
    message: str = ""

    def to_dict(self) -> dict:
        return self.model_dump(mode='json')


class TransitionResult(BaseModel):
    """
    Outcome of a checkout transition. Form problems are reported here
    rather than raised, so the UI can correct them in place.
    """

    ok: bool
    state: CheckoutStep
    error: Optional[CheckoutErrorCode] = None
    fields: List[str] = Field(default_factory=list)
    stock_issues: List[StockVerdict] = Field(default_factory=list)
    message: Optional[str] = None
    order_id: Optional[int] = None
