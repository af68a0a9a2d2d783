"""
Checkout Service
Gated multi-step checkout: shipping -> payment -> review -> placing -> placed

    SHIPPING --submit_shipping--> PAYMENT --submit_payment--> REVIEW
    REVIEW --place_order--> PLACING --> PLACED
                                    +--> REVIEW  (stock conflict, validation)
                                    +--> FAILED  (store error)
    back(): PAYMENT -> SHIPPING, REVIEW -> PAYMENT, FAILED -> REVIEW

place_order re-checks stock before entering PLACING, so an order that
fails the gate stays in REVIEW without a PLACING round trip. A conflict
raised by the writer itself (stock sold in between) still goes back.

Form problems come back as a TransitionResult with the state unchanged so
the UI can correct them in place. A rejected transition keeps the data
that was already accepted. Only a duplicate placement raises.

Author: TM3
Date: 2025-12-02
Updated: 2025-12-09
"""
import logging
from typing import Optional

from storefront.core.errors import (
    DuplicateSubmission, PersistenceError, StockConflict, ValidationError,
)
from storefront.core.events import EventEmitter, CHECKOUT_STATE_CHANGED
from storefront.domain.checkout import (
    CheckoutErrorCode, CheckoutStep, PaymentInfo, ShippingInfo, TransitionResult,
)
from storefront.services.cart_service import CartStore
from storefront.services.order_writer import OrderWriter
from storefront.services.stock_validator import StockValidator

logger = logging.getLogger(__name__)

BACK_TRANSITIONS = {
    CheckoutStep.PAYMENT: CheckoutStep.SHIPPING,
    CheckoutStep.REVIEW: CheckoutStep.PAYMENT,
    CheckoutStep.FAILED: CheckoutStep.REVIEW,
}


class CheckoutStateMachine:

    def __init__(
        self,
        cart_store: CartStore,
        stock_validator: StockValidator,
        order_writer: OrderWriter,
        events: Optional[EventEmitter] = None,
        user_id: Optional[str] = None,
    ):
        self.cart_store = cart_store
        self.stock_validator = stock_validator
        self.order_writer = order_writer
        self.events = events or cart_store.events
        self.user_id = user_id

        self.state = CheckoutStep.SHIPPING
        self.shipping = ShippingInfo()
        self.payment = PaymentInfo()
        self.order_id: Optional[int] = None
        self.last_result: Optional[TransitionResult] = None
        self._busy = False

    @property
    def can_place_order(self) -> bool:
        """False while a placement is in flight or outside REVIEW"""
        return self.state == CheckoutStep.REVIEW and not self._busy

    # ============================================
    # Transitions
    # ============================================

    def submit_shipping(self, shipping: Optional[ShippingInfo] = None) -> TransitionResult:
        if self.state != CheckoutStep.SHIPPING:
            return self._invalid("submit shipping")
        if shipping is not None:
            self.shipping = shipping

        missing = self.shipping.missing_fields()
        if missing:
            return self._fail(
                CheckoutErrorCode.MISSING_FIELDS,
                fields=missing,
                message="Please fill in all required fields",
            )

        return self._move(CheckoutStep.PAYMENT)

    def submit_payment(self, payment: Optional[PaymentInfo] = None) -> TransitionResult:
        """
        Accept the payment step and run the first stock validation

        A stock problem keeps the machine in PAYMENT with one issue per
        failing line; the cart is not touched.
        """
        if self.state != CheckoutStep.PAYMENT:
            return self._invalid("submit payment")
        if payment is not None:
            self.payment = payment

        missing = self.payment.missing_fields()
        if missing:
            return self._fail(
                CheckoutErrorCode.MISSING_FIELDS,
                fields=missing,
                message="Please complete your payment details",
            )

        cart = self.cart_store.cart
        if cart.is_empty:
            return self._fail(CheckoutErrorCode.EMPTY_CART, message="Your cart is empty")

        try:
            verdicts = self.stock_validator.validate(cart)
        except PersistenceError as e:
            logger.error(f"Stock validation unavailable: {e.message}")
            return self._fail(CheckoutErrorCode.PERSISTENCE_ERROR, message=e.message)

        failures = StockValidator.failures(verdicts)
        if failures:
            return self._fail(
                CheckoutErrorCode.STOCK_CONFLICT,
                stock_issues=failures,
                message=StockConflict.default_message,
            )

        return self._move(CheckoutStep.REVIEW)

    def place_order(self) -> TransitionResult:
        """
        Commit the order

        Raises:
            DuplicateSubmission: a placement is already in flight
        """
        if self._busy:
            raise DuplicateSubmission()
        if self.state != CheckoutStep.REVIEW:
            return self._invalid("place order")

        self._busy = True
        try:
            try:
                failures = StockValidator.failures(
                    self.stock_validator.validate(self.cart_store.cart)
                )
            except PersistenceError as e:
                logger.error(f"Stock validation unavailable: {e.message}")
                self._set_state(CheckoutStep.FAILED)
                return self._fail(CheckoutErrorCode.PERSISTENCE_ERROR, message=e.message)
            if failures:
                return self._fail(
                    CheckoutErrorCode.STOCK_CONFLICT,
                    stock_issues=failures,
                    message=StockConflict.default_message,
                )

            self._set_state(CheckoutStep.PLACING)
            try:
                order_id = self.order_writer.commit(
                    self.cart_store, self.shipping, self.payment, user_id=self.user_id,
                )
            except StockConflict as e:
                self._set_state(CheckoutStep.REVIEW)
                return self._fail(
                    CheckoutErrorCode.STOCK_CONFLICT,
                    stock_issues=e.verdicts,
                    message=e.message,
                )
            except ValidationError as e:
                self._set_state(CheckoutStep.REVIEW)
                return self._fail(
                    CheckoutErrorCode.VALIDATION_ERROR,
                    fields=e.fields,
                    message=e.message,
                )
            except PersistenceError as e:
                logger.error(f"Order placement failed: {e.message}")
                self._set_state(CheckoutStep.FAILED)
                return self._fail(CheckoutErrorCode.PERSISTENCE_ERROR, message=e.message)
            except DuplicateSubmission:
                self._set_state(CheckoutStep.REVIEW)
                raise

            self.order_id = order_id
            result = self._move(CheckoutStep.PLACED)
            result.order_id = order_id
            return result
        finally:
            self._busy = False

    def back(self) -> TransitionResult:
        """Previous step. Entered shipping and payment data are kept."""
        target = BACK_TRANSITIONS.get(self.state)
        if target is None:
            return self._invalid("go back")
        return self._move(target)

    # ============================================
    # Internals
    # ============================================

    def _set_state(self, state: CheckoutStep):
        previous = self.state
        self.state = state
        if previous != state:
            logger.debug(f"Checkout {previous.value} -> {state.value}")
            self.events.emit(CHECKOUT_STATE_CHANGED, {"previous": previous, "state": state})

    def _move(self, state: CheckoutStep) -> TransitionResult:
        self._set_state(state)
        self.last_result = TransitionResult(ok=True, state=state)
        return self.last_result

    def _fail(self, error: CheckoutErrorCode, fields=None, stock_issues=None, message=None) -> TransitionResult:
        self.last_result = TransitionResult(
            ok=False,
            state=self.state,
            error=error,
            fields=list(fields or []),
            stock_issues=list(stock_issues or []),
            message=message,
        )
        return self.last_result

    def _invalid(self, action: str) -> TransitionResult:
        return self._fail(
            CheckoutErrorCode.INVALID_TRANSITION,
            message=f"Cannot {action} from {self.state.value}",
        )
