"""
Order Lifecycle Service

Creates Stripe payment intents backed by a durable PENDING order and
reconciles order status from signed Stripe webhooks.

State machine:
    PENDING -> COMPLETED   (payment_intent.succeeded)
    PENDING -> FAILED      (payment_intent.payment_failed)
COMPLETED and FAILED are terminal.
"""
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List, Optional

from storefront.catalog import CatalogLookup
from storefront.errors import GatewayError, NotFoundError
from storefront.models import Order, OrderStatus
from storefront.notifications import NotificationDispatcher
from storefront.order_store import LineItem, OrderStore
from storefront.stripe_service import PaymentGateway

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"

# Event kinds Stripe sends for every intent that we deliberately do not model
IGNORED_EVENTS = frozenset({
    "payment_intent.created",
    "charge.succeeded",
    "charge.updated",
})


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal currency amount to integer cents, rounding half away from zero."""
    cents = (Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


@dataclass(frozen=True)
class PaymentIntentResult:
    client_secret: str
    order_id: str
    amount: int


class OrderLifecycleService:
    def __init__(
        self,
        store: OrderStore,
        catalog: CatalogLookup,
        gateway: PaymentGateway,
        notifier: NotificationDispatcher,
    ):
        self.store = store
        self.catalog = catalog
        self.gateway = gateway
        self.notifier = notifier

    # ========================================================================
    # Payment intent creation
    # ========================================================================

    def create_payment_intent(self, user_id: str, vinyl_id: str) -> PaymentIntentResult:
        """
        Record a PENDING order for ``vinyl_id`` and open a Stripe payment intent for it.

        The order is persisted before Stripe is called so that every attempt
        leaves a record. If Stripe fails, the order and its item are deleted
        again before the error propagates.

        Raises:
            NotFoundError: the vinyl does not exist (nothing is written)
            GatewayError: Stripe refused the intent (order rolled back)
            StorageError: the order could not be written
        """
        vinyl = self.catalog.find_vinyl(vinyl_id)

        line_item = LineItem(vinyl_id=vinyl.id, unit_price=Decimal(vinyl.price), quantity=1)
        amount = to_minor_units(line_item.subtotal)

        order = self.store.create_pending(user_id, [line_item])
        order_id = order.id
        item_ids = [item.id for item in order.items]

        try:
            intent = self.gateway.create_payment_intent(
                amount,
                metadata={
                    "orderId": order_id,
                    "userId": user_id,
                    "vinylId": vinyl.id,
                    "vinylName": vinyl.name,
                },
                idempotency_key=order_id,
            )
        except GatewayError as exc:
            self._rollback_order(order_id, item_ids)
            raise GatewayError(f"Failed to create payment intent: {exc.message}") from exc
        except Exception:
            self._rollback_order(order_id, item_ids)
            raise

        try:
            self.store.attach_payment_reference(order_id, intent.id)
        except Exception:
            # Stripe already holds a live intent for this order; keep the record
            logger.error(
                f"Payment intent {intent.id} created but could not be attached to order {order_id}",
                exc_info=True,
            )
            raise

        logger.info(f"Payment intent {intent.id} opened for order {order_id}, amount={amount}")
        return PaymentIntentResult(
            client_secret=intent.client_secret,
            order_id=order_id,
            amount=amount,
        )

    def _rollback_order(self, order_id: str, item_ids: List[str]) -> None:
        # Items first: they reference the order
        try:
            for item_id in item_ids:
                self.store.delete_item(item_id)
            self.store.delete_order(order_id)
        except Exception:
            logger.exception(f"Rollback of order {order_id} failed, manual cleanup required")
            return
        logger.info(f"Rolled back order {order_id} after payment intent failure")

    # ========================================================================
    # Webhook reconciliation
    # ========================================================================

    def handle_webhook(self, signature: Optional[str], payload: bytes) -> None:
        """
        Verify and apply a Stripe webhook event.

        Raises ConfigurationError when no webhook secret is configured and
        SignatureError when verification fails. Nothing is read from the
        store before verification succeeds.
        """
        event = self.gateway.construct_event(payload, signature)
        event_type = event["type"]

        if event_type == PAYMENT_SUCCEEDED:
            intent = event["data"]["object"]
            self.complete_order(intent["id"])
        elif event_type == PAYMENT_FAILED:
            intent = event["data"]["object"]
            self.fail_order(intent["id"], _failure_reason(intent))
        elif event_type in IGNORED_EVENTS:
            pass
        else:
            logger.info(f"Unhandled event type: {event_type}")

    def complete_order(self, payment_intent_id: str) -> Optional[Order]:
        order = self._transition(payment_intent_id, OrderStatus.COMPLETED)
        if order is not None:
            self._notify(self.notifier.order_confirmed, order)
        return order

    def fail_order(self, payment_intent_id: str, reason: Optional[str] = None) -> Optional[Order]:
        order = self._transition(payment_intent_id, OrderStatus.FAILED)
        if order is not None:
            self._notify(self.notifier.payment_failed, order, reason)
        return order

    def _transition(self, payment_intent_id: str, status: OrderStatus) -> Optional[Order]:
        """Return the order only when this call moved it out of PENDING."""
        order = self.store.find_by_payment_reference(payment_intent_id)
        if order is None:
            logger.warning(f"Order not found for payment intent: {payment_intent_id}")
            return None

        if order.status == status:
            logger.info(f"Order {order.id} already {status.value}, ignoring redelivery")
            return None
        if order.status.is_terminal:
            logger.warning(
                f"Order {order.id} is {order.status.value}, ignoring late "
                f"{status.value} event for payment intent {payment_intent_id}"
            )
            return None

        if not self.store.transition_status(order, status):
            logger.info(f"Order {order.id} was settled concurrently, now {order.status.value}")
            return None

        logger.info(f"Order {order.id} marked as {status.value.upper()}")
        return order

    def _notify(self, send, order: Order, *args: Any) -> None:
        try:
            send(order, *args)
        except Exception:
            logger.exception(f"Notification for order {order.id} failed")

    # ========================================================================
    # Queries
    # ========================================================================

    def get_user_orders(self, user_id: str) -> List[Order]:
        return self.store.list_for_user(user_id)

    def get_order(self, order_id: str, user_id: str) -> Order:
        order = self.store.find_by_id_for_user(order_id, user_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order


def _failure_reason(intent: Any) -> Optional[str]:
    try:
        return intent["last_payment_error"]["message"]
    except (KeyError, TypeError):
        return None
