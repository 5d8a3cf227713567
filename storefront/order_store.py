"""
Order Store

Durable record of orders and their line items. Every mutating method is one
transaction scoped to a single order.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from storefront.errors import StorageError
from storefront.models import Order, OrderItem, OrderStatus, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineItem:
    vinyl_id: str
    unit_price: Decimal
    quantity: int = 1

    @property
    def subtotal(self) -> Decimal:
        return Decimal(self.unit_price) * self.quantity


def order_total(line_items: Sequence[LineItem]) -> Decimal:
    return sum((item.subtotal for item in line_items), Decimal("0")).quantize(Decimal("0.01"))


class OrderStore:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self, action: str, statement: Optional[Callable[[], Any]] = None) -> Any:
        """Run ``statement`` (if any) and commit as one unit; any database error rolls back."""
        try:
            result = statement() if statement is not None else None
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Order store failed to {action}: {exc}")
            raise StorageError(f"Failed to {action}") from exc
        return result

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_pending(self, user_id: str, line_items: Sequence[LineItem]) -> Order:
        """
        Persist a PENDING order and its items in one transaction.

        The order total is a snapshot of the line items' prices and never
        changes afterwards.
        """
        if not line_items:
            raise ValueError("An order needs at least one line item")
        for item in line_items:
            if item.quantity < 1:
                raise ValueError(f"Quantity must be at least 1, got {item.quantity}")

        order = Order(
            user_id=user_id,
            status=OrderStatus.PENDING,
            total_amount=order_total(line_items),
            stripe_payment_intent_id=None,
        )
        order.items = [
            OrderItem(
                vinyl_id=item.vinyl_id,
                quantity=item.quantity,
                price_at_purchase=item.unit_price,
            )
            for item in line_items
        ]

        self.db.add(order)
        self._commit("create order")
        self.db.refresh(order)

        logger.info(f"Created pending order {order.id} for user {user_id}, total={order.total_amount}")
        return order

    def attach_payment_reference(self, order_id: str, payment_intent_id: str) -> Order:
        order = self.db.get(Order, order_id)
        if order is None:
            raise StorageError(f"Order {order_id} disappeared before its payment intent was attached")

        if order.stripe_payment_intent_id == payment_intent_id:
            return order
        if order.stripe_payment_intent_id:
            raise ValueError(
                f"Order {order_id} already references payment intent "
                f"{order.stripe_payment_intent_id}, refusing {payment_intent_id}"
            )

        order.stripe_payment_intent_id = payment_intent_id
        self._commit("attach payment intent")
        self.db.refresh(order)

        logger.info(f"Attached payment intent {payment_intent_id} to order {order_id}")
        return order

    def transition_status(self, order: Order, new_status: OrderStatus) -> bool:
        """
        Move ``order`` out of PENDING into ``new_status``.

        Terminal states are final: the update only matches a PENDING row, so
        concurrent or late deliveries cannot overwrite each other. Returns
        True when this call changed the row.
        """
        changed = self._commit(
            "update order status",
            lambda: (
                self.db.query(Order)
                .filter(Order.id == order.id, Order.status == OrderStatus.PENDING)
                .update(
                    {Order.status: new_status, Order.updated_at: utcnow()},
                    synchronize_session=False,
                )
            ),
        )
        self.db.refresh(order)
        return changed == 1

    def delete_item(self, item_id: str) -> None:
        self._commit(
            "delete order item",
            lambda: self.db.query(OrderItem).filter(OrderItem.id == item_id).delete(synchronize_session=False),
        )

    def delete_order(self, order_id: str) -> None:
        self._commit(
            "delete order",
            lambda: self.db.query(Order).filter(Order.id == order_id).delete(synchronize_session=False),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_payment_reference(self, payment_intent_id: str) -> Optional[Order]:
        return (
            self.db.query(Order)
            .filter(Order.stripe_payment_intent_id == payment_intent_id)
            .first()
        )

    def find_by_id_for_user(self, order_id: str, user_id: str) -> Optional[Order]:
        # Non-owners get the same empty result as a missing id
        return (
            self.db.query(Order)
            .options(selectinload(Order.items).selectinload(OrderItem.vinyl))
            .filter(Order.id == order_id, Order.user_id == user_id)
            .first()
        )

    def list_for_user(self, user_id: str) -> List[Order]:
        return (
            self.db.query(Order)
            .options(selectinload(Order.items).selectinload(OrderItem.vinyl))
            .filter(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id)
            .all()
        )
