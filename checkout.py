# checkout.py
"""Cart to order conversion.

The whole sequence runs in one database transaction. A ``CheckoutRun``
starts ``pending`` and ends ``committed`` when every write went through, or
``failed`` after the transaction has been rolled back. There is no partial
outcome: a failed run leaves no order, no contribution, no balance change
and the cart untouched.
"""
import math
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

import structlog

from core import Order, OrderItem, money
from errors import EmptyCartError, InsufficientStockError, ValidationError

logger = structlog.get_logger(__name__)


class CheckoutState(Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class CheckoutResult:
    order_id: int
    points_earned: int
    co2_saved: Decimal
    total_amount: Decimal

    def to_dict(self):
        return {
            "message": "Order placed successfully",
            "orderId": self.order_id,
            "pointsEarned": self.points_earned,
            "co2Saved": self.co2_saved,
            "totalAmount": self.total_amount,
        }


def cart_totals(lines):
    """Order totals for cart lines at current product prices, two places each."""
    total_amount = sum((line.product.price * line.quantity for line in lines), Decimal("0"))
    total_co2 = sum((line.product.co2_saved_per_unit * line.quantity for line in lines), Decimal("0"))
    return money(total_amount), money(total_co2)


def points_for(co2_saved):
    """One eco point per whole kg of CO2 saved."""
    return int(math.floor(co2_saved))


@dataclass
class CheckoutRun:
    storage: object
    user_id: str
    shipping_address: str
    payment_method: str
    enforce_stock: bool = True
    state: CheckoutState = CheckoutState.PENDING
    result: Optional[CheckoutResult] = field(default=None)

    def execute(self):
        if self.state is not CheckoutState.PENDING:
            raise RuntimeError(f"checkout already {self.state.value}")
        try:
            result = self._apply()
            self.storage.commit()
        except Exception as exc:
            self.storage.rollback()
            self.state = CheckoutState.FAILED
            logger.warning("Checkout failed", user_id=self.user_id, error=str(exc))
            raise
        self.state = CheckoutState.COMMITTED
        self.result = result
        logger.info(
            "Checkout committed",
            user_id=self.user_id,
            order_id=result.order_id,
            total_amount=str(result.total_amount),
            co2_saved=str(result.co2_saved),
            points_earned=result.points_earned,
        )
        return result

    def _apply(self):
        storage = self.storage
        lines = storage.get_cart_items(self.user_id)
        if not lines:
            raise EmptyCartError()

        total_amount, total_co2 = cart_totals(lines)
        order = Order(
            user_id=self.user_id,
            total_amount=total_amount,
            total_co2_saved=total_co2,
            status="pending",
            shipping_address=self.shipping_address,
            payment_method=self.payment_method,
        )
        items = []
        for line in lines:
            product = line.product
            if not product.is_visible:
                raise ValidationError(f"{product.name} is no longer available")
            if self.enforce_stock:
                if line.quantity > (product.stock or 0):
                    raise InsufficientStockError(f"Insufficient stock for {product.name}")
                product.stock = product.stock - line.quantity
            items.append(OrderItem(
                product_id=product.id,
                quantity=line.quantity,
                price=money(product.price),
                co2_saved=money(product.co2_saved_per_unit * line.quantity),
            ))
        storage.create_order(order, items)

        points_earned = points_for(total_co2)
        storage.update_user_points(self.user_id, points_earned, total_co2)
        storage.create_co2_contribution(self.user_id, order.id, total_co2, points_earned)

        company = storage.get_company_by_user_id(self.user_id)
        if company is not None:
            storage.update_company_stats(company.id, points_earned, total_co2)
            if points_earned:
                storage.create_company_points_history(
                    company.id, "earned", points_earned, f"Order #{order.id} by employee"
                )

        storage.clear_cart(self.user_id)
        return CheckoutResult(
            order_id=order.id, points_earned=points_earned, co2_saved=total_co2, total_amount=total_amount
        )


def checkout(storage, user_id, shipping_address, payment_method, enforce_stock=True):
    run = CheckoutRun(storage, user_id, shipping_address, payment_method, enforce_stock=enforce_stock)
    return run.execute()
