from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from storefront.constants import PAYMENT_CASH_ON_DELIVERY, STATUS_PENDING
from storefront.db import gateway
from storefront.schemas import OrderIn, OrderItemIn, ShippingForm
from storefront.services.cart import CartStore

logger = logging.getLogger(__name__)

LOGIN_URL = "/auth/login"

MSG_MISSING_FIELDS = "Please fill in all required fields"
MSG_EMPTY_CART = "Your cart is empty"
MSG_ORDER_FAILED = "Error creating order. Please try again."
MSG_ORDER_PLACED = "Order placed! You will pay cash on delivery."


class CheckoutState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    CREATING_ORDER = "creating_order"
    CREATING_ITEMS = "creating_items"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class CheckoutOutcome:
    state: CheckoutState
    redirect_to: Optional[str] = None
    message: str = ""
    order_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state == CheckoutState.SUCCESS


@dataclass
class CheckoutWorkflow:
    """
    One checkout attempt: cart -> order row -> order_items rows -> empty cart.

    Both inserts run with the user's access token (user["access_token"]), so the
    backend's row-level security checks them against the signed-in user.

    The order and its items are two separate inserts. If the items insert fails the
    order stays placed, the failure is only logged and the attempt still succeeds.
    Double submits are not detected.
    """

    cart: CartStore
    state: CheckoutState = CheckoutState.IDLE
    history: List[CheckoutState] = field(default_factory=lambda: [CheckoutState.IDLE])

    def _to(self, state: CheckoutState) -> None:
        self.state = state
        self.history.append(state)

    def _failed(self, message: str) -> CheckoutOutcome:
        self._to(CheckoutState.FAILED)
        return CheckoutOutcome(CheckoutState.FAILED, message=message)

    async def run(self, user: Optional[Dict[str, Any]], form: ShippingForm) -> CheckoutOutcome:
        if not user:
            return CheckoutOutcome(self.state, redirect_to=LOGIN_URL)

        # 1) форма
        self._to(CheckoutState.VALIDATING)
        if form.missing_fields():
            return self._failed(MSG_MISSING_FIELDS)
        items = self.cart.items
        if not items:
            return self._failed(MSG_EMPTY_CART)

        # 2-3) заказ, от имени пользователя (его JWT)
        self._to(CheckoutState.CREATING_ORDER)
        token = user.get("access_token")
        order = OrderIn(
            user_id=str(user["id"]),
            customer_name=form.customer_name.strip(),
            customer_email=form.customer_email.strip(),
            customer_phone=form.customer_phone.strip(),
            address=form.address.strip(),
            city=form.city.strip(),
            zip_code=form.zip_code.strip(),
            total_amount=self.cart.get_total_price(),
            status=STATUS_PENDING,
            payment_method=PAYMENT_CASH_ON_DELIVERY,
        )
        created, error = await gateway.create_order(order, access_token=token)
        if error is not None:
            logger.error("checkout: order creation failed for user %s: %s", user["id"], error)
            return self._failed(MSG_ORDER_FAILED)
        order_id = created["id"]
        logger.info("checkout: order %s created, total=%.2f", order_id, order.total_amount)

        # 4) позиции заказа, ошибка здесь заказ не отменяет
        self._to(CheckoutState.CREATING_ITEMS)
        order_items = [
            OrderItemIn(
                order_id=order_id,
                product_id=it.product_id,
                quantity=it.quantity,
                size=it.size or None,
                color=None,
                price=it.price,
            )
            for it in items
        ]
        _, items_error = await gateway.create_order_items(order_items, access_token=token)
        if items_error is not None:
            logger.warning("checkout: order %s placed but its items were not saved: %s", order_id, items_error)

        # 5) корзина
        self.cart.clear_cart()
        self._to(CheckoutState.SUCCESS)
        return CheckoutOutcome(
            CheckoutState.SUCCESS,
            redirect_to=f"/order-confirmation/{order_id}",
            message=MSG_ORDER_PLACED,
            order_id=order_id,
        )
