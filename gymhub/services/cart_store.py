# gymhub/services/cart_store.py
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Tuple

from gymhub.domain.schemas import (
    CartItem,
    CartItemIn,
    CartOut,
    CheckoutSummary,
    OrderCreate,
    OrderLine,
)
from gymhub.utils.logging import get_logger

logger = get_logger(__name__)


def calculate_discounted_price(price: Decimal, discount: Decimal) -> Decimal:
    return price * (1 - discount / 100)


class CartStore:
    """
    In-memory cart for the current session.
    commands (add, update, remove, clear) mutate items and recompute totals
    queries (items, totals, checkout) only read

    Invalid commands (over stock, unknown product) are no-ops, nothing is raised.
    """

    def __init__(self):
        self._items: List[CartItem] = []
        self._total_items = 0
        self._total_price = Decimal("0")

    #query
    @property
    def items(self) -> Tuple[CartItem, ...]:
        return tuple(i.model_copy() for i in self._items)

    @property
    def total_items(self) -> int:
        return self._total_items

    @property
    def total_price(self) -> Decimal:
        return self._total_price

    def get_item(self, product_id: str) -> CartItem | None:
        item = self._find(product_id)
        return item.model_copy() if item else None

    def to_out(self) -> CartOut:
        return CartOut(
            items=[i.model_copy() for i in self._items],
            total_items=self.total_items,
            total_price=self.total_price,
        )

    def checkout_summary(self, membership_discount: Decimal = Decimal("0")) -> CheckoutSummary:
        subtotal = self.total_price
        discount_amount = subtotal * Decimal(membership_discount) / 100
        return CheckoutSummary(
            subtotal=subtotal,
            membership_discount=membership_discount,
            discount_amount=discount_amount,
            final_total=subtotal - discount_amount,
            total_items=self.total_items,
        )

    def to_order(
        self,
        user_id: str,
        membership_discount: Decimal = Decimal("0"),
        image_url: str | None = None,
    ) -> OrderCreate:
        summary = self.checkout_summary(membership_discount)
        return OrderCreate(
            user_id=user_id,
            total_amount=summary.final_total,
            quantity=summary.total_items,
            image_url=image_url,
            products=[
                OrderLine(product_id=i.product_id, quantity=i.quantity, price=i.discounted_price)
                for i in self._items
            ],
        )

    #commands
    def add_to_cart(self, item: CartItemIn) -> None:
        existing = self._find(item.product_id)

        if existing:
            new_quantity = existing.quantity + 1
            if new_quantity <= existing.stock:
                existing.quantity = new_quantity
            else:
                logger.info(f"Product {item.product_id} at stock limit {existing.stock}, add ignored")
        elif item.stock > 0:
            #price fixed at insertion time (snapshot pricing)
            self._items.append(
                CartItem(
                    **item.model_dump(),
                    discounted_price=calculate_discounted_price(item.selling_price, item.discount),
                    quantity=1,
                )
            )
        else:
            logger.info(f"Product {item.product_id} out of stock, add ignored")

        self._recalculate()

    def update_quantity(self, product_id: str, quantity: int) -> None:
        existing = self._find(product_id)
        if not existing:
            return

        if 0 < quantity <= existing.stock:
            existing.quantity = quantity
        elif quantity <= 0:
            self._items = [i for i in self._items if i.product_id != product_id]
        else:
            logger.info(
                f"Quantity {quantity} for product {product_id} exceeds stock {existing.stock}, ignored"
            )

        self._recalculate()

    def remove_from_cart(self, product_id: str) -> None:
        self._items = [i for i in self._items if i.product_id != product_id]
        self._recalculate()

    def clear_cart(self) -> None:
        self._items = []
        self._total_items = 0
        self._total_price = Decimal("0")

    #snapshot
    def to_snapshot(self) -> List[Dict[str, Any]]:
        return [i.model_dump(mode="json", by_alias=True) for i in self._items]

    @classmethod
    def from_snapshot(cls, items: Iterable[Dict[str, Any]]) -> "CartStore":
        store = cls()
        store._items = [CartItem.model_validate(i) for i in items]
        store._recalculate()
        return store

    def _find(self, product_id: str) -> CartItem | None:
        for item in self._items:
            if item.product_id == product_id:
                return item
        return None

    def _recalculate(self) -> None:
        self._total_items = sum(i.quantity for i in self._items)
        self._total_price = sum(
            (i.discounted_price * i.quantity for i in self._items), Decimal("0")
        )
