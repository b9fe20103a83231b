# gymhub/domain/schemas.py
from enum import Enum
from decimal import Decimal
from typing import Any, List

from pydantic import BaseModel, Field, ConfigDict


class NotificationType(str, Enum):
    MESSAGE = "message"
    BOOKING = "booking"
    DIET_PLAN = "dietPlan"
    WORKOUT_PLAN = "workoutPlan"
    PROGRESS = "progress"
    CLASS = "class"
    MEMBERSHIP = "membership"
    ORDER = "order"
    REVIEW = "review"
    SYSTEM = "system"
    FEATURE = "feature"
    GENERAL = "general"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Notification(BaseModel):
    """Notification pushed by the hub (ReceiveNotification)."""

    id: str
    user_id: str = Field(..., alias="userId")
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.MEDIUM
    is_read: bool = Field(False, alias="isRead")
    created_at: str = Field(..., alias="createdAt", description="ISO-8601, display only")
    data: dict[str, Any] | None = None
    action_url: str | None = Field(None, alias="actionUrl")

    model_config = ConfigDict(populate_by_name=True)


class NotificationsOut(BaseModel):
    notifications: List[Notification]
    unread_count: int = Field(..., alias="unreadCount")
    badge: str

    model_config = ConfigDict(populate_by_name=True)


class CartItemIn(BaseModel):
    """Schema for adding a product to the cart."""

    product_id: str = Field(..., min_length=1, alias="productID")
    name: str
    image_url: str | None = Field(None, alias="imageUrl")
    selling_price: Decimal = Field(..., ge=0, alias="sellingPrice")
    discount: Decimal = Field(Decimal("0"), ge=0, le=100, description="Percent 0-100")
    stock: int = Field(..., ge=0, description="Inventory snapshot at add time")

    model_config = ConfigDict(populate_by_name=True)


class CartItem(CartItemIn):
    """Cart line with snapshot pricing."""

    discounted_price: Decimal = Field(..., alias="discountedPrice")
    quantity: int = Field(..., ge=1)


class QuantityIn(BaseModel):
    quantity: int


class CartOut(BaseModel):
    items: List[CartItem]
    total_items: int = Field(..., alias="totalItems")
    total_price: Decimal = Field(..., alias="totalPrice")

    model_config = ConfigDict(populate_by_name=True)


class CheckoutSummary(BaseModel):
    subtotal: Decimal
    membership_discount: Decimal = Field(..., alias="membershipDiscount")
    discount_amount: Decimal = Field(..., alias="discountAmount")
    final_total: Decimal = Field(..., alias="finalTotal")
    total_items: int = Field(..., alias="totalItems")

    model_config = ConfigDict(populate_by_name=True)


class OrderLine(BaseModel):
    product_id: str = Field(..., alias="productID")
    quantity: int
    price: Decimal

    model_config = ConfigDict(populate_by_name=True)


class OrderCreate(BaseModel):
    """Payload the checkout flow posts to the orders API."""

    user_id: str = Field(..., alias="userID")
    total_amount: Decimal = Field(..., alias="totalAmount")
    quantity: int
    image_url: str | None = Field(None, alias="imageUrl")
    products: List[OrderLine]

    model_config = ConfigDict(populate_by_name=True)


class LoginIn(BaseModel):
    user_id: str = Field(..., alias="userId")
    token: str

    model_config = ConfigDict(populate_by_name=True)


class SessionStatusOut(BaseModel):
    state: str
    connected: bool
    status_text: str = Field(..., alias="statusText")

    model_config = ConfigDict(populate_by_name=True)
