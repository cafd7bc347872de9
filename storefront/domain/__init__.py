from storefront.domain.order import (
    AcceptanceStatus,
    Order,
    OrderComment,
    OrderItem,
    OrderStatus,
)
from storefront.domain.roles import Principal, Role

__all__ = [
    "AcceptanceStatus",
    "Order",
    "OrderComment",
    "OrderItem",
    "OrderStatus",
    "Principal",
    "Role",
]
