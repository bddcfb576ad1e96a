"""
Storefront errors.

Every error a request can end in derives from ``StorefrontError`` and
carries the HTTP status the API answers with. ``main.py`` turns them into
``{"detail": ...}`` bodies, the same shape ``HTTPException`` produces.
"""
from __future__ import annotations
from typing import Dict, Optional


class StorefrontError(Exception):
    status_code: int = 500
    detail: str = "Internal error"

    def __init__(self, detail: Optional[str] = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class CheckoutValidationError(StorefrontError):
    """Local form problem. One message per offending field."""

    status_code = 400
    detail = "Please correct the highlighted fields"

    def __init__(self, errors: Dict[str, str], detail: Optional[str] = None):
        self.errors = dict(errors)
        super().__init__(detail)


class LookupUnavailable(StorefrontError):
    status_code = 503
    detail = "Could not fetch address details. Please enter manually."


class OrderCreationFailed(StorefrontError):
    status_code = 500
    detail = "Failed to create order"


class DuplicateOrderCode(OrderCreationFailed):
    status_code = 409
    detail = "Order code already in use"


class InsufficientStock(StorefrontError):
    status_code = 409

    def __init__(self, product_id: str, color: str, size: str, requested: int):
        self.product_id = product_id
        self.color = color
        self.size = size
        self.requested = requested
        super().__init__(f"Not enough stock for {product_id} ({color}, {size}): {requested} requested")


class NotificationFailed(StorefrontError):
    detail = "Failed to send notification"


class OrderNotFound(StorefrontError):
    status_code = 404

    def __init__(self, order_code: str):
        self.order_code = order_code
        super().__init__(f"Order not found: {order_code}")


class ProductNotFound(StorefrontError):
    status_code = 404
    detail = "Product not found"


class IllegalStatusTransition(StorefrontError):
    status_code = 409

    def __init__(self, axis: str, current: str, requested: str):
        self.axis = axis
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move {axis} from {current} to {requested}")


class ConcurrentUpdate(StorefrontError):
    status_code = 409
    detail = "Order was modified concurrently, reload and retry"
