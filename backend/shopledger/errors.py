# Overview: Domain exceptions raised by the service layer and translated to HTTP by routes.

from __future__ import annotations


class ShopLedgerError(Exception):
    """Base for business-rule failures. `details` is safe to return to clients."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFound(ShopLedgerError):
    pass


class AccountNotFound(NotFound):
    pass


class AdminRequired(ShopLedgerError):
    pass


class OutOfStock(ShopLedgerError):
    """Requested quantity exceeds what is on hand. The cart is left unchanged."""
    def __init__(self, product_id: int, requested: int, available: int, name: str | None = None):
        message = f"Insufficient stock for product {name or product_id}"
        super().__init__(message, details={
            "product_id": product_id,
            "requested_quantity": requested,
            "on_hand": available,
        })
        self.product_id = product_id
        self.requested = requested
        self.available = available


class ProductLimitExceeded(ShopLedgerError):
    pass


class InvalidCoupon(ShopLedgerError):
    pass


class CouponExhausted(InvalidCoupon):
    pass


class SaleCreationFailed(ShopLedgerError):
    """Storage rejected part of a sale; the whole sale was rolled back."""


class SubscriptionFailed(ShopLedgerError):
    """Storage rejected a subscription change; nothing was written."""


class PersistenceUnavailable(ShopLedgerError):
    pass


HTTP_STATUS = (
    (AccountNotFound, 404),
    (NotFound, 404),
    (AdminRequired, 403),
    (ProductLimitExceeded, 403),
    (OutOfStock, 409),
    (CouponExhausted, 409),
    (InvalidCoupon, 400),
    (SaleCreationFailed, 500),
    (SubscriptionFailed, 500),
    (PersistenceUnavailable, 503),
)


def http_status(exc: ShopLedgerError) -> int:
    for exc_type, status in HTTP_STATUS:
        if isinstance(exc, exc_type):
            return status
    return 400


def error_body(exc: ShopLedgerError) -> dict:
    body = {"error": str(exc)}
    if exc.details:
        body["details"] = exc.details
    return body
