from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class CheckoutError(Exception):
    message: str

    code: ClassVar[str] = "CHECKOUT_ERROR"
    category: ClassVar[str] = "permanent"

    def __str__(self) -> str:  # pragma: no cover
        return self.message


# ---- categories ------------------------------------------------------------


@dataclass(frozen=True)
class ValidationError(CheckoutError):
    code: ClassVar[str] = "VALIDATION_ERROR"
    category: ClassVar[str] = "validation"


@dataclass(frozen=True)
class NotFoundError(CheckoutError):
    code: ClassVar[str] = "NOT_FOUND"
    category: ClassVar[str] = "not_found"


@dataclass(frozen=True)
class ConflictError(CheckoutError):
    code: ClassVar[str] = "CONFLICT"
    category: ClassVar[str] = "conflict"


@dataclass(frozen=True)
class TransientError(CheckoutError):
    code: ClassVar[str] = "TRANSIENT_ERROR"
    category: ClassVar[str] = "transient"


@dataclass(frozen=True)
class PermanentError(CheckoutError):
    code: ClassVar[str] = "PERMANENT_ERROR"
    category: ClassVar[str] = "permanent"


# ---- validation ------------------------------------------------------------


@dataclass(frozen=True)
class InvalidCartState(ValidationError):
    code: ClassVar[str] = "INVALID_CART_STATE"


@dataclass(frozen=True)
class EmptyCart(ValidationError):
    cart_id: str

    code: ClassVar[str] = "EMPTY_CART"

    def __str__(self) -> str:  # pragma: no cover
        return f"empty_cart: {self.cart_id} ({self.message})"


# ---- not found -------------------------------------------------------------


@dataclass(frozen=True)
class CartNotFound(NotFoundError):
    cart_id: str

    code: ClassVar[str] = "CART_NOT_FOUND"

    def __str__(self) -> str:  # pragma: no cover
        return f"cart_not_found: {self.cart_id} ({self.message})"


@dataclass(frozen=True)
class CartItemNotFound(NotFoundError):
    cart_id: str
    product_id: int

    code: ClassVar[str] = "CART_ITEM_NOT_FOUND"

    def __str__(self) -> str:  # pragma: no cover
        return f"cart_item_not_found: {self.cart_id}/{self.product_id} ({self.message})"


@dataclass(frozen=True)
class ProductNotFound(NotFoundError):
    product_id: int

    code: ClassVar[str] = "PRODUCT_NOT_FOUND"

    def __str__(self) -> str:  # pragma: no cover
        return f"product_not_found: {self.product_id} ({self.message})"


@dataclass(frozen=True)
class OrderNotFound(NotFoundError):
    order_id: str

    code: ClassVar[str] = "ORDER_NOT_FOUND"

    def __str__(self) -> str:  # pragma: no cover
        return f"order_not_found: {self.order_id} ({self.message})"


@dataclass(frozen=True)
class ShippingNotFound(NotFoundError):
    shipping_id: int

    code: ClassVar[str] = "SHIPPING_NOT_FOUND"


@dataclass(frozen=True)
class TaxNotFound(NotFoundError):
    tax_id: int

    code: ClassVar[str] = "TAX_NOT_FOUND"


@dataclass(frozen=True)
class CustomerNotFound(NotFoundError):
    customer_id: str

    code: ClassVar[str] = "CUSTOMER_NOT_FOUND"


# ---- conflict --------------------------------------------------------------


@dataclass(frozen=True)
class CartAlreadyCheckedOut(ConflictError):
    cart_id: str

    code: ClassVar[str] = "CART_ALREADY_CHECKED_OUT"

    def __str__(self) -> str:  # pragma: no cover
        return f"cart_already_checked_out: {self.cart_id} ({self.message})"


@dataclass(frozen=True)
class CartModified(ConflictError):
    cart_id: str

    code: ClassVar[str] = "CART_MODIFIED"

    def __str__(self) -> str:  # pragma: no cover
        return f"cart_modified: {self.cart_id} ({self.message})"


@dataclass(frozen=True)
class OrderAlreadySettled(ConflictError):
    order_id: str

    code: ClassVar[str] = "ORDER_ALREADY_SETTLED"

    def __str__(self) -> str:  # pragma: no cover
        return f"order_already_settled: {self.order_id} ({self.message})"


@dataclass(frozen=True)
class OutOfStock(ConflictError):
    product_id: int

    code: ClassVar[str] = "OUT_OF_STOCK"

    def __str__(self) -> str:  # pragma: no cover
        return f"out_of_stock: product={self.product_id} ({self.message})"


# ---- transient -------------------------------------------------------------


@dataclass(frozen=True)
class PaymentGatewayUnreachable(TransientError):
    code: ClassVar[str] = "PAYMENT_GATEWAY_UNREACHABLE"


@dataclass(frozen=True)
class StorageUnavailable(TransientError):
    code: ClassVar[str] = "STORAGE_UNAVAILABLE"


@dataclass(frozen=True)
class NotificationFailed(TransientError):
    order_id: str

    code: ClassVar[str] = "NOTIFICATION_FAILED"


# ---- permanent -------------------------------------------------------------


@dataclass(frozen=True)
class PaymentDeclined(PermanentError):
    reason: str

    code: ClassVar[str] = "PAYMENT_DECLINED"

    def __str__(self) -> str:  # pragma: no cover
        return f"payment_declined: {self.reason} ({self.message})"


@dataclass(frozen=True)
class OrderPersistenceFailed(PermanentError):
    code: ClassVar[str] = "ORDER_PERSISTENCE_FAILED"
