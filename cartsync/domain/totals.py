# cartsync/domain/totals.py
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, ConfigDict

from cartsync.utils.settings import TAX_RATE, FREE_SHIPPING_THRESHOLD, SHIPPING_FEE
from cartsync.utils.logging import get_logger

logger = get_logger(__name__)

ZERO = Decimal("0")
# wieksza ilosc traktujemy jak niepoprawna
MAX_QUANTITY = Decimal("1000000")


class PricingPolicy(BaseModel):
    """Stawki uzywane przy przeliczaniu koszyka."""

    model_config = ConfigDict(frozen=True)

    tax_rate: Decimal = TAX_RATE
    free_shipping_threshold: Decimal = FREE_SHIPPING_THRESHOLD
    shipping_fee: Decimal = SHIPPING_FEE


DEFAULT_POLICY = PricingPolicy()


class CartTotals(BaseModel):
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal


def coerce_decimal(value: Any) -> Decimal:
    """Anything that is not a finite number becomes 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, float) and not math.isfinite(value):
        return ZERO
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return ZERO
    if not result.is_finite():
        return ZERO
    return result


def coerce_quantity(value: Any) -> int:
    """Whole quantity; out of range or malformed values become 0."""
    quantity = coerce_decimal(value)
    if abs(quantity) > MAX_QUANTITY:
        return 0
    return int(quantity)


def _field(item: Any, *names: str) -> Any:
    if isinstance(item, Mapping):
        for name in names:
            if name in item:
                return item[name]
        return None
    for name in names:
        if hasattr(item, name):
            return getattr(item, name)
    return None


def line_total(item: Any) -> Decimal:
    price = coerce_decimal(_field(item, "price"))
    quantity = coerce_quantity(_field(item, "quantity"))
    return price * quantity


def recompute(
    items: Iterable[Any] | None,
    discount: Any = ZERO,
    policy: PricingPolicy | None = None,
) -> CartTotals:
    policy = policy or DEFAULT_POLICY

    subtotal = sum((line_total(i) for i in (items or ())), ZERO)
    tax = subtotal * policy.tax_rate
    shipping = ZERO if subtotal > policy.free_shipping_threshold else policy.shipping_fee

    # rabat moze przekroczyc sume, total nie jest obcinany do zera
    total = subtotal + tax + shipping - coerce_decimal(discount)
    if total < ZERO:
        logger.warning(f"Cart total is negative ({total}), discount exceeds cart value")

    return CartTotals(subtotal=subtotal, tax=tax, shipping=shipping, total=total)


def apply_totals(cart, policy: PricingPolicy | None = None):
    """Re-derive every line's totalPrice and the cart level totals."""
    items = [
        item.model_copy(update={"total_price": item.price * item.quantity})
        for item in cart.items
    ]
    totals = recompute(items, discount=cart.discount, policy=policy)
    return cart.model_copy(update={"items": items, **totals.model_dump()})
