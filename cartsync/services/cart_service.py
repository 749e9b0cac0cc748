from decimal import Decimal
from typing import Callable

from pydantic import ValidationError

from cartsync.domain.schemas import Cart, NewCartItem
from cartsync.exceptions import CartMergeError, InvalidCartItemError, RemoteCartError
from cartsync.repos.local_cart import LocalCartStore
from cartsync.services.cart_client import RemoteCartClient
from cartsync.services.fallback import FallbackPolicy, SilentFallback, Source
from cartsync.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Jedno API koszyka dla aplikacji, niezaleznie od tego gdzie jest koszyk
    commands (add, update, remove, clear, coupon) najpierw remote, potem local
    query (get, refresh, summary) tak samo, wynik remote lustrzany w local
    """

    def __init__(
        self,
        remote: RemoteCartClient,
        local: LocalCartStore,
        policy: FallbackPolicy | None = None,
    ):
        self.remote = remote
        self.local = local
        self.policy = policy or SilentFallback()
        self._cart: Cart | None = None
        self.last_source: Source | None = None

    #query - odczyt
    def get_cart(self) -> Cart:
        return self._run("get", self.remote.get_cart, self.local.get)

    def refresh_cart(self) -> Cart:
        return self.get_cart()

    def summary(self) -> Cart:
        return self._run("summary", self.remote.summary, self.local.get)

    def cart_count(self) -> int:
        resolution = self.policy.resolve(
            "count",
            self.remote.count,
            lambda: self._item_count(self.local.get()),
        )
        return resolution.value

    #commands
    def add_to_cart(self, item: NewCartItem | dict) -> Cart:
        """
        Add a product. Malformed numbers are coerced (quantity "two" -> 0); a
        quantity <= 0 adds nothing and returns the current cart. An item that
        cannot be read at all raises InvalidCartItemError.
        """
        try:
            new = item if isinstance(item, NewCartItem) else NewCartItem.model_validate(item)
        except ValidationError as e:
            logger.error(f"Rejected cart item {item!r}: {e}")
            raise InvalidCartItemError(str(e)) from e

        if new.quantity <= 0:
            logger.info(f"Quantity {new.quantity} for product {new.product_id}, nothing to add")
            return self.get_cart()

        return self._run(
            "add",
            lambda: self.remote.add_item(new),
            lambda: self.local.add_item(new),
        )

    def update_cart_item(self, item_id, quantity: int) -> Cart:
        return self._run(
            "update",
            lambda: self.remote.update_item(item_id, quantity),
            lambda: self.local.update_item(item_id, quantity),
        )

    def remove_from_cart(self, item_id) -> Cart:
        return self._run(
            "remove",
            lambda: self.remote.remove_item(item_id),
            lambda: self.local.remove_item(item_id),
        )

    def clear_cart(self) -> Cart:
        return self._run("clear", self.remote.clear, self.local.clear)

    def apply_coupon(self, code: str) -> Cart:
        return self._run(
            "apply_coupon",
            lambda: self.remote.apply_coupon(code),
            lambda: self.local.apply_coupon(code),
        )

    def remove_coupon(self) -> Cart:
        return self._run("remove_coupon", self.remote.remove_coupon, self.local.remove_coupon)

    def merge_on_login(self, customer_id=None) -> Cart:
        """
        Merge the local guest cart into the customer's cart after login.

        On success the merged cart replaces the guest cart locally. On failure
        the guest cart is left untouched and CartMergeError is raised, the only
        cart failure that reaches the caller.
        An empty guest cart is not sent for merging; the customer cart is loaded.
        """
        guest = self.local.get()
        if not guest.is_guest:
            logger.info(f"Cart {guest.id} already belongs to customer {guest.customer_id}")
            return self.get_cart()

        if not guest.items:
            logger.info(f"Guest cart {guest.id} is empty, nothing to merge")
            return self.get_cart()

        logger.info(f"Merging guest cart {guest.id} after login")
        try:
            merged = self.remote.merge(guest.id)
        except RemoteCartError as e:
            logger.error(f"Merge of guest cart {guest.id} failed, keeping guest cart: {e}")
            raise CartMergeError(str(guest.id), str(e)) from e

        if merged.customer_id is None and customer_id is not None:
            merged = merged.model_copy(update={
                "customer_id": customer_id,
                "session_id": None,
                "expires_at": None,
            })

        self._cart = self.local.adopt(merged)
        self.last_source = Source.REMOTE
        logger.info(f"Guest cart {guest.id} merged into cart {merged.id}")
        return self._cart

    # derived accessors
    @property
    def cart(self) -> Cart | None:
        return self._cart

    @property
    def item_count(self) -> int:
        return self._item_count(self._cart)

    @property
    def subtotal(self) -> Decimal:
        return self._cart.subtotal if self._cart else Decimal("0")

    @property
    def total(self) -> Decimal:
        return self._cart.total if self._cart else Decimal("0")

    def _run(self, operation: str, remote: Callable[[], Cart], local: Callable[[], Cart]) -> Cart:
        resolution = self.policy.resolve(
            operation,
            lambda: self.local.adopt(remote()),
            local,
        )
        self._cart = resolution.value
        self.last_source = resolution.source
        return resolution.value

    @staticmethod
    def _item_count(cart: Cart | None) -> int:
        if cart is None:
            return 0
        return sum((i.quantity or 0) for i in cart.items)
