# cartsync/repos/local_cart.py
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable

from pydantic import ValidationError

from cartsync.domain.schemas import (
    Cart,
    CartItem,
    NewCartItem,
    new_session_id,
    utcnow,
)
from cartsync.domain.totals import PricingPolicy, apply_totals
from cartsync.exceptions import StoreUnavailableError
from cartsync.repos.kv_store import KeyValueStore
from cartsync.utils.settings import CART_STORAGE_KEY, CART_TTL_SECONDS
from cartsync.utils.logging import get_logger

logger = get_logger(__name__)


class LocalCartStore:
    """
    Jeden koszyk zapisany lokalnie (gosc / offline).

    Klucz `key` trzyma JSON koszyka, `key:expiresAt` trzyma TTL w ISO.
    Uszkodzona tresc, przeterminowany TTL albo niedostepny magazyn
    = brak koszyka, tworzymy nowy zamiast zglaszac blad.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str = CART_STORAGE_KEY,
        ttl_seconds: int = CART_TTL_SECONDS,
        policy: PricingPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
        customer_id=None,
        session_id: str | None = None,
    ):
        self.store = store
        self.key = key
        self.expires_key = f"{key}:expiresAt"
        self.ttl = timedelta(seconds=ttl_seconds)
        self.policy = policy
        self.clock = clock
        self.customer_id = customer_id
        self.session_id = session_id

    # query
    def get(self) -> Cart:
        cart = self._load()
        if cart is None:
            cart = self._new_cart()
            self._persist(cart)
            logger.info(f"Created new local cart {cart.id}")
        return cart

    # commands
    def save(self, cart: Cart) -> Cart:
        now = self.clock()
        cart = cart.model_copy(update={
            "updated_at": now,
            "expires_at": now + self.ttl if cart.is_guest else None,
        })
        self._persist(cart)
        return cart

    def add_item(self, item: NewCartItem | dict) -> Cart:
        new = item if isinstance(item, NewCartItem) else NewCartItem.model_validate(item)
        cart = self.get()
        if new.quantity <= 0:
            logger.info(f"Quantity {new.quantity} for product {new.product_id}, cart {cart.id} unchanged")
            return cart

        existing = next(
            (i for i in cart.items if i.matches(new.product_id, new.color, new.size)),
            None,
        )

        if existing:
            logger.info(
                f"Product {new.product_id} already in cart {cart.id}, quantity "
                f"{existing.quantity} -> {existing.quantity + new.quantity}"
            )
            items = [
                i.model_copy(update={"quantity": i.quantity + new.quantity}) if i is existing else i
                for i in cart.items
            ]
        else:
            line = CartItem.from_new(new).model_copy(update={"added_at": self.clock()})
            logger.info(f"Adding product {new.product_id} to cart {cart.id} as {line.id}")
            items = [*cart.items, line]

        return self._commit(cart.model_copy(update={"items": items}))

    def update_item(self, item_id, quantity: int) -> Cart:
        cart = self.get()

        if cart.find_item(item_id) is None:
            logger.info(f"Item {item_id} not in cart {cart.id}, nothing to update")
            items = cart.items
        elif quantity <= 0:
            logger.info(f"Quantity {quantity} for item {item_id}, removing line")
            items = [i for i in cart.items if str(i.id) != str(item_id)]
        else:
            items = [
                i.model_copy(update={"quantity": quantity}) if str(i.id) == str(item_id) else i
                for i in cart.items
            ]

        return self._commit(cart.model_copy(update={"items": items}))

    def remove_item(self, item_id) -> Cart:
        cart = self.get()
        items = [i for i in cart.items if str(i.id) != str(item_id)]
        if len(items) != len(cart.items):
            logger.info(f"Removed item {item_id} from cart {cart.id}")
        return self._commit(cart.model_copy(update={"items": items}))

    def clear(self) -> Cart:
        previous = self._load()
        cart = self._new_cart(customer_id=previous.customer_id if previous else None)
        logger.info(f"Cleared local cart, new cart {cart.id}")
        return self.save(cart)

    def apply_coupon(self, code: str) -> Cart:
        # brak katalogu kuponow lokalnie, rabat liczy tylko serwer
        cart = self.get()
        logger.info(f"Coupon {code} cannot be evaluated offline, cart {cart.id} unchanged")
        return cart

    def remove_coupon(self) -> Cart:
        cart = self.get()
        return self._commit(cart.model_copy(update={"discount": Decimal("0"), "coupon_code": None}))

    def adopt(self, cart: Cart) -> Cart:
        """Mirror of an authoritative cart received from the cart service."""
        if cart.is_guest:
            cart = cart.model_copy(update={"expires_at": self.clock() + self.ttl})
        self._persist(cart)
        return cart

    def _commit(self, cart: Cart) -> Cart:
        return self.save(apply_totals(cart, self.policy))

    def _new_cart(self, customer_id=None) -> Cart:
        now = self.clock()
        if customer_id is None:
            customer_id = self.customer_id
        cart = Cart(
            customer_id=customer_id,
            session_id=None if customer_id is not None else (self.session_id or new_session_id()),
            created_at=now,
            updated_at=now,
            expires_at=None if customer_id is not None else now + self.ttl,
        )
        return apply_totals(cart, self.policy)

    def _load(self) -> Cart | None:
        try:
            raw = self.store.get(self.key)
            if raw is None:
                return None
            expires_raw = self.store.get(self.expires_key)
        except StoreUnavailableError as e:
            logger.warning(f"Local cart storage unavailable, starting fresh: {e}")
            return None

        try:
            cart = Cart.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Stored cart under {self.key} is corrupted, discarding: {e}")
            return None

        if cart.is_guest:
            expires_at = self._parse_expiry(expires_raw)
            if expires_at is None or expires_at <= self.clock():
                logger.info(f"Guest cart {cart.id} expired at {expires_at}")
                return None

        return cart

    def _persist(self, cart: Cart) -> None:
        ttl = int(self.ttl.total_seconds()) if cart.is_guest else None
        try:
            self.store.set(self.key, cart.to_storage_json(), ttl=ttl)
            if cart.is_guest:
                self.store.set(self.expires_key, cart.expires_at.isoformat(), ttl=ttl)
            else:
                self.store.remove(self.expires_key)
        except StoreUnavailableError as e:
            logger.error(f"Could not persist cart {cart.id}: {e}")

    @staticmethod
    def _parse_expiry(value: str | None) -> datetime | None:
        if not value:
            return None
        try:
            parsed = datetime.fromisoformat(value)
        except (TypeError, ValueError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
