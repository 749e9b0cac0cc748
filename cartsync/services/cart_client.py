# cartsync/services/cart_client.py
import requests
from pydantic import ValidationError
from requests import RequestException

from cartsync.domain.schemas import Cart, NewCartItem
from cartsync.exceptions import RemoteCartError, StoreUnavailableError
from cartsync.repos.kv_store import KeyValueStore
from cartsync.utils.settings import AUTH_TOKEN_KEY, CART_SERVICE_TIMEOUT, CART_SERVICE_URL
from cartsync.utils.logging import get_logger

logger = get_logger(__name__)


class RemoteCartClient:
    """
    HTTP do zasobu koszyka po stronie serwera.
    Kazde wywolanie zwraca Cart albo rzuca RemoteCartError;
    bez retry i bez fallbacku, to robi CartService.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = CART_SERVICE_TIMEOUT,
        token_store: KeyValueStore | None = None,
        token_key: str = AUTH_TOKEN_KEY,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or CART_SERVICE_URL).rstrip("/")
        self.timeout = timeout
        self.token_store = token_store
        self.token_key = token_key
        self.session_id: str | None = None
        self.http = session or requests.Session()
        self.http.headers.update({"Content-Type": "application/json"})

    def get_cart(self) -> Cart:
        return self._cart("get", "GET", "/cart")

    def add_item(self, item: NewCartItem | dict) -> Cart:
        new = item if isinstance(item, NewCartItem) else NewCartItem.model_validate(item)
        return self._cart("add", "POST", "/cart/items", json=new.to_wire())

    def update_item(self, item_id, quantity: int) -> Cart:
        return self._cart("update", "PUT", f"/cart/items/{item_id}", json={"quantity": quantity})

    def remove_item(self, item_id) -> Cart:
        return self._cart("remove", "DELETE", f"/cart/items/{item_id}")

    def clear(self) -> Cart:
        return self._cart("clear", "DELETE", "/cart")

    def summary(self) -> Cart:
        return self._cart("summary", "GET", "/cart/summary")

    def merge(self, guest_cart_id) -> Cart:
        return self._cart("merge", "POST", "/cart/merge", json={"guestCartId": guest_cart_id})

    def apply_coupon(self, code: str) -> Cart:
        return self._cart("apply_coupon", "POST", "/cart/coupon", json={"code": code})

    def remove_coupon(self) -> Cart:
        return self._cart("remove_coupon", "DELETE", "/cart/coupon")

    def count(self) -> int:
        data = self._request("count", "GET", "/cart/count")
        try:
            return int(data["count"])
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteCartError("count", f"unexpected response: {e}") from e

    def _cart(self, operation: str, method: str, path: str, json: dict | None = None) -> Cart:
        data = self._request(operation, method, path, json=json)
        try:
            cart = Cart.model_validate(data)
        except ValidationError as e:
            raise RemoteCartError(operation, f"invalid cart payload: {e}") from e

        if cart.session_id:
            self.session_id = cart.session_id
        return cart

    def _request(self, operation: str, method: str, path: str, json: dict | None = None):
        url = f"{self.base_url}{path}"
        logger.info(f"RemoteCartClient {method} {url}")

        try:
            resp = self.http.request(
                method,
                url,
                json=json,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except RequestException as e:
            raise RemoteCartError(operation, str(e)) from e

        if resp.status_code == 401:
            self._drop_token()

        if not resp.ok:
            raise RemoteCartError(
                operation,
                f"HTTP {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise RemoteCartError(operation, "response is not JSON", resp.status_code) from e

    def _headers(self) -> dict:
        headers = {}
        token = self._token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if self.session_id:
            headers["X-Session-Id"] = self.session_id
        return headers

    def _token(self) -> str | None:
        if self.token_store is None:
            return None
        try:
            return self.token_store.get(self.token_key)
        except StoreUnavailableError as e:
            logger.warning(f"Auth token unavailable, sending request without it: {e}")
            return None

    def _drop_token(self) -> None:
        # 401 = token niewazny, usuwamy go
        if self.token_store is None:
            return
        logger.warning("Cart service answered 401, removing stored auth token")
        try:
            self.token_store.remove(self.token_key)
        except StoreUnavailableError as e:
            logger.error(f"Could not remove auth token: {e}")
