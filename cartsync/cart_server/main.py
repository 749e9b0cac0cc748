# cartsync/cart_server/main.py
from decimal import Decimal

from fastapi import Depends, FastAPI, Header, HTTPException
import uvicorn

from cartsync.domain.schemas import (
    CartCountOut,
    CouponIn,
    MergeIn,
    NewCartItem,
    UpdateQuantityIn,
    new_session_id,
)
from cartsync.domain.totals import apply_totals
from cartsync.repos.kv_store import MemoryStore
from cartsync.repos.local_cart import LocalCartStore
from cartsync.utils.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(title="Cart Service (dev mock)")


COUPONS = {
    "SAVE10": ("percentage", Decimal("10")),
    "FLAT5": ("fixed", Decimal("5")),
}

_store = MemoryStore()
_carts: dict[str, LocalCartStore] = {}


def reset():
    """Drop all carts, used between tests."""
    global _store
    _store = MemoryStore()
    _carts.clear()


def _owner_store(owner: str, customer_id=None, session_id=None) -> LocalCartStore:
    if owner not in _carts:
        _carts[owner] = LocalCartStore(
            _store,
            key=f"cart:{owner}",
            customer_id=customer_id,
            session_id=session_id,
        )
    return _carts[owner]


def current_cart_store(
    authorization: str | None = Header(None),
    x_session_id: str | None = Header(None),
) -> LocalCartStore:
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise HTTPException(status_code=401, detail="Invalid authorization header")
        # dev mock: token = id klienta
        return _owner_store(f"customer:{token}", customer_id=token)

    session_id = x_session_id or new_session_id()
    return _owner_store(f"session:{session_id}", session_id=session_id)


def _wire(cart):
    return cart.to_wire()


@app.get("/cart")
def get_cart(store: LocalCartStore = Depends(current_cart_store)):
    return _wire(store.get())


@app.get("/cart/summary")
def get_summary(store: LocalCartStore = Depends(current_cart_store)):
    return _wire(store.get())


@app.get("/cart/count")
def get_count(store: LocalCartStore = Depends(current_cart_store)):
    cart = store.get()
    return CartCountOut(count=sum(i.quantity for i in cart.items)).to_wire()


@app.post("/cart/items")
def add_item(payload: NewCartItem, store: LocalCartStore = Depends(current_cart_store)):
    if payload.quantity <= 0:
        raise HTTPException(status_code=422, detail="Quantity must be greater than 0")
    return _wire(store.add_item(payload))


@app.put("/cart/items/{item_id}")
def update_item(
    item_id: str,
    payload: UpdateQuantityIn,
    store: LocalCartStore = Depends(current_cart_store),
):
    if store.get().find_item(item_id) is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return _wire(store.update_item(item_id, payload.quantity))


@app.delete("/cart/items/{item_id}")
def remove_item(item_id: str, store: LocalCartStore = Depends(current_cart_store)):
    return _wire(store.remove_item(item_id))


@app.delete("/cart")
def clear_cart(store: LocalCartStore = Depends(current_cart_store)):
    return _wire(store.clear())


@app.post("/cart/coupon")
def apply_coupon(payload: CouponIn, store: LocalCartStore = Depends(current_cart_store)):
    coupon = COUPONS.get(payload.code.upper())
    if coupon is None:
        raise HTTPException(status_code=404, detail="Coupon not found")

    cart = store.get()
    kind, value = coupon
    if kind == "percentage":
        discount = cart.subtotal * value / 100
    else:
        discount = min(value, cart.subtotal)

    logger.info(f"Applying coupon {payload.code} to cart {cart.id}, discount {discount}")
    cart = cart.model_copy(update={"coupon_code": payload.code.upper(), "discount": discount})
    return _wire(store.save(apply_totals(cart, store.policy)))


@app.delete("/cart/coupon")
def remove_coupon(store: LocalCartStore = Depends(current_cart_store)):
    return _wire(store.remove_coupon())


@app.post("/cart/merge")
def merge_cart(payload: MergeIn, store: LocalCartStore = Depends(current_cart_store)):
    if store.customer_id is None:
        raise HTTPException(status_code=401, detail="Login required to merge carts")

    for owner, guest_store in list(_carts.items()):
        if not owner.startswith("session:"):
            continue
        guest = guest_store.get()
        if str(guest.id) != str(payload.guest_cart_id):
            continue

        for item in guest.items:
            store.add_item(NewCartItem(
                product_id=item.product_id,
                quantity=item.quantity,
                name=item.name,
                price=item.price,
                color=item.color,
                size=item.size,
                image=item.image,
                category=item.category,
            ))
        _store.remove(guest_store.key)
        _store.remove(guest_store.expires_key)
        del _carts[owner]

        cart = store.get()
        logger.info(f"Merged guest cart {payload.guest_cart_id} into {cart.id}")
        return _wire(cart)

    raise HTTPException(status_code=404, detail="Guest cart not found")


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=3001)
