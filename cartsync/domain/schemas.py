# cartsync/domain/schemas.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, List

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from cartsync.domain.totals import coerce_decimal, coerce_quantity

def _money_out(value: Decimal, info):
    # HTTP: JSON number; zapis lokalny (context exact): string, bez utraty precyzji
    if info.context and info.context.get("exact"):
        return str(value)
    return float(value)


Money = Annotated[
    Decimal,
    PlainSerializer(_money_out, when_used="json"),
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_item_id() -> str:
    return f"item-{uuid.uuid4().hex}"


def new_cart_id() -> str:
    return f"cart-{uuid.uuid4().hex}"


def new_session_id() -> str:
    return uuid.uuid4().hex


class CartStatus(str, Enum):
    ACTIVE = "active"
    ABANDONED = "abandoned"
    CONVERTED = "converted"


class WireModel(BaseModel):
    """camelCase na wire, snake_case w Pythonie; oba akceptowane na wejsciu."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")

    def to_storage_json(self) -> str:
        """camelCase JSON with exact Decimal amounts, for the local snapshot."""
        return self.model_dump_json(by_alias=True, context={"exact": True})


class NewCartItem(WireModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: str | int
    quantity: int = Field(1, description="Ilosc produktu; <= 0 = nic nie dodajemy")
    name: str | None = None
    price: Money = Decimal("0")
    color: str | None = None
    size: str | None = None
    image: str | None = None
    category: str | None = None

    @field_validator("price", mode="before")
    @classmethod
    def _coerce_price(cls, v):
        return coerce_decimal(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def _coerce_quantity(cls, v):
        return coerce_quantity(v)


class CartItem(WireModel):
    """Jedna linia koszyka (produkt + wariant)."""

    id: str | int = Field(default_factory=new_item_id)
    product_id: str | int
    name: str = ""
    price: Money = Decimal("0")
    quantity: int = 0
    total_price: Money = Decimal("0")
    color: str | None = None
    size: str | None = None
    image: str | None = None
    category: str | None = None
    added_at: datetime = Field(default_factory=utcnow)

    @field_validator("price", "total_price", mode="before")
    @classmethod
    def _coerce_money(cls, v):
        return coerce_decimal(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def _coerce_quantity(cls, v):
        return coerce_quantity(v)

    @model_validator(mode="after")
    def _derive_total_price(self):
        self.total_price = self.price * self.quantity
        return self

    @classmethod
    def from_new(cls, new: NewCartItem) -> "CartItem":
        return cls(
            product_id=new.product_id,
            name=new.name or f"Product {new.product_id}",
            price=new.price,
            quantity=new.quantity,
            color=new.color,
            size=new.size,
            image=new.image,
            category=new.category,
        )

    def matches(self, product_id, color, size) -> bool:
        return (
            self.product_id == product_id
            and self.color == color
            and self.size == size
        )


class Cart(WireModel):
    """Koszyk: linie + wyliczone sumy."""

    id: str | int = Field(default_factory=new_cart_id)
    customer_id: str | int | None = None
    session_id: str | None = None
    items: List[CartItem] = Field(default_factory=list)
    subtotal: Money = Decimal("0")
    tax: Money = Decimal("0")
    shipping: Money = Decimal("0")
    discount: Money = Decimal("0")
    total: Money = Decimal("0")
    coupon_code: str | None = None
    status: CartStatus = CartStatus.ACTIVE
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime | None = None

    @field_validator("subtotal", "tax", "shipping", "discount", "total", mode="before")
    @classmethod
    def _coerce_money(cls, v):
        return coerce_decimal(v)

    @property
    def is_guest(self) -> bool:
        return self.customer_id is None

    def find_item(self, item_id) -> CartItem | None:
        for item in self.items:
            if str(item.id) == str(item_id):
                return item
        return None


class UpdateQuantityIn(WireModel):
    quantity: int

    @field_validator("quantity", mode="before")
    @classmethod
    def _coerce_quantity(cls, v):
        return coerce_quantity(v)


class CouponIn(WireModel):
    code: str = Field(..., min_length=1)


class MergeIn(WireModel):
    guest_cart_id: str | int


class CartCountOut(WireModel):
    count: int
