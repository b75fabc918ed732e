"""Cart models with Decimal-based pricing."""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence

from storefront import config
from storefront.identity import ANONYMOUS, Identity
from storefront.models import Product
from storefront.money import multiply, round_money, to_decimal


@dataclass
class GuestLine:
    """Guest cart entry with a denormalized product snapshot."""
    product_id: str
    quantity: int
    name: str = ""
    price: Decimal = Decimal("0")
    image_url: Optional[str] = None
    brand: Optional[str] = None

    def __post_init__(self):
        self.price = to_decimal(self.price)

    @classmethod
    def from_product(cls, product: Product, quantity: int = 1) -> "GuestLine":
        return cls(
            product_id=product.id,
            quantity=quantity,
            name=product.name,
            price=product.price,
            image_url=product.image_url,
            brand=product.brand,
        )

    def snapshot(self) -> Product:
        """Product data for rendering; guest lines have nothing to join against."""
        return Product(
            id=self.product_id,
            name=self.name,
            price=self.price,
            image_url=self.image_url,
            brand=self.brand,
        )

    def to_dict(self) -> dict:
        """Convert to the guest blob entry format."""
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "name": self.name,
            "price": float(self.price),
            "image_url": self.image_url,
            "brand": self.brand,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GuestLine":
        return cls(
            product_id=str(data["product_id"]),
            quantity=int(data["quantity"]),
            name=data.get("name") or "",
            price=to_decimal(data.get("price")),
            image_url=data.get("image_url"),
            brand=data.get("brand"),
        )


@dataclass
class CartLine:
    """One product's quantity in a cart, as rendered.

    For guest lines the line id is the product id; for account lines it is
    the store-assigned cart_items id.
    """
    id: str
    owner: str
    product_id: str
    quantity: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner": self.owner,
            "product_id": self.product_id,
            "quantity": self.quantity,
        }


@dataclass
class CartTotals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    shipping: Decimal = Decimal("0")
    free_shipping_threshold: Decimal = field(
        default_factory=lambda: config.FREE_SHIPPING_THRESHOLD
    )

    def to_dict(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "shipping": float(self.shipping),
            "total": float(self.total),
            "free_shipping_threshold": float(self.free_shipping_threshold),
        }


def compute_totals(
    lines: Sequence[CartLine],
    products_by_id: Mapping[str, Product],
    tax_rate: Decimal = config.TAX_RATE,
) -> CartTotals:
    """
    Compute cart totals.

    subtotal = sum(price * quantity) over lines whose product resolves;
    tax = subtotal * tax_rate; total = subtotal + tax. Shipping is always
    free. Unresolved lines contribute zero.
    """
    subtotal = Decimal("0")
    for line in lines:
        product = products_by_id.get(line.product_id)
        if product is None:
            continue
        subtotal += multiply(product.price, line.quantity)

    tax = multiply(subtotal, tax_rate)
    return CartTotals(
        subtotal=round_money(subtotal),
        tax=round_money(tax),
        total=round_money(subtotal + tax),
    )


@dataclass
class CartState:
    """What is in the cart right now, for one identity."""
    identity: Identity = ANONYMOUS
    lines: List[CartLine] = field(default_factory=list)
    products_by_id: Dict[str, Product] = field(default_factory=dict)

    @property
    def visible_lines(self) -> List[CartLine]:
        """Lines whose product resolves (missing products are not rendered)."""
        return [line for line in self.lines if line.product_id in self.products_by_id]

    def find(self, product_id: str) -> Optional[CartLine]:
        return next((line for line in self.lines if line.product_id == product_id), None)

    @property
    def item_count(self) -> int:
        return len(self.visible_lines)

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.visible_lines)

    @property
    def totals(self) -> CartTotals:
        return compute_totals(self.lines, self.products_by_id)
