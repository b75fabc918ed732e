"""
WebApp Shop Router

Product listing with search, filters and sort applied server-side.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from storefront.catalog import FilterSpec, ShopView
from storefront.logging import get_logger
from storefront.models import Product
from storefront.money import to_float
from storefront.notices import NoticeBoard
from storefront.repositories import ProductRepository

from .deps import get_product_repository

logger = get_logger(__name__)

router = APIRouter(tags=["webapp-shop"])


def serialize_product(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "brand": product.brand,
        "category": product.category,
        "price": to_float(product.price),
        "stock": product.stock,
        "rating": product.rating,
        "description": product.description,
        "image_url": product.image_url,
        "created_date": product.created_date.isoformat() if product.created_date else None,
    }


@router.get("/products")
async def get_products(
    search: str = "",
    category: List[str] = Query(default=[]),
    brand: List[str] = Query(default=[]),
    price_min: Optional[float] = None,
    price_max: Optional[float] = None,
    in_stock: bool = False,
    sort: str = "name",
    products: ProductRepository = Depends(get_product_repository),
):
    """Visible products for the given filters, plus facets for the sidebar."""
    changes = {
        "search": search,
        "categories": frozenset(category),
        "brands": frozenset(brand),
        "in_stock": in_stock,
        "sort": sort,
    }
    if price_min is not None:
        changes["price_min"] = price_min
    if price_max is not None:
        changes["price_max"] = price_max

    notices = NoticeBoard()
    view = ShopView(products, notices=notices, spec=FilterSpec().with_changes(**changes))
    await view.load()

    return {
        "products": [serialize_product(p) for p in view.visible],
        "total": len(view.visible),
        "facets": view.facets.to_dict(),
        "sort": view.spec.sort.value,
        "notices": [n.to_dict() for n in notices.drain()],
    }
