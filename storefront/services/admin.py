from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from storefront.constants import ORDER_STATUSES
from storefront.db import gateway
from storefront.db.gateway import Result
from storefront.schemas import ProductIn
from storefront.utils.validators import split_csv

logger = logging.getLogger(__name__)


@dataclass
class ProductForm:
    """Raw admin form; sizes and colors are comma separated."""

    name: str = ""
    description: str = ""
    price: str | float = 0
    image_url: str = ""
    category: str = ""
    sizes: str = ""
    colors: str = ""
    stock: str | int = 0

    def to_product(self) -> ProductIn:
        return ProductIn(
            name=self.name.strip(),
            description=self.description.strip(),
            price=float(self.price),
            image_url=self.image_url.strip(),
            category=self.category.strip(),
            sizes=split_csv(self.sizes),
            colors=split_csv(self.colors),
            stock=int(self.stock),
        )

    def to_updates(self) -> Dict[str, Any]:
        """Fields for an edit: name, price and stock always, the rest only when filled in."""
        product = self.to_product()
        updates: Dict[str, Any] = {
            "name": product.name,
            "price": product.price,
            "stock": product.stock,
        }
        for key in ("description", "image_url", "category", "sizes", "colors"):
            value = getattr(product, key)
            if value:
                updates[key] = value
        return updates


@dataclass
class AdminDashboard:
    stats: Dict[str, Any] = field(default_factory=dict)
    orders: List[Dict[str, Any]] = field(default_factory=list)
    products: List[Dict[str, Any]] = field(default_factory=list)


async def is_admin(user: Optional[Dict[str, Any]]) -> bool:
    if not user:
        return False
    admin, error = await gateway.get_is_admin(user["id"], access_token=user.get("access_token"))
    if error is not None:
        logger.warning("admin check failed for %s: %s", user["id"], error)
        return False
    return bool(admin)


async def load_dashboard(access_token: Optional[str] = None) -> Result:
    stats, error = await gateway.get_stats(access_token=access_token)
    if error is not None:
        return Result(None, error)
    orders, error = await gateway.get_all_orders(access_token=access_token)
    if error is not None:
        return Result(None, error)
    products, error = await gateway.get_all_products(access_token=access_token)
    if error is not None:
        return Result(None, error)
    return Result(AdminDashboard(stats=stats, orders=orders, products=products))


async def create_product(form: ProductForm, access_token: Optional[str] = None) -> Result:
    try:
        product = form.to_product()
    except (ValueError, ValidationError) as e:
        return Result(None, e)
    return await gateway.create_product(product, access_token=access_token)


async def update_product(product_id: str, form: ProductForm, access_token: Optional[str] = None) -> Result:
    try:
        updates = form.to_updates()
    except (ValueError, ValidationError) as e:
        return Result(None, e)
    return await gateway.update_product(product_id, updates, access_token=access_token)


async def delete_product(product_id: str, access_token: Optional[str] = None) -> Result:
    return await gateway.delete_product(product_id, access_token=access_token)


async def update_order_status(order_id: str, status: str, access_token: Optional[str] = None) -> Result:
    status = (status or "").strip().lower()
    if status not in ORDER_STATUSES:
        return Result(None, ValueError(f"status must be one of: {', '.join(ORDER_STATUSES)}"))
    return await gateway.update_order_status(order_id, status, access_token=access_token)
