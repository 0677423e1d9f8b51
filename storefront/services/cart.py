from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from storefront.constants import CART_STORAGE_KEY, CART_STORAGE_VERSION
from storefront.services.pricing import cart_total

logger = logging.getLogger(__name__)


@dataclass
class CartItem:
    product_id: str
    name: str
    price: float
    quantity: int
    size: Optional[str] = None
    image: str = ""

    @property
    def key(self) -> tuple:
        return (self.product_id, self.size)

    def to_record(self) -> Dict:
        # persisted field names must not change, old carts would be dropped
        return {
            "productId": self.product_id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
            "size": self.size,
            "image": self.image,
        }

    @classmethod
    def from_record(cls, rec: Dict) -> "CartItem":
        return cls(
            product_id=str(rec["productId"]),
            name=str(rec.get("name", "")),
            price=float(rec.get("price", 0)),
            quantity=int(rec.get("quantity", 1)),
            size=rec.get("size") or None,
            image=str(rec.get("image") or ""),
        )


class CartStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...


class MemoryStorage:
    def __init__(self) -> None:
        self.data: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.data[key] = value


class FileStorage:
    """One JSON file per key inside a directory (one directory per browser)."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        p = self._path(key)
        if not p.exists():
            return None
        return p.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        p = self._path(key)
        tmp = p.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, p)


class CartStore:
    """
    Cart line items, mirrored to storage on every change.

    Items are unique by (product_id, size). remove_item and update_quantity match
    on product_id only, so they touch every size of that product.
    """

    def __init__(self, storage: CartStorage, key: str = CART_STORAGE_KEY) -> None:
        self.storage = storage
        self.key = key
        self._items: List[CartItem] = self._hydrate()

    def _hydrate(self) -> List[CartItem]:
        raw = self.storage.get_item(self.key)
        if raw is None:
            return []
        try:
            payload = json.loads(raw)
            return [CartItem.from_record(r) for r in payload["state"]["items"]]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("cart record %r is unreadable, starting empty: %s", self.key, e)
            return []

    def _persist(self) -> None:
        payload = {
            "state": {"items": [it.to_record() for it in self._items]},
            "version": CART_STORAGE_VERSION,
        }
        self.storage.set_item(self.key, json.dumps(payload))

    @property
    def items(self) -> List[CartItem]:
        return [replace(it) for it in self._items]

    def add_item(self, item: CartItem) -> None:
        for existing in self._items:
            if existing.key == item.key:
                existing.quantity += item.quantity
                break
        else:
            self._items.append(replace(item))
        self._persist()

    def remove_item(self, product_id: str) -> None:
        self._items = [it for it in self._items if it.product_id != product_id]
        self._persist()

    def update_quantity(self, product_id: str, quantity: int) -> None:
        for it in self._items:
            if it.product_id == product_id:
                it.quantity = quantity
        self._persist()

    def clear_cart(self) -> None:
        self._items = []
        self._persist()

    def get_total_items(self) -> int:
        return sum(it.quantity for it in self._items)

    def get_total_price(self) -> float:
        return cart_total(self._items)
