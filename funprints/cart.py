"""
Shopping cart with pluggable persistence.

The cart is an explicit object bound to a key-value slot, so the same code
backs a browser session, a file on disk, or a plain dict in tests.
"""
from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

from pydantic import ValidationError

from funprints.schemas import CartItem

logger = logging.getLogger("funprints.cart")

CART_STORAGE_KEY = "cart-storage"


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStorage:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JSONFileStorage:
    """All slots live in one JSON object on disk, rewritten on every set."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable storage file %s", self.path)
            return {}

    def _dump(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        tmp.replace(self.path)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)


class CartStore:
    def __init__(self, storage: KeyValueStorage, key: str = CART_STORAGE_KEY):
        self.storage = storage
        self.key = key
        self.items: List[CartItem] = self._restore()

    def _restore(self) -> List[CartItem]:
        raw = self.storage.get(self.key)
        if not raw:
            return []
        try:
            payload = json.loads(raw)
            return [CartItem.model_validate(i) for i in payload.get("items", [])]
        except (json.JSONDecodeError, ValidationError, AttributeError) as e:
            logger.warning("Discarding corrupt cart in slot %r: %s", self.key, e)
            return []

    def _persist(self) -> None:
        payload = {"items": [i.model_dump() for i in self.items]}
        self.storage.set(self.key, json.dumps(payload))

    def add_item(self, item: CartItem) -> CartItem:
        """Add a line, or grow the existing line for the same product, size and color."""
        for i, existing in enumerate(self.items):
            if existing.merge_key() == item.merge_key():
                merged = existing.model_copy(update={"quantity": existing.quantity + item.quantity})
                self.items[i] = merged
                self._persist()
                return merged
        self.items.append(item)
        self._persist()
        return item

    def remove_item(self, line_id: str) -> None:
        remaining = [i for i in self.items if i.id != line_id]
        if len(remaining) != len(self.items):
            self.items = remaining
            self._persist()

    def update_quantity(self, line_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(line_id)
            return
        self.items = [
            i.model_copy(update={"quantity": quantity}) if i.id == line_id else i
            for i in self.items
        ]
        self._persist()

    def clear_cart(self) -> None:
        self.items = []
        self._persist()

    def get_total_price(self) -> float:
        return sum(i.unit_price * i.quantity for i in self.items)

    def get_item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    def is_empty(self) -> bool:
        return not self.items
