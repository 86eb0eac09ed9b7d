# pizzeria_voice/catalog.py
import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import CatalogError

log = logging.getLogger("catalog")

CATEGORIES = ("pizzas", "sides", "drinks", "desserts")
DEFAULT_SIZE = "Medium"


@dataclass(frozen=True)
class CatalogItem:
    id: str
    name: str
    price: float
    category: str
    description: str = ""
    tags: tuple = ()
    aliases: tuple = ()


def _normalize(s: str | None) -> str:
    return " ".join((s or "").strip().lower().split())


def round_money(value: float) -> float:
    """Round half-up to cents; float rounding would turn 2.675 into 2.67."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class Catalog:
    """Read-only lookups over the restaurant document (menu, sizes, toppings, deals)."""

    def __init__(self, data: Dict[str, Any]) -> None:
        self.data = data
        self.name: str = data.get("name") or "our pizzeria"

        self._by_id: Dict[str, CatalogItem] = {}
        self._by_name: Dict[str, CatalogItem] = {}
        aliases_for: Dict[str, List[str]] = {}

        # keyword -> [item id, synonym, synonym, ...]
        self._keywords: Dict[str, str] = {}
        self._synonyms: Dict[str, str] = {}
        for keyword, variants in (data.get("menuKeywords") or {}).items():
            if not variants:
                continue
            item_id = variants[0]
            self._keywords[_normalize(keyword)] = item_id
            aliases_for.setdefault(item_id, []).append(keyword)
            for syn in variants[1:]:
                self._synonyms.setdefault(_normalize(syn), item_id)
                aliases_for[item_id].append(syn)

        menu = data.get("menu") or {}
        for category in CATEGORIES:
            for raw in menu.get(category) or []:
                item = CatalogItem(
                    id=raw["id"],
                    name=raw["name"],
                    price=float(raw.get("price") or 0),
                    category=category,
                    description=raw.get("description", ""),
                    tags=tuple(raw.get("tags") or ()),
                    aliases=tuple(aliases_for.get(raw["id"], ())),
                )
                self._by_id[item.id] = item
                self._by_name.setdefault(_normalize(item.name), item)

        custom = data.get("customizations") or {}
        self._sizes: Dict[str, Dict[str, Any]] = {
            _normalize(s["name"]): s for s in custom.get("sizes") or []
        }
        self._toppings: Dict[str, Dict[str, Any]] = {
            _normalize(t["name"]): t for t in custom.get("toppings") or [] if t.get("name")
        }
        self._crusts: Dict[str, str] = {_normalize(c): c for c in custom.get("crusts") or []}

    @classmethod
    def from_file(cls, path: Path | str) -> "Catalog":
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise CatalogError(f"Could not load catalog from {path}: {e}") from e
        catalog = cls(data)
        log.info(f"📋 Catalog loaded: {catalog.name} ({len(catalog._by_id)} items)")
        return catalog

    # ---------- items ----------
    def items(self) -> List[CatalogItem]:
        return list(self._by_id.values())

    def items_in(self, category: str) -> List[CatalogItem]:
        return [i for i in self._by_id.values() if i.category == category]

    def get(self, item_id: str) -> Optional[CatalogItem]:
        return self._by_id.get(item_id)

    def resolve_item(self, name_or_alias: str | None) -> Optional[CatalogItem]:
        """Canonical name first, then alias keyword (first listed id), then synonym, then raw id."""
        key = _normalize(name_or_alias)
        if not key:
            return None
        if key in self._by_name:
            return self._by_name[key]
        item_id = self._keywords.get(key) or self._synonyms.get(key)
        if item_id:
            return self._by_id.get(item_id)
        for item_id_key, item in self._by_id.items():
            if item_id_key.lower() == key:
                return item
        return None

    # ---------- customizations ----------
    @property
    def size_names(self) -> List[str]:
        return [s["name"] for s in self._sizes.values()]

    def resolve_size(self, size: str | None) -> Optional[str]:
        s = self._sizes.get(_normalize(size))
        return s["name"] if s else None

    def size_factor(self, size: str | None) -> float:
        s = self._sizes.get(_normalize(size))
        if not s or not s.get("adjustmentFactor"):
            return 1.0
        return float(s["adjustmentFactor"])

    def resolve_customization(self, name: str | None) -> Optional[str]:
        key = _normalize(name)
        if key in self._toppings:
            return self._toppings[key]["name"]
        if key in self._crusts:
            return self._crusts[key]
        # "thin crust" -> "Thin"
        if key.endswith(" crust") and key[: -len(" crust")] in self._crusts:
            return self._crusts[key[: -len(" crust")]]
        return None

    def surcharge(self, name: str | None) -> float:
        t = self._toppings.get(_normalize(name))
        return float(t.get("price") or 0) if t else 0.0

    # ---------- pricing ----------
    def price_of(self, line) -> float:
        """(base * size factor + surcharges) * quantity, rounded half-up to cents.

        Unknown sizes price at factor 1.0 and unknown customizations add nothing;
        rejecting them is the job of the cart operations, not pricing.
        """
        item = self._by_id.get(line.item_ref) or self.resolve_item(line.item_ref)
        if not item:
            return 0.0
        base = item.price * self.size_factor(line.size)
        extras = sum(self.surcharge(c) for c in (line.customizations or ()))
        quantity = line.quantity or 1
        return round_money((base + extras) * quantity)

    # ---------- restaurant info ----------
    @property
    def delivery(self) -> Dict[str, Any]:
        return self.data.get("delivery") or {}

    @property
    def deals(self) -> List[Dict[str, Any]]:
        return self.data.get("deals") or []

    @property
    def hours(self) -> Dict[str, Dict[str, str]]:
        return self.data.get("hours") or {}

    @property
    def crusts(self) -> List[str]:
        return list(self._crusts.values())

    @property
    def toppings(self) -> List[Dict[str, Any]]:
        return list(self._toppings.values())
