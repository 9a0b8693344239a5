"""
Catalog: the fixed list of trackable instruments and practice areas.

The catalog is supplied from outside the core (built-in default or a JSON
file) and is read-only at runtime. Only `id` and `type` drive decisions;
everything else is display metadata.

Ids are stable: never rename or reuse one once sessions reference it.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

DEFAULT_WEIGHT = 2
ITEM_TYPES = ("instrument", "area")

PEOPLE = ("Alek", "Cata", "Duo")
COMPONENTS = ("tech", "theory", "rep")
DIFFICULTIES = ("easy", "ok", "hard")
MOOD_MIN = 1
MOOD_MAX = 5


@dataclass(frozen=True)
class CatalogItem:
    """A trackable instrument or practice area."""

    id: str
    name: str
    type: str = "instrument"
    icon: str = ""
    default_weight: float = DEFAULT_WEIGHT

    @classmethod
    def from_dict(cls, data: dict) -> CatalogItem:
        """
        Create a CatalogItem from a dictionary (JSON).

        Raises:
            KeyError: if `id` is missing
            ValueError: if `id` is empty or `type` is unknown
        """
        item_id = str(data["id"]).strip()
        if not item_id:
            raise ValueError("catalog id must not be empty")
        item_type = str(data.get("type", "instrument"))
        if item_type not in ITEM_TYPES:
            raise ValueError(f"unknown catalog type {item_type!r} for {item_id}")
        weight = data.get("default_weight", data.get("weight", DEFAULT_WEIGHT))
        if isinstance(weight, bool) or not isinstance(weight, (int, float)):
            weight = DEFAULT_WEIGHT
        return cls(
            id=item_id,
            name=str(data.get("name") or item_id),
            type=item_type,
            icon=str(data.get("icon", "")),
            default_weight=weight,
        )


_DEFAULT_ITEMS = (
    CatalogItem("piano", "Piano", "instrument", "🎹", 4),
    CatalogItem("guitarra-elec", "Guitarra eléctrica", "instrument", "🎸", 3),
    CatalogItem("guitarra-ac", "Guitarra acústica", "instrument", "🪕", 2),
    CatalogItem("bajo", "Bajo eléctrico", "instrument", "🎸", 2),
    CatalogItem("violin", "Violín", "instrument", "🎻", 3),
    CatalogItem("cello", "Cello", "instrument", "🎻", 2),
    CatalogItem("flauta-traversa", "Flauta traversa", "instrument", "🪈", 2),
    CatalogItem("bateria", "Batería", "instrument", "🥁", 2),
    CatalogItem("canto", "Canto", "area", "🎤", 3),
    CatalogItem("composicion", "Composición", "area", "✍️", 2),
    CatalogItem("teoria", "Teoría", "area", "📚", 2),
    CatalogItem("produccion", "Producción musical", "area", "🎛️", 2),
    CatalogItem("ukelele", "Ukelele", "instrument", "🎶", 1),
    CatalogItem("flauta-dulce", "Flauta dulce", "instrument", "🎼", 1),
)


class Catalog:
    """Ordered, immutable collection of catalog items."""

    def __init__(self, items: list[CatalogItem] | tuple[CatalogItem, ...]):
        self._items: tuple[CatalogItem, ...] = tuple(items)
        self._by_id: dict[str, CatalogItem] = {}
        for item in self._items:
            if item.id in self._by_id:
                raise ValueError(f"duplicate catalog id: {item.id}")
            self._by_id[item.id] = item

    @classmethod
    def default(cls) -> Catalog:
        """The built-in instruments and areas."""
        return cls(_DEFAULT_ITEMS)

    @classmethod
    def from_file(cls, path: Path) -> Catalog:
        """
        Load a catalog from a JSON file.

        Accepts either a list of items or an object with an `items` list.
        Invalid entries are skipped with a warning; a duplicate id is an error.
        """
        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        entries = data if isinstance(data, list) else data.get("items", [])
        items: list[CatalogItem] = []
        for entry in entries:
            try:
                items.append(CatalogItem.from_dict(entry))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Invalid catalog entry in {path}: {e}")

        logger.debug(f"Loaded {len(items)} catalog items from {path.name}")
        return cls(items)

    def __iter__(self) -> Iterator[CatalogItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._by_id

    @property
    def ids(self) -> list[str]:
        """Item ids in catalog order."""
        return [item.id for item in self._items]

    def get(self, item_id: str) -> CatalogItem | None:
        return self._by_id.get(item_id)

    def name_of(self, item_id: str) -> str:
        item = self._by_id.get(item_id)
        return item.name if item else item_id

    def default_weights(self) -> dict[str, float]:
        return {item.id: item.default_weight for item in self._items}
