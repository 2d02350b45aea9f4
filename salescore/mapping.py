"""SKU mapping table: platform SKU -> canonical local SKU + category.

The table is built once from a reference file and is read-only afterwards,
so one instance can be shared by every request. A missing or unreadable
reference file gives an empty table, and every lookup then passes the
platform SKU straight through.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from salescore.data import frame_to_rows, normalize_header, normalize_sku, read_table


logger = logging.getLogger(__name__)

LOCAL_SKU_COLUMNS = ["Local_SKU", "Local SKU", "local_sku"]
CATEGORY_COLUMNS = ["Categories", "categories", "Category"]
ALIAS_COLUMNS: Dict[str, List[str]] = {
    "myntra": ["Myntra_SKU", "Myntra SKU", "myntra_sku"],
    "sku_id": ["SKU_ID", "SKU ID", "sku_id"],
    "nykaa": ["Nykaa_SKU", "Nykaa SKU", "nykaa_sku"],
}

PLATFORM_NAMESPACES = {
    "myntra": "myntra",
    "nykaa": "nykaa",
    "delhi_warehouse": "sku_id",
}


def namespace_for_platform(platform: Optional[str]) -> str:
    return PLATFORM_NAMESPACES.get((platform or "").strip().lower(), "local")


def _lookup_key(namespace: str, sku: str) -> str:
    return f"{namespace}_{sku.strip().lower()}"


def _row_value(row: Mapping[str, Any], spellings: List[str]) -> Optional[str]:
    for name in spellings:
        if name in row:
            value = normalize_sku(row[name])
            if value:
                return value
    wanted = {normalize_header(name) for name in spellings}
    for key, value in row.items():
        if normalize_header(key) in wanted:
            value = normalize_sku(value)
            if value:
                return value
    return None


@dataclass(frozen=True, eq=False)
class SkuMappingEntry:
    local_sku: str
    category: str = ""
    platform_aliases: Mapping[str, str] = field(default_factory=dict)
    alias_skus: Tuple[Tuple[str, str], ...] = ()


@dataclass(frozen=True)
class SkuResolution:
    local_sku: Optional[str]
    category: str
    original_sku: Optional[str]


class SkuMappingTable:
    def __init__(self, lookup: Optional[Mapping[str, SkuMappingEntry]] = None, *, source: Optional[str] = None, loaded: bool = True):
        self._lookup = MappingProxyType(dict(lookup or {}))
        self.source = source
        self.loaded = loaded

    @classmethod
    def empty(cls, *, source: Optional[str] = None) -> "SkuMappingTable":
        return cls({}, source=source, loaded=False)

    @classmethod
    def build(cls, rows: Iterable[Mapping[str, Any]], *, source: Optional[str] = None) -> "SkuMappingTable":
        # Several rows may share one local SKU (e.g. one row per size variant);
        # they collapse into a single entry so every alias resolves to it.
        grouped: Dict[str, Dict[str, Any]] = {}
        skipped = 0
        for row in rows:
            if not isinstance(row, Mapping):
                skipped += 1
                continue
            local_sku = _row_value(row, LOCAL_SKU_COLUMNS)
            if not local_sku:
                skipped += 1
                continue
            slot = grouped.setdefault(local_sku.lower(), {"local_sku": local_sku, "category": "", "aliases": []})
            if not slot["category"]:
                slot["category"] = _row_value(row, CATEGORY_COLUMNS) or ""
            for namespace, spellings in ALIAS_COLUMNS.items():
                alias = _row_value(row, spellings)
                if alias:
                    slot["aliases"].append((namespace, alias))

        lookup: Dict[str, SkuMappingEntry] = {}
        for slot in grouped.values():
            primary: Dict[str, str] = {}
            for namespace, alias in slot["aliases"]:
                primary.setdefault(namespace, alias)
            entry = SkuMappingEntry(
                local_sku=slot["local_sku"],
                category=slot["category"],
                platform_aliases=MappingProxyType(primary),
                alias_skus=tuple(slot["aliases"]),
            )
            for namespace, alias in entry.alias_skus:
                lookup[_lookup_key(namespace, alias)] = entry
            lookup[_lookup_key("local", entry.local_sku)] = entry
        if skipped:
            logger.debug("Skipped %d mapping rows without a local SKU", skipped)
        return cls(lookup, source=source)

    @property
    def size(self) -> int:
        return len(self._lookup)

    def __len__(self) -> int:
        return len(self._lookup)

    def __contains__(self, key: object) -> bool:
        return key in self._lookup

    def __iter__(self) -> Iterator[str]:
        return iter(self._lookup)

    def entry(self, platform_sku: Optional[str], namespace: str) -> Optional[SkuMappingEntry]:
        if not platform_sku or not self._lookup:
            return None
        return self._lookup.get(_lookup_key(namespace, str(platform_sku)))

    def entries(self) -> List[SkuMappingEntry]:
        seen: Dict[int, SkuMappingEntry] = {}
        for entry in self._lookup.values():
            seen.setdefault(id(entry), entry)
        return list(seen.values())

    def resolve(self, platform_sku: Optional[str], namespace: str = "local") -> SkuResolution:
        entry = self.entry(platform_sku, namespace)
        if entry is None:
            return SkuResolution(local_sku=platform_sku, category="", original_sku=platform_sku)
        return SkuResolution(local_sku=entry.local_sku, category=entry.category, original_sku=platform_sku)

    def resolve_for_platform(self, platform_sku: Optional[str], platform: Optional[str]) -> SkuResolution:
        return self.resolve(platform_sku, namespace_for_platform(platform))

    def status(self) -> Dict[str, Any]:
        return {
            "loaded": self.loaded,
            "total_mappings": self.size,
            "local_skus": len(self.entries()),
            "source": self.source,
        }


def load_sku_mapping(path: Path) -> SkuMappingTable:
    """Build the table from a CSV/XLSX reference file; never raises."""
    path = Path(path)
    if not path.exists():
        logger.warning("SKU mapping file not found at %s, using original SKUs", path)
        return SkuMappingTable.empty(source=str(path))
    try:
        rows = frame_to_rows(read_table(path, dtype=str))
    except Exception as exc:
        logger.warning("SKU mapping file %s unreadable, using original SKUs: %s", path, exc)
        return SkuMappingTable.empty(source=str(path))
    table = SkuMappingTable.build(rows, source=str(path))
    logger.info("Loaded %d SKU mappings from %s", table.size, path.name)
    return table


def file_signature(path: Path) -> Tuple[str, float]:
    path = Path(path)
    try:
        return str(path), path.stat().st_mtime
    except OSError:
        return str(path), -1.0


@lru_cache(maxsize=4)
def _load_sku_mapping_cached(signature: Tuple[str, float]) -> SkuMappingTable:
    return load_sku_mapping(Path(signature[0]))


def load_sku_mapping_cached(path: Path) -> SkuMappingTable:
    """Memoized on (path, mtime): an edited reference file is reloaded wholesale."""
    return _load_sku_mapping_cached(file_signature(path))
