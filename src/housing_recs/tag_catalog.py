from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Set

from .paging import iter_records

LOGGER = logging.getLogger(__name__)


def normalize_label(value: Any) -> Optional[str]:
    """Trim and case-fold a tag, category or nationality; blanks become None."""
    if value is None:
        return None
    text = str(value).strip().lower()
    return text or None


@dataclass
class TagCatalog:
    """name <-> id lookup for the known housing tags."""

    name_to_id: Dict[str, str] = field(default_factory=dict)
    id_to_name: Dict[str, str] = field(default_factory=dict)

    def resolve_ids(self, names: Iterable[str]) -> Set[str]:
        return {self.name_to_id[name] for name in names if name in self.name_to_id}

    def __len__(self) -> int:
        return len(self.name_to_id)


def build_tag_catalog(rows: Iterable[Dict[str, Any]]) -> TagCatalog:
    catalog = TagCatalog()
    for row in rows:
        tag_id = row.get("id")
        name = normalize_label(row.get("name"))
        if tag_id is None or str(tag_id).strip() == "" or name is None:
            continue
        tag_id = str(tag_id)
        if name in catalog.name_to_id or tag_id in catalog.id_to_name:
            LOGGER.warning(
                "Ignoring conflicting tag %s=%r (already mapped as %s / %r)",
                tag_id,
                name,
                catalog.name_to_id.get(name),
                catalog.id_to_name.get(tag_id),
            )
            continue
        catalog.name_to_id[name] = tag_id
        catalog.id_to_name[tag_id] = name
    return catalog


def load_tag_catalog(store, page_size: int = 300) -> TagCatalog:
    catalog = build_tag_catalog(iter_records(store.fetch_tags_page, page_size))
    LOGGER.info("Tag catalog loaded: %d names, %d ids", len(catalog.name_to_id), len(catalog.id_to_name))
    return catalog
