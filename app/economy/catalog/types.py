from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID


@dataclass(slots=True)
class CatalogItemView:
    item_id: UUID
    category_code: str
    name: str
    description: str
    image_uri: str
    attributes: dict[str, object] = field(default_factory=dict)
    content_id: str | None = None


@dataclass(slots=True)
class CatalogPreview:
    eligibility_id: UUID
    item: CatalogItemView
    stock_remaining: int
