from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence

from app.economy.forge.types import ForgeReadiness, ForgeType, ItemTier, OwnedItemSnapshot


def _oldest_first(items: Iterable[OwnedItemSnapshot]) -> list[OwnedItemSnapshot]:
    return sorted(items, key=lambda item: (item.acquired_at, str(item.item_id)))


def group_category_items(items: Iterable[OwnedItemSnapshot]) -> dict[str, list[OwnedItemSnapshot]]:
    """CATEGORY-tier items by category, oldest first."""
    groups: dict[str, list[OwnedItemSnapshot]] = defaultdict(list)
    for item in items:
        if item.tier == ItemTier.CATEGORY and item.category_code:
            groups[item.category_code].append(item)
    return {code: _oldest_first(group) for code, group in sorted(groups.items())}


def category_counts(items: Iterable[OwnedItemSnapshot]) -> dict[str, int]:
    return {code: len(group) for code, group in group_category_items(items).items()}


def plan_category_forge(
    items: Sequence[OwnedItemSnapshot],
    *,
    category_code: str,
    required: int,
) -> ForgeReadiness:
    group = group_category_items(items).get(category_code, [])
    ready = len(group) >= required
    return ForgeReadiness(
        forge_type=ForgeType.CATEGORY,
        ready=ready,
        required=required,
        have=len(group),
        category_code=category_code,
        input_item_ids=[item.item_id for item in group[:required]] if ready else [],
    )


def plan_master_forge(items: Sequence[OwnedItemSnapshot], *, required: int) -> ForgeReadiness:
    groups = group_category_items(items)
    ready = len(groups) >= required
    chosen = list(groups)[:required] if ready else []
    return ForgeReadiness(
        forge_type=ForgeType.MASTER,
        ready=ready,
        required=required,
        have=len(groups),
        input_item_ids=[groups[code][0].item_id for code in chosen],
    )


def plan_seasonal_forge(
    items: Sequence[OwnedItemSnapshot],
    *,
    season_id: str,
    active_categories: Sequence[str],
    per_category: int,
) -> ForgeReadiness:
    """Needs `per_category` items earned in `season_id` for every active category."""
    groups = group_category_items(item for item in items if item.season_id == season_id)
    complete = [code for code in active_categories if len(groups.get(code, [])) >= per_category]
    ready = bool(active_categories) and len(complete) == len(active_categories)
    input_ids = []
    if ready:
        for code in active_categories:
            input_ids.extend(item.item_id for item in groups[code][:per_category])
    return ForgeReadiness(
        forge_type=ForgeType.SEASONAL,
        ready=ready,
        required=len(active_categories),
        have=len(complete),
        season_id=season_id,
        input_item_ids=input_ids,
    )
