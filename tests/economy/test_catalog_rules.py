from __future__ import annotations

from uuid import UUID, uuid4

import pytest

from app.economy.catalog.rules import claim_weight, pick_for_eligibility

ELIGIBILITY_ID = UUID("7f3c2a6e-1111-4d2b-9a7e-0a1b2c3d4e5f")


def test_pick_is_stable_for_same_eligibility() -> None:
    candidates = [f"item-{index}" for index in range(20)]

    assert pick_for_eligibility(ELIGIBILITY_ID, candidates) == pick_for_eligibility(ELIGIBILITY_ID, candidates)


def test_pick_ignores_candidate_order() -> None:
    candidates = [uuid4() for _ in range(15)]

    assert pick_for_eligibility(ELIGIBILITY_ID, candidates) == pick_for_eligibility(
        ELIGIBILITY_ID, list(reversed(candidates))
    )


def test_pick_survives_unrelated_items_being_minted() -> None:
    candidates = [uuid4() for _ in range(20)]
    chosen = pick_for_eligibility(ELIGIBILITY_ID, candidates)

    for minted in candidates:
        if minted == chosen:
            continue
        remaining = [item for item in candidates if item != minted]
        assert pick_for_eligibility(ELIGIBILITY_ID, remaining) == chosen


def test_pick_moves_to_runner_up_when_chosen_item_is_taken() -> None:
    candidates = [uuid4() for _ in range(10)]
    ranked = sorted(candidates, key=lambda item: claim_weight(ELIGIBILITY_ID, item), reverse=True)

    assert pick_for_eligibility(ELIGIBILITY_ID, candidates) == ranked[0]
    assert pick_for_eligibility(ELIGIBILITY_ID, ranked[1:]) == ranked[1]


def test_different_eligibilities_spread_over_stock() -> None:
    candidates = [f"item-{index}" for index in range(8)]

    picks = {pick_for_eligibility(uuid4(), candidates) for _ in range(64)}

    assert len(picks) > 1


def test_pick_rejects_empty_candidates() -> None:
    with pytest.raises(ValueError):
        pick_for_eligibility(ELIGIBILITY_ID, [])
