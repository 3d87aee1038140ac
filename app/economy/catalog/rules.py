from __future__ import annotations

import hashlib
from collections.abc import Sequence
from typing import TypeVar
from uuid import UUID

T = TypeVar("T")


def claim_weight(eligibility_id: UUID, candidate: object) -> int:
    digest = hashlib.sha256(f"{eligibility_id}:{candidate}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def pick_for_eligibility(eligibility_id: UUID, candidates: Sequence[T]) -> T:
    """Highest-weight pick per eligibility.

    Each candidate is weighted independently, so the pick only moves when the
    chosen item itself leaves the candidate list.
    """
    if not candidates:
        raise ValueError("candidates must not be empty")
    return max(candidates, key=lambda candidate: (claim_weight(eligibility_id, candidate), str(candidate)))
