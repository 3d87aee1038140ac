from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class IdentityKind(str, Enum):
    GUEST = "GUEST"
    CONNECTED = "CONNECTED"


@dataclass(frozen=True, slots=True)
class Identity:
    """Verified caller identity; wallet-derived keys double as on-chain addresses."""

    key: str
    kind: IdentityKind

    @property
    def is_connected(self) -> bool:
        return self.kind == IdentityKind.CONNECTED
