from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

HASH_FUNCTION = "keccak256"


def hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:])


def bytes_to_hex(value: Optional[bytes]) -> Optional[str]:
    if value is None:
        return None
    return "0x" + bytes(value).hex()


@dataclass(frozen=True, slots=True)
class RecipientRecord:
    """A validated entry; hex fields are lowercase and ``0x`` prefixed.

    ``amount`` is the canonical base-10 string (no leading zeros) so values of
    any size survive the trip into ``numeric``.
    """

    address: str
    amount: str
    leaf: str
    root: str
    proof: Tuple[str, ...]
    reasons: Tuple[str, ...] = ()

    def to_params(self, airdrop_id: int) -> Dict[str, Any]:
        return {
            "airdrop_id": airdrop_id,
            "address": hex_to_bytes(self.address),
            "amount": self.amount,
            "leaf": hex_to_bytes(self.leaf),
            "proof": [hex_to_bytes(node) for node in self.proof],
            "reasons": list(self.reasons),
        }


@dataclass(frozen=True, slots=True)
class PreparedLoad:
    label: str
    root: str
    token_address: Optional[str]
    records: Tuple[RecipientRecord, ...]
    hash_fn: str = HASH_FUNCTION


@dataclass(slots=True)
class WriteStats:
    airdrop_id: int
    created_distribution: bool
    inserted: int = 0
    updated: int = 0
    committed: bool = False

    @property
    def written(self) -> int:
        return self.inserted + self.updated

    def record(self, inserted_flag: bool) -> None:
        if inserted_flag:
            self.inserted += 1
        else:
            self.updated += 1


@dataclass(frozen=True, slots=True)
class DistributionSummary:
    id: int
    label: str
    root: str
    hash_fn: str
    token_address: Optional[str]
    created_at: Optional[datetime]
    recipient_count: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "root": self.root,
            "hash_fn": self.hash_fn,
            "token_address": self.token_address,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "recipient_count": self.recipient_count,
        }


@dataclass(frozen=True, slots=True)
class LoadResult:
    distribution: Optional[DistributionSummary]
    stats: WriteStats
    dry_run: bool = False

    @property
    def recipients_written(self) -> int:
        return self.stats.written


@dataclass(frozen=True, slots=True)
class RecipientClaim:
    """What a verifier needs to submit a claim for one address."""

    airdrop_id: int
    address: str
    amount: str
    leaf: str
    root: str
    proof: Tuple[str, ...]
    reasons: Tuple[str, ...]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "airdrop_id": self.airdrop_id,
            "address": self.address,
            "amount": self.amount,
            "leaf": self.leaf,
            "root": self.root,
            "proof": list(self.proof),
            "reasons": list(self.reasons),
        }
