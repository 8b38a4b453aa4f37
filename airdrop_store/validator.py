"""Per-entry validation for airdrop distribution documents.

Each document entry is keyed by recipient address and carries the Merkle data
produced upstream::

    "0xAbC...": {
        "inputs": ["0xabc...", "5000000000000000000"],
        "proof": ["0x11...", ...],
        "root": "0xaa...",
        "leaf": "0xbb...",
        "reasons": ["Tier 1"]
    }

``validate_entry`` checks shape only, in a fixed order, and stops at the first
violation so operators see the earliest structural problem of a large batch.
It never recomputes the leaf or walks the proof; see ``airdrop_store.merkle``
for the opt-in strict pass.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional, Tuple

from .errors import (
    AddressMismatch,
    EmptyProof,
    MalformedAddress,
    MalformedAmount,
    MalformedEntry,
    MalformedHash,
    MalformedInputs,
    MalformedProof,
)
from .models import RecipientRecord

_HEX20 = re.compile(r"0x[0-9a-fA-F]{40}")
_HEX32 = re.compile(r"0x[0-9a-fA-F]{64}")
_AMOUNT = re.compile(r"[0-9]+")

REQUIRED_FIELDS = ("root", "leaf", "proof", "inputs")


def is_hex20(value: Any) -> bool:
    return isinstance(value, str) and _HEX20.fullmatch(value) is not None


def is_hex32(value: Any) -> bool:
    return isinstance(value, str) and _HEX32.fullmatch(value) is not None


def normalize_address(value: Any) -> Optional[str]:
    if not is_hex20(value):
        return None
    return value.lower()


def _require_hash(address: str, entry: Mapping[str, Any], field: str) -> str:
    if field not in entry:
        raise MalformedHash(address, f"missing {field}")
    value = entry[field]
    if not is_hex32(value):
        raise MalformedHash(address, f"{field} must be 0x-prefixed 32-byte hex, got {value!r}")
    return value.lower()


def _normalize_proof(address: str, proof: Any) -> Tuple[str, ...]:
    if not isinstance(proof, list):
        raise MalformedProof(address, f"proof must be a list of hashes, got {type(proof).__name__}")
    if not proof:
        raise EmptyProof(address, "proof is empty")
    nodes = []
    for index, node in enumerate(proof):
        if not is_hex32(node):
            raise MalformedProof(
                address, f"proof[{index}] must be 0x-prefixed 32-byte hex, got {node!r}"
            )
        nodes.append(node.lower())
    return tuple(nodes)


def _parse_amount(address: str, raw: Any) -> str:
    text = str(raw)
    if _AMOUNT.fullmatch(text) is None:
        raise MalformedAmount(address, f"amount must be a non-negative base-10 integer, got {text!r}")
    return text.lstrip("0") or "0"


def _normalize_reasons(reasons: Any) -> Tuple[str, ...]:
    if not isinstance(reasons, list):
        return ()
    return tuple(str(reason) for reason in reasons)


def validate_entry(address_key: Any, entry: Any) -> RecipientRecord:
    """Return the canonical record for one document entry or raise a ``RecordRejected``."""

    address = normalize_address(address_key)
    if address is None:
        raise MalformedAddress(
            str(address_key), "key must be 0x-prefixed 20-byte hex"
        )
    if not isinstance(entry, Mapping):
        raise MalformedEntry(address_key, f"entry must be an object, got {type(entry).__name__}")

    root = _require_hash(address_key, entry, "root")
    leaf = _require_hash(address_key, entry, "leaf")

    if "proof" not in entry:
        raise MalformedProof(address_key, "missing proof")
    proof = _normalize_proof(address_key, entry["proof"])

    inputs = entry.get("inputs")
    if not isinstance(inputs, list) or len(inputs) != 2:
        raise MalformedInputs(address_key, f"inputs must be [address, amount], got {inputs!r}")
    input_address = normalize_address(inputs[0])
    if input_address is None:
        raise MalformedAddress(address_key, f"inputs[0] is not a valid address: {inputs[0]!r}")
    if input_address != address:
        raise AddressMismatch(address_key, f"inputs[0] ({inputs[0]}) does not match key")

    amount = _parse_amount(address_key, inputs[1])

    return RecipientRecord(
        address=address,
        amount=amount,
        leaf=leaf,
        root=root,
        proof=proof,
        reasons=_normalize_reasons(entry.get("reasons")),
    )
