"""Optional recomputation of leaves and proofs for strict loads.

Distributions are expected to come from an OpenZeppelin ``StandardMerkleTree``
over ``(address, uint256)`` leaves: each leaf is the double keccak of the ABI
encoded values and sibling pairs are hashed in sorted order.
"""

from __future__ import annotations

import logging
from typing import Iterable

from eth_abi import encode
from eth_abi.exceptions import EncodingError
from eth_utils import keccak

from .errors import LeafMismatch, ProofMismatch
from .models import RecipientRecord, bytes_to_hex, hex_to_bytes

logger = logging.getLogger(__name__)

LEAF_TYPES = ["address", "uint256"]
# 2**256 - 1 has 78 decimal digits
UINT256_DIGITS = 78


def standard_leaf(address: str, amount: int) -> bytes:
    encoded = encode(LEAF_TYPES, [address.lower(), amount])
    return keccak(keccak(encoded))


def hash_pair(a: bytes, b: bytes) -> bytes:
    if b < a:
        a, b = b, a
    return keccak(a + b)


def process_proof(leaf: bytes, proof: Iterable[bytes]) -> bytes:
    computed = leaf
    for node in proof:
        computed = hash_pair(computed, node)
    return computed


def verify_record(record: RecipientRecord) -> None:
    too_wide = LeafMismatch(record.address, f"amount {record.amount} cannot be encoded as uint256")
    if len(record.amount) > UINT256_DIGITS:
        raise too_wide
    try:
        expected_leaf = standard_leaf(record.address, int(record.amount))
    except EncodingError as exc:
        raise too_wide from exc

    leaf = hex_to_bytes(record.leaf)
    if expected_leaf != leaf:
        raise LeafMismatch(
            record.address,
            f"leaf {record.leaf} does not commit to (address, amount); expected {bytes_to_hex(expected_leaf)}",
        )

    resolved = process_proof(leaf, (hex_to_bytes(node) for node in record.proof))
    if resolved != hex_to_bytes(record.root):
        raise ProofMismatch(
            record.address,
            f"proof resolves to {bytes_to_hex(resolved)}, not root {record.root}",
        )


def verify_records(records: Iterable[RecipientRecord]) -> int:
    checked = 0
    for record in records:
        verify_record(record)
        checked += 1
    logger.info("verified %d proof(s) against the distribution root", checked)
    return checked
