"""
tests/helpers.py

In-memory stand-ins for psycopg connections plus builders for distribution
documents. The fake store understands exactly the statements in
``airdrop_store.db.sql`` and honours ``transaction()`` atomicity the way
psycopg does, including ``force_rollback``.
"""

from __future__ import annotations

import copy
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from psycopg import errors as pg_errors

from airdrop_store.db import sql
from airdrop_store.merkle import hash_pair, standard_leaf

ADDRESS_A = "0xABCDEF0123456789abcdef0123456789ABCD1234"
ADDRESS_B = "0x1111111111111111111111111111111111111111"
ADDRESS_C = "0x2222222222222222222222222222222222222222"
TOKEN = "0x471EcE3750Da237f93B8E339c536989b8978a438"

ROOT_AA = "0x" + "aa" * 32
ROOT_FF = "0x" + "ff" * 32
LEAF_BB = "0x" + "bb" * 32
PROOF_11 = ["0x" + "11" * 32]


def make_entry(
    address: str,
    amount: Any = "5000000000000000000",
    *,
    root: str = ROOT_AA,
    leaf: str = LEAF_BB,
    proof: Optional[List[str]] = None,
    reasons: Any = ("Tier 1",),
    input_address: Optional[str] = None,
) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "inputs": [input_address if input_address is not None else address.lower(), amount],
        "proof": list(PROOF_11 if proof is None else proof),
        "root": root,
        "leaf": leaf,
    }
    if reasons is not None:
        entry["reasons"] = list(reasons) if isinstance(reasons, tuple) else reasons
    return entry


def build_standard_tree(rows: Sequence[Tuple[str, int]]) -> Dict[str, Dict[str, Any]]:
    """Build a document the way OpenZeppelin's StandardMerkleTree would."""

    leaves = sorted((standard_leaf(address.lower(), amount), address, amount) for address, amount in rows)
    level = [leaf for leaf, _, _ in leaves]
    levels = [level]
    while len(level) > 1:
        nxt = []
        for i in range(0, len(level), 2):
            if i + 1 < len(level):
                nxt.append(hash_pair(level[i], level[i + 1]))
            else:
                nxt.append(level[i])
        levels.append(nxt)
        level = nxt
    root = "0x" + levels[-1][0].hex()

    document: Dict[str, Dict[str, Any]] = {}
    for index, (leaf, address, amount) in enumerate(leaves):
        proof = []
        position = index
        for depth in levels[:-1]:
            sibling = position ^ 1
            if sibling < len(depth):
                proof.append("0x" + depth[sibling].hex())
            position //= 2
        document[address] = {
            "inputs": [address, str(amount)],
            "proof": proof,
            "root": root,
            "leaf": "0x" + leaf.hex(),
            "reasons": [],
        }
    return document


class FakeStore:
    def __init__(self) -> None:
        self.airdrops: Dict[int, Dict[str, Any]] = {}
        self.recipients: Dict[Tuple[int, bytes], Dict[str, Any]] = {}
        self.next_id = 1
        self.statements: List[str] = []
        self.commits = 0
        self.rollbacks = 0
        self.upserts = 0
        self.fail_on_upsert: Optional[int] = None
        self.fail_on: Optional[str] = None
        self.schema_applied = False

    def snapshot(self) -> Tuple[Any, ...]:
        return (copy.deepcopy(self.airdrops), copy.deepcopy(self.recipients), self.next_id)

    def restore(self, state: Tuple[Any, ...]) -> None:
        self.airdrops, self.recipients, self.next_id = state

    def rows_for(self, airdrop_id: int) -> Dict[bytes, Dict[str, Any]]:
        return {
            address: row for (owner, address), row in self.recipients.items() if owner == airdrop_id
        }

    def execute(self, query: str, params: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self.statements.append(query)
        params = params or {}
        if self.fail_on is not None and query == self.fail_on:
            raise pg_errors.QueryCanceled("canceling statement due to statement timeout")

        if query == sql.SET_STATEMENT_TIMEOUT:
            return [{"set_config": params["timeout"]}]

        if query == sql.SCHEMA_DDL:
            self.schema_applied = True
            return []

        if query == sql.INSERT_AIRDROP:
            if len(params["root"]) != 32:
                raise pg_errors.CheckViolation("airdrops_root_check")
            airdrop_id = self.next_id
            self.next_id += 1
            self.airdrops[airdrop_id] = {
                "id": airdrop_id,
                "label": params["label"],
                "root": params["root"],
                "hash_fn": params["hash_fn"],
                "token_address": params["token_address"],
                "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
            }
            return [{"id": airdrop_id}]

        if query == sql.LOCK_AIRDROP:
            row = self.airdrops.get(params["airdrop_id"])
            if row is None:
                return []
            return [{"id": row["id"], "root": "0x" + row["root"].hex()}]

        if query == sql.UPSERT_RECIPIENT:
            self.upserts += 1
            if self.fail_on_upsert is not None and self.upserts == self.fail_on_upsert:
                raise pg_errors.InvalidTextRepresentation("invalid input syntax for type numeric")
            if params["airdrop_id"] not in self.airdrops:
                raise pg_errors.ForeignKeyViolation("airdrop_recipients_airdrop_id_fkey")
            key = (params["airdrop_id"], params["address"])
            inserted = key not in self.recipients
            self.recipients[key] = {
                "amount": params["amount"],
                "leaf": params["leaf"],
                "proof": list(params["proof"]),
                "reasons": list(params["reasons"]),
            }
            return [{"inserted": inserted}]

        if query == sql.SELECT_AIRDROP:
            row = self.airdrops.get(params["airdrop_id"])
            if row is None:
                return []
            token = row["token_address"]
            return [
                {
                    "id": row["id"],
                    "label": row["label"],
                    "root": "0x" + row["root"].hex(),
                    "hash_fn": row["hash_fn"],
                    "token_address": "0x" + token.hex() if token is not None else None,
                    "created_at": row["created_at"],
                    "recipient_count": len(self.rows_for(row["id"])),
                }
            ]

        if query == sql.SELECT_RECIPIENT:
            key = (params["airdrop_id"], params["address"])
            row = self.recipients.get(key)
            if row is None:
                return []
            return [
                {
                    "airdrop_id": params["airdrop_id"],
                    "address": "0x" + params["address"].hex(),
                    "amount": row["amount"],
                    "leaf": "0x" + row["leaf"].hex(),
                    "root": "0x" + self.airdrops[params["airdrop_id"]]["root"].hex(),
                    "proof": list(row["proof"]),
                    "reasons": list(row["reasons"]),
                }
            ]

        raise AssertionError(f"unexpected statement: {query[:60]}")


class FakeCursor:
    def __init__(self, store: FakeStore, *, as_dict: bool) -> None:
        self._store = store
        self._as_dict = as_dict
        self._rows: List[Dict[str, Any]] = []

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def execute(self, query: str, params: Optional[Dict[str, Any]] = None) -> None:
        self._rows = self._store.execute(query, params)

    def fetchone(self) -> Any:
        if not self._rows:
            return None
        row = self._rows.pop(0)
        return row if self._as_dict else tuple(row.values())


class FakeConnection:
    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.closed = False

    def cursor(self, row_factory: Any = None) -> FakeCursor:
        return FakeCursor(self.store, as_dict=row_factory is not None)

    @contextmanager
    def transaction(self, force_rollback: bool = False) -> Iterator["FakeConnection"]:
        state = self.store.snapshot()
        try:
            yield self
        except BaseException:
            self.store.restore(state)
            self.store.rollbacks += 1
            raise
        if force_rollback:
            self.store.restore(state)
            self.store.rollbacks += 1
        else:
            self.store.commits += 1

    def close(self) -> None:
        self.closed = True
