"""Transactional loader for validated airdrop distributions.

A load moves through four phases and stops at the first failure:

* **Collecting**: every ``(address, entry)`` pair of the document goes through
  :func:`airdrop_store.validator.validate_entry`. One rejection aborts the
  whole batch, so a partial record set never reaches the store.
* **Root check**: all entries must reference exactly one Merkle root.
* **Writing**: a single ``conn.transaction()`` block inserts the ``airdrops``
  row (or locks an existing one when reloading) and upserts every recipient
  keyed by ``(airdrop_id, address)``. Any statement failure rolls back the
  block, including the distribution row.
* **Read-back**: after commit the distribution is re-read by id and reported.

Preparation (:func:`prepare_load`) is pure and opens no connection, so a
document that fails validation never touches the store.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import psycopg
from psycopg import Connection, Cursor
from psycopg.rows import dict_row

from . import merkle
from .db import sql
from .errors import (
    DistributionNotFound,
    DuplicateAddress,
    InconsistentRoot,
    MalformedAddress,
    MalformedDocument,
    MalformedTokenAddress,
    RootMismatch,
    StoreError,
    UsageError,
)
from .logging_setup import log_context
from .models import (
    DistributionSummary,
    LoadResult,
    PreparedLoad,
    RecipientClaim,
    RecipientRecord,
    WriteStats,
    bytes_to_hex,
    hex_to_bytes,
)
from .validator import normalize_address, validate_entry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Document reading
# ---------------------------------------------------------------------------


def _reject_duplicate_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise MalformedDocument(f"duplicate key {key!r} in document")
        result[key] = value
    return result


def read_document(path: Path) -> Dict[str, Any]:
    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            document = json.load(handle, object_pairs_hook=_reject_duplicate_keys)
    except OSError as exc:
        raise MalformedDocument(f"unable to read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise MalformedDocument(f"{path} is not valid JSON: {exc}") from exc
    except ValueError as exc:
        # undecodable UTF-8, or a bare JSON integer past the int conversion limit
        raise MalformedDocument(f"unable to decode {path}: {exc}") from exc
    if not isinstance(document, dict):
        raise MalformedDocument(
            f"{path} must contain an object keyed by address, got {type(document).__name__}"
        )
    logger.debug("read %d entr(ies)", len(document), extra=log_context(path=path))
    return document


# ---------------------------------------------------------------------------
# Collecting and cross-record checks
# ---------------------------------------------------------------------------


def collect_records(document: Mapping[str, Any]) -> List[RecipientRecord]:
    if not isinstance(document, Mapping):
        raise MalformedDocument(
            f"document must be an object keyed by address, got {type(document).__name__}"
        )

    records: List[RecipientRecord] = []
    seen: set[str] = set()
    for address_key, entry in document.items():
        record = validate_entry(address_key, entry)
        if record.address in seen:
            raise DuplicateAddress(record.address)
        seen.add(record.address)
        records.append(record)
    logger.debug("validated %d entr(ies)", len(records))
    return records


def check_single_root(records: Iterable[RecipientRecord]) -> str:
    roots = {record.root for record in records}
    if len(roots) != 1:
        raise InconsistentRoot(roots)
    return next(iter(roots))


def check_token_address(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    token = normalize_address(value)
    if token is None:
        raise MalformedTokenAddress(value)
    return token


def prepare_load(
    document: Mapping[str, Any],
    *,
    label: str,
    token_address: Optional[str] = None,
    verify_proofs: bool = False,
) -> PreparedLoad:
    if not label or not label.strip():
        raise UsageError("label must not be blank")

    records = collect_records(document)
    root = check_single_root(records)
    token = check_token_address(token_address)
    if verify_proofs:
        merkle.verify_records(records)

    logger.info(
        "prepared %d recipient(s) root=%s token=%s",
        len(records),
        root,
        token or "-",
        extra=log_context(label),
    )
    return PreparedLoad(label=label, root=root, token_address=token, records=tuple(records))


# ---------------------------------------------------------------------------
# Database write helpers
# ---------------------------------------------------------------------------


def _insert_airdrop(cur: Cursor, prepared: PreparedLoad) -> int:
    cur.execute(
        sql.INSERT_AIRDROP,
        {
            "label": prepared.label,
            "root": hex_to_bytes(prepared.root),
            "hash_fn": prepared.hash_fn,
            "token_address": hex_to_bytes(prepared.token_address) if prepared.token_address else None,
        },
    )
    row = cur.fetchone()
    if row is None:
        raise StoreError(RuntimeError("airdrop insert returned no id"))
    return int(row[0])


def _lock_airdrop(cur: Cursor, airdrop_id: int, root: str) -> None:
    cur.execute(sql.LOCK_AIRDROP, {"airdrop_id": airdrop_id})
    row = cur.fetchone()
    if row is None:
        raise DistributionNotFound(airdrop_id)
    stored_root = str(row[1]).lower()
    if stored_root != root:
        raise RootMismatch(airdrop_id, stored_root, root)


def _open_distribution(cur: Cursor, prepared: PreparedLoad, airdrop_id: Optional[int]) -> WriteStats:
    log_extra = log_context(prepared.label)
    if airdrop_id is None:
        target_id = _insert_airdrop(cur, prepared)
        logger.info("inserted airdrop id=%s", target_id, extra=log_extra)
        return WriteStats(airdrop_id=target_id, created_distribution=True)
    _lock_airdrop(cur, airdrop_id, prepared.root)
    logger.info("reusing airdrop id=%s", airdrop_id, extra=log_extra)
    return WriteStats(airdrop_id=airdrop_id, created_distribution=False)


def _upsert_recipients(cur: Cursor, records: Iterable[RecipientRecord], stats: WriteStats) -> None:
    for record in records:
        try:
            cur.execute(sql.UPSERT_RECIPIENT, record.to_params(stats.airdrop_id))
        except psycopg.Error as exc:
            raise StoreError(exc, address=record.address) from exc
        row = cur.fetchone()
        if row is None:
            raise StoreError(RuntimeError("recipient upsert returned no row"), address=record.address)
        stats.record(bool(row[0]))


def _write_in_transaction(
    conn: Connection,
    prepared: PreparedLoad,
    airdrop_id: Optional[int],
    dry_run: bool,
    statement_timeout_ms: Optional[int],
) -> WriteStats:
    # returns once the block has committed, or rolled back for a dry run
    with conn.transaction(force_rollback=dry_run):
        with conn.cursor() as cur:
            if statement_timeout_ms:
                cur.execute(sql.SET_STATEMENT_TIMEOUT, {"timeout": str(statement_timeout_ms)})
            stats = _open_distribution(cur, prepared, airdrop_id)
            _upsert_recipients(cur, prepared.records, stats)
            return stats


def write_distribution(
    conn: Connection,
    prepared: PreparedLoad,
    *,
    airdrop_id: Optional[int] = None,
    dry_run: bool = False,
    statement_timeout_ms: Optional[int] = None,
) -> WriteStats:
    """Write the distribution and all recipients in one transaction.

    With ``dry_run`` every statement still runs against the store's constraints
    and the block is then rolled back. Any failure rolls back the whole block,
    including the ``airdrops`` row, before it surfaces as ``StoreError``.
    """
    log_extra = log_context(prepared.label)

    try:
        stats = _write_in_transaction(conn, prepared, airdrop_id, dry_run, statement_timeout_ms)
    except psycopg.Error as exc:
        logger.error("load rolled back: %s", exc, extra=log_extra)
        raise StoreError(exc) from exc
    except StoreError as exc:
        logger.error("load rolled back: %s", exc, extra=log_extra)
        raise

    stats.committed = not dry_run
    if dry_run:
        logger.info("dry run: rolled back %d recipient write(s)", stats.written, extra=log_extra)
    else:
        logger.info(
            "committed airdrop id=%s inserted=%d updated=%d",
            stats.airdrop_id,
            stats.inserted,
            stats.updated,
            extra=log_extra,
        )
    return stats


# ---------------------------------------------------------------------------
# Read-back
# ---------------------------------------------------------------------------


def read_distribution(conn: Connection, airdrop_id: int) -> DistributionSummary:
    try:
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(sql.SELECT_AIRDROP, {"airdrop_id": airdrop_id})
            row = cur.fetchone()
    except psycopg.Error as exc:
        raise StoreError(exc, action="read-back") from exc
    if row is None:
        raise DistributionNotFound(airdrop_id)
    return DistributionSummary(
        id=int(row["id"]),
        label=row["label"],
        root=row["root"],
        hash_fn=row["hash_fn"],
        token_address=row.get("token_address"),
        created_at=row.get("created_at"),
        recipient_count=int(row.get("recipient_count") or 0),
    )


def fetch_recipient(conn: Connection, airdrop_id: int, address: str) -> Optional[RecipientClaim]:
    canonical = normalize_address(address)
    if canonical is None:
        raise MalformedAddress(address, "lookup address must be 0x-prefixed 20-byte hex")

    try:
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                sql.SELECT_RECIPIENT,
                {"airdrop_id": airdrop_id, "address": hex_to_bytes(canonical)},
            )
            row = cur.fetchone()
    except psycopg.Error as exc:
        raise StoreError(exc, action="lookup") from exc
    if row is None:
        return None
    return RecipientClaim(
        airdrop_id=int(row["airdrop_id"]),
        address=row["address"],
        amount=str(row["amount"]),
        leaf=row["leaf"],
        root=row["root"],
        proof=tuple(bytes_to_hex(node) or "" for node in row["proof"]),
        reasons=tuple(row["reasons"] or ()),
    )


def apply_schema(conn: Connection) -> None:
    try:
        with conn.transaction():
            with conn.cursor() as cur:
                cur.execute(sql.SCHEMA_DDL)
    except psycopg.Error as exc:
        raise StoreError(exc, action="schema change") from exc
    logger.info("airdrop schema is up to date")


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


def load_airdrop(
    conn: Connection,
    prepared: PreparedLoad,
    *,
    airdrop_id: Optional[int] = None,
    dry_run: bool = False,
    statement_timeout_ms: Optional[int] = None,
) -> LoadResult:
    stats = write_distribution(
        conn,
        prepared,
        airdrop_id=airdrop_id,
        dry_run=dry_run,
        statement_timeout_ms=statement_timeout_ms,
    )
    distribution = None if dry_run else read_distribution(conn, stats.airdrop_id)
    return LoadResult(distribution=distribution, stats=stats, dry_run=dry_run)


def summarize(result: LoadResult) -> Sequence[str]:
    stats = result.stats
    if result.dry_run:
        return (
            "Dry run complete; nothing was persisted.",
            f"Recipients validated against the store: {stats.written}",
        )
    distribution = result.distribution
    if distribution is None:
        return (f"Recipients inserted/updated: {stats.written} (airdrop id={stats.airdrop_id})",)
    return (
        f"Airdrop id={distribution.id} label={distribution.label!r} root={distribution.root}",
        f"Token address: {distribution.token_address or '-'}",
        f"Recipients inserted/updated: {stats.written} "
        f"(inserted={stats.inserted} updated={stats.updated}, total stored={distribution.recipient_count})",
    )
