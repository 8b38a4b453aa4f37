from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer

from . import loader
from .db import connect
from .errors import AirdropLoadError
from .logging_setup import configure_logging, log_context
from .settings import get_settings

app = typer.Typer(add_completion=False, help="Load Merkle airdrop distributions into Postgres.")

logger = logging.getLogger(__name__)


def _fail(exc: AirdropLoadError) -> NoReturn:
    typer.echo(f"[{exc.code}] {exc}", err=True)
    raise typer.Exit(code=1)


@app.command("load")
def load_command(
    json_path: Path = typer.Argument(
        ..., exists=True, file_okay=True, dir_okay=False, readable=True, help="Distribution JSON"
    ),
    label: str = typer.Argument(..., help="Human readable label for the airdrop"),
    token_address: Optional[str] = typer.Argument(
        None, help="Reward token contract (0x-prefixed 20-byte hex)"
    ),
    airdrop_id: Optional[int] = typer.Option(
        None, "--airdrop-id", min=1, help="Reload into an existing airdrop instead of creating one"
    ),
    verify_proofs: Optional[bool] = typer.Option(
        None,
        "--verify-proofs/--no-verify-proofs",
        help="Recompute leaves and walk proofs before writing (default from AIRDROP_VERIFY_PROOFS)",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Run every write then roll back the transaction"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level)
    strict = settings.verify_proofs if verify_proofs is None else verify_proofs

    try:
        document = loader.read_document(json_path)
        prepared = loader.prepare_load(
            document,
            label=label,
            token_address=token_address,
            verify_proofs=strict,
        )
        with connect(settings) as conn:
            result = loader.load_airdrop(
                conn,
                prepared,
                airdrop_id=airdrop_id,
                dry_run=dry_run,
                statement_timeout_ms=settings.statement_timeout_ms,
            )
    except AirdropLoadError as exc:
        logger.debug("load failed", exc_info=True, extra=log_context(label, json_path))
        _fail(exc)

    for line in loader.summarize(result):
        typer.echo(line)


@app.command("init-schema")
def init_schema_command() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        with connect(settings) as conn:
            loader.apply_schema(conn)
    except AirdropLoadError as exc:
        _fail(exc)
    typer.echo("Schema ready: airdrops, airdrop_recipients")


@app.command("show")
def show_command(
    airdrop_id: int = typer.Argument(..., min=1, help="Airdrop id to describe"),
) -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        with connect(settings) as conn:
            summary = loader.read_distribution(conn, airdrop_id)
    except AirdropLoadError as exc:
        _fail(exc)
    typer.echo(json.dumps(summary.as_dict(), indent=2))


@app.command("proof")
def proof_command(
    airdrop_id: int = typer.Argument(..., min=1),
    address: str = typer.Argument(..., help="Recipient address"),
) -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        with connect(settings) as conn:
            claim = loader.fetch_recipient(conn, airdrop_id, address)
    except AirdropLoadError as exc:
        _fail(exc)
    if claim is None:
        typer.echo(f"[NotEligible] {address} has no claim in airdrop id={airdrop_id}", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(claim.as_dict(), indent=2))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
