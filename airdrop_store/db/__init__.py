"""Postgres helpers for airdrop loads."""

from .connection import connect, describe_db_url

__all__ = ("connect", "describe_db_url")
