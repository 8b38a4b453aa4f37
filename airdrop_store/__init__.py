"""Validate Merkle airdrop distributions and load them into Postgres."""

from .errors import AirdropLoadError
from .loader import load_airdrop, prepare_load, read_document
from .models import HASH_FUNCTION, PreparedLoad, RecipientRecord
from .validator import validate_entry

__all__ = [
    "AirdropLoadError",
    "HASH_FUNCTION",
    "PreparedLoad",
    "RecipientRecord",
    "load_airdrop",
    "prepare_load",
    "read_document",
    "validate_entry",
]
