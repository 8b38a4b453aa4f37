"""Typed rejections raised while validating and loading an airdrop document."""

from __future__ import annotations

from typing import Iterable, Optional


class AirdropLoadError(RuntimeError):
    """Base class for every failure surfaced by the load pipeline."""

    @property
    def code(self) -> str:
        return type(self).__name__


class UsageError(AirdropLoadError):
    """Raised when invocation parameters are missing or blank."""


class ConfigurationError(AirdropLoadError):
    """Raised when required runtime settings are absent."""


class RecordRejected(AirdropLoadError):
    """A single document entry violated a structural invariant."""

    def __init__(self, address: Optional[str], message: str):
        self.address = address
        prefix = f"entry {address}: " if address else ""
        super().__init__(prefix + message)


class MalformedEntry(RecordRejected):
    pass


class MalformedAddress(RecordRejected):
    pass


class MalformedHash(RecordRejected):
    pass


class MalformedProof(RecordRejected):
    pass


class EmptyProof(RecordRejected):
    pass


class MalformedInputs(RecordRejected):
    pass


class AddressMismatch(RecordRejected):
    pass


class MalformedAmount(RecordRejected):
    pass


class LeafMismatch(RecordRejected):
    """Recomputed leaf differs from the leaf carried by the entry."""


class ProofMismatch(RecordRejected):
    """Proof does not resolve to the distribution root."""


class MalformedDocument(AirdropLoadError):
    """The input document is not a JSON object keyed by address."""


class DuplicateAddress(AirdropLoadError):
    """Two document keys canonicalise to the same recipient address."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"address {address} appears more than once in the document")


class InconsistentRoot(AirdropLoadError):
    """Entries do not share exactly one Merkle root."""

    def __init__(self, roots: Iterable[str]):
        self.roots = sorted(roots)
        found = ", ".join(self.roots) if self.roots else "none"
        super().__init__(f"all entries must share one root; found {len(self.roots)}: {found}")


class MalformedTokenAddress(AirdropLoadError):
    def __init__(self, value: object):
        self.value = value
        super().__init__(f"token address must be 0x-prefixed 20-byte hex, got {value!r}")


class DistributionNotFound(AirdropLoadError):
    def __init__(self, airdrop_id: int):
        self.airdrop_id = airdrop_id
        super().__init__(f"airdrop id={airdrop_id} does not exist")


class RootMismatch(AirdropLoadError):
    """Reusing a distribution whose stored root differs from the document root."""

    def __init__(self, airdrop_id: int, stored_root: str, document_root: str):
        self.airdrop_id = airdrop_id
        self.stored_root = stored_root
        self.document_root = document_root
        super().__init__(
            f"airdrop id={airdrop_id} has root {stored_root}, document root is {document_root}"
        )


class StoreError(AirdropLoadError):
    """Raised when the store refuses a connection or a statement.

    Writes happen inside one transaction, so by the time this surfaces the
    load has been rolled back.
    """

    def __init__(
        self,
        original_exception: Exception,
        *,
        address: Optional[str] = None,
        action: str = "load",
    ):
        self.original_exception = original_exception
        self.address = address
        self.action = action
        where = f" while writing {address}" if address else ""
        super().__init__(f"store rejected the {action}{where}: {original_exception}")
