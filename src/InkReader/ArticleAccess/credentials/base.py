"""Shared contracts for the credential lookups.

Each lookup checks one entitlement source on the ledger and returns a single
credential or ``None``. Lookups may raise; the resolver turns any exception
into an ``errored`` outcome and moves to the next lookup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Literal, Mapping, Optional, Protocol

from InkReader.ArticleAccess.api.types import Credential, CredentialBranch
from InkReader.ArticleAccess.config.models import LedgerConfig
from InkReader.ArticleAccess.ledger import LedgerReader

LookupStatus = Literal["satisfied", "unsatisfied", "errored", "skipped"]


@dataclass(frozen=True, slots=True)
class LookupContext:
    """Inputs shared by every lookup of one resolution."""

    caller_address: str
    publication_id: str
    article_id: str


@dataclass(frozen=True, slots=True)
class LookupOutcome:
    """What one lookup concluded during a resolution."""

    name: CredentialBranch
    status: LookupStatus
    detail: Optional[str] = None


class CredentialLookup(Protocol):
    """Protocol for entitlement lookups."""

    name: ClassVar[CredentialBranch]

    async def lookup(self, ledger: LedgerReader, context: LookupContext) -> Optional[Credential]:
        """Return the credential this source grants, or ``None``."""
        ...


class LedgerLookupBase:
    """Base class carrying the ledger settings a lookup needs."""

    name: ClassVar[CredentialBranch]

    def __init__(self, config: Optional[LedgerConfig] = None) -> None:
        self.config = config or LedgerConfig()

    @classmethod
    def from_config(cls, config: LedgerConfig) -> "LedgerLookupBase":
        return cls(config)

    async def lookup(self, ledger: LedgerReader, context: LookupContext) -> Optional[Credential]:
        raise NotImplementedError


def same_id(left: Any, right: Any) -> bool:
    """Compare two ledger ids/addresses case-insensitively."""

    if not isinstance(left, str) or not isinstance(right, str):
        return False
    return left.lower() == right.lower()


def field_text(fields: Mapping[str, Any], name: str) -> Optional[str]:
    """Return a string field, unwrapping ``{"id": ...}`` UID structs."""

    value = fields.get(name)
    if isinstance(value, Mapping):
        value = value.get("id")
    if isinstance(value, str) and value:
        return value
    return None


__all__ = [
    "CredentialLookup",
    "LedgerLookupBase",
    "LookupContext",
    "LookupOutcome",
    "LookupStatus",
    "field_text",
    "same_id",
]
