# === NAVMAP v1 ===
# {
#   "module": "InkReader.ArticleAccess.credentials.resolver",
#   "purpose": "Priority-ordered, best-effort credential resolution.",
#   "sections": [
#     {
#       "id": "resolution",
#       "name": "Resolution",
#       "anchor": "class-resolution",
#       "kind": "class"
#     },
#     {
#       "id": "credentialresolver",
#       "name": "CredentialResolver",
#       "anchor": "class-credentialresolver",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Priority-ordered credential resolution.

Lookups run one at a time in priority order and the first satisfied lookup
ends the search, so a caller holding several entitlements is represented by
the highest-priority one only. A lookup that raises counts as unsatisfied and
the search continues. The resolver itself never raises; when nothing is found
and at least one lookup errored, the returned empty set carries a warning.

The decryption key servers are the authority on access; this resolver only
picks which entitlement to present to them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from InkReader.ArticleAccess.api.types import CredentialSet
from InkReader.ArticleAccess.config.models import ArticleAccessConfig
from InkReader.ArticleAccess.ledger import LedgerReader

# Imported for their registration side effect.
from . import contributor, nft, owner, subscription  # noqa: F401
from .base import LedgerLookupBase, LookupContext, LookupOutcome
from .registry import build_lookups

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Resolution:
    """Credential set plus the per-lookup trace that produced it."""

    credentials: CredentialSet
    outcomes: tuple[LookupOutcome, ...]


class CredentialResolver:
    """Search the ledger for the caller's highest-priority entitlement."""

    def __init__(
        self,
        ledger: LedgerReader,
        lookups: Optional[Sequence[LedgerLookupBase]] = None,
        *,
        config: Optional[ArticleAccessConfig] = None,
    ) -> None:
        self._ledger = ledger
        self._lookups: List[LedgerLookupBase] = (
            list(lookups) if lookups is not None else build_lookups(config)
        )

    @property
    def order(self) -> List[str]:
        return [lookup.name for lookup in self._lookups]

    async def resolve(
        self, caller_address: str, publication_id: str, article_id: str
    ) -> CredentialSet:
        resolution = await self.resolve_with_trace(caller_address, publication_id, article_id)
        return resolution.credentials

    async def resolve_with_trace(
        self, caller_address: str, publication_id: str, article_id: str
    ) -> Resolution:
        context = LookupContext(
            caller_address=caller_address,
            publication_id=publication_id,
            article_id=article_id,
        )
        outcomes: List[LookupOutcome] = []
        errored: List[str] = []

        for index, lookup in enumerate(self._lookups):
            try:
                credential = await lookup.lookup(self._ledger, context)
            except Exception as exc:
                errored.append(lookup.name)
                outcomes.append(LookupOutcome(lookup.name, "errored", f"{type(exc).__name__}: {exc}"))
                LOGGER.debug(
                    "credential lookup failed",
                    exc_info=True,
                    extra={"extra_fields": {"lookup": lookup.name, "publication_id": publication_id}},
                )
                continue

            if credential is None:
                outcomes.append(LookupOutcome(lookup.name, "unsatisfied"))
                continue

            outcomes.append(LookupOutcome(lookup.name, "satisfied"))
            outcomes.extend(
                LookupOutcome(later.name, "skipped") for later in self._lookups[index + 1 :]
            )
            LOGGER.debug(
                "credential resolved",
                extra={"extra_fields": {"branch": credential.branch, "publication_id": publication_id}},
            )
            return Resolution(CredentialSet.of(credential), tuple(outcomes))

        warning = None
        if errored:
            warning = f"Credential lookups failed: {', '.join(errored)}"
            LOGGER.warning(
                "no credential resolved; some lookups errored",
                extra={"extra_fields": {"errored": errored, "publication_id": publication_id}},
            )
        return Resolution(CredentialSet.of(None, warning=warning), tuple(outcomes))


__all__ = ["CredentialResolver", "Resolution"]
