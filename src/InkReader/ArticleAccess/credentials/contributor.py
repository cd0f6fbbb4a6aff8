"""Publication contributor-set lookup."""

from __future__ import annotations

from typing import Any, List, Optional

from InkReader.ArticleAccess.api.types import ContributorCredential
from InkReader.ArticleAccess.ledger import LedgerReader

from .base import LedgerLookupBase, LookupContext, same_id
from .registry import register_lookup


def contributor_addresses(value: Any) -> List[str]:
    """Flatten a ``VecSet<address>`` (or a plain list) into addresses."""

    if isinstance(value, dict):
        inner = value.get("fields", value)
        value = inner.get("contents", []) if isinstance(inner, dict) else []
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


@register_lookup("contributor")
class ContributorLookup(LedgerLookupBase):
    """Accept when the caller appears in the publication's contributor set."""

    async def lookup(
        self, ledger: LedgerReader, context: LookupContext
    ) -> Optional[ContributorCredential]:
        publication = await ledger.get_object(context.publication_id)
        if publication is None:
            return None
        contributors = contributor_addresses(publication.fields.get("contributors"))
        if any(same_id(address, context.caller_address) for address in contributors):
            return ContributorCredential(publication_id=context.publication_id)
        return None
