"""Publication owner capability lookup."""

from __future__ import annotations

from typing import Optional

from InkReader.ArticleAccess.api.types import OwnerCredential
from InkReader.ArticleAccess.ledger import LedgerReader

from .base import LedgerLookupBase, LookupContext, same_id
from .registry import register_lookup


@register_lookup("publication_owner")
class OwnerCapLookup(LedgerLookupBase):
    """Accept the first owner capability bound to the target publication."""

    async def lookup(self, ledger: LedgerReader, context: LookupContext) -> Optional[OwnerCredential]:
        caps = await ledger.list_owned(
            context.caller_address, self.config.struct_type(self.config.owner_cap_type)
        )
        for cap in caps:
            if same_id(cap.fields.get("publication_id"), context.publication_id):
                return OwnerCredential(
                    owner_cap_id=cap.object_id, publication_id=context.publication_id
                )
        return None
