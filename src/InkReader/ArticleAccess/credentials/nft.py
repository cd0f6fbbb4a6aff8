"""Article access NFT lookup."""

from __future__ import annotations

from typing import Optional

from InkReader.ArticleAccess.api.types import NftCredential
from InkReader.ArticleAccess.ledger import LedgerReader

from .base import LedgerLookupBase, LookupContext, field_text
from .registry import register_lookup


@register_lookup("nft_access")
class ArticleNftLookup(LedgerLookupBase):
    """Accept the first access NFT the caller owns."""

    async def lookup(self, ledger: LedgerReader, context: LookupContext) -> Optional[NftCredential]:
        nfts = await ledger.list_owned(
            context.caller_address, self.config.struct_type(self.config.article_nft_type)
        )
        if not nfts:
            return None
        first = nfts[0]
        return NftCredential(
            nft_id=first.object_id,
            article_id=field_text(first.fields, "article_id") or context.article_id,
        )
