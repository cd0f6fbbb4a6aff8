"""Platform subscription lookup."""

from __future__ import annotations

from typing import Optional

from InkReader.ArticleAccess.api.types import SubscriptionCredential
from InkReader.ArticleAccess.ledger import LedgerReader

from .base import LedgerLookupBase, LookupContext, field_text
from .registry import register_lookup

PLATFORM_SERVICE_ID = "0x0"


@register_lookup("subscription")
class SubscriptionLookup(LedgerLookupBase):
    """Accept the first subscription object the caller owns.

    A caller is expected to hold at most one active subscription, so no
    further filtering is applied.
    """

    async def lookup(
        self, ledger: LedgerReader, context: LookupContext
    ) -> Optional[SubscriptionCredential]:
        subscriptions = await ledger.list_owned(
            context.caller_address, self.config.struct_type(self.config.subscription_type)
        )
        if not subscriptions:
            return None
        first = subscriptions[0]
        return SubscriptionCredential(
            subscription_id=first.object_id,
            service_id=field_text(first.fields, "service_id") or PLATFORM_SERVICE_ID,
        )
