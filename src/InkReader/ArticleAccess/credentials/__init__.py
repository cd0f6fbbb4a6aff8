"""Credential lookup chain: registry, lookups and the resolver."""

from .base import CredentialLookup, LedgerLookupBase, LookupContext, LookupOutcome
from .contributor import ContributorLookup
from .nft import ArticleNftLookup
from .owner import OwnerCapLookup
from .registry import build_lookups, get_lookup_class, get_registry, register_lookup
from .resolver import CredentialResolver, Resolution
from .subscription import SubscriptionLookup

__all__ = [
    "ArticleNftLookup",
    "ContributorLookup",
    "CredentialLookup",
    "CredentialResolver",
    "LedgerLookupBase",
    "LookupContext",
    "LookupOutcome",
    "OwnerCapLookup",
    "Resolution",
    "SubscriptionLookup",
    "build_lookups",
    "get_lookup_class",
    "get_registry",
    "register_lookup",
]
