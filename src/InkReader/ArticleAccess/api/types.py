"""
Canonical API Types for the ArticleAccess Pipeline

Provides frozen, immutable dataclasses as contracts between the metadata
client, credential resolver, content retriever, decryption engine and the
pipeline orchestrator. All types are frozen with slots.

Data Flow:
  MetadataClient.fetch(slug) → ArticleMetadata
  CredentialResolver.resolve(address, publication, article) → CredentialSet
  ContentRetriever.fetch(locator, is_encrypted) → bytes | str
  DecryptionEngine.decrypt(ciphertext, identity, credentials) → bytes
  ArticlePipeline.load(slug) → PipelineState

Design Principles:
  - Frozen dataclasses prevent accidental mutation
  - Literal types prevent invalid string values
  - A CredentialSet holds at most one populated branch
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import ClassVar, Literal, Optional, Union

# ============================================================================
# STABLE TOKEN VOCABULARIES (Public Contract)
# ============================================================================

#: Terminal error classification surfaced by the pipeline
ErrorKind = Literal[
    "not-found",
    "metadata-fetch-failed",
    "wallet-required",
    "auth-required",
    "content-fetch-failed",
    "decryption-denied",
    "unknown-failure",
]

#: Pipeline stage tokens
Stage = Literal[
    "idle",
    "metadata-loading",
    "credential-resolving",
    "downloading",
    "decrypting",
    "ready",
    "errored",
]

#: Credential branch names, in priority order
CredentialBranch = Literal["publication_owner", "contributor", "subscription", "nft_access"]

CREDENTIAL_BRANCHES: tuple[CredentialBranch, ...] = (
    "publication_owner",
    "contributor",
    "subscription",
    "nft_access",
)

TERMINAL_STAGES: frozenset[str] = frozenset({"ready", "errored"})


# ============================================================================
# ARTICLE METADATA
# ============================================================================


@dataclass(frozen=True, slots=True)
class ArticleMetadata:
    """
    Immutable record describing an article, as reported by the indexer.

    Created once per load from the first creation-event record matching the
    slug; never mutated afterwards.
    """

    id: str
    """Ledger object id of the article."""

    title: str
    """Human-readable title."""

    slug: str
    """URL slug the article was looked up by."""

    author_address: str
    """Address of the author account."""

    publication_id: str
    """Ledger object id of the publication the article belongs to."""

    content_locator: str
    """Storage-network locator (bundle id) for the article body."""

    content_identity: str
    """Hex-encoded IBE identity the body was encrypted under."""

    is_encrypted: bool
    """Whether the body must go through the decryption stage."""

    created_at: Optional[str] = None
    """Creation timestamp as reported by the indexer."""

    origin_transaction_id: Optional[str] = None
    """Digest of the transaction that created the article."""


# ============================================================================
# CREDENTIALS
# ============================================================================


@dataclass(frozen=True, slots=True)
class OwnerCredential:
    """Caller holds the publication's owner capability."""

    owner_cap_id: str
    publication_id: str

    branch: ClassVar[CredentialBranch] = "publication_owner"


@dataclass(frozen=True, slots=True)
class ContributorCredential:
    """Caller is listed in the publication's contributor set."""

    publication_id: str

    branch: ClassVar[CredentialBranch] = "contributor"


@dataclass(frozen=True, slots=True)
class SubscriptionCredential:
    """Caller holds an active platform subscription object."""

    subscription_id: str
    service_id: str = "0x0"

    branch: ClassVar[CredentialBranch] = "subscription"


@dataclass(frozen=True, slots=True)
class NftCredential:
    """Caller holds an access NFT scoped to an article."""

    nft_id: str
    article_id: str

    branch: ClassVar[CredentialBranch] = "nft_access"


Credential = Union[OwnerCredential, ContributorCredential, SubscriptionCredential, NftCredential]


@dataclass(frozen=True, slots=True)
class CredentialSet:
    """
    Result of credential resolution.

    At most one branch is populated. An empty set is valid and represents a
    caller without any recorded entitlement; ``warning`` is set when the set
    is empty and at least one ledger lookup failed outright.
    """

    publication_owner: Optional[OwnerCredential] = None
    contributor: Optional[ContributorCredential] = None
    subscription: Optional[SubscriptionCredential] = None
    nft_access: Optional[NftCredential] = None
    warning: Optional[str] = None

    def __post_init__(self) -> None:
        populated = [name for name in CREDENTIAL_BRANCHES if getattr(self, name) is not None]
        if len(populated) > 1:
            raise ValueError(
                f"CredentialSet allows at most one populated branch, got {populated!r}"
            )
        if populated and self.warning is not None:
            raise ValueError("CredentialSet.warning is only meaningful for an empty set")

    @classmethod
    def of(cls, credential: Optional[Credential], *, warning: Optional[str] = None) -> "CredentialSet":
        """Wrap a single credential (or ``None``) into a set."""

        if credential is None:
            return cls(warning=warning)
        return cls(**{credential.branch: credential})

    @property
    def active(self) -> Optional[Credential]:
        for name in CREDENTIAL_BRANCHES:
            value = getattr(self, name)
            if value is not None:
                return value
        return None

    @property
    def branch(self) -> Optional[CredentialBranch]:
        credential = self.active
        return credential.branch if credential is not None else None

    @property
    def is_empty(self) -> bool:
        return self.active is None


# ============================================================================
# PIPELINE STATE
# ============================================================================


@dataclass(frozen=True, slots=True)
class PipelineState:
    """
    Snapshot of one article load.

    Replaced wholesale on every transition. ``content`` is only ever set
    together with ``stage == "ready"``; any failure clears it.
    """

    stage: Stage = "idle"
    slug: Optional[str] = None
    generation: int = 0
    loading: bool = False
    downloading: bool = False
    decrypting: bool = False
    content: Optional[str] = None
    metadata: Optional[ArticleMetadata] = None
    error: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    credential_branch: Optional[CredentialBranch] = None

    def __post_init__(self) -> None:
        if self.content is not None and self.stage != "ready":
            raise ValueError(f"PipelineState.content requires stage='ready', got {self.stage!r}")
        if self.error is not None and self.stage != "errored":
            raise ValueError(f"PipelineState.error requires stage='errored', got {self.stage!r}")

    @property
    def is_processing(self) -> bool:
        return self.loading or self.downloading or self.decrypting

    @property
    def is_terminal(self) -> bool:
        return self.stage in TERMINAL_STAGES

    @property
    def has_content(self) -> bool:
        return self.content is not None

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


__all__ = [
    "ArticleMetadata",
    "CREDENTIAL_BRANCHES",
    "ContributorCredential",
    "Credential",
    "CredentialBranch",
    "CredentialSet",
    "ErrorKind",
    "NftCredential",
    "OwnerCredential",
    "PipelineState",
    "Stage",
    "SubscriptionCredential",
    "TERMINAL_STAGES",
]
