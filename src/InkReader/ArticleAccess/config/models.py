"""
Pydantic v2 Configuration Models for ArticleAccess

Provides strict, typed configuration for every pipeline dependency:
- HTTP client settings (timeouts, TLS, user agent)
- Indexer endpoint
- Ledger JSON-RPC endpoint and entitlement object types
- Storage proxy and aggregator endpoints
- Key-server quorum
- Pipeline behaviour (credential order, superseded-load cancellation)
- Top-level ArticleAccessConfig as single source of truth

All models use extra="forbid" for strict validation. Environment variables
and CLI overrides follow: file < env < CLI precedence.
"""

from __future__ import annotations

import re
from typing import ClassVar, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_PACKAGE_ID_RE = re.compile(r"^0x[a-fA-F0-9]{60,64}$")
_OBJECT_ID_RE = re.compile(r"^0x[a-fA-F0-9]{1,64}$")

DEFAULT_CREDENTIAL_ORDER = ["publication_owner", "contributor", "subscription", "nft_access"]

# ============================================================================
# Shared Models
# ============================================================================


class HttpClientConfig(BaseModel):
    """Configuration for HTTP client behavior."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    user_agent: str = Field(default="InkReader/ArticleAccess", description="User-Agent string")
    timeout_connect_s: float = Field(default=5.0, description="Connection timeout in seconds")
    timeout_read_s: float = Field(default=30.0, description="Read timeout in seconds")
    verify_tls: bool = Field(default=True, description="Verify TLS certificates")
    max_connections: int = Field(default=32, ge=1, description="Connection pool size")

    @field_validator("timeout_connect_s", "timeout_read_s")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be > 0")
        return v


class IndexerConfig(BaseModel):
    """Indexer (backend API) serving article creation events."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    base_url: str = Field(default="http://localhost:3000", description="Indexer base URL")
    events_path: str = Field(
        default="/events/article-created", description="Creation-event query path"
    )
    lookup_limit: int = Field(default=1, ge=1, description="Records requested per slug query")


class LedgerConfig(BaseModel):
    """Distributed-ledger read interface and entitlement object types."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    rpc_url: str = Field(
        default="https://fullnode.testnet.sui.io:443", description="JSON-RPC endpoint"
    )
    package_id: str = Field(
        default="0x" + "0" * 64, description="Package that defines the entitlement types"
    )
    owner_cap_type: str = Field(
        default="publication::PublicationOwnerCap", description="Owner capability struct"
    )
    subscription_type: str = Field(
        default="platform_access::PlatformSubscription", description="Subscription struct"
    )
    article_nft_type: str = Field(default="article_nft::ArticleNFT", description="Access NFT struct")
    page_limit: int = Field(default=50, ge=1, le=50, description="Owned-object page size")

    @field_validator("package_id")
    @classmethod
    def validate_package_id(cls, v: str) -> str:
        if not _PACKAGE_ID_RE.match(v):
            raise ValueError("package_id must be 0x followed by 60-64 hex characters")
        return v

    def struct_type(self, suffix: str) -> str:
        """Return the fully qualified struct type for ``suffix``."""
        return f"{self.package_id}::{suffix}"


class StorageConfig(BaseModel):
    """Backend proxy (encrypted bytes) and aggregator (plaintext bundles)."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    proxy_url: str = Field(default="http://localhost:3000", description="Backend proxy base URL")
    raw_path: str = Field(default="/articles/raw", description="Raw encrypted bytes path")
    aggregator_url: str = Field(
        default="https://aggregator.walrus-testnet.walrus.space",
        description="Storage aggregator base URL",
    )
    markdown_part: str = Field(
        default="media0", description="Identifier of the bundle part holding the markdown"
    )


class KeyServerEntry(BaseModel):
    """One key server of the IBE quorum."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    object_id: str = Field(description="Ledger object id of the key server")
    url: str = Field(description="Key server base URL")
    weight: int = Field(default=1, ge=1, description="Share weight toward the threshold")

    @field_validator("object_id")
    @classmethod
    def validate_object_id(cls, v: str) -> str:
        if not _OBJECT_ID_RE.match(v):
            raise ValueError("object_id must be a 0x-prefixed hex object id")
        return v


class KeyServerConfig(BaseModel):
    """Key-server quorum configuration."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    servers: List[KeyServerEntry] = Field(default_factory=list, description="Key servers")
    threshold: int = Field(
        default=2, ge=1, description="Weighted shares required when the envelope is silent"
    )
    timeout_s: float = Field(default=10.0, gt=0, description="Per-server request timeout")
    session_ttl_min: int = Field(
        default=43200, ge=1, description="Lifetime of the signed session certificate"
    )


class PipelineConfig(BaseModel):
    """Pipeline orchestration behaviour."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    credential_order: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CREDENTIAL_ORDER),
        description="Credential lookup order (highest priority first)",
    )
    cancel_superseded: bool = Field(
        default=False,
        description="Cancel in-flight work when a different slug is loaded",
    )

    @field_validator("credential_order")
    @classmethod
    def validate_order(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("credential_order must not be empty")
        unknown = set(v) - set(DEFAULT_CREDENTIAL_ORDER)
        if unknown:
            raise ValueError(f"Unknown credential lookups: {sorted(unknown)}")
        if len(set(v)) != len(v):
            raise ValueError("credential_order must not repeat entries")
        return v


# ============================================================================
# Top-Level Configuration
# ============================================================================


class ArticleAccessConfig(BaseModel):
    """
    Single source of truth for ArticleAccess configuration.

    Loaded from file (YAML/JSON), overlaid with environment variables,
    and finally overridden by CLI arguments. Precedence: file < env < CLI.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", validate_assignment=True)

    network: Literal["testnet", "mainnet", "devnet", "localnet"] = Field(
        default="testnet", description="Ledger network name"
    )
    http: HttpClientConfig = Field(
        default_factory=HttpClientConfig, description="HTTP client configuration"
    )
    indexer: IndexerConfig = Field(default_factory=IndexerConfig, description="Indexer endpoint")
    ledger: LedgerConfig = Field(default_factory=LedgerConfig, description="Ledger endpoint")
    storage: StorageConfig = Field(default_factory=StorageConfig, description="Storage endpoints")
    key_servers: KeyServerConfig = Field(
        default_factory=KeyServerConfig, description="Key-server quorum"
    )
    pipeline: PipelineConfig = Field(
        default_factory=PipelineConfig, description="Pipeline behaviour"
    )
    log_level: Optional[str] = Field(default=None, description="Logging level override")

    @model_validator(mode="after")
    def validate_quorum(self) -> "ArticleAccessConfig":
        total = sum(server.weight for server in self.key_servers.servers)
        if self.key_servers.servers and total < self.key_servers.threshold:
            raise ValueError(
                f"key_servers.threshold={self.key_servers.threshold} exceeds total weight {total}"
            )
        return self

    def config_hash(self) -> str:
        """
        Compute deterministic SHA256 hash of config for reproducibility.

        Returns:
            Hex-encoded SHA256 hash of normalized config JSON.
        """
        import hashlib
        import json

        normalized = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(normalized.encode()).hexdigest()
