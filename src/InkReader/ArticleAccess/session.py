"""Wallet session contract and the request types it signs.

The pipeline never talks to a wallet directly. Callers pass an object
satisfying :class:`WalletSession`; its address identifies the caller, its
bearer token authenticates raw-content downloads, and ``sign_request`` turns
an :class:`ApprovalRequest` into a :class:`SignedRequest` the key servers
accept. The certificate it signs must not outlive ``ApprovalRequest.ttl_min``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Tuple, runtime_checkable

DEFAULT_SESSION_TTL_MIN = 43200


@dataclass(frozen=True, slots=True)
class ApprovalRequest:
    """Move call that proves the caller may derive the key for ``identity``."""

    target: str
    """Fully qualified ``package::policy::function`` call target."""

    identity: bytes
    """IBE identity the key servers will derive a key for."""

    object_ids: Tuple[str, ...] = ()
    """Object arguments following the identity, in call order."""

    credential_branch: Optional[str] = None
    """Which credential produced this request."""

    ttl_min: int = DEFAULT_SESSION_TTL_MIN
    """Lifetime, in minutes, of the session certificate signed for this request."""

    @property
    def function(self) -> str:
        return self.target.rsplit("::", 1)[-1]


@dataclass(frozen=True, slots=True)
class SignedRequest:
    """Approval request plus everything a key server needs to authenticate it."""

    approval: ApprovalRequest
    address: str
    transaction_bytes: bytes
    signature: str
    encryption_key: bytes = b""
    certificate: Mapping[str, Any] = field(default_factory=dict)


class SigningUnavailable(Exception):
    """Raised by sessions that cannot sign approval requests."""


@runtime_checkable
class WalletSession(Protocol):
    """Connected caller identity."""

    @property
    def address(self) -> str: ...

    @property
    def auth_token(self) -> Optional[str]: ...

    async def sign_request(self, approval: ApprovalRequest) -> SignedRequest: ...


@dataclass(frozen=True)
class ReadOnlySession:
    """Session that identifies a caller but cannot sign.

    Useful for inspecting entitlements; any decryption attempt made with it
    is denied.
    """

    address: str
    auth_token: Optional[str] = None

    async def sign_request(self, approval: ApprovalRequest) -> SignedRequest:
        raise SigningUnavailable("read-only session cannot sign approval requests")


__all__ = [
    "DEFAULT_SESSION_TTL_MIN",
    "ApprovalRequest",
    "ReadOnlySession",
    "SignedRequest",
    "SigningUnavailable",
    "WalletSession",
]
