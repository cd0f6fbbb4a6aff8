# === NAVMAP v1 ===
# {
#   "module": "InkReader.ArticleAccess.decryption",
#   "purpose": "Turn ciphertext plus one resolved credential into plaintext.",
#   "sections": [
#     {
#       "id": "build-approval-request",
#       "name": "build_approval_request",
#       "anchor": "function-build-approval-request",
#       "kind": "function"
#     },
#     {
#       "id": "ibeclient",
#       "name": "IbeClient",
#       "anchor": "class-ibeclient",
#       "kind": "class"
#     },
#     {
#       "id": "decryptionengine",
#       "name": "DecryptionEngine",
#       "anchor": "class-decryptionengine",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Decryption stage of the article pipeline.

Responsibilities
----------------
- Validate the ciphertext envelope before any key server is contacted.
- Build the on-ledger approval call matching the single resolved credential.
- Have the caller's session sign it and run the IBE protocol.

Design Notes
------------
- Every failure after the envelope check is reported as
  :class:`DecryptionDenied` with the same message. A missing entitlement, a
  signature the wallet refused, an unreachable quorum and a wrong key are
  indistinguishable to the caller; the cause only reaches debug logs.
- A corrupt envelope means the stored bytes are bad, so it is reported as
  :class:`ContentFetchFailed` instead.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from InkReader.ArticleAccess.api.exceptions import ContentFetchFailed, DecryptionDenied
from InkReader.ArticleAccess.api.types import (
    ContributorCredential,
    CredentialSet,
    NftCredential,
    OwnerCredential,
    SubscriptionCredential,
)
from InkReader.ArticleAccess.envelope import (
    EnvelopeError,
    identity_from_hex,
    parse_content_identity,
    parse_envelope,
)
from InkReader.ArticleAccess.keyservers import DecryptionContext
from InkReader.ArticleAccess.session import (
    DEFAULT_SESSION_TTL_MIN,
    ApprovalRequest,
    SignedRequest,
    WalletSession,
)

LOGGER = logging.getLogger(__name__)

POLICY_MODULE = "policy"
CLOCK_OBJECT_ID = "0x6"


class IbeClient(Protocol):
    """One-operation IBE client; raises on any failure."""

    async def decrypt(
        self,
        ciphertext: bytes,
        identity: bytes,
        signed_request: SignedRequest,
        context: DecryptionContext,
    ) -> bytes: ...


def build_approval_request(
    credentials: CredentialSet,
    identity: bytes,
    package_id: str,
    publication_id: str,
    *,
    ttl_min: int = DEFAULT_SESSION_TTL_MIN,
) -> ApprovalRequest:
    """Return the ``policy::seal_approve_*`` call for the populated credential.

    Raises:
        ValueError: If ``credentials`` is empty.
    """

    credential = credentials.active
    prefix = f"{package_id}::{POLICY_MODULE}::"
    if isinstance(credential, OwnerCredential):
        function = "seal_approve_publication_owner"
        objects: tuple[str, ...] = (credential.owner_cap_id, credential.publication_id)
    elif isinstance(credential, ContributorCredential):
        function = "seal_approve_contributor"
        objects = (credential.publication_id,)
    elif isinstance(credential, SubscriptionCredential):
        function = "seal_approve_publication_subscription"
        objects = (credential.subscription_id, publication_id, CLOCK_OBJECT_ID)
    elif isinstance(credential, NftCredential):
        function = "seal_approve_article_nft"
        objects = (credential.nft_id, credential.article_id)
    else:
        raise ValueError("cannot build an approval request without a credential")
    return ApprovalRequest(
        target=prefix + function,
        identity=identity,
        object_ids=objects,
        credential_branch=credential.branch,
        ttl_min=ttl_min,
    )


class DecryptionEngine:
    """Wraps an :class:`IbeClient` with credential-to-approval mapping."""

    def __init__(
        self, ibe_client: IbeClient, *, session_ttl_min: int = DEFAULT_SESSION_TTL_MIN
    ) -> None:
        self._ibe = ibe_client
        self._session_ttl_min = session_ttl_min

    async def decrypt(
        self,
        ciphertext: bytes,
        content_identity: str,
        credentials: CredentialSet,
        package_id: str,
        session: WalletSession,
        *,
        publication_id: str = "",
    ) -> bytes:
        if credentials.is_empty:
            LOGGER.debug(
                "decryption denied: no credential",
                extra={"extra_fields": {"warning": credentials.warning}},
            )
            raise DecryptionDenied()

        try:
            envelope = parse_envelope(ciphertext)
        except EnvelopeError as exc:
            raise ContentFetchFailed(
                "Stored article ciphertext is malformed", error=str(exc)
            ) from exc

        self._check_identity(envelope.identity, content_identity, publication_id)
        if envelope.package_id.lower() != package_id.lower():
            LOGGER.warning(
                "ciphertext was sealed under a different package",
                extra={
                    "extra_fields": {
                        "envelope_package": envelope.package_id,
                        "configured_package": package_id,
                    }
                },
            )

        approval = build_approval_request(
            credentials,
            envelope.identity,
            envelope.package_id,
            publication_id,
            ttl_min=self._session_ttl_min,
        )
        try:
            signed = await session.sign_request(approval)
            plaintext = await self._ibe.decrypt(
                envelope.raw,
                envelope.identity,
                signed,
                DecryptionContext(package_id=envelope.package_id, envelope=envelope),
            )
        except Exception as exc:
            LOGGER.debug(
                "decryption denied",
                exc_info=True,
                extra={
                    "extra_fields": {
                        "branch": approval.credential_branch,
                        "cause": type(exc).__name__,
                    }
                },
            )
            raise DecryptionDenied() from None

        LOGGER.debug(
            "article decrypted",
            extra={"extra_fields": {"branch": approval.credential_branch, "bytes": len(plaintext)}},
        )
        return plaintext

    @staticmethod
    def _check_identity(header_identity: bytes, content_identity: str, publication_id: str) -> None:
        expected: Optional[bytes]
        try:
            expected = identity_from_hex(content_identity) if content_identity else None
        except EnvelopeError:
            expected = None
        if expected is not None and expected != header_identity:
            LOGGER.warning(
                "content identity differs from ciphertext header; using header identity",
                extra={
                    "extra_fields": {
                        "metadata_identity": content_identity,
                        "header_identity": header_identity.hex(),
                    }
                },
            )
        decoded = parse_content_identity(header_identity)
        if decoded is not None and publication_id and decoded.publication_id != publication_id.lower():
            LOGGER.debug(
                "identity names another publication",
                extra={"extra_fields": {"identity_publication": decoded.publication_id}},
            )


__all__ = [
    "CLOCK_OBJECT_ID",
    "DecryptionEngine",
    "IbeClient",
    "POLICY_MODULE",
    "build_approval_request",
]
