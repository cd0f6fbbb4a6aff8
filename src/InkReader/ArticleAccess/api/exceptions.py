"""
Canonical Exception Types for the Article Load Pipeline

Thin signal types raised by the metadata client, content retriever and
decryption engine. The pipeline catches them and converts them into an
``errored`` PipelineState carrying ``kind``.

Every error is terminal for the load that raised it; nothing here is
retried internally.
"""

from __future__ import annotations

from typing import Any, ClassVar, Optional

from .types import ErrorKind


class ArticleAccessError(Exception):
    """
    Base class for every error the pipeline surfaces to callers.

    Subclasses pin ``kind`` to one token of the ``ErrorKind`` vocabulary so
    the orchestrator can classify an exception without string matching.
    """

    kind: ClassVar[ErrorKind] = "unknown-failure"
    default_message: ClassVar[str] = "Article could not be loaded"

    def __init__(self, message: Optional[str] = None, **details: Any) -> None:
        """
        Initialize error signal.

        Args:
            message: Optional human-readable message
            **details: Small diagnostic context (slug, locator, status ...)
        """
        self.details = details
        super().__init__(message or self.default_message)


class ArticleNotFound(ArticleAccessError):
    """Raise when the indexer has no creation record for a slug."""

    kind = "not-found"
    default_message = "Article not found"


class MetadataFetchFailed(ArticleAccessError):
    """Raise when the indexer cannot be reached or answers with garbage."""

    kind = "metadata-fetch-failed"
    default_message = "Failed to fetch article information"


class WalletRequired(ArticleAccessError):
    """Raise when encrypted content is requested without a wallet session."""

    kind = "wallet-required"
    default_message = "Wallet connection required to read encrypted content"


class AuthRequired(ArticleAccessError):
    """Raise when the backend proxy is called without an authenticated session."""

    kind = "auth-required"
    default_message = "Authenticated session required to download encrypted content"


class ContentFetchFailed(ArticleAccessError):
    """Raise when the storage network or backend proxy fails."""

    kind = "content-fetch-failed"
    default_message = "Failed to load article content"


class DecryptionDenied(ArticleAccessError):
    """
    Raise when decryption does not produce plaintext.

    Deliberately unqualified: a missing entitlement, a key mismatch, an
    unreachable key-server quorum and a rejected signature all look the same
    to the caller.
    """

    kind = "decryption-denied"
    default_message = (
        "Failed to decrypt article content. You may not have permission to read this article."
    )


class UnknownFailure(ArticleAccessError):
    """Wraps any exception that escapes the taxonomy."""

    kind = "unknown-failure"
    default_message = "Failed to load article"


__all__ = [
    "ArticleAccessError",
    "ArticleNotFound",
    "AuthRequired",
    "ContentFetchFailed",
    "DecryptionDenied",
    "MetadataFetchFailed",
    "UnknownFailure",
    "WalletRequired",
]
