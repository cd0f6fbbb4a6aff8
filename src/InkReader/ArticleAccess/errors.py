# === NAVMAP v1 ===
# {
#   "module": "InkReader.ArticleAccess.errors",
#   "purpose": "Actionable messages and logging helpers for failed article loads.",
#   "sections": [
#     {
#       "id": "classify-exception",
#       "name": "classify_exception",
#       "anchor": "function-classify-exception",
#       "kind": "function"
#     },
#     {
#       "id": "get-actionable-error-message",
#       "name": "get_actionable_error_message",
#       "anchor": "function-get-actionable-error-message",
#       "kind": "function"
#     },
#     {
#       "id": "log-load-failure",
#       "name": "log_load_failure",
#       "anchor": "function-log-load-failure",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Actionable error helpers for article loads.

Responsibilities
----------------
- Map any exception raised inside a load to an ``ErrorKind`` token and the
  message shown to the caller via :func:`classify_exception`.
- Translate ``ErrorKind`` tokens into user-facing remediation hints via
  :func:`get_actionable_error_message`.
- Centralise the structured log record emitted for every failed load through
  :func:`log_load_failure`.

Design Notes
------------
- ``decryption-denied`` intentionally carries one generic hint; the cause of
  the denial is never surfaced beyond debug logs.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from InkReader.ArticleAccess.api.exceptions import ArticleAccessError, UnknownFailure
from InkReader.ArticleAccess.api.types import ErrorKind

__all__ = (
    "classify_exception",
    "get_actionable_error_message",
    "log_load_failure",
)

LOGGER = logging.getLogger(__name__)

_MESSAGES: Dict[str, Tuple[str, Optional[str]]] = {
    "not-found": (
        "Article not found",
        "Check the slug; the indexer has no creation record for it.",
    ),
    "metadata-fetch-failed": (
        "Failed to fetch article information",
        "Check that the indexer endpoint is reachable, then retry.",
    ),
    "wallet-required": (
        "Wallet connection required to read encrypted content",
        "Connect a wallet session and retry.",
    ),
    "auth-required": (
        "Authenticated session required to download encrypted content",
        "Sign in so the session carries a bearer token, then retry.",
    ),
    "content-fetch-failed": (
        "Failed to load article content",
        "The storage network or backend proxy did not return the article. Retry later.",
    ),
    "decryption-denied": (
        "Failed to decrypt article content. You may not have permission to read this article.",
        "Acquire a subscription or access NFT for this article, then retry.",
    ),
    "unknown-failure": (
        "Failed to load article",
        "Check logs for detailed error information.",
    ),
}


def classify_exception(exc: BaseException) -> Tuple[ErrorKind, str]:
    """Return ``(kind, message)`` for an exception raised during a load."""

    if isinstance(exc, ArticleAccessError):
        return exc.kind, str(exc)
    return UnknownFailure.kind, str(exc) or UnknownFailure.default_message


def get_actionable_error_message(kind: ErrorKind) -> Tuple[str, Optional[str]]:
    """Return ``(message, suggestion)`` for ``kind``.

    Examples:
        >>> msg, suggestion = get_actionable_error_message("wallet-required")
        >>> msg
        'Wallet connection required to read encrypted content'
    """

    return _MESSAGES.get(kind, _MESSAGES["unknown-failure"])


def log_load_failure(
    logger: logging.Logger,
    slug: Optional[str],
    kind: ErrorKind,
    *,
    generation: Optional[int] = None,
    stage: Optional[str] = None,
    exception: Optional[BaseException] = None,
) -> None:
    """Log a failed load with structured context and a remediation hint."""

    message, suggestion = get_actionable_error_message(kind)
    log_entry: Dict[str, Any] = {
        "slug": slug,
        "error_kind": kind,
        "generation": generation,
        "stage": stage,
    }
    if exception is not None:
        log_entry["exception_type"] = type(exception).__name__
        if isinstance(exception, ArticleAccessError) and exception.details:
            log_entry["details"] = exception.details

    logger.warning("Article load failed: %s", message, extra={"extra_fields": log_entry})
    if suggestion:
        logger.info("Suggestion: %s", suggestion, extra={"extra_fields": {"slug": slug}})
