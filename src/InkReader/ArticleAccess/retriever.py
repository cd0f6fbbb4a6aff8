# === NAVMAP v1 ===
# {
#   "module": "InkReader.ArticleAccess.retriever",
#   "purpose": "Fetch article bodies from the proxy or the storage aggregator.",
#   "sections": [
#     {
#       "id": "bundlepart",
#       "name": "BundlePart",
#       "anchor": "class-bundlepart",
#       "kind": "class"
#     },
#     {
#       "id": "select-markdown-part",
#       "name": "select_markdown_part",
#       "anchor": "function-select-markdown-part",
#       "kind": "function"
#     },
#     {
#       "id": "contentretriever",
#       "name": "ContentRetriever",
#       "anchor": "class-contentretriever",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Content retrieval for encrypted and plaintext articles.

Encrypted bodies come from the backend proxy as raw bytes, authenticated
with the session's bearer token, and are returned untouched. Plaintext
bodies live in a bundle on the storage network: the retriever lists the
bundle's parts, picks the markdown part and returns it as text.

Nothing is retried; any failure is :class:`ContentFetchFailed`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Union
from urllib.parse import quote

import httpx

from InkReader.ArticleAccess.api.exceptions import AuthRequired, ContentFetchFailed
from InkReader.ArticleAccess.config.models import StorageConfig
from InkReader.ArticleAccess.session import WalletSession

LOGGER = logging.getLogger(__name__)

MARKDOWN_CONTENT_TYPES = ("text/markdown", "text/x-markdown")


@dataclass(frozen=True, slots=True)
class BundlePart:
    """One named part of a storage bundle."""

    identifier: str
    patch_id: Optional[str] = None
    tags: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_markdown(self) -> bool:
        content_type = self.tags.get("content-type") or self.tags.get("contentType") or ""
        if content_type.split(";")[0].strip().lower() in MARKDOWN_CONTENT_TYPES:
            return True
        return self.identifier.lower().endswith(".md")


def parse_bundle_parts(payload: Any) -> List[BundlePart]:
    """Read the aggregator's part listing (a list, or ``{"patches": [...]}``)."""

    if isinstance(payload, Mapping):
        payload = payload.get("patches", payload.get("data"))
    if not isinstance(payload, list):
        raise ContentFetchFailed("Storage aggregator returned an invalid part listing")
    parts: List[BundlePart] = []
    for entry in payload:
        if not isinstance(entry, Mapping) or not entry.get("identifier"):
            continue
        tags = entry.get("tags") if isinstance(entry.get("tags"), Mapping) else {}
        parts.append(
            BundlePart(
                identifier=str(entry["identifier"]),
                patch_id=entry.get("patch_id") or entry.get("patchId"),
                tags={str(k): str(v) for k, v in tags.items()},
            )
        )
    return parts


def select_markdown_part(parts: Iterable[BundlePart], preferred: str) -> Optional[BundlePart]:
    """Pick the part holding the article markdown.

    The configured identifier wins; otherwise the first part tagged as
    markdown or named ``*.md``.
    """

    parts = list(parts)
    for part in parts:
        if part.identifier == preferred:
            return part
    for part in parts:
        if part.is_markdown:
            return part
    return None


class ContentRetriever:
    """Fetch article bodies for both the encrypted and plaintext paths."""

    def __init__(self, client: httpx.AsyncClient, config: Optional[StorageConfig] = None) -> None:
        self._client = client
        self._config = config or StorageConfig()

    async def fetch(
        self,
        locator: str,
        is_encrypted: bool,
        session: Optional[WalletSession] = None,
    ) -> Union[bytes, str]:
        if is_encrypted:
            return await self.fetch_encrypted(locator, session)
        return await self.fetch_plaintext(locator)

    async def fetch_encrypted(self, locator: str, session: Optional[WalletSession]) -> bytes:
        token = getattr(session, "auth_token", None) if session is not None else None
        if not token:
            raise AuthRequired(locator=locator)

        url = f"{self._config.proxy_url.rstrip('/')}{self._config.raw_path}/{quote(locator, safe='')}"
        response = await self._get(
            url,
            locator,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/octet-stream",
            },
        )
        LOGGER.debug(
            "encrypted content downloaded",
            extra={"extra_fields": {"locator": locator, "bytes": len(response.content)}},
        )
        return response.content

    async def list_parts(self, locator: str) -> List[BundlePart]:
        url = f"{self._aggregator}/v1/quilts/{quote(locator, safe='')}/patches"
        response = await self._get(url, locator)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ContentFetchFailed(
                "Storage aggregator returned an invalid part listing", locator=locator
            ) from exc
        return parse_bundle_parts(payload)

    async def fetch_plaintext(self, locator: str) -> str:
        parts = await self.list_parts(locator)
        part = select_markdown_part(parts, self._config.markdown_part)
        if part is None:
            raise ContentFetchFailed(
                "Article bundle has no markdown part",
                locator=locator,
                parts=[p.identifier for p in parts],
            )

        url = (
            f"{self._aggregator}/v1/blobs/by-quilt-id/"
            f"{quote(locator, safe='')}/{quote(part.identifier, safe='')}"
        )
        response = await self._get(url, locator)
        try:
            text = response.content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ContentFetchFailed(
                "Article markdown is not valid UTF-8", locator=locator
            ) from exc
        LOGGER.debug(
            "plaintext content downloaded",
            extra={"extra_fields": {"locator": locator, "part": part.identifier}},
        )
        return text

    @property
    def _aggregator(self) -> str:
        return self._config.aggregator_url.rstrip("/")

    async def _get(
        self, url: str, locator: str, headers: Optional[Mapping[str, str]] = None
    ) -> httpx.Response:
        try:
            response = await self._client.get(url, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ContentFetchFailed(
                locator=locator, http_status=exc.response.status_code
            ) from exc
        except httpx.HTTPError as exc:
            raise ContentFetchFailed(locator=locator, error=type(exc).__name__) from exc
        return response


__all__ = [
    "BundlePart",
    "ContentRetriever",
    "parse_bundle_parts",
    "select_markdown_part",
]
