# === NAVMAP v1 ===
# {
#   "module": "InkReader.ArticleAccess.metadata",
#   "purpose": "Indexer lookup of article creation records.",
#   "sections": [
#     {
#       "id": "metadata-from-record",
#       "name": "metadata_from_record",
#       "anchor": "function-metadata-from-record",
#       "kind": "function"
#     },
#     {
#       "id": "metadataclient",
#       "name": "MetadataClient",
#       "anchor": "class-metadataclient",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Indexer lookup of immutable article metadata.

The indexer exposes creation-event records filtered by slug. One query per
load, no retries and no caching: a transport failure surfaces immediately as
:class:`MetadataFetchFailed`, an empty result as :class:`ArticleNotFound`.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from InkReader.ArticleAccess.api.exceptions import ArticleNotFound, MetadataFetchFailed
from InkReader.ArticleAccess.api.types import ArticleMetadata
from InkReader.ArticleAccess.config.models import IndexerConfig

LOGGER = logging.getLogger(__name__)


def _text(record: Mapping[str, Any], *names: str) -> Optional[str]:
    for name in names:
        value = record.get(name)
        if value not in (None, ""):
            return str(value)
    return None


def metadata_from_record(record: Mapping[str, Any], slug: str) -> ArticleMetadata:
    """Map a raw indexer record onto :class:`ArticleMetadata`.

    ``quiltId`` is the current locator field; ``blobId`` is its historical
    name. When both are present the bundle id wins.
    """

    locator = _text(record, "quiltId", "blobId")
    if locator is None:
        raise ArticleNotFound("Article has no stored content", slug=slug)

    article_id = _text(record, "id", "articleId")
    if article_id is None:
        raise MetadataFetchFailed("Indexer record is missing the article id", slug=slug)

    return ArticleMetadata(
        id=article_id,
        title=_text(record, "title") or "",
        slug=_text(record, "slug") or slug,
        author_address=_text(record, "author") or "",
        publication_id=_text(record, "publicationId") or "",
        content_locator=locator,
        content_identity=_text(record, "contentId") or "",
        is_encrypted=bool(record.get("isEncrypted", False)),
        created_at=_text(record, "createdAt"),
        origin_transaction_id=_text(record, "txDigest"),
    )


class MetadataClient:
    """Fetch :class:`ArticleMetadata` for a slug from the indexer."""

    def __init__(self, client: httpx.AsyncClient, config: Optional[IndexerConfig] = None) -> None:
        self._client = client
        self._config = config or IndexerConfig()

    @property
    def endpoint(self) -> str:
        return self._config.base_url.rstrip("/") + self._config.events_path

    async def fetch(self, slug: str) -> ArticleMetadata:
        params = {"slug": slug, "limit": self._config.lookup_limit}
        try:
            response = await self._client.get(self.endpoint, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise MetadataFetchFailed(
                slug=slug, http_status=exc.response.status_code
            ) from exc
        except httpx.HTTPError as exc:
            raise MetadataFetchFailed(slug=slug, error=type(exc).__name__) from exc
        except ValueError as exc:
            raise MetadataFetchFailed("Indexer returned an invalid response", slug=slug) from exc

        records = payload.get("data") if isinstance(payload, dict) else payload
        if not isinstance(records, list):
            raise MetadataFetchFailed("Indexer returned an invalid response", slug=slug)
        if not records:
            raise ArticleNotFound(slug=slug)

        record = records[0]
        if not isinstance(record, Mapping):
            raise MetadataFetchFailed("Indexer returned an invalid record", slug=slug)

        metadata = metadata_from_record(record, slug)
        LOGGER.debug(
            "article metadata loaded",
            extra={
                "extra_fields": {
                    "slug": slug,
                    "article_id": metadata.id,
                    "is_encrypted": metadata.is_encrypted,
                }
            },
        )
        return metadata


__all__ = ["MetadataClient", "metadata_from_record"]
