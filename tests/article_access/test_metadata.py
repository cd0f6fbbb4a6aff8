"""Tests for the indexer metadata client."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from InkReader.ArticleAccess.api.exceptions import ArticleNotFound, MetadataFetchFailed
from InkReader.ArticleAccess.config.models import IndexerConfig
from InkReader.ArticleAccess.metadata import MetadataClient, metadata_from_record
from tests.article_access.fakes import ARTICLE_ID, INDEXER, PUBLICATION_ID, Router, indexer_record

EVENTS = f"{INDEXER}/events/article-created"


def _fetch(router: Router, slug: str = "my-article"):
    async def _main():
        async with router.client() as client:
            return await MetadataClient(client, IndexerConfig(base_url=INDEXER)).fetch(slug)

    return asyncio.run(_main())


class TestMetadataClient:
    """Slug lookups against the indexer."""

    def test_maps_record_fields(self):
        router = Router()
        router.publish(indexer_record("my-article", encrypted=True, locator="quilt-9", content_id="00aa"))

        metadata = _fetch(router)

        assert metadata.id == ARTICLE_ID
        assert metadata.title == "My Article"
        assert metadata.slug == "my-article"
        assert metadata.publication_id == PUBLICATION_ID
        assert metadata.content_locator == "quilt-9"
        assert metadata.content_identity == "00aa"
        assert metadata.is_encrypted is True
        assert metadata.created_at == "2025-01-01T00:00:00Z"
        assert metadata.origin_transaction_id == "9vTxDigest"

    def test_sends_slug_and_limit(self):
        router = Router()
        router.publish(indexer_record("my-article", encrypted=False))

        _fetch(router)

        params = router.requests[0].url.params
        assert params["slug"] == "my-article"
        assert params["limit"] == "1"

    def test_accepts_bare_list(self):
        router = Router()
        router.json("GET", EVENTS, [indexer_record("my-article", encrypted=False)])

        assert _fetch(router).slug == "my-article"

    def test_empty_result_is_not_found(self):
        router = Router()
        router.json("GET", EVENTS, {"data": []})

        with pytest.raises(ArticleNotFound):
            _fetch(router)

    @pytest.mark.parametrize("status", [404, 500, 503])
    def test_http_error_is_fetch_failure(self, status):
        router = Router()
        router.status("GET", EVENTS, status)

        with pytest.raises(MetadataFetchFailed) as excinfo:
            _fetch(router)

        assert excinfo.value.details["http_status"] == status

    def test_transport_error_is_fetch_failure(self):
        router = Router()

        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        router.add("GET", EVENTS, refuse)

        with pytest.raises(MetadataFetchFailed) as excinfo:
            _fetch(router)

        assert excinfo.value.details["error"] == "ConnectError"

    def test_invalid_json_is_fetch_failure(self):
        router = Router()
        router.content("GET", EVENTS, b"not json")

        with pytest.raises(MetadataFetchFailed, match="invalid response"):
            _fetch(router)

    def test_unexpected_shape_is_fetch_failure(self):
        router = Router()
        router.json("GET", EVENTS, {"data": {"slug": "my-article"}})

        with pytest.raises(MetadataFetchFailed):
            _fetch(router)


class TestRecordMapping:
    """Field mapping rules for indexer records."""

    def test_bundle_id_preferred_over_blob_id(self):
        record = indexer_record("a", encrypted=False, locator="quilt-new")
        record["blobId"] = "blob-old"

        assert metadata_from_record(record, "a").content_locator == "quilt-new"

    def test_legacy_blob_id(self):
        record = indexer_record("a", encrypted=False)
        del record["quiltId"]
        record["blobId"] = "blob-old"

        assert metadata_from_record(record, "a").content_locator == "blob-old"

    def test_missing_locator_is_not_found(self):
        record = indexer_record("a", encrypted=False)
        del record["quiltId"]

        with pytest.raises(ArticleNotFound, match="no stored content"):
            metadata_from_record(record, "a")

    def test_missing_id_is_fetch_failure(self):
        record = indexer_record("a", encrypted=False)
        del record["id"]

        with pytest.raises(MetadataFetchFailed):
            metadata_from_record(record, "a")

    def test_missing_flag_means_plaintext(self):
        record = indexer_record("a", encrypted=True)
        del record["isEncrypted"]

        assert metadata_from_record(record, "a").is_encrypted is False
