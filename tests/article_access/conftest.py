"""Shared fixtures for ArticleAccess tests."""

from __future__ import annotations

import asyncio
import logging

import pytest

from InkReader.ArticleAccess import httpx_transport
from InkReader.ArticleAccess.config.models import ArticleAccessConfig
from InkReader.ArticleAccess.pipeline import build_pipeline
from tests.article_access.fakes import (
    AGGREGATOR,
    INDEXER,
    KEY_SERVER_IDS,
    PACKAGE_ID,
    PROXY,
    RPC,
    FakeIbeClient,
    FakeLedger,
    FakeSession,
    Router,
    build_envelope,
    encode_id_v1,
    indexer_record,
)


@pytest.fixture
def config() -> ArticleAccessConfig:
    return ArticleAccessConfig.model_validate(
        {
            "indexer": {"base_url": INDEXER},
            "ledger": {"rpc_url": RPC, "package_id": PACKAGE_ID},
            "storage": {"proxy_url": PROXY, "aggregator_url": AGGREGATOR},
            "key_servers": {
                "servers": [
                    {"object_id": object_id, "url": f"http://ks{n}.test"}
                    for n, object_id in enumerate(KEY_SERVER_IDS, 1)
                ],
                "threshold": 2,
            },
        }
    )


@pytest.fixture
def router() -> Router:
    return Router()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def ibe() -> FakeIbeClient:
    return FakeIbeClient()


@pytest.fixture(autouse=True)
def _reset_http_client():
    yield
    httpx_transport.reset_http_client_for_tests()


@pytest.fixture(autouse=True)
def _restore_inkreader_logger():
    logger = logging.getLogger("InkReader")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def serve_plain_article(router: Router):
    """Register indexer + aggregator routes for a plaintext article."""

    def _serve(slug: str, markdown: str, *, part: str = "media0", locator: str = "quilt-1") -> None:
        router.publish(indexer_record(slug, encrypted=False, locator=locator))
        router.json(
            "GET",
            f"{AGGREGATOR}/v1/quilts/{locator}/patches",
            [
                {"identifier": part, "patch_id": "p0", "tags": {}},
                {"identifier": "cover.png", "patch_id": "p1", "tags": {"content-type": "image/png"}},
            ],
        )
        router.content("GET", f"{AGGREGATOR}/v1/blobs/by-quilt-id/{locator}/{part}", markdown.encode())

    return _serve


@pytest.fixture
def serve_gated_article(router: Router):
    """Register indexer + proxy routes for an encrypted article."""

    def _serve(slug: str = "gated-article", *, locator: str = "quilt-gated") -> bytes:
        identity = encode_id_v1()
        envelope = build_envelope(identity)
        router.publish(indexer_record(slug, encrypted=True, locator=locator, content_id=identity.hex()))
        router.content("GET", f"{PROXY}/articles/raw/{locator}", envelope)
        return envelope

    return _serve


@pytest.fixture
def drive(config, router: Router, ledger: FakeLedger, ibe: FakeIbeClient):
    """Run ``scenario(pipeline)`` against a pipeline wired to the fakes.

    Passing ``combiner`` swaps the fake IBE client for the real key-server
    quorum using that combiner.
    """

    def _drive(scenario, *, combiner=None):
        async def _main():
            async with router.client() as client:
                pipeline = build_pipeline(
                    config,
                    client=client,
                    ledger=ledger,
                    ibe_client=None if combiner is not None else ibe,
                    combiner=combiner,
                )
                return await scenario(pipeline)

        return asyncio.run(_main())

    return _drive
