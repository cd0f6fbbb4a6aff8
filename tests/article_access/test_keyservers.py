"""Tests for the weighted key-server quorum."""

from __future__ import annotations

import asyncio
import base64

import pytest

from InkReader.ArticleAccess.config.models import KeyServerConfig, KeyServerEntry
from InkReader.ArticleAccess.envelope import parse_envelope
from InkReader.ArticleAccess.keyservers import (
    DecryptionContext,
    KeyServerQuorum,
    QuorumNotReached,
    build_fetch_key_body,
)
from InkReader.ArticleAccess.session import ApprovalRequest, SignedRequest
from tests.article_access.fakes import (
    KEY_SERVER_IDS,
    PACKAGE_ID,
    RecordingCombiner,
    Router,
    build_envelope,
    decode_json,
    encode_id_v1,
)

SIGNED = SignedRequest(
    approval=ApprovalRequest(target=f"{PACKAGE_ID}::policy::seal_approve_contributor", identity=b"id"),
    address="0xcaller",
    transaction_bytes=b"ptb-bytes",
    signature="c2ln",
    encryption_key=b"\x02" * 4,
    certificate={"user": "0xcaller", "ttl_min": 10},
)


def _config(*object_ids: str, threshold: int = 2) -> KeyServerConfig:
    return KeyServerConfig(
        servers=[
            KeyServerEntry(object_id=object_id, url=f"http://ks{n}.test")
            for n, object_id in enumerate(object_ids, 1)
        ],
        threshold=threshold,
    )


def _answer(router: Router, n: int, status: int = 200) -> None:
    if status == 200:
        router.json("POST", f"http://ks{n}.test/v1/fetch_key", {"decryption_keys": [{"id": f"k{n}"}]})
    else:
        router.status("POST", f"http://ks{n}.test/v1/fetch_key", status)


def _decrypt(router: Router, config: KeyServerConfig, data: bytes, combiner: RecordingCombiner):
    envelope = parse_envelope(data)

    async def _main():
        async with router.client() as client:
            quorum = KeyServerQuorum(client, combiner, config)
            return await quorum.decrypt(
                data,
                envelope.identity,
                SIGNED,
                DecryptionContext(package_id=PACKAGE_ID, envelope=envelope),
            )

    return asyncio.run(_main())


class TestQuorum:
    """Share collection against the threshold."""

    def test_one_failure_tolerated(self):
        router = Router()
        _answer(router, 1)
        _answer(router, 2, status=500)
        _answer(router, 3)
        combiner = RecordingCombiner(b"plain")

        plaintext = _decrypt(router, _config(*KEY_SERVER_IDS), build_envelope(encode_id_v1()), combiner)

        assert plaintext == b"plain"
        assert sorted(share.object_id for share in combiner.shares) == [KEY_SERVER_IDS[0], KEY_SERVER_IDS[2]]

    def test_two_failures_miss_threshold(self):
        router = Router()
        _answer(router, 1)
        _answer(router, 2, status=403)
        router.json("POST", "http://ks3.test/v1/fetch_key", {"error": "denied"})
        combiner = RecordingCombiner()

        with pytest.raises(QuorumNotReached) as excinfo:
            _decrypt(router, _config(*KEY_SERVER_IDS), build_envelope(encode_id_v1()), combiner)

        assert excinfo.value.collected == 1
        assert excinfo.value.threshold == 2
        assert len(excinfo.value.failures) == 2
        assert combiner.shares == []

    def test_unconfigured_servers_fail_before_requests(self):
        router = Router()
        config = _config(KEY_SERVER_IDS[0])

        with pytest.raises(QuorumNotReached):
            _decrypt(router, config, build_envelope(encode_id_v1()), RecordingCombiner())

        assert router.requests == []

    def test_server_listed_twice_counts_double(self):
        router = Router()
        _answer(router, 1)
        _answer(router, 2, status=503)
        first, second = KEY_SERVER_IDS[:2]
        data = build_envelope(encode_id_v1(), services=[first, first, second], threshold=2)
        combiner = RecordingCombiner()

        _decrypt(router, _config(first, second), data, combiner)

        assert [(share.object_id, share.weight) for share in combiner.shares] == [(first, 2)]

    def test_request_body(self):
        router = Router()
        for n in (1, 2, 3):
            _answer(router, n)

        _decrypt(router, _config(*KEY_SERVER_IDS), build_envelope(encode_id_v1()), RecordingCombiner())

        body = decode_json(router.requests[0])
        assert router.requests[0].url.path == "/v1/fetch_key"
        assert base64.b64decode(body["ptb"]) == b"ptb-bytes"
        assert base64.b64decode(body["enc_key"]) == b"\x02" * 4
        assert body["request_signature"] == "c2ln"
        assert body["certificate"]["user"] == "0xcaller"


class TestPlan:
    """Matching envelope services to configured servers."""

    def test_plan_without_envelope_uses_configuration(self):
        quorum = KeyServerQuorum(None, RecordingCombiner(), _config(*KEY_SERVER_IDS, threshold=3))

        targets, threshold = quorum.plan(None)

        assert [entry.object_id for entry, _ in targets] == KEY_SERVER_IDS
        assert threshold == 3

    def test_plan_ignores_servers_outside_envelope(self):
        quorum = KeyServerQuorum(None, RecordingCombiner(), _config(*KEY_SERVER_IDS))
        envelope = parse_envelope(build_envelope(b"id", services=KEY_SERVER_IDS[:2], threshold=1))

        targets, threshold = quorum.plan(envelope)

        assert [(entry.object_id, weight) for entry, weight in targets] == [
            (KEY_SERVER_IDS[0], 1),
            (KEY_SERVER_IDS[1], 1),
        ]
        assert threshold == 1

    def test_fetch_key_body_is_base64(self):
        body = build_fetch_key_body(SIGNED)

        assert body["ptb"] == base64.b64encode(b"ptb-bytes").decode()
        assert body["certificate"] == {"user": "0xcaller", "ttl_min": 10}
