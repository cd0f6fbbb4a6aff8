"""Fakes and builders shared by the ArticleAccess tests."""

from __future__ import annotations

import json
import struct
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from InkReader.ArticleAccess.keyservers import DecryptionContext, KeyShare
from InkReader.ArticleAccess.ledger import LedgerError, LedgerObject
from InkReader.ArticleAccess.session import ApprovalRequest, SignedRequest

PACKAGE_ID = "0x" + "ab" * 32
PUBLICATION_ID = "0x" + "11" * 32
ARTICLE_ID = "0x" + "22" * 32
CALLER = "0x" + "cc" * 32
KEY_SERVER_IDS = ["0x" + f"{n:02x}" * 32 for n in (1, 2, 3)]

INDEXER = "http://indexer.test"
PROXY = "http://proxy.test"
AGGREGATOR = "http://aggregator.test"
RPC = "http://rpc.test"

OWNER_CAP = "publication::PublicationOwnerCap"
SUBSCRIPTION = "platform_access::PlatformSubscription"
ARTICLE_NFT = "article_nft::ArticleNFT"


# ---------------------------------------------------------------------------
# Envelope helpers
# ---------------------------------------------------------------------------


def uleb128(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def encode_id_v1(publication_id: str = PUBLICATION_ID, nonce: int = 1700000000000) -> bytes:
    return (
        bytes([0])
        + struct.pack("<H", 1)
        + bytes.fromhex(publication_id[2:])
        + struct.pack("<Q", nonce)
    )


def build_envelope(
    identity: bytes,
    *,
    services: Sequence[str] = tuple(KEY_SERVER_IDS),
    threshold: int = 2,
    package_id: str = PACKAGE_ID,
    version: int = 0,
    body: bytes = b"\x00sealed-shares-and-payload",
) -> bytes:
    data = bytearray([version])
    data += bytes.fromhex(package_id[2:])
    data += uleb128(len(identity)) + identity
    data += uleb128(len(services))
    for index, object_id in enumerate(services):
        data += bytes.fromhex(object_id[2:]) + bytes([index])
    data.append(threshold)
    data += body
    return bytes(data)


# ---------------------------------------------------------------------------
# HTTP routing
# ---------------------------------------------------------------------------


class Router:
    """MockTransport handler dispatching on ``(method, host, path)``."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Callable[[httpx.Request], Any]] = {}
        self.requests: List[httpx.Request] = []
        self.articles: Dict[str, Dict[str, Any]] = {}

    def add(self, method: str, url: str, handler: Callable[[httpx.Request], Any]) -> None:
        parsed = httpx.URL(url)
        self.routes[(method.upper(), f"{parsed.host}{parsed.path}")] = handler

    def json(self, method: str, url: str, payload: Any, status: int = 200) -> None:
        self.add(method, url, lambda request: httpx.Response(status, json=payload))

    def status(self, method: str, url: str, status: int) -> None:
        self.add(method, url, lambda request: httpx.Response(status, text="error"))

    def content(self, method: str, url: str, body: bytes, status: int = 200) -> None:
        self.add(method, url, lambda request: httpx.Response(status, content=body))

    def publish(self, record: Dict[str, Any]) -> None:
        """Serve ``record`` from the indexer for its slug."""

        self.articles[record["slug"]] = record
        self.add("GET", f"{INDEXER}/events/article-created", self._indexer)

    def _indexer(self, request: httpx.Request) -> httpx.Response:
        record = self.articles.get(request.url.params.get("slug", ""))
        return httpx.Response(200, json={"data": [record] if record else []})

    def __call__(self, request: httpx.Request) -> Any:
        self.requests.append(request)
        handler = self.routes.get((request.method, f"{request.url.host}{request.url.path}"))
        if handler is None:
            return httpx.Response(404, text="no route")
        return handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]

    def hosts(self) -> List[str]:
        return [request.url.host for request in self.requests]


def indexer_record(
    slug: str,
    *,
    encrypted: bool,
    locator: str = "quilt-1",
    content_id: str = "",
) -> Dict[str, Any]:
    return {
        "id": ARTICLE_ID,
        "title": slug.replace("-", " ").title(),
        "slug": slug,
        "author": "0x" + "aa" * 32,
        "publicationId": PUBLICATION_ID,
        "quiltId": locator,
        "contentId": content_id,
        "isEncrypted": encrypted,
        "createdAt": "2025-01-01T00:00:00Z",
        "txDigest": "9vTxDigest",
    }


# ---------------------------------------------------------------------------
# Ledger / session / IBE fakes
# ---------------------------------------------------------------------------


class FakeLedger:
    """In-memory :class:`LedgerReader` recording every query."""

    def __init__(self) -> None:
        self.owned: Dict[str, List[LedgerObject]] = {}
        self.objects: Dict[str, LedgerObject] = {}
        self.failing: set[str] = set()
        self.calls: List[Tuple[str, str]] = []

    def give(self, struct_suffix: str, *objects: LedgerObject) -> None:
        self.owned.setdefault(struct_suffix, []).extend(objects)

    def fail(self, key: str) -> None:
        self.failing.add(key)

    async def list_owned(self, owner: str, struct_type: str) -> List[LedgerObject]:
        suffix = struct_type.split("::", 1)[1]
        self.calls.append(("list_owned", suffix))
        if suffix in self.failing:
            raise LedgerError(f"{suffix} lookup failed")
        return list(self.owned.get(suffix, []))

    async def get_object(self, object_id: str) -> Optional[LedgerObject]:
        self.calls.append(("get_object", object_id))
        if "get_object" in self.failing:
            raise LedgerError("object read failed")
        return self.objects.get(object_id)


class FakeSession:
    """Wallet session that signs every request."""

    def __init__(self, address: str = CALLER, auth_token: Optional[str] = "jwt-token") -> None:
        self.address = address
        self.auth_token = auth_token
        self.signed: List[ApprovalRequest] = []

    async def sign_request(self, approval: ApprovalRequest) -> SignedRequest:
        self.signed.append(approval)
        return SignedRequest(
            approval=approval,
            address=self.address,
            transaction_bytes=b"tx:" + approval.target.encode(),
            signature="c2lnbmF0dXJl",
            encryption_key=b"\x01" * 32,
            certificate={"user": self.address, "ttl_min": approval.ttl_min},
        )


class FakeIbeClient:
    """IBE client returning fixed plaintext, or failing on demand."""

    def __init__(self, plaintext: bytes = b"# Secret\n\nbody", *, deny: bool = False) -> None:
        self.plaintext = plaintext
        self.deny = deny
        self.calls: List[Tuple[bytes, bytes, SignedRequest, DecryptionContext]] = []

    async def decrypt(
        self,
        ciphertext: bytes,
        identity: bytes,
        signed_request: SignedRequest,
        context: DecryptionContext,
    ) -> bytes:
        self.calls.append((ciphertext, identity, signed_request, context))
        if self.deny:
            raise PermissionError("key server refused")
        return self.plaintext


class RecordingCombiner:
    """Share combiner that records its inputs."""

    def __init__(self, plaintext: bytes = b"combined") -> None:
        self.plaintext = plaintext
        self.shares: List[KeyShare] = []

    def combine(self, envelope, ciphertext, shares, signed_request) -> bytes:
        self.shares = list(shares)
        return self.plaintext


def owner_cap(publication_id: str = PUBLICATION_ID, object_id: str = "0x" + "0c" * 32) -> LedgerObject:
    return LedgerObject(object_id=object_id, fields={"publication_id": publication_id})


def decode_json(request: httpx.Request) -> Any:
    return json.loads(request.content)
