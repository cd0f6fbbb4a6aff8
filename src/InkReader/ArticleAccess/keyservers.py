# === NAVMAP v1 ===
# {
#   "module": "InkReader.ArticleAccess.keyservers",
#   "purpose": "Weighted-threshold key share collection from independent key servers.",
#   "sections": [
#     {
#       "id": "keyshare",
#       "name": "KeyShare",
#       "anchor": "class-keyshare",
#       "kind": "class"
#     },
#     {
#       "id": "sharecombiner",
#       "name": "ShareCombiner",
#       "anchor": "class-sharecombiner",
#       "kind": "class"
#     },
#     {
#       "id": "keyserverquorum",
#       "name": "KeyServerQuorum",
#       "anchor": "class-keyserverquorum",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Key-server quorum client.

Every key server named in the envelope receives the signed approval request
concurrently. Servers that time out, answer with an error, or reject the
request are tolerated; as soon as the collected shares reach the weighted
threshold the outstanding requests are cancelled and the shares are handed to
a :class:`ShareCombiner`, which derives the key and decrypts the payload.

All failures raise; the decryption engine maps them to a single denial.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import httpx

from InkReader.ArticleAccess.config.models import KeyServerConfig, KeyServerEntry
from InkReader.ArticleAccess.envelope import EncryptedEnvelope
from InkReader.ArticleAccess.session import SignedRequest

LOGGER = logging.getLogger(__name__)

FETCH_KEY_PATH = "/v1/fetch_key"


class QuorumNotReached(Exception):
    """Raised when fewer shares than the threshold could be collected."""

    def __init__(self, collected: int, threshold: int, failures: Sequence[str] = ()) -> None:
        super().__init__(f"collected {collected} of {threshold} required key shares")
        self.collected = collected
        self.threshold = threshold
        self.failures = list(failures)


class KeyServerRejected(Exception):
    """Raised for one key server that answered without a usable share."""


@dataclass(frozen=True, slots=True)
class KeyShare:
    """Decryption key share returned by one key server."""

    object_id: str
    weight: int
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DecryptionContext:
    """What the quorum needs besides the ciphertext."""

    package_id: str
    envelope: Optional[EncryptedEnvelope] = None


class ShareCombiner(Protocol):
    """Pairing-based combine/decrypt primitive.

    Must raise on any cryptographic failure (bad share, wrong key, corrupt
    payload); a returned value is taken as authentic plaintext.
    """

    def combine(
        self,
        envelope: Optional[EncryptedEnvelope],
        ciphertext: bytes,
        shares: Sequence[KeyShare],
        signed_request: SignedRequest,
    ) -> bytes: ...


class UnconfiguredCombiner:
    """Combiner used when none is supplied; every decryption is denied."""

    def combine(
        self,
        envelope: Optional[EncryptedEnvelope],
        ciphertext: bytes,
        shares: Sequence[KeyShare],
        signed_request: SignedRequest,
    ) -> bytes:
        raise RuntimeError("no share combiner configured")


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def build_fetch_key_body(signed_request: SignedRequest) -> Dict[str, Any]:
    """JSON body for ``POST /v1/fetch_key``."""

    return {
        "ptb": _b64(signed_request.transaction_bytes),
        "enc_key": _b64(signed_request.encryption_key),
        "request_signature": signed_request.signature,
        "certificate": dict(signed_request.certificate),
    }


class KeyServerQuorum:
    """Default IBE client: collect a weighted quorum of key shares, then combine."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        combiner: ShareCombiner,
        config: Optional[KeyServerConfig] = None,
    ) -> None:
        self._client = client
        self._combiner = combiner
        self._config = config or KeyServerConfig()

    def plan(self, envelope: Optional[EncryptedEnvelope]) -> Tuple[List[Tuple[KeyServerEntry, int]], int]:
        """Return ``([(server, weight), ...], threshold)`` for ``envelope``.

        Without an envelope every configured server is used with its
        configured weight and the configured threshold.
        """

        if envelope is None:
            return [(entry, entry.weight) for entry in self._config.servers], self._config.threshold

        weights = {object_id.lower(): weight for object_id, weight in envelope.server_weights().items()}
        targets = [
            (entry, weights[entry.object_id.lower()])
            for entry in self._config.servers
            if entry.object_id.lower() in weights
        ]
        unknown = set(weights) - {entry.object_id.lower() for entry, _ in targets}
        if unknown:
            LOGGER.debug(
                "envelope names unconfigured key servers",
                extra={"extra_fields": {"servers": sorted(unknown)}},
            )
        return targets, envelope.threshold

    async def decrypt(
        self,
        ciphertext: bytes,
        identity: bytes,
        signed_request: SignedRequest,
        context: DecryptionContext,
    ) -> bytes:
        targets, threshold = self.plan(context.envelope)
        reachable = sum(weight for _, weight in targets)
        if reachable < threshold:
            raise QuorumNotReached(0, threshold, [f"only {reachable} shares reachable"])

        shares = await self.collect_shares(targets, threshold, signed_request)
        LOGGER.debug(
            "key share quorum reached",
            extra={
                "extra_fields": {
                    "identity": identity.hex(),
                    "servers": [share.object_id for share in shares],
                    "threshold": threshold,
                }
            },
        )
        return self._combiner.combine(context.envelope, ciphertext, shares, signed_request)

    async def collect_shares(
        self,
        targets: Sequence[Tuple[KeyServerEntry, int]],
        threshold: int,
        signed_request: SignedRequest,
    ) -> List[KeyShare]:
        body = build_fetch_key_body(signed_request)
        tasks = [
            asyncio.create_task(self._fetch_share(entry, weight, body)) for entry, weight in targets
        ]
        shares: List[KeyShare] = []
        failures: List[str] = []
        collected = 0
        try:
            for finished in asyncio.as_completed(tasks):
                try:
                    share = await finished
                except KeyServerRejected as exc:
                    failures.append(str(exc))
                    continue
                shares.append(share)
                collected += share.weight
                if collected >= threshold:
                    return shares
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        LOGGER.debug(
            "key share quorum failed",
            extra={"extra_fields": {"collected": collected, "threshold": threshold, "failures": failures}},
        )
        raise QuorumNotReached(collected, threshold, failures)

    async def _fetch_share(
        self, entry: KeyServerEntry, weight: int, body: Mapping[str, Any]
    ) -> KeyShare:
        url = entry.url.rstrip("/") + FETCH_KEY_PATH
        try:
            response = await self._client.post(url, json=body, timeout=self._config.timeout_s)
        except httpx.HTTPError as exc:
            raise KeyServerRejected(f"{entry.object_id} unreachable: {type(exc).__name__}") from exc
        if response.status_code >= 400:
            raise KeyServerRejected(f"{entry.object_id} answered HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise KeyServerRejected(f"{entry.object_id} returned invalid JSON") from exc
        if not isinstance(payload, dict) or not payload.get("decryption_keys"):
            raise KeyServerRejected(f"{entry.object_id} returned no decryption keys")
        return KeyShare(object_id=entry.object_id, weight=weight, payload=payload)


__all__ = [
    "DecryptionContext",
    "FETCH_KEY_PATH",
    "KeyServerQuorum",
    "KeyServerRejected",
    "KeyShare",
    "QuorumNotReached",
    "ShareCombiner",
    "UnconfiguredCombiner",
    "build_fetch_key_body",
]
