# === NAVMAP v1 ===
# {
#   "module": "InkReader.ArticleAccess.envelope",
#   "purpose": "Parse the public header of IBE ciphertext envelopes.",
#   "sections": [
#     {
#       "id": "bcsreader",
#       "name": "BcsReader",
#       "anchor": "class-bcsreader",
#       "kind": "class"
#     },
#     {
#       "id": "encryptedenvelope",
#       "name": "EncryptedEnvelope",
#       "anchor": "class-encryptedenvelope",
#       "kind": "class"
#     },
#     {
#       "id": "parse-envelope",
#       "name": "parse_envelope",
#       "anchor": "function-parse-envelope",
#       "kind": "function"
#     },
#     {
#       "id": "contentidentity",
#       "name": "ContentIdentity",
#       "anchor": "class-contentidentity",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""IBE envelope header parsing.

The stored ciphertext is a BCS-encoded object whose leading fields are
public::

    version      u8
    package_id   address (32 bytes)
    id           vector<u8>
    services     vector<(address, u8)>
    threshold    u8
    ...          encrypted shares and payload (opaque here)

Reading the header lets the decryption stage reject corrupt downloads and
route key requests to the right servers before any network call.

Article identities themselves are BCS ``IdV1`` structs
(``tag u8, version u16, publication address, nonce u64``);
:func:`parse_content_identity` decodes them for diagnostics.
"""

from __future__ import annotations

import struct
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

ENVELOPE_VERSION = 0
ADDRESS_LENGTH = 32
ID_TAG_ARTICLE_CONTENT = 0
ID_VERSION_V1 = 1
_ID_V1_LENGTH = 1 + 2 + ADDRESS_LENGTH + 8


class EnvelopeError(ValueError):
    """Raised when bytes do not form a well-formed envelope header."""


class BcsReader:
    """Cursor over BCS-encoded bytes."""

    def __init__(self, data: bytes) -> None:
        self._data = memoryview(data)
        self.offset = 0

    def _take(self, size: int) -> bytes:
        end = self.offset + size
        if size < 0 or end > len(self._data):
            raise EnvelopeError(f"truncated at offset {self.offset} (wanted {size} bytes)")
        chunk = self._data[self.offset : end].tobytes()
        self.offset = end
        return chunk

    def u8(self) -> int:
        return self._take(1)[0]

    def u16(self) -> int:
        return struct.unpack("<H", self._take(2))[0]

    def u64(self) -> int:
        return struct.unpack("<Q", self._take(8))[0]

    def uleb128(self) -> int:
        value = 0
        shift = 0
        while True:
            byte = self.u8()
            value |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return value
            shift += 7
            if shift > 28:
                raise EnvelopeError("ULEB128 length overflows u32")

    def address(self) -> str:
        return "0x" + self._take(ADDRESS_LENGTH).hex()

    def byte_vector(self) -> bytes:
        return self._take(self.uleb128())

    def remaining(self) -> bytes:
        return self._take(len(self._data) - self.offset)


@dataclass(frozen=True, slots=True)
class EncryptedEnvelope:
    """Public header of an IBE ciphertext."""

    version: int
    package_id: str
    identity: bytes
    services: Tuple[Tuple[str, int], ...]
    """Key server object ids with the share index each one holds."""
    threshold: int
    body: bytes
    """Encrypted shares and payload, opaque to the client."""
    raw: bytes

    @property
    def identity_hex(self) -> str:
        return self.identity.hex()

    def server_weights(self) -> Dict[str, int]:
        """Shares held by each key server; a server listed twice counts twice."""

        return dict(Counter(object_id for object_id, _ in self.services))


def parse_envelope(data: bytes) -> EncryptedEnvelope:
    """Parse and validate the header of ``data``.

    Raises:
        EnvelopeError: Unknown version, truncated data, or an impossible
            threshold.
    """

    if not data:
        raise EnvelopeError("empty ciphertext")
    reader = BcsReader(data)
    version = reader.u8()
    if version != ENVELOPE_VERSION:
        raise EnvelopeError(f"unsupported envelope version {version}")
    package_id = reader.address()
    identity = reader.byte_vector()
    services = tuple((reader.address(), reader.u8()) for _ in range(reader.uleb128()))
    threshold = reader.u8()
    if not services:
        raise EnvelopeError("envelope names no key servers")
    if threshold < 1 or threshold > len(services):
        raise EnvelopeError(f"threshold {threshold} impossible with {len(services)} shares")
    body = reader.remaining()
    if not body:
        raise EnvelopeError("envelope carries no encrypted payload")
    return EncryptedEnvelope(
        version=version,
        package_id=package_id,
        identity=identity,
        services=services,
        threshold=threshold,
        body=body,
        raw=bytes(data),
    )


@dataclass(frozen=True, slots=True)
class ContentIdentity:
    """Decoded ``IdV1`` article identity."""

    tag: int
    version: int
    publication_id: str
    nonce: int


def parse_content_identity(identity: bytes) -> Optional[ContentIdentity]:
    """Decode an ``IdV1`` identity; ``None`` when the bytes use another layout."""

    if len(identity) != _ID_V1_LENGTH:
        return None
    reader = BcsReader(identity)
    decoded = ContentIdentity(
        tag=reader.u8(),
        version=reader.u16(),
        publication_id=reader.address(),
        nonce=reader.u64(),
    )
    if decoded.version != ID_VERSION_V1:
        return None
    return decoded


def identity_from_hex(value: str) -> bytes:
    """Decode a hex identity as reported by the indexer (``0x`` optional)."""

    text = value[2:] if value.lower().startswith("0x") else value
    try:
        return bytes.fromhex(text)
    except ValueError as exc:
        raise EnvelopeError(f"content identity is not hex: {value!r}") from exc


__all__ = [
    "BcsReader",
    "ContentIdentity",
    "EncryptedEnvelope",
    "EnvelopeError",
    "identity_from_hex",
    "parse_content_identity",
    "parse_envelope",
]
