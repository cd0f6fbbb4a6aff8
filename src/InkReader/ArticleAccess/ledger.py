# === NAVMAP v1 ===
# {
#   "module": "InkReader.ArticleAccess.ledger",
#   "purpose": "Read-only ledger access used by credential lookups.",
#   "sections": [
#     {
#       "id": "ledgerobject",
#       "name": "LedgerObject",
#       "anchor": "class-ledgerobject",
#       "kind": "class"
#     },
#     {
#       "id": "ledgerreader",
#       "name": "LedgerReader",
#       "anchor": "class-ledgerreader",
#       "kind": "class"
#     },
#     {
#       "id": "jsonrpcledgerreader",
#       "name": "JsonRpcLedgerReader",
#       "anchor": "class-jsonrpcledgerreader",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Read-only access to the distributed ledger.

Two queries are needed by the credential lookups, and both go through the
:class:`LedgerReader` protocol:

- ``list_owned(owner, struct_type)``: objects of a Move struct type owned by
  an address.
- ``get_object(object_id)``: one object by id.

:class:`JsonRpcLedgerReader` implements the protocol against a full node's
JSON-RPC endpoint (``suix_getOwnedObjects`` and ``sui_getObject``). Any
failure is raised as :class:`LedgerError`; callers decide whether that is
fatal.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

import httpx

from InkReader.ArticleAccess.config.models import LedgerConfig

LOGGER = logging.getLogger(__name__)

_OBJECT_OPTIONS = {"showContent": True, "showType": True}


class LedgerError(Exception):
    """Raised when a ledger query fails or returns an unusable payload."""


@dataclass(frozen=True)
class LedgerObject:
    """One ledger object with its Move struct fields."""

    object_id: str
    type: Optional[str] = None
    fields: Mapping[str, Any] = field(default_factory=dict)


@runtime_checkable
class LedgerReader(Protocol):
    """Minimal read interface used for all four entitlement lookups."""

    async def list_owned(self, owner: str, struct_type: str) -> List[LedgerObject]: ...

    async def get_object(self, object_id: str) -> Optional[LedgerObject]: ...


def parse_object(entry: Mapping[str, Any]) -> Optional[LedgerObject]:
    """Convert a ``SuiObjectResponse`` mapping into a :class:`LedgerObject`."""

    data = entry.get("data")
    if not isinstance(data, Mapping):
        return None
    object_id = data.get("objectId")
    if not object_id:
        return None
    content = data.get("content")
    fields: Mapping[str, Any] = {}
    if isinstance(content, Mapping) and isinstance(content.get("fields"), Mapping):
        fields = content["fields"]
    object_type = data.get("type")
    if object_type is None and isinstance(content, Mapping):
        object_type = content.get("type")
    return LedgerObject(object_id=str(object_id), type=object_type, fields=fields)


class JsonRpcLedgerReader:
    """:class:`LedgerReader` backed by a full node's JSON-RPC endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: Optional[LedgerConfig] = None,
        *,
        max_pages: int = 20,
    ) -> None:
        self._client = client
        self._config = config or LedgerConfig()
        self._max_pages = max_pages
        self._ids = itertools.count(1)

    async def _call(self, method: str, params: List[Any]) -> Any:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = await self._client.post(self._config.rpc_url, json=body)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise LedgerError(f"{method} failed: {type(exc).__name__}") from exc
        except ValueError as exc:
            raise LedgerError(f"{method} returned invalid JSON") from exc

        if not isinstance(payload, dict):
            raise LedgerError(f"{method} returned an invalid envelope")
        if payload.get("error"):
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise LedgerError(f"{method} error: {message}")
        return payload.get("result")

    async def list_owned(self, owner: str, struct_type: str) -> List[LedgerObject]:
        query = {"filter": {"StructType": struct_type}, "options": _OBJECT_OPTIONS}
        objects: List[LedgerObject] = []
        cursor: Optional[str] = None
        for _ in range(self._max_pages):
            result = await self._call(
                "suix_getOwnedObjects", [owner, query, cursor, self._config.page_limit]
            )
            if not isinstance(result, dict):
                raise LedgerError("suix_getOwnedObjects returned no result")
            for entry in result.get("data") or []:
                parsed = parse_object(entry) if isinstance(entry, Mapping) else None
                if parsed is not None:
                    objects.append(parsed)
            cursor = result.get("nextCursor")
            if not result.get("hasNextPage") or cursor is None:
                break
        else:
            LOGGER.warning(
                "owned-object listing truncated",
                extra={"extra_fields": {"struct_type": struct_type, "pages": self._max_pages}},
            )
        return objects

    async def get_object(self, object_id: str) -> Optional[LedgerObject]:
        result = await self._call("sui_getObject", [object_id, _OBJECT_OPTIONS])
        if not isinstance(result, dict):
            raise LedgerError("sui_getObject returned no result")
        if result.get("error"):
            code: Dict[str, Any] = result["error"] if isinstance(result["error"], dict) else {}
            if code.get("code") in ("notExists", "deleted"):
                return None
            raise LedgerError(f"sui_getObject error: {result['error']}")
        return parse_object(result)


__all__ = [
    "JsonRpcLedgerReader",
    "LedgerError",
    "LedgerObject",
    "LedgerReader",
    "parse_object",
]
