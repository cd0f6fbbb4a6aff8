"""Shared HTTPX async client factory for ArticleAccess.

Responsibilities
----------------
- Construct a process-wide :class:`httpx.AsyncClient` with pooling limits,
  timeout budgets taken from :class:`HttpClientConfig`, and a Certifi-backed
  SSL context.
- Let callers inject a custom transport (e.g., :class:`httpx.MockTransport`)
  or extra event hooks through :func:`configure_http_client` without touching
  module globals.
- Never retry: the transport is built with ``retries=0`` so every failure
  reaches the component that issued the request.

Design Notes
------------
- Event hooks stamp each request with a start time and log the elapsed time
  of every response at debug level.
- The client is bound to the event loop that first uses it; call
  :func:`close_http_client` before the loop exits.
- Replacing the shared client (new overrides, different settings, test
  reset) closes the old one so its pooled connections are released.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import ssl
import threading
import time
from typing import Dict, Iterable, Mapping, MutableMapping, Optional, Set

import certifi
import httpx

from InkReader.ArticleAccess.config.models import HttpClientConfig

LOGGER = logging.getLogger("InkReader.ArticleAccess.network")

_CLIENT_LOCK = threading.RLock()
_HTTP_CLIENT: Optional[httpx.AsyncClient] = None
_CURRENT_OVERRIDES: Dict[str, object] = {}
_PENDING_CLOSES: Set["asyncio.Task[None]"] = set()


def _build_ssl_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.load_verify_locations(certifi.where())
    return context


async def _request_hook(request: httpx.Request) -> None:
    meta: MutableMapping[str, object] = request.extensions.setdefault("inkreader_meta", {})  # type: ignore[assignment]
    meta["start_time"] = time.perf_counter()


async def _response_hook(response: httpx.Response) -> None:
    meta: MutableMapping[str, object] = response.request.extensions.setdefault(  # type: ignore[assignment]
        "inkreader_meta", {}
    )
    start_time = meta.get("start_time")
    if isinstance(start_time, (int, float)):
        meta["elapsed"] = time.perf_counter() - start_time
    LOGGER.debug(
        "httpx-response",
        extra={
            "extra_fields": {
                "method": response.request.method,
                "url": str(response.request.url.copy_with(query=None)),
                "status": response.status_code,
                "elapsed": meta.get("elapsed"),
            }
        },
    )


def _build_event_hooks(extra_hooks: Optional[Mapping[str, Iterable]]) -> Dict[str, list]:
    hooks: Dict[str, list] = {
        "request": [_request_hook],
        "response": [_response_hook],
    }
    if extra_hooks:
        for name, values in extra_hooks.items():
            if values:
                hooks.setdefault(name, []).extend(values)
    return hooks


def build_http_client(
    settings: Optional[HttpClientConfig] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    event_hooks: Optional[Mapping[str, Iterable]] = None,
) -> httpx.AsyncClient:
    """Return a new :class:`httpx.AsyncClient` configured from ``settings``."""

    settings = settings or HttpClientConfig()
    timeout = httpx.Timeout(
        connect=settings.timeout_connect_s,
        read=settings.timeout_read_s,
        write=settings.timeout_read_s,
        pool=settings.timeout_connect_s,
    )
    limits = httpx.Limits(
        max_connections=settings.max_connections,
        max_keepalive_connections=max(1, settings.max_connections // 4),
        keepalive_expiry=15.0,
    )
    verify: object = _build_ssl_context() if settings.verify_tls else False
    if transport is None:
        transport = httpx.AsyncHTTPTransport(retries=0, verify=verify, limits=limits)
    return httpx.AsyncClient(
        transport=transport,
        timeout=timeout,
        headers={"User-Agent": settings.user_agent},
        event_hooks=_build_event_hooks(event_hooks),
        follow_redirects=True,
    )


def configure_http_client(
    settings: Optional[HttpClientConfig] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    event_hooks: Optional[Mapping[str, Iterable]] = None,
) -> None:
    """Override client configuration and rebuild the shared client on next use."""

    with _CLIENT_LOCK:
        _CURRENT_OVERRIDES["settings"] = settings
        _CURRENT_OVERRIDES["transport"] = transport
        _CURRENT_OVERRIDES["event_hooks"] = dict(event_hooks) if event_hooks else None
        _close_client_unlocked()


def get_http_client(settings: Optional[HttpClientConfig] = None) -> httpx.AsyncClient:
    """Return the shared async client, creating it on first use.

    Passing ``settings`` that differ from the active ones replaces the shared
    client; transport and hook overrides are kept.
    """

    global _HTTP_CLIENT
    with _CLIENT_LOCK:
        if settings is not None and settings != _CURRENT_OVERRIDES.get("settings"):
            _CURRENT_OVERRIDES["settings"] = settings
            _close_client_unlocked()
        if _HTTP_CLIENT is None or _HTTP_CLIENT.is_closed:
            _HTTP_CLIENT = build_http_client(
                _CURRENT_OVERRIDES.get("settings"),  # type: ignore[arg-type]
                transport=_CURRENT_OVERRIDES.get("transport"),  # type: ignore[arg-type]
                event_hooks=_CURRENT_OVERRIDES.get("event_hooks"),  # type: ignore[arg-type]
            )
        return _HTTP_CLIENT


async def close_http_client() -> None:
    """Close and forget the shared client."""

    global _HTTP_CLIENT
    with _CLIENT_LOCK:
        client, _HTTP_CLIENT = _HTTP_CLIENT, None
    if client is not None and not client.is_closed:
        await client.aclose()


def reset_http_client_for_tests() -> None:
    """Clear overrides and dispose of the cached client."""

    with _CLIENT_LOCK:
        _CURRENT_OVERRIDES.clear()
        _close_client_unlocked()


def _close_client_unlocked() -> None:
    """Forget the shared client and close it.

    Inside a running event loop the close is scheduled as a task on that loop;
    otherwise it runs to completion on a temporary loop.
    """

    global _HTTP_CLIENT
    client, _HTTP_CLIENT = _HTTP_CLIENT, None
    if client is None or client.is_closed:
        return
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None
    if loop is not None:
        task = loop.create_task(client.aclose())
        _PENDING_CLOSES.add(task)
        task.add_done_callback(_PENDING_CLOSES.discard)
        return
    with contextlib.suppress(Exception):
        asyncio.run(client.aclose())


__all__ = [
    "build_http_client",
    "close_http_client",
    "configure_http_client",
    "get_http_client",
    "reset_http_client_for_tests",
]
