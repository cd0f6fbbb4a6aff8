# === NAVMAP v1 ===
# {
#   "module": "InkReader.ArticleAccess.pipeline",
#   "purpose": "Article load state machine sequencing metadata, credentials, content and decryption.",
#   "sections": [
#     {
#       "id": "articlepipeline",
#       "name": "ArticlePipeline",
#       "anchor": "class-articlepipeline",
#       "kind": "class"
#     },
#     {
#       "id": "build-pipeline",
#       "name": "build_pipeline",
#       "anchor": "function-build-pipeline",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Article Load Pipeline

Stage flow::

    idle → metadata-loading ─┬─ (plain) ──────────────────────────── downloading → ready
                             └─ (encrypted) credential-resolving → downloading → decrypting → ready

``errored`` is reachable from every non-terminal stage. Each load is tagged
with a generation number; state produced by a load that is no longer the
current generation is dropped instead of published.

Re-entrancy policy:

- ``load(slug)`` while a load for the same slug is in flight joins that load
  and returns its terminal state.
- ``load(other_slug)`` supersedes the in-flight load. Its pending work keeps
  running unless ``cancel_superseded`` is set, but its results are never
  published.
- ``retry()`` restarts the last slug from metadata-loading, re-resolving
  credentials.

Nothing is cached between loads.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Union

import httpx

from InkReader.ArticleAccess.api.exceptions import DecryptionDenied, WalletRequired
from InkReader.ArticleAccess.api.types import ArticleMetadata, PipelineState
from InkReader.ArticleAccess.config.models import ArticleAccessConfig
from InkReader.ArticleAccess.credentials.resolver import CredentialResolver
from InkReader.ArticleAccess.decryption import DecryptionEngine, IbeClient
from InkReader.ArticleAccess.errors import classify_exception, log_load_failure
from InkReader.ArticleAccess.httpx_transport import get_http_client
from InkReader.ArticleAccess.keyservers import KeyServerQuorum, ShareCombiner, UnconfiguredCombiner
from InkReader.ArticleAccess.ledger import JsonRpcLedgerReader, LedgerReader
from InkReader.ArticleAccess.metadata import MetadataClient
from InkReader.ArticleAccess.retriever import ContentRetriever
from InkReader.ArticleAccess.session import WalletSession

LOGGER = logging.getLogger(__name__)

StateListener = Callable[[PipelineState], None]


@dataclass
class _LoadRun:
    slug: str
    generation: int
    session: Optional[WalletSession]
    state: PipelineState
    task: Optional["asyncio.Task[PipelineState]"] = None


class ArticlePipeline:
    """Sequence the article access stages and expose one state snapshot."""

    def __init__(
        self,
        *,
        metadata_client: MetadataClient,
        credential_resolver: CredentialResolver,
        content_retriever: ContentRetriever,
        decryption_engine: DecryptionEngine,
        package_id: str,
        cancel_superseded: bool = False,
    ) -> None:
        self._metadata = metadata_client
        self._resolver = credential_resolver
        self._retriever = content_retriever
        self._engine = decryption_engine
        self._package_id = package_id
        self._cancel_superseded = cancel_superseded

        self._generation = 0
        self._state = PipelineState()
        self._current: Optional[_LoadRun] = None
        self._listeners: List[StateListener] = []

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with every published state; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def load(self, slug: str, session: Optional[WalletSession] = None) -> PipelineState:
        """Load ``slug`` and return the terminal state of that load.

        A superseded load returns its last local snapshot, which is never
        published.
        """

        current = self._current
        if (
            current is not None
            and current.slug == slug
            and current.task is not None
            and not current.task.done()
        ):
            LOGGER.debug("joining in-flight load", extra={"extra_fields": {"slug": slug}})
            return await self._await_run(current)

        self._supersede()
        self._generation += 1
        run = _LoadRun(
            slug=slug,
            generation=self._generation,
            session=session,
            state=PipelineState(slug=slug, generation=self._generation),
        )
        self._current = run
        run.task = asyncio.ensure_future(self._run(run))
        return await self._await_run(run)

    async def retry(self) -> PipelineState:
        """Re-run the last requested slug from the beginning."""

        if self._current is None:
            return self._state
        return await self.load(self._current.slug, self._current.session)

    def reset(self) -> None:
        """Return to ``idle`` and drop everything the last load produced."""

        self._supersede()
        self._generation += 1
        self._current = None
        self._publish(PipelineState(generation=self._generation))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _await_run(self, run: _LoadRun) -> PipelineState:
        assert run.task is not None
        try:
            return await asyncio.shield(run.task)
        except asyncio.CancelledError:
            if run.task.cancelled():
                return run.state
            raise

    def _supersede(self) -> None:
        current = self._current
        if current is None or current.task is None or current.task.done():
            return
        LOGGER.debug(
            "superseding in-flight load",
            extra={"extra_fields": {"slug": current.slug, "generation": current.generation}},
        )
        if self._cancel_superseded:
            current.task.cancel()

    def _advance(self, run: _LoadRun, state: PipelineState) -> None:
        run.state = state
        if run.generation != self._generation:
            LOGGER.debug(
                "dropping stale state",
                extra={"extra_fields": {"slug": run.slug, "generation": run.generation, "stage": state.stage}},
            )
            return
        self._publish(state)

    def _publish(self, state: PipelineState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                LOGGER.exception("pipeline state listener failed")

    async def _run(self, run: _LoadRun) -> PipelineState:
        base = PipelineState(slug=run.slug, generation=run.generation)
        metadata: Optional[ArticleMetadata] = None
        try:
            self._advance(run, replace(base, stage="metadata-loading", loading=True))
            metadata = await self._metadata.fetch(run.slug)
            base = replace(base, metadata=metadata)

            if metadata.is_encrypted:
                content = await self._load_encrypted(run, base, metadata)
            else:
                self._advance(run, replace(base, stage="downloading", loading=True, downloading=True))
                content = _as_text(
                    await self._retriever.fetch(metadata.content_locator, False)
                )
        except Exception as exc:
            kind, message = classify_exception(exc)
            log_load_failure(
                LOGGER,
                run.slug,
                kind,
                generation=run.generation,
                stage=run.state.stage,
                exception=exc,
            )
            self._advance(
                run,
                replace(
                    base,
                    stage="errored",
                    error=kind,
                    error_message=message,
                    credential_branch=run.state.credential_branch,
                ),
            )
            return run.state

        self._advance(
            run,
            replace(
                base,
                stage="ready",
                content=content,
                credential_branch=run.state.credential_branch,
            ),
        )
        LOGGER.info(
            "article loaded",
            extra={"extra_fields": {"slug": run.slug, "generation": run.generation, "chars": len(content)}},
        )
        return run.state

    async def _load_encrypted(
        self, run: _LoadRun, base: PipelineState, metadata: ArticleMetadata
    ) -> str:
        session = run.session
        if session is None or not getattr(session, "address", None):
            raise WalletRequired(slug=run.slug)

        self._advance(run, replace(base, stage="credential-resolving", loading=True))
        credentials = await self._resolver.resolve(
            session.address, metadata.publication_id, metadata.id
        )
        base = replace(base, credential_branch=credentials.branch)

        self._advance(run, replace(base, stage="downloading", loading=True, downloading=True))
        ciphertext = await self._retriever.fetch(metadata.content_locator, True, session)

        self._advance(run, replace(base, stage="decrypting", loading=True, decrypting=True))
        plaintext = await self._engine.decrypt(
            _as_bytes(ciphertext),
            metadata.content_identity,
            credentials,
            self._package_id,
            session,
            publication_id=metadata.publication_id,
        )
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise DecryptionDenied() from None


def _as_text(content: Union[bytes, str]) -> str:
    if isinstance(content, bytes):
        return content.decode("utf-8")
    return content


def _as_bytes(content: Union[bytes, str]) -> bytes:
    if isinstance(content, str):
        return content.encode("utf-8")
    return content


def build_pipeline(
    config: Optional[ArticleAccessConfig] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
    ledger: Optional[LedgerReader] = None,
    ibe_client: Optional[IbeClient] = None,
    combiner: Optional[ShareCombiner] = None,
) -> ArticlePipeline:
    """Assemble an :class:`ArticlePipeline` from configuration.

    Without an ``ibe_client`` the key-server quorum client is used with
    ``combiner``; without a combiner encrypted articles are always denied.
    Without a ``client`` the shared client built from ``config.http`` is
    used; close it with :func:`close_http_client` when done.
    """

    config = config or ArticleAccessConfig()
    if client is None:
        client = get_http_client(config.http)
    ledger = ledger or JsonRpcLedgerReader(client, config.ledger)
    if ibe_client is None:
        ibe_client = KeyServerQuorum(
            client, combiner or UnconfiguredCombiner(), config.key_servers
        )
    return ArticlePipeline(
        metadata_client=MetadataClient(client, config.indexer),
        credential_resolver=CredentialResolver(ledger, config=config),
        content_retriever=ContentRetriever(client, config.storage),
        decryption_engine=DecryptionEngine(
            ibe_client, session_ttl_min=config.key_servers.session_ttl_min
        ),
        package_id=config.ledger.package_id,
        cancel_superseded=config.pipeline.cancel_superseded,
    )


__all__ = ["ArticlePipeline", "StateListener", "build_pipeline"]
