"""ArticleAccess public exports.

Attributes are imported lazily so that importing the package does not pull
in the HTTP stack until something from it is used.
"""

from __future__ import annotations

import importlib
from typing import Any

__all__ = [
    "ArticleAccessConfig",
    "ArticleAccessError",
    "ArticleMetadata",
    "ArticlePipeline",
    "ContentRetriever",
    "CredentialResolver",
    "CredentialSet",
    "DecryptionEngine",
    "JsonRpcLedgerReader",
    "KeyServerQuorum",
    "MetadataClient",
    "PipelineState",
    "WalletSession",
    "build_pipeline",
    "load_config",
]

_EXPORT_MAP: dict[str, tuple[str, str]] = {
    "ArticleAccessConfig": (".config", "ArticleAccessConfig"),
    "ArticleAccessError": (".api.exceptions", "ArticleAccessError"),
    "ArticleMetadata": (".api.types", "ArticleMetadata"),
    "ArticlePipeline": (".pipeline", "ArticlePipeline"),
    "ContentRetriever": (".retriever", "ContentRetriever"),
    "CredentialResolver": (".credentials.resolver", "CredentialResolver"),
    "CredentialSet": (".api.types", "CredentialSet"),
    "DecryptionEngine": (".decryption", "DecryptionEngine"),
    "JsonRpcLedgerReader": (".ledger", "JsonRpcLedgerReader"),
    "KeyServerQuorum": (".keyservers", "KeyServerQuorum"),
    "MetadataClient": (".metadata", "MetadataClient"),
    "PipelineState": (".api.types", "PipelineState"),
    "WalletSession": (".session", "WalletSession"),
    "build_pipeline": (".pipeline", "build_pipeline"),
    "load_config": (".config", "load_config"),
}


def __getattr__(name: str) -> Any:
    if name in _EXPORT_MAP:
        module_path, attr_name = _EXPORT_MAP[name]
        module = importlib.import_module(f"{__name__}{module_path}")
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(__all__))
