"""
Credential Lookup Registry

- ``@register_lookup(name)`` decorator for lookup registration
- Config-driven instantiation in ``pipeline.credential_order``
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Type

from InkReader.ArticleAccess.config.models import ArticleAccessConfig

from .base import LedgerLookupBase

_LOGGER = logging.getLogger(__name__)

_REGISTRY: Dict[str, Type[LedgerLookupBase]] = {}


def register_lookup(name: str):
    """Decorator to register a credential lookup under ``name``."""

    def deco(cls: Type[LedgerLookupBase]) -> Type[LedgerLookupBase]:
        if name in _REGISTRY:
            _LOGGER.warning("Overriding already-registered credential lookup: %s", name)
        _REGISTRY[name] = cls
        cls.name = name  # type: ignore[assignment]
        return cls

    return deco


def get_registry() -> Dict[str, Type[LedgerLookupBase]]:
    """Get the lookup registry (copy)."""
    return dict(_REGISTRY)


def get_lookup_class(name: str) -> Type[LedgerLookupBase]:
    if name not in _REGISTRY:
        raise ValueError(f"Unknown credential lookup: {name!r}. Available: {sorted(_REGISTRY)}")
    return _REGISTRY[name]


def build_lookups(config: Optional[ArticleAccessConfig] = None) -> List[LedgerLookupBase]:
    """Instantiate lookups in the configured priority order."""

    config = config or ArticleAccessConfig()
    lookups = [
        get_lookup_class(name).from_config(config.ledger)
        for name in config.pipeline.credential_order
    ]
    _LOGGER.debug("Credential lookup order: %s", [lookup.name for lookup in lookups])
    return lookups


__all__ = ["build_lookups", "get_lookup_class", "get_registry", "register_lookup"]
