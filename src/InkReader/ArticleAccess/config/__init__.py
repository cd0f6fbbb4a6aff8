"""
ArticleAccess Configuration Package

Example:
    from InkReader.ArticleAccess.config import load_config

    config = load_config(
        path="inkreader.yaml",
        cli_overrides={"pipeline": {"credential_order": ["nft_access"]}},
    )
    config.config_hash()
"""

from .loader import (
    DEFAULT_ENV_PREFIX,
    NETWORK_PRESETS,
    export_config_schema,
    load_config,
    validate_config_file,
)
from .models import (
    DEFAULT_CREDENTIAL_ORDER,
    ArticleAccessConfig,
    HttpClientConfig,
    IndexerConfig,
    KeyServerConfig,
    KeyServerEntry,
    LedgerConfig,
    PipelineConfig,
    StorageConfig,
)

__all__ = [
    # Models
    "ArticleAccessConfig",
    "HttpClientConfig",
    "IndexerConfig",
    "KeyServerConfig",
    "KeyServerEntry",
    "LedgerConfig",
    "PipelineConfig",
    "StorageConfig",
    "DEFAULT_CREDENTIAL_ORDER",
    # Loading/validation
    "DEFAULT_ENV_PREFIX",
    "NETWORK_PRESETS",
    "load_config",
    "validate_config_file",
    "export_config_schema",
]
