# === NAVMAP v1 ===
# {
#   "module": "InkReader.ArticleAccess.config.loader",
#   "purpose": "Layered configuration: network preset < file < env < CLI.",
#   "sections": [
#     {
#       "id": "network-presets",
#       "name": "NETWORK_PRESETS",
#       "anchor": "constant-network-presets",
#       "kind": "constant"
#     },
#     {
#       "id": "read-file",
#       "name": "_read_file",
#       "anchor": "function-read-file",
#       "kind": "function"
#     },
#     {
#       "id": "env-overrides",
#       "name": "_env_overrides",
#       "anchor": "function-env-overrides",
#       "kind": "function"
#     },
#     {
#       "id": "load-config",
#       "name": "load_config",
#       "anchor": "function-load-config",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Layered ArticleAccess Configuration

Composition order (later wins):

1. **Network preset**: ledger RPC and aggregator endpoints for the selected
   ``network``.
2. **File**: YAML or JSON document.
3. **Environment**: ``INKREADER_*`` variables, double underscore for nesting::

     INKREADER_LEDGER__RPC_URL=http://127.0.0.1:9000   →  ledger.rpc_url
     INKREADER_PIPELINE__CREDENTIAL_ORDER='["nft_access"]'

4. **CLI**: mapping passed by the command line layer.

Values from the environment are parsed as JSON when possible so lists,
numbers and booleans survive the round trip through strings.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .models import ArticleAccessConfig

_LOGGER = logging.getLogger(__name__)

DEFAULT_ENV_PREFIX = "INKREADER_"

NETWORK_PRESETS: Dict[str, Dict[str, Any]] = {
    "testnet": {
        "ledger": {"rpc_url": "https://fullnode.testnet.sui.io:443"},
        "storage": {"aggregator_url": "https://aggregator.walrus-testnet.walrus.space"},
    },
    "mainnet": {
        "ledger": {"rpc_url": "https://fullnode.mainnet.sui.io:443"},
        "storage": {"aggregator_url": "https://aggregator.walrus.space"},
    },
    "devnet": {
        "ledger": {"rpc_url": "https://fullnode.devnet.sui.io:443"},
    },
    "localnet": {
        "ledger": {"rpc_url": "http://127.0.0.1:9000"},
    },
}


def _read_file(path: str) -> Dict[str, Any]:
    """Parse a ``.yaml``/``.yml`` or ``.json`` file into a mapping."""

    p = Path(path)
    if not p.is_file():
        raise ValueError(f"Config file not found: {path}")

    text = p.read_text(encoding="utf-8")
    suffix = p.suffix.lower()
    try:
        if suffix in (".yaml", ".yml"):
            loaded = yaml.safe_load(text)
        elif suffix == ".json":
            loaded = json.loads(text)
        else:
            raise ValueError(f"Unsupported config format {suffix!r}; use .yaml or .json")
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ValueError(f"Cannot parse {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Top level of {path} must be a mapping")
    return loaded


def _deep_merge(base: Dict[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def _parse_env_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        lowered = raw.lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        return raw


def _env_overrides(prefix: str, environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Collect ``prefix``-ed variables into a nested mapping.

    Only variables whose first segment names an :class:`ArticleAccessConfig`
    field are folded in; ``INKREADER_CONFIG`` (the config file path read by
    the CLI) and other unrelated names are left alone.

    Raises:
        ValueError: If one variable sets a section as a scalar while another
            sets a key inside it.
    """

    source = os.environ if environ is None else environ
    result: Dict[str, Any] = {}
    for name in sorted(source):
        if not name.startswith(prefix):
            continue
        path = name[len(prefix) :].lower().split("__")
        if not all(path):
            _LOGGER.warning("Ignoring malformed config variable %s", name)
            continue
        if path[0] not in ArticleAccessConfig.model_fields:
            continue
        value = _parse_env_value(source[name])
        cursor = result
        for part in path[:-1]:
            cursor = cursor.setdefault(part, {})
            if not isinstance(cursor, dict):
                raise ValueError(f"{name} conflicts with a scalar value set for {part!r}")
        cursor[path[-1]] = value
        _LOGGER.debug("config override from %s", name)
    return result


def load_config(
    path: Optional[str] = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    cli_overrides: Optional[Mapping[str, Any]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> ArticleAccessConfig:
    """
    Build a validated :class:`ArticleAccessConfig`.

    Args:
        path: Optional YAML/JSON file
        env_prefix: Environment variable prefix
        cli_overrides: Nested mapping applied last
        environ: Environment mapping (defaults to ``os.environ``)

    Raises:
        ValueError: On unreadable files or invalid values (pydantic's
            ``ValidationError`` is a ``ValueError``)
    """

    layered: Dict[str, Any] = {}
    if path:
        _deep_merge(layered, _read_file(path))
        _LOGGER.info("Loaded config from %s", path)
    _deep_merge(layered, _env_overrides(env_prefix, environ))
    if cli_overrides:
        _deep_merge(layered, cli_overrides)

    network = layered.get("network", "testnet")
    data = _deep_merge(copy.deepcopy(NETWORK_PRESETS.get(network, {})), layered)

    config = ArticleAccessConfig.model_validate(data)
    _LOGGER.info(
        "Configuration validated",
        extra={"extra_fields": {"network": config.network, "config_hash": config.config_hash()[:8]}},
    )
    return config


def validate_config_file(path: str) -> ArticleAccessConfig:
    """Load ``path`` alone (no env/CLI layers) and return the model."""

    return load_config(path=path, environ={})


def export_config_schema() -> Dict[str, Any]:
    """JSON Schema of :class:`ArticleAccessConfig`."""

    return ArticleAccessConfig.model_json_schema()


__all__ = [
    "DEFAULT_ENV_PREFIX",
    "NETWORK_PRESETS",
    "export_config_schema",
    "load_config",
    "validate_config_file",
]
