"""
registry_config -- single public entrypoint for approval chain configuration.

Responsibility:
    Provides ``build_chain_registry()``, which loads the approval chains
    from YAML, validates them and returns a frozen ``ChainRegistry``.
    Chains are configuration, not computed: they are built once at
    process start and handed to the coordinator.

Architecture position:
    Configuration.  This package sits above ``registry_kernel``.  The
    kernel MUST NEVER import from ``registry_config``.

Failure modes:
    - ``FileNotFoundError`` / ``yaml.YAMLError`` for an unreadable file.
    - ``KeyError`` / ``ValueError`` for structurally invalid YAML.
    - ``InvalidChainDefinitionError`` / ``DuplicateChainError`` for chains
      that break kernel invariants.

Audit relevance:
    Every successful load emits a ``chain_config_loaded`` log entry with the
    configuration checksum and the registered workflow types.
"""

from __future__ import annotations

from pathlib import Path

from registry_config.bridges import build_chain_registry_from_config
from registry_config.loader import load_chain_config
from registry_kernel.domain.chain_registry import ChainRegistry
from registry_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CHAIN_FILE = Path(__file__).parent / "chains" / "approval_chains.yaml"


def build_chain_registry(path: Path | None = None) -> ChainRegistry:
    """Load chains from ``path`` (default: the packaged chain file)."""
    config_path = path or DEFAULT_CHAIN_FILE
    config = load_chain_config(config_path)
    registry = build_chain_registry_from_config(config)

    _logger.info(
        "chain_config_loaded",
        extra={
            "path": str(config_path),
            "version": config.version,
            "checksum": config.checksum,
            "workflow_types": list(registry.workflow_types()),
        },
    )
    return registry


__all__ = ["DEFAULT_CHAIN_FILE", "build_chain_registry"]
