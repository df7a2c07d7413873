"""
Approval-chain YAML loader (``registry_config.loader``).

Reads the chain file with ``yaml.safe_load`` and turns it into the frozen
``registry_config.schema`` dataclasses.  Step order in the file is the step
order of the chain.

Errors are not caught here:

* an unreadable file raises ``FileNotFoundError`` or ``yaml.YAMLError``;
* a chain or step missing its required key raises ``KeyError``;
* a ``chains`` or ``steps`` value that is not a list raises ``ValueError``.

``compute_checksum`` fingerprints the parsed document (SHA-256 over
key-sorted JSON), so two loads of the same chains log the same value.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from registry_config.schema import ChainConfigSet, ChainDef, StepDef


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Parse one YAML document; an empty file yields an empty mapping."""
    with open(path, encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def parse_step(data: dict[str, Any]) -> StepDef:
    """A step needs ``role``; ``label`` defaults to the role in title case."""
    role = data["role"]
    label = data.get("label") or role.replace("_", " ").title()
    return StepDef(role=role, label=label)


def parse_chain(data: dict[str, Any]) -> ChainDef:
    """A chain needs ``workflow_type``; a missing ``steps`` key means no steps."""
    steps = data.get("steps") or []
    if not isinstance(steps, list):
        raise ValueError(
            f"Chain '{data.get('workflow_type')}': steps must be a list, "
            f"got {type(steps).__name__}"
        )
    return ChainDef(
        workflow_type=data["workflow_type"],
        steps=tuple(parse_step(step) for step in steps),
        description=data.get("description") or "",
    )


def parse_chain_config(data: dict[str, Any]) -> ChainConfigSet:
    chains = data.get("chains")
    if not isinstance(chains, list):
        raise ValueError("Chain configuration must contain a 'chains' list")
    return ChainConfigSet(
        version=int(data.get("version", 1)),
        chains=tuple(parse_chain(chain) for chain in chains),
        checksum=compute_checksum(data),
    )


def load_chain_config(path: Path) -> ChainConfigSet:
    return parse_chain_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """Hex SHA-256 of ``data`` serialized as key-sorted JSON."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
