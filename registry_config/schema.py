"""
Approval chain configuration schema.

Human-authored source artifact for approval chains.  YAML is parsed into
these frozen types by the loader and converted into kernel
``ApprovalChainDefinition`` values by ``registry_config.bridges``.

Key distinction:
  ChainConfigSet          = source artifact (human-authored, versioned)
  ApprovalChainDefinition = runtime value object (validated, frozen)
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StepDef:
    """YAML-authored authority step.  Position in the list is its index."""

    role: str
    label: str = ""


@dataclass(frozen=True)
class ChainDef:
    """YAML-authored approval chain."""

    workflow_type: str
    steps: tuple[StepDef, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class ChainConfigSet:
    """All chains of one configuration file plus its identity."""

    version: int
    chains: tuple[ChainDef, ...]
    checksum: str
