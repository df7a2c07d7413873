"""
Config -> Kernel Bridges.

Converts parsed chain configuration into kernel value objects.  These live
in registry_config (the producer) because the kernel must never import
registry_config.

Usage:
    from registry_config.bridges import build_chain_registry_from_config

    registry = build_chain_registry_from_config(load_chain_config(path))
"""

from __future__ import annotations

from registry_config.schema import ChainConfigSet, ChainDef
from registry_kernel.domain.chain_registry import ChainRegistry
from registry_kernel.domain.workflow import ApprovalChainDefinition, AuthorityStep


def chain_from_def(chain_def: ChainDef) -> ApprovalChainDefinition:
    """Number the steps in listed order and build the kernel chain.

    ``ApprovalChainDefinition`` rejects duplicate roles with
    InvalidChainDefinitionError.
    """
    return ApprovalChainDefinition(
        workflow_type=chain_def.workflow_type,
        steps=tuple(
            AuthorityStep(step_index=i, authority_role=s.role, display_label=s.label)
            for i, s in enumerate(chain_def.steps)
        ),
        description=chain_def.description,
    )


def build_chain_registry_from_config(config: ChainConfigSet) -> ChainRegistry:
    """Register every configured chain and freeze the registry."""
    return ChainRegistry(chain_from_def(c) for c in config.chains).freeze()
