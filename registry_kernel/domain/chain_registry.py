"""ChainRegistry -- workflow-type to ApprovalChainDefinition lookup."""

from __future__ import annotations

from typing import Iterable

from registry_kernel.domain.workflow import ApprovalChainDefinition
from registry_kernel.exceptions import (
    ChainRegistryFrozenError,
    DuplicateChainError,
    UnknownWorkflowTypeError,
)


class ChainRegistry:
    """Holds one approval chain per workflow type.

    Chains are registered once at process start, then ``freeze()`` makes
    the registry read-only.  A frozen registry holds no mutable state and
    is safe to share between threads.
    """

    def __init__(self, chains: Iterable[ApprovalChainDefinition] = ()) -> None:
        self._chains: dict[str, ApprovalChainDefinition] = {}
        self._frozen = False
        for chain in chains:
            self.register(chain)

    def register(self, chain: ApprovalChainDefinition) -> None:
        if self._frozen:
            raise ChainRegistryFrozenError(chain.workflow_type)
        if chain.workflow_type in self._chains:
            raise DuplicateChainError(chain.workflow_type)
        self._chains[chain.workflow_type] = chain

    def freeze(self) -> ChainRegistry:
        self._frozen = True
        return self

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def get_chain(self, workflow_type: str) -> ApprovalChainDefinition:
        """Return the chain for ``workflow_type``.

        Raises:
            UnknownWorkflowTypeError: if no chain is registered.
        """
        chain = self._chains.get(workflow_type)
        if chain is None:
            raise UnknownWorkflowTypeError(workflow_type)
        return chain

    def workflow_types(self) -> tuple[str, ...]:
        return tuple(sorted(self._chains))

    def __contains__(self, workflow_type: object) -> bool:
        return workflow_type in self._chains
