"""Quorum result value object (``registry_kernel.domain.quorum``)."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class QuorumResult:
    """Outcome of a turnout check.

    ``turnout_percentage`` is unrounded; round only for display.
    ``required_count`` is the minimum attendance that satisfies quorum.
    """

    eligible_count: int
    present_count: int
    required_percentage: float
    turnout_percentage: float
    is_met: bool
    shortfall_count: int
    required_count: int
