"""
registry_engines.quorum -- Turnout and quorum evaluation.

Responsibility:
    Decide whether a vote or meeting meets a required participation
    threshold and how many more attendees would be needed.

Architecture position:
    Engines -- pure calculation layer, zero I/O, no state.

Invariants enforced:
    - Inclusive boundary: turnout exactly equal to the threshold is met.
    - Consistent result: ``is_met`` is ``turnout_percentage >=
      required_percentage`` on the very values returned, and
      ``required_count`` is the smallest attendance that passes the same
      comparison, so ``is_met`` holds exactly when ``shortfall_count == 0``.
    - Ceiling shortfall: a need of 1.2 more voters is reported as 2.

Failure modes:
    - InvalidQuorumInputError naming the offending field.
    - QuorumNotMetError from ``require_quorum`` only.
"""

from __future__ import annotations

import math
from decimal import ROUND_CEILING, Decimal
from numbers import Real

from registry_kernel.domain.quorum import QuorumResult
from registry_kernel.exceptions import InvalidQuorumInputError, QuorumNotMetError

_HUNDRED = Decimal(100)


def evaluate_quorum(
    eligible_count: int,
    present_count: int,
    required_percentage: float,
) -> QuorumResult:
    """Evaluate turnout against a required percentage.

    Args:
        eligible_count: Members eligible to attend or vote (> 0).
        present_count: Members present or voting (0..eligible_count).
        required_percentage: Threshold in percent, 0..100 inclusive. Any
            real number is accepted (int, float, Decimal, Fraction).

    Returns:
        QuorumResult with turnout, pass/fail and shortfall.
    """
    required = _validate_inputs(eligible_count, present_count, required_percentage)
    turnout = _turnout(present_count, eligible_count)
    required_count = _required_count(eligible_count, required)

    return QuorumResult(
        eligible_count=eligible_count,
        present_count=present_count,
        required_percentage=required,
        turnout_percentage=turnout,
        is_met=turnout >= required,
        shortfall_count=max(0, required_count - present_count),
        required_count=required_count,
    )


def require_quorum(
    eligible_count: int,
    present_count: int,
    required_percentage: float,
) -> QuorumResult:
    """Like ``evaluate_quorum`` but raise QuorumNotMetError when not met."""
    result = evaluate_quorum(eligible_count, present_count, required_percentage)
    if not result.is_met:
        raise QuorumNotMetError(result)
    return result


def format_turnout(result: QuorumResult) -> str:
    """Display form of the turnout, rounded to two decimals."""
    return f"{result.turnout_percentage:.2f}%"


def _turnout(present_count: int, eligible_count: int) -> float:
    return present_count * 100 / eligible_count


def _required_count(eligible_count: int, required: float) -> int:
    """Smallest attendance whose turnout reaches ``required``.

    The Decimal ceiling is exact for the float threshold; the two loops move
    it by at most one head so it agrees with the float turnout comparison.
    """
    count = int(
        (Decimal(eligible_count) * Decimal(required) / _HUNDRED).to_integral_value(
            rounding=ROUND_CEILING,
        )
    )
    while count > 0 and _turnout(count - 1, eligible_count) >= required:
        count -= 1
    while count < eligible_count and _turnout(count, eligible_count) < required:
        count += 1
    return count


def _validate_inputs(
    eligible_count: int,
    present_count: int,
    required_percentage: float,
) -> float:
    """Validate inputs and return the threshold as a float."""
    for name, value in (("eligible_count", eligible_count), ("present_count", present_count)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidQuorumInputError(name, value, "must be an integer")

    if eligible_count <= 0:
        raise InvalidQuorumInputError("eligible_count", eligible_count, "must be greater than 0")
    if present_count < 0:
        raise InvalidQuorumInputError("present_count", present_count, "must not be negative")
    if present_count > eligible_count:
        raise InvalidQuorumInputError(
            "present_count", present_count,
            f"must not exceed eligible_count ({eligible_count})",
        )

    if isinstance(required_percentage, bool) or not isinstance(required_percentage, (Real, Decimal)):
        raise InvalidQuorumInputError("required_percentage", required_percentage, "must be a number")
    if isinstance(required_percentage, Decimal) and not required_percentage.is_finite():
        raise InvalidQuorumInputError("required_percentage", required_percentage, "must be finite")
    try:
        required = float(required_percentage)
    except (ArithmeticError, ValueError) as exc:
        raise InvalidQuorumInputError(
            "required_percentage", required_percentage, "must be convertible to float",
        ) from exc
    if not math.isfinite(required) or not 0 <= required <= 100:
        raise InvalidQuorumInputError(
            "required_percentage", required_percentage, "must be between 0 and 100",
        )
    return required
