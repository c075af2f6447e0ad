"""Quota engine: plan limits, admission checks and bonus grants.

All functions here are pure. Admission is advisory: it is evaluated before the metered action runs,
and the usage ledger is only incremented after the action succeeds, so two concurrent requests can both
be admitted at the boundary. That overshoot is accepted; the ledger's atomic increments guarantee that
no consumption is ever lost.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Union

from correction_pipeline.domain.schemas import Feature, Plan, PlanLimits

PLAN_LIMITS: Dict[Plan, PlanLimits] = {
    Plan.FREE: PlanLimits(
        scan_per_day=1,
        max_scan_bonus_per_day=2,
        correction_per_day=3,
        max_correction_bonus_per_day=2,
    ),
    # Effectively unlimited; bonus has no meaning without a limit
    Plan.PREMIUM: PlanLimits(
        scan_per_day=999,
        max_scan_bonus_per_day=0,
        correction_per_day=999,
        max_correction_bonus_per_day=0,
    ),
}

LIMIT_REACHED_CODES: Dict[Feature, str] = {
    Feature.SCAN: "SCAN_LIMIT_REACHED",
    Feature.CORRECTION: "CORRECTION_LIMIT_REACHED",
}


@dataclass(frozen=True)
class Allow:
    """The action may proceed.

    Attributes:
        bonus_count: For bonus grants, the bonus count after the grant. None for admission checks.
    """

    bonus_count: Optional[int] = None


@dataclass(frozen=True)
class Deny:
    """The action is refused, with enough context for the client to offer a reward flow."""

    count: int
    base_limit: int
    bonus_count: int
    max_bonus: int
    bonus_eligible: bool
    reason: str = "LIMIT_REACHED"


Decision = Union[Allow, Deny]


@dataclass(frozen=True)
class UsageSnapshot:
    """Today's usage as exposed to clients."""

    count: int
    limit: int
    bonus_count: int
    max_bonus: int

    def to_response(self) -> dict:
        return {"count": self.count, "limit": self.limit, "bonusCount": self.bonus_count, "maxBonus": self.max_bonus}


def normalize_plan(plan: Optional[str]) -> Plan:
    """Maps a stored plan value onto a known tier, defaulting to the lowest one."""
    try:
        return Plan(plan) if plan else Plan.FREE
    except ValueError:
        return Plan.FREE


def get_plan_limits(plan: Optional[str]) -> PlanLimits:
    """Returns the limits configured for a plan."""
    return PLAN_LIMITS[normalize_plan(plan)]


def is_metered(plan: Optional[str]) -> bool:
    """Only non-premium plans read or write the usage ledger."""
    return normalize_plan(plan) != Plan.PREMIUM


def check_admission(plan: Optional[str], feature: Feature, current_count: int, current_bonus: int) -> Decision:
    """Decides whether one more metered action is allowed today.

    Args:
        plan: The user's plan tier.
        feature: The metered feature.
        current_count: Actions already consumed today.
        current_bonus: Bonus allowance earned today.

    Returns:
        Allow if current_count is below base limit + bonus, otherwise Deny with the usage context.
    """
    tier = normalize_plan(plan)
    if tier == Plan.PREMIUM:
        return Allow()

    limits = PLAN_LIMITS[tier]
    base_limit = limits.base_limit(feature)
    max_bonus = limits.max_bonus(feature)
    if current_count < base_limit + current_bonus:
        return Allow()

    return Deny(
        count=current_count,
        base_limit=base_limit,
        bonus_count=current_bonus,
        max_bonus=max_bonus,
        bonus_eligible=current_bonus < max_bonus,
        reason=LIMIT_REACHED_CODES[Feature(feature)],
    )


def grant_bonus(plan: Optional[str], feature: Feature, current_bonus: int) -> Decision:
    """Decides whether a completed reward action earns one more bonus.

    Premium plans have a maximum bonus of zero and are therefore always denied.

    Args:
        plan: The user's plan tier.
        feature: The metered feature the bonus applies to.
        current_bonus: Bonus allowance already earned today.

    Returns:
        Allow carrying the new bonus count, or Deny with reason MAX_BONUS_REACHED.
    """
    limits = get_plan_limits(plan)
    base_limit = limits.base_limit(feature)
    max_bonus = limits.max_bonus(feature)
    if current_bonus >= max_bonus:
        return Deny(
            count=0,
            base_limit=base_limit,
            bonus_count=current_bonus,
            max_bonus=max_bonus,
            bonus_eligible=False,
            reason="MAX_BONUS_REACHED",
        )
    return Allow(bonus_count=current_bonus + 1)


def usage_snapshot(plan: Optional[str], feature: Feature, current_count: int, current_bonus: int) -> UsageSnapshot:
    """Builds the usage view returned by the usage endpoints."""
    limits = get_plan_limits(plan)
    return UsageSnapshot(
        count=current_count,
        limit=limits.base_limit(feature),
        bonus_count=current_bonus,
        max_bonus=limits.max_bonus(feature),
    )
