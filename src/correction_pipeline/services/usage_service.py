"""Usage views and reward bonus grants."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from correction_pipeline.domain.schemas import Feature
from correction_pipeline.exceptions import BonusLimitReachedError, InvalidInputError
from correction_pipeline.services.identity import require_user_id
from correction_pipeline.storage.user_repository import UserRepository
from correction_pipeline.usage import quota
from correction_pipeline.usage.ledger import UsageLedger
from correction_pipeline.utils.dates import today_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BonusGrant:
    """Bonus state after a successful grant."""

    bonus_count: int
    max_bonus: int

    @property
    def remaining_bonus(self) -> int:
        return max(self.max_bonus - self.bonus_count, 0)

    def to_response(self) -> dict:
        return {
            "success": True,
            "bonusCount": self.bonus_count,
            "maxBonus": self.max_bonus,
            "remainingBonus": self.remaining_bonus,
        }


def parse_feature(value: Optional[str]) -> Feature:
    try:
        return Feature(value)
    except ValueError:
        raise InvalidInputError("Invalid feature. Use: scan or correction") from None


class UsageService:
    def __init__(
        self,
        user_repository: UserRepository,
        usage_ledger: UsageLedger,
        today: Callable[[], str] = today_utc,
    ):
        self.user_repository = user_repository
        self.usage_ledger = usage_ledger
        self.today = today

    def _plan(self, user_id: str) -> Optional[str]:
        user = self.user_repository.get(user_id)
        return user.plan if user else None

    def get_usage(self, user_id: Optional[str], feature: Feature) -> quota.UsageSnapshot:
        """Today's count and limits for one feature. Premium users are reported with zero usage."""
        user_id = require_user_id(user_id)
        plan = self._plan(user_id)
        if not quota.is_metered(plan):
            return quota.usage_snapshot(plan, feature, 0, 0)
        counts = self.usage_ledger.peek(user_id, feature, self.today())
        return quota.usage_snapshot(plan, feature, counts.count, counts.bonus_count)

    def grant_bonus(self, user_id: Optional[str], feature: Feature) -> BonusGrant:
        """Grants one bonus action after a completed reward flow.

        The limit check and the increment are separate calls, so two grants racing at the limit can both
        succeed. The stored value is returned as-is in that case.

        Raises:
            BonusLimitReachedError: If today's bonus is already at the plan maximum.
        """
        user_id = require_user_id(user_id)
        plan = self._plan(user_id)
        date = self.today()
        current = self.usage_ledger.peek(user_id, feature, date) if quota.is_metered(plan) else None
        decision = quota.grant_bonus(plan, feature, current.bonus_count if current else 0)
        if isinstance(decision, quota.Deny):
            raise BonusLimitReachedError(decision.bonus_count, decision.max_bonus)

        max_bonus = quota.get_plan_limits(plan).max_bonus(feature)
        updated = self.usage_ledger.increment_bonus(user_id, feature, date)
        if updated.bonus_count > max_bonus:
            logger.warning(f"Concurrent bonus grants exceeded the maximum: {updated.bonus_count}/{max_bonus}")
        return BonusGrant(bonus_count=updated.bonus_count, max_bonus=max_bonus)
