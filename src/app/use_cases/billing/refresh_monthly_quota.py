"""RefreshMonthlyQuota Use Case

Lazy monthly quota reset, run before every credit availability check
instead of on a background timer.
"""

import logging
from datetime import datetime, timedelta
from src.app.repositories.credit_account_repository import CreditAccountRepository
from src.app.repositories.subscription_repository import SubscriptionRepository

logger = logging.getLogger(__name__)


class RefreshMonthlyQuota:
    """
    Use Case: Reset monthly quota when the reset is due

    Business Rules:
    1. Only users with an effective subscription get a quota
       (active or canceled, period not yet ended)
    2. Reset is due when quota_reset_at is NULL or in the past
    3. The quota is set to the product's monthly_credits, never accumulated
    4. Next reset is scheduled a fixed number of days ahead

    Writes are staged on the caller's session; the caller commits.
    """

    def __init__(
        self,
        account_repo: CreditAccountRepository,
        subscription_repo: SubscriptionRepository,
        period_days: int = 30,
    ):
        self.account_repo = account_repo
        self.subscription_repo = subscription_repo
        self.period_days = period_days

    async def execute(self, user_id: int) -> bool:
        """
        Returns:
            True if the quota was reset by this call
        """
        now = datetime.utcnow()
        effective = await self.subscription_repo.get_effective(user_id, now)
        if effective is None:
            return False

        subscription, monthly_credits = effective
        reset = await self.account_repo.reset_quota_if_due(
            user_id,
            monthly_credits,
            now=now,
            reset_at=now + timedelta(days=self.period_days),
        )
        if reset:
            logger.info(
                f"Monthly quota of user {user_id} reset to {monthly_credits} "
                f"(subscription {subscription.id})"
            )
        return reset
