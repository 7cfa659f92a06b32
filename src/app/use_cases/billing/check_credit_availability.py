"""CheckCreditAvailability Use Case

Tells the feature gate which balance the next use would be charged to.
"""

from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.credit_account_repository import CreditAccountRepository
from .dtos import CreditAvailabilityDTO
from .refresh_monthly_quota import RefreshMonthlyQuota


class CheckCreditAvailability:
    """
    Use Case: Which credit can be consumed now

    Priority: monthly quota, then one-time credits, then the one-shot free
    use. The monthly quota is refreshed first so an elapsed period is
    reflected before the decision.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        account_repo: CreditAccountRepository,
        quota_refresher: RefreshMonthlyQuota,
    ):
        self.uow = uow
        self.account_repo = account_repo
        self.quota_refresher = quota_refresher

    async def execute(self, user_id: int) -> Result[CreditAvailabilityDTO]:
        """
        Errors:
            ACCOUNT_NOT_FOUND: Unknown user
            CHECK_CREDIT_FAILED: Storage failure
        """
        try:
            if await self.quota_refresher.execute(user_id):
                await self.uow.commit()

            account = await self.account_repo.get_by_id(user_id)
            if account is None:
                return Return.err(
                    Error(
                        code="ACCOUNT_NOT_FOUND",
                        message=f"No credit account found for user {user_id}",
                    )
                )

            kind = account.available_kind()
            return Return.ok(
                CreditAvailabilityDTO(
                    user_id=user_id,
                    credit_kind=kind,
                    can_consume=kind is not None,
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="CHECK_CREDIT_FAILED",
                    message="Failed to check credit availability",
                    reason=str(e),
                )
            )
