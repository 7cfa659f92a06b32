"""ConsumeCredit Use Case

Charges one feature use against a user's balances with row-level locking
so concurrent uses cannot both spend the last credit.
"""

import logging
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.credit_account_repository import CreditAccountRepository
from src.domain.credit_account import CreditAccount
from .dtos import BalanceResponseDTO, ConsumeCommandDTO, ConsumeResponseDTO
from .refresh_monthly_quota import RefreshMonthlyQuota

logger = logging.getLogger(__name__)


class ConsumeCredit:
    """
    Use Case: Consume one credit

    Business Rules:
    1. Monthly quota is refreshed before anything is charged
    2. Without an explicit kind: monthly, then one_time, then free
    3. An explicit kind is charged only when that balance is funded
    4. Counters never go below zero
    5. The free use flips free_generation_used once
    6. Pessimistic locking: SELECT FOR UPDATE serializes concurrent uses

    Flow:
    1. Refresh monthly quota
    2. Get account with lock (SELECT FOR UPDATE)
    3. Pick the balance to charge (or use the requested one)
    4. Apply the floored decrement / flag flip
    5. Commit and return the new balances
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

    async def execute(self, command: ConsumeCommandDTO) -> Result[ConsumeResponseDTO]:
        """
        Execute credit consumption

        Args:
            command: ConsumeCommandDTO with user_id and optional credit_kind

        Returns:
            Result[ConsumeResponseDTO]: Charged balance and new balances, or error

        Errors:
            ACCOUNT_NOT_FOUND: Unknown user
            INSUFFICIENT_CREDIT: Nothing left to charge
            CONSUME_CREDIT_FAILED: Storage failure
        """
        try:
            # Step 1: Lazy monthly reset
            await self.quota_refresher.execute(command.user_id)

            # Step 2: Get account with pessimistic lock (SELECT FOR UPDATE)
            account = await self.account_repo.get_by_id(command.user_id, for_update=True)
            if account is None:
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="ACCOUNT_NOT_FOUND",
                        message=f"No credit account found for user {command.user_id}",
                    )
                )

            # Step 3: Pick balance; a requested kind must still be funded
            kind = command.credit_kind or account.available_kind()
            if kind is None or not account.has_balance(kind):
                # Keep a quota reset staged by step 1
                await self.uow.commit()
                return Return.err(
                    Error(
                        code="INSUFFICIENT_CREDIT",
                        message="No credits available",
                        reason=(
                            f"credits={account.credits}, monthly_quota={account.monthly_quota}, "
                            f"free_generation_used={account.free_generation_used}"
                        ),
                    )
                )

            # Step 4: Charge
            await self.account_repo.consume(command.user_id, kind)

            # Step 5: Commit
            await self.uow.commit()

            updated = await self.account_repo.get_by_id(command.user_id)
            logger.info(f"User {command.user_id} consumed one {kind.value} credit")

            return Return.ok(
                ConsumeResponseDTO(
                    credit_kind=kind,
                    balance=to_balance_dto(updated),
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="CONSUME_CREDIT_FAILED",
                    message="Failed to consume credit",
                    reason=str(e),
                )
            )


def to_balance_dto(account: CreditAccount) -> BalanceResponseDTO:
    return BalanceResponseDTO(
        user_id=account.id,
        credits=account.credits,
        monthly_quota=account.monthly_quota,
        quota_reset_at=account.quota_reset_at,
        free_generation_used=account.free_generation_used,
        last_updated=account.updated_at,
    )
