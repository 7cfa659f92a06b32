"""Get Balance Use Case

Retrieves a user's current credit balances.
"""

from libs.result import Result, Return, Error
from src.app.repositories.credit_account_repository import CreditAccountRepository
from src.app.use_cases.billing.consume_credit import to_balance_dto
from src.app.use_cases.billing.dtos import BalanceResponseDTO


class GetBalance:
    """
    Get Balance Use Case

    Read-only operation that returns one-time credits, monthly quota and
    the free-use flag as stored. The quota is not refreshed here; the
    availability check does that.
    """

    def __init__(self, account_repo: CreditAccountRepository):
        """
        Initialize GetBalance use case

        Args:
            account_repo: Repository for accessing credit accounts
        """
        self.account_repo = account_repo

    async def execute(self, user_id: int) -> Result[BalanceResponseDTO]:
        """
        Execute get balance operation

        Args:
            user_id: The user identifier

        Returns:
            Result[BalanceResponseDTO]: Success with balance data or error

        Errors:
            ACCOUNT_NOT_FOUND: User has no credit account
        """
        account = await self.account_repo.get_by_id(user_id)

        if not account:
            return Return.err(
                Error(
                    code="ACCOUNT_NOT_FOUND",
                    message=f"No credit account found for user {user_id}",
                )
            )

        return Return.ok(to_balance_dto(account))
