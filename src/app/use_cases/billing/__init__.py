"""Billing domain use cases"""
from .check_credit_availability import CheckCreditAvailability
from .consume_credit import ConsumeCredit
from .get_balance import GetBalance
from .refresh_monthly_quota import RefreshMonthlyQuota
from .subscriptions import GetEffectiveSubscription, ListSubscriptions, CancelSubscription
from .dtos import (
    ConsumeCommandDTO,
    CreditAvailabilityDTO,
    BalanceResponseDTO,
    ConsumeResponseDTO,
    SubscriptionDTO,
    EffectiveSubscriptionDTO,
)

__all__ = [
    "CheckCreditAvailability",
    "ConsumeCredit",
    "GetBalance",
    "RefreshMonthlyQuota",
    "GetEffectiveSubscription",
    "ListSubscriptions",
    "CancelSubscription",
    "ConsumeCommandDTO",
    "CreditAvailabilityDTO",
    "BalanceResponseDTO",
    "ConsumeResponseDTO",
    "SubscriptionDTO",
    "EffectiveSubscriptionDTO",
]
