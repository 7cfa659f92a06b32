"""Payment event classifier

Maps a canonical PaymentEvent to an outcome and a payment kind.
"""

from src.domain.payment_event import EventOutcome, PaymentEvent, PaymentKind

SUCCESS_STATUSES = frozenset({"succeeded", "success", "paid", "completed", "done"})
FAILURE_STATUSES = frozenset(
    {"failed", "fail", "canceled", "cancelled", "error", "expired", "declined"}
)

SUCCESS_EVENTS = frozenset({"payment.success", "subscription.recurring.payment.success"})
FAILURE_EVENTS = frozenset({"payment.failed", "subscription.recurring.payment.failed"})
CANCELLATION_EVENTS = frozenset({"subscription.cancelled", "subscription.canceled"})

FIRST_PAYMENT_EVENTS = frozenset({"payment.success", "payment.failed"})
RECURRING_PAYMENT_EVENTS = frozenset(
    {"subscription.recurring.payment.success", "subscription.recurring.payment.failed"}
)


def classify_outcome(event: PaymentEvent) -> EventOutcome:
    """
    Decide what the event reports

    Precedence:
    1. cancellation event type
    2. explicit paid=true flag (wins over a contradicting status text)
    3. status vocabulary
    4. success/failure event type
    5. anything else, including an unknown status alone, is indeterminate
    """
    if event.event_type in CANCELLATION_EVENTS:
        return EventOutcome.CANCELLATION

    if event.paid is True:
        return EventOutcome.SUCCESS

    status = event.status.lower() if event.status else None
    if status in SUCCESS_STATUSES:
        return EventOutcome.SUCCESS
    if status in FAILURE_STATUSES:
        return EventOutcome.FAILURE

    if event.event_type in SUCCESS_EVENTS:
        return EventOutcome.SUCCESS
    if event.event_type in FAILURE_EVENTS:
        return EventOutcome.FAILURE
    return EventOutcome.INDETERMINATE


def classify_kind(event: PaymentEvent) -> PaymentKind:
    if event.event_type in RECURRING_PAYMENT_EVENTS:
        return PaymentKind.RECURRING_PAYMENT
    if event.event_type in FIRST_PAYMENT_EVENTS:
        return PaymentKind.FIRST_PAYMENT
    return PaymentKind.UNCLASSIFIED
