"""Payment domain use cases"""
from .reconcile_payment_event import ReconcilePaymentEvent
from .register_payment_intent import RegisterPaymentIntent
from .list_products import ListProducts
from .normalizer import PayloadParseError, normalize_body, normalize_payload, parse_body
from .classifier import classify_kind, classify_outcome
from .dtos import (
    PaymentWebhookConfig,
    WebhookCommandDTO,
    WebhookAckDTO,
    RegisterPaymentIntentCommandDTO,
    PaymentIntentResponseDTO,
    ProductDTO,
)

__all__ = [
    "ReconcilePaymentEvent",
    "RegisterPaymentIntent",
    "ListProducts",
    "PayloadParseError",
    "normalize_body",
    "normalize_payload",
    "parse_body",
    "classify_kind",
    "classify_outcome",
    "PaymentWebhookConfig",
    "WebhookCommandDTO",
    "WebhookAckDTO",
    "RegisterPaymentIntentCommandDTO",
    "PaymentIntentResponseDTO",
    "ProductDTO",
]
