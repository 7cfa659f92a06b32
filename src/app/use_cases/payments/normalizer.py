"""Payment webhook payload normalizer

Turns a JSON or form-encoded webhook body into a canonical PaymentEvent.
Providers rename fields freely and sometimes wrap them in a "data" or
"payload" envelope, so each canonical field is resolved over an ordered
list of aliases.
"""

import json
from typing import Any, Dict, Iterable, Optional
from urllib.parse import parse_qsl

from src.domain.payment_event import PaymentEvent

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

WRAPPER_KEYS = ("data", "payload")

EVENT_TYPE_KEYS = ("type", "eventType", "event_type", "event")
ORDER_ID_KEYS = (
    "orderId", "order_id",
    "contractId", "contract_id",
    "invoiceId", "invoice_id",
    "paymentId", "payment_id",
    "id",
)
PARENT_ORDER_ID_KEYS = (
    "parentContractId", "parent_contract_id",
    "parentOrderId", "parent_order_id",
)
STATUS_KEYS = ("status", "paymentStatus", "payment_status", "result")
PAID_KEYS = ("paid", "isPaid", "success")
AMOUNT_KEYS = ("amount", "sum", "price")
CURRENCY_KEYS = ("currency",)
BUYER_EMAIL_KEYS = ("buyerEmail", "buyer_email", "email")
OFFER_ID_KEYS = ("productId", "product_id", "offerId", "offer_id")
CUSTOM_FIELDS_KEYS = ("customFields", "custom_fields")
API_KEY_KEYS = ("apiKey", "api_key", "key")

TRUE_STRINGS = ("true", "1", "yes")
FALSE_STRINGS = ("false", "0", "no")


class PayloadParseError(ValueError):
    """Body is neither a JSON object nor form data"""


def parse_body(body: bytes, content_type: Optional[str] = None) -> Dict[str, Any]:
    """
    Decode a webhook body into a dict

    JSON is tried first unless the content type announces a form, in which
    case form decoding goes first.

    Raises:
        PayloadParseError: body is empty or undecodable
    """
    if not body or not body.strip():
        raise PayloadParseError("empty body")

    decoders = (_decode_json, _decode_form)
    if content_type and content_type.split(";")[0].strip().lower() == FORM_CONTENT_TYPE:
        decoders = (_decode_form, _decode_json)

    for decoder in decoders:
        decoded = decoder(body)
        if decoded is not None:
            return decoded

    raise PayloadParseError("invalid body: expected a JSON object or form data")


def _decode_json(body: bytes) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None
    return value if isinstance(value, dict) else None


def _decode_form(body: bytes) -> Optional[Dict[str, Any]]:
    try:
        pairs = parse_qsl(body.decode("utf-8"), keep_blank_values=True, strict_parsing=True)
    except (ValueError, UnicodeDecodeError):
        return None
    if not pairs:
        return None
    return {key: value for key, value in pairs}


def get_nested(raw: Dict[str, Any], key: str) -> Any:
    """Value under `key` at top level, else inside a known wrapper"""
    if key in raw:
        return raw[key]
    for wrapper in WRAPPER_KEYS:
        container = raw.get(wrapper)
        if isinstance(container, dict) and key in container:
            return container[key]
    return None


def get_path(raw: Dict[str, Any], path: Iterable[str]) -> Any:
    current: Any = raw
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def value_to_string(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        text = str(value).strip()
        return text or None
    return None


def extract_string(raw: Dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        text = value_to_string(get_nested(raw, key))
        if text is not None:
            return text
    return None


def extract_bool(raw: Dict[str, Any], keys: Iterable[str]) -> Optional[bool]:
    for key in keys:
        value = get_nested(raw, key)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            text = value.strip().lower()
            if text in TRUE_STRINGS:
                return True
            if text in FALSE_STRINGS:
                return False
    return None


def extract_custom_fields(raw: Dict[str, Any]) -> Any:
    value = None
    for key in CUSTOM_FIELDS_KEYS:
        value = get_nested(raw, key)
        if value is not None:
            break
    if isinstance(value, str):
        stripped = value.strip()
        # Form bodies carry custom fields as a JSON string
        if stripped.startswith("{") or stripped.startswith("["):
            try:
                return json.loads(stripped)
            except ValueError:
                return value
    return value


def extract_api_key(raw: Dict[str, Any]) -> Optional[str]:
    """Shared secret embedded in the body, if the provider put it there"""
    return extract_string(raw, API_KEY_KEYS)


def normalize_payload(raw: Dict[str, Any]) -> PaymentEvent:
    """Build the canonical event from a decoded body"""
    event_type = extract_string(raw, EVENT_TYPE_KEYS)
    currency = extract_string(raw, CURRENCY_KEYS)

    buyer_email = value_to_string(get_path(raw, ("buyer", "email")))
    if buyer_email is None:
        buyer_email = extract_string(raw, BUYER_EMAIL_KEYS)

    product_offer_id = value_to_string(get_path(raw, ("product", "id")))
    if product_offer_id is None:
        product_offer_id = extract_string(raw, OFFER_ID_KEYS)

    return PaymentEvent(
        event_type=event_type.lower() if event_type else None,
        order_id=extract_string(raw, ORDER_ID_KEYS),
        parent_order_id=extract_string(raw, PARENT_ORDER_ID_KEYS),
        status=extract_string(raw, STATUS_KEYS),
        paid=extract_bool(raw, PAID_KEYS),
        amount=extract_string(raw, AMOUNT_KEYS),
        currency=currency.upper() if currency else None,
        buyer_email=buyer_email,
        product_offer_id=product_offer_id,
        custom_fields=extract_custom_fields(raw),
        raw=raw,
    )


def normalize_body(body: bytes, content_type: Optional[str] = None) -> PaymentEvent:
    return normalize_payload(parse_body(body, content_type))
