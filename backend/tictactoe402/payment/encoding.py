"""Base64 JSON codec for x402 HTTP headers."""

import base64
import binascii
import json
from typing import Any, Dict

from tictactoe402.payment.types import PaymentPayload

PAYMENT_HEADER = "PAYMENT-SIGNATURE"
LEGACY_PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_REQUIRED_HEADER = "PAYMENT-REQUIRED"
PAYMENT_RESPONSE_HEADER = "PAYMENT-RESPONSE"


def encode_header(data: Dict[str, Any]) -> str:
    return base64.b64encode(json.dumps(data, separators=(",", ":")).encode("utf-8")).decode("ascii")


def decode_header(value: str) -> Any:
    """Decode a base64-encoded JSON header value.

    Raises:
        ValueError: If the value is not base64 or not JSON
    """
    try:
        decoded = base64.b64decode(value.strip(), validate=True)
        return json.loads(decoded.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to decode payment header: {str(e)}")


def decode_payment_header(value: str) -> PaymentPayload:
    return PaymentPayload.from_dict(decode_header(value))
