"""
x402 payment types.

``PaymentRequirement`` is what the server asks for (built once at start-up),
``PaymentPayload`` is what a client sends back (untrusted until verified),
and the two result types are what the facilitator answers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

X402_VERSION = 2


@dataclass(frozen=True)
class PaymentRequirement:
    """Price and recipient for one game session. Immutable after start-up."""
    scheme: str
    network: str  # CAIP-2 id, e.g. "eip155:84532"
    price: str  # human price, e.g. "$0.01"
    amount: str  # price in the asset's smallest unit
    asset: str  # ERC20 contract (USDC)
    pay_to_address: str
    resource_description: str
    max_timeout_seconds: int = 300
    asset_name: str = "USDC"  # EIP-712 domain name of the token
    asset_version: str = "2"
    mime_type: str = "application/json"

    @property
    def chain_id(self) -> int:
        return int(self.network.split(":", 1)[1])

    def to_x402(self) -> Dict[str, Any]:
        """Requirement entry as it appears in ``accepts`` and facilitator calls."""
        return {
            "scheme": self.scheme,
            "network": self.network,
            "amount": self.amount,
            "asset": self.asset,
            "payTo": self.pay_to_address,
            "maxTimeoutSeconds": self.max_timeout_seconds,
            "extra": {"name": self.asset_name, "version": self.asset_version},
        }


@dataclass
class PaymentPayload:
    """Decoded payment artifact from the request header."""
    x402_version: int
    payload: Dict[str, Any]
    raw: Dict[str, Any] = field(repr=False)
    accepted: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Any) -> PaymentPayload:
        """Parse a decoded header.

        Raises:
            ValueError: If required fields are missing or mistyped
        """
        if not isinstance(data, dict):
            raise ValueError("Payment payload must be a JSON object")
        payload = data.get("payload")
        if not isinstance(payload, dict):
            raise ValueError("Payment payload is missing 'payload'")
        version = data.get("x402Version", X402_VERSION)
        if not isinstance(version, int) or isinstance(version, bool):
            raise ValueError(f"Unsupported x402Version: {version!r}")
        accepted = data.get("accepted")
        return cls(
            x402_version=version,
            payload=payload,
            raw=data,
            accepted=accepted if isinstance(accepted, dict) else None,
        )

    @property
    def signature(self) -> Optional[str]:
        value = self.payload.get("signature")
        return value if isinstance(value, str) else None

    @property
    def authorization(self) -> Optional[Dict[str, Any]]:
        value = self.payload.get("authorization")
        return value if isinstance(value, dict) else None

    @property
    def claimed_signer(self) -> Optional[str]:
        """Address the client says signed the authorization. Not trusted on its own."""
        authorization = self.authorization or {}
        value = authorization.get("from")
        return value if isinstance(value, str) else None


@dataclass
class VerifyResult:
    is_valid: bool
    invalid_reason: Optional[str] = None
    payer: Optional[str] = None


@dataclass
class SettleResult:
    success: bool
    error_reason: Optional[str] = None
    transaction: Optional[str] = None
    network: Optional[str] = None
    payer: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": self.success,
            "transaction": self.transaction or "",
            "network": self.network or "",
        }
        if self.payer:
            result["payer"] = self.payer
        if self.error_reason:
            result["errorReason"] = self.error_reason
        return result
