"""
Payment requirement construction.

Turns configuration (network name, "$0.01" price, recipient) into the
immutable ``PaymentRequirement`` served to clients and sent to the
facilitator.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Optional

from web3 import Web3

from tictactoe402.config import ZERO_ADDRESS, Settings
from tictactoe402.payment.types import X402_VERSION, PaymentRequirement

logger = logging.getLogger(__name__)

USDC_DECIMALS = 6


@dataclass(frozen=True)
class NetworkConfig:
    name: str
    chain_id: int
    usdc_address: str
    usdc_name: str  # EIP-712 domain name of the USDC contract

    @property
    def caip2(self) -> str:
        return f"eip155:{self.chain_id}"


NETWORKS: Dict[str, NetworkConfig] = {
    "base-sepolia": NetworkConfig(
        name="base-sepolia",
        chain_id=84532,
        usdc_address="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        usdc_name="USDC",
    ),
    "base": NetworkConfig(
        name="base",
        chain_id=8453,
        usdc_address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        usdc_name="USD Coin",
    ),
}


def price_to_atomic_units(price: str, decimals: int = USDC_DECIMALS) -> str:
    """Convert a dollar price such as "$0.01" into token base units ("10000").

    Raises:
        ValueError: If the price is not a positive number or is finer than
            the token's precision
    """
    text = price.strip().lstrip("$").replace(",", "")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Invalid price: {price!r}")
    if not amount.is_finite() or amount <= 0:
        raise ValueError(f"Price must be positive: {price!r}")
    units = amount * (Decimal(10) ** decimals)
    if units != units.to_integral_value():
        raise ValueError(f"Price {price!r} has more than {decimals} decimal places")
    return str(int(units))


def get_network(name: str) -> NetworkConfig:
    try:
        return NETWORKS[name.lower()]
    except KeyError:
        raise ValueError(f"Unsupported network: {name} (expected one of {sorted(NETWORKS)})")


def build_payment_requirement(settings: Settings) -> PaymentRequirement:
    """Build the process-wide payment requirement from settings.

    Raises:
        ValueError: On an unknown network, bad price or malformed address
    """
    network = get_network(settings.network)

    if not Web3.is_address(settings.pay_to_address):
        raise ValueError(f"Invalid pay_to_address: {settings.pay_to_address}")
    if settings.pay_to_address.lower() == ZERO_ADDRESS:
        logger.warning("PAY_TO_ADDRESS is not set; payments would go to the zero address")

    asset = settings.asset_address or network.usdc_address
    if not Web3.is_address(asset):
        raise ValueError(f"Invalid asset_address: {asset}")

    return PaymentRequirement(
        scheme="exact",
        network=network.caip2,
        price=settings.price_usd,
        amount=price_to_atomic_units(settings.price_usd),
        asset=Web3.to_checksum_address(asset),
        pay_to_address=Web3.to_checksum_address(settings.pay_to_address),
        resource_description=settings.resource_description,
        max_timeout_seconds=settings.max_timeout_seconds,
        asset_name=network.usdc_name,
    )


def payment_required_document(
    requirement: PaymentRequirement,
    resource_url: str = "",
    error: Optional[str] = None,
) -> Dict[str, Any]:
    """The x402 ``PaymentRequired`` object for a 402 header or a pre-fetch."""
    document: Dict[str, Any] = {
        "x402Version": X402_VERSION,
        "resource": {
            "url": resource_url,
            "description": requirement.resource_description,
            "mimeType": requirement.mime_type,
        },
        "accepts": [requirement.to_x402()],
    }
    if error:
        document["error"] = error
    return document


def is_supported(requirement: PaymentRequirement, kinds: Iterable[Dict[str, Any]]) -> bool:
    """Whether a facilitator ``/supported`` kind list covers the requirement.

    Facilitators list networks either as CAIP-2 ids or legacy names.
    """
    legacy_names = {n.name for n in NETWORKS.values() if n.caip2 == requirement.network}
    for kind in kinds:
        if kind.get("scheme") != requirement.scheme:
            continue
        network = kind.get("network")
        if network == requirement.network or network in legacy_names:
            return True
    return False
