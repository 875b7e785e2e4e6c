"""
Facilitator client for x402 payments.

The facilitator is the external service that checks a signed payment
(verify) and submits it on-chain (settle). ``Facilitator`` is the capability
the payment gate depends on; ``HttpFacilitator`` talks to a real one over
HTTP and tests substitute their own implementation.

Every failure mode (timeout, connection error, non-2xx status, bad JSON) is
reported as an unsuccessful result, never as success.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from tictactoe402.payment.types import PaymentPayload, PaymentRequirement, SettleResult, VerifyResult

logger = logging.getLogger(__name__)

DEFAULT_FACILITATOR_URL = "https://x402.org/facilitator"
DEFAULT_TIMEOUT_SECONDS = 10.0


class Facilitator(ABC):
    """Verify / settle capability of an x402 facilitator."""

    @abstractmethod
    def verify(self, payload: PaymentPayload, requirement: PaymentRequirement) -> VerifyResult:
        ...

    @abstractmethod
    def settle(self, payload: PaymentPayload, requirement: PaymentRequirement) -> SettleResult:
        ...

    @abstractmethod
    def supported(self) -> List[Dict[str, Any]]:
        """Payment kinds (scheme + network) the facilitator handles."""


class FacilitatorError(Exception):
    """Facilitator unreachable or answered with something unusable."""


class HttpFacilitator(Facilitator):
    """Facilitator reached over HTTP (``/verify``, ``/settle``, ``/supported``)."""

    def __init__(
        self,
        base_url: str = DEFAULT_FACILITATOR_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the facilitator client.

        Args:
            base_url: Facilitator root URL
            timeout: Per-request timeout in seconds (connect and read)
            session: Optional requests session, mainly for connection reuse
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def verify(self, payload: PaymentPayload, requirement: PaymentRequirement) -> VerifyResult:
        try:
            data = self._post("verify", payload, requirement)
        except FacilitatorError as e:
            logger.error(f"Payment verification failed: {e}")
            return VerifyResult(is_valid=False, invalid_reason=str(e))

        is_valid = data.get("isValid") is True
        return VerifyResult(
            is_valid=is_valid,
            invalid_reason=None if is_valid else (data.get("invalidReason") or "Payment verification failed"),
            payer=data.get("payer"),
        )

    def settle(self, payload: PaymentPayload, requirement: PaymentRequirement) -> SettleResult:
        try:
            data = self._post("settle", payload, requirement)
        except FacilitatorError as e:
            logger.error(f"Settlement failed: {e}")
            return SettleResult(success=False, error_reason=str(e), network=requirement.network)

        success = data.get("success") is True
        return SettleResult(
            success=success,
            error_reason=None if success else (data.get("errorReason") or data.get("error") or "Settlement failed"),
            transaction=data.get("transaction") or data.get("txHash"),
            network=data.get("network") or requirement.network,
            payer=data.get("payer"),
        )

    def supported(self) -> List[Dict[str, Any]]:
        """
        Raises:
            FacilitatorError: If the facilitator cannot be queried
        """
        try:
            response = self.session.get(f"{self.base_url}/supported", timeout=self.timeout)
        except requests.RequestException as e:
            raise FacilitatorError(f"Facilitator unreachable: {str(e)}")
        if response.status_code != 200:
            raise FacilitatorError(f"Facilitator /supported returned HTTP {response.status_code}")
        try:
            kinds = response.json().get("kinds", [])
        except (ValueError, AttributeError):
            raise FacilitatorError("Facilitator /supported returned invalid JSON")
        return [kind for kind in kinds if isinstance(kind, dict)]

    def _post(self, action: str, payload: PaymentPayload, requirement: PaymentRequirement) -> Dict[str, Any]:
        request_body = {
            "x402Version": payload.x402_version,
            "paymentPayload": payload.raw,
            "paymentRequirements": requirement.to_x402(),
        }
        try:
            response = self.session.post(
                f"{self.base_url}/{action}",
                json=request_body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise FacilitatorError(f"Facilitator {action} timed out after {self.timeout}s")
        except requests.RequestException as e:
            raise FacilitatorError(f"Facilitator {action} request failed: {str(e)}")

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code != 200:
            # facilitators put the rejection reason in the body of a 400
            if isinstance(data, dict) and (data.get("invalidReason") or data.get("errorReason")):
                return data
            raise FacilitatorError(f"Facilitator {action} returned HTTP {response.status_code}")
        if not isinstance(data, dict):
            raise FacilitatorError(f"Facilitator {action} returned invalid JSON")
        return data
