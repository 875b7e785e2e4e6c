"""
Payment Gate - turns a signed x402 payment into a trusted wallet address.

Flow for a protected request:
1. No payment header: 402 with the encoded requirement, plus whether the
   (untrusted) wallet hint already has a live session
2. Decode the header (undecodable: 402 Invalid Payment)
3. Check the signature locally when possible, then verify with the
   facilitator (rejected: 402 with the facilitator's reason)
4. Under the wallet's lock: if a live session exists, skip settlement and
   mark the request as restoring; otherwise settle (failure: 500, nothing
   created, safe to retry)
5. Hand the verified address to the downstream handler, still under the lock

Verification is free and reversible; settlement is the on-chain charge, so
it only happens when the wallet has no game to resume.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Optional, Tuple

from starlette.concurrency import run_in_threadpool
from web3 import Web3

from tictactoe402.errors import InvalidPaymentError, PaymentRequiredError, SettlementError
from tictactoe402.payment.encoding import PAYMENT_REQUIRED_HEADER, decode_payment_header, encode_header
from tictactoe402.payment.facilitator import Facilitator
from tictactoe402.payment.requirements import payment_required_document
from tictactoe402.payment.signatures import recover_authorization_signer
from tictactoe402.payment.types import PaymentPayload, PaymentRequirement, SettleResult
from tictactoe402.sessions.models import normalize_address, short_address
from tictactoe402.sessions.service import SessionService

logger = logging.getLogger(__name__)


@dataclass
class PaymentContext:
    """What the gate hands to the protected handler."""
    wallet_address: str  # lower-cased verified payer
    restoring: bool
    settlement: Optional[SettleResult] = None


class PaymentGate:
    """Authorizes session starts against one cached ``PaymentRequirement``."""

    def __init__(
        self,
        requirement: PaymentRequirement,
        facilitator: Facilitator,
        sessions: SessionService,
        resource_url: str = "",
        verify_signature_locally: bool = True,
    ):
        self.requirement = requirement
        self.facilitator = facilitator
        self.sessions = sessions
        self.resource_url = resource_url
        self.verify_signature_locally = verify_signature_locally

    def required_headers(self, error: str) -> Dict[str, str]:
        """Encoded ``PaymentRequired`` document for a 402 response."""
        document = payment_required_document(self.requirement, self.resource_url, error=error)
        return {PAYMENT_REQUIRED_HEADER: encode_header(document)}

    def payment_required(self, wallet_hint: Optional[str] = None) -> PaymentRequiredError:
        """402 for a request without payment.

        The hint only tells the client whether it is about to resume a game
        (and will not be charged); it is never used as an identity.
        """
        existing = None
        if wallet_hint and Web3.is_address(wallet_hint.lower()):
            existing = self.sessions.live_session(wallet_hint)

        if existing is not None:
            message = (
                "There is a session open for this wallet. Sign to prove wallet ownership; "
                "restoring a session is not charged."
            )
        else:
            message = "x402 payment header missing"

        extra = {
            "hasExistingSession": existing is not None,
            "sessionExpiresAt": existing.expires_at.isoformat() if existing else None,
        }
        return PaymentRequiredError(
            message,
            extra=extra,
            headers=self.required_headers("Payment required"),
        )

    def _invalid(self, reason: str) -> InvalidPaymentError:
        logger.warning(f"Payment rejected: {reason}")
        return InvalidPaymentError(reason, headers=self.required_headers(reason))

    async def verify(self, payment_header: str) -> Tuple[PaymentPayload, str]:
        """Decode and verify a payment header.

        Returns:
            (payload, lower-cased verified payer address)

        Raises:
            InvalidPaymentError: Undecodable, mis-signed or rejected payment
        """
        try:
            payload = decode_payment_header(payment_header)
        except ValueError as e:
            raise self._invalid(str(e))

        claimed = payload.claimed_signer
        if self.verify_signature_locally and payload.authorization is not None:
            try:
                recovered = recover_authorization_signer(payload, self.requirement)
            except ValueError as e:
                # smart-wallet signatures do not recover; the facilitator still checks them
                logger.warning(f"Local signer recovery skipped: {e}")
            else:
                if claimed is None or recovered.lower() != claimed.lower():
                    raise self._invalid("Signature does not match the authorization signer")

        result = await run_in_threadpool(self.facilitator.verify, payload, self.requirement)
        if not result.is_valid:
            raise self._invalid(result.invalid_reason or "Payment verification failed")

        payer = result.payer or claimed
        if not payer or not Web3.is_address(payer.lower()):
            raise self._invalid("Could not determine the paying wallet")
        if claimed and claimed.lower() != payer.lower():
            raise self._invalid("Verified payer does not match the authorization signer")

        logger.info(f"Payment verified for {short_address(payer)}")
        return payload, normalize_address(payer)

    async def settle(self, payload: PaymentPayload, wallet_address: str) -> SettleResult:
        result = await run_in_threadpool(self.facilitator.settle, payload, self.requirement)
        if not result.success:
            logger.error(f"Settlement failed for {short_address(wallet_address)}: {result.error_reason}")
            raise SettlementError(
                f"Payment was verified but settlement failed: {result.error_reason or 'unknown error'}. "
                "You were not charged and no game was started; please retry."
            )
        logger.info(f"Payment settled for {short_address(wallet_address)}: {result.transaction}")
        return result

    @asynccontextmanager
    async def authorize(
        self,
        payment_header: Optional[str],
        wallet_hint: Optional[str] = None,
    ) -> AsyncIterator[PaymentContext]:
        """Authorize one protected request; the body runs holding the wallet lock.

        Raises:
            PaymentRequiredError: No payment header
            InvalidPaymentError: Payment undecodable or rejected
            SettlementError: Verified payment could not be charged
        """
        if not payment_header:
            raise self.payment_required(wallet_hint)

        payload, wallet_address = await self.verify(payment_header)

        async with self.sessions.store.lock(wallet_address):
            if self.sessions.live_session(wallet_address) is not None:
                logger.info(f"Live session found for {short_address(wallet_address)}, skipping settlement")
                context = PaymentContext(wallet_address=wallet_address, restoring=True)
            else:
                settlement = await self.settle(payload, wallet_address)
                context = PaymentContext(wallet_address=wallet_address, restoring=False, settlement=settlement)
            yield context
