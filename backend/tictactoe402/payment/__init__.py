"""
Payment Module - x402 payment gate for game sessions.

Handles payment verification and settlement through an x402 facilitator.
"""

from tictactoe402.payment.facilitator import Facilitator, FacilitatorError, HttpFacilitator
from tictactoe402.payment.gate import PaymentContext, PaymentGate
from tictactoe402.payment.middleware import PaymentGateMiddleware
from tictactoe402.payment.requirements import build_payment_requirement
from tictactoe402.payment.types import PaymentPayload, PaymentRequirement, SettleResult, VerifyResult

__all__ = [
    "Facilitator",
    "FacilitatorError",
    "HttpFacilitator",
    "PaymentContext",
    "PaymentGate",
    "PaymentGateMiddleware",
    "build_payment_requirement",
    "PaymentPayload",
    "PaymentRequirement",
    "SettleResult",
    "VerifyResult",
]
