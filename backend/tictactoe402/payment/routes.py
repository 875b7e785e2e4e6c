"""
Payment API Routes

Lets clients pre-fetch the payment requirement before attempting payment.
"""

from typing import Any, Dict

from fastapi import APIRouter, Request

from tictactoe402.payment.requirements import payment_required_document

router = APIRouter(tags=["payment"])


@router.get("/payment-requirements")
async def get_payment_requirements(request: Request) -> Dict[str, Any]:
    """The cached requirement in x402 ``PaymentRequired`` form (not base64)."""
    gate = request.app.state.payment_gate
    return payment_required_document(gate.requirement, gate.resource_url)
