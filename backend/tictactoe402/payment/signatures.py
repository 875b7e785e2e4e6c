"""
Local signer recovery for ``exact`` EVM payments.

An exact-scheme payload is an EIP-3009 ``TransferWithAuthorization`` signed
as EIP-712 typed data over the token's domain. Recovering the signer here
lets the gate reject a payload whose claimed ``from`` is not the key that
signed it before asking the facilitator anything.
"""

from typing import Any, Dict

from eth_account import Account
from eth_account.messages import encode_typed_data
from web3 import Web3

from tictactoe402.payment.types import PaymentPayload, PaymentRequirement

TRANSFER_WITH_AUTHORIZATION_TYPES = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "TransferWithAuthorization": [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "validAfter", "type": "uint256"},
        {"name": "validBefore", "type": "uint256"},
        {"name": "nonce", "type": "bytes32"},
    ],
}


def _nonce_bytes(nonce: Any) -> bytes:
    if not isinstance(nonce, str) or not nonce.startswith("0x"):
        raise ValueError("Authorization nonce must be a 0x-prefixed hex string")
    raw = bytes.fromhex(nonce[2:])
    if len(raw) != 32:
        raise ValueError(f"Authorization nonce must be 32 bytes, got {len(raw)}")
    return raw


def authorization_typed_data(authorization: Dict[str, Any], requirement: PaymentRequirement) -> Dict[str, Any]:
    """Full EIP-712 message for an authorization under the requirement's token domain.

    Raises:
        ValueError: If a field is missing or malformed
    """
    try:
        message = {
            "from": Web3.to_checksum_address(authorization["from"]),
            "to": Web3.to_checksum_address(authorization["to"]),
            "value": int(authorization["value"]),
            "validAfter": int(authorization["validAfter"]),
            "validBefore": int(authorization["validBefore"]),
            "nonce": _nonce_bytes(authorization["nonce"]),
        }
    except KeyError as e:
        raise ValueError(f"Authorization is missing field {e}")
    except TypeError as e:
        raise ValueError(f"Malformed authorization: {str(e)}")

    return {
        "types": TRANSFER_WITH_AUTHORIZATION_TYPES,
        "primaryType": "TransferWithAuthorization",
        "domain": {
            "name": requirement.asset_name,
            "version": requirement.asset_version,
            "chainId": requirement.chain_id,
            "verifyingContract": Web3.to_checksum_address(requirement.asset),
        },
        "message": message,
    }


def recover_authorization_signer(payload: PaymentPayload, requirement: PaymentRequirement) -> str:
    """Address that produced the payload's signature.

    Raises:
        ValueError: If the payload has no EIP-3009 authorization or the
            signature cannot be recovered
    """
    authorization = payload.authorization
    signature = payload.signature
    if authorization is None or signature is None:
        raise ValueError("Payload carries no EIP-3009 authorization")

    typed_data = authorization_typed_data(authorization, requirement)
    try:
        signable = encode_typed_data(full_message=typed_data)
        return Account.recover_message(signable, signature=signature)
    except Exception as e:
        raise ValueError(f"Could not recover signer: {str(e)}")
