import pytest

from tictactoe402.payment.encoding import decode_header, decode_payment_header, encode_header
from tictactoe402.payment.requirements import (
    build_payment_requirement,
    is_supported,
    payment_required_document,
    price_to_atomic_units,
)

from conftest import PAY_TO, make_settings


@pytest.mark.parametrize(
    "price, expected",
    [("$0.01", "10000"), ("0.01", "10000"), ("$1", "1000000"), ("$1,250.5", "1250500000")],
)
def test_price_to_atomic_units(price, expected):
    assert price_to_atomic_units(price) == expected


@pytest.mark.parametrize("price", ["$0", "-1", "free", "$0.0000001"])
def test_price_to_atomic_units_rejects_bad_prices(price):
    with pytest.raises(ValueError):
        price_to_atomic_units(price)


def test_build_requirement_for_base_sepolia():
    requirement = build_payment_requirement(make_settings())

    assert requirement.scheme == "exact"
    assert requirement.network == "eip155:84532"
    assert requirement.chain_id == 84532
    assert requirement.amount == "10000"
    assert requirement.asset == "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
    assert requirement.pay_to_address.lower() == PAY_TO
    assert requirement.asset_name == "USDC"


def test_build_requirement_for_base_mainnet():
    requirement = build_payment_requirement(make_settings(network="base"))

    assert requirement.network == "eip155:8453"
    assert requirement.asset_name == "USD Coin"


def test_build_requirement_rejects_bad_config():
    with pytest.raises(ValueError):
        build_payment_requirement(make_settings(network="solana"))
    with pytest.raises(ValueError):
        build_payment_requirement(make_settings(pay_to_address="not-an-address"))


def test_payment_required_document(requirement):
    document = payment_required_document(requirement, "/api/session/start", error="Payment required")

    assert document["x402Version"] == 2
    assert document["error"] == "Payment required"
    assert document["resource"]["url"] == "/api/session/start"
    accepted = document["accepts"][0]
    assert accepted["payTo"] == requirement.pay_to_address
    assert accepted["amount"] == "10000"
    assert accepted["extra"] == {"name": "USDC", "version": "2"}


def test_is_supported_accepts_caip2_and_legacy_names(requirement):
    assert is_supported(requirement, [{"scheme": "exact", "network": "eip155:84532"}])
    assert is_supported(requirement, [{"scheme": "exact", "network": "base-sepolia"}])
    assert not is_supported(requirement, [{"scheme": "exact", "network": "eip155:8453"}])
    assert not is_supported(requirement, [{"scheme": "upto", "network": "eip155:84532"}])


def test_header_codec():
    assert decode_header(encode_header({"a": [1, None]})) == {"a": [1, None]}

    payload = decode_payment_header(encode_header({
        "x402Version": 2,
        "payload": {"signature": "0x01", "authorization": {"from": "0xabc"}},
    }))
    assert payload.x402_version == 2
    assert payload.claimed_signer == "0xabc"


@pytest.mark.parametrize(
    "value",
    ["not base64!!", encode_header(["list"]), encode_header({"x402Version": 2}), "e30="],
)
def test_decode_payment_header_rejects_garbage(value):
    with pytest.raises(ValueError):
        decode_payment_header(value)
