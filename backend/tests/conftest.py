import random
import secrets
import time
from datetime import datetime, timedelta, timezone

import pytest
from eth_account import Account
from fastapi.testclient import TestClient

from tictactoe402.config import Settings
from tictactoe402.main import create_app
from tictactoe402.payment.encoding import encode_header
from tictactoe402.payment.facilitator import Facilitator
from tictactoe402.payment.requirements import build_payment_requirement
from tictactoe402.payment.signatures import authorization_typed_data
from tictactoe402.payment.types import SettleResult, VerifyResult
from tictactoe402.sessions.service import SessionService
from tictactoe402.sessions.store import InMemorySessionStore

PAY_TO = "0x" + "ab" * 20
WALLET = "0xAbCdEf0123456789aBcDeF0123456789ABCDEF01"


class FakeClock:
    def __init__(self, start=datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FixedRandom(random.Random):
    """random() always returns ``value``; choice() stays seeded and deterministic."""

    def __init__(self, value):
        super().__init__(1234)
        self.value = value

    def random(self):
        return self.value


class FakeFacilitator(Facilitator):
    def __init__(self, valid=True, invalid_reason="invalid_signature", settle_ok=True, payer=None, kinds=None):
        self.valid = valid
        self.invalid_reason = invalid_reason
        self.settle_ok = settle_ok
        self.payer = payer
        self.kinds = kinds if kinds is not None else [
            {"x402Version": 2, "scheme": "exact", "network": "eip155:84532"},
        ]
        self.verify_calls = []
        self.settle_calls = []

    def verify(self, payload, requirement):
        self.verify_calls.append(payload)
        if not self.valid:
            return VerifyResult(is_valid=False, invalid_reason=self.invalid_reason)
        return VerifyResult(is_valid=True, payer=self.payer or payload.claimed_signer)

    def settle(self, payload, requirement):
        self.settle_calls.append(payload)
        if not self.settle_ok:
            return SettleResult(success=False, error_reason="insufficient_funds", network=requirement.network)
        return SettleResult(
            success=True,
            transaction="0x" + "11" * 32,
            network=requirement.network,
            payer=payload.claimed_signer,
        )

    def supported(self):
        return self.kinds


def make_settings(**overrides):
    values = dict(
        _env_file=None,
        pay_to_address=PAY_TO,
        network="base-sepolia",
        price_usd="$0.01",
        sweep_interval_seconds=3600,
        optimal_play_probability=1.0,
    )
    values.update(overrides)
    return Settings(**values)


def signed_payload(account, requirement, **authorization_overrides):
    """An exact-scheme payload signed by ``account`` for ``requirement``."""
    authorization = {
        "from": account.address,
        "to": requirement.pay_to_address,
        "value": requirement.amount,
        "validAfter": "0",
        "validBefore": str(int(time.time()) + 600),
        "nonce": "0x" + secrets.token_hex(32),
    }
    authorization.update(authorization_overrides)
    signed = Account.sign_typed_data(
        account.key,
        full_message=authorization_typed_data(
            {**authorization, "from": account.address}, requirement
        ),
    )
    return {
        "x402Version": 2,
        "resource": {"url": "/api/session/start"},
        "accepted": requirement.to_x402(),
        "payload": {
            "signature": "0x" + bytes(signed.signature).hex(),
            "authorization": authorization,
        },
    }


def payment_header(account, requirement, **authorization_overrides):
    return encode_header(signed_payload(account, requirement, **authorization_overrides))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemorySessionStore(ttl_seconds=300, clock=clock)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def requirement(settings):
    return build_payment_requirement(settings)


@pytest.fixture
def facilitator():
    return FakeFacilitator()


@pytest.fixture
def player_first_rng():
    # coin flip < 0.5 -> player moves first; always below optimal_play_probability
    return FixedRandom(0.0)


@pytest.fixture
def service(store, player_first_rng):
    return SessionService(store, optimal_probability=1.0, rng=player_first_rng)


@pytest.fixture
def account():
    return Account.create()


@pytest.fixture
def client(settings, facilitator, store, player_first_rng):
    app = create_app(settings=settings, facilitator=facilitator, store=store, rng=player_first_rng)
    with TestClient(app) as test_client:
        yield test_client
