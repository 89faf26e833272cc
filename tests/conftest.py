import hashlib
import hmac
import json
import time
from decimal import Decimal
from typing import Dict, List, Optional
from unittest.mock import patch

import httpx
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from paygate.core.config import FeeOracleConfig
from paygate.core.exceptions import IdempotencyError, NotFoundError, PaymentStateError
from paygate.core.limiter import limiter
from paygate.main import app
from paygate.routes.payments import get_payment_store
from paygate.routes.transactions import get_transaction_service
from paygate.schemas.records import (
    CurrencyType,
    Network,
    Payment,
    PaymentStatus,
    Store,
    Transaction,
    Wallet,
)
from paygate.services.fee_oracle import FeeOracle
from paygate.services.notifications import NotificationDispatcher
from paygate.services.transaction_service import TransactionService

HMAC_SECRET = "test_secret_key"

STORE_BTC_WALLET = "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"
STORE_DOGE_WALLET = "DH5yaieqoZN36fDVciNyRueRGvGLR3mr7L"

FEE_ORACLE_URL = "https://fees.test/api/v1/fees/recommended"

RECOMMENDED_FEES = {
    "fastestFee": 20,
    "halfHourFee": 15,
    "hourFee": 10,
    "economyFee": 5,
    "minimumFee": 1,
}


class InMemoryPaymentStore:
    """PaymentStore stand-in holding Payment records in a dict."""

    def __init__(self):
        self.payments: Dict[str, Payment] = {}

    def add(self, payment: Payment) -> Payment:
        self.payments[payment.id] = payment
        return payment

    async def find_payment(self, payment_id: str) -> Payment:
        if payment_id not in self.payments:
            raise NotFoundError("Payment", payment_id)
        return self.payments[payment_id]

    async def mark_paid(self, payment_id: str, payment_type: Optional[str] = None) -> Payment:
        payment = await self.find_payment(payment_id)
        if payment.cancelled:
            raise PaymentStateError(payment_id, "Cancelled payments cannot be settled")
        payment = payment.model_copy(update={"status": PaymentStatus.PAID, "type": payment_type})
        return self.add(payment)

    async def cancel(self, payment_id: str) -> Payment:
        payment = await self.find_payment(payment_id)
        return self.add(payment.model_copy(update={"cancelled": True}))


class InMemoryTransactionStore:
    """TransactionStore stand-in; tx_hash uniqueness behaves like the database index."""

    def __init__(self):
        self.transactions: List[Transaction] = []

    async def exists_with_tx_hash(self, tx_hash: str) -> bool:
        return any(t.tx_hash == tx_hash for t in self.transactions)

    async def insert(self, record: Transaction) -> Transaction:
        if record.tx_hash is not None and await self.exists_with_tx_hash(record.tx_hash):
            raise IdempotencyError(record.tx_hash)
        created = record.model_copy(update={"id": str(ObjectId())})
        self.transactions.append(created)
        return created

    async def find_by_tx_hash(self, tx_hash: str) -> Optional[Transaction]:
        return next((t for t in self.transactions if t.tx_hash == tx_hash), None)

    async def find_latest_for_payment(self, payment_id: str, wallet_only: bool = False) -> Optional[Transaction]:
        latest = None
        for t in self.transactions:
            if t.payment_id != payment_id or (wallet_only and t.wallet_for_transaction is None):
                continue
            # later inserts win ties
            if latest is None or t.updated >= latest.updated:
                latest = t
        return latest

    async def count_for_payment(self, payment_id: str) -> int:
        return sum(1 for t in self.transactions if t.payment_id == payment_id)


class RecordingMailer:
    """Mailer stand-in that remembers what it was asked to send."""

    def __init__(self, error: Exception = None):
        self.sent = []
        self.error = error

    async def send_mail(self, message) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append(message)
        return True


def make_store(**overrides) -> Store:
    data = {
        "id": str(ObjectId()),
        "name": "Corner Shop",
        "wallets": [
            Wallet(currency=CurrencyType.BITCOIN, value=STORE_BTC_WALLET),
            Wallet(currency=CurrencyType.DOGE, value=STORE_DOGE_WALLET),
        ],
    }
    data.update(overrides)
    return Store(**data)


def make_payment(**overrides) -> Payment:
    data = {
        "id": str(ObjectId()),
        "amount": Decimal("0.015"),
        "currency": CurrencyType.BITCOIN,
        "status": PaymentStatus.NOT_PAID,
        "type": None,
        "cancelled": False,
        "comment": "Order #1042",
        "store": make_store(),
    }
    data.update(overrides)
    return Payment(**data)


def fee_oracle_transport(payload=None, status_code: int = 200, error: Exception = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if error is not None:
            raise error
        return httpx.Response(status_code, json=RECOMMENDED_FEES if payload is None else payload)

    return httpx.MockTransport(handler)


def make_fee_oracle(**transport_kwargs) -> FeeOracle:
    client = httpx.AsyncClient(transport=fee_oracle_transport(**transport_kwargs))
    return FeeOracle(FeeOracleConfig(url=FEE_ORACLE_URL, timeout_seconds=1.0), client=client)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Each test starts with fresh slowapi counters"""
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def payment_store():
    return InMemoryPaymentStore()


@pytest.fixture
def transaction_store():
    return InMemoryTransactionStore()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def dispatcher(mailer):
    return NotificationDispatcher(mailer)


@pytest.fixture
def fee_oracle():
    return make_fee_oracle()


@pytest.fixture
def btc_payment(payment_store):
    return payment_store.add(make_payment())


@pytest.fixture
def doge_payment(payment_store):
    return payment_store.add(make_payment(currency=CurrencyType.DOGE, amount=Decimal("125")))


@pytest.fixture
def service(payment_store, transaction_store, dispatcher, fee_oracle):
    return TransactionService(
        payments=payment_store,
        transactions=transaction_store,
        dispatcher=dispatcher,
        fee_oracle=fee_oracle,
        network=Network.MAINNET,
        mail_template_id=7,
    )


@pytest.fixture
def client(service, payment_store):
    """TestClient wired to in-memory stores instead of MongoDB"""
    app.dependency_overrides[get_transaction_service] = lambda: service
    app.dependency_overrides[get_payment_store] = lambda: payment_store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def mock_hmac_secret():
    """Mock HMAC_SECRET for signature testing"""
    with patch("paygate.security.HMAC_SECRET", HMAC_SECRET):
        yield HMAC_SECRET


def signed_settlement(payload: dict, secret: str = HMAC_SECRET, timestamp: int = None):
    """Body bytes and headers for a settlement notification signed over timestamp + "." + body"""
    if timestamp is None:
        timestamp = int(time.time())

    body = json.dumps(payload, separators=(",", ":")).encode()
    signature = hmac.new(secret.encode(), f"{timestamp}.".encode() + body, hashlib.sha256).hexdigest()
    headers = {
        "Content-Type": "application/json",
        "X-Signature": signature,
        "X-Timestamp": str(timestamp),
    }
    return body, headers


