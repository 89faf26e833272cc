from decimal import Decimal

from conftest import make_fee_oracle, make_payment
from paygate.main import app
from paygate.routes.transactions import get_transaction_service
from paygate.schemas.records import CurrencyType, PaymentStatus
from paygate.services.transaction_service import TransactionService


def transaction_body(payment_id, tx_hash="abc123", email=None, sender="Alice"):
    return {"tx_hash": tx_hash, "email": email, "sender": sender, "payment": {"id": payment_id}}


class TestCreateTransactionEndpoint:
    def test_created(self, client, btc_payment):
        response = client.post("/transactions", json=transaction_body(btc_payment.id))

        assert response.status_code == 201
        data = response.json()
        assert data["tx_hash"] == "abc123"
        assert data["sender"] == "Alice"
        assert data["amount"] == "0.015"
        assert data["status"] == "processing"
        assert data["payment"]["id"] == btc_payment.id
        assert data["payment"]["status"] == "Not_paid"
        assert data["payment"]["store"] == {"id": btc_payment.store.id}
        assert "amount" not in data["payment"]

    def test_duplicate_is_conflict(self, client, btc_payment, transaction_store):
        client.post("/transactions", json=transaction_body(btc_payment.id))

        response = client.post("/transactions", json=transaction_body(btc_payment.id))

        assert response.status_code == 409
        assert response.json() == {
            "error": "TransactionRejectedError",
            "message": "Transaction already exists",
            "reason": "duplicate_transaction",
        }
        assert len(transaction_store.transactions) == 1

    def test_unknown_payment(self, client):
        response = client.post("/transactions", json=transaction_body("65f1c0ffee65f1c0ffee65f1"))

        assert response.status_code == 400
        assert response.json()["reason"] == "invalid_payment_reference"

    def test_cancelled_payment(self, client, payment_store):
        payment = payment_store.add(make_payment(cancelled=True))

        response = client.post("/transactions", json=transaction_body(payment.id))

        assert response.status_code == 400
        assert response.json()["reason"] == "payment_cancelled"

    def test_completed_payment(self, client, payment_store):
        payment = payment_store.add(make_payment(status=PaymentStatus.PAID))

        response = client.post("/transactions", json=transaction_body(payment.id))

        assert response.status_code == 400
        assert response.json()["reason"] == "payment_already_completed"

    def test_invalid_body(self, client, btc_payment):
        response = client.post("/transactions", json=transaction_body(btc_payment.id, tx_hash="bad hash!"))

        assert response.status_code == 422


class TestGenerateWalletEndpoint:
    def test_bitcoin_wallet(self, client, btc_payment, transaction_store):
        response = client.post("/transactions/generate-wallet", json={"payment_id": btc_payment.id})

        assert response.status_code == 201
        data = response.json()
        assert data["wallet_for_transaction"].startswith("1")
        assert data["tx_hash"] is None
        assert data["payment_id"] == btc_payment.id
        stored = transaction_store.transactions[0].wallet_for_transaction
        assert stored.private_key not in response.text
        assert "private_key" not in response.text

    def test_doge_wallet(self, client, doge_payment):
        response = client.post("/transactions/generate-wallet", json={"payment_id": doge_payment.id})

        assert response.status_code == 201
        assert response.json()["amount"] == "125"
        assert response.json()["wallet_for_transaction"].startswith("D")

    def test_unsupported_currency(self, client, payment_store, transaction_store):
        payment = payment_store.add(make_payment(currency=CurrencyType.LITECOIN, amount=Decimal("3")))

        response = client.post("/transactions/generate-wallet", json={"payment_id": payment.id})

        assert response.status_code == 400
        assert response.json()["reason"] == "unsupported_currency"
        assert transaction_store.transactions == []

    def test_missing_payment(self, client):
        response = client.post("/transactions/generate-wallet", json={"payment_id": "65f1c0ffee65f1c0ffee65f1"})

        assert response.status_code == 400
        assert response.json()["reason"] == "payment_not_found"


class TestTransactionQueries:
    def test_get_by_hash(self, client, btc_payment):
        client.post("/transactions", json=transaction_body(btc_payment.id))

        response = client.get("/transactions/abc123")

        assert response.status_code == 200
        assert response.json()["payment_id"] == btc_payment.id

    def test_get_unknown_hash(self, client):
        response = client.get("/transactions/unknown")

        assert response.status_code == 404
        assert response.json() == {"error": "NotFoundError", "message": "Transaction not found"}

    def test_last_transaction(self, client, btc_payment):
        client.post("/transactions", json=transaction_body(btc_payment.id, tx_hash="first"))
        client.post("/transactions", json=transaction_body(btc_payment.id, tx_hash="second"))

        response = client.get(f"/transactions/last/{btc_payment.id}")

        assert response.status_code == 200
        assert response.json() == {"tx_hash": "second", "status": "processing"}

    def test_wallet_transaction(self, client, btc_payment):
        created = client.post("/transactions/generate-wallet", json={"payment_id": btc_payment.id}).json()

        response = client.get(f"/transactions/btc/{btc_payment.id}")

        assert response.status_code == 200
        assert response.json()["wallet_for_transaction"] == created["wallet_for_transaction"]

    def test_btc_commission(self, client):
        response = client.get("/transactions/btc/commission")

        assert response.status_code == 200
        assert response.json() == {
            "economy_fee": 960,
            "average_fee": 1920,
            "fastest_fee": 3840,
            "transaction_size": 192,
        }

    def test_btc_commission_oracle_down(self, client, payment_store, transaction_store, dispatcher):
        failing = TransactionService(
            payment_store, transaction_store, dispatcher, fee_oracle=make_fee_oracle(status_code=503)
        )
        app.dependency_overrides[get_transaction_service] = lambda: failing

        response = client.get("/transactions/btc/commission")

        assert response.status_code == 503
        assert response.json() == {
            "error": "FeeOracleUnavailableError",
            "message": "Fee estimates are temporarily unavailable.",
        }


class TestServiceEndpoints:
    def test_health_check(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "active"

    def test_request_id_is_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "req_test_1"})

        assert response.headers["X-Request-ID"] == "req_test_1"

    def test_monitoring_requires_configured_key(self, client, monkeypatch):
        monkeypatch.delenv("MONITORING_API_KEY", raising=False)

        assert client.get("/monitoring/errors").status_code == 403

    def test_monitoring_rejects_wrong_key(self, client, monkeypatch):
        monkeypatch.setenv("MONITORING_API_KEY", "monitor-key")

        response = client.get("/monitoring/errors", headers={"X-Monitoring-Key": "wrong"})

        assert response.status_code == 403

    def test_monitoring_summary(self, client, monkeypatch):
        monkeypatch.setenv("MONITORING_API_KEY", "monitor-key")

        response = client.get("/monitoring/errors", headers={"X-Monitoring-Key": "monitor-key"})

        assert response.status_code == 200
        assert "total_errors" in response.json()
