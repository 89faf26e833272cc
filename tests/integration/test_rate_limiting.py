from conftest import signed_settlement
from paygate.core.limiter import TRANSACTION_RATE_LIMIT, WEBHOOK_RATE_LIMIT


def limit_count(rate_limit: str) -> int:
    return int(rate_limit.split("/")[0])


def test_transaction_creation_rate_limit(client, btc_payment):
    allowed = limit_count(TRANSACTION_RATE_LIMIT)

    for i in range(allowed):
        response = client.post(
            "/transactions",
            json={"tx_hash": f"rate_limit_tx_{i}", "payment": {"id": btc_payment.id}},
        )
        assert response.status_code == 201

    response = client.post(
        "/transactions",
        json={"tx_hash": "rate_limit_tx_over", "payment": {"id": btc_payment.id}},
    )
    assert response.status_code == 429


def test_settlement_rate_limit(client, mock_hmac_secret, btc_payment):
    allowed = limit_count(WEBHOOK_RATE_LIMIT)
    statuses = []

    for _ in range(allowed + 1):
        body, headers = signed_settlement({"event": "paid", "type": "partial"})
        response = client.post(f"/payments/{btc_payment.id}/settlement", content=body, headers=headers)
        statuses.append(response.status_code)

    assert statuses[:allowed] == [200] * allowed
    assert statuses[-1] == 429


def test_rejected_signatures_do_not_consume_the_limit(client, mock_hmac_secret, btc_payment):
    allowed = limit_count(WEBHOOK_RATE_LIMIT)

    for _ in range(allowed + 1):
        body, headers = signed_settlement({"event": "paid"}, secret="wrong_secret")
        client.post(f"/payments/{btc_payment.id}/settlement", content=body, headers=headers)

    body, headers = signed_settlement({"event": "paid", "type": "partial"})
    response = client.post(f"/payments/{btc_payment.id}/settlement", content=body, headers=headers)

    assert response.status_code == 200
