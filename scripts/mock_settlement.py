"""
Walk a running paygate instance through a payment's life cycle.

Needs an existing, open payment in MongoDB:

    DEMO_PAYMENT_ID=<payment id> python scripts/mock_settlement.py

The payment is cancelled by the last scenarios, so use a throwaway one.
"""

import json
import hmac
import hashlib
import uuid
import httpx
import asyncio
from dotenv import load_dotenv
import os
import logging
import time

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

load_dotenv()

BASE_URL = os.getenv("PAYGATE_URL", "http://localhost:8001")
HMAC_SECRET = os.getenv("HMAC_SECRET_KEY")
PAYMENT_ID = os.getenv("DEMO_PAYMENT_ID")

if not HMAC_SECRET:
    logger.error("HMAC_SECRET_KEY not found in environment variables!")
    raise ValueError("HMAC_SECRET_KEY is required but not set")

if not PAYMENT_ID:
    raise ValueError("DEMO_PAYMENT_ID is required but not set")


def sign(timestamp: int, payload: str, secret: str) -> str:
    """Signature the settlement endpoint expects: HMAC SHA256 over `timestamp.payload`"""
    signed_payload = f"{timestamp}.{payload}"
    return hmac.new(secret.encode(), signed_payload.encode(), hashlib.sha256).hexdigest()


async def send_settlement(client: httpx.AsyncClient, event: dict, signature: str = None) -> httpx.Response:
    payload_str = json.dumps(event, separators=(",", ":"))
    timestamp = int(time.time())

    headers = {
        "Content-Type": "application/json",
        "X-Timestamp": str(timestamp),
        "X-Signature": signature or sign(timestamp, payload_str, HMAC_SECRET),
    }
    return await client.post(f"/payments/{PAYMENT_ID}/settlement", content=payload_str, headers=headers)


async def run_scenarios():
    tx_hash = f"demo{uuid.uuid4().hex}"
    transaction = {"tx_hash": tx_hash, "email": None, "sender": "Demo Payer", "payment": {"id": PAYMENT_ID}}

    scenarios = [
        ("Create transaction", 201, lambda c: c.post("/transactions", json=transaction)),
        ("Duplicate tx_hash", 409, lambda c: c.post("/transactions", json=transaction)),
        ("Look up by hash", 200, lambda c: c.get(f"/transactions/{tx_hash}")),
        ("Generate wallet", 201, lambda c: c.post("/transactions/generate-wallet", json={"payment_id": PAYMENT_ID})),
        ("Bitcoin commission", 200, lambda c: c.get("/transactions/btc/commission")),
        ("Settlement with forged signature", 401, lambda c: send_settlement(c, {"event": "paid"}, "fake_sig")),
        ("Partial settlement", 200, lambda c: send_settlement(c, {"event": "paid", "type": "partial"})),
        ("Cancel payment", 200, lambda c: send_settlement(c, {"event": "cancelled"})),
        (
            "Create after cancellation",
            400,
            lambda c: c.post("/transactions", json={**transaction, "tx_hash": f"demo{uuid.uuid4().hex}"}),
        ),
    ]

    async with httpx.AsyncClient(base_url=BASE_URL, timeout=10.0) as client:
        for name, expected_status, call in scenarios:
            logger.info(f"\n=== {name} ===")
            try:
                response = await call(client)
            except httpx.RequestError as e:
                logger.error(f"Request failed: {str(e)}")
                continue

            outcome = "PASS" if response.status_code == expected_status else "FAIL"
            logger.info(f"{outcome} (expected {expected_status}, got {response.status_code})")
            logger.info(f"Response: {response.text}")

            await asyncio.sleep(1)


async def main():
    logger.info(f"Starting paygate demo against {BASE_URL} for payment {PAYMENT_ID}")

    try:
        await run_scenarios()
        logger.info("\nDemo completed")
    except KeyboardInterrupt:
        logger.info("\nDemo interrupted")


if __name__ == "__main__":
    asyncio.run(main())
