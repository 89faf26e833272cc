"""
Transaction routes.

The engine reports refused requests as results; they are raised here as
TransactionRejectedError so the shared handler renders them
(409 for duplicates, 400 for the other reasons).
"""

from fastapi import APIRouter, Depends, Request
from paygate.core.exceptions import TransactionRejectedError
from paygate.core.limiter import limiter, TRANSACTION_RATE_LIMIT
from paygate.schemas.records import FeeEstimate
from paygate.schemas.responses import (
    CreatedTransaction,
    LastTransaction,
    TransactionDetails,
    WalletTransaction,
)
from paygate.schemas.transaction import CreateTransactionRequest, GenerateWalletRequest
from paygate.services.transaction_service import TransactionService
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


def get_transaction_service(request: Request) -> TransactionService:
    """Engine built at startup and kept on app state"""
    return request.app.state.transaction_service


@router.post("", status_code=201, response_model=CreatedTransaction)
@limiter.limit(TRANSACTION_RATE_LIMIT)
async def create_transaction(
    request: Request,
    payload: CreateTransactionRequest,
    service: TransactionService = Depends(get_transaction_service),
):
    """Create a transaction for a payment from a sender-supplied tx_hash."""
    result = await service.create_transaction(payload)
    if not result.success:
        raise TransactionRejectedError(result.reason, result.message)
    return result.transaction


@router.post("/generate-wallet", status_code=201, response_model=WalletTransaction)
@limiter.limit(TRANSACTION_RATE_LIMIT)
async def generate_transaction_with_wallet(
    request: Request,
    payload: GenerateWalletRequest,
    service: TransactionService = Depends(get_transaction_service),
):
    """Create a transaction with a freshly generated receiving address."""
    result = await service.create_transaction_with_generated_wallet(payload)
    if not result.success:
        raise TransactionRejectedError(result.reason, result.message)
    return result.transaction


@router.get("/btc/commission", response_model=FeeEstimate)
async def get_btc_commission(service: TransactionService = Depends(get_transaction_service)):
    """Current Bitcoin fee tiers; 503 when the fee oracle cannot be read."""
    return await service.get_btc_commission()


@router.get("/btc/{payment_id}", response_model=WalletTransaction)
async def get_wallet_transaction(payment_id: str, service: TransactionService = Depends(get_transaction_service)):
    return await service.get_wallet_transaction(payment_id)


@router.get("/last/{payment_id}", response_model=LastTransaction)
async def get_last_transaction(payment_id: str, service: TransactionService = Depends(get_transaction_service)):
    return await service.get_last_transaction(payment_id)


@router.get("/{tx_hash}", response_model=TransactionDetails)
async def get_transaction(tx_hash: str, service: TransactionService = Depends(get_transaction_service)):
    """Raises NotFoundError (404) via the exception handler when absent."""
    result = await service.get_transaction_by_hash(tx_hash)
    logger.info(f"Retrieved transaction {tx_hash}")
    return result
