"""
Pydantic response models for the service layer.

Creation operations return a `CreationResult`: either the created
transaction, or `success=False` with a structured `reason`. Generated
wallets are always projected down to their public address; private keys
and fee breakdowns are persisted but never echoed back.
"""

from pydantic import BaseModel, Field
from typing import Optional
import datetime as dt

from paygate.core.exceptions import RejectionReason
from paygate.schemas.records import (
    Payment,
    PaymentStatus,
    Transaction,
    TransactionStatus,
)


class ServiceResult(BaseModel):
    """Generic base class for all service responses."""

    success: bool = Field(..., description="Whether the operation was successful")
    message: str = Field(..., description="Human-readable result message")


class StoreSummary(BaseModel):
    id: str


class PaymentSummary(BaseModel):
    """Reduced payment view; the full payment is never exposed to payers."""

    id: str
    datetime: dt.datetime
    status: PaymentStatus
    store: StoreSummary

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentSummary":
        return cls(
            id=payment.id,
            datetime=payment.datetime,
            status=payment.status,
            store=StoreSummary(id=payment.store.id),
        )


class CreatedTransaction(BaseModel):
    """Projection returned by direct creation."""

    id: str
    email: Optional[str] = None
    tx_hash: Optional[str] = None
    sender: Optional[str] = None
    amount: str
    status: TransactionStatus
    payment: PaymentSummary

    @classmethod
    def from_records(cls, transaction: Transaction, payment: Payment) -> "CreatedTransaction":
        return cls(
            id=transaction.id,
            email=transaction.email,
            tx_hash=transaction.tx_hash,
            sender=transaction.sender,
            amount=transaction.amount,
            status=transaction.status,
            payment=PaymentSummary.from_payment(payment),
        )


class TransactionDetails(BaseModel):
    """Full transaction record with any generated wallet collapsed to its address."""

    id: str
    tx_hash: Optional[str] = None
    payment_id: str
    amount: str
    status: TransactionStatus
    sender: Optional[str] = None
    email: Optional[str] = None
    updated: dt.datetime
    wallet_for_transaction: Optional[str] = Field(None, description="Generated receiving address")

    @classmethod
    def from_record(cls, transaction: Transaction) -> "TransactionDetails":
        wallet = transaction.wallet_for_transaction
        return cls(
            id=transaction.id,
            tx_hash=transaction.tx_hash,
            payment_id=transaction.payment_id,
            amount=transaction.amount,
            status=transaction.status,
            sender=transaction.sender,
            email=transaction.email,
            updated=transaction.updated,
            wallet_for_transaction=wallet.public_key if wallet else None,
        )


class WalletTransaction(TransactionDetails):
    """Wallet-backed transaction; the address is always present."""

    wallet_for_transaction: str = Field(..., description="Generated receiving address")


class CreationResult(ServiceResult):
    reason: Optional[RejectionReason] = Field(None, description="Set when success is False")


class TransactionResult(CreationResult):
    transaction: Optional[CreatedTransaction] = None


class WalletTransactionResult(CreationResult):
    transaction: Optional[WalletTransaction] = None


class LastTransaction(BaseModel):
    tx_hash: Optional[str] = None
    status: TransactionStatus


class PaymentStateResponse(ServiceResult):
    payment_id: str
    status: PaymentStatus
    type: Optional[str] = None
    cancelled: bool
