"""
Domain records for payments, stores and transactions.

These are the shapes the workflow engine reasons about. Storage documents
are converted into them at the store boundary, so the engine never touches
loosely-typed database objects.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from paygate.core.exceptions import RejectionReason


class CurrencyType(str, Enum):
    BITCOIN = "Bitcoin"
    DOGE = "Doge"
    ETHEREUM = "Ethereum"
    TETHER = "Tether"
    LITECOIN = "Litecoin"


class PaymentStatus(str, Enum):
    NOT_PAID = "Not_paid"
    PAID = "Paid"


class TransactionStatus(str, Enum):
    PROCESSING = "processing"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class Network(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"


class Wallet(BaseModel):
    """A store's receiving wallet for one currency."""

    currency: CurrencyType
    value: str = Field(..., min_length=1, description="Receiving address")


class Store(BaseModel):
    id: str
    name: str
    wallets: List[Wallet] = Field(default_factory=list)

    def wallet_for(self, currency: CurrencyType) -> Optional[Wallet]:
        return next((w for w in self.wallets if w.currency == currency), None)


class Payment(BaseModel):
    id: str
    amount: Decimal
    currency: CurrencyType
    status: PaymentStatus = PaymentStatus.NOT_PAID
    type: Optional[str] = None
    cancelled: bool = False
    comment: Optional[str] = None
    datetime: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))
    store: Store

    @property
    def is_completed(self) -> bool:
        """Settled outside the gateway: no type recorded and already Paid."""
        return self.type is None and self.status == PaymentStatus.PAID

    def rejection_reason(self) -> Optional[RejectionReason]:
        """Why this payment refuses new transactions, or None if it accepts them."""
        if self.is_completed:
            return RejectionReason.PAYMENT_ALREADY_COMPLETED
        if self.cancelled:
            return RejectionReason.PAYMENT_CANCELLED
        return None


class KeyPair(BaseModel):
    """A freshly generated receiving address and its WIF private key."""

    public_key: str
    private_key: str


class FeeRates(BaseModel):
    """Recommended fee rates in satoshi per virtual byte."""

    economy_fee_rate: int = Field(..., ge=0, alias="economyFee")
    hour_fee_rate: int = Field(..., ge=0, alias="hourFee")
    fastest_fee_rate: int = Field(..., ge=0, alias="fastestFee")

    model_config = {"populate_by_name": True}


class FeeEstimate(BaseModel):
    """Total fee per tier, in satoshi, for a transaction of `transaction_size` bytes."""

    economy_fee: int
    average_fee: int
    fastest_fee: int
    transaction_size: int


class GeneratedWallet(BaseModel):
    """Wallet record persisted with an engine-generated transaction."""

    public_key: str
    private_key: str
    economy_fee: Optional[int] = None
    average_fee: Optional[int] = None
    fastest_fee: Optional[int] = None
    transaction_size: Optional[int] = None


class Transaction(BaseModel):
    id: Optional[str] = None
    tx_hash: Optional[str] = None
    payment_id: str
    amount: str
    status: TransactionStatus = TransactionStatus.PROCESSING
    sender: Optional[str] = None
    email: Optional[str] = None
    wallet_for_transaction: Optional[GeneratedWallet] = None
    updated: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))
