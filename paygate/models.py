from beanie import Document, Indexed, Link, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import ASCENDING, DESCENDING, IndexModel
from datetime import datetime, timezone
from typing import List, Optional

from paygate.schemas.records import (
    CurrencyType,
    GeneratedWallet,
    Payment,
    PaymentStatus,
    Store,
    Transaction,
    TransactionStatus,
    Wallet,
)


class WalletEntry(BaseModel):
    currency: CurrencyType
    value: str


class StoreDocument(Document):
    """Merchant store; owned by the store-facing API, read here."""

    name: str
    api_key: Indexed(str, unique=True)
    wallets: List[WalletEntry] = Field(default_factory=list)

    class Settings:
        name = "stores"

    def to_record(self) -> Store:
        return Store(
            id=str(self.id),
            name=self.name,
            wallets=[Wallet(currency=w.currency, value=w.value) for w in self.wallets],
        )


class PaymentDocument(Document):
    """Payment request; amount kept as a decimal string to stay exact."""

    amount: str
    currency: CurrencyType
    status: Indexed(str) = PaymentStatus.NOT_PAID.value
    type: Optional[str] = None
    cancelled: bool = False
    comment: Optional[str] = None
    created: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    store: Link[StoreDocument]

    class Settings:
        name = "payments"

    def to_record(self) -> Payment:
        # store must have been fetched (fetch_links=True)
        return Payment(
            id=str(self.id),
            amount=self.amount,
            currency=self.currency,
            status=self.status,
            type=self.type,
            cancelled=self.cancelled,
            comment=self.comment,
            datetime=self.created,
            store=self.store.to_record(),
        )


class TransactionDocument(Document):
    """Settlement attempt for a payment."""

    tx_hash: Optional[str] = None
    payment_id: PydanticObjectId
    amount: str
    status: str = TransactionStatus.PROCESSING.value
    sender: Optional[str] = None
    email: Optional[str] = None
    wallet_for_transaction: Optional[GeneratedWallet] = None
    updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "transactions"
        indexes = [
            # unique only where a hash is present; wallet-backed rows have none
            IndexModel(
                [("tx_hash", ASCENDING)],
                name="tx_hash_unique",
                unique=True,
                partialFilterExpression={"tx_hash": {"$type": "string"}},
            ),
            IndexModel([("payment_id", ASCENDING), ("updated", DESCENDING)], name="payment_recent"),
        ]

    @classmethod
    def from_record(cls, record: Transaction) -> "TransactionDocument":
        return cls(
            tx_hash=record.tx_hash,
            payment_id=PydanticObjectId(record.payment_id),
            amount=record.amount,
            status=record.status.value,
            sender=record.sender,
            email=record.email,
            wallet_for_transaction=record.wallet_for_transaction,
            updated=record.updated,
        )

    def to_record(self) -> Transaction:
        return Transaction(
            id=str(self.id),
            tx_hash=self.tx_hash,
            payment_id=str(self.payment_id),
            amount=self.amount,
            status=self.status,
            sender=self.sender,
            email=self.email,
            wallet_for_transaction=self.wallet_for_transaction,
            updated=self.updated,
        )
