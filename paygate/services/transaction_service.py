"""
Transaction workflow engine.

Creates Transaction records against the current Payment state, either from
a sender-supplied tx_hash or by generating a fresh receiving wallet.

Validation outcomes are returned as results carrying a RejectionReason;
only storage failures (DatabaseError) are raised. Receipt emails are
dispatched after the transaction is persisted and never affect the result.

Wallet policy:
    - Bitcoin: new address, plus a best-effort fee quote sized from a
      proto-transaction with one P2PKH input and one output paying the
      store's Bitcoin wallet. If the fee oracle is disabled or unavailable
      the fee fields stay empty.
    - Doge: new address only.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Type, TypeVar

from paygate.core.exceptions import (
    FeeOracleUnavailableError,
    IdempotencyError,
    NotFoundError,
    RejectionReason,
)
from paygate.core.monitoring import error_monitor, monitor_errors
from paygate.schemas.records import (
    CurrencyType,
    FeeEstimate,
    GeneratedWallet,
    Network,
    Payment,
    Transaction,
    TransactionStatus,
)
from paygate.schemas.responses import (
    CreatedTransaction,
    CreationResult,
    LastTransaction,
    TransactionDetails,
    TransactionResult,
    WalletTransaction,
    WalletTransactionResult,
)
from paygate.schemas.transaction import CreateTransactionRequest, GenerateWalletRequest
from paygate.services.address_generator import SUPPORTED_CURRENCIES, generate_address
from paygate.services.fee_oracle import FeeOracle
from paygate.services.notifications import NotificationDispatcher, build_receipt
from paygate.services.payment_store import PaymentStore
from paygate.services.transaction_store import TransactionStore
from paygate.services.tx_size import REFERENCE_TRANSACTION_SIZE, estimate_transaction_size

logger = logging.getLogger(__name__)

REJECTION_MESSAGES = {
    RejectionReason.DUPLICATE_TRANSACTION: "Transaction already exists",
    RejectionReason.INVALID_PAYMENT_REFERENCE: "Payment ID incorrect",
    RejectionReason.PAYMENT_NOT_FOUND: "Payment not found",
    RejectionReason.PAYMENT_ALREADY_COMPLETED: "Payment already completed",
    RejectionReason.PAYMENT_CANCELLED: "Payment already cancelled",
    RejectionReason.UNSUPPORTED_CURRENCY: "Currency not supported",
}

ResultT = TypeVar("ResultT", bound=CreationResult)


class TransactionService:
    """Service layer for transaction creation and lookup"""

    def __init__(
        self,
        payments: PaymentStore,
        transactions: TransactionStore,
        dispatcher: NotificationDispatcher,
        fee_oracle: Optional[FeeOracle] = None,
        network: Network = Network.MAINNET,
        mail_template_id: int = 1,
    ):
        self.payments = payments
        self.transactions = transactions
        self.dispatcher = dispatcher
        self.fee_oracle = fee_oracle
        self.network = Network(network)
        self.mail_template_id = mail_template_id

    @monitor_errors("create_transaction")
    async def create_transaction(self, request: CreateTransactionRequest) -> TransactionResult:
        """
        Record a payer-submitted blockchain transaction for a payment.

        Returns:
            TransactionResult with the created transaction, or a rejection reason

        Raises:
            DatabaseError: If storage fails
        """
        if await self.transactions.exists_with_tx_hash(request.tx_hash):
            return self._rejected(TransactionResult, RejectionReason.DUPLICATE_TRANSACTION, tx_hash=request.tx_hash)

        try:
            payment = await self.payments.find_payment(request.payment.id)
        except NotFoundError:
            return self._rejected(
                TransactionResult, RejectionReason.INVALID_PAYMENT_REFERENCE, payment_id=request.payment.id
            )

        reason = payment.rejection_reason()
        if reason:
            return self._rejected(TransactionResult, reason, payment_id=payment.id)

        record = Transaction(
            tx_hash=request.tx_hash,
            payment_id=payment.id,
            amount=str(payment.amount),
            status=TransactionStatus.PROCESSING,
            sender=request.sender,
            email=request.email,
            updated=datetime.now(timezone.utc),
        )

        try:
            created = await self.transactions.insert(record)
        except IdempotencyError:
            # lost the race against a concurrent request with the same hash
            return self._rejected(TransactionResult, RejectionReason.DUPLICATE_TRANSACTION, tx_hash=request.tx_hash)

        logger.info(f"Transaction {created.id} ({created.tx_hash}) created for payment {payment.id}")
        self._send_receipt(created, payment)

        return TransactionResult(
            success=True,
            message="Transaction created",
            transaction=CreatedTransaction.from_records(created, payment),
        )

    @monitor_errors("create_transaction_with_generated_wallet")
    async def create_transaction_with_generated_wallet(self, request: GenerateWalletRequest) -> WalletTransactionResult:
        """
        Generate a receiving wallet for a payment and record it as a new transaction.

        The response carries only the wallet's public address.

        Raises:
            DatabaseError: If storage fails
        """
        try:
            payment = await self.payments.find_payment(request.payment_id)
        except NotFoundError:
            return self._rejected(
                WalletTransactionResult, RejectionReason.PAYMENT_NOT_FOUND, payment_id=request.payment_id
            )

        reason = payment.rejection_reason()
        if reason:
            return self._rejected(WalletTransactionResult, reason, payment_id=payment.id)

        if payment.currency not in SUPPORTED_CURRENCIES:
            return self._rejected(
                WalletTransactionResult,
                RejectionReason.UNSUPPORTED_CURRENCY,
                payment_id=payment.id,
                currency=payment.currency.value,
            )

        key_pair = generate_address(payment.currency, self.network)
        wallet = GeneratedWallet(public_key=key_pair.public_key, private_key=key_pair.private_key)

        if payment.currency == CurrencyType.BITCOIN:
            fees = await self._estimate_fees(payment)
            if fees:
                wallet = wallet.model_copy(update=fees.model_dump())

        record = Transaction(
            payment_id=payment.id,
            amount=str(payment.amount),
            status=TransactionStatus.PROCESSING,
            sender=request.email or "",
            email=request.email,
            wallet_for_transaction=wallet,
            updated=datetime.now(timezone.utc),
        )
        created = await self.transactions.insert(record)

        logger.info(
            f"Generated {payment.currency.value} {self.network.value} wallet {key_pair.public_key} "
            f"for payment {payment.id} (transaction {created.id})"
        )
        self._send_receipt(created, payment)

        return WalletTransactionResult(
            success=True,
            message="Transaction created with generated wallet",
            transaction=WalletTransaction.from_record(created),
        )

    async def get_btc_commission(self) -> FeeEstimate:
        """
        Current Bitcoin fee tiers for the reference one-in/one-out transaction.

        Raises:
            FeeOracleUnavailableError: If fee estimation is disabled or the oracle fails
        """
        if self.fee_oracle is None:
            raise FeeOracleUnavailableError("Fee estimation is disabled")
        return await self.fee_oracle.quote(REFERENCE_TRANSACTION_SIZE)

    async def get_transaction_by_hash(self, tx_hash: str) -> TransactionDetails:
        """
        Raises:
            NotFoundError: If no transaction has this hash
        """
        transaction = await self.transactions.find_by_tx_hash(tx_hash)
        if transaction is None:
            raise NotFoundError("Transaction", tx_hash)
        return TransactionDetails.from_record(transaction)

    async def get_last_transaction(self, payment_id: str) -> LastTransaction:
        """
        Raises:
            NotFoundError: If the payment has no transactions
        """
        transaction = await self.transactions.find_latest_for_payment(payment_id)
        if transaction is None:
            raise NotFoundError("Transaction", payment_id)
        return LastTransaction(tx_hash=transaction.tx_hash, status=transaction.status)

    async def get_wallet_transaction(self, payment_id: str) -> WalletTransaction:
        """
        Raises:
            NotFoundError: If the payment has no wallet-backed transaction
        """
        transaction = await self.transactions.find_latest_for_payment(payment_id, wallet_only=True)
        if transaction is None:
            raise NotFoundError("Transaction", payment_id)
        return WalletTransaction.from_record(transaction)

    async def _estimate_fees(self, payment: Payment) -> Optional[FeeEstimate]:
        if self.fee_oracle is None:
            return None

        store_wallet = payment.store.wallet_for(CurrencyType.BITCOIN)
        if store_wallet is None:
            logger.warning(f"Store {payment.store.id} has no Bitcoin wallet; sizing fees for a P2PKH output")

        size = estimate_transaction_size(1, [store_wallet.value if store_wallet else None])
        try:
            return await self.fee_oracle.quote(size)
        except FeeOracleUnavailableError as e:
            error_monitor.log_event(
                "fee_estimate_degraded",
                level=logging.WARNING,
                payment_id=payment.id,
                reason=e.message,
            )
            return None

    def _send_receipt(self, transaction: Transaction, payment: Payment):
        message = build_receipt(transaction, payment, self.mail_template_id)
        if message is None:
            logger.debug(f"No receipt address for transaction {transaction.id}")
            return
        self.dispatcher.dispatch(message)

    @staticmethod
    def _rejected(result_type: Type[ResultT], reason: RejectionReason, **context) -> ResultT:
        error_monitor.log_event("transaction_rejected", reason=reason.value, **context)
        return result_type(success=False, message=REJECTION_MESSAGES[reason], reason=reason)
