"""
Transaction persistence.

Each creation is a single document insert. Uniqueness of tx_hash is enforced
by the tx_hash_unique index, so a concurrent duplicate surfaces here as
IdempotencyError even when the caller's existence check passed.
"""

import logging
from typing import Optional

from beanie import PydanticObjectId
from pymongo.errors import DuplicateKeyError

from paygate.models import TransactionDocument
from paygate.schemas.records import Transaction
from paygate.core.exceptions import DatabaseError, IdempotencyError

logger = logging.getLogger(__name__)


class TransactionStore:
    """Beanie-backed access to transactions."""

    async def exists_with_tx_hash(self, tx_hash: str) -> bool:
        try:
            return await TransactionDocument.find_one({"tx_hash": tx_hash}) is not None
        except Exception:
            logger.error(f"Database error checking tx_hash {tx_hash}", exc_info=True)
            raise DatabaseError("Failed to look up transaction", operation="find_transaction")

    async def insert(self, record: Transaction) -> Transaction:
        """
        Persist a new transaction and return it with its id.

        Raises:
            IdempotencyError: If another transaction already holds the tx_hash
            DatabaseError: For any other storage failure
        """
        document = TransactionDocument.from_record(record)
        try:
            await document.insert()
        except DuplicateKeyError:
            logger.info(f"Duplicate transaction rejected by index: {record.tx_hash}")
            raise IdempotencyError(record.tx_hash)
        except Exception:
            logger.error(f"Database error inserting transaction for payment {record.payment_id}", exc_info=True)
            raise DatabaseError("Failed to store transaction", operation="insert_transaction")

        return self._to_record(document, "insert_transaction")

    async def find_by_tx_hash(self, tx_hash: str) -> Optional[Transaction]:
        try:
            document = await TransactionDocument.find_one({"tx_hash": tx_hash})
        except Exception:
            logger.error(f"Database error retrieving transaction {tx_hash}", exc_info=True)
            raise DatabaseError("Failed to retrieve transaction", operation="find_transaction")
        return self._to_record(document, "find_transaction") if document else None

    async def find_latest_for_payment(self, payment_id: str, wallet_only: bool = False) -> Optional[Transaction]:
        """Most recently updated transaction of a payment, optionally wallet-backed only."""
        if not PydanticObjectId.is_valid(payment_id):
            return None

        query = {"payment_id": PydanticObjectId(payment_id)}
        if wallet_only:
            query["wallet_for_transaction"] = {"$ne": None}

        try:
            document = await TransactionDocument.find(query).sort("-updated").first_or_none()
        except Exception:
            logger.error(f"Database error retrieving transactions of payment {payment_id}", exc_info=True)
            raise DatabaseError("Failed to retrieve transaction", operation="find_payment_transactions")
        return self._to_record(document, "find_payment_transactions") if document else None

    @staticmethod
    def _to_record(document: TransactionDocument, operation: str) -> Transaction:
        # statuses are also written by the confirmation watcher
        try:
            return document.to_record()
        except Exception:
            logger.error(f"Malformed transaction document {document.id}", exc_info=True)
            raise DatabaseError("Stored transaction is malformed", operation=operation)
