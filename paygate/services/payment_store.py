"""
Payment Store: the read path for gating decisions and the settlement
transitions applied by the external settlement notifier.

State machine:
    Not_paid --(settlement)--> Paid
    Not_paid | Paid --(cancel)--> cancelled (terminal)
"""

import logging
from typing import Optional

from beanie import PydanticObjectId

from paygate.models import PaymentDocument
from paygate.schemas.records import Payment, PaymentStatus
from paygate.core.exceptions import DatabaseError, NotFoundError, PaymentStateError

logger = logging.getLogger(__name__)


class PaymentStore:
    """Beanie-backed access to payments."""

    async def find_payment(self, payment_id: str) -> Payment:
        """
        Load a payment together with its store.

        Raises:
            NotFoundError: If no payment has this id (or the id is malformed)
            DatabaseError: If the lookup itself fails
        """
        document = await self._get_document(payment_id)
        return self._to_record(document, "find_payment")

    async def mark_paid(self, payment_id: str, payment_type: Optional[str] = None) -> Payment:
        """
        Record an external settlement. A payment settled with no type is
        considered fully completed and accepts no further transactions.

        Raises:
            NotFoundError: If the payment does not exist
            PaymentStateError: If the payment was cancelled
        """
        document = await self._get_document(payment_id)

        if document.cancelled:
            raise PaymentStateError(payment_id, "Cancelled payments cannot be settled")

        try:
            await document.set({"status": PaymentStatus.PAID.value, "type": payment_type})
        except Exception:
            logger.error(f"Failed to mark payment {payment_id} as paid", exc_info=True)
            raise DatabaseError("Failed to update payment", operation="mark_paid")

        logger.info(f"Payment {payment_id} marked as paid (type={payment_type})")
        return self._to_record(document, "mark_paid")

    async def cancel(self, payment_id: str) -> Payment:
        """Close a payment for good. Cancelling twice is a no-op."""
        document = await self._get_document(payment_id)

        if not document.cancelled:
            try:
                await document.set({"cancelled": True})
            except Exception:
                logger.error(f"Failed to cancel payment {payment_id}", exc_info=True)
                raise DatabaseError("Failed to update payment", operation="cancel_payment")
            logger.info(f"Payment {payment_id} cancelled")

        return self._to_record(document, "cancel_payment")

    async def _get_document(self, payment_id: str) -> PaymentDocument:
        if not PydanticObjectId.is_valid(payment_id):
            raise NotFoundError("Payment", payment_id)

        try:
            document = await PaymentDocument.get(PydanticObjectId(payment_id), fetch_links=True)
        except Exception:
            logger.error(f"Database error loading payment {payment_id}", exc_info=True)
            raise DatabaseError("Failed to load payment", operation="find_payment")

        if document is None:
            raise NotFoundError("Payment", payment_id)

        return document

    @staticmethod
    def _to_record(document: PaymentDocument, operation: str) -> Payment:
        # a document that no longer fits the record shape is a storage fault
        try:
            return document.to_record()
        except Exception:
            logger.error(f"Malformed payment document {document.id}", exc_info=True)
            raise DatabaseError("Stored payment is malformed", operation=operation)
