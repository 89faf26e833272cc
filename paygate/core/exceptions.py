"""
Exception hierarchy for the paygate service.

Design:
    - Each exception carries an `http_status_code` for automatic handler mapping.
    - `to_dict()` returns full internal details (for logging).
    - `to_safe_dict()` returns a sanitized response (for client-facing APIs).
    - Business rejections of a creation request are not raised by the workflow
      engine; it returns them as results and the route layer converts them
      into `TransactionRejectedError`.
"""

from enum import Enum
from typing import Optional, Dict, Any


class RejectionReason(str, Enum):
    """Structured reasons a transaction creation request can be refused."""

    DUPLICATE_TRANSACTION = "duplicate_transaction"
    INVALID_PAYMENT_REFERENCE = "invalid_payment_reference"
    PAYMENT_NOT_FOUND = "payment_not_found"
    PAYMENT_ALREADY_COMPLETED = "payment_already_completed"
    PAYMENT_CANCELLED = "payment_cancelled"
    UNSUPPORTED_CURRENCY = "unsupported_currency"


def _present(**fields) -> Dict[str, Any]:
    return {key: value for key, value in fields.items() if value}


class BaseAppError(Exception):
    """Base exception for all application-specific errors"""

    http_status_code: int = 500

    def __init__(self, message: str, details: str = None, context: Dict[str, Any] = None):
        self.message = message
        self.details = details
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Full details for internal logging, never sent to the client."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "context": self.context,
        }

    def to_safe_dict(self) -> Dict[str, Any]:
        """What the client sees."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
        }


class _SanitizedError(BaseAppError):
    """Server-side failures whose message and context stay in the logs"""

    public_message = "An internal error occurred. Please try again later."

    def to_safe_dict(self) -> Dict[str, Any]:
        return {"error": self.__class__.__name__, "message": self.public_message}


class TransactionRejectedError(BaseAppError):
    """A creation request was refused by the payment gating rules"""

    http_status_code: int = 400

    def __init__(self, reason: RejectionReason, message: str):
        self.reason = reason
        super().__init__(message, f"Rejected: {reason.value}", {"reason": reason.value})
        if reason is RejectionReason.DUPLICATE_TRANSACTION:
            self.http_status_code = 409

    def to_safe_dict(self) -> Dict[str, Any]:
        return {**super().to_safe_dict(), "reason": self.reason.value}


class IdempotencyError(BaseAppError):
    """Raised by storage when a tx_hash is already recorded"""

    http_status_code: int = 409

    def __init__(self, tx_hash: str):
        self.tx_hash = tx_hash
        super().__init__(f"Transaction {tx_hash} already exists", "Duplicate tx_hash", {"tx_hash": tx_hash})

    def to_safe_dict(self) -> Dict[str, Any]:
        return {**super().to_safe_dict(), "tx_hash": self.tx_hash}


class NotFoundError(BaseAppError):
    http_status_code: int = 404

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            f"{resource} not found",
            f"{resource} with id '{identifier}' does not exist",
            {"resource": resource, "identifier": identifier},
        )


class PaymentStateError(BaseAppError):
    """A settlement event conflicts with the payment's state"""

    http_status_code: int = 409

    def __init__(self, payment_id: str, message: str):
        self.payment_id = payment_id
        super().__init__(message, f"Payment {payment_id}: {message}", {"payment_id": payment_id})


class UnsupportedCurrencyError(BaseAppError):
    """No address format is known for a currency"""

    http_status_code: int = 400

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__("Currency not supported", f"No address format for currency: {currency}", {"currency": currency})


class FeeOracleUnavailableError(_SanitizedError):
    """The fee recommendation service cannot be read"""

    http_status_code: int = 503
    public_message = "Fee estimates are temporarily unavailable."

    def __init__(self, message: str, endpoint: str = None):
        self.endpoint = endpoint
        super().__init__(message, "Fee oracle request failed", _present(endpoint=endpoint))


class NotificationError(BaseAppError):
    """Raised by the mailer; handled by the dispatcher, never surfaced"""

    def __init__(self, message: str, recipient: Optional[str] = None):
        self.recipient = recipient
        super().__init__(message, "Mail delivery failed", _present(recipient=recipient))


class SecurityError(BaseAppError):
    """Authentication failures such as a bad settlement signature"""

    http_status_code: int = 401

    def __init__(self, message: str, security_context: str = None):
        # security_context goes to logs only; the base safe dict omits context
        self.security_context = security_context
        details = f"Security failure in: {security_context}" if security_context else None
        super().__init__(message, details, _present(security_context=security_context))


class DatabaseError(_SanitizedError):
    def __init__(self, message: str, operation: str = None, database_error: str = None):
        self.operation = operation
        self.database_error = database_error
        details = f"Failed database operation: {operation}" if operation else None
        super().__init__(message, details, _present(operation=operation, database_error=database_error))


class ConfigurationError(_SanitizedError):
    """Missing or invalid settings"""

    public_message = "A server configuration error occurred."

    def __init__(self, message: str, config_key: str = None, expected_value: str = None):
        self.config_key = config_key
        self.expected_value = expected_value
        details = f"Configuration error for: {config_key}" if config_key else None
        super().__init__(message, details, _present(config_key=config_key, expected_value=expected_value))
