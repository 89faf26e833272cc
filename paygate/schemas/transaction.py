"""
Pydantic schemas for incoming transaction and settlement requests.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional
import re

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _normalize_email(v: Optional[str]) -> Optional[str]:
    """Blank means no email; anything else must look like an address."""
    if v is None or not v.strip():
        return None
    v = v.strip()
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email address")
    return v


class PaymentReference(BaseModel):
    id: str = Field(..., min_length=1, max_length=64, description="Payment identifier")


class CreateTransactionRequest(BaseModel):
    """Direct creation with a sender-supplied blockchain transaction hash."""

    tx_hash: str = Field(
        ...,
        min_length=1,
        max_length=128,
        pattern=r"^[a-zA-Z0-9_-]+$",
        description="Blockchain transaction hash",
    )
    email: Optional[str] = Field(None, max_length=254, description="Receipt address")
    sender: Optional[str] = Field(None, max_length=200, description="Sender name or address")
    payment: PaymentReference

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _normalize_email(v)


class GenerateWalletRequest(BaseModel):
    """Ask the gateway to generate a receiving wallet for a payment."""

    payment_id: str = Field(..., min_length=1, max_length=64, description="Payment identifier")
    email: Optional[str] = Field(None, max_length=254, description="Receipt address")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _normalize_email(v)


class SettlementNotification(BaseModel):
    """Signed event from the external settlement notifier."""

    event: Literal["paid", "cancelled"]
    type: Optional[str] = Field(
        None,
        max_length=50,
        pattern=r"^[a-zA-Z0-9_-]+$",
        description="Settlement classification; omitted for fully completed payments",
    )
