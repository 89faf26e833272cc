"""
Receipt emails for created transactions.

Mailer wraps Brevo's transactional email API. NotificationDispatcher runs
each delivery as its own asyncio task so the request that created the
transaction never waits on, or fails because of, the mail provider.
Delivery failures are logged through the error monitor and go no further.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

import sib_api_v3_sdk
from sib_api_v3_sdk.rest import ApiException

from paygate.core.config import MailerConfig
from paygate.core.exceptions import NotificationError
from paygate.core.monitoring import error_monitor
from paygate.schemas.records import Payment, Transaction

logger = logging.getLogger(__name__)


def mask_email(email: str) -> str:
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}" if domain else "***"


@dataclass
class MailMessage:
    to: str
    subject: str
    template_id: int
    context: Dict[str, Any] = field(default_factory=dict)


def build_receipt(transaction: Transaction, payment: Payment, template_id: int) -> Optional[MailMessage]:
    """Receipt for a new transaction, or None when there is nobody to send it to."""
    if not transaction.email:
        return None

    return MailMessage(
        to=transaction.email,
        subject=f"Payment to store {payment.store.name}",
        template_id=template_id,
        context={
            "email": transaction.email,
            "store": payment.store.name,
            "status": transaction.status.value,
            "amount": transaction.amount,
            "comment": payment.comment,
        },
    )


class Mailer:
    """Brevo transactional mail client."""

    def __init__(self, config: MailerConfig):
        self.config = config
        self.transactional_emails_api = None

        if not config.api_key:
            logger.warning("BREVO_API_KEY not configured - receipt emails will be skipped")
            return

        configuration = sib_api_v3_sdk.Configuration()
        configuration.api_key["api-key"] = config.api_key
        self.transactional_emails_api = sib_api_v3_sdk.TransactionalEmailsApi(
            sib_api_v3_sdk.ApiClient(configuration)
        )

    @property
    def configured(self) -> bool:
        return self.transactional_emails_api is not None

    async def send_mail(self, message: MailMessage) -> bool:
        """
        Send a templated email. Returns False when mail is not configured.

        Raises:
            NotificationError: If the provider rejects or cannot receive the message
        """
        if not self.configured:
            logger.info(f"Mail not configured - skipping '{message.subject}'")
            return False

        email = sib_api_v3_sdk.SendSmtpEmail(
            to=[{"email": message.to}],
            sender={"email": self.config.sender_email},
            subject=message.subject,
            template_id=message.template_id,
            params=message.context,
        )

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.transactional_emails_api.send_transac_email, email)
        except ApiException as e:
            raise NotificationError(f"Mail provider rejected message (HTTP {e.status})", mask_email(message.to)) from e
        except Exception as e:
            raise NotificationError("Mail provider unreachable", mask_email(message.to)) from e

        logger.info(f"Receipt email sent to {mask_email(message.to)}")
        return True


class NotificationDispatcher:
    """Fire-and-forget delivery with failures contained in the delivery task."""

    def __init__(self, mailer: Mailer):
        self.mailer = mailer
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(self, message: MailMessage) -> asyncio.Task:
        task = asyncio.create_task(self._deliver(message))
        # the event loop only keeps weak references to tasks
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, message: MailMessage):
        try:
            await self.mailer.send_mail(message)
        except NotificationError as e:
            error_monitor.log_error(e, {"context": "receipt_email", "subject": message.subject})
        except Exception as e:
            error_monitor.log_error(e, {"context": "receipt_email_unexpected", "subject": message.subject})

    async def drain(self, timeout: Optional[float] = None):
        """Wait for in-flight deliveries (used at shutdown and in tests)."""
        if self._pending:
            await asyncio.wait(set(self._pending), timeout=timeout)
