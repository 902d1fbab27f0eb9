"""Settlement notices: compose one message per transfer and dispatch them."""

import logging
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Protocol

from .models import Member, NotificationOutcome, NotificationResult, Transfer

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Anything that can deliver a message to an address."""

    def send(self, recipient: str, subject: str, body: str) -> NotificationResult:
        """Deliver one message and report whether it worked."""
        ...


def format_amount(amount: Decimal, currency_code: str, decimals: int = 2) -> str:
    """Format an amount for humans, e.g. ``INR 1,250.00``."""
    return f"{currency_code} {amount:,.{decimals}f}"


def compose_notice(
    transfer: Transfer,
    payer: Member,
    payee: Member,
    currency_code: str,
    decimals: int = 2,
) -> tuple[str, str]:
    """
    Build the subject and body of a settlement notice for the paying member.

    Returns:
        Tuple of (subject, body)
    """
    amount = format_amount(transfer.amount, currency_code, decimals)
    subject = f"Settle up: you owe {payee.name} {amount}"
    body = (
        f"Hi {payer.name},\n\n"
        f"To settle your shared expenses, please pay {amount} to {payee.name}.\n\n"
        f"Sent by RoomSplit"
    )
    return subject, body


def notify_transfers(
    transfers: Sequence[Transfer],
    members: Mapping[str, Member],
    notifier: Notifier,
    currency_code: str,
    decimals: int = 2,
) -> list[NotificationOutcome]:
    """
    Send a notice to the payer of every transfer in a settlement plan.

    Notices go out one at a time, in plan order. Each send is independent:
    a failed or crashing send is logged and recorded, and the remaining
    notices still go out. No retries.

    Args:
        transfers: The full settlement plan
        members: Members keyed by id (display names and addresses)
        notifier: Delivery channel
        currency_code: Currency label used in the message

    Returns:
        One outcome per transfer, in plan order
    """
    outcomes: list[NotificationOutcome] = []
    if transfers:
        logger.info(f"Sending settlement notices for {len(transfers)} transfer(s)")

    for transfer in transfers:
        payer = members[transfer.from_member_id]
        payee = members[transfer.to_member_id]
        if not payer.email:
            logger.info(f"Skipping notice to {payer.name}: no email address")
            outcomes.append(
                NotificationOutcome(
                    transfer=transfer, skipped=True, error="No email address"
                )
            )
            continue

        subject, body = compose_notice(transfer, payer, payee, currency_code, decimals)
        try:
            result = notifier.send(payer.email, subject, body)
        except Exception as e:
            logger.error(f"Error sending notice to {payer.email}: {e}")
            result = NotificationResult(success=False, error=str(e))

        if not result.success:
            logger.warning(f"Notice to {payer.email} failed: {result.error}")

        outcomes.append(
            NotificationOutcome(
                transfer=transfer,
                recipient=payer.email,
                success=result.success,
                error=result.error,
            )
        )

    return outcomes
