from __future__ import annotations

from django.db import IntegrityError, transaction

from bookings.models import Booking
from payments.models import Payment


class DuplicateTransaction(Exception):
    """A ledger entry already exists for this transaction id."""

    def __init__(self, transaction_id: str):
        super().__init__(f"Payment {transaction_id} is already recorded.")
        self.transaction_id = transaction_id


class PaymentLedger:
    """Append-only access to settled payments, keyed by gateway transaction id."""

    def find_by_transaction_id(self, transaction_id: str) -> Payment | None:
        return Payment.objects.filter(transaction_id=transaction_id).first()

    def insert(self, **fields) -> Payment:
        """
        Create a ledger entry. The unique index on ``transaction_id`` decides
        concurrent inserts; the loser gets ``DuplicateTransaction``.
        """
        transaction_id = fields["transaction_id"]
        try:
            with transaction.atomic():
                return Payment.objects.create(**fields)
        except IntegrityError as exc:
            if not Payment.objects.filter(transaction_id=transaction_id).exists():
                raise
            raise DuplicateTransaction(transaction_id) from exc

    def entries_awaiting_booking(self):
        """Entries whose booking was never moved to paid."""
        return (
            Payment.objects.filter(booking__status=Booking.REQUESTED)
            .select_related("booking")
            .order_by("created_at", "id")
        )
