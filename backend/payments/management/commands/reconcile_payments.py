from django.core.management.base import BaseCommand, CommandError

from payments.services.gateway import PaymentGatewayError, get_payment_gateway
from payments.services.reconciliation import ReconciliationService, settle_recorded_bookings


class Command(BaseCommand):
    help = (
        "Mark bookings paid for ledger entries whose booking update failed, "
        "and optionally replay confirmation for specific checkout sessions."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--session",
            action="append",
            dest="sessions",
            default=[],
            help="Checkout session id to reconcile (repeatable).",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report ledger entries awaiting a booking update without writing.",
        )

    def handle(self, *args, **options):
        sessions = options["sessions"]
        dry_run = options["dry_run"]

        if sessions:
            if dry_run:
                raise CommandError("--dry-run cannot be combined with --session.")
            self._replay_sessions(sessions)

        settled = settle_recorded_bookings(dry_run=dry_run)
        verb = "Would mark" if dry_run else "Marked"
        for payment in settled:
            self.stdout.write(f"{verb} booking {payment.booking_id} paid (payment {payment.transaction_id})")
        self.stdout.write(self.style.SUCCESS(f"{verb} {len(settled)} booking(s) paid."))

    def _replay_sessions(self, sessions):
        try:
            service = ReconciliationService(get_payment_gateway())
        except PaymentGatewayError as exc:
            raise CommandError(str(exc)) from exc

        for session_id in sessions:
            try:
                result = service.complete_payment(session_id)
            except PaymentGatewayError as exc:
                self.stderr.write(self.style.ERROR(f"{session_id}: {exc}"))
                continue
            line = f"{session_id}: {result.outcome}"
            if result.payment is not None:
                line = f"{line} (transaction {result.transaction_id}, order {result.order_id})"
            self.stdout.write(line)
