import json
from django.core.management.base import BaseCommand, CommandError

from railpay.apps.reconciliation.services import run_reconciliation
from railpay.exceptions import LedgerUnavailable, PreconditionNotMet


class Command(BaseCommand):
    help = "Scan a block range for RailPay contract events and apply them to the database."

    def add_arguments(self, parser):
        parser.add_argument("--from-block", dest="from_block", type=int, help="First block to scan.")
        parser.add_argument(
            "--to-block",
            dest="to_block",
            type=int,
            help="Last block to scan (default: the current block).",
        )
        parser.add_argument(
            "--blocks",
            dest="blocks",
            type=int,
            help="Blocks to scan back from --to-block when --from-block is omitted "
            "(default: RECONCILE_BLOCK_WINDOW).",
        )

    def handle(self, *args, **options):
        try:
            report = run_reconciliation(
                from_block=options.get("from_block"),
                to_block=options.get("to_block"),
                blocks=options.get("blocks"),
                trigger="command",
            )
        except LedgerUnavailable as e:
            raise CommandError(f"Ledger unreachable: {e}")
        except PreconditionNotMet as e:
            raise CommandError(e.message)

        self.stdout.write(json.dumps(report.to_dict(), indent=2))
        if report.total_failed:
            self.stdout.write(self.style.WARNING(f"{report.total_failed} events failed to apply; see logs."))
        else:
            self.stdout.write(self.style.SUCCESS(f"Applied {report.total_applied} events."))
