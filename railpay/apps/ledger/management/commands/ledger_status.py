import json
from django.core.management.base import BaseCommand, CommandError

from railpay.apps.ledger.config import LedgerConfig
from railpay.apps.ledger.services import LedgerClient, LedgerReader
from railpay.exceptions import LedgerError


class Command(BaseCommand):
    help = "Check the Web3 connection and the configured RailPay contracts."

    def add_arguments(self, parser):
        parser.add_argument(
            "--signer",
            action="store_true",
            help="Also load LEDGER_PRIVATE_KEY and report the operator address.",
        )
        parser.add_argument(
            "--ticket",
            dest="ticket",
            type=int,
            help="Look up a ticket token id on-chain.",
        )

    def handle(self, *args, **options):
        try:
            if options["signer"]:
                ledger = LedgerClient(LedgerConfig.from_settings())
            else:
                ledger = LedgerReader(LedgerConfig.from_settings(read_only=True))
            status = ledger.status()
        except LedgerError as e:
            raise CommandError(f"Ledger unreachable: {e}")

        self.stdout.write(self.style.SUCCESS("Web3 connected"))
        self.stdout.write(json.dumps(status, indent=2))

        token_id = options.get("ticket")
        if token_id is not None:
            try:
                info = ledger.ticket_info(token_id)
            except LedgerError as e:
                raise CommandError(f"ticketInfo({token_id}) failed: {e}")
            self.stdout.write(
                f"Ticket {token_id}: route={info.route_id} price={info.price} "
                f"travel_time={info.travel_time} seat={info.seat!r} status={info.status.name}"
            )
