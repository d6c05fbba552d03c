from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import Sum

from core.commission.models import LedgerEntry
from core.wallet.models import Wallet, WalletTransaction


class Command(BaseCommand):
    """
    Recalculate wallet balances from the wallet transactions and check them
    against the commission ledger.

    - Balance and total earned are the sum of earning transactions
      (BINARY_PAIR_COMMISSION, DIRECT_USER_COMMISSION, BINARY_INITIAL_BONUS).
      TDS_DEDUCTION and EXTRA_DEDUCTION rows are tracking only.
    - The earning total must equal the sum of net_amount over the
      distributor's ledger entries; a difference means a ledger entry was
      never credited.
    """

    help = "Recalculate wallet balances and total_earned, and report wallets that disagree with the ledger."

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would change without saving',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        self.stdout.write(self.style.MIGRATE_HEADING("Recalculating wallet balances..."))

        with transaction.atomic():
            wallets = Wallet.objects.select_for_update().order_by('distributor_id')
            total_wallets = wallets.count()
            fixed_count = 0
            mismatched = 0

            for wallet in wallets:
                distributor_id = wallet.distributor_id

                earnings_total = (
                    WalletTransaction.objects.filter(
                        distributor_id=distributor_id,
                        transaction_type__in=WalletTransaction.EARNING_TYPES,
                    ).aggregate(total=Sum("amount"))["total"]
                    or Decimal("0")
                )
                ledger_total = (
                    LedgerEntry.objects.filter(distributor_id=distributor_id)
                    .aggregate(total=Sum("net_amount"))["total"]
                    or Decimal("0")
                )

                if earnings_total != ledger_total:
                    mismatched += 1
                    self.stdout.write(self.style.WARNING(
                        f"Distributor {distributor_id}: wallet credits ₹{earnings_total} "
                        f"but ledger net ₹{ledger_total}"
                    ))

                if wallet.balance != earnings_total or wallet.total_earned != earnings_total:
                    self.stdout.write(
                        f"Fixing wallet for distributor {distributor_id} "
                        f"(old balance={wallet.balance}, new balance={earnings_total})"
                    )
                    fixed_count += 1
                    if not dry_run:
                        wallet.balance = earnings_total
                        wallet.total_earned = earnings_total
                        wallet.save(update_fields=["balance", "total_earned", "updated_at"])

        prefix = "[DRY RUN] " if dry_run else ""
        self.stdout.write(
            self.style.SUCCESS(
                f"{prefix}Completed. Processed {total_wallets} wallets, fixed {fixed_count}, "
                f"{mismatched} disagree with the ledger."
            )
        )
