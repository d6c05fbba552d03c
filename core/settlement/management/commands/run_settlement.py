from datetime import date

from django.core.management.base import BaseCommand, CommandError

from core.binary.exceptions import PartialPeriodFailure
from core.binary.matching import run_matching_pass
from core.settings.config import load_commission_config
from core.settlement.utils import previous_day, run_daily_cycle


class Command(BaseCommand):
    help = 'Run the daily settlement cycle for a date (default: yesterday)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            type=date.fromisoformat,
            help='Day to settle, YYYY-MM-DD',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show the pairs that would be matched without settling',
        )
        parser.add_argument(
            '--strict',
            action='store_true',
            help='Exit with an error if any distributor fails to settle',
        )

    def handle(self, *args, **options):
        run_date = options.get('date') or previous_day()
        config = load_commission_config()

        if options['dry_run']:
            preview = run_matching_pass(config)
            self.stdout.write(self.style.MIGRATE_HEADING(f"[DRY RUN] Settlement preview for {run_date}"))
            for distributor_id, match in preview:
                self.stdout.write(
                    f"  {distributor_id}: {match.matched_pairs} pair(s) "
                    f"(raw {match.raw_matches}, daily cap held {match.blocked_by_daily_limit}, "
                    f"buyer cap held {match.blocked_by_active_buyer_cap})"
                )
            self.stdout.write(self.style.SUCCESS(f"[DRY RUN] {len(preview)} distributor(s) would be paid"))
            return

        try:
            summary = run_daily_cycle(run_date=run_date, config=config, strict=options['strict'])
        except PartialPeriodFailure as e:
            raise CommandError(str(e))

        if summary.get('already_closed'):
            self.stdout.write(self.style.WARNING(f"{summary['period_id']} was already settled"))
            return

        self.stdout.write(self.style.SUCCESS(
            f"Settled {summary['period_id']}: {summary['matched_pairs']} pair(s) for "
            f"{summary['matched_distributors']} distributor(s), net ₹{summary['net_amount']}"
        ))
        if summary['failed']:
            self.stdout.write(self.style.ERROR(
                f"{len(summary['failed'])} distributor(s) failed and will be retried: {', '.join(summary['failed'])}"
            ))
        if 'monthly' in summary:
            monthly = summary['monthly']
            self.stdout.write(self.style.SUCCESS(
                f"Closed {monthly['period_id']}: carried {monthly['carried_in']}, forfeited {monthly['forfeited']}"
            ))
