import logging
from datetime import date

from celery import shared_task
from django.utils import timezone

from .models import SettlementPeriod
from .utils import (
    get_open_period,
    previous_day,
    retry_failed_distributors,
    run_daily_cycle,
    run_monthly_close,
)

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def daily_settlement_tick(self, run_date=None):
    """
    Celery beat task: settle the previous day (or run_date, ISO format).

    Per-distributor failures do not fail the task; they are recorded and
    retried on the next tick. Only an error outside the per-distributor
    pipeline (database down, period conflict) retries the task.
    """
    day = date.fromisoformat(run_date) if run_date else previous_day()
    try:
        summary = run_daily_cycle(run_date=day)
    except Exception as e:
        logger.error(
            f"Error in daily_settlement_tick for {day}: {e}. "
            f"Attempt {self.request.retries + 1}/{self.max_retries}"
        )
        if self.request.retries < self.max_retries:
            raise self.retry(exc=e, countdown=60 * (self.request.retries + 1))
        raise

    if summary.get('failed'):
        logger.error(f"Daily settlement for {day} finished with {len(summary['failed'])} failed distributor(s)")
    return summary


@shared_task
def monthly_close_tick():
    """
    Close the open monthly period once its month has ended. Normally the
    daily cycle closes the month on its last day; this catches a month whose
    last daily run never happened.
    """
    period = get_open_period(SettlementPeriod.TYPE_MONTHLY)
    if period is None:
        return None
    if period.period_date.replace(day=1) >= timezone.localdate().replace(day=1):
        logger.info(f"Monthly period {period.period_id} still current, not closing")
        return None
    return run_monthly_close(period)


@shared_task
def retry_failed_settlements():
    """Retry unresolved per-distributor failures between daily ticks"""
    result = retry_failed_distributors()
    if result['resolved'] or result['still_failing']:
        logger.info(
            f"Settlement retry: {len(result['resolved'])} resolved, "
            f"{len(result['still_failing'])} still failing"
        )
    return result
