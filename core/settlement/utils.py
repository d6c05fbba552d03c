"""
Settlement scheduler.

Owns the SettlementPeriod state machine and runs the per-distributor
pipeline (pair match → commission → wallet → ceiling) inside one
transaction per distributor, so a failure for one distributor never rolls
back another distributor's committed records.
"""
import calendar
import logging
from datetime import timedelta
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.binary.exceptions import PartialPeriodFailure
from core.binary.matching import match_distributor
from core.binary.models import CarryForwardRecord, Distributor, SubtreeCounters
from core.binary.utils import get_subtree_size
from core.ceiling.utils import reset_levels
from core.commission.utils import record_pair_commission
from core.settings.config import load_commission_config

from .models import SettlementFailure, SettlementPeriod

logger = logging.getLogger(__name__)


def daily_period_id(day):
    return f"D-{day:%Y-%m-%d}"


def monthly_period_id(day):
    return f"M-{day:%Y-%m}"


def is_last_day_of_month(day):
    return day.day == calendar.monthrange(day.year, day.month)[1]


def get_open_period(period_type):
    """The non-closed period of this type, if any"""
    return (
        SettlementPeriod.objects.filter(type=period_type)
        .exclude(status=SettlementPeriod.STATUS_CLOSED)
        .first()
    )


def open_period(period_type, on_date, config):
    """
    Open the daily or monthly period covering on_date, storing the config
    snapshot it will settle under. Returns the existing period when it was
    already opened (or closed).

    Raises:
        ValueError: If another period of this type is still open
    """
    if period_type == SettlementPeriod.TYPE_DAILY:
        period_id, period_date = daily_period_id(on_date), on_date
    else:
        period_id, period_date = monthly_period_id(on_date), on_date.replace(day=1)

    existing = SettlementPeriod.objects.filter(pk=period_id).first()
    if existing:
        return existing

    current = get_open_period(period_type)
    if current is not None:
        raise ValueError(f"Cannot open {period_id}: {current.period_id} is still {current.status}")

    try:
        with transaction.atomic():
            period = SettlementPeriod.objects.create(
                period_id=period_id,
                type=period_type,
                period_date=period_date,
                config_snapshot=config.to_dict(),
            )
    except IntegrityError:
        # Opened concurrently by another worker
        return SettlementPeriod.objects.get(pk=period_id)

    logger.info(f"Opened settlement period {period_id}")
    return period


def next_unsettled_day(today=None):
    """
    Earliest day the scheduler has not settled yet: the day after the last
    closed daily period, never later than today.
    """
    today = today or timezone.localdate()
    last_closed = SettlementPeriod.objects.filter(
        type=SettlementPeriod.TYPE_DAILY,
        status=SettlementPeriod.STATUS_CLOSED,
    ).order_by('-period_date').first()
    if last_closed is None:
        return today
    return min(today, last_closed.period_date + timedelta(days=1))


def current_daily_period(config):
    """
    Period that event-driven ledger entries (activation bonus, direct
    commission) are booked into: the open daily period, or the earliest
    unsettled day if none is open. An event that arrives before the daily
    tick lands in the day the tick is about to settle.
    """
    period = get_open_period(SettlementPeriod.TYPE_DAILY)
    if period is not None:
        return period
    return open_period(SettlementPeriod.TYPE_DAILY, next_unsettled_day(), config)


def _record_failure(period, distributor_id, stage, error):
    failure, created = SettlementFailure.objects.get_or_create(
        period=period,
        distributor_id=distributor_id,
        stage=stage,
        defaults={'error': str(error)},
    )
    if not created:
        failure.attempts += 1
        failure.error = str(error)
        failure.last_attempt_at = timezone.now()
        failure.resolved_at = None
        failure.save(update_fields=['attempts', 'error', 'last_attempt_at', 'resolved_at'])
    return failure


def settle_distributor(period, distributor_id, config, as_of):
    """
    Full settlement pipeline for one distributor in one period, in a single
    transaction: pair match, pair commission, wallet credit and level update.

    Returns:
        LedgerEntry for the pair commission, or None if nothing matched
    """
    with transaction.atomic():
        distributor = Distributor.objects.select_for_update().get(pk=distributor_id)
        event = match_distributor(distributor, period, config, as_of)
        if event is None:
            return None
        return record_pair_commission(distributor, event, config, period)


def _settle_period(period, as_of):
    config = period.config
    period.transition_to(SettlementPeriod.STATUS_CLOSING)

    distributor_ids = list(
        Distributor.objects.filter(is_activated=True, is_deactivated=False)
        .order_by('id')
        .values_list('id', flat=True)
    )

    summary = {
        'period_id': period.period_id,
        'distributors': len(distributor_ids),
        'matched_distributors': 0,
        'matched_pairs': 0,
        'gross_amount': Decimal('0'),
        'net_amount': Decimal('0'),
        'failed': [],
    }

    for distributor_id in distributor_ids:
        try:
            entry = settle_distributor(period, distributor_id, config, as_of)
        except Exception as e:
            logger.exception(f"Settlement failed for {distributor_id} in {period.period_id}: {e}")
            _record_failure(period, distributor_id, SettlementFailure.STAGE_SETTLE, e)
            summary['failed'].append(distributor_id)
            continue

        if entry is not None:
            summary['matched_distributors'] += 1
            summary['matched_pairs'] += entry.pair_match.matched_pairs
            summary['gross_amount'] += entry.gross_amount
            summary['net_amount'] += entry.net_amount

    summary['gross_amount'] = str(summary['gross_amount'])
    summary['net_amount'] = str(summary['net_amount'])
    period.summary = summary
    period.save(update_fields=['summary'])
    period.transition_to(SettlementPeriod.STATUS_CLOSED)

    logger.info(
        f"Closed {period.period_id}: {summary['matched_pairs']} pair(s) for "
        f"{summary['matched_distributors']}/{summary['distributors']} distributor(s), "
        f"net ₹{summary['net_amount']}, {len(summary['failed'])} failure(s)"
    )
    if summary['failed']:
        logger.error(str(PartialPeriodFailure(period.period_id, summary['failed'])))
    return summary


def _carry_bucket(leftover, bucket_count, bucket_age, carry, pair_amount, eligible):
    """
    Age one carried bucket and move this period's unmatched remainder into it.

    Returns:
        dict: carried_in, discarded, forfeited, bucket_count, bucket_age
    """
    forfeited = 0
    if bucket_count > 0:
        bucket_age += 1
        if bucket_age > carry.max_periods:
            forfeited = bucket_count
            bucket_count, bucket_age = 0, 0

    carried_in = 0
    if carry.enabled and eligible and leftover > 0 and carry.max_periods > 0:
        carried_in = int(leftover * carry.effective_percentage / Decimal('100'))
        if carry.type == 'capped' and pair_amount > 0:
            max_pairs = int(carry.max_amount / pair_amount)
            carried_in = min(carried_in, max(0, max_pairs - bucket_count))
        if carried_in > 0 and bucket_count == 0:
            bucket_age = 1
        bucket_count += carried_in

    return {
        'carried_in': carried_in,
        'discarded': leftover - carried_in,
        'forfeited': forfeited,
        'bucket_count': bucket_count,
        'bucket_age': bucket_age,
    }


def apply_carry_forward(distributor_id, period, config):
    """
    Monthly carry-forward for one distributor.

    1. Existing carried buckets age by one period; a bucket whose age would
       exceed carry_forward_max_periods is forfeited for good.
    2. Pairs still matchable but held back by a cap stay in the new counts
       as backlog.
    3. The rest of each leg is carried, scaled by the carry-forward
       percentage and, for the capped type, limited to
       carry_forward_max_amount worth of pairs. With weak_leg_only, only
       the leg whose whole subtree is smaller is carried.
    4. Whatever was not carried is discarded.

    Idempotent per (distributor, period).

    Returns:
        list: CarryForwardRecord rows written
    """
    with transaction.atomic():
        if CarryForwardRecord.objects.filter(distributor_id=distributor_id, period=period).exists():
            return []

        counters = SubtreeCounters.objects.select_for_update().get(distributor_id=distributor_id)
        carry = config.carry_forward

        backlog = min(counters.new_left_count, counters.new_right_count)
        leftover = {
            'left': counters.new_left_count - backlog,
            'right': counters.new_right_count - backlog,
        }
        eligible = {'left': True, 'right': True}
        if carry.weak_leg_only:
            left_size = get_subtree_size(distributor_id, 'left')
            right_size = get_subtree_size(distributor_id, 'right')
            if left_size != right_size:
                eligible = {'left': left_size < right_size, 'right': right_size < left_size}

        results = {}
        for side in ('left', 'right'):
            results[side] = _carry_bucket(
                leftover[side],
                getattr(counters, f'carried_{side}_count'),
                getattr(counters, f'carried_{side}_age'),
                carry,
                config.binary_pair_commission_amount,
                eligible[side],
            )

        counters.new_left_count = backlog
        counters.new_right_count = backlog
        for side, result in results.items():
            setattr(counters, f'carried_{side}_count', result['bucket_count'])
            setattr(counters, f'carried_{side}_age', result['bucket_age'])
        counters.save()

        records = []
        for side, result in results.items():
            if not (leftover[side] or result['forfeited'] or result['bucket_count']):
                continue
            records.append(CarryForwardRecord.objects.create(
                distributor_id=distributor_id,
                period=period,
                side=side,
                leftover_count=leftover[side],
                **result,
            ))
            if result['forfeited']:
                logger.warning(
                    f"Carried {side} bucket of {distributor_id} forfeited: {result['forfeited']} count(s) "
                    f"exceeded {carry.max_periods} period(s)"
                )

    return records


def run_monthly_close(period, as_of=None):
    """
    Close a monthly period: carry-forward for every distributor with
    unmatched or carried counts, then the level reset policy when enabled.
    """
    config = period.config
    period.transition_to(SettlementPeriod.STATUS_CLOSING)

    distributor_ids = list(
        SubtreeCounters.objects.filter(distributor__is_deactivated=False)
        .exclude(new_left_count=0, new_right_count=0, carried_left_count=0, carried_right_count=0)
        .order_by('distributor_id')
        .values_list('distributor_id', flat=True)
    )

    carried = forfeited = 0
    failed = []
    for distributor_id in distributor_ids:
        try:
            records = apply_carry_forward(distributor_id, period, config)
        except Exception as e:
            logger.exception(f"Carry forward failed for {distributor_id} in {period.period_id}: {e}")
            _record_failure(period, distributor_id, SettlementFailure.STAGE_CARRY_FORWARD, e)
            failed.append(distributor_id)
            continue
        carried += sum(record.carried_in for record in records)
        forfeited += sum(record.forfeited for record in records)

    levels_reset = reset_levels(config) if config.reset_levels_on_period_close else 0

    period.summary = {
        'period_id': period.period_id,
        'distributors': len(distributor_ids),
        'carried_in': carried,
        'forfeited': forfeited,
        'levels_reset': levels_reset,
        'failed': failed,
    }
    period.save(update_fields=['summary'])
    period.transition_to(SettlementPeriod.STATUS_CLOSED)

    logger.info(
        f"Closed {period.period_id}: carried {carried}, forfeited {forfeited}, "
        f"{levels_reset} level reset(s), {len(failed)} failure(s)"
    )
    if failed:
        logger.error(str(PartialPeriodFailure(period.period_id, failed)))
    return period.summary


def retry_failed_distributors(as_of=None):
    """
    Re-run every unresolved failure against its original period and that
    period's config snapshot.

    Returns:
        dict: resolved and still_failing distributor ids
    """
    as_of = as_of or timezone.now()
    resolved, still_failing = [], []

    failures = (
        SettlementFailure.objects.filter(resolved_at__isnull=True)
        .select_related('period')
        .order_by('period__opened_at', 'distributor_id')
    )
    for failure in failures:
        period = failure.period
        config = period.config
        try:
            if failure.stage == SettlementFailure.STAGE_CARRY_FORWARD:
                apply_carry_forward(failure.distributor_id, period, config)
            else:
                settle_distributor(period, failure.distributor_id, config, as_of)
        except Exception as e:
            logger.exception(
                f"Retry {failure.attempts + 1} failed for {failure.distributor_id} in {period.period_id}: {e}"
            )
            _record_failure(period, failure.distributor_id, failure.stage, e)
            still_failing.append(failure.distributor_id)
            continue

        failure.resolved_at = timezone.now()
        failure.save(update_fields=['resolved_at'])
        resolved.append(failure.distributor_id)
        logger.info(f"Retried {failure.stage} for {failure.distributor_id} in {period.period_id}: resolved")

    return {'resolved': resolved, 'still_failing': still_failing}


def run_daily_cycle(run_date=None, config=None, as_of=None, strict=False):
    """
    Settle one day.

    Order:
    1. Retry failures from earlier runs
    2. Finish any open daily period from an earlier day
    3. Close the previous month if its period is still open
    4. Open (or reuse) the day's daily period and the month's period
    5. Settle every activated distributor and close the daily period
    6. On the last day of the month, run the monthly close

    Args:
        run_date: Day to settle (default: today)
        config: CommissionConfig for newly opened periods (default: loaded settings)
        as_of: Timestamp recorded on pair match events (default: now)
        strict: Raise PartialPeriodFailure if any distributor failed

    Returns:
        dict: summary of the run
    """
    run_date = run_date or timezone.localdate()
    as_of = as_of or timezone.now()
    config = config or load_commission_config()

    retried = retry_failed_distributors(as_of)

    stale = get_open_period(SettlementPeriod.TYPE_DAILY)
    if stale is not None and stale.period_date < run_date:
        logger.warning(f"Finishing stale daily period {stale.period_id} before {daily_period_id(run_date)}")
        _settle_period(stale, as_of)
    elif stale is not None and stale.period_date > run_date:
        raise ValueError(f"Cannot settle {run_date}: later period {stale.period_id} is already open")

    stale_month = get_open_period(SettlementPeriod.TYPE_MONTHLY)
    if stale_month is not None and stale_month.period_date < run_date.replace(day=1):
        logger.warning(f"Closing stale monthly period {stale_month.period_id}")
        run_monthly_close(stale_month, as_of)

    period = open_period(SettlementPeriod.TYPE_DAILY, run_date, config)
    if period.is_closed:
        logger.info(f"Daily period {period.period_id} already closed, nothing to settle")
        return {'period_id': period.period_id, 'already_closed': True, 'retried': retried}

    monthly = open_period(SettlementPeriod.TYPE_MONTHLY, run_date, config)

    summary = _settle_period(period, as_of)
    summary['retried'] = retried

    if is_last_day_of_month(run_date) and not monthly.is_closed:
        summary['monthly'] = run_monthly_close(monthly, as_of)

    if strict and summary['failed']:
        raise PartialPeriodFailure(period.period_id, summary['failed'])
    return summary


def previous_day(day=None):
    return (day or timezone.localdate()) - timedelta(days=1)
