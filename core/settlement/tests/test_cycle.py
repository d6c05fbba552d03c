"""
Tests for the settlement scheduler: daily cycle, failure isolation and
monthly carry-forward
"""
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from core.binary.exceptions import PartialPeriodFailure
from core.binary.models import CarryForwardRecord, Distributor, PairMatchEvent, SubtreeCounters
from core.binary.tests.helpers import closed_monthly_period, daily_period, make_config, make_distributor
from core.binary.utils import mark_active_buyer
from core.commission.models import LedgerEntry
from core.commission.utils import record_pair_commission
from core.settlement.models import SettlementFailure, SettlementPeriod
from core.settlement.tasks import daily_settlement_tick, monthly_close_tick
from core.settlement.utils import (
    apply_carry_forward,
    current_daily_period,
    next_unsettled_day,
    open_period,
    retry_failed_distributors,
    run_daily_cycle,
)
from core.wallet.models import Wallet

AS_OF = timezone.make_aware(datetime(2026, 3, 15, 0, 30))


def counters(distributor_id):
    return SubtreeCounters.objects.get(distributor_id=distributor_id)


def fail_for(failing_id):
    """record_pair_commission stand-in that errors for one distributor"""
    def side_effect(distributor, *args, **kwargs):
        if distributor.pk == failing_id:
            raise RuntimeError('ledger unavailable')
        return record_pair_commission(distributor, *args, **kwargs)
    return side_effect


class DailyCycleTest(TestCase):
    """Test run_daily_cycle"""

    def setUp(self):
        self.config = make_config()
        self.root = make_distributor('D1', new_left_count=12, new_right_count=15)
        make_distributor('D2', parent=self.root, side='left', activated=False, new_left_count=3, new_right_count=3)

    def test_settles_activated_distributors(self):
        """Test a full day settles pairs, ledger, wallet and closes the period"""
        summary = run_daily_cycle(run_date=date(2026, 3, 14), config=self.config, as_of=AS_OF)

        self.assertEqual(summary['period_id'], 'D-2026-03-14')
        self.assertEqual(summary['distributors'], 1)
        self.assertEqual(summary['matched_pairs'], 10)
        self.assertEqual(summary['net_amount'], '14000.00')
        self.assertEqual(summary['failed'], [])

        period = SettlementPeriod.objects.get(pk='D-2026-03-14')
        self.assertTrue(period.is_closed)
        self.assertEqual(SettlementPeriod.objects.get(pk='M-2026-03').status, SettlementPeriod.STATUS_OPEN)
        self.assertEqual(Wallet.objects.get(distributor_id='D1').balance, Decimal('14000.00'))
        self.assertEqual(counters('D1').new_left_count, 2)
        self.assertEqual(counters('D2').new_left_count, 3)

    def test_rerun_is_idempotent(self):
        """Test running the same day twice pays once"""
        run_daily_cycle(run_date=date(2026, 3, 14), config=self.config, as_of=AS_OF)
        summary = run_daily_cycle(run_date=date(2026, 3, 14), config=self.config, as_of=AS_OF)

        self.assertTrue(summary['already_closed'])
        self.assertEqual(LedgerEntry.objects.count(), 1)
        self.assertEqual(PairMatchEvent.objects.count(), 1)

    def test_stale_daily_period_finished_first(self):
        """Test an earlier day left open is settled before the requested day"""
        daily_period(self.config, date(2026, 3, 13))

        summary = run_daily_cycle(run_date=date(2026, 3, 14), config=self.config, as_of=AS_OF)

        self.assertTrue(SettlementPeriod.objects.get(pk='D-2026-03-13').is_closed)
        self.assertEqual(PairMatchEvent.objects.get(period_id='D-2026-03-13').matched_pairs, 10)
        # The remaining 2 left / 5 right match on the next day
        self.assertEqual(summary['matched_pairs'], 2)

    def test_event_before_tick_booked_into_unsettled_day(self):
        """Test an event arriving before the tick is booked into the day the tick settles next"""
        run_daily_cycle(run_date=date(2026, 3, 14), config=self.config, as_of=AS_OF)
        make_distributor('D3', parent=Distributor.objects.get(pk='D2'), side='left', activated=False, active_buyer=False)

        with patch('core.settlement.utils.timezone.localdate', return_value=date(2026, 3, 16)):
            period = current_daily_period(self.config)
            entry = mark_active_buyer('D3', Decimal('5000'), self.config, period)

        self.assertEqual(period.period_id, 'D-2026-03-15')
        self.assertEqual(entry.period_id, 'D-2026-03-15')

        summary = run_daily_cycle(run_date=date(2026, 3, 15), config=self.config, as_of=AS_OF)

        self.assertEqual(summary['period_id'], 'D-2026-03-15')
        self.assertTrue(SettlementPeriod.objects.get(pk='D-2026-03-15').is_closed)
        self.assertFalse(SettlementPeriod.objects.filter(pk='D-2026-03-16').exists())

    def test_next_unsettled_day(self):
        """Test the next unsettled day follows the last closed day and never passes today"""
        self.assertEqual(next_unsettled_day(date(2026, 3, 16)), date(2026, 3, 16))

        run_daily_cycle(run_date=date(2026, 3, 10), config=self.config, as_of=AS_OF)

        self.assertEqual(next_unsettled_day(date(2026, 3, 16)), date(2026, 3, 11))
        self.assertEqual(next_unsettled_day(date(2026, 3, 10)), date(2026, 3, 10))

    def test_later_open_period_refused(self):
        """Test an inconsistent state with a later day already open is refused"""
        daily_period(self.config, date(2026, 3, 20))
        with self.assertRaises(ValueError):
            run_daily_cycle(run_date=date(2026, 3, 14), config=self.config, as_of=AS_OF)

    def test_month_end_runs_monthly_close(self):
        """Test the last day of the month carries the unmatched remainder"""
        summary = run_daily_cycle(run_date=date(2026, 3, 31), config=self.config, as_of=AS_OF)

        self.assertEqual(summary['monthly']['period_id'], 'M-2026-03')
        self.assertEqual(summary['monthly']['carried_in'], 3)
        self.assertTrue(SettlementPeriod.objects.get(pk='M-2026-03').is_closed)

        c = counters('D1')
        # 2 matchable pairs held by the daily limit stay as backlog
        self.assertEqual((c.new_left_count, c.new_right_count), (2, 2))
        self.assertEqual((c.carried_right_count, c.carried_right_age), (3, 1))


class FailureIsolationTest(TestCase):
    """Test one distributor's failure does not affect the others"""

    def setUp(self):
        self.config = make_config()
        root = make_distributor('D1', new_left_count=12, new_right_count=15)
        make_distributor('D2', parent=root, side='left', new_left_count=4, new_right_count=4)

    def test_failure_recorded_and_retried(self):
        """Test D2's error is isolated, recorded, and settled on retry"""
        with patch('core.settlement.utils.record_pair_commission', side_effect=fail_for('D2')):
            with self.assertLogs('core.settlement.utils', level='ERROR'):
                summary = run_daily_cycle(run_date=date(2026, 3, 14), config=self.config, as_of=AS_OF)

        self.assertEqual(summary['failed'], ['D2'])
        self.assertTrue(LedgerEntry.objects.filter(distributor_id='D1').exists())
        self.assertFalse(PairMatchEvent.objects.filter(distributor_id='D2').exists())
        self.assertEqual(counters('D2').new_left_count, 4)

        failure = SettlementFailure.objects.get(distributor_id='D2')
        self.assertIsNone(failure.resolved_at)
        self.assertIn('ledger unavailable', failure.error)

        result = retry_failed_distributors(AS_OF)

        self.assertEqual(result['resolved'], ['D2'])
        entry = LedgerEntry.objects.get(distributor_id='D2')
        self.assertEqual(entry.period_id, 'D-2026-03-14')
        self.assertEqual(entry.net_amount, Decimal('6400.00'))
        self.assertIsNotNone(SettlementFailure.objects.get(distributor_id='D2').resolved_at)

    def test_strict_mode_raises(self):
        """Test strict mode raises PartialPeriodFailure naming the failed distributor"""
        with patch('core.settlement.utils.record_pair_commission', side_effect=fail_for('D2')):
            with self.assertLogs('core.settlement.utils', level='ERROR'):
                with self.assertRaises(PartialPeriodFailure) as ctx:
                    run_daily_cycle(run_date=date(2026, 3, 14), config=self.config, as_of=AS_OF, strict=True)

        self.assertEqual(ctx.exception.failed_distributor_ids, ['D2'])
        self.assertTrue(SettlementPeriod.objects.get(pk='D-2026-03-14').is_closed)


class CarryForwardTest(TestCase):
    """Test apply_carry_forward"""

    def test_full_carry_keeps_backlog(self):
        """Test the lopsided remainder is carried and matchable pairs stay as backlog"""
        config = make_config()
        period = closed_monthly_period(config, 2026, 3)
        make_distributor('D1', new_left_count=7, new_right_count=4)

        records = apply_carry_forward('D1', period, config)

        c = counters('D1')
        self.assertEqual((c.new_left_count, c.new_right_count), (4, 4))
        self.assertEqual((c.carried_left_count, c.carried_left_age), (3, 1))
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].carried_in, 3)

    def test_partial_percentage(self):
        """Test a partial carry keeps the floor of the percentage"""
        config = make_config(carry_forward={'type': 'partial', 'percentage': Decimal('50')})
        period = closed_monthly_period(config, 2026, 3)
        make_distributor('D1', new_left_count=5)

        record = apply_carry_forward('D1', period, config)[0]

        self.assertEqual(record.carried_in, 2)
        self.assertEqual(record.discarded, 3)
        self.assertEqual(counters('D1').new_left_count, 0)

    def test_capped_by_amount(self):
        """Test the capped type converts the maximum amount to pairs"""
        config = make_config(carry_forward={'type': 'capped', 'max_amount': Decimal('6000')})
        period = closed_monthly_period(config, 2026, 3)
        make_distributor('D1', new_left_count=5)

        record = apply_carry_forward('D1', period, config)[0]

        self.assertEqual(record.carried_in, 3)
        self.assertEqual(record.discarded, 2)

    def test_bucket_forfeited_after_max_periods(self):
        """Test a carried bucket ages each close and is forfeited past the limit"""
        config = make_config(carry_forward={'max_periods': 2})
        make_distributor('D1', carried_left_count=4, carried_left_age=1)

        apply_carry_forward('D1', closed_monthly_period(config, 2026, 1), config)
        self.assertEqual((counters('D1').carried_left_count, counters('D1').carried_left_age), (4, 2))

        with self.assertLogs('core.settlement.utils', level='WARNING'):
            record = apply_carry_forward('D1', closed_monthly_period(config, 2026, 2), config)[0]

        self.assertEqual(record.forfeited, 4)
        self.assertEqual((counters('D1').carried_left_count, counters('D1').carried_left_age), (0, 0))

    def test_weak_leg_only(self):
        """Test only the leg with the smaller subtree is carried"""
        config = make_config(carry_forward={'weak_leg_only': True})
        period = closed_monthly_period(config, 2026, 3)
        root = make_distributor('D1', new_left_count=6, new_right_count=1)
        make_distributor('L1', parent=root, side='left')
        right = make_distributor('R1', parent=root, side='right')
        make_distributor('R2', parent=right, side='left')

        apply_carry_forward('D1', period, config)

        self.assertEqual(counters('D1').carried_left_count, 5)

    def test_weak_leg_only_discards_strong_leg(self):
        """Test the remainder on the larger subtree's leg is discarded"""
        config = make_config(carry_forward={'weak_leg_only': True})
        period = closed_monthly_period(config, 2026, 3)
        root = make_distributor('D1', new_left_count=1, new_right_count=6)
        make_distributor('L1', parent=root, side='left')
        right = make_distributor('R1', parent=root, side='right')
        make_distributor('R2', parent=right, side='left')

        record = apply_carry_forward('D1', period, config)[0]

        self.assertEqual(record.side, 'right')
        self.assertEqual(record.carried_in, 0)
        self.assertEqual(record.discarded, 5)
        self.assertEqual(counters('D1').carried_right_count, 0)

    def test_disabled_discards_but_still_ages(self):
        """Test a disabled carry-forward discards the remainder while existing buckets keep aging"""
        config = make_config(carry_forward={'enabled': False})
        period = closed_monthly_period(config, 2026, 3)
        make_distributor('D1', new_left_count=5, carried_left_count=2, carried_left_age=1)

        apply_carry_forward('D1', period, config)

        c = counters('D1')
        self.assertEqual((c.carried_left_count, c.carried_left_age), (2, 2))
        self.assertEqual(c.new_left_count, 0)
        self.assertEqual(CarryForwardRecord.objects.get(side='left').discarded, 5)

    def test_same_period_applied_once(self):
        config = make_config()
        period = closed_monthly_period(config, 2026, 3)
        make_distributor('D1', new_left_count=5)

        apply_carry_forward('D1', period, config)
        self.assertEqual(apply_carry_forward('D1', period, config), [])
        self.assertEqual(counters('D1').carried_left_count, 5)


class SettlementTaskTest(TestCase):
    """Test the beat tasks called synchronously"""

    def test_daily_tick_settles_given_date(self):
        make_distributor('D1', new_left_count=2, new_right_count=2)

        summary = daily_settlement_tick('2026-03-14')

        self.assertEqual(summary['period_id'], 'D-2026-03-14')
        self.assertEqual(summary['matched_pairs'], 2)

    def test_monthly_tick_closes_past_month(self):
        """Test a month whose last daily run never happened is closed"""
        open_period(SettlementPeriod.TYPE_MONTHLY, date(2026, 1, 10), make_config())

        summary = monthly_close_tick()

        self.assertEqual(summary['period_id'], 'M-2026-01')
        self.assertTrue(SettlementPeriod.objects.get(pk='M-2026-01').is_closed)


class RunDailyEndpointTest(TestCase):
    """Test POST /api/settlement/run-daily/"""

    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(get_user_model().objects.create_superuser(
            username='admin', email='admin@example.com', password='testpass123'
        ))

    def test_run_daily(self):
        response = self.client.post('/api/settlement/run-daily/', {'run_date': '2026-03-14'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['period_id'], 'D-2026-03-14')

    def test_conflicting_period_returns_409(self):
        """Test a later open period makes the request a conflict"""
        daily_period(make_config(), date(2026, 3, 20))
        response = self.client.post('/api/settlement/run-daily/', {'run_date': '2026-03-14'}, format='json')
        self.assertEqual(response.status_code, 409)
