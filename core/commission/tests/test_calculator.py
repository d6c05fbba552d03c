"""
Tests for the commission and deduction calculator
"""
from decimal import Decimal

from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from core.binary.models import Distributor, PairMatchEvent
from core.binary.tests.helpers import daily_period, make_config, make_distributor
from core.ceiling.models import LevelState
from core.commission.models import LedgerEntry
from core.commission.utils import (
    calculate_activation_bonus,
    calculate_direct_commission,
    calculate_pair_commission,
    record_pair_commission,
    split_pair_portions,
)
from core.wallet.models import Wallet


class CalculatePairCommissionTest(SimpleTestCase):
    """Test calculate_pair_commission"""

    def setUp(self):
        self.config = make_config(
            binary_pair_commission_amount=Decimal('2000'),
            binary_tds_threshold_pairs=5,
            tds_percentage=Decimal('20'),
            extra_deduction_percentage=Decimal('20'),
        )

    def test_split_at_threshold(self):
        """Test 4 pairs after 3 split into 2 below and 2 above the threshold"""
        self.assertEqual(split_pair_portions(3, 4, 5), (2, 2))
        self.assertEqual(split_pair_portions(0, 4, 5), (4, 0))
        self.assertEqual(split_pair_portions(7, 4, 5), (0, 4))

    def test_match_straddling_threshold(self):
        """Test gross 8000, TDS 1600, extra 800, net 5600"""
        breakdown = calculate_pair_commission(4, 3, self.config)

        self.assertEqual(breakdown.gross_amount, Decimal('8000.00'))
        self.assertEqual(breakdown.tds_amount, Decimal('1600.00'))
        self.assertEqual(breakdown.extra_deduction_amount, Decimal('800.00'))
        self.assertEqual(breakdown.net_amount, Decimal('5600.00'))
        self.assertEqual(breakdown.pairs_below_threshold, 2)
        self.assertEqual(breakdown.pairs_above_threshold, 2)
        self.assertFalse(breakdown.clamped)

    def test_below_threshold_tds_only(self):
        """Test pairs within the threshold pay no extra deduction"""
        breakdown = calculate_pair_commission(2, 0, self.config)
        self.assertEqual(breakdown.extra_deduction_amount, Decimal('0.00'))
        self.assertEqual(breakdown.net_amount, Decimal('3200.00'))

    def test_each_portion_rounded(self):
        """Test TDS is rounded per portion with half-up rounding"""
        config = make_config(binary_pair_commission_amount=Decimal('10.05'), tds_percentage=Decimal('10'))

        breakdown = calculate_pair_commission(2, 4, config)

        # 1.005 rounds to 1.01 for each one-pair portion
        self.assertEqual(breakdown.gross_amount, Decimal('20.10'))
        self.assertEqual(breakdown.tds_amount, Decimal('2.02'))
        self.assertEqual(breakdown.extra_deduction_amount, Decimal('2.01'))
        self.assertEqual(breakdown.net_amount, Decimal('16.07'))

    def test_net_clamped_when_deductions_exceed_gross(self):
        """Test 70% TDS plus 50% extra clamps net at zero and logs the violation"""
        config = make_config(tds_percentage=Decimal('70'), extra_deduction_percentage=Decimal('50'))

        with self.assertLogs('core.commission.utils', level='WARNING') as logs:
            breakdown = calculate_pair_commission(1, 5, config)

        self.assertIn('ConfigInvariantViolation', logs.output[0])
        self.assertTrue(breakdown.clamped)
        self.assertEqual(breakdown.net_amount, Decimal('0.00'))
        self.assertEqual(breakdown.tds_amount, Decimal('1400.00'))
        self.assertEqual(breakdown.extra_deduction_amount, Decimal('600.00'))
        self.assertEqual(
            breakdown.gross_amount - breakdown.tds_amount - breakdown.extra_deduction_amount,
            breakdown.net_amount,
        )

    def test_level_override_amount(self):
        """Test an explicit pair amount replaces the configured one"""
        breakdown = calculate_pair_commission(1, 0, self.config, pair_amount=Decimal('2500'))
        self.assertEqual(breakdown.gross_amount, Decimal('2500.00'))

    def test_activation_bonus_taxed(self):
        """Test the activation bonus pays TDS but no extra deduction"""
        breakdown = calculate_activation_bonus(make_config(initial_bonus=Decimal('500')))
        self.assertEqual(breakdown.tds_amount, Decimal('100.00'))
        self.assertEqual(breakdown.extra_deduction_amount, Decimal('0.00'))
        self.assertEqual(breakdown.net_amount, Decimal('400.00'))

    def test_direct_commission_untaxed(self):
        """Test direct user commission is credited in full"""
        breakdown = calculate_direct_commission(make_config(direct_user_commission_amount=Decimal('1000')))
        self.assertEqual(breakdown.net_amount, Decimal('1000.00'))
        self.assertEqual(breakdown.tds_amount, Decimal('0.00'))


class RecordPairCommissionTest(TestCase):
    """Test record_pair_commission"""

    def setUp(self):
        self.config = make_config()
        self.period = daily_period(self.config)
        self.distributor = make_distributor('D1', pairs_since_activation=3)
        self.event = PairMatchEvent.objects.create(
            distributor=self.distributor,
            period=self.period,
            matched_pairs=4,
            timestamp=timezone.now(),
            raw_matches=4,
        )

    def test_entry_wallet_and_level_updated(self):
        """Test the ledger entry, wallet credit and level progress move together"""
        entry = record_pair_commission(self.distributor, self.event, self.config, self.period)

        self.assertEqual(entry.kind, LedgerEntry.KIND_PAIR_COMMISSION)
        self.assertEqual(entry.net_amount, Decimal('5600.00'))
        self.assertEqual(entry.source_event_id, f"pair:{self.event.pk}")
        self.assertEqual(Distributor.objects.get(pk='D1').pairs_since_activation, 7)
        self.assertEqual(Wallet.objects.get(distributor=self.distributor).balance, Decimal('5600.00'))
        self.assertEqual(LevelState.objects.get(distributor=self.distributor).cumulative_achieved, Decimal('5600.00'))

    def test_same_pair_match_paid_once(self):
        """Test recording the same pair match twice returns the original entry"""
        first = record_pair_commission(self.distributor, self.event, self.config, self.period)
        second = record_pair_commission(self.distributor, self.event, self.config, self.period)

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(LedgerEntry.objects.count(), 1)
        self.assertEqual(Distributor.objects.get(pk='D1').pairs_since_activation, 7)

    def test_ledger_entries_immutable(self):
        """Test a ledger entry cannot be changed or deleted"""
        entry = record_pair_commission(self.distributor, self.event, self.config, self.period)

        entry.description = 'edited'
        with self.assertRaises(ValueError):
            entry.save()
        with self.assertRaises(ValueError):
            entry.delete()
        self.assertNotEqual(LedgerEntry.objects.get(pk=entry.pk).description, 'edited')
