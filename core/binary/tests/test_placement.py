"""
Tests for binary tree placement and the activation check
"""
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase

from core.binary.exceptions import IdempotencyConflict, PlacementError
from core.binary.models import Distributor, SubtreeCounters
from core.binary.tests.helpers import daily_period, make_config
from core.binary.utils import (
    apply_direct_referral_count,
    get_ancestor_chain,
    get_ancestor_path,
    get_subtree_size,
    get_weak_leg_report,
    handle_referral_placed,
    mark_active_buyer,
    place_node,
)
from core.commission.models import LedgerEntry


def counters(distributor_id):
    return SubtreeCounters.objects.get(distributor_id=distributor_id)


class PlaceNodeTest(TestCase):
    """Test place_node"""

    def setUp(self):
        self.config = make_config()
        place_node('ROOT', None, self.config)

    def test_root_placement(self):
        """Test the first distributor becomes the root"""
        root = Distributor.objects.get(pk='ROOT')
        self.assertIsNone(root.parent)
        self.assertEqual(root.depth, 0)
        self.assertTrue(SubtreeCounters.objects.filter(distributor=root).exists())

    def test_second_root_rejected(self):
        """Test a second distributor without a referrer is refused"""
        with self.assertRaises(PlacementError):
            place_node('OTHER', None, self.config)

    def test_unknown_referrer_rejected(self):
        """Test placing under a referrer that does not exist"""
        with self.assertRaises(PlacementError):
            place_node('D1', 'MISSING', self.config)
        self.assertFalse(Distributor.objects.filter(pk='D1').exists())

    def test_already_placed_rejected(self):
        """Test placement is immutable"""
        place_node('D1', 'ROOT', self.config, preferred_side='left')
        with self.assertRaises(PlacementError):
            place_node('D1', 'ROOT', self.config, preferred_side='right')
        self.assertEqual(Distributor.objects.get(pk='D1').side, 'left')

    def test_invalid_side_rejected(self):
        """Test a preferred side other than left/right is refused"""
        with self.assertRaises(PlacementError):
            place_node('D1', 'ROOT', self.config, preferred_side='middle')

    def test_direct_placement_on_preferred_side(self):
        """Test an empty preferred slot is used directly"""
        result = place_node('D1', 'ROOT', self.config, preferred_side='right')

        self.assertEqual(result.parent_id, 'ROOT')
        self.assertEqual(result.side, 'right')
        self.assertEqual(result.depth, 1)
        self.assertFalse(result.spillover)
        self.assertEqual(counters('ROOT').new_right_count, 1)
        self.assertEqual(counters('ROOT').new_left_count, 0)

    def test_default_side_used_without_preference(self):
        """Test the configured default side applies when no side is given"""
        config = make_config(default_placement_side='right')
        result = place_node('D1', 'ROOT', config)
        self.assertEqual(result.side, 'right')

    def test_bfs_spillover_fills_shallowest_slot(self):
        """Test breadth-first spillover picks the shallowest free default-side slot"""
        place_node('L1', 'ROOT', self.config, preferred_side='left')
        place_node('L2', 'L1', self.config, preferred_side='left')
        place_node('L1R', 'L1', self.config, preferred_side='right')

        # L2 and L1R are both free at depth 2; left children are scanned first
        result = place_node('NEW', 'ROOT', self.config, preferred_side='left')

        self.assertTrue(result.spillover)
        self.assertEqual(result.parent_id, 'L2')
        self.assertEqual(result.side, 'left')
        self.assertEqual(result.depth, 3)

    def test_dfs_spillover_follows_default_chain(self):
        """Test depth-first spillover follows the default-side chain to its end"""
        config = make_config(placement_search_strategy='dfs')
        place_node('L1', 'ROOT', config, preferred_side='left')
        place_node('L2', 'L1', config, preferred_side='left')
        place_node('L3', 'L2', config, preferred_side='left')

        result = place_node('NEW', 'ROOT', config, preferred_side='left')

        self.assertEqual(result.parent_id, 'L3')
        self.assertEqual(result.depth, 4)

    def test_spillover_increments_each_ancestor_once(self):
        """Test every ancestor's counter on the insertion leg goes up by exactly one"""
        place_node('L1', 'ROOT', self.config, preferred_side='left')
        place_node('R1', 'ROOT', self.config, preferred_side='right')
        place_node('L2', 'L1', self.config, preferred_side='left')
        place_node('L1R', 'L1', self.config, preferred_side='right')

        before = {c.distributor_id: (c.new_left_count, c.new_right_count) for c in SubtreeCounters.objects.all()}
        result = place_node('NEW', 'L1', self.config, preferred_side='right')

        # L1.right is taken, so NEW spills into L1R's left slot
        self.assertEqual(result.parent_id, 'L1R')
        self.assertEqual(result.ancestor_ids, ['L1R', 'L1', 'ROOT'])
        self.assertEqual(counters('L1R').new_left_count, before['L1R'][0] + 1)
        self.assertEqual(counters('L1').new_right_count, before['L1'][1] + 1)
        self.assertEqual(counters('ROOT').new_left_count, before['ROOT'][0] + 1)
        self.assertEqual(counters('ROOT').new_right_count, before['ROOT'][1])
        self.assertEqual(counters('R1').new_left_count, before['R1'][0])
        self.assertEqual(counters('L2').new_left_count, before['L2'][0])

    def test_full_left_subtree_lands_on_right(self):
        """Test spillover falls back to the opposite side when the preferred subtree is full to the configured depth"""
        config = make_config(spillover_max_depth=2)
        place_node('D1', 'ROOT', config, preferred_side='left')
        place_node('L1', 'D1', config, preferred_side='left')
        place_node('L2', 'L1', config, preferred_side='left')
        place_node('L1R', 'L1', config, preferred_side='right')

        root_before = counters('ROOT')
        result = place_node('NEW', 'D1', config, preferred_side='left')

        self.assertEqual(result.parent_id, 'D1')
        self.assertEqual(result.side, 'right')
        self.assertTrue(result.spillover)
        self.assertEqual(counters('D1').new_right_count, 1)
        self.assertEqual(counters('ROOT').new_left_count, root_before.new_left_count + 1)

    def test_max_tree_depth_exhausted(self):
        """Test placement fails when no slot exists within the depth bounds"""
        config = make_config(max_tree_depth=1)
        place_node('L1', 'ROOT', config, preferred_side='left')
        place_node('R1', 'ROOT', config, preferred_side='right')

        with self.assertRaises(PlacementError):
            place_node('NEW', 'ROOT', config)
        with self.assertRaises(PlacementError):
            place_node('DEEP', 'L1', config)

    def test_interleaved_placements_keep_both_increments(self):
        """Test a sibling placed between reading the lineage and updating counters is not lost"""
        place_node('L1', 'ROOT', self.config, preferred_side='left')
        place_node('L2', 'L1', self.config, preferred_side='left')
        root_before = counters('ROOT').new_left_count
        l1_before = counters('L1').new_left_count

        read_path = get_ancestor_path
        sibling_placed = []

        def path_then_place_sibling(distributor_id):
            path = read_path(distributor_id)
            if distributor_id == 'A' and not sibling_placed:
                sibling_placed.append('B')
                place_node('B', 'L2', self.config, preferred_side='right')
            return path

        with patch('core.binary.utils.get_ancestor_path', side_effect=path_then_place_sibling):
            place_node('A', 'L2', self.config, preferred_side='left')

        self.assertEqual(sibling_placed, ['B'])
        self.assertEqual(counters('ROOT').new_left_count, root_before + 2)
        self.assertEqual(counters('L1').new_left_count, l1_before + 2)
        self.assertEqual(counters('L2').new_left_count, 1)
        self.assertEqual(counters('L2').new_right_count, 1)


class TreeQueryTest(TestCase):
    """Test ancestor chain and subtree size"""

    def setUp(self):
        self.config = make_config()
        place_node('ROOT', None, self.config)
        place_node('L1', 'ROOT', self.config, preferred_side='left')
        place_node('R1', 'ROOT', self.config, preferred_side='right')
        place_node('L2', 'L1', self.config, preferred_side='left')
        place_node('L2R', 'L1', self.config, preferred_side='right')
        place_node('L3', 'L2', self.config, preferred_side='left')

    def test_ancestor_chain(self):
        """Test ancestors are listed from parent to root"""
        self.assertEqual(get_ancestor_chain('L3'), ['L2', 'L1', 'ROOT'])
        self.assertEqual(get_ancestor_chain('ROOT'), [])

    def test_ancestor_chain_unknown(self):
        """Test unknown distributor raises PlacementError"""
        with self.assertRaises(PlacementError):
            get_ancestor_chain('NOPE')

    def test_subtree_size(self):
        """Test the whole subtree under each side is counted"""
        self.assertEqual(get_subtree_size('ROOT', 'left'), 4)
        self.assertEqual(get_subtree_size('ROOT', 'right'), 1)
        self.assertEqual(get_subtree_size('L3', 'left'), 0)

    def test_subtree_size_matches_counters_before_matching(self):
        """Test new counters equal subtree sizes while nothing has been matched"""
        for distributor in Distributor.objects.all():
            c = counters(distributor.id)
            self.assertEqual(c.new_left_count, get_subtree_size(distributor.id, 'left'))
            self.assertEqual(c.new_right_count, get_subtree_size(distributor.id, 'right'))

    def test_weak_leg_report(self):
        """Test the weaker leg is identified"""
        report = get_weak_leg_report('ROOT')
        self.assertEqual(report['weak_side'], 'right')
        self.assertEqual(report['imbalance'], 3)


class ActivationTest(TestCase):
    """Test activation and the one-time activation bonus"""

    def setUp(self):
        self.config = make_config(activation_threshold=3, initial_bonus=Decimal('500'))
        self.period = daily_period(self.config)
        place_node('ROOT', None, self.config)
        handle_referral_placed('D1', 'ROOT', self.config, self.period)

    def test_third_referral_activates_and_pays_bonus_once(self):
        """Test the third referral flips activation and pays exactly one bonus"""
        _, bonus = handle_referral_placed('A', 'D1', self.config, self.period)
        self.assertIsNone(bonus)
        _, bonus = handle_referral_placed('B', 'D1', self.config, self.period)
        self.assertIsNone(bonus)
        self.assertFalse(Distributor.objects.get(pk='D1').is_activated)

        _, bonus = handle_referral_placed('C', 'D1', self.config, self.period)

        d1 = Distributor.objects.get(pk='D1')
        self.assertTrue(d1.is_activated)
        self.assertTrue(d1.activation_bonus_paid)
        self.assertEqual(d1.direct_referral_count, 3)
        self.assertEqual(bonus.gross_amount, Decimal('500.00'))
        self.assertEqual(bonus.tds_amount, Decimal('100.00'))
        self.assertEqual(bonus.net_amount, Decimal('400.00'))

        handle_referral_placed('E', 'D1', self.config, self.period)
        self.assertEqual(
            LedgerEntry.objects.filter(distributor_id='D1', kind=LedgerEntry.KIND_ACTIVATION_BONUS).count(), 1
        )

    def test_duplicate_count_event_pays_once(self):
        """Test the same activation-crossing event delivered twice yields one bonus"""
        first = apply_direct_referral_count('D1', 3, self.config, self.period)
        self.assertIsNotNone(first)

        with self.assertRaises(IdempotencyConflict):
            apply_direct_referral_count('D1', 3, self.config, self.period)

        self.assertEqual(
            LedgerEntry.objects.filter(distributor_id='D1', kind=LedgerEntry.KIND_ACTIVATION_BONUS).count(), 1
        )

    def test_count_never_decreases(self):
        """Test a stale lower count does not reduce the stored count"""
        apply_direct_referral_count('D1', 2, self.config, self.period)
        apply_direct_referral_count('D1', 1, self.config, self.period)
        self.assertEqual(Distributor.objects.get(pk='D1').direct_referral_count, 2)

    def test_zero_bonus_still_marks_paid(self):
        """Test activation with no bonus configured sets the flag without a ledger entry"""
        config = make_config(activation_threshold=1, initial_bonus=Decimal('0'))
        bonus = apply_direct_referral_count('D1', 1, config, self.period)

        self.assertIsNone(bonus)
        self.assertTrue(Distributor.objects.get(pk='D1').activation_bonus_paid)
        self.assertFalse(LedgerEntry.objects.filter(kind=LedgerEntry.KIND_ACTIVATION_BONUS).exists())


class ActiveBuyerTest(TestCase):
    """Test PurchaseActivated handling"""

    def setUp(self):
        self.config = make_config(direct_user_commission_amount=Decimal('1000'))
        self.period = daily_period(self.config)
        place_node('ROOT', None, self.config)
        handle_referral_placed('D1', 'ROOT', self.config, self.period)
        handle_referral_placed('D2', 'D1', self.config, self.period)

    def test_direct_commission_untaxed_before_activation(self):
        """Test the referrer gets an untaxed direct commission while not activated"""
        entry = mark_active_buyer('D2', Decimal('5000'), self.config, self.period)

        self.assertTrue(Distributor.objects.get(pk='D2').is_active_buyer)
        self.assertEqual(entry.distributor_id, 'D1')
        self.assertEqual(entry.kind, LedgerEntry.KIND_DIRECT_COMMISSION)
        self.assertEqual(entry.gross_amount, Decimal('1000.00'))
        self.assertEqual(entry.tds_amount, Decimal('0.00'))
        self.assertEqual(entry.net_amount, Decimal('1000.00'))

    def test_duplicate_purchase_pays_once(self):
        """Test a redelivered purchase event does not pay again"""
        mark_active_buyer('D2', Decimal('5000'), self.config, self.period)
        self.assertIsNone(mark_active_buyer('D2', Decimal('5000'), self.config, self.period))
        self.assertEqual(LedgerEntry.objects.filter(kind=LedgerEntry.KIND_DIRECT_COMMISSION).count(), 1)

    def test_no_direct_commission_after_activation(self):
        """Test direct commission stops once the referrer is activated"""
        Distributor.objects.filter(pk='D1').update(is_activated=True, activation_bonus_paid=True)

        entry = mark_active_buyer('D2', Decimal('5000'), self.config, self.period)

        self.assertIsNone(entry)
        self.assertTrue(Distributor.objects.get(pk='D2').is_active_buyer)
        self.assertFalse(LedgerEntry.objects.filter(kind=LedgerEntry.KIND_DIRECT_COMMISSION).exists())
