"""
Binary pair matching.

compute_pair_match() is a pure function of a counter snapshot and the
config; match_distributor() applies its result to the stored counters and
writes the PairMatchEvent. Carried counts are always consumed before new
counts, and anything blocked by a cap stays in the counters as backlog.
"""
import logging
from dataclasses import dataclass

from .models import Distributor, PairMatchEvent, SubtreeCounters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CounterSnapshot:
    new_left: int = 0
    new_right: int = 0
    carried_left: int = 0
    carried_right: int = 0
    lifetime_matched_pairs: int = 0

    @classmethod
    def from_counters(cls, counters):
        return cls(
            new_left=counters.new_left_count,
            new_right=counters.new_right_count,
            carried_left=counters.carried_left_count,
            carried_right=counters.carried_right_count,
            lifetime_matched_pairs=counters.lifetime_matched_pairs,
        )

    @property
    def available_left(self):
        return self.carried_left + self.new_left

    @property
    def available_right(self):
        return self.carried_right + self.new_right


@dataclass(frozen=True)
class PairMatch:
    matched_pairs: int = 0
    raw_matches: int = 0
    blocked_by_daily_limit: int = 0
    blocked_by_active_buyer_cap: int = 0
    carried_left_consumed: int = 0
    carried_right_consumed: int = 0
    new_left_consumed: int = 0
    new_right_consumed: int = 0


def compute_pair_match(snapshot, config, is_activated, is_active_buyer):
    """
    Work out how many pairs a distributor matches this run.

    Steps:
    1. available = carried + new per leg
    2. raw matches = min(available left, available right)
    3. cap at daily_pair_limit
    4. non Active Buyers: cap lifetime matched pairs at
       max_earnings_before_active_buyer
    5. consume carried counts first, then new counts, per leg
    """
    if not is_activated:
        return PairMatch()

    raw_matches = min(snapshot.available_left, snapshot.available_right)
    capped = min(raw_matches, config.daily_pair_limit)
    blocked_by_daily_limit = raw_matches - capped

    matched = capped
    if not is_active_buyer:
        allowed = max(0, config.max_earnings_before_active_buyer - snapshot.lifetime_matched_pairs)
        matched = min(capped, allowed)
    blocked_by_active_buyer_cap = capped - matched

    carried_left_consumed = min(snapshot.carried_left, matched)
    carried_right_consumed = min(snapshot.carried_right, matched)

    return PairMatch(
        matched_pairs=matched,
        raw_matches=raw_matches,
        blocked_by_daily_limit=blocked_by_daily_limit,
        blocked_by_active_buyer_cap=blocked_by_active_buyer_cap,
        carried_left_consumed=carried_left_consumed,
        carried_right_consumed=carried_right_consumed,
        new_left_consumed=matched - carried_left_consumed,
        new_right_consumed=matched - carried_right_consumed,
    )


def match_distributor(distributor, period, config, as_of):
    """
    Match pairs for one distributor and consume them from the counters.

    Must run inside the caller's transaction; the counters row is locked
    here. Idempotent per (distributor, period): a second call for the same
    period returns the existing event without touching the counters.

    Args:
        distributor: Locked Distributor row
        period: SettlementPeriod the match belongs to
        config: CommissionConfig snapshot
        as_of: Timestamp recorded on the event (the settlement run time)

    Returns:
        PairMatchEvent or None if nothing matched
    """
    existing = PairMatchEvent.objects.filter(distributor=distributor, period=period).first()
    if existing:
        logger.info(f"Pair match for {distributor.id} in {period.period_id} already recorded, skipping")
        return existing

    counters = SubtreeCounters.objects.select_for_update().get(distributor=distributor)
    result = compute_pair_match(
        CounterSnapshot.from_counters(counters),
        config,
        is_activated=distributor.is_activated,
        is_active_buyer=distributor.is_active_buyer,
    )

    if result.blocked_by_daily_limit:
        logger.warning(
            f"Daily pair limit reached for {distributor.id}: {result.raw_matches} pairs available, "
            f"{config.daily_pair_limit} matched. {result.blocked_by_daily_limit} left in the counters."
        )
    if result.blocked_by_active_buyer_cap:
        logger.warning(
            f"Pair earning cap reached for {distributor.id}: {counters.lifetime_matched_pairs} lifetime pairs, "
            f"cap {config.max_earnings_before_active_buyer} until Active Buyer. "
            f"{result.blocked_by_active_buyer_cap} pairs held back."
        )

    if result.matched_pairs == 0:
        return None

    counters.carried_left_count -= result.carried_left_consumed
    counters.carried_right_count -= result.carried_right_consumed
    counters.new_left_count -= result.new_left_consumed
    counters.new_right_count -= result.new_right_consumed
    if counters.carried_left_count == 0:
        counters.carried_left_age = 0
    if counters.carried_right_count == 0:
        counters.carried_right_age = 0
    counters.lifetime_matched_pairs += result.matched_pairs
    counters.save()

    event = PairMatchEvent.objects.create(
        distributor=distributor,
        period=period,
        matched_pairs=result.matched_pairs,
        timestamp=as_of,
        raw_matches=result.raw_matches,
        carried_left_consumed=result.carried_left_consumed,
        carried_right_consumed=result.carried_right_consumed,
        blocked_by_daily_limit=result.blocked_by_daily_limit,
        blocked_by_active_buyer_cap=result.blocked_by_active_buyer_cap,
    )
    logger.info(
        f"Matched {result.matched_pairs} pair(s) for {distributor.id} in {period.period_id} "
        f"(L {counters.available_left} / R {counters.available_right} remaining)"
    )
    return event


def run_matching_pass(config, distributor_ids=None):
    """
    Preview the matches a settlement run would produce, without writing.

    Returns:
        list: (distributor_id, PairMatch) for every activated distributor
              with at least one pair to match, ordered by id
    """
    distributors = Distributor.objects.filter(is_activated=True).select_related('counters').order_by('id')
    if distributor_ids is not None:
        distributors = distributors.filter(id__in=distributor_ids)

    preview = []
    for distributor in distributors:
        result = compute_pair_match(
            CounterSnapshot.from_counters(distributor.counters),
            config,
            is_activated=distributor.is_activated,
            is_active_buyer=distributor.is_active_buyer,
        )
        if result.matched_pairs:
            preview.append((distributor.id, result))
    return preview
