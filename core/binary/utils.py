import logging
from dataclasses import dataclass, field

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .exceptions import IdempotencyConflict, PlacementError
from .models import Distributor, SubtreeCounters, opposite_side

logger = logging.getLogger(__name__)

SIDES = ('left', 'right')
MAX_PLACEMENT_ATTEMPTS = 3


@dataclass
class PlacementResult:
    distributor_id: str
    parent_id: str
    side: str
    depth: int
    spillover: bool = False
    ancestor_ids: list = field(default_factory=list)


def get_ancestor_path(distributor_id):
    """
    Walk up the binary tree from a distributor.

    Returns:
        list: (ancestor_id, side) tuples root-ward, where side is the leg of
              the ancestor that contains the distributor
    """
    try:
        parent_id, side = Distributor.objects.values_list('parent_id', 'side').get(pk=distributor_id)
    except Distributor.DoesNotExist:
        raise PlacementError(f"Distributor {distributor_id} does not exist")

    path = []
    seen = {distributor_id}
    while parent_id:
        if parent_id in seen:
            raise PlacementError(f"Cycle detected in ancestor chain of {distributor_id} at {parent_id}")
        seen.add(parent_id)
        path.append((parent_id, side))
        parent_id, side = Distributor.objects.values_list('parent_id', 'side').get(pk=parent_id)
    return path


def get_ancestor_chain(distributor_id):
    """Ancestor ids ordered from the parent up to the root"""
    return [ancestor_id for ancestor_id, _ in get_ancestor_path(distributor_id)]


def get_subtree_size(distributor_id, side):
    """
    Count ALL descendants on the specified side (entire subtree under the
    child in that slot). Read-only.
    """
    if side not in SIDES:
        raise ValueError(f"Invalid side: {side}. Must be 'left' or 'right'")

    child_id = (
        Distributor.objects.filter(parent_id=distributor_id, side=side)
        .values_list('id', flat=True)
        .first()
    )
    if child_id is None:
        return 0

    count = 0
    frontier = [child_id]
    while frontier:
        count += len(frontier)
        frontier = list(Distributor.objects.filter(parent_id__in=frontier).values_list('id', flat=True))
    return count


def get_weak_leg_report(distributor_id):
    """
    Subtree sizes per leg plus the unmatched counter state, used by the
    weak leg and network saturation reports.
    """
    counters = SubtreeCounters.objects.get(distributor_id=distributor_id)
    left_size = get_subtree_size(distributor_id, 'left')
    right_size = get_subtree_size(distributor_id, 'right')

    if left_size < right_size:
        weak_side = 'left'
    elif right_size < left_size:
        weak_side = 'right'
    else:
        weak_side = None

    return {
        'distributor_id': distributor_id,
        'left_subtree_size': left_size,
        'right_subtree_size': right_size,
        'weak_side': weak_side,
        'imbalance': abs(left_size - right_size),
        'available_left': counters.available_left,
        'available_right': counters.available_right,
    }


def _child_in_slot(parent_id, side):
    return (
        Distributor.objects.filter(parent_id=parent_id, side=side)
        .values_list('id', flat=True)
        .first()
    )


def _search_subtree(root_id, root_depth, referrer_depth, config):
    """
    Find the first empty default-side slot in the subtree rooted at root_id.

    bfs scans level by level (left child before right); dfs follows the
    default-side chain straight down. Neither goes below the spillover bound
    or the tree's maximum depth.

    Returns:
        tuple: (parent_id, parent_depth) of the free slot, or None
    """
    slot_side = config.default_placement_side
    max_parent_depth = min(config.max_tree_depth, referrer_depth + config.spillover_max_depth) - 1

    if config.placement_search_strategy == 'dfs':
        current_id, current_depth = root_id, root_depth
        while current_depth <= max_parent_depth:
            child_id = _child_in_slot(current_id, slot_side)
            if child_id is None:
                return current_id, current_depth
            current_id, current_depth = child_id, current_depth + 1
        return None

    frontier = [root_id]
    depth = root_depth
    while frontier and depth <= max_parent_depth:
        rows = Distributor.objects.filter(parent_id__in=frontier).values_list('id', 'parent_id', 'side')
        children = {}
        for child_id, parent_id, side in rows:
            children.setdefault(parent_id, {})[side] = child_id

        for node_id in frontier:
            if slot_side not in children.get(node_id, {}):
                return node_id, depth

        frontier = [
            children[node_id][side]
            for node_id in frontier
            for side in SIDES
            if side in children.get(node_id, {})
        ]
        depth += 1
    return None


def find_placement_slot(referrer, preferred_side, config):
    """
    Pick the slot for a new referral under referrer.

    Rules:
    1. Preferred slot empty → attach directly
    2. Preferred slot full → spill over into the preferred side subtree
    3. Preferred subtree exhausted → same two steps on the opposite side

    Returns:
        tuple: (parent_id, side, parent_depth, spillover)
    """
    if referrer.depth + 1 > config.max_tree_depth:
        raise PlacementError(
            f"Referrer {referrer.id} is at depth {referrer.depth}; maximum tree depth {config.max_tree_depth} reached"
        )

    for leg in (preferred_side, opposite_side(preferred_side)):
        child_id = _child_in_slot(referrer.id, leg)
        if child_id is None:
            return referrer.id, leg, referrer.depth, leg != preferred_side

        found = _search_subtree(child_id, referrer.depth + 1, referrer.depth, config)
        if found:
            parent_id, parent_depth = found
            return parent_id, config.default_placement_side, parent_depth, True

    raise PlacementError(
        f"No free slot under referrer {referrer.id} within "
        f"{min(config.spillover_max_depth, config.max_tree_depth - referrer.depth)} levels"
    )


def _increment_ancestor_counters(distributor_id):
    """
    Add one new placement to every ancestor's counter on the leg that
    contains distributor_id. F() updates keep concurrent placements under
    the same lineage from losing increments.
    """
    path = get_ancestor_path(distributor_id)
    left_ids = [ancestor_id for ancestor_id, side in path if side == 'left']
    right_ids = [ancestor_id for ancestor_id, side in path if side == 'right']

    if left_ids:
        SubtreeCounters.objects.filter(distributor_id__in=left_ids).update(
            new_left_count=F('new_left_count') + 1
        )
    if right_ids:
        SubtreeCounters.objects.filter(distributor_id__in=right_ids).update(
            new_right_count=F('new_right_count') + 1
        )
    return [ancestor_id for ancestor_id, _ in path]


def _place_root(new_id, joined_at):
    if Distributor.objects.exists():
        raise PlacementError(f"Cannot place {new_id} without a referrer: the tree already has a root")
    Distributor.objects.create(id=new_id, depth=0, joined_at=joined_at)
    SubtreeCounters.objects.create(distributor_id=new_id)
    logger.info(f"Placed {new_id} as tree root")
    return PlacementResult(distributor_id=new_id, parent_id=None, side=None, depth=0)


def _place_node_once(new_id, referrer_id, preferred_side, config, joined_at):
    if Distributor.objects.filter(pk=new_id).exists():
        raise PlacementError(f"Distributor {new_id} is already placed; placement is immutable")

    if referrer_id is None:
        return _place_root(new_id, joined_at)

    try:
        referrer = Distributor.objects.get(pk=referrer_id)
    except Distributor.DoesNotExist:
        raise PlacementError(f"Referrer {referrer_id} does not exist")

    parent_id, side, parent_depth, spillover = find_placement_slot(referrer, preferred_side, config)

    # Lock the parent so the slot check and insert happen under one owner
    Distributor.objects.select_for_update().get(pk=parent_id)
    if _child_in_slot(parent_id, side) is not None:
        raise IntegrityError(f"Slot {side} under {parent_id} was taken concurrently")

    Distributor.objects.create(
        id=new_id,
        parent_id=parent_id,
        referrer_id=referrer_id,
        side=side,
        depth=parent_depth + 1,
        joined_at=joined_at,
    )
    SubtreeCounters.objects.create(distributor_id=new_id)
    ancestor_ids = _increment_ancestor_counters(new_id)

    logger.info(
        f"Placed {new_id} under {parent_id} ({side}) for referrer {referrer_id}"
        f"{' via spillover' if spillover else ''}; {len(ancestor_ids)} ancestor counters updated"
    )
    return PlacementResult(
        distributor_id=new_id,
        parent_id=parent_id,
        side=side,
        depth=parent_depth + 1,
        spillover=spillover,
        ancestor_ids=ancestor_ids,
    )


def place_node(new_id, referrer_id, config, preferred_side=None, joined_at=None):
    """
    Place a new distributor in the binary tree under referrer_id.

    Args:
        new_id: External id of the distributor to place
        referrer_id: Distributor who referred them (None only for the root)
        config: CommissionConfig snapshot
        preferred_side: Optional 'left' or 'right'; defaults to the configured side
        joined_at: Optional join timestamp (default: now)

    Returns:
        PlacementResult

    Raises:
        PlacementError: If the referrer does not exist, the distributor is
                        already placed, or no slot is free within the depth bounds
    """
    if preferred_side is not None and preferred_side not in SIDES:
        raise PlacementError(f"Invalid side: {preferred_side}. Must be 'left' or 'right'")
    preferred_side = preferred_side or config.default_placement_side
    joined_at = joined_at or timezone.now()

    for attempt in range(1, MAX_PLACEMENT_ATTEMPTS + 1):
        try:
            with transaction.atomic():
                return _place_node_once(new_id, referrer_id, preferred_side, config, joined_at)
        except IntegrityError as e:
            # Lost a race for the slot (unique_parent_side); search again
            logger.warning(f"Placement of {new_id} collided (attempt {attempt}/{MAX_PLACEMENT_ATTEMPTS}): {e}")

    raise PlacementError(f"Could not place {new_id} after {MAX_PLACEMENT_ATTEMPTS} attempts")


def _store_referral_count(distributor, new_count, config, period):
    """
    Persist a higher direct referral count on a locked distributor and
    activate binary commission the first time it reaches the threshold.
    """
    from core.commission.utils import record_activation_bonus

    update_fields = []
    if new_count > distributor.direct_referral_count:
        distributor.direct_referral_count = new_count
        update_fields.append('direct_referral_count')

    activate = (
        not distributor.is_activated
        and distributor.direct_referral_count >= config.activation_threshold
    )
    if activate:
        distributor.is_activated = True
        distributor.activated_at = timezone.now()
        update_fields += ['is_activated', 'activated_at']
        logger.info(
            f"Binary commission activated for {distributor.id}: "
            f"{distributor.direct_referral_count} direct referrals (threshold {config.activation_threshold})"
        )

    if update_fields:
        distributor.save(update_fields=update_fields + ['updated_at'])

    if distributor.is_activated and not distributor.activation_bonus_paid:
        return record_activation_bonus(distributor, config, period)
    return None


def apply_direct_referral_count(distributor_id, new_count, config, period):
    """
    DirectReferralCountChanged event: store the distributor's direct referral
    count and activate binary commission the first time it reaches the
    activation threshold.

    Counts never go down. The activation bonus is guarded by the persisted
    activation_bonus_paid flag; a stale or duplicate delivery of a count at
    or above the threshold raises IdempotencyConflict.

    Returns:
        LedgerEntry for the activation bonus, or None
    """
    with transaction.atomic():
        distributor = Distributor.objects.select_for_update().get(pk=distributor_id)

        if (distributor.activation_bonus_paid
                and config.activation_threshold <= new_count <= distributor.direct_referral_count):
            raise IdempotencyConflict(
                f"Activation of {distributor_id} already applied "
                f"(count {distributor.direct_referral_count}, event count {new_count})"
            )

        return _store_referral_count(distributor, new_count, config, period)


def handle_referral_placed(new_id, referrer_id, config, period, preferred_side=None, joined_at=None):
    """
    ReferralPlaced event: place the new distributor, then count the
    referral for the referrer and run the activation check.

    Returns:
        tuple: (PlacementResult, activation bonus LedgerEntry or None)
    """
    with transaction.atomic():
        result = place_node(new_id, referrer_id, config, preferred_side=preferred_side, joined_at=joined_at)
        if referrer_id is None:
            return result, None

        referrer = Distributor.objects.select_for_update().get(pk=referrer_id)
        bonus = _store_referral_count(referrer, referrer.direct_referral_count + 1, config, period)
    return result, bonus


def mark_active_buyer(distributor_id, amount_paid, config, period):
    """
    PurchaseActivated event: the distributor's own purchase qualified.

    Lifts the lifetime pair cap for the distributor and, while their
    referrer is not yet activated, pays the referrer a direct commission.
    Direct commission stops completely once the referrer is activated.

    Returns:
        LedgerEntry for the direct commission, or None
    """
    from core.commission.utils import record_direct_commission

    with transaction.atomic():
        distributor = Distributor.objects.select_for_update().get(pk=distributor_id)
        if not distributor.is_active_buyer:
            distributor.is_active_buyer = True
            distributor.save(update_fields=['is_active_buyer', 'updated_at'])
            logger.info(
                f"Distributor {distributor_id} became Active Buyer (paid ₹{amount_paid}). "
                f"Pair commissions beyond the pre-purchase cap will now be paid."
            )

        if distributor.referrer_id is None:
            return None

        referrer = Distributor.objects.select_for_update().get(pk=distributor.referrer_id)
        if referrer.is_activated:
            logger.info(
                f"Direct commission not paid to {referrer.id} for {distributor_id}: "
                f"binary commission already activated"
            )
            return None

        return record_direct_commission(referrer, distributor, config, period)
