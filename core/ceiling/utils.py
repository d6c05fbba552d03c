import logging
from decimal import Decimal

from django.db import transaction

from .models import LevelChangeEvent, LevelState

logger = logging.getLogger(__name__)


def _tier(config, level):
    if 0 <= level < len(config.level_table):
        return config.level_table[level]
    return None


def compute_promotions(current_level, progress, level_table):
    """
    Levels passed through when progress is measured against the ceilings.

    The running total is never reduced on promotion; it is compared against
    the next, higher ceiling. No promotion past the top tier.

    Returns:
        list: (from_level, to_level) steps, possibly empty
    """
    steps = []
    level = current_level
    while level < len(level_table) - 1 and progress >= level_table[level].ceiling:
        steps.append((level, level + 1))
        level += 1
    return steps


def get_or_create_level_state(distributor, config):
    first = _tier(config, 0)
    state, created = LevelState.objects.get_or_create(
        distributor=distributor,
        defaults={
            'current_level': 0,
            'level_name': first.name if first else '',
            'ceiling_for_level': first.ceiling if first else None,
        },
    )
    return state


def get_pair_commission_amount(distributor, config):
    """
    Per-pair amount for a distributor: the current level's override when the
    tier defines one, otherwise the configured binary pair commission.
    """
    current_level = (
        LevelState.objects.filter(distributor_id=distributor.pk)
        .values_list('current_level', flat=True)
        .first()
    ) or 0
    tier = _tier(config, current_level)
    if tier is not None and tier.pair_commission_amount is not None:
        return tier.pair_commission_amount
    return config.binary_pair_commission_amount


def apply_ledger_entry(entry, config):
    """
    Add a ledger entry's net amount to the distributor's running total and
    promote while the running total reaches the current ceiling.

    Returns:
        list: LevelChangeEvent rows created (one per level passed)
    """
    with transaction.atomic():
        state = get_or_create_level_state(entry.distributor, config)
        state = LevelState.objects.select_for_update().get(pk=state.pk)

        state.cumulative_achieved += Decimal(str(entry.net_amount))

        events = []
        for from_level, to_level in compute_promotions(state.current_level, state.progress, config.level_table):
            from_tier = _tier(config, from_level)
            to_tier = _tier(config, to_level)
            events.append(LevelChangeEvent.objects.create(
                distributor_id=entry.distributor_id,
                from_level=from_level,
                to_level=to_level,
                from_level_name=from_tier.name,
                to_level_name=to_tier.name,
                cumulative_achieved=state.cumulative_achieved,
                reason=LevelChangeEvent.REASON_PROMOTION,
                ledger_entry=entry,
            ))
            state.current_level = to_level
            state.level_name = to_tier.name
            state.ceiling_for_level = to_tier.ceiling
            logger.info(
                f"Distributor {entry.distributor_id} promoted {from_tier.name} → {to_tier.name} "
                f"at ₹{state.cumulative_achieved}"
            )

        state.save()

    return events


def reset_levels(config):
    """
    Periodic reset policy: move every distributor back to the first tier.

    cumulative_achieved is left untouched; reset_baseline moves up to it so
    promotion restarts from zero progress.

    Returns:
        int: number of distributors whose level was reset
    """
    first = _tier(config, 0)
    reset_count = 0

    with transaction.atomic():
        for state in LevelState.objects.select_for_update().order_by('distributor_id'):
            was_level = state.current_level
            from_name = state.level_name
            state.current_level = 0
            state.level_name = first.name if first else ''
            state.ceiling_for_level = first.ceiling if first else None
            state.reset_baseline = state.cumulative_achieved
            state.save()

            if was_level != 0:
                LevelChangeEvent.objects.create(
                    distributor_id=state.distributor_id,
                    from_level=was_level,
                    to_level=0,
                    from_level_name=from_name,
                    to_level_name=state.level_name,
                    cumulative_achieved=state.cumulative_achieved,
                    reason=LevelChangeEvent.REASON_RESET,
                )
                reset_count += 1

    logger.info(f"Level reset applied: {reset_count} distributor(s) moved back to the first tier")
    return reset_count
