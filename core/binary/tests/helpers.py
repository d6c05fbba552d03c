"""
Shared builders for engine tests.
"""
from dataclasses import replace
from datetime import date

from core.binary.models import Distributor, SubtreeCounters
from core.settings.config import CarryForwardConfig, default_config
from core.settlement.models import SettlementPeriod
from core.settlement.utils import open_period


def make_config(carry_forward=None, **overrides):
    config = replace(default_config(), **overrides)
    if carry_forward is not None:
        config = replace(config, carry_forward=replace(CarryForwardConfig(), **carry_forward))
    return config.validate()


def make_distributor(distributor_id, parent=None, side=None, activated=True, active_buyer=True,
                     pairs_since_activation=0, **counters):
    """Create a tree node with counters directly, bypassing placement."""
    distributor = Distributor.objects.create(
        id=distributor_id,
        parent=parent,
        referrer=parent,
        side=side,
        depth=parent.depth + 1 if parent else 0,
        is_activated=activated,
        activation_bonus_paid=activated,
        is_active_buyer=active_buyer,
        pairs_since_activation=pairs_since_activation,
    )
    SubtreeCounters.objects.create(distributor=distributor, **counters)
    return distributor


def daily_period(config, day=date(2026, 3, 14)):
    return open_period(SettlementPeriod.TYPE_DAILY, day, config)


def closed_monthly_period(config, year, month):
    """Monthly period row for carry-forward tests (closed, so several can coexist)."""
    return SettlementPeriod.objects.create(
        period_id=f"M-{year:04d}-{month:02d}",
        type=SettlementPeriod.TYPE_MONTHLY,
        status=SettlementPeriod.STATUS_CLOSED,
        period_date=date(year, month, 1),
        config_snapshot=config.to_dict(),
    )
