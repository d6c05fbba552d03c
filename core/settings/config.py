"""
Immutable commission configuration snapshot.

CommissionSettings (the editable singleton row) is converted into a frozen
CommissionConfig which is validated once and then passed explicitly into
every engine call. Each settlement period stores the snapshot it was opened
with, so a closed period can always be audited against the exact numbers
that produced its ledger entries.
"""
import logging
from dataclasses import dataclass, field, asdict
from decimal import Decimal

from core.binary.exceptions import ConfigInvariantViolation

logger = logging.getLogger(__name__)

SIDES = ('left', 'right')
PLACEMENT_STRATEGIES = ('bfs', 'dfs')
CARRY_FORWARD_TYPES = ('full', 'partial', 'capped')

DEFAULT_LEVEL_TABLE = (
    (1, 'Bronze', '10000'),
    (2, 'Silver', '25000'),
    (3, 'Gold', '50000'),
    (4, 'Platinum', '100000'),
    (5, 'Diamond', '250000'),
)


def _decimal(value):
    return Decimal(str(value))


@dataclass(frozen=True)
class LevelTier:
    rank: int
    name: str
    ceiling: Decimal
    pair_commission_amount: Decimal = None

    @classmethod
    def from_dict(cls, data):
        override = data.get('pair_commission_amount')
        return cls(
            rank=int(data['rank']),
            name=data['name'],
            ceiling=_decimal(data['ceiling']),
            pair_commission_amount=_decimal(override) if override is not None else None,
        )


@dataclass(frozen=True)
class CarryForwardConfig:
    enabled: bool = True
    type: str = 'full'
    max_periods: int = 3
    percentage: Decimal = Decimal('100')
    max_amount: Decimal = Decimal('50000')
    weak_leg_only: bool = False

    @classmethod
    def from_dict(cls, data):
        return cls(
            enabled=bool(data['enabled']),
            type=data['type'],
            max_periods=int(data['max_periods']),
            percentage=_decimal(data['percentage']),
            max_amount=_decimal(data['max_amount']),
            weak_leg_only=bool(data['weak_leg_only']),
        )

    @property
    def effective_percentage(self):
        if self.type == 'full':
            return Decimal('100')
        return self.percentage


@dataclass(frozen=True)
class CommissionConfig:
    activation_threshold: int = 3
    direct_user_commission_amount: Decimal = Decimal('1000')
    binary_pair_commission_amount: Decimal = Decimal('2000')
    binary_tds_threshold_pairs: int = 5
    tds_percentage: Decimal = Decimal('20')
    extra_deduction_percentage: Decimal = Decimal('20')
    daily_pair_limit: int = 10
    max_earnings_before_active_buyer: int = 5
    initial_bonus: Decimal = Decimal('0')
    default_placement_side: str = 'left'
    placement_search_strategy: str = 'bfs'
    spillover_max_depth: int = 20
    max_tree_depth: int = 64
    carry_forward: CarryForwardConfig = field(default_factory=CarryForwardConfig)
    level_table: tuple = ()
    reset_levels_on_period_close: bool = False

    @classmethod
    def from_settings(cls, settings, levels=None):
        """
        Build a snapshot from a CommissionSettings row and CeilingLevel rows.
        """
        if levels is None:
            from core.settings.models import CeilingLevel
            levels = CeilingLevel.objects.order_by('rank')
        return cls(
            activation_threshold=settings.binary_commission_activation_count,
            direct_user_commission_amount=_decimal(settings.direct_user_commission_amount),
            binary_pair_commission_amount=_decimal(settings.binary_pair_commission_amount),
            binary_tds_threshold_pairs=settings.binary_tds_threshold_pairs,
            tds_percentage=_decimal(settings.binary_commission_tds_percentage),
            extra_deduction_percentage=_decimal(settings.binary_extra_deduction_percentage),
            daily_pair_limit=settings.binary_daily_pair_limit,
            max_earnings_before_active_buyer=settings.max_earnings_before_active_buyer,
            initial_bonus=_decimal(settings.binary_commission_initial_bonus),
            default_placement_side=settings.binary_tree_default_placement_side,
            placement_search_strategy=settings.placement_search_strategy,
            spillover_max_depth=settings.spillover_max_depth,
            max_tree_depth=settings.max_tree_depth,
            carry_forward=CarryForwardConfig(
                enabled=settings.carry_forward_enabled,
                type=settings.carry_forward_type,
                max_periods=settings.carry_forward_max_periods,
                percentage=_decimal(settings.carry_forward_percentage),
                max_amount=_decimal(settings.carry_forward_max_amount),
                weak_leg_only=settings.carry_forward_weak_leg_only,
            ),
            level_table=tuple(
                LevelTier(
                    rank=level.rank,
                    name=level.name,
                    ceiling=_decimal(level.ceiling),
                    pair_commission_amount=(
                        _decimal(level.pair_commission_amount)
                        if level.pair_commission_amount is not None else None
                    ),
                )
                for level in levels
            ),
            reset_levels_on_period_close=settings.reset_levels_on_period_close,
        )

    @classmethod
    def from_dict(cls, data):
        data = dict(data)
        for key in ('direct_user_commission_amount', 'binary_pair_commission_amount',
                    'tds_percentage', 'extra_deduction_percentage', 'initial_bonus'):
            data[key] = _decimal(data[key])
        data['carry_forward'] = CarryForwardConfig.from_dict(data['carry_forward'])
        data['level_table'] = tuple(LevelTier.from_dict(tier) for tier in data.get('level_table', ()))
        return cls(**data)

    def to_dict(self):
        """JSON-safe representation (decimals as strings) for period snapshots"""
        def convert(value):
            if isinstance(value, Decimal):
                return str(value)
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            if isinstance(value, (list, tuple)):
                return [convert(v) for v in value]
            return value
        return convert(asdict(self))

    def validate(self):
        """
        Check every invariant and raise ConfigInvariantViolation listing all
        of the violations found. Returns self so it can be chained.
        """
        violations = []

        def at_least(name, value, minimum):
            if value is None or value < minimum:
                violations.append(f"{name} must be >= {minimum} (got {value})")

        def percentage(name, value):
            if value is None or value < 0 or value > 100:
                violations.append(f"{name} must be between 0 and 100 (got {value})")

        at_least('activation_threshold', self.activation_threshold, 1)
        at_least('direct_user_commission_amount', self.direct_user_commission_amount, 0)
        at_least('binary_pair_commission_amount', self.binary_pair_commission_amount, 0)
        at_least('binary_tds_threshold_pairs', self.binary_tds_threshold_pairs, 0)
        percentage('tds_percentage', self.tds_percentage)
        percentage('extra_deduction_percentage', self.extra_deduction_percentage)
        at_least('daily_pair_limit', self.daily_pair_limit, 1)
        at_least('max_earnings_before_active_buyer', self.max_earnings_before_active_buyer, 1)
        at_least('initial_bonus', self.initial_bonus, 0)
        at_least('spillover_max_depth', self.spillover_max_depth, 1)
        at_least('max_tree_depth', self.max_tree_depth, 1)

        if self.default_placement_side not in SIDES:
            violations.append(f"default_placement_side must be one of {SIDES} (got {self.default_placement_side!r})")
        if self.placement_search_strategy not in PLACEMENT_STRATEGIES:
            violations.append(
                f"placement_search_strategy must be one of {PLACEMENT_STRATEGIES} "
                f"(got {self.placement_search_strategy!r})"
            )

        carry = self.carry_forward
        if carry.type not in CARRY_FORWARD_TYPES:
            violations.append(f"carry_forward.type must be one of {CARRY_FORWARD_TYPES} (got {carry.type!r})")
        at_least('carry_forward.max_periods', carry.max_periods, 0)
        percentage('carry_forward.percentage', carry.percentage)
        at_least('carry_forward.max_amount', carry.max_amount, 0)

        previous = None
        for tier in self.level_table:
            if tier.ceiling <= 0:
                violations.append(f"level {tier.name} ceiling must be > 0 (got {tier.ceiling})")
            if tier.pair_commission_amount is not None and tier.pair_commission_amount < 0:
                violations.append(f"level {tier.name} pair_commission_amount must be >= 0")
            if previous is not None and (tier.rank <= previous.rank or tier.ceiling <= previous.ceiling):
                violations.append(
                    f"level table must be ordered by strictly increasing rank and ceiling "
                    f"({previous.name} -> {tier.name})"
                )
            previous = tier

        if violations:
            raise ConfigInvariantViolation(violations)
        return self

    @property
    def deductions_exceed_gross(self):
        return self.tds_percentage + self.extra_deduction_percentage > 100


def default_config():
    return CommissionConfig(
        level_table=tuple(
            LevelTier(rank=rank, name=name, ceiling=Decimal(ceiling))
            for rank, name, ceiling in DEFAULT_LEVEL_TABLE
        )
    )


def last_valid_config():
    """
    Most recent snapshot stored on a settlement period, or the built-in
    defaults when no period has been opened yet.
    """
    from core.settlement.models import SettlementPeriod

    period = SettlementPeriod.objects.exclude(config_snapshot={}).order_by('-opened_at').first()
    if period is None:
        return default_config()
    return CommissionConfig.from_dict(period.config_snapshot)


def load_commission_config():
    """
    Load and validate the current settings.

    An invalid settings row is never applied: the violation is logged and the
    last valid snapshot is returned so the engine keeps operating.
    """
    from core.settings.models import CommissionSettings

    try:
        config = CommissionConfig.from_settings(CommissionSettings.get_settings()).validate()
    except ConfigInvariantViolation as e:
        logger.error(f"Commission settings rejected, keeping last valid config: {e}")
        return last_valid_config()

    if config.deductions_exceed_gross:
        logger.warning(
            f"ConfigInvariantViolation: TDS {config.tds_percentage}% plus extra deduction "
            f"{config.extra_deduction_percentage}% exceeds 100%; net will be clamped to ₹0 above the TDS threshold"
        )
    return config
