"""
Commission and deduction calculator.

Turns activation events, qualifying purchases and pair matches into ledger
entries. All amounts are Decimal rupees rounded to paise with ROUND_HALF_UP.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from django.db.models import F

from core.binary.exceptions import ConfigInvariantViolation, IdempotencyConflict
from core.binary.models import Distributor
from core.ceiling.utils import apply_ledger_entry, get_pair_commission_amount
from core.wallet.utils import credit_ledger_entry

from .models import LedgerEntry

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')
ZERO = Decimal('0.00')


def round_money(amount):
    return Decimal(str(amount)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def percentage_of(amount, percentage):
    return round_money(Decimal(str(amount)) * Decimal(str(percentage)) / Decimal('100'))


@dataclass(frozen=True)
class CommissionBreakdown:
    gross_amount: Decimal
    tds_amount: Decimal = ZERO
    extra_deduction_amount: Decimal = ZERO
    net_amount: Decimal = ZERO
    pairs_below_threshold: int = 0
    pairs_above_threshold: int = 0
    clamped: bool = False


def _finalize(gross, tds, extra, context, pairs_below=0, pairs_above=0):
    """Compute net and clamp it at zero by trimming the extra deduction first."""
    net = gross - tds - extra
    clamped = False
    if net < 0:
        violation = ConfigInvariantViolation(
            f"Deductions exceed gross for {context}: gross ₹{gross}, TDS ₹{tds}, extra ₹{extra}. "
            f"Net clamped to ₹0."
        )
        logger.warning(f"ConfigInvariantViolation: {violation}")
        extra = max(ZERO, extra + net)
        tds = min(tds, gross)
        net = gross - tds - extra
        clamped = True

    return CommissionBreakdown(
        gross_amount=gross,
        tds_amount=tds,
        extra_deduction_amount=extra,
        net_amount=net,
        pairs_below_threshold=pairs_below,
        pairs_above_threshold=pairs_above,
        clamped=clamped,
    )


def split_pair_portions(pairs_since_activation, matched_pairs, threshold):
    """
    Split a match at the extra deduction threshold.

    Returns:
        tuple: (pairs at or below the threshold, pairs beyond it)
    """
    below = max(0, min(matched_pairs, threshold - pairs_since_activation))
    return below, matched_pairs - below


def calculate_pair_commission(matched_pairs, pairs_since_activation, config, pair_amount=None):
    """
    Gross, TDS and extra deduction for one pair match.

    Pairs up to binary_tds_threshold_pairs (counted over the distributor's
    lifetime since activation) pay TDS only; pairs beyond it pay TDS plus
    the extra deduction. A match straddling the threshold is split and each
    portion is rounded on its own.
    """
    if pair_amount is None:
        pair_amount = config.binary_pair_commission_amount
    pair_amount = Decimal(str(pair_amount))

    below, above = split_pair_portions(pairs_since_activation, matched_pairs, config.binary_tds_threshold_pairs)
    below_gross = round_money(pair_amount * below)
    above_gross = round_money(pair_amount * above)

    tds = percentage_of(below_gross, config.tds_percentage) + percentage_of(above_gross, config.tds_percentage)
    extra = percentage_of(above_gross, config.extra_deduction_percentage)

    return _finalize(
        below_gross + above_gross,
        tds,
        extra,
        context=f"{matched_pairs} pair(s) after {pairs_since_activation}",
        pairs_below=below,
        pairs_above=above,
    )


def calculate_activation_bonus(config):
    gross = round_money(config.initial_bonus)
    return _finalize(gross, percentage_of(gross, config.tds_percentage), ZERO, context='activation bonus')


def calculate_direct_commission(config):
    # Direct user commission is credited untaxed
    gross = round_money(config.direct_user_commission_amount)
    return CommissionBreakdown(gross_amount=gross, net_amount=gross)


def _create_entry(distributor, kind, breakdown, period, source_event_id, description, config, pair_match=None):
    entry = LedgerEntry.objects.create(
        distributor=distributor,
        kind=kind,
        gross_amount=breakdown.gross_amount,
        tds_amount=breakdown.tds_amount,
        extra_deduction_amount=breakdown.extra_deduction_amount,
        net_amount=breakdown.net_amount,
        period=period,
        source_event_id=source_event_id,
        pair_match=pair_match,
        description=description,
    )
    credit_ledger_entry(entry)
    apply_ledger_entry(entry, config)
    return entry


def record_direct_commission(referrer, source_distributor, config, period):
    """
    Pay the referrer the direct user commission for a referral's qualifying
    purchase. Only called while the referrer is not yet activated.

    Returns:
        LedgerEntry or None if already paid or the amount is zero
    """
    source_event_id = f"purchase:{source_distributor.id}"
    if LedgerEntry.objects.filter(
        distributor=referrer,
        kind=LedgerEntry.KIND_DIRECT_COMMISSION,
        source_event_id=source_event_id,
    ).exists():
        logger.info(f"Direct commission for {source_distributor.id} already paid to {referrer.id}, skipping")
        return None

    breakdown = calculate_direct_commission(config)
    if breakdown.gross_amount <= 0:
        return None

    entry = _create_entry(
        referrer,
        LedgerEntry.KIND_DIRECT_COMMISSION,
        breakdown,
        period,
        source_event_id,
        f"Direct user commission for {source_distributor.id} (₹{breakdown.net_amount})",
        config,
    )
    logger.info(f"Direct user commission ₹{entry.net_amount} paid to {referrer.id} for {source_distributor.id}")
    return entry


def record_activation_bonus(distributor, config, period):
    """
    Pay the one-time activation bonus (TDS applies).

    The persisted activation_bonus_paid flag is the guard: it is set here
    under a row lock whether or not a bonus amount is configured, and never
    cleared.

    Raises:
        IdempotencyConflict: If the bonus was already paid
    """
    locked = Distributor.objects.select_for_update().get(pk=distributor.pk)
    if locked.activation_bonus_paid:
        raise IdempotencyConflict(f"Activation bonus already paid to {distributor.pk}")

    locked.activation_bonus_paid = True
    locked.save(update_fields=['activation_bonus_paid', 'updated_at'])
    distributor.activation_bonus_paid = True

    breakdown = calculate_activation_bonus(config)
    if breakdown.gross_amount <= 0:
        logger.info(f"No activation bonus configured; {distributor.pk} marked as paid")
        return None

    entry = _create_entry(
        locked,
        LedgerEntry.KIND_ACTIVATION_BONUS,
        breakdown,
        period,
        f"activation:{distributor.pk}",
        f"Binary commission initial bonus (₹{breakdown.gross_amount} - TDS ₹{breakdown.tds_amount} = "
        f"₹{breakdown.net_amount})",
        config,
    )
    logger.info(f"Activation bonus ₹{entry.net_amount} paid to {distributor.pk}")
    return entry


def record_pair_commission(distributor, pair_match, config, period):
    """
    Pay the pair commission for a PairMatchEvent and advance the
    distributor's pairs_since_activation. Idempotent per pair match.
    """
    existing = LedgerEntry.objects.filter(pair_match=pair_match).first()
    if existing:
        return existing

    pair_amount = get_pair_commission_amount(distributor, config)
    pairs_before = distributor.pairs_since_activation
    breakdown = calculate_pair_commission(pair_match.matched_pairs, pairs_before, config, pair_amount)

    Distributor.objects.filter(pk=distributor.pk).update(
        pairs_since_activation=F('pairs_since_activation') + pair_match.matched_pairs
    )
    distributor.pairs_since_activation = pairs_before + pair_match.matched_pairs

    description = (
        f"Binary pair commission {pair_match.matched_pairs} x ₹{pair_amount} "
        f"(pairs {pairs_before + 1}-{distributor.pairs_since_activation}): "
        f"₹{breakdown.gross_amount} - TDS ₹{breakdown.tds_amount}"
    )
    if breakdown.extra_deduction_amount:
        description += f" - Extra ₹{breakdown.extra_deduction_amount}"
    description += f" = ₹{breakdown.net_amount}"

    entry = _create_entry(
        distributor,
        LedgerEntry.KIND_PAIR_COMMISSION,
        breakdown,
        period,
        f"pair:{pair_match.pk}",
        description,
        config,
        pair_match=pair_match,
    )
    logger.info(f"Pair commission for {distributor.pk}: {description}")
    return entry
