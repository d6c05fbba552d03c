from django.db import models
from django.utils import timezone


SIDE_CHOICES = [('left', 'Left'), ('right', 'Right')]


def opposite_side(side):
    return 'right' if side == 'left' else 'left'


class Distributor(models.Model):
    """
    Binary tree node representing a distributor's position in the left/right tree.

    Nodes are rows keyed by the external distributor id; the parent is
    referenced by id and each (parent, side) slot can hold one child only.
    Placement is immutable once written.
    """
    id = models.CharField(max_length=64, primary_key=True)
    parent = models.ForeignKey('self', on_delete=models.PROTECT, null=True, blank=True, related_name='children')
    referrer = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='direct_referrals',
        help_text="Distributor who referred this one (may differ from parent after spillover)"
    )

    # Tree position
    side = models.CharField(max_length=5, choices=SIDE_CHOICES, null=True, blank=True)
    depth = models.IntegerField(default=0)

    # Activation tracking
    direct_referral_count = models.IntegerField(default=0)
    is_activated = models.BooleanField(default=False)
    activated_at = models.DateTimeField(null=True, blank=True)
    activation_bonus_paid = models.BooleanField(
        default=False,
        help_text="Set once when the activation bonus is paid; never cleared"
    )
    is_active_buyer = models.BooleanField(default=False)
    is_deactivated = models.BooleanField(default=False)

    # Commission tier tracking
    pairs_since_activation = models.IntegerField(
        default=0,
        help_text="Lifetime pairs paid since activation (drives the extra deduction threshold)"
    )

    joined_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'distributors'
        verbose_name = 'Distributor'
        verbose_name_plural = 'Distributors'
        constraints = [
            models.UniqueConstraint(
                fields=['parent', 'side'],
                condition=models.Q(parent__isnull=False),
                name='unique_parent_side'
            ),
            models.UniqueConstraint(
                fields=['depth'],
                condition=models.Q(parent__isnull=True),
                name='single_root'
            ),
        ]
        indexes = [
            models.Index(fields=['is_activated'], name='distributor_activated_idx'),
        ]

    def __str__(self):
        return f"Distributor {self.id} ({self.side or 'root'})"


class SubtreeCounters(models.Model):
    """
    Unmatched placement counts per leg.

    new_* counts grow with every placement in the subtree since the last
    match; carried_* counts are backlog moved over at a period close, each
    with the number of periods it has been carried.
    """
    distributor = models.OneToOneField(
        Distributor,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='counters'
    )
    new_left_count = models.PositiveIntegerField(default=0)
    new_right_count = models.PositiveIntegerField(default=0)
    carried_left_count = models.PositiveIntegerField(default=0)
    carried_right_count = models.PositiveIntegerField(default=0)
    carried_left_age = models.PositiveIntegerField(default=0)
    carried_right_age = models.PositiveIntegerField(default=0)
    lifetime_matched_pairs = models.PositiveIntegerField(default=0)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'subtree_counters'
        verbose_name = 'Subtree Counters'
        verbose_name_plural = 'Subtree Counters'

    def __str__(self):
        return (
            f"Counters {self.distributor_id} "
            f"(L {self.new_left_count}+{self.carried_left_count}, R {self.new_right_count}+{self.carried_right_count})"
        )

    @property
    def available_left(self):
        return self.carried_left_count + self.new_left_count

    @property
    def available_right(self):
        return self.carried_right_count + self.new_right_count


class ImmutableRecordMixin:
    """Append-only rows: created once, never updated or deleted"""

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError(f"{self.__class__.__name__} records are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError(f"{self.__class__.__name__} records cannot be deleted")


class PairMatchEvent(ImmutableRecordMixin, models.Model):
    """
    Binary pair matching record: one per distributor per settlement run
    """
    distributor = models.ForeignKey(Distributor, on_delete=models.PROTECT, related_name='pair_match_events')
    period = models.ForeignKey('settlement.SettlementPeriod', on_delete=models.PROTECT, related_name='pair_match_events')
    matched_pairs = models.PositiveIntegerField()
    timestamp = models.DateTimeField()

    # Audit copies of the inputs that produced the match
    raw_matches = models.PositiveIntegerField(default=0)
    carried_left_consumed = models.PositiveIntegerField(default=0)
    carried_right_consumed = models.PositiveIntegerField(default=0)
    blocked_by_daily_limit = models.PositiveIntegerField(default=0)
    blocked_by_active_buyer_cap = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'pair_match_events'
        verbose_name = 'Pair Match Event'
        verbose_name_plural = 'Pair Match Events'
        ordering = ['-timestamp', 'distributor_id']
        constraints = [
            models.UniqueConstraint(fields=['distributor', 'period'], name='unique_pair_match_per_period'),
            models.CheckConstraint(condition=models.Q(matched_pairs__gte=1), name='pair_match_at_least_one'),
        ]

    def __str__(self):
        return f"Pair Match - {self.distributor_id} x{self.matched_pairs} ({self.period_id})"


class CarryForwardRecord(ImmutableRecordMixin, models.Model):
    """
    Track what a period close did to one carried bucket: how many unmatched
    counts were moved in, how many were forfeited, and the resulting age.
    """
    distributor = models.ForeignKey(Distributor, on_delete=models.PROTECT, related_name='carry_forwards')
    period = models.ForeignKey('settlement.SettlementPeriod', on_delete=models.PROTECT, related_name='carry_forwards')
    side = models.CharField(max_length=5, choices=SIDE_CHOICES)

    leftover_count = models.PositiveIntegerField(help_text="Unmatched new count on this side at close")
    carried_in = models.PositiveIntegerField(default=0, help_text="Counts moved into the carried bucket")
    discarded = models.PositiveIntegerField(default=0, help_text="Leftover new counts not carried")
    forfeited = models.PositiveIntegerField(default=0, help_text="Carried counts dropped after exceeding max periods")
    bucket_count = models.PositiveIntegerField(default=0, help_text="Carried bucket size after close")
    bucket_age = models.PositiveIntegerField(default=0, help_text="Carried bucket age after close")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'carry_forward_records'
        verbose_name = 'Carry Forward Record'
        verbose_name_plural = 'Carry Forward Records'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['distributor', 'period', 'side'], name='unique_carry_forward_side'),
        ]

    def __str__(self):
        return f"Carry Forward - {self.distributor_id} ({self.side}) +{self.carried_in} -{self.forfeited}"
