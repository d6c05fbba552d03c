from django.db import models

from core.binary.models import Distributor, ImmutableRecordMixin


class LevelState(models.Model):
    """
    Distributor's position in the level/ceiling table.

    cumulative_achieved is the running total of net earnings and never
    decreases. current_level indexes the level table (0 = first tier) and
    only goes up, except through the periodic reset policy which moves
    reset_baseline instead of touching the running total.
    """
    distributor = models.OneToOneField(
        Distributor,
        on_delete=models.PROTECT,
        primary_key=True,
        related_name='level_state'
    )
    current_level = models.PositiveIntegerField(default=0)
    level_name = models.CharField(max_length=50, blank=True)
    cumulative_achieved = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    ceiling_for_level = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    reset_baseline = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=0,
        help_text="cumulative_achieved at the last level reset; progress is measured from here"
    )

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'level_states'
        verbose_name = 'Level State'
        verbose_name_plural = 'Level States'

    def __str__(self):
        return f"{self.distributor_id} - {self.level_name or self.current_level} (₹{self.cumulative_achieved})"

    @property
    def progress(self):
        return self.cumulative_achieved - self.reset_baseline


class LevelChangeEvent(ImmutableRecordMixin, models.Model):
    REASON_PROMOTION = 'promotion'
    REASON_RESET = 'reset'
    REASON_CHOICES = [
        (REASON_PROMOTION, 'Promotion'),
        (REASON_RESET, 'Periodic Reset'),
    ]

    distributor = models.ForeignKey(Distributor, on_delete=models.PROTECT, related_name='level_changes')
    from_level = models.PositiveIntegerField()
    to_level = models.PositiveIntegerField()
    from_level_name = models.CharField(max_length=50, blank=True)
    to_level_name = models.CharField(max_length=50, blank=True)
    cumulative_achieved = models.DecimalField(max_digits=14, decimal_places=2)
    reason = models.CharField(max_length=10, choices=REASON_CHOICES, default=REASON_PROMOTION)
    ledger_entry = models.ForeignKey(
        'commission.LedgerEntry',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='level_changes'
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'level_change_events'
        verbose_name = 'Level Change Event'
        verbose_name_plural = 'Level Change Events'
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.distributor_id}: {self.from_level_name} → {self.to_level_name} ({self.reason})"
