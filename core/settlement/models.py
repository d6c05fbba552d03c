from django.db import models
from django.utils import timezone


class SettlementPeriod(models.Model):
    """
    Daily or monthly settlement period.

    Status only moves forward (open → closing → closed). A closed period is
    never reopened; the next run opens a new period. config_snapshot holds
    the CommissionConfig the period was opened with.
    """
    TYPE_DAILY = 'daily'
    TYPE_MONTHLY = 'monthly'
    TYPE_CHOICES = [
        (TYPE_DAILY, 'Daily'),
        (TYPE_MONTHLY, 'Monthly'),
    ]

    STATUS_OPEN = 'open'
    STATUS_CLOSING = 'closing'
    STATUS_CLOSED = 'closed'
    STATUS_CHOICES = [
        (STATUS_OPEN, 'Open'),
        (STATUS_CLOSING, 'Closing'),
        (STATUS_CLOSED, 'Closed'),
    ]
    STATUS_ORDER = [STATUS_OPEN, STATUS_CLOSING, STATUS_CLOSED]

    period_id = models.CharField(max_length=20, primary_key=True, help_text="D-YYYY-MM-DD or M-YYYY-MM")
    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_OPEN)
    period_date = models.DateField(help_text="Settled day, or first day of the settled month")

    opened_at = models.DateTimeField(default=timezone.now)
    closed_at = models.DateTimeField(null=True, blank=True)

    config_snapshot = models.JSONField(default=dict, blank=True)
    summary = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = 'settlement_periods'
        verbose_name = 'Settlement Period'
        verbose_name_plural = 'Settlement Periods'
        ordering = ['-opened_at']
        constraints = [
            models.UniqueConstraint(
                fields=['type'],
                condition=~models.Q(status='closed'),
                name='one_unclosed_period_per_type'
            ),
        ]

    def __str__(self):
        return f"{self.period_id} ({self.status})"

    @property
    def is_closed(self):
        return self.status == self.STATUS_CLOSED

    @property
    def config(self):
        from core.settings.config import CommissionConfig
        return CommissionConfig.from_dict(self.config_snapshot)

    def transition_to(self, status):
        """Move the period forward; a period never goes back to an earlier status."""
        if self.STATUS_ORDER.index(status) < self.STATUS_ORDER.index(self.status):
            raise ValueError(f"Period {self.period_id} cannot move from {self.status} back to {status}")
        if status == self.status:
            return
        self.status = status
        update_fields = ['status']
        if status == self.STATUS_CLOSED:
            self.closed_at = timezone.now()
            update_fields.append('closed_at')
        self.save(update_fields=update_fields)


class SettlementFailure(models.Model):
    """
    A distributor whose settlement pipeline errored in a period.
    Unresolved rows are retried on the next scheduler tick.
    """
    STAGE_SETTLE = 'settle'
    STAGE_CARRY_FORWARD = 'carry_forward'
    STAGE_CHOICES = [
        (STAGE_SETTLE, 'Pair Matching & Commission'),
        (STAGE_CARRY_FORWARD, 'Carry Forward'),
    ]

    period = models.ForeignKey(SettlementPeriod, on_delete=models.PROTECT, related_name='failures')
    distributor = models.ForeignKey('binary.Distributor', on_delete=models.PROTECT, related_name='settlement_failures')
    stage = models.CharField(max_length=20, choices=STAGE_CHOICES, default=STAGE_SETTLE)
    error = models.TextField()
    attempts = models.PositiveIntegerField(default=1)

    created_at = models.DateTimeField(auto_now_add=True)
    last_attempt_at = models.DateTimeField(default=timezone.now)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'settlement_failures'
        verbose_name = 'Settlement Failure'
        verbose_name_plural = 'Settlement Failures'
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['period', 'distributor', 'stage'], name='unique_failure_per_stage'),
        ]

    def __str__(self):
        state = 'resolved' if self.resolved_at else 'pending'
        return f"{self.distributor_id} in {self.period_id} ({self.stage}, {state})"
