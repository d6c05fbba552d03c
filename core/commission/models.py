from decimal import Decimal

from django.db import models

from core.binary.models import Distributor, ImmutableRecordMixin


class LedgerEntry(ImmutableRecordMixin, models.Model):
    """
    Immutable commission ledger.

    net_amount = gross_amount - tds_amount - extra_deduction_amount and is
    never negative. One entry per (distributor, kind, source_event_id), so a
    redelivered event can never pay twice.
    """
    KIND_DIRECT_COMMISSION = 'DirectCommission'
    KIND_PAIR_COMMISSION = 'PairCommission'
    KIND_ACTIVATION_BONUS = 'ActivationBonus'
    KIND_CHOICES = [
        (KIND_DIRECT_COMMISSION, 'Direct Commission'),
        (KIND_PAIR_COMMISSION, 'Pair Commission'),
        (KIND_ACTIVATION_BONUS, 'Activation Bonus'),
    ]

    distributor = models.ForeignKey(Distributor, on_delete=models.PROTECT, related_name='ledger_entries')
    kind = models.CharField(max_length=20, choices=KIND_CHOICES)

    gross_amount = models.DecimalField(max_digits=12, decimal_places=2)
    tds_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    extra_deduction_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    net_amount = models.DecimalField(max_digits=12, decimal_places=2)

    period = models.ForeignKey('settlement.SettlementPeriod', on_delete=models.PROTECT, related_name='ledger_entries')
    source_event_id = models.CharField(
        max_length=100,
        help_text="Event that produced this entry: 'purchase:<id>', 'activation:<id>' or 'pair:<pair match id>'"
    )
    pair_match = models.OneToOneField(
        'binary.PairMatchEvent',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='ledger_entry'
    )
    description = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ledger_entries'
        verbose_name = 'Ledger Entry'
        verbose_name_plural = 'Ledger Entries'
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(fields=['distributor', 'kind', 'source_event_id'], name='unique_ledger_source_event'),
            models.CheckConstraint(condition=models.Q(net_amount__gte=0), name='ledger_net_not_negative'),
        ]
        indexes = [
            models.Index(fields=['distributor', 'kind', 'created_at'], name='ledger_dist_kind_idx'),
        ]

    def __str__(self):
        return f"{self.kind} - ₹{self.net_amount} ({self.distributor_id})"

    def save(self, *args, **kwargs):
        gross, tds, extra, net = (
            Decimal(str(value))
            for value in (self.gross_amount, self.tds_amount, self.extra_deduction_amount, self.net_amount)
        )
        if net != gross - tds - extra:
            raise ValueError(f"Ledger entry does not balance: ₹{gross} - ₹{tds} - ₹{extra} != ₹{net}")
        super().save(*args, **kwargs)
