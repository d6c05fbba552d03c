from django.db import models

from core.binary.models import Distributor


class Wallet(models.Model):
    """
    Single main wallet for each distributor
    """
    distributor = models.OneToOneField(Distributor, on_delete=models.PROTECT, related_name='wallet')
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_earned = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'wallets'
        verbose_name = 'Wallet'
        verbose_name_plural = 'Wallets'

    def __str__(self):
        return f"Wallet - {self.distributor_id} (₹{self.balance})"


class WalletTransaction(models.Model):
    """
    Wallet transaction ledger.

    Commission rows credit the net amount of a ledger entry. TDS_DEDUCTION
    and EXTRA_DEDUCTION rows are tracking only: they carry the negative
    deduction but leave the balance unchanged.
    """
    BINARY_PAIR_COMMISSION = 'BINARY_PAIR_COMMISSION'
    DIRECT_USER_COMMISSION = 'DIRECT_USER_COMMISSION'
    BINARY_INITIAL_BONUS = 'BINARY_INITIAL_BONUS'
    TDS_DEDUCTION = 'TDS_DEDUCTION'
    EXTRA_DEDUCTION = 'EXTRA_DEDUCTION'

    TRANSACTION_TYPE_CHOICES = [
        (BINARY_PAIR_COMMISSION, 'Binary Pair Commission'),
        (DIRECT_USER_COMMISSION, 'Direct User Commission'),
        (BINARY_INITIAL_BONUS, 'Binary Initial Bonus'),
        (TDS_DEDUCTION, 'TDS Deduction'),
        (EXTRA_DEDUCTION, 'Extra Deduction'),
    ]
    EARNING_TYPES = (BINARY_PAIR_COMMISSION, DIRECT_USER_COMMISSION, BINARY_INITIAL_BONUS)
    TRACKING_TYPES = (TDS_DEDUCTION, EXTRA_DEDUCTION)

    distributor = models.ForeignKey(Distributor, on_delete=models.PROTECT, related_name='wallet_transactions')
    wallet = models.ForeignKey(Wallet, on_delete=models.PROTECT, related_name='transactions')

    transaction_type = models.CharField(max_length=25, choices=TRANSACTION_TYPE_CHOICES)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    balance_before = models.DecimalField(max_digits=12, decimal_places=2)
    balance_after = models.DecimalField(max_digits=12, decimal_places=2)

    description = models.TextField(blank=True)
    ledger_entry = models.ForeignKey(
        'commission.LedgerEntry',
        on_delete=models.PROTECT,
        related_name='wallet_transactions'
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'wallet_transactions'
        verbose_name = 'Wallet Transaction'
        verbose_name_plural = 'Wallet Transactions'
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(fields=['ledger_entry', 'transaction_type'], name='unique_wallet_tx_per_entry'),
        ]
        indexes = [
            models.Index(fields=['distributor', 'transaction_type', 'created_at'], name='wallet_tx_dist_type_idx'),
        ]

    def __str__(self):
        return f"{self.transaction_type} - ₹{self.amount} ({self.distributor_id})"
