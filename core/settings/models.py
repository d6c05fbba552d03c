from django.conf import settings as django_settings
from django.db import models


SIDE_CHOICES = [('left', 'Left'), ('right', 'Right')]


class CommissionSettings(models.Model):
    """
    Singleton model for binary compensation settings.
    Only one instance should exist in the database.

    The engine never reads this row directly: it is turned into an immutable
    CommissionConfig snapshot (see core.settings.config) which is passed into
    every engine call and stored on each settlement period.
    """
    PLACEMENT_STRATEGY_CHOICES = [
        ('bfs', 'Breadth-first'),
        ('dfs', 'Depth-first (follow default side chain)'),
    ]
    CARRY_FORWARD_TYPE_CHOICES = [
        ('full', 'Full Amount'),
        ('partial', 'Partial (Percentage)'),
        ('capped', 'Capped Amount'),
    ]

    # Binary Commission Settings
    direct_user_commission_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=1000,
        help_text="Commission amount per direct user added before binary commission activation (default: ₹1000)"
    )
    binary_commission_activation_count = models.IntegerField(
        default=3,
        help_text="Number of direct referrals needed to activate binary commission (default: 3)"
    )
    binary_pair_commission_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=2000,
        help_text="Commission amount per binary pair after activation (default: ₹2000)"
    )
    binary_tds_threshold_pairs = models.IntegerField(
        default=5,
        help_text="Number of pairs after activation before extra deduction starts (default: 5)"
    )
    binary_commission_tds_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=20,
        help_text="TDS percentage on binary pair commissions and the activation bonus (default: 20%)"
    )
    binary_extra_deduction_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=20,
        help_text="Extra deduction percentage on pairs beyond the TDS threshold (default: 20%)"
    )
    binary_daily_pair_limit = models.IntegerField(
        default=10,
        help_text="Maximum binary pairs per settlement run after activation (default: 10 pairs = ₹20,000)"
    )
    max_earnings_before_active_buyer = models.IntegerField(
        default=5,
        help_text="Maximum lifetime binary pairs a non-Active Buyer distributor can be paid for (default: 5). Further pairs stay in the counters until the distributor becomes an Active Buyer."
    )
    binary_commission_initial_bonus = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=0,
        help_text="Bonus paid once when binary commission is activated. TDS is deducted from this amount."
    )
    binary_tree_default_placement_side = models.CharField(
        max_length=5,
        choices=SIDE_CHOICES,
        default='left',
        help_text="Default placement side for binary tree (left or right). Controls which slot spillover fills."
    )
    placement_search_strategy = models.CharField(
        max_length=3,
        choices=PLACEMENT_STRATEGY_CHOICES,
        default='bfs',
        help_text="How spillover searches the preferred side subtree for an empty slot"
    )
    spillover_max_depth = models.IntegerField(
        default=20,
        help_text="How many levels below the referrer spillover may search before falling back to the other side"
    )
    max_tree_depth = models.IntegerField(
        default=64,
        help_text="Maximum depth of any node below the root"
    )

    # Carry Forward Settings
    carry_forward_enabled = models.BooleanField(
        default=True,
        help_text="Allow unmatched leg counts to carry forward to the next period"
    )
    carry_forward_type = models.CharField(
        max_length=10,
        choices=CARRY_FORWARD_TYPE_CHOICES,
        default='full',
    )
    carry_forward_max_periods = models.IntegerField(
        default=3,
        help_text="Maximum number of consecutive periods a carried bucket survives"
    )
    carry_forward_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=100,
        help_text="Percentage of unmatched counts to carry forward (partial and capped types)"
    )
    carry_forward_max_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=50000,
        help_text="Maximum rupee value of pairs that can be carried forward (capped type)"
    )
    carry_forward_weak_leg_only = models.BooleanField(
        default=False,
        help_text="Only carry forward from the weaker leg"
    )

    # Reset policy
    reset_levels_on_period_close = models.BooleanField(
        default=False,
        help_text="Reset distributor ceiling levels when a monthly period closes"
    )

    updated_at = models.DateTimeField(auto_now=True)
    updated_by = models.ForeignKey(
        django_settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='updated_commission_settings',
        help_text="Admin who last updated these settings"
    )

    class Meta:
        db_table = 'commission_settings'
        verbose_name = 'Commission Settings'
        verbose_name_plural = 'Commission Settings'

    def __str__(self):
        return (
            f"Commission Settings (₹{self.binary_pair_commission_amount}/pair, "
            f"limit {self.binary_daily_pair_limit})"
        )

    @classmethod
    def get_settings(cls):
        """
        Get or create the singleton settings instance.
        """
        settings, created = cls.objects.get_or_create(pk=1)
        return settings

    def save(self, *args, **kwargs):
        """
        Always save with pk=1 to maintain singleton pattern.
        """
        self.pk = 1
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise Exception("Cannot delete CommissionSettings. It is a singleton.")


class CeilingLevel(models.Model):
    """
    One tier of the level/ceiling table, ordered by rank.
    Reaching a tier's ceiling promotes the distributor to the next tier.
    """
    rank = models.PositiveIntegerField(unique=True)
    name = models.CharField(max_length=50)
    ceiling = models.DecimalField(max_digits=12, decimal_places=2)
    pair_commission_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Overrides binary_pair_commission_amount for distributors at this level"
    )

    class Meta:
        db_table = 'ceiling_levels'
        verbose_name = 'Ceiling Level'
        verbose_name_plural = 'Ceiling Levels'
        ordering = ['rank']

    def __str__(self):
        return f"{self.name} (₹{self.ceiling})"
