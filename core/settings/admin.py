from django.contrib import admin
from .models import CommissionSettings, CeilingLevel


@admin.register(CommissionSettings)
class CommissionSettingsAdmin(admin.ModelAdmin):
    """
    Admin interface for Commission Settings.
    """
    list_display = ('id', 'binary_pair_commission_amount', 'binary_daily_pair_limit', 'updated_at', 'updated_by')
    readonly_fields = ('id', 'updated_at', 'updated_by')
    
    fieldsets = (
        ('Binary Commission', {
            'fields': (
                'direct_user_commission_amount',
                'binary_commission_activation_count',
                'binary_pair_commission_amount',
                'binary_commission_initial_bonus',
                'binary_daily_pair_limit',
                'max_earnings_before_active_buyer',
            )
        }),
        ('Deductions', {
            'fields': (
                'binary_tds_threshold_pairs',
                'binary_commission_tds_percentage',
                'binary_extra_deduction_percentage',
            )
        }),
        ('Placement', {
            'fields': (
                'binary_tree_default_placement_side',
                'placement_search_strategy',
                'spillover_max_depth',
                'max_tree_depth',
            )
        }),
        ('Carry Forward', {
            'fields': (
                'carry_forward_enabled',
                'carry_forward_type',
                'carry_forward_max_periods',
                'carry_forward_percentage',
                'carry_forward_max_amount',
                'carry_forward_weak_leg_only',
                'reset_levels_on_period_close',
            )
        }),
        ('Metadata', {
            'fields': ('id', 'updated_at', 'updated_by'),
        }),
    )
    
    def has_add_permission(self, request):
        return False
    
    def has_delete_permission(self, request, obj=None):
        return False
    
    def save_model(self, request, obj, form, change):
        """
        Set updated_by to current user when saving.
        """
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(CeilingLevel)
class CeilingLevelAdmin(admin.ModelAdmin):
    list_display = ('rank', 'name', 'ceiling', 'pair_commission_amount')
    ordering = ('rank',)
