from django.contrib import admin

from .models import CarryForwardRecord, Distributor, PairMatchEvent, SubtreeCounters


class SubtreeCountersInline(admin.StackedInline):
    model = SubtreeCounters
    can_delete = False
    readonly_fields = (
        'new_left_count', 'new_right_count', 'carried_left_count', 'carried_right_count',
        'carried_left_age', 'carried_right_age', 'lifetime_matched_pairs', 'updated_at',
    )


@admin.register(Distributor)
class DistributorAdmin(admin.ModelAdmin):
    """
    Placement is immutable: tree position fields are read-only and nodes
    are never added or deleted here (use the event API).
    """
    list_display = ('id', 'parent', 'side', 'depth', 'direct_referral_count', 'is_activated', 'is_active_buyer', 'joined_at')
    list_filter = ('side', 'is_activated', 'is_active_buyer', 'is_deactivated')
    search_fields = ('id', 'parent__id', 'referrer__id')
    readonly_fields = (
        'id', 'parent', 'referrer', 'side', 'depth', 'direct_referral_count', 'is_activated',
        'activated_at', 'activation_bonus_paid', 'pairs_since_activation', 'joined_at', 'updated_at',
    )
    inlines = [SubtreeCountersInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class ImmutableRecordAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(PairMatchEvent)
class PairMatchEventAdmin(ImmutableRecordAdmin):
    list_display = ('distributor', 'period', 'matched_pairs', 'raw_matches', 'blocked_by_daily_limit', 'blocked_by_active_buyer_cap', 'timestamp')
    list_filter = ('period',)
    search_fields = ('distributor__id',)
    date_hierarchy = 'timestamp'


@admin.register(CarryForwardRecord)
class CarryForwardRecordAdmin(ImmutableRecordAdmin):
    list_display = ('distributor', 'period', 'side', 'leftover_count', 'carried_in', 'forfeited', 'bucket_count', 'bucket_age')
    list_filter = ('period', 'side')
    search_fields = ('distributor__id',)
