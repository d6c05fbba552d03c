from django.contrib import admin

from .models import SettlementFailure, SettlementPeriod


@admin.register(SettlementPeriod)
class SettlementPeriodAdmin(admin.ModelAdmin):
    list_display = ('period_id', 'type', 'status', 'opened_at', 'closed_at')
    list_filter = ('type', 'status')
    search_fields = ('period_id',)
    readonly_fields = ('period_id', 'type', 'status', 'period_date', 'opened_at', 'closed_at', 'config_snapshot', 'summary')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(SettlementFailure)
class SettlementFailureAdmin(admin.ModelAdmin):
    list_display = ('distributor', 'period', 'stage', 'attempts', 'last_attempt_at', 'resolved_at')
    list_filter = ('stage', 'resolved_at')
    search_fields = ('distributor__id', 'period__period_id', 'error')
    readonly_fields = ('period', 'distributor', 'stage', 'error', 'attempts', 'created_at', 'last_attempt_at', 'resolved_at')
