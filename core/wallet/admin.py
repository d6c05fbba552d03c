from django.contrib import admin

from .models import Wallet, WalletTransaction


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    list_display = ('distributor', 'balance', 'total_earned', 'updated_at')
    search_fields = ('distributor__id',)
    readonly_fields = ('distributor', 'balance', 'total_earned', 'created_at', 'updated_at')

    def has_add_permission(self, request):
        return False


@admin.register(WalletTransaction)
class WalletTransactionAdmin(admin.ModelAdmin):
    """Wallet rows mirror the commission ledger and are never edited by hand"""
    list_display = ('distributor', 'transaction_type', 'amount', 'balance_after', 'created_at')
    list_filter = ('transaction_type', 'created_at')
    search_fields = ('distributor__id', 'description', 'ledger_entry__source_event_id')
    date_hierarchy = 'created_at'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
