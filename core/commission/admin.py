from django.contrib import admin

from core.binary.admin import ImmutableRecordAdmin

from .models import LedgerEntry


@admin.register(LedgerEntry)
class LedgerEntryAdmin(ImmutableRecordAdmin):
    list_display = ('distributor', 'kind', 'gross_amount', 'tds_amount', 'extra_deduction_amount', 'net_amount', 'period', 'created_at')
    list_filter = ('kind', 'period')
    search_fields = ('distributor__id', 'source_event_id', 'description')
    date_hierarchy = 'created_at'
