from django.contrib import admin

from core.binary.admin import ImmutableRecordAdmin

from .models import LevelChangeEvent, LevelState


@admin.register(LevelState)
class LevelStateAdmin(admin.ModelAdmin):
    list_display = ('distributor', 'current_level', 'level_name', 'cumulative_achieved', 'ceiling_for_level', 'reset_baseline')
    list_filter = ('level_name',)
    search_fields = ('distributor__id',)
    readonly_fields = ('distributor', 'current_level', 'level_name', 'cumulative_achieved', 'ceiling_for_level', 'reset_baseline', 'updated_at')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(LevelChangeEvent)
class LevelChangeEventAdmin(ImmutableRecordAdmin):
    list_display = ('distributor', 'from_level_name', 'to_level_name', 'cumulative_achieved', 'reason', 'created_at')
    list_filter = ('reason', 'to_level_name')
    search_fields = ('distributor__id',)
