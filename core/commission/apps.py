from django.apps import AppConfig


class CommissionAppConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core.commission'
    label = 'commission'
