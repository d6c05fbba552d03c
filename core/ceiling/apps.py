from django.apps import AppConfig


class CeilingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core.ceiling'
    label = 'ceiling'
