import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'ev_compensation.settings')

app = Celery('ev_compensation')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
