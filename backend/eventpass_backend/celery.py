import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "eventpass_backend.settings")

app = Celery("eventpass_backend")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
