# config/celery.py

import os
from celery import Celery
import logging

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('fulfillment')

# Read CELERY_* keys from Django settings
app.config_from_object('django.conf:settings', namespace='CELERY')

# Picks up apps/<app>/tasks.py
app.autodiscover_tasks()


@app.task(bind=True)
def debug_task(self):
    logger = logging.getLogger(__name__)
    logger.debug(f'Request: {self.request!r}')
