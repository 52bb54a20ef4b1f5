import os
from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'pos_hq.settings')

app = Celery('pos_hq')

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django app configs.
app.autodiscover_tasks()

app.conf.update(
    task_track_started=True,
    task_serializer='json',
    result_serializer='json',
    accept_content=['json'],

    # Task routing
    task_routes={
        'webhooks.*': {'queue': 'webhooks'},
        'reports.*': {'queue': 'reports'},
    },

    # Periodic tasks
    beat_schedule={
        'send-daily-sales-summaries': {
            'task': 'reports.send_daily_sales_summaries',
            'schedule': crontab(hour=1, minute=0),  # Previous day, shortly after midnight
        },
    },
)
