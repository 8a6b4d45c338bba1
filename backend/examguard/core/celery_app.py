from celery import Celery
from celery.schedules import crontab
from examguard.core.config import settings
import logging

logging.getLogger('celery.backends.redis').setLevel(logging.ERROR)

celery_app = Celery(
    "examguard_worker",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        'examguard.tasks.notifications',
    ]
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    task_routes={
        'send_forced_submission_alert': {'queue': 'notifications'},
        'cleanup_old_security_alerts': {'queue': 'notifications'},
    },

    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=1000,

    beat_schedule={
        'cleanup-old-security-alerts': {
            'task': 'cleanup_old_security_alerts',
            'schedule': crontab(minute=0),
        },
    },
)
