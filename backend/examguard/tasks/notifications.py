from datetime import datetime, timedelta
import logging

from examguard.core.celery_app import celery_app
from examguard.core.cache import cache
from examguard.core.config import settings
from examguard.services.security_notification_service import alerts_key
from examguard.utils.timezone import utc_now

logger = logging.getLogger(__name__)


@celery_app.task(name="send_forced_submission_alert")
def send_forced_submission_alert(teacher_id: str, data: dict):
    """Leave an in-app alert for the teacher after a quiz was force-submitted"""
    alert = {
        'type': 'forced_submission',
        'title': 'Quiz Terminated',
        'message': (
            f"{data.get('student_name', 'A student')} was removed from "
            f"\"{data.get('quiz_title', 'a quiz')}\" after {data.get('violation_count', 0)} security violation(s)."
        ),
        'data': data,
        'timestamp': utc_now().isoformat()
    }

    key = alerts_key(teacher_id)
    alerts = cache.get(key) or []
    alerts.append(alert)
    alerts = alerts[-settings.security_alerts_kept:]
    stored = cache.set(key, alerts, ttl=86400)

    logger.info(f"Forced submission alert for teacher {teacher_id} stored={stored}")
    return {'teacher_id': teacher_id, 'stored': stored}


@celery_app.task(name="cleanup_old_security_alerts")
def cleanup_old_security_alerts():
    """Drop teacher alerts older than the retention window"""
    cutoff_time = utc_now() - timedelta(days=settings.notification_retention_days)
    alert_keys = cache.keys("security_alerts:*")
    cleaned_count = 0

    for key in alert_keys:
        try:
            alerts = cache.get(key) or []
            kept = [
                alert for alert in alerts
                if datetime.fromisoformat(alert.get('timestamp', '1970-01-01T00:00:00+00:00')) > cutoff_time
            ]
            if len(kept) != len(alerts):
                cache.set(key, kept, ttl=86400)
                cleaned_count += len(alerts) - len(kept)
        except Exception as e:
            logger.error(f"Error cleaning security alerts for key {key}: {e}")

    return {
        'keys_processed': len(alert_keys),
        'alerts_cleaned': cleaned_count
    }
