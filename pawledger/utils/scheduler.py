"""
Background scheduler for automated tasks.

Handles:
- Loyalty award retries for completed appointments (every 15 minutes)
"""
import os
import atexit
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None
_flask_app = None  # Flask app reference for job context


def init_scheduler(app):
    """
    Initialize the background scheduler.

    Only runs in production or when ENABLE_SCHEDULER=true, and only in the
    first process that gets here (gunicorn preloads the app).
    """
    global _scheduler, _flask_app

    _flask_app = app

    if app.config.get('TESTING'):
        logger.debug('[Scheduler] Disabled in testing mode')
        return

    if not (os.getenv('FLASK_ENV') == 'production' or os.getenv('ENABLE_SCHEDULER') == 'true'):
        logger.info('[Scheduler] Disabled (set FLASK_ENV=production or ENABLE_SCHEDULER=true)')
        return

    if os.getenv('SCHEDULER_RUNNING') == 'true':
        logger.info('[Scheduler] Already running in another process')
        return

    _scheduler = BackgroundScheduler(
        timezone='UTC',
        job_defaults={
            'coalesce': True,  # Combine missed runs
            'max_instances': 1,  # Prevent concurrent runs
            'misfire_grace_time': 600
        }
    )

    _scheduler.add_job(
        run_award_retries,
        trigger=CronTrigger(minute='*/15'),
        id='loyalty_award_retries',
        name='Retry failed loyalty awards',
        replace_existing=True
    )

    _scheduler.start()
    os.environ['SCHEDULER_RUNNING'] = 'true'
    logger.info('[Scheduler] Started: loyalty award retries every 15 minutes')

    atexit.register(shutdown_scheduler)


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info('[Scheduler] Shutdown complete')


def get_scheduler():
    return _scheduler


def run_award_retries():
    """
    Retry failed loyalty awards for every active tenant with loyalty enabled.
    """
    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    with _flask_app.app_context():
        from ..models.tenant import Tenant
        from ..services.appointment_service import AppointmentService

        tenants = Tenant.query.filter_by(is_active=True).all()
        total_awarded = 0
        total_failed = 0

        for tenant in tenants:
            if not tenant.has_module('loyalty'):
                continue
            try:
                result = AppointmentService(tenant.id).retry_pending_awards()
            except Exception as e:
                logger.error(f'[Scheduler] Award retry failed for tenant {tenant.id}: {e}')
                continue
            total_awarded += result['awarded']
            total_failed += result['failed']

        if total_awarded or total_failed:
            logger.info(
                f'[Scheduler] Award retries complete: {total_awarded} awarded, {total_failed} still failing'
            )
