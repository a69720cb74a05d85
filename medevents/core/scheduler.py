"""
Background scheduler for the post-event jobs: certificate sweep and feedback invites
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from medevents.core.config import settings
from medevents.core.db import SessionLocal

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def certificate_sweep_job():
    """Open a session, run one sweep and close it"""
    from medevents.services.certificate_issuer import build_issuer
    from medevents.services.certificate_sweep import run_certificate_sweep
    from medevents.services.notifier import Notifier
    from medevents.services.outbox import OutboxDispatcher

    db = SessionLocal()
    try:
        dispatcher = OutboxDispatcher(build_issuer(db), Notifier(db))
        report = run_certificate_sweep(db, dispatcher)
        logger.info(f"Certificate sweep finished: {report.to_dict()}")
    except Exception:
        logger.exception("Certificate sweep job failed")
    finally:
        db.close()


def feedback_invite_job():
    """Open a session, send one round of post-event feedback invites and close it"""
    from medevents.services.certificate_issuer import build_issuer
    from medevents.services.feedback_invites import run_feedback_invite_sweep
    from medevents.services.notifier import Notifier
    from medevents.services.outbox import OutboxDispatcher

    db = SessionLocal()
    try:
        dispatcher = OutboxDispatcher(build_issuer(db), Notifier(db))
        report = run_feedback_invite_sweep(db, dispatcher)
        logger.info(f"Feedback invite sweep finished: {report.to_dict()}")
    except Exception:
        logger.exception("Feedback invite job failed")
    finally:
        db.close()


def start_scheduler():
    """Start all scheduled jobs"""
    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler disabled")
        return

    scheduler.add_job(
        certificate_sweep_job,
        trigger=IntervalTrigger(minutes=settings.SWEEP_INTERVAL_MINUTES),
        id="certificate_sweep",
        name="Issue certificates for ended events",
        replace_existing=True,
        max_instances=1,
    )
    scheduler.add_job(
        feedback_invite_job,
        trigger=IntervalTrigger(minutes=settings.SWEEP_INTERVAL_MINUTES),
        id="feedback_invites",
        name="Invite attendees of ended events to give feedback",
        replace_existing=True,
        max_instances=1,
    )
    scheduler.start()
    logger.info(f"Scheduler started. Active jobs: {len(scheduler.get_jobs())}")


def stop_scheduler():
    """Stop scheduler gracefully"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
