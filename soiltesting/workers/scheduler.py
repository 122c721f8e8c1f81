from datetime import timedelta
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..config import get_settings
from ..db import models
from ..db.session import SessionLocal
from ..core.exceptions import InvalidCredentialError
from ..services import audit, notification_service, qr_service, schedule_store, scheduling_service

logger = logging.getLogger(__name__)


def send_schedule_reminders() -> int:
    tomorrow = scheduling_service.local_today() + timedelta(days=1)
    with SessionLocal() as db:
        upcoming = schedule_store.get_for_date(db, tomorrow, [models.ScheduleStatus.approved])
        notifications = []
        for schedule in upcoming:
            try:
                unique_id = qr_service.parse_payload(schedule.qr_code_data).get("unique_id")
            except InvalidCredentialError:
                unique_id = None
            message = notification_service.build_reminder_message(
                scheduled_date=schedule.scheduled_date,
                start_time=schedule.start_time,
                unique_id=unique_id,
            )
            notifications.append(
                notification_service.SmsNotification(recipient=schedule.farmer_phone, message=message)
            )
        results = notification_service.send_bulk_sms(notifications)
        sent = sum(results)
        for schedule, delivered in zip(upcoming, results):
            if not delivered:
                logger.warning("Reminder was not delivered", extra={"schedule_id": schedule.id})
        if upcoming:
            audit.record(
                db,
                action="schedule_reminders_sent",
                actor_type=models.ActorType.system,
                payload={"date": tomorrow.isoformat(), "sent": sent, "total": len(upcoming)},
            )
            db.commit()
    logger.info("Schedule reminders processed", extra={"date": str(tomorrow), "sent": sent})
    return sent


def log_daily_manifest() -> int:
    with SessionLocal() as db:
        schedules = scheduling_service.get_today_schedules(db)
        for schedule in schedules:
            logger.info(
                "Visit scheduled for today",
                extra={
                    "schedule_id": schedule.id,
                    "center_id": schedule.center_id,
                    "field_officer_id": schedule.field_officer_id,
                    "start_time": schedule.start_time,
                },
            )
    return len(schedules)


def get_scheduler() -> AsyncIOScheduler:
    settings = get_settings()
    scheduler = AsyncIOScheduler(timezone=settings.timezone)
    scheduler.add_job(send_schedule_reminders, "cron", hour=settings.reminder_hour, minute=0)
    scheduler.add_job(log_daily_manifest, "cron", hour=6, minute=0)
    return scheduler
