# alertia_api/services/scheduler.py
from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

log = logging.getLogger(__name__)


def tick(app) -> dict | None:
    """
    Runs every minute; sends when the configured hora_envio comes up.
    The last run date is kept on the app so a day is never sent twice by the same process.
    """
    from alertia_api.common.dates import now_local
    from alertia_api.services import config_service, reminders_service
    from alertia_api.services.scheduled_sender import run_scheduled_send, should_run

    with app.app_context():
        now = now_local()
        config = config_service.get_configuracion()
        state = app.extensions.setdefault("alertia_scheduler_state", {"last_run": None})
        if not should_run(config, now, state["last_run"]):
            return None
        state["last_run"] = now.date()
        try:
            result = run_scheduled_send(now=now)
            result["recordatorios"] = reminders_service.enviar_pendientes(now.date())
        except Exception:
            app.logger.exception("scheduled send failed")
            return None
        log.info("scheduled send: %s", result)
        return result


def make_scheduler(app) -> BackgroundScheduler:
    """BackgroundScheduler with a once-a-minute tick (timezone from ALERTIA_TIMEZONE)."""
    sched = BackgroundScheduler(timezone=app.config.get("ALERTIA_TIMEZONE") or "UTC")
    sched.add_job(
        tick,
        CronTrigger(minute="*"),
        args=[app],
        id="alertia_scheduled_send",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return sched


def start_scheduler(app) -> BackgroundScheduler | None:
    if not app.config.get("ALERTIA_SCHEDULER_ENABLED"):
        return None
    sched = make_scheduler(app)
    sched.start()
    app.extensions["alertia_scheduler"] = sched
    log.info("scheduler started")
    return sched
