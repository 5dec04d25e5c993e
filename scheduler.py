"""Background scheduling for the pipeline and the configured push tasks.

APScheduler evaluates the calendar; this module only wires callbacks.
"""

import logging
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import COLLECT_INTERVAL_MINUTES
from db.database import get_session
from db.models import PushTask
from pipeline import Pipeline

logger = logging.getLogger(__name__)

COLLECT_JOB_ID = "collect-and-process"
_TASK_JOB_PREFIX = "push-task:"


class Scheduler:
    def __init__(self, pipeline: Pipeline, scheduler: BaseScheduler | None = None) -> None:
        self.pipeline = pipeline
        self._scheduler = scheduler or BackgroundScheduler()

    def start(self, paused: bool = False) -> None:
        # Fires once right away, then on the fixed interval.
        self._scheduler.add_job(
            self.pipeline.collect_and_process,
            IntervalTrigger(minutes=COLLECT_INTERVAL_MINUTES),
            id=COLLECT_JOB_ID,
            next_run_time=datetime.now(),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.load_push_tasks()
        self._scheduler.start(paused=paused)
        logger.info("Scheduler started (collect every %d min)", COLLECT_INTERVAL_MINUTES)

    def load_push_tasks(self) -> int:
        """(Re)arm one cron job per enabled push task. Returns the number armed."""
        for job in self._scheduler.get_jobs():
            if job.id.startswith(_TASK_JOB_PREFIX):
                self._scheduler.remove_job(job.id)

        session = get_session()
        try:
            tasks = [
                (t.id, t.name, t.cron_expr)
                for t in session.query(PushTask).filter(PushTask.enabled.is_(True)).all()
            ]
        finally:
            session.close()

        armed = 0
        for task_id, name, cron_expr in tasks:
            try:
                trigger = CronTrigger.from_crontab(cron_expr or "")
            except ValueError as e:
                logger.error("Failed to add cron job for task %s (%r): %s", name, cron_expr, e)
                continue
            self._scheduler.add_job(
                self.pipeline.run_push_task,
                trigger,
                args=[task_id],
                id=f"{_TASK_JOB_PREFIX}{task_id}",
                name=name,
                max_instances=1,
                replace_existing=True,
            )
            armed += 1

        logger.info("Loaded %d push tasks", armed)
        return armed

    def job_ids(self) -> list[str]:
        return [job.id for job in self._scheduler.get_jobs()]

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)


_scheduler: Scheduler | None = None


def get_scheduler() -> Scheduler | None:
    """The running scheduler, if the app started one."""
    return _scheduler


def start_scheduler(pipeline: Pipeline) -> Scheduler:
    global _scheduler
    _scheduler = Scheduler(pipeline)
    _scheduler.start()
    return _scheduler


def stop_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown()
        _scheduler = None
