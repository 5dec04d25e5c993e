"""Tests for the collect job and push-task cron wiring."""

from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

import scheduler as scheduler_mod
from config import COLLECT_INTERVAL_MINUTES
from db.database import get_session
from db.models import PushTask
from scheduler import COLLECT_JOB_ID, Scheduler


class StubPipeline:
    def __init__(self) -> None:
        self.ran: list[str] = []

    def collect_and_process(self) -> dict[str, int]:
        return {"collected": 0, "enriched": 0, "pushed": 0}

    def run_push_task(self, task_id: str) -> int:
        self.ran.append(task_id)
        return 0


def _add_task(name: str, cron_expr: str, enabled: bool = True) -> str:
    session = get_session()
    try:
        task = PushTask(name=name, cron_expr=cron_expr, channel_id="ch", enabled=enabled)
        session.add(task)
        session.commit()
        return task.id
    finally:
        session.close()


def test_load_push_tasks_arms_valid_crons():
    morning = _add_task("morning", "0 9 * * *")
    weekdays = _add_task("weekdays", "30 18 * * mon-fri")
    _add_task("broken", "every day at nine")
    _add_task("off", "0 12 * * *", enabled=False)

    scheduler = Scheduler(StubPipeline(), scheduler=BackgroundScheduler())
    assert scheduler.load_push_tasks() == 2
    assert sorted(scheduler.job_ids()) == sorted([f"push-task:{morning}", f"push-task:{weekdays}"])


def test_reload_replaces_previous_jobs():
    first = _add_task("first", "0 9 * * *")
    scheduler = Scheduler(StubPipeline(), scheduler=BackgroundScheduler())
    scheduler.load_push_tasks()

    session = get_session()
    try:
        session.get(PushTask, first).enabled = False
        session.commit()
    finally:
        session.close()
    second = _add_task("second", "*/15 * * * *")

    assert scheduler.load_push_tasks() == 1
    assert scheduler.job_ids() == [f"push-task:{second}"]


def test_armed_job_targets_its_task():
    task_id = _add_task("morning", "0 9 * * *")
    pipeline = StubPipeline()
    backend = BackgroundScheduler()
    Scheduler(pipeline, scheduler=backend).load_push_tasks()

    job = backend.get_job(f"push-task:{task_id}")
    assert job.args == (task_id,)
    job.func(*job.args)
    assert pipeline.ran == [task_id]


def test_start_arms_collect_job_and_push_tasks():
    task_id = _add_task("morning", "0 9 * * *")
    backend = BackgroundScheduler()
    scheduler = Scheduler(StubPipeline(), scheduler=backend)

    scheduler.start(paused=True)
    try:
        collect = backend.get_job(COLLECT_JOB_ID)
        assert isinstance(collect.trigger, IntervalTrigger)
        assert collect.trigger.interval == timedelta(minutes=COLLECT_INTERVAL_MINUTES)
        assert collect.next_run_time <= datetime.now(timezone.utc)
        assert f"push-task:{task_id}" in scheduler.job_ids()
    finally:
        scheduler.shutdown()

    assert not backend.running


def test_start_and_stop_module_scheduler(monkeypatch):
    backend = BackgroundScheduler()
    monkeypatch.setattr(scheduler_mod, "BackgroundScheduler", lambda: backend)

    started = scheduler_mod.start_scheduler(StubPipeline())
    assert scheduler_mod.get_scheduler() is started
    assert backend.running
    assert COLLECT_JOB_ID in started.job_ids()

    scheduler_mod.stop_scheduler()
    assert scheduler_mod.get_scheduler() is None
    assert not backend.running
