import datetime
import json
import logging
from typing import Callable, Dict, Tuple, Union

from pydantic import BaseModel
from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from meeting_reminders.core.clock import utcnow
from meeting_reminders.models.task import AdhocTask

# Backoff for failed tasks, in seconds
MIN_FAIL_DELAY = 60
MAX_FAIL_DELAY = 24 * 60 * 60

# A claim older than this belongs to a runner that died mid-task
TASK_TIMEOUT = datetime.timedelta(hours=1)

TaskHandler = Callable[[Session, dict], None]


class UnknownTaskError(LookupError):
    pass


def queue_adhoc_task(db: Session, classname: str, data: Union[BaseModel, dict], run_at: datetime.datetime = None) -> AdhocTask:
    """
    Add a task to the session. The caller commits, so the task is persisted
    together with whatever else the caller changed.
    """
    if isinstance(data, BaseModel):
        data = data.model_dump()
    task = AdhocTask(
        classname=classname,
        customdata=json.dumps(data),
        next_run_time=run_at or utcnow(),
    )
    db.add(task)
    return task


def _claimable(now: datetime.datetime):
    return or_(
        AdhocTask.time_started.is_(None),
        AdhocTask.time_started < now - TASK_TIMEOUT,
    )


def _claim(db: Session, task_id: int, now: datetime.datetime) -> bool:
    result = db.execute(
        update(AdhocTask)
        .where(AdhocTask.id == task_id, _claimable(now))
        .values(time_started=now)
    )
    db.commit()
    return result.rowcount == 1


def _reschedule(db: Session, task_id: int, now: datetime.datetime):
    task = db.get(AdhocTask, task_id)
    if task is None:
        return
    delay = min(max(task.fail_delay * 2, MIN_FAIL_DELAY), MAX_FAIL_DELAY)
    task.fail_delay = delay
    task.attempts += 1
    task.time_started = None
    task.next_run_time = now + datetime.timedelta(seconds=delay)
    db.commit()


def run_adhoc_tasks(
    session_factory: Callable[[], Session],
    handlers: Dict[str, TaskHandler],
    now: datetime.datetime = None,
) -> Tuple[int, int]:
    """
    Run every due task once, oldest first. Tasks whose claim has timed out
    are picked up again.
    Returns (completed, failed).
    """
    now = now or utcnow()
    completed = failed = 0

    db = session_factory()
    try:
        query = (
            db.query(AdhocTask.id)
            .filter(AdhocTask.next_run_time <= now, _claimable(now))
            .order_by(AdhocTask.id)
        )
        task_ids = [row.id for row in query.all()]

        for task_id in task_ids:
            if not _claim(db, task_id, now):
                continue
            task = db.get(AdhocTask, task_id)
            try:
                handler = handlers.get(task.classname)
                if handler is None:
                    raise UnknownTaskError(f"No handler for task {task.classname}")
                handler(db, json.loads(task.customdata))
                db.delete(task)
                db.commit()
                completed += 1
            except Exception:
                db.rollback()
                logging.exception(f"❌ Adhoc task {task_id} failed")
                _reschedule(db, task_id, now)
                failed += 1
    finally:
        db.close()

    if completed or failed:
        logging.info(f"📬 Adhoc tasks run: {completed} completed, {failed} failed")
    return completed, failed
