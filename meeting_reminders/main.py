import logging

from fastapi import FastAPI

from meeting_reminders.core.db import init_db
from meeting_reminders.routers import unsubscribe as unsubscribe_router
from meeting_reminders.scheduler.reminder import scheduler, start_scheduler

logging.basicConfig(level=logging.INFO)

app = FastAPI(title="Meeting Reminders")


# --- Database + scheduler ---
@app.on_event("startup")
def on_startup():
    init_db()

    # Reminder scan + delivery of queued reminder emails
    start_scheduler(app)


@app.on_event("shutdown")
def on_shutdown():
    if scheduler.running:
        scheduler.shutdown(wait=False)


# --- Routers ---
app.include_router(unsubscribe_router.router, tags=["Unsubscribe"])
