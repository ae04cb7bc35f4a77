# src/meeting_taskbot/tasks/task_scheduler.py

from __future__ import annotations

"""
Overdue reminder scheduler.

A small polling loop that, once per day on the configured weekdays after the
configured hour:
- fetches overdue tasks (pending, due_date < today) across all scopes,
- turns each into an OverdueNotice,
- sends it via an injected messenger port.

It only reads the task store. Transport routing (which room, DM or not)
belongs to the connector, not the scheduler.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol

from ..core.ports import OutboundMessenger
from ..core.replies import overdue_notice
from .task_models import ScopeType, Task

logger = logging.getLogger(__name__)


class OverdueSource(Protocol):
    def list_overdue(self, *, today: date | None = None) -> list[Task]: ...


@dataclass(slots=True, frozen=True)
class OverdueNotice:
    """
    What the scheduler wants to send.

    Group and room tasks are announced in their conversation; personal tasks
    go to the user the scope belongs to.
    """

    task: Task
    text: str
    room_id: str | None
    to_user_id: str | None


def build_notice(task: Task) -> OverdueNotice:
    if task.scope_type in (ScopeType.GROUP, ScopeType.ROOM):
        room_id, to_user_id = task.scope_id, None
    else:
        room_id, to_user_id = None, task.scope_id
    return OverdueNotice(task=task, text=overdue_notice(task), room_id=room_id, to_user_id=to_user_id)


async def run_overdue_sweep(
        task_store: OverdueSource,
        messenger: OutboundMessenger,
        *,
        today: date | None = None,
) -> int:
    """
    One sweep. Returns the number of notices delivered.
    A failed send is logged and does not stop the remaining notices.
    """
    try:
        tasks = task_store.list_overdue(today=today or date.today())
    except Exception:
        logger.exception("list_overdue failed")
        return 0

    sent = 0
    for task in tasks:
        notice = build_notice(task)
        try:
            await messenger.send_text(text=notice.text, room_id=notice.room_id, to_user_id=notice.to_user_id)
            sent += 1
        except Exception:
            logger.exception("overdue notice send failed task_id=%s", task.id)

    logger.info("Overdue sweep: %d/%d notice(s) sent", sent, len(tasks))
    return sent


def is_sweep_due(now: datetime, *, hour: int, weekdays: Iterable[int], last_run: date | None) -> bool:
    if now.weekday() not in set(weekdays):
        return False
    if now.hour < hour:
        return False
    return last_run != now.date()


async def run_overdue_scheduler(
        task_store: OverdueSource,
        messenger: OutboundMessenger,
        *,
        hour: int = 9,
        weekdays: Iterable[int] = (0, 1, 2, 3, 4),
        interval_seconds: float = 60.0,
        now_fn: Callable[[], datetime] = datetime.now,
) -> None:
    """
    Simple polling scheduler: check the wall clock every interval_seconds and
    run at most one sweep per calendar day (default Mon-Fri from 09:00 local).

    To stop the scheduler, cancel the coroutine/task.
    """
    days = tuple(weekdays)
    sleep_s = max(0.01, float(interval_seconds))
    last_run: date | None = None

    while True:
        now = now_fn()
        if is_sweep_due(now, hour=hour, weekdays=days, last_run=last_run):
            last_run = now.date()
            await run_overdue_sweep(task_store, messenger, today=now.date())
        await asyncio.sleep(sleep_s)
