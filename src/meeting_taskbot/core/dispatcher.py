# src/meeting_taskbot/core/dispatcher.py

"""
Inbound text -> command -> reply.

This module is transport-agnostic:
- connectors normalize an inbound chat message into InboundMessage,
- the dispatcher matches it against an ordered rule table, checks roles and
  drives the recorder / extractor / stores,
- connectors decide how to deliver the returned text (None means stay silent).

Key invariants:
- rules are evaluated in table order; the first match wins,
- text that matches no rule is meeting dialogue, never an error,
- this is the error boundary for one event: nothing escapes handle().
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import date

from ..meeting.extraction import CandidateTask, build_transcript
from ..meeting.session_recorder import UNKNOWN_DISPLAY_NAME
from ..permissions.permission_models import MANAGER_ROLES, MEETING_HOST_ROLES, Role, UserPermission
from ..tasks.task_models import Scope, Task, TaskFilter, TaskPriority, TaskStatus, parse_due_date
from . import replies
from .errors import PermissionDenied, TaskAlreadyCompleted, TaskNotFound
from .state import AppState

logger = logging.getLogger(__name__)

_COMPLETE_RE = re.compile(r"^完成\s+(\d+)")


@dataclass(frozen=True, slots=True)
class InboundMessage:
    scope: Scope
    user_id: str
    text: str
    display_name: str | None = None


@dataclass(frozen=True, slots=True)
class CommandContext:
    message: InboundMessage
    text: str
    permission: UserPermission
    display_name: str

    @property
    def scope(self) -> Scope:
        return self.message.scope

    @property
    def user_id(self) -> str:
        return self.message.user_id

    @property
    def role(self) -> Role:
        return self.permission.role


Matcher = Callable[[str], bool]
Handler = Callable[[CommandContext], Awaitable[str | None]]


@dataclass(frozen=True, slots=True)
class CommandRule:
    name: str
    matches: Matcher
    handler: Handler


def exact(*phrases: str) -> Matcher:
    options = frozenset(phrases)
    return lambda text: text in options


def prefix(start: str) -> Matcher:
    return lambda text: text.startswith(start)


def contains(*needles: str) -> Matcher:
    return lambda text: any(n in text for n in needles)


def any_of(*matchers: Matcher) -> Matcher:
    return lambda text: any(m(text) for m in matchers)


class CommandDispatcher:
    def __init__(
        self,
        state: AppState,
        *,
        today: Callable[[], date] = date.today,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._state = state
        self._today = today
        self._clock = clock
        self._rules: tuple[CommandRule, ...] = (
            CommandRule("start_meeting", exact("開始會議", "會議開始"), self._start_meeting),
            CommandRule(
                "summarize_meeting",
                any_of(exact("會議總結", "總結任務"), contains("TaskBot 會議總結")),
                self._summarize_meeting,
            ),
            CommandRule("cross_scope_status", contains("全公司狀態", "部門狀態"), self._cross_scope_status),
            CommandRule("list_tasks", exact("任務", "查看任務", "任務列表"), self._list_tasks),
            CommandRule("task_stats", exact("統計", "任務統計"), self._task_stats),
            CommandRule("complete_task", prefix("完成 "), self._complete_task),
            CommandRule("assign_role", prefix("設定權限 "), self._assign_role),
            CommandRule("assign_department", prefix("設定部門 "), self._assign_department),
            CommandRule("bind_department", prefix("綁定部門 "), self._bind_department),
            CommandRule("help", exact("幫助", "help", "指令"), self._help),
        )

    @property
    def rules(self) -> Sequence[CommandRule]:
        return self._rules

    def match(self, text: str) -> CommandRule | None:
        for rule in self._rules:
            if rule.matches(text):
                return rule
        return None

    def _display_name(self, message: InboundMessage) -> str:
        if message.display_name:
            return message.display_name
        profiles = self._state.profiles
        if profiles is not None:
            try:
                name = profiles.display_name(message.scope, message.user_id)
            except Exception:
                logger.debug("Profile lookup failed user=%s", message.user_id, exc_info=True)
                name = None
            if name:
                return name
        return UNKNOWN_DISPLAY_NAME

    async def handle(self, message: InboundMessage) -> str | None:
        text = (message.text or "").strip()
        if not text:
            return None

        try:
            display_name = self._display_name(message)
            rule = self.match(text)
            if rule is None:
                self._state.recorder.record(message.scope, message.user_id, display_name, text)
                return None

            known_name = None if display_name == UNKNOWN_DISPLAY_NAME else display_name
            permission = await asyncio.to_thread(
                self._state.permissions.get_permission, message.user_id, known_name
            )
            ctx = CommandContext(message=message, text=text, permission=permission, display_name=display_name)
            logger.info(
                "Command %s scope=%s user=%s role=%s",
                rule.name,
                message.scope.key,
                message.user_id,
                permission.role.value,
            )
            return await rule.handler(ctx)

        except PermissionDenied as e:
            logger.info("Permission denied user=%s: %s", message.user_id, e)
            return replies.INSUFFICIENT_PERMISSION
        except Exception:
            logger.exception("Failed to handle message scope=%s user=%s", message.scope.key, message.user_id)
            return replies.SYSTEM_BUSY

    # ---- meeting ----

    async def _start_meeting(self, ctx: CommandContext) -> str | None:
        if ctx.role not in MEETING_HOST_ROLES:
            if getattr(self._state.settings, "explicit_start_denial", False):
                return replies.MEETING_START_DENIED
            return None
        self._state.recorder.start(ctx.scope, ctx.role)
        return replies.MEETING_STARTED

    async def _summarize_meeting(self, ctx: CommandContext) -> str | None:
        recorder = self._state.recorder
        # An open session with nothing buffered keeps recording.
        if recorder.entry_count(ctx.scope) == 0:
            return replies.NO_MEETING_RECORD

        started_at = recorder.started_at(ctx.scope) or self._clock()
        entries = recorder.end(ctx.scope)
        if not entries:
            return replies.NO_MEETING_RECORD

        candidates = await self._state.extractor.extract(build_transcript(entries))
        candidates = [c for c in candidates if c.content and c.content.strip()]
        if not candidates:
            return replies.NO_TASKS_EXTRACTED

        await self._store_candidates(ctx, candidates)
        return replies.meeting_summary(candidates, started_at=started_at, ended_at=self._clock())

    def _create_from_candidate(self, ctx: CommandContext, candidate: CandidateTask) -> Task:
        return self._state.task_store.create(
            ctx.scope,
            creator_id=ctx.user_id,
            creator_name=ctx.display_name,
            content=candidate.content,
            assignee_name=candidate.assignee,
            priority=TaskPriority.parse(candidate.priority),
            due_date=parse_due_date(candidate.due_date),
        )

    async def _store_candidates(self, ctx: CommandContext, candidates: Sequence[CandidateTask]) -> list[Task]:
        """Create every task concurrently; one failed insert does not stop the others."""
        results = await asyncio.gather(
            *(asyncio.to_thread(self._create_from_candidate, ctx, c) for c in candidates),
            return_exceptions=True,
        )
        created: list[Task] = []
        for candidate, result in zip(candidates, results):
            if isinstance(result, BaseException):
                logger.error("Failed to store extracted task %r", candidate.content, exc_info=result)
                continue
            created.append(result)
        logger.info("Meeting summary stored %d/%d task(s) scope=%s", len(created), len(candidates), ctx.scope.key)
        return created

    # ---- tasks ----

    async def _cross_scope_status(self, ctx: CommandContext) -> str | None:
        if ctx.role not in MANAGER_ROLES:
            return replies.MANAGER_ONLY
        tasks = await asyncio.to_thread(
            self._state.task_store.cross_scope_list, ctx.user_id, ctx.role, ctx.permission.department
        )
        return replies.cross_scope_report(ctx.role, tasks, today=self._today())

    async def _list_tasks(self, ctx: CommandContext) -> str | None:
        today = self._today()
        tasks = await asyncio.to_thread(self._state.task_store.list_tasks, ctx.scope, TaskFilter.ALL, today=today)
        return replies.task_list(ctx.scope, tasks, today=today)

    async def _task_stats(self, ctx: CommandContext) -> str | None:
        stats = await asyncio.to_thread(self._state.task_store.stats, ctx.scope, today=self._today())
        return replies.task_stats(stats)

    async def _complete_task(self, ctx: CommandContext) -> str | None:
        m = _COMPLETE_RE.match(ctx.text)
        if m is None:
            return replies.TASK_NUMBER_NOT_FOUND

        number = int(m.group(1))
        store = self._state.task_store
        tasks = await asyncio.to_thread(store.list_tasks, ctx.scope, TaskFilter.ALL, today=self._today())
        if not 1 <= number <= len(tasks):
            return replies.TASK_NUMBER_NOT_FOUND

        task = tasks[number - 1]
        if task.status == TaskStatus.COMPLETED:
            return replies.task_already_completed(task.content)

        try:
            done = await asyncio.to_thread(store.complete, task.id, ctx.user_id, ctx.display_name)
        except TaskAlreadyCompleted:
            return replies.task_already_completed(task.content)
        except TaskNotFound:
            return replies.TASK_NUMBER_NOT_FOUND
        return replies.task_completed(done, ctx.display_name)

    # ---- administration ----

    async def _assign_role(self, ctx: CommandContext) -> str | None:
        if ctx.role != Role.SUPER_ADMIN:
            return replies.SUPER_ADMIN_ONLY
        parts = ctx.text.split()
        if len(parts) < 3:
            return replies.ROLE_USAGE
        try:
            new_role = Role.parse(parts[2])
        except ValueError:
            return replies.ROLE_USAGE
        await asyncio.to_thread(self._state.permissions.set_role, ctx.role, parts[1], new_role)
        return replies.role_assigned(parts[1], new_role)

    async def _assign_department(self, ctx: CommandContext) -> str | None:
        if ctx.role != Role.SUPER_ADMIN:
            return replies.SUPER_ADMIN_ONLY
        parts = ctx.text.split(maxsplit=2)
        if len(parts) < 3:
            return replies.DEPARTMENT_USAGE
        user_id, department = parts[1], parts[2].strip()
        await asyncio.to_thread(self._state.permissions.set_department, ctx.role, user_id, department)
        return replies.department_assigned(user_id, department)

    async def _bind_department(self, ctx: CommandContext) -> str | None:
        if ctx.role != Role.SUPER_ADMIN:
            return replies.SUPER_ADMIN_ONLY
        parts = ctx.text.split(maxsplit=1)
        if len(parts) < 2 or not parts[1].strip():
            return replies.BIND_USAGE
        department = parts[1].strip()
        await asyncio.to_thread(self._state.permissions.bind_scope, ctx.role, ctx.scope, department)
        return replies.scope_bound(ctx.scope, department)

    async def _help(self, ctx: CommandContext) -> str | None:
        return replies.help_text(ctx.role)
