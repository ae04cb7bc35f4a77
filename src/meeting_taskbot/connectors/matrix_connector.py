# src/meeting_taskbot/connectors/matrix_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time
from dataclasses import dataclass

from nio import AsyncClient, MatrixRoom, RoomMessageText, exceptions

from ..core.dispatcher import CommandDispatcher, InboundMessage
from ..core.state import AppState
from ..tasks.task_models import Scope, ScopeType
from ..tasks.task_scheduler import run_overdue_scheduler
from .matrix_client import create_matrix_client

logger = logging.getLogger(__name__)


def _ms_now() -> int:
    return int(time.time() * 1000)


def _room_allowlist(settings_rooms: list[str]) -> set[str] | None:
    rooms = [r.strip() for r in (settings_rooms or []) if str(r).strip()]
    return set(rooms) if rooms else None


def scope_for_room(room: MatrixRoom, sender: str) -> Scope:
    """
    A two-member room is a direct chat with the bot: tasks belong to the person.
    Any larger room is a shared conversation keyed by its room id.
    """
    if room.member_count == 2:
        return Scope(ScopeType.USER, sender)
    return Scope(ScopeType.ROOM, room.room_id)


async def _send_text(client: AsyncClient, *, room_id: str, text: str) -> None:
    await client.room_send(
        room_id=room_id,
        message_type="m.room.message",
        content={"msgtype": "m.text", "body": text},
        ignore_unverified_devices=True,
    )


class MatrixMessenger:
    """OutboundMessenger over Matrix. Personal notices go to the last direct room seen for that user."""

    def __init__(self, client: AsyncClient, direct_rooms: dict[str, str]) -> None:
        self._client = client
        self._direct_rooms = direct_rooms

    async def send_text(self, *, text: str, room_id: str | None = None, to_user_id: str | None = None) -> None:
        target = room_id or (self._direct_rooms.get(to_user_id) if to_user_id else None)
        if not target:
            raise LookupError(f"No Matrix room known for user {to_user_id!r}")
        await _send_text(self._client, room_id=target, text=text)


class MatrixProfiles:
    """ProfileLookup over the client's joined-room member lists."""

    def __init__(self, client: AsyncClient, direct_rooms: dict[str, str]) -> None:
        self._client = client
        self._direct_rooms = direct_rooms

    def display_name(self, scope: Scope, user_id: str) -> str | None:
        room_id = self._direct_rooms.get(scope.id) if scope.type == ScopeType.USER else scope.id
        room = self._client.rooms.get(room_id) if room_id else None
        if room is None:
            return None
        return room.user_name(user_id)


class MatrixEventHandler:
    """
    Turns room messages into dispatcher calls.

    nio runs event callbacks one after another inside sync(), so each message
    is handled in its own task: a long summary extraction in one room must not
    hold up replies in the others.
    """

    def __init__(
        self,
        client: AsyncClient,
        dispatcher: CommandDispatcher,
        *,
        direct_rooms: dict[str, str],
        allowed_rooms: set[str] | None = None,
        startup_ts: int = 0,
    ) -> None:
        self._client = client
        self._dispatcher = dispatcher
        self._direct_rooms = direct_rooms
        self._allowed_rooms = allowed_rooms
        self._startup_ts = startup_ts
        self.pending: set[asyncio.Task[None]] = set()

    async def on_message(self, room: MatrixRoom, event: RoomMessageText) -> None:
        # Skip history replayed by the initial sync.
        ts = getattr(event, "server_timestamp", None)
        if ts is not None and ts <= self._startup_ts:
            return
        if event.sender == self._client.user_id:
            return
        if self._allowed_rooms is not None and room.room_id not in self._allowed_rooms:
            return

        body = (event.body or "").strip()
        if not body:
            return

        scope = scope_for_room(room, event.sender)
        if scope.type == ScopeType.USER:
            self._direct_rooms[event.sender] = room.room_id

        logger.debug("Matrix <%s> %s: %r", room.display_name, event.sender, body)

        task = asyncio.create_task(self._dispatch(room, InboundMessage(scope=scope, user_id=event.sender, text=body)))
        self.pending.add(task)
        task.add_done_callback(self._on_task_done)

    async def _dispatch(self, room: MatrixRoom, msg: InboundMessage) -> None:
        reply = await self._dispatcher.handle(msg)
        if not reply:
            return

        try:
            await _send_text(self._client, room_id=room.room_id, text=reply)
            logger.info("Replied in %s (%s).", room.display_name, room.room_id)
        except exceptions.OlmUnverifiedDeviceError:
            logger.warning("Cannot send reply in %s: unverified device.", room.room_id)
        except Exception:
            logger.exception("Failed to send reply in %s.", room.room_id)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self.pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Matrix message handling failed.", exc_info=exc)

    async def aclose(self) -> None:
        """Cancel in-flight message tasks and wait for them to unwind."""
        tasks = list(self.pending)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.pending.clear()


async def _run_matrix_bot(state: AppState, stop_event: asyncio.Event) -> None:
    """
    Matrix connector (async):

    init -> overdue scheduler -> callbacks -> sync loop

    Shutdown model:
    - main thread sets stop_event via loop.call_soon_threadsafe(stop_event.set)
    - we run a manual sync loop so we can exit promptly.
    """
    settings = state.settings

    startup_ts = _ms_now()
    allowed_rooms = _room_allowlist(getattr(settings, "matrix_rooms", []) or [])
    logger.info("Matrix allowed_rooms=%s", allowed_rooms if allowed_rooms is not None else "ALL")

    client = await create_matrix_client(settings)
    if client is None:
        logger.error("Matrix client creation failed; connector will stop.")
        return

    logger.info("Matrix client started (user=%s, homeserver=%s).", client.user_id, settings.matrix_homeserver)

    direct_rooms: dict[str, str] = {}
    state.profiles = MatrixProfiles(client, direct_rooms)
    dispatcher = CommandDispatcher(state)

    scheduler_task = asyncio.create_task(
        run_overdue_scheduler(
            state.task_store,
            MatrixMessenger(client, direct_rooms),
            hour=settings.overdue_sweep_hour,
            weekdays=settings.overdue_sweep_weekdays,
            interval_seconds=settings.overdue_poll_seconds,
        )
    )

    handler = MatrixEventHandler(
        client,
        dispatcher,
        direct_rooms=direct_rooms,
        allowed_rooms=allowed_rooms,
        startup_ts=startup_ts,
    )
    client.add_event_callback(handler.on_message, RoomMessageText)

    try:
        logger.info("Matrix initial sync...")
        await client.sync(timeout=30000, full_state=True)
        logger.info("Matrix initial sync done. Joined rooms: %d", len(client.rooms))

        while not stop_event.is_set():
            await client.sync(timeout=30000, full_state=False)

    except asyncio.CancelledError:
        logger.info("Matrix connector cancelled.")
    except Exception:
        logger.exception("Matrix connector crashed.")
    finally:
        scheduler_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await scheduler_task

        await handler.aclose()
        await client.close()
        logger.info("Matrix connector stopped.")


@dataclass
class MatrixBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Matrix loop already closed.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_matrix_in_background(state: AppState) -> MatrixBackgroundRunner | None:
    """
    Start the Matrix connector in a background thread so the console REPL
    (blocking input()) can run in the main thread.
    """
    if not getattr(state.settings, "matrix_enabled", False):
        logger.info("Matrix connector disabled, not starting.")
        return None

    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_matrix_bot(state, stop_event))
        finally:
            loop.close()

    t = threading.Thread(target=runner, name="matrix-connector", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Matrix thread did not initialize properly.")
        return None

    logger.info("Matrix background thread started.")
    return MatrixBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
