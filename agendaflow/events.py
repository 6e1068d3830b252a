"""In-process event bus for booking events.

Mutations pass their session to ``emit``: the event is staged on that session
and published only when it commits, so rolled-back or retried attempts leave
no trace. Events emitted without a session (startup, booking conflicts) are
published immediately. Published events go through a queue drained by a
background worker; a slow or failing subscriber never fails a booking.

Usage:
    await emit(SystemEvent(event_type=EventType.SLOT_BOOKED, org_id=org_id), db)

    subscribe(audit_on_event)  # async def handler(event: SystemEvent) -> None
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from sqlalchemy import event as sa_event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, SessionTransaction

from agendaflow.schemas.events import SystemEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SystemEvent], Coroutine[Any, Any, None]]

# Session.info key holding events staged until commit
_STAGED = "agendaflow.staged_events"

_subscribers: list[EventHandler] = []
_queue: asyncio.Queue[SystemEvent] | None = None
_worker_task: asyncio.Task[None] | None = None


def subscribe(handler: EventHandler) -> None:
    _subscribers.append(handler)
    logger.info("Registered event subscriber: %s", handler.__name__)


def unsubscribe(handler: EventHandler) -> None:
    if handler in _subscribers:
        _subscribers.remove(handler)


async def emit(event: SystemEvent, db: AsyncSession | None = None) -> None:
    """Publish ``event``, or stage it until ``db`` commits."""
    if db is not None:
        db.info.setdefault(_STAGED, []).append(event)
        return
    _publish(event)


def _publish(event: SystemEvent) -> None:
    global _queue
    if _queue is None:
        _queue = asyncio.Queue()
    _ensure_worker()
    _queue.put_nowait(event)
    logger.debug("Event published: %s (org=%s)", event.event_type.value, event.org_id)


@sa_event.listens_for(Session, "after_commit")
def _publish_staged(session: Session) -> None:
    for staged in session.info.pop(_STAGED, []):
        _publish(staged)


@sa_event.listens_for(Session, "after_soft_rollback")
def _discard_staged(session: Session, previous_transaction: SessionTransaction) -> None:
    if previous_transaction.nested:
        return
    dropped = session.info.pop(_STAGED, [])
    if dropped:
        logger.debug("Discarded %d staged events on rollback", len(dropped))


# ── Background worker ────────────────────────────────────────────────


def _ensure_worker() -> None:
    global _worker_task
    if _worker_task is None or _worker_task.done():
        _worker_task = asyncio.create_task(_event_worker())
        logger.info("Event worker started")


async def _event_worker() -> None:
    if _queue is None:
        return

    while True:
        try:
            event = await _queue.get()
            await _dispatch(event)
            _queue.task_done()
        except asyncio.CancelledError:
            logger.info("Event worker shutting down")
            break
        except Exception:
            logger.exception("Error in event worker")


async def _dispatch(event: SystemEvent) -> None:
    handlers = list(_subscribers)
    await asyncio.gather(*(_safe_call(handler, event) for handler in handlers))


async def _safe_call(handler: EventHandler, event: SystemEvent) -> None:
    try:
        await handler(event)
    except Exception:
        logger.exception("Handler %s failed for event %s", handler.__name__, event.event_type.value)


# ── Lifecycle ────────────────────────────────────────────────────────


async def start_event_system() -> None:
    """Start the worker. Call during application startup."""
    global _queue
    _queue = asyncio.Queue()
    _ensure_worker()
    logger.info("Event system started with %d subscribers", len(_subscribers))


async def stop_event_system() -> None:
    """Drain pending events and stop the worker."""
    global _worker_task, _queue

    if _queue is not None and _worker_task is not None and not _worker_task.done():
        await _queue.join()

    if _worker_task is not None and not _worker_task.done():
        _worker_task.cancel()
        try:
            await _worker_task
        except asyncio.CancelledError:
            pass

    _worker_task = None
    _queue = None
    logger.info("Event system stopped")
