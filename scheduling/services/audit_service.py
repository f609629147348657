"""Audit log emission."""

import asyncio
from abc import ABC, abstractmethod

import structlog
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scheduling.models.audit_logs import audit_logs
from scheduling.schemas.audit import AuditEvent

logger = structlog.get_logger(__name__)


class AuditSink(ABC):
    """Append-only destination for audit events."""

    @abstractmethod
    async def append(self, event: AuditEvent) -> None:
        """Persist one event. May raise; callers isolate failures."""


class SqlAuditSink(AuditSink):
    """
    Writes audit events to the ``audit_logs`` table.

    Each append opens its own session and transaction, so it can never share
    a unit of work with the appointment write it describes.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def append(self, event: AuditEvent) -> None:
        values = event.model_dump(mode="python")
        values["action"] = event.action.value
        async with self.session_factory() as session:
            await session.execute(insert(audit_logs).values(**values))
            await session.commit()


class InMemoryAuditSink(AuditSink):
    """Keeps audit events in a list."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    async def append(self, event: AuditEvent) -> None:
        self.events.append(event)


class AuditEmitter:
    """Best-effort writer in front of an audit sink."""

    def __init__(self, sink: AuditSink, timeout_seconds: float = 2.0):
        self.sink = sink
        self.timeout_seconds = timeout_seconds
        self._pending: set[asyncio.Task[bool]] = set()

    async def emit(self, event: AuditEvent) -> bool:
        """
        Append an event without ever failing the caller.

        The append runs in its own task. If the caller is cancelled (for
        example by a request deadline) the append still completes or fails
        on its own, bounded by ``timeout_seconds``.

        Args:
            event: Event describing a mutation that already succeeded

        Returns:
            True if the sink accepted the event, False if it failed or timed out
        """
        task = asyncio.ensure_future(self._append(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            logger.info(
                "audit_write_detached",
                action=event.action.value,
                subject_id=str(event.subject_id),
                tenant_id=str(event.tenant_id),
            )
            raise

    async def _append(self, event: AuditEvent) -> bool:
        try:
            await asyncio.wait_for(self.sink.append(event), timeout=self.timeout_seconds)
        except Exception as e:
            # Log error but don't fail the request
            logger.warning(
                "audit_write_failed",
                action=event.action.value,
                subject_id=str(event.subject_id),
                tenant_id=str(event.tenant_id),
                error_type=type(e).__name__,
                error=str(e),
            )
            return False
        return True
