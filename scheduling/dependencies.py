"""FastAPI dependencies."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from scheduling.config import settings
from scheduling.core.clock import Clock, SystemClock
from scheduling.core.security import TenantContext, context_from_payload, decode_access_token
from scheduling.database import AsyncSessionLocal, get_db
from scheduling.repositories.base import AppointmentRepository
from scheduling.repositories.memory import InMemoryAppointmentRepository
from scheduling.repositories.sql import SqlAppointmentRepository
from scheduling.services.appointment_service import SchedulingService
from scheduling.services.audit_service import (
    AuditEmitter,
    AuditSink,
    InMemoryAuditSink,
    SqlAuditSink,
)

# Security
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_tenant_context(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> TenantContext:
    """
    Resolve tenant and actor from the bearer token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Tenant context for the request

    Raises:
        HTTPException: If the token is missing, invalid, or lacks tenant/actor claims
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Could not validate credentials")

    ctx = context_from_payload(payload)
    if ctx is None:
        raise _unauthorized("Could not validate credentials")

    return ctx


@lru_cache
def _memory_repository() -> InMemoryAppointmentRepository:
    return InMemoryAppointmentRepository()


@lru_cache
def _memory_audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


async def get_repository(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AppointmentRepository:
    """Repository for the configured storage backend."""
    if settings.storage_backend == "memory":
        return _memory_repository()
    return SqlAppointmentRepository(db)


async def get_audit_emitter() -> AuditEmitter:
    """Audit emitter writing outside the request's database session."""
    sink: AuditSink
    if settings.storage_backend == "memory":
        sink = _memory_audit_sink()
    else:
        sink = SqlAuditSink(AsyncSessionLocal)
    return AuditEmitter(sink, timeout_seconds=settings.audit_timeout_seconds)


async def get_clock() -> Clock:
    """Wall clock; overridden in tests."""
    return SystemClock()


async def get_scheduling_service(
    repository: Annotated[AppointmentRepository, Depends(get_repository)],
    audit: Annotated[AuditEmitter, Depends(get_audit_emitter)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> SchedulingService:
    """Scheduling service wired to the request's collaborators."""
    return SchedulingService(
        repository,
        audit,
        clock=clock,
        overlap_precheck=settings.overlap_precheck_enabled,
    )


# Type aliases for dependency injection
CurrentTenant = Annotated[TenantContext, Depends(get_tenant_context)]
Scheduler = Annotated[SchedulingService, Depends(get_scheduling_service)]
