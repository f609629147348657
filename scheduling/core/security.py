"""Tenant/actor token handling."""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict

from scheduling.config import settings


class TenantContext(BaseModel):
    """Tenant and actor on whose behalf a scheduling call runs."""

    model_config = ConfigDict(frozen=True)

    tenant_id: UUID
    actor_id: UUID


def create_access_token(
    actor_id: UUID,
    tenant_id: UUID,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token carrying actor and tenant ids.

    Args:
        actor_id: Acting user, stored in ``sub``
        tenant_id: Owning organization, stored in the tenant claim
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode: dict[str, Any] = {
        "sub": str(actor_id),
        settings.jwt_tenant_claim: str(tenant_id),
        "exp": expire,
        "iat": datetime.now(UTC),
        "type": "access",
    }

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded payload or None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        # Verify token type
        if payload.get("type") != "access":
            return None

        return payload
    except JWTError:
        return None


def context_from_payload(payload: dict[str, Any]) -> TenantContext | None:
    """Build a tenant context from token claims, or None if claims are unusable."""
    actor = payload.get("sub")
    tenant = payload.get(settings.jwt_tenant_claim)
    if not isinstance(actor, str) or not isinstance(tenant, str):
        return None
    try:
        return TenantContext(tenant_id=UUID(tenant), actor_id=UUID(actor))
    except ValueError:
        return None
