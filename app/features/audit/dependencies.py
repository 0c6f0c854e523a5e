"""
Audit logging helpers and the request actor dependency.
"""
from typing import Any, Dict, Optional
from fastapi import Header, Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.audit.models import AuditLog
from app.utils import get_logger


log = get_logger(__name__)


async def get_actor_id(x_actor_id: Optional[str] = Header(None, max_length=26)) -> Optional[str]:
    """
    Who is making the change, for audit attribution only.

    The header is trusted as sent; authentication happens upstream.
    """
    return x_actor_id


def request_context(request: Request) -> Dict[str, Optional[str]]:
    """Client address and user agent for an audit entry."""
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


async def create_audit_log(
    db: AsyncSession,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> AuditLog:
    """
    Create an audit log entry.

    Args:
        db: Database session
        user_id: Actor performing the action
        action: Action performed (e.g., "create", "update", "assign", "add_member")
        resource_type: Type of resource (e.g., "department", "team", "user")
        resource_id: ID of the resource
        details: Additional details, JSON-encoded before storing
        ip_address: Client IP address
        user_agent: Client user agent

    Returns:
        Created AuditLog object
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=jsonable_encoder(details) if details is not None else None,
        ip_address=ip_address,
        user_agent=user_agent[:255] if user_agent else None
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    log.info(f"Audit: user={user_id} action={action} resource={resource_type}:{resource_id}")

    return audit_log
