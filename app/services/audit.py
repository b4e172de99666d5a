from __future__ import annotations
from sqlalchemy.ext.asyncio import AsyncSession
from app.models.audit_log import AuditLog

async def audit(
    db: AsyncSession,
    *,
    action: str,
    target_type: str | None = None,
    target_id: str | None = None,
    detail: dict | None = None,
) -> None:
    db.add(AuditLog(
        action=action,
        target_type=target_type,
        target_id=target_id,
        detail=detail or {},
    ))
