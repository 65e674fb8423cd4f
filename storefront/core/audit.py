"""Audit logging utilities."""

from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import Request
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.rate_limit import client_ip
from storefront.models.audit import AuditLog


def remote_addr(request: Optional[Request]) -> Optional[str]:
    return client_ip(request) if request is not None else None


async def log_audit(
    session: AsyncSession,
    user_id: Optional[Any],
    entity: str,
    entity_id: Optional[Any],
    action: str,
    details: Optional[dict[str, Any]] = None,
    remote_addr: Optional[str] = None,
) -> None:
    """Record a mutating operation in the caller's transaction."""

    await session.execute(
        insert(AuditLog).values(
            user_id=str(user_id) if user_id is not None else None,
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else None,
            action=action,
            details=json.dumps(details, default=str) if details is not None else None,
            remote_addr=remote_addr,
        )
    )
