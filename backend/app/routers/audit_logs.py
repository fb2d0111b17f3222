"""Audit log API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.repositories.audit_log_repository import AuditLogRepository
from app.schemas.audit_log import AuditLogResponse

router = APIRouter()


@router.get(
    "/",
    response_model=list[AuditLogResponse],
    summary="List audit logs",
    responses={401: {"description": "Unauthorized – invalid or missing operator key"}},
)
async def list_audit_logs(
    restaurant_id: UUID,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    resource_type: str | None = None,
    resource_id: UUID | None = None,
    action: str | None = None,
    actor_type: str | None = None,
    order_by: str | None = None,
    db: Session = Depends(get_db),
) -> list[AuditLogResponse]:
    """List a restaurant's audit logs with optional filters.

    ``order_by`` takes ``field:direction`` over created_at, action,
    resource_type and actor_type; the default is newest first.
    """
    try:
        logs = AuditLogRepository(db).get_all(
            restaurant_id=restaurant_id,
            skip=skip,
            limit=limit,
            resource_type=resource_type,
            resource_id=resource_id,
            action=action,
            actor_type=actor_type,
            order_by=order_by,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return [AuditLogResponse.model_validate(log) for log in logs]


@router.get(
    "/{resource_type}/{resource_id}",
    response_model=list[AuditLogResponse],
    summary="Get audit trail for a resource",
    responses={401: {"description": "Unauthorized – invalid or missing operator key"}},
)
async def get_resource_audit_trail(
    resource_type: str,
    resource_id: UUID,
    restaurant_id: UUID,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[AuditLogResponse]:
    """Get the audit trail for a specific resource."""
    repo = AuditLogRepository(db)
    logs = repo.get_by_resource(
        resource_type, resource_id, restaurant_id=restaurant_id, skip=skip, limit=limit
    )
    return [AuditLogResponse.model_validate(log) for log in logs]
