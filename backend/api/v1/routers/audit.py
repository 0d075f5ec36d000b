"""
Audit Router — recent lifecycle history, newest first.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from api.deps import get_controller, get_current_user
from cutover.controller import CutoverController

router = APIRouter(prefix="/api/v1/audit", tags=["audit"])


class AuditEntryResponse(BaseModel):
    audit_id: int
    partition_key: str
    cutover_name: str
    action: str
    details: str | None
    triggered_by: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


@router.get("", response_model=list[AuditEntryResponse])
async def get_recent_audit(
    days: int = Query(7, ge=1, le=90),
    controller: CutoverController = Depends(get_controller),
    user: dict = Depends(get_current_user),
):
    return await controller.get_recent_audit(days)
