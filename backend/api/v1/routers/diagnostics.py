"""
Diagnostics Router — exercise the notifier and the workflow client directly.

Neither endpoint touches cutover state or the audit log.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.deps import get_controller, get_current_user
from cutover.controller import CutoverController
from integrations.base import WorkflowState

router = APIRouter(prefix="/api/v1/diagnostics", tags=["diagnostics"])


class WorkflowStateRequest(BaseModel):
    resource_group: str = Field(..., alias="resourceGroup", min_length=1)
    workflow_name: str = Field(..., alias="workflowName", min_length=1)
    state: WorkflowState

    model_config = {"populate_by_name": True}


class WorkflowStateResponse(BaseModel):
    current_state: str | None
    requested_state: str
    success: bool
    error: str | None
    new_state: str | None
    changed: bool


@router.post("/notify")
async def send_test_notification(
    controller: CutoverController = Depends(get_controller),
    user: dict = Depends(get_current_user),
):
    delivery_id = await controller.send_test_notification()
    return {"sent": delivery_id is not None, "delivery_id": delivery_id}


@router.post("/workflow-state", response_model=WorkflowStateResponse)
async def probe_workflow_state(
    body: WorkflowStateRequest,
    controller: CutoverController = Depends(get_controller),
    user: dict = Depends(get_current_user),
):
    """Read, set, and re-read one workflow's state."""
    return await controller.probe_workflow_state(body.resource_group, body.workflow_name, body.state)
