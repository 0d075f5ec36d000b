"""
Cutovers Router — status, configuration, manual start/stop.

Request bodies accept camelCase keys (``resourceGroup``, ``autoCutback``)
as well as snake_case.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field, field_validator

from api.deps import cutover_http_error, get_controller, get_current_user
from cutover.controller import CutoverController, CutoverError

router = APIRouter(prefix="/api/v1", tags=["cutovers"])

# Request field -> schedule column
_CONFIG_COLUMNS = {
    "resource_group": "resource_group",
    "v4": "v4_workflow",
    "v3": "v3_workflow",
    "cutover": "failover_workflow",
    "failure_threshold": "failure_threshold",
    "auto_cutback": "auto_cutback",
    "scheduled_start": "scheduled_start",
    "scheduled_end": "scheduled_end",
}


def _naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# ─── Schemas ────────────────────────────────────────────────────────────────


class CutoverConfigRequest(BaseModel):
    resource_group: str | None = Field(None, alias="resourceGroup")
    v4: str | None = None
    v3: str | None = None
    cutover: str | None = None
    failure_threshold: int | None = Field(None, alias="failureThreshold", ge=1)
    auto_cutback: bool | None = Field(None, alias="autoCutback")
    scheduled_start: datetime | None = Field(None, alias="scheduledStart")
    scheduled_end: datetime | None = Field(None, alias="scheduledEnd")

    model_config = {"populate_by_name": True}

    @field_validator("scheduled_start", "scheduled_end")
    @classmethod
    def _to_utc(cls, value: datetime | None) -> datetime | None:
        return _naive_utc(value)


class StartRequest(BaseModel):
    duration_minutes: int | None = Field(None, alias="durationMinutes", ge=1)
    auto_cutback: bool = Field(False, alias="autoCutback")

    model_config = {"populate_by_name": True}


class CutoverConfigResponse(BaseModel):
    name: str
    resource_group: str
    v4_workflow: str
    v3_workflow: str
    failover_workflow: str
    is_active: bool
    scheduled_start: datetime | None
    scheduled_end: datetime | None
    auto_cutback: bool
    failure_threshold: int

    model_config = {"from_attributes": True}


class CutoverStatusResponse(BaseModel):
    name: str
    is_active: bool
    v4_state: str | None
    v3_state: str | None
    scheduled_start: datetime | None
    scheduled_end: datetime | None
    auto_cutback: bool
    failure_threshold: int
    total_runs: int
    total_failures: int
    total_failovers: int
    last_checked: datetime | None
    last_error: str | None

    model_config = {"from_attributes": True}


class TransitionResponse(BaseModel):
    name: str
    outcome: str
    is_active: bool
    details: str
    reason: str | None = None
    alerted: bool = False
    auto_cutback: bool = False
    scheduled_end: datetime | None = None
    remote_failures: list[str] = []


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/status", response_model=list[CutoverStatusResponse])
async def list_statuses(
    controller: CutoverController = Depends(get_controller),
    user: dict = Depends(get_current_user),
):
    """All cutovers with their live v4/v3 workflow states."""
    return await controller.list_statuses()


@router.put("/cutovers/{name}", response_model=CutoverConfigResponse)
async def upsert_cutover(
    name: str,
    body: CutoverConfigRequest,
    controller: CutoverController = Depends(get_controller),
    user: dict = Depends(get_current_user),
):
    """Create or update a cutover's configuration."""
    changes = {_CONFIG_COLUMNS[key]: value for key, value in body.model_dump(exclude_unset=True).items()}
    try:
        return await controller.upsert_config(name, changes)
    except CutoverError as exc:
        raise cutover_http_error(exc) from exc


@router.delete("/cutovers/{name}", status_code=204)
async def delete_cutover(
    name: str,
    controller: CutoverController = Depends(get_controller),
    user: dict = Depends(get_current_user),
):
    """Delete an inactive cutover."""
    try:
        await controller.delete_cutover(name)
    except CutoverError as exc:
        raise cutover_http_error(exc) from exc
    return Response(status_code=204)


@router.post("/cutovers/{name}/start", response_model=TransitionResponse)
async def start_cutover(
    name: str,
    body: StartRequest | None = None,
    controller: CutoverController = Depends(get_controller),
    user: dict = Depends(get_current_user),
):
    """Start (or re-start) a cutover now; it ends after ``durationMinutes``."""
    body = body or StartRequest()
    try:
        result = await controller.start_cutover(
            name,
            duration_minutes=body.duration_minutes,
            auto_cutback=body.auto_cutback,
        )
    except CutoverError as exc:
        raise cutover_http_error(exc) from exc
    return result.to_dict()


@router.post("/cutovers/{name}/stop", response_model=TransitionResponse)
async def stop_cutover(
    name: str,
    controller: CutoverController = Depends(get_controller),
    user: dict = Depends(get_current_user),
):
    """Stop a cutover now and restore v3."""
    try:
        result = await controller.stop_cutover(name)
    except CutoverError as exc:
        raise cutover_http_error(exc) from exc
    return result.to_dict()
