"""Automation flows router"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    ExecutionResponse,
    FlowCreate,
    FlowFromTemplate,
    FlowResponse,
    FlowStatsResponse,
    FlowStatusUpdate,
    FlowTemplateResponse,
    FlowUpdate,
    ManualTrigger,
)
from .service import AutomationService

router = APIRouter(tags=["Automation"])


def get_automation_service(db: Session = Depends(get_db)) -> AutomationService:
    return AutomationService(db)


@router.get("/automation/templates", response_model=list[FlowTemplateResponse])
async def list_flow_templates(current_user: User = Depends(get_current_user)):
    return AutomationService.list_templates()


@router.get("/events/{event_id}/automations", response_model=list[FlowResponse])
async def list_flows(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: AutomationService = Depends(get_automation_service),
):
    return service.list_flows(event_id, current_user)


@router.post("/events/{event_id}/automations", response_model=FlowResponse, status_code=201)
async def create_flow(
    event_id: int,
    data: FlowCreate,
    current_user: User = Depends(get_current_user),
    service: AutomationService = Depends(get_automation_service),
):
    return service.create_flow(event_id, data, current_user)


@router.post("/events/{event_id}/automations/from-template", response_model=FlowResponse, status_code=201)
async def create_flow_from_template(
    event_id: int,
    data: FlowFromTemplate,
    current_user: User = Depends(get_current_user),
    service: AutomationService = Depends(get_automation_service),
):
    return service.create_from_template(event_id, data, current_user)


@router.get("/events/{event_id}/automations/stats", response_model=list[FlowStatsResponse])
async def get_automation_stats(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: AutomationService = Depends(get_automation_service),
):
    return service.get_event_stats(event_id, current_user)


@router.get("/automations/{flow_id}", response_model=FlowResponse)
async def get_flow(
    flow_id: int,
    current_user: User = Depends(get_current_user),
    service: AutomationService = Depends(get_automation_service),
):
    return service.get_flow(flow_id, current_user)


@router.put("/automations/{flow_id}", response_model=FlowResponse)
async def update_flow(
    flow_id: int,
    data: FlowUpdate,
    current_user: User = Depends(get_current_user),
    service: AutomationService = Depends(get_automation_service),
):
    return service.update_flow(flow_id, data, current_user)


@router.put("/automations/{flow_id}/status", response_model=FlowResponse)
async def update_flow_status(
    flow_id: int,
    data: FlowStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: AutomationService = Depends(get_automation_service),
):
    return service.update_status(flow_id, data, current_user)


@router.delete("/automations/{flow_id}")
async def delete_flow(
    flow_id: int,
    current_user: User = Depends(get_current_user),
    service: AutomationService = Depends(get_automation_service),
):
    service.delete_flow(flow_id, current_user)
    return {"success": True}


@router.get("/automations/{flow_id}/executions", response_model=list[ExecutionResponse])
async def list_executions(
    flow_id: int,
    status: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    service: AutomationService = Depends(get_automation_service),
):
    return service.list_executions(flow_id, current_user, status)


@router.post("/automations/{flow_id}/retry-failed")
async def retry_failed_executions(
    flow_id: int,
    current_user: User = Depends(get_current_user),
    service: AutomationService = Depends(get_automation_service),
):
    return {"success": True, "retried": service.retry_failed(flow_id, current_user)}


@router.post("/automations/{flow_id}/cancel-pending")
async def cancel_pending_executions(
    flow_id: int,
    current_user: User = Depends(get_current_user),
    service: AutomationService = Depends(get_automation_service),
):
    return {"success": True, "cancelled": service.cancel_pending(flow_id, current_user)}


@router.post("/automations/{flow_id}/trigger")
async def trigger_flow(
    flow_id: int,
    data: ManualTrigger,
    current_user: User = Depends(get_current_user),
    service: AutomationService = Depends(get_automation_service),
):
    summary = await service.trigger_manually(flow_id, data.guest_ids, current_user)
    return {"success": True, **summary}


@router.post("/automation-executions/{execution_id}/retry", response_model=ExecutionResponse)
async def retry_execution(
    execution_id: int,
    current_user: User = Depends(get_current_user),
    service: AutomationService = Depends(get_automation_service),
):
    execution = service.retry_execution(execution_id, current_user)
    return _execution_response(execution)


@router.post("/automation-executions/{execution_id}/run", response_model=ExecutionResponse)
async def run_execution(
    execution_id: int,
    current_user: User = Depends(get_current_user),
    service: AutomationService = Depends(get_automation_service),
):
    execution = await service.run_execution_now(execution_id, current_user)
    return _execution_response(execution)


def _execution_response(execution) -> ExecutionResponse:
    response = ExecutionResponse.model_validate(execution)
    response.guest_name = execution.guest.name if execution.guest else None
    return response
