"""Automation service - per-event message flows"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Guest, User
from ...models_automation import (
    CUSTOM_MESSAGE_ACTIONS,
    EXECUTION_STATUSES,
    AutomationFlow,
    AutomationFlowExecution,
)
from ...permissions import ROLE_EDITOR, ROLE_VIEWER, can_access_event, get_event_with_access
from ...security_utils import sanitize_text
from ...services import automation_engine
from ...services.notification_service import get_notification_service
from .schemas import ExecutionResponse, FlowCreate, FlowFromTemplate, FlowStatusUpdate, FlowUpdate

logger = logging.getLogger(__name__)

# Ready-made flows offered in the builder
FLOW_TEMPLATES = {
    "chaser": {
        "name": "תזכורת למי שלא ענה",
        "description": "שליחת תזכורת 24 שעות אחרי ההזמנה לאורחים שעוד לא אישרו הגעה",
        "trigger": "NO_RESPONSE",
        "action": "SEND_REMINDER",
        "delay_hours": 24,
    },
    "second_chance": {
        "name": "הזדמנות שנייה",
        "description": "תזכורת נוספת 48 שעות אחרי ההודעה האחרונה",
        "trigger": "NO_RESPONSE",
        "action": "SEND_REMINDER",
        "delay_hours": 48,
    },
    "thank_you": {
        "name": "תודה על האישור",
        "description": "הודעת תודה מיד כשאורח מאשר הגעה",
        "trigger": "RSVP_CONFIRMED",
        "action": "SEND_CONFIRMATION",
        "delay_hours": None,
    },
    "concierge": {
        "name": "שולחן ביום האירוע",
        "description": "שליחת מספר השולחן למאשרי ההגעה בבוקר האירוע",
        "trigger": "EVENT_DAY_MORNING",
        "action": "SEND_TABLE_ASSIGNMENT",
        "delay_hours": None,
    },
    "location_reminder": {
        "name": "פרטי הגעה",
        "description": "שליחת כתובת ושעה שעתיים לפני האירוע",
        "trigger": "BEFORE_EVENT",
        "action": "SEND_EVENT_DETAILS",
        "delay_hours": 2,
    },
}


class AutomationService:
    def __init__(self, db: Session):
        self.db = db

    def _get_flow(self, flow_id: int, user: User, required_role: str = ROLE_EDITOR) -> AutomationFlow:
        flow = self.db.query(AutomationFlow).filter(AutomationFlow.id == flow_id).first()
        if not flow or not can_access_event(self.db, user, flow.event_id, required_role):
            raise HTTPException(status_code=404, detail="Flow not found")
        return flow

    def _get_execution(self, execution_id: int, user: User) -> AutomationFlowExecution:
        execution = (
            self.db.query(AutomationFlowExecution).filter(AutomationFlowExecution.id == execution_id).first()
        )
        if not execution or not can_access_event(self.db, user, execution.flow.event_id, ROLE_EDITOR):
            raise HTTPException(status_code=404, detail="Execution not found")
        return execution

    def _check_duplicate(
        self, event_id: int, trigger: str, delay_hours: Optional[int], exclude_id: Optional[int] = None
    ) -> None:
        """Two live flows may share a trigger only with different delays"""
        delay = automation_engine.effective_delay_hours(trigger, delay_hours)
        flows = self.db.query(AutomationFlow).filter(
            AutomationFlow.event_id == event_id,
            AutomationFlow.trigger == trigger,
            AutomationFlow.status != "ARCHIVED",
        )
        for flow in flows:
            if flow.id == exclude_id:
                continue
            if automation_engine.effective_delay_hours(flow.trigger, flow.delay_hours) == delay:
                raise HTTPException(status_code=409, detail="A flow with this trigger already exists for this event")

    @staticmethod
    def _check_custom_message(action: str, custom_message: Optional[str]) -> None:
        if action in CUSTOM_MESSAGE_ACTIONS and not custom_message:
            raise HTTPException(status_code=422, detail="A custom message is required for this action")

    def _skip_pending(self, flow: AutomationFlow, reason: str) -> int:
        skipped = (
            self.db.query(AutomationFlowExecution)
            .filter(AutomationFlowExecution.flow_id == flow.id, AutomationFlowExecution.status == "PENDING")
            .update(
                {
                    AutomationFlowExecution.status: "SKIPPED",
                    AutomationFlowExecution.error_message: reason,
                    AutomationFlowExecution.executed_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        return skipped

    @staticmethod
    def list_templates() -> list[dict]:
        return [{"key": key, **template} for key, template in FLOW_TEMPLATES.items()]

    def list_flows(self, event_id: int, user: User) -> list[AutomationFlow]:
        event = get_event_with_access(self.db, user, event_id, ROLE_VIEWER)
        return (
            self.db.query(AutomationFlow)
            .filter(AutomationFlow.event_id == event.id)
            .order_by(AutomationFlow.created_at.desc(), AutomationFlow.id.desc())
            .all()
        )

    def get_flow(self, flow_id: int, user: User) -> AutomationFlow:
        return self._get_flow(flow_id, user, ROLE_VIEWER)

    def create_flow(self, event_id: int, data: FlowCreate, user: User, template_key: Optional[str] = None) -> AutomationFlow:
        event = get_event_with_access(self.db, user, event_id, ROLE_EDITOR)
        custom_message = sanitize_text(data.custom_message) or None
        self._check_custom_message(data.action, custom_message)
        self._check_duplicate(event.id, data.trigger, data.delay_hours)

        flow = AutomationFlow(
            event_id=event.id,
            name=sanitize_text(data.name),
            trigger=data.trigger,
            action=data.action,
            status="DRAFT",
            custom_message=custom_message,
            delay_hours=data.delay_hours,
            template_key=template_key,
        )
        self.db.add(flow)
        self.db.commit()
        self.db.refresh(flow)
        logger.info(f"🤖 Flow {flow.id} ({flow.trigger} -> {flow.action}) created for event {event.id}")
        return flow

    def create_from_template(self, event_id: int, data: FlowFromTemplate, user: User) -> AutomationFlow:
        template = FLOW_TEMPLATES.get(data.template_key)
        if template is None:
            raise HTTPException(status_code=404, detail="Flow template not found")
        flow_data = FlowCreate(
            name=template["name"],
            trigger=template["trigger"],
            action=template["action"],
            delay_hours=template["delay_hours"],
            custom_message=data.custom_message,
        )
        return self.create_flow(event_id, flow_data, user, template_key=data.template_key)

    def update_flow(self, flow_id: int, data: FlowUpdate, user: User) -> AutomationFlow:
        flow = self._get_flow(flow_id, user)
        updates = data.model_dump(exclude_unset=True)
        if "name" in updates:
            name = sanitize_text(updates["name"] or "")
            if not name:
                raise HTTPException(status_code=400, detail="Flow name is required")
            updates["name"] = name
        if "custom_message" in updates:
            updates["custom_message"] = sanitize_text(updates["custom_message"]) or None
            self._check_custom_message(flow.action, updates["custom_message"])
        if "delay_hours" in updates:
            self._check_duplicate(flow.event_id, flow.trigger, updates["delay_hours"], exclude_id=flow.id)

        for field, value in updates.items():
            setattr(flow, field, value)
        self.db.commit()
        self.db.refresh(flow)
        return flow

    def update_status(self, flow_id: int, data: FlowStatusUpdate, user: User) -> AutomationFlow:
        """ACTIVE schedules the flow for current guests; pausing or archiving drops what is pending"""
        flow = self._get_flow(flow_id, user)
        previous = flow.status
        flow.status = data.status
        self.db.commit()
        self.db.refresh(flow)

        if data.status == "ACTIVE" and previous != "ACTIVE":
            automation_engine.schedule_flow(self.db, flow)
        elif data.status in ("PAUSED", "ARCHIVED"):
            self._skip_pending(flow, f"Flow {data.status.lower()}")

        logger.info(f"🤖 Flow {flow.id} {previous} -> {flow.status}")
        return flow

    def delete_flow(self, flow_id: int, user: User) -> None:
        flow = self._get_flow(flow_id, user)
        self.db.delete(flow)
        self.db.commit()
        logger.info(f"🗑️ Flow {flow_id} deleted")

    def get_event_stats(self, event_id: int, user: User) -> list[dict]:
        event = get_event_with_access(self.db, user, event_id, ROLE_VIEWER)
        flows = self.db.query(AutomationFlow).filter(AutomationFlow.event_id == event.id).order_by(AutomationFlow.id)
        return [
            {"flow_id": flow.id, "name": flow.name, "status": flow.status, **automation_engine.get_flow_stats(self.db, flow.id)}
            for flow in flows
        ]

    def list_executions(self, flow_id: int, user: User, status: Optional[str] = None) -> list[ExecutionResponse]:
        flow = self._get_flow(flow_id, user, ROLE_VIEWER)
        if status is not None and status not in EXECUTION_STATUSES:
            raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {', '.join(EXECUTION_STATUSES)}")
        query = self.db.query(AutomationFlowExecution).filter(AutomationFlowExecution.flow_id == flow.id)
        if status:
            query = query.filter(AutomationFlowExecution.status == status)
        return [
            ExecutionResponse(
                id=e.id,
                flow_id=e.flow_id,
                guest_id=e.guest_id,
                guest_name=e.guest.name if e.guest else None,
                status=e.status,
                scheduled_for=e.scheduled_for,
                executed_at=e.executed_at,
                retry_count=e.retry_count,
                error_message=e.error_message,
            )
            for e in query.order_by(AutomationFlowExecution.id.asc())
        ]

    def retry_failed(self, flow_id: int, user: User) -> int:
        flow = self._get_flow(flow_id, user)
        retried = (
            self.db.query(AutomationFlowExecution)
            .filter(AutomationFlowExecution.flow_id == flow.id, AutomationFlowExecution.status == "FAILED")
            .update(
                {
                    AutomationFlowExecution.status: "PENDING",
                    AutomationFlowExecution.retry_count: 0,
                    AutomationFlowExecution.error_message: None,
                    AutomationFlowExecution.scheduled_for: None,
                    AutomationFlowExecution.executed_at: None,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        return retried

    def cancel_pending(self, flow_id: int, user: User) -> int:
        flow = self._get_flow(flow_id, user)
        return self._skip_pending(flow, "Cancelled")

    def retry_execution(self, execution_id: int, user: User) -> AutomationFlowExecution:
        execution = self._get_execution(execution_id, user)
        if execution.status != "FAILED":
            raise HTTPException(status_code=400, detail="Only failed executions can be retried")
        execution.status = "PENDING"
        execution.retry_count = 0
        execution.error_message = None
        execution.scheduled_for = None
        execution.executed_at = None
        self.db.commit()
        self.db.refresh(execution)
        return execution

    async def run_execution_now(self, execution_id: int, user: User) -> AutomationFlowExecution:
        execution = self._get_execution(execution_id, user)
        if execution.status != "PENDING":
            raise HTTPException(status_code=400, detail="Only pending executions can be run")
        if not automation_engine.claim_execution(self.db, execution):
            raise HTTPException(status_code=409, detail="Execution is already running")
        await automation_engine.run_execution(self.db, execution, get_notification_service(self.db))
        self.db.refresh(execution)
        return execution

    async def trigger_manually(self, flow_id: int, guest_ids: list[int], user: User) -> dict:
        """Run the action now for the chosen guests, whatever the trigger says"""
        flow = self._get_flow(flow_id, user)
        guests = self.db.query(Guest).filter(Guest.event_id == flow.event_id, Guest.id.in_(guest_ids)).all()
        if len(guests) != len(guest_ids):
            raise HTTPException(status_code=400, detail="Some guests do not belong to this event")

        service = get_notification_service(self.db)
        summary = {"succeeded": 0, "failed": 0, "skipped": 0}
        for guest in guests:
            execution = (
                self.db.query(AutomationFlowExecution)
                .filter(AutomationFlowExecution.flow_id == flow.id, AutomationFlowExecution.guest_id == guest.id)
                .first()
            )
            if execution is None:
                execution = AutomationFlowExecution(flow_id=flow.id, guest_id=guest.id)
                self.db.add(execution)
            elif execution.status == "PROCESSING":
                summary["skipped"] += 1
                continue
            execution.status = "PENDING"
            execution.retry_count = 0
            execution.scheduled_for = None
            execution.executed_at = None
            self.db.commit()

            if not automation_engine.claim_execution(self.db, execution):
                summary["skipped"] += 1
                continue
            status = await automation_engine.run_execution(self.db, execution, service)
            summary["succeeded" if status == "COMPLETED" else "failed"] += 1

        logger.info(f"🤖 Flow {flow.id} triggered manually for {len(guests)} guest(s): {summary}")
        return summary
