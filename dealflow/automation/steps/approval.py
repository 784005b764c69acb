"""
Dealflow Approval Step Handler

Creates an approval request record.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict

import structlog

from dealflow.automation.notifications import NotificationSink
from dealflow.automation.steps.dispatcher import BaseStepHandler
from dealflow.automation.types import (
    Opportunity,
    WorkflowExecution,
    WorkflowStep,
    utcnow,
)

logger = structlog.get_logger(__name__)


class ApprovalStepHandler(BaseStepHandler):
    """
    Handler for approval steps.

    The step does not wait for a decision: creating the request completes
    it. An approval that must block the workflow needs a handler that awaits
    the decision, registered in place of this one.
    """

    def __init__(
        self,
        notifications: NotificationSink,
        default_approver_role: str = "manager",
    ):
        self.notifications = notifications
        self.default_approver_role = default_approver_role

    async def execute(
        self,
        step: WorkflowStep,
        opportunity: Opportunity,
        execution: WorkflowExecution,
    ) -> Any:
        """Create an approval request."""
        approval: Dict[str, Any] = {
            "id": f"approval_{uuid.uuid4().hex[:12]}",
            "title": f"Approval Required: {step.name}",
            "description": step.description,
            "opportunity_id": opportunity.id,
            "requested_by": execution.executed_by,
            "approver": step.assigned_role or self.default_approver_role,
            "status": "pending",
            "created_at": utcnow(),
        }

        await self.notifications.info(
            f"Approval requested: {step.name}",
            execution_id=execution.id,
            step_id=step.id,
        )

        logger.info(
            "approval_requested",
            approval_id=approval["id"],
            step_id=step.id,
            approver=approval["approver"],
        )

        return approval
