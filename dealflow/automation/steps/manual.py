"""
Dealflow Manual Step Handler

Creates a task record for a person to act on.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
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


class ManualStepHandler(BaseStepHandler):
    """
    Handler for manual steps.

    The task record is returned as the step output; storing it is up to the
    host application. The step counts as completed as soon as the record
    exists.
    """

    def __init__(self, notifications: NotificationSink):
        self.notifications = notifications

    async def execute(
        self,
        step: WorkflowStep,
        opportunity: Opportunity,
        execution: WorkflowExecution,
    ) -> Any:
        """Create a manual task."""
        now = utcnow()
        task: Dict[str, Any] = {
            "id": f"task_{uuid.uuid4().hex[:12]}",
            "title": step.name,
            "description": step.description,
            "opportunity_id": opportunity.id,
            "assigned_to": step.assigned_role or execution.executed_by,
            "due_date": now + timedelta(days=step.due_in_days),
            "status": "pending",
            "created_at": now,
        }

        await self.notifications.info(
            f"Manual task created: {step.name}",
            execution_id=execution.id,
            step_id=step.id,
        )

        logger.info(
            "manual_task_created",
            task_id=task["id"],
            step_id=step.id,
            assigned_to=task["assigned_to"],
        )

        return task
