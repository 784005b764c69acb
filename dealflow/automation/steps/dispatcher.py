"""
Dealflow Step Dispatcher

Executes workflow steps of all kinds.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

import structlog

from dealflow.automation.errors import StepExecutionError, UnknownStepKind
from dealflow.automation.notifications import LogNotificationSink, NotificationSink
from dealflow.automation.types import (
    Opportunity,
    StepType,
    WorkflowExecution,
    WorkflowStep,
)

logger = structlog.get_logger(__name__)


class StepDispatcher:
    """
    Dispatches a step to the handler registered for its kind.

    Supports:
    - Automated steps (template rendering)
    - Manual steps (task records)
    - Approval steps (approval records)
    """

    def __init__(
        self,
        notifications: Optional[NotificationSink] = None,
        default_approver_role: str = "manager",
    ):
        from dealflow.automation.steps.approval import ApprovalStepHandler
        from dealflow.automation.steps.automated import AutomatedStepHandler
        from dealflow.automation.steps.manual import ManualStepHandler

        self.notifications = notifications or LogNotificationSink()

        self._handlers: Dict[str, "BaseStepHandler"] = {
            StepType.AUTOMATED.value: AutomatedStepHandler(),
            StepType.MANUAL.value: ManualStepHandler(self.notifications),
            StepType.APPROVAL.value: ApprovalStepHandler(
                self.notifications, default_approver_role
            ),
        }

    async def dispatch(
        self,
        step: WorkflowStep,
        opportunity: Opportunity,
        execution: WorkflowExecution,
    ) -> Any:
        """
        Execute a step.

        Args:
            step: Step definition
            opportunity: Opportunity the execution runs against
            execution: Owning execution

        Returns:
            Step output

        Raises:
            StepExecutionError: the step failed; UnknownStepKind when no
                handler is registered for the step's kind
        """
        handler = self._handlers.get(step.kind)
        if handler is None:
            raise UnknownStepKind(step.id, step.kind)

        try:
            output = await handler.execute(step, opportunity, execution)

        except StepExecutionError as e:
            e.step_id = e.step_id or step.id
            e.step_type = e.step_type or step.kind
            logger.error(
                "step_error",
                step_id=step.id,
                step_type=step.kind,
                error=str(e),
            )
            raise

        except Exception as e:
            logger.error(
                "step_error",
                step_id=step.id,
                step_type=step.kind,
                error=str(e),
            )
            raise StepExecutionError(
                str(e) or type(e).__name__,
                step_id=step.id,
                step_type=step.kind,
                cause=e,
            ) from e

        logger.debug("step_dispatched", step_id=step.id, step_type=step.kind)
        return output

    def register_handler(
        self,
        step_type: Union[StepType, str],
        handler: "BaseStepHandler",
    ) -> None:
        """Register a custom handler for a step kind."""
        key = step_type.value if isinstance(step_type, StepType) else step_type
        self._handlers[key] = handler
        logger.info("step_handler_registered", step_type=key)

    def get_handler(
        self,
        step_type: Union[StepType, str],
    ) -> Optional["BaseStepHandler"]:
        """Get a handler by step kind."""
        key = step_type.value if isinstance(step_type, StepType) else step_type
        return self._handlers.get(key)


class BaseStepHandler:
    """Base class for step handlers."""

    async def execute(
        self,
        step: WorkflowStep,
        opportunity: Opportunity,
        execution: WorkflowExecution,
    ) -> Any:
        """Execute the step."""
        raise NotImplementedError
