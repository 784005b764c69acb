"""
Dealflow Workflow Processor

Drives a single execution through its template's steps.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import structlog

from dealflow.automation.dependencies import unmet_dependencies
from dealflow.automation.errors import StepExecutionError
from dealflow.automation.notifications import NotificationSink
from dealflow.automation.rules.engine import AutomationRuleEngine
from dealflow.automation.steps.dispatcher import StepDispatcher
from dealflow.automation.store import ExecutionStore
from dealflow.automation.types import (
    ExecutionFailure,
    ExecutionResult,
    ExecutionStatus,
    Opportunity,
    RuleTrigger,
    StepType,
    WorkflowExecution,
    WorkflowStep,
    WorkflowTemplate,
)

logger = structlog.get_logger(__name__)

# Failures of these kinds are recorded on the step and processing continues
TOLERATED_FAILURE_KINDS = frozenset({StepType.MANUAL.value})

_ACTIVE = (ExecutionStatus.RUNNING, ExecutionStatus.PAUSED)


class WorkflowProcessor:
    """
    Steps through an execution from its cursor.

    Policy:
    - a step whose dependencies have not completed is skipped
    - a failed manual step is recorded and processing continues
    - any other failed step fails the execution; later steps stay pending
    - processing stops when the execution is paused or cancelled; an outcome
      arriving after cancellation is discarded
    - errors never propagate to the caller; they fail the execution and are
      reported through the notification sink
    """

    def __init__(
        self,
        store: ExecutionStore,
        dispatcher: StepDispatcher,
        notifications: NotificationSink,
        rules: Optional[AutomationRuleEngine] = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.notifications = notifications
        self.rules = rules

    async def run(
        self,
        execution: WorkflowExecution,
        template: WorkflowTemplate,
        opportunity: Opportunity,
    ) -> None:
        """Process the execution until it finishes, pauses or is cancelled."""
        try:
            await self._process(execution, template, opportunity)

        except asyncio.CancelledError:
            await self.store.transition(
                execution.id,
                _ACTIVE,
                ExecutionStatus.FAILED,
                failure=ExecutionFailure(
                    message="Execution interrupted",
                    error_type="CancelledError",
                    step_id=self._current_step_id(execution, template),
                ),
            )
            raise

        except Exception as e:
            logger.error(
                "workflow_execution_failed",
                execution_id=execution.id,
                error=str(e),
                exc_info=True,
            )
            await self.store.transition(
                execution.id,
                _ACTIVE,
                ExecutionStatus.FAILED,
                failure=ExecutionFailure(
                    message=str(e),
                    error_type=type(e).__name__,
                    step_id=self._current_step_id(execution, template),
                ),
            )
            await self._notify_error(
                f"Workflow execution failed: {e}",
                execution_id=execution.id,
            )

    async def _process(
        self,
        execution: WorkflowExecution,
        template: WorkflowTemplate,
        opportunity: Opportunity,
    ) -> None:
        while execution.current_step < len(template.steps):
            if execution.status != ExecutionStatus.RUNNING:
                logger.info(
                    "processing_halted",
                    execution_id=execution.id,
                    status=execution.status.value,
                    current_step=execution.current_step,
                )
                return

            index = execution.current_step
            step = template.steps[index]
            result = execution.results[index]

            unmet = unmet_dependencies(step, execution.results[:index])
            if unmet:
                result.skip({"skipped": True, "unmet_dependencies": unmet})
                execution.current_step = index + 1
                logger.info(
                    "step_skipped",
                    execution_id=execution.id,
                    step_id=step.id,
                    unmet_dependencies=unmet,
                )
                continue

            result.start()
            logger.info(
                "step_started",
                execution_id=execution.id,
                step_id=step.id,
                step_type=step.kind,
            )

            try:
                output = await self.dispatcher.dispatch(step, opportunity, execution)
            except StepExecutionError as e:
                if self._discard_if_terminal(execution, step):
                    return
                if not await self._handle_step_failure(execution, step, result, e):
                    return
                continue

            if self._discard_if_terminal(execution, step):
                return

            result.complete(output)
            result.assigned_to = self._assignee(output)
            execution.current_step = index + 1

            logger.info(
                "step_completed",
                execution_id=execution.id,
                step_id=step.id,
            )

            await self._fire_rules(
                RuleTrigger.STEP_COMPLETED.value,
                template,
                execution,
                opportunity,
                step_id=step.id,
            )

        if execution.status != ExecutionStatus.RUNNING:
            return

        # Completion rules run once even if a pause lands while they run
        if not execution.completion_rules_fired:
            execution.completion_rules_fired = True
            await self._fire_rules(
                RuleTrigger.ALL_STEPS_COMPLETED.value,
                template,
                execution,
                opportunity,
            )

        if await self.store.transition(
            execution.id, ExecutionStatus.RUNNING, ExecutionStatus.COMPLETED
        ):
            logger.info(
                "execution_completed",
                execution_id=execution.id,
                duration_ms=execution.duration_ms,
            )

    async def _handle_step_failure(
        self,
        execution: WorkflowExecution,
        step: WorkflowStep,
        result: ExecutionResult,
        error: StepExecutionError,
    ) -> bool:
        """Record a failed step. Returns True when processing should continue."""
        result.fail(str(error))

        if step.kind in TOLERATED_FAILURE_KINDS:
            execution.current_step += 1
            logger.warning(
                "step_failed_tolerated",
                execution_id=execution.id,
                step_id=step.id,
                error=str(error),
            )
            return True

        logger.error(
            "step_failed",
            execution_id=execution.id,
            step_id=step.id,
            step_type=step.kind,
            error=str(error),
        )

        failed = await self.store.transition(
            execution.id,
            _ACTIVE,
            ExecutionStatus.FAILED,
            failure=ExecutionFailure(
                message=str(error),
                error_type=error.error_type,
                step_id=step.id,
                step_type=step.kind,
            ),
        )
        if failed:
            await self._notify_error(
                f"Workflow step failed: {step.name}: {error}",
                execution_id=execution.id,
                step_id=step.id,
            )
        return False

    async def _fire_rules(
        self,
        trigger: str,
        template: WorkflowTemplate,
        execution: WorkflowExecution,
        opportunity: Opportunity,
        step_id: Optional[str] = None,
    ) -> None:
        if self.rules is None or not template.automation_rules:
            return

        outcomes = await self.rules.evaluate(
            trigger, template, execution, opportunity, step_id=step_id
        )
        execution.rule_outcomes.extend(outcomes)

    def _discard_if_terminal(
        self,
        execution: WorkflowExecution,
        step: WorkflowStep,
    ) -> bool:
        if not execution.is_terminal():
            return False
        logger.info(
            "step_outcome_discarded",
            execution_id=execution.id,
            step_id=step.id,
            status=execution.status.value,
        )
        return True

    async def _notify_error(self, message: str, **metadata: Any) -> None:
        try:
            await self.notifications.error(message, **metadata)
        except Exception as e:
            logger.error("notification_failed", message=message, error=str(e))

    @staticmethod
    def _assignee(output: Any) -> Optional[str]:
        if isinstance(output, dict):
            return output.get("assigned_to") or output.get("approver")
        return None

    @staticmethod
    def _current_step_id(
        execution: WorkflowExecution,
        template: WorkflowTemplate,
    ) -> Optional[str]:
        if execution.current_step < len(template.steps):
            return template.steps[execution.current_step].id
        return None
