"""
Dealflow Workflow Engine

Control surface for starting and steering workflow executions.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import structlog

from dealflow.automation.notifications import LogNotificationSink, NotificationSink
from dealflow.automation.processor import WorkflowProcessor
from dealflow.automation.registry import TemplateRegistry
from dealflow.automation.rules.actions import ActionExecutor
from dealflow.automation.rules.engine import AutomationRuleEngine
from dealflow.automation.steps.dispatcher import StepDispatcher
from dealflow.automation.store import ExecutionStore
from dealflow.automation.types import (
    ExecutionFailure,
    ExecutionResult,
    ExecutionStatus,
    Opportunity,
    RuleOutcome,
    WorkflowExecution,
    WorkflowTemplate,
)
from dealflow.core.config import DealflowConfig, get_config

logger = structlog.get_logger(__name__)

_ACTIVE = (ExecutionStatus.RUNNING, ExecutionStatus.PAUSED)


class WorkflowEngine:
    """
    Main workflow execution engine.

    Construct one per application and pass it to whatever needs it; every
    collaborator can be injected.

    Features:
    - Template registration
    - Asynchronous execution start with an awaitable completion signal
    - Pause, resume and cancel with atomic status transitions
    - Automation rules on step and execution completion
    - Bounded concurrency
    """

    def __init__(
        self,
        registry: Optional[TemplateRegistry] = None,
        store: Optional[ExecutionStore] = None,
        dispatcher: Optional[StepDispatcher] = None,
        rules: Optional[AutomationRuleEngine] = None,
        notifications: Optional[NotificationSink] = None,
        config: Optional[DealflowConfig] = None,
    ):
        self.config = config or get_config()
        self.notifications = notifications or LogNotificationSink()

        self.registry = registry or TemplateRegistry(validate=self.config.validate_templates)
        self.store = store or ExecutionStore()
        self.dispatcher = dispatcher or StepDispatcher(
            self.notifications,
            default_approver_role=self.config.default_approver_role,
        )

        if rules is None and self.config.automation_rules_enabled:
            rules = AutomationRuleEngine(ActionExecutor(self.notifications))
        self.rules = rules

        self.processor = WorkflowProcessor(
            self.store,
            self.dispatcher,
            self.notifications,
            self.rules,
        )

        # Processing tasks by execution id
        self._tasks: Dict[str, asyncio.Task] = {}

        # Semaphore for concurrency control
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_executions)

        if self.config.register_builtin_templates:
            from dealflow.automation.templates.builtin import get_builtin_templates

            for template in get_builtin_templates():
                self.registry.register(template)

    # === Templates ===

    def register_template(self, template: WorkflowTemplate) -> str:
        """Register a workflow template."""
        return self.registry.register(template)

    def get_template(self, template_id: str) -> Optional[WorkflowTemplate]:
        """Get a template by ID."""
        return self.registry.get(template_id)

    # === Execution ===

    async def start(
        self,
        template_id: str,
        opportunity: Opportunity,
        actor: str,
    ) -> WorkflowExecution:
        """
        Start a workflow for an opportunity.

        Returns as soon as the execution is recorded; steps run in a
        background task. Use ``wait`` to await the outcome.

        Raises:
            TemplateNotFound: no template registered under ``template_id``
        """
        template = self.registry.require(template_id)

        execution = WorkflowExecution(
            workflow_id=template.id,
            opportunity_id=opportunity.id,
            executed_by=actor,
            results=[ExecutionResult(step_id=step.id) for step in template.steps],
        )
        self.store.add(execution, template, opportunity)

        logger.info(
            "execution_started",
            execution_id=execution.id,
            template_id=template.id,
            opportunity_id=opportunity.id,
            executed_by=actor,
        )

        self._launch(execution.id)

        await self._notify(
            f"Workflow started: {template.name}",
            execution_id=execution.id,
        )
        return execution

    def get(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Get an execution by ID."""
        return self.store.get(execution_id)

    def list_active(self) -> List[WorkflowExecution]:
        """Executions currently running."""
        return self.store.list_active()

    async def wait(
        self,
        execution_id: str,
        timeout: Optional[float] = None,
    ) -> WorkflowExecution:
        """Wait until an execution completes or fails."""
        return await self.store.wait(execution_id, timeout=timeout)

    # === Control ===

    async def pause(self, execution_id: str) -> bool:
        """
        Pause a running execution.

        A step already dispatched finishes; no further step starts.
        """
        paused = await self.store.transition(
            execution_id, ExecutionStatus.RUNNING, ExecutionStatus.PAUSED
        )
        if paused:
            logger.info("execution_paused", execution_id=execution_id)
            await self._notify(
                "Workflow execution paused", execution_id=execution_id
            )
        return paused

    async def resume(
        self,
        execution_id: str,
        opportunity: Optional[Opportunity] = None,
    ) -> bool:
        """
        Resume a paused execution from its stored cursor.

        Args:
            execution_id: Execution to resume
            opportunity: Fresh opportunity snapshot; defaults to the one the
                execution was started with
        """
        resumed = await self.store.transition(
            execution_id, ExecutionStatus.PAUSED, ExecutionStatus.RUNNING
        )
        if not resumed:
            return False

        if opportunity is not None:
            self.store.set_opportunity(execution_id, opportunity)

        # A task still finishing its in-flight step carries on by itself
        task = self._tasks.get(execution_id)
        if task is None or task.done():
            self._launch(execution_id)

        logger.info("execution_resumed", execution_id=execution_id)
        await self._notify(
            "Workflow execution resumed", execution_id=execution_id
        )
        return True

    async def cancel(self, execution_id: str) -> bool:
        """
        Cancel a running execution.

        The execution is marked failed immediately. A step already
        dispatched is not interrupted, but its outcome is discarded.
        """
        execution = self.store.get(execution_id)
        if execution is None:
            return False

        cancelled = await self.store.transition(
            execution_id,
            ExecutionStatus.RUNNING,
            ExecutionStatus.FAILED,
            failure=ExecutionFailure(
                message="Execution cancelled",
                error_type="cancelled",
                step_id=self._current_step_id(execution),
            ),
        )
        if cancelled:
            logger.info("execution_cancelled", execution_id=execution_id)
            await self._notify(
                "Workflow execution cancelled", execution_id=execution_id
            )
        return cancelled

    async def fire_event(
        self,
        execution_id: str,
        trigger: str,
        step_id: Optional[str] = None,
    ) -> List[RuleOutcome]:
        """
        Evaluate the execution's automation rules for an external event.

        Raises:
            ExecutionNotFound: unknown execution id
        """
        execution = self.store.require(execution_id)
        if self.rules is None:
            return []

        outcomes = await self.rules.evaluate(
            trigger,
            self.store.template_for(execution_id),
            execution,
            self.store.opportunity_for(execution_id),
            step_id=step_id,
        )
        execution.rule_outcomes.extend(outcomes)
        return outcomes

    # === Lifecycle ===

    async def shutdown(self) -> None:
        """Cancel all processing tasks and wait for them to exit."""
        logger.info("Shutting down workflow engine", tasks=len(self._tasks))

        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._tasks.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Get engine statistics."""
        status_counts = {
            status.value: len(self.store.list(status)) for status in ExecutionStatus
        }

        return {
            "templates": len(self.registry),
            "total_executions": len(self.store),
            "processing_tasks": len([t for t in self._tasks.values() if not t.done()]),
            "by_status": status_counts,
            "max_concurrent": self.config.max_concurrent_executions,
            "automation_rules_enabled": self.rules is not None,
        }

    # === Internals ===

    def _launch(self, execution_id: str) -> None:
        task = asyncio.create_task(
            self._run(execution_id),
            name=f"workflow-{execution_id}",
        )
        self._tasks[execution_id] = task

    async def _run(self, execution_id: str) -> None:
        try:
            async with self._semaphore:
                await self.processor.run(
                    self.store.require(execution_id),
                    self.store.template_for(execution_id),
                    self.store.opportunity_for(execution_id),
                )
        except asyncio.CancelledError:
            # No-op when the processor already failed it; covers tasks still queued for a slot
            execution = self.store.require(execution_id)
            await self.store.transition(
                execution_id,
                _ACTIVE,
                ExecutionStatus.FAILED,
                failure=ExecutionFailure(
                    message="Execution interrupted",
                    error_type="CancelledError",
                    step_id=self._current_step_id(execution),
                ),
            )
            raise
        finally:
            if self._tasks.get(execution_id) is asyncio.current_task():
                del self._tasks[execution_id]

    async def _notify(self, message: str, **metadata: Any) -> None:
        try:
            await self.notifications.info(message, **metadata)
        except Exception as e:
            logger.error("notification_failed", message=message, error=str(e))

    @staticmethod
    def _current_step_id(execution: WorkflowExecution) -> Optional[str]:
        if execution.current_step < len(execution.results):
            return execution.results[execution.current_step].step_id
        return None
