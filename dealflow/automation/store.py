"""
Dealflow Execution Store

Owns live workflow executions and their status transitions.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional, Union

import structlog

from dealflow.automation.errors import ExecutionNotFound
from dealflow.automation.types import (
    ExecutionFailure,
    ExecutionStatus,
    Opportunity,
    WorkflowExecution,
    WorkflowTemplate,
)

logger = structlog.get_logger(__name__)

StatusSpec = Union[ExecutionStatus, Iterable[ExecutionStatus]]


class ExecutionStore:
    """
    In-memory store of workflow executions.

    Each execution is kept with the template and opportunity snapshot it was
    started with, so a resumed run sees the same steps it began with. Status
    changes from outside the processing task go through ``transition``, a
    check-and-set under the store lock.
    """

    def __init__(self):
        self._executions: Dict[str, WorkflowExecution] = {}
        self._templates: Dict[str, WorkflowTemplate] = {}
        self._opportunities: Dict[str, Opportunity] = {}
        self._finished: Dict[str, asyncio.Event] = {}
        self._lock = asyncio.Lock()

    def add(
        self,
        execution: WorkflowExecution,
        template: WorkflowTemplate,
        opportunity: Opportunity,
    ) -> None:
        """Store a new execution."""
        self._executions[execution.id] = execution
        self._templates[execution.id] = template
        self._opportunities[execution.id] = opportunity
        self._finished[execution.id] = asyncio.Event()
        if execution.is_terminal():
            self._finished[execution.id].set()

    def get(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Get an execution by ID."""
        return self._executions.get(execution_id)

    def require(self, execution_id: str) -> WorkflowExecution:
        """Get an execution by ID or raise ExecutionNotFound."""
        execution = self._executions.get(execution_id)
        if execution is None:
            raise ExecutionNotFound(execution_id)
        return execution

    def template_for(self, execution_id: str) -> WorkflowTemplate:
        """Template snapshot the execution was started from."""
        self.require(execution_id)
        return self._templates[execution_id]

    def opportunity_for(self, execution_id: str) -> Opportunity:
        """Opportunity snapshot used by the execution."""
        self.require(execution_id)
        return self._opportunities[execution_id]

    def set_opportunity(self, execution_id: str, opportunity: Opportunity) -> None:
        """Replace the opportunity snapshot (e.g. refreshed before resume)."""
        self.require(execution_id)
        self._opportunities[execution_id] = opportunity

    def list(self, status: Optional[ExecutionStatus] = None) -> List[WorkflowExecution]:
        """List executions, oldest first."""
        executions = list(self._executions.values())
        if status:
            executions = [e for e in executions if e.status == status]
        return executions

    def list_active(self) -> List[WorkflowExecution]:
        """Executions currently running."""
        return self.list(ExecutionStatus.RUNNING)

    async def transition(
        self,
        execution_id: str,
        expected: StatusSpec,
        new: ExecutionStatus,
        failure: Optional[ExecutionFailure] = None,
    ) -> bool:
        """
        Atomically move an execution from an expected status to a new one.

        Returns False (and changes nothing) when the execution is unknown or
        not in one of the expected statuses.
        """
        allowed = {expected} if isinstance(expected, ExecutionStatus) else set(expected)

        async with self._lock:
            execution = self._executions.get(execution_id)
            if execution is None or execution.status not in allowed:
                return False

            previous = execution.status
            if new == ExecutionStatus.FAILED:
                execution.fail(failure or ExecutionFailure(message="Execution failed"))
            elif new == ExecutionStatus.COMPLETED:
                execution.complete()
            else:
                execution.status = new

            if execution.is_terminal():
                self._finished[execution_id].set()

        logger.debug(
            "execution_transition",
            execution_id=execution_id,
            from_status=previous.value,
            to_status=new.value,
        )
        return True

    async def wait(
        self,
        execution_id: str,
        timeout: Optional[float] = None,
    ) -> WorkflowExecution:
        """
        Wait until the execution reaches completed or failed.

        Raises:
            ExecutionNotFound: unknown execution id
            asyncio.TimeoutError: the timeout elapsed first
        """
        execution = self.require(execution_id)
        await asyncio.wait_for(self._finished[execution_id].wait(), timeout=timeout)
        return execution

    def __len__(self) -> int:
        return len(self._executions)
