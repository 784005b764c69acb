"""
Dealflow Workflow Errors
"""

from __future__ import annotations

from typing import List, Optional


class WorkflowError(Exception):
    """Base class for workflow engine errors."""


class TemplateNotFound(WorkflowError, LookupError):
    """No template is registered under the requested id."""

    def __init__(self, template_id: str):
        super().__init__(f"Workflow template {template_id} not found")
        self.template_id = template_id


class InvalidTemplateError(WorkflowError, ValueError):
    """A template failed structural validation at registration."""

    def __init__(self, template_id: str, errors: List[str]):
        super().__init__(f"Invalid workflow template {template_id}: {errors}")
        self.template_id = template_id
        self.errors = errors


class StepExecutionError(WorkflowError):
    """A step's dispatch logic failed."""

    def __init__(
        self,
        message: str,
        step_id: Optional[str] = None,
        step_type: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.step_id = step_id
        self.step_type = step_type
        self.cause = cause

    @property
    def error_type(self) -> str:
        if self.cause is not None:
            return type(self.cause).__name__
        return type(self).__name__


class UnknownStepKind(StepExecutionError):
    """The step's kind has no registered handler."""

    def __init__(self, step_id: str, step_type: str):
        super().__init__(
            f"Unknown step type: {step_type}",
            step_id=step_id,
            step_type=step_type,
        )


class ActionError(WorkflowError):
    """An automation rule action could not be applied."""

    def __init__(self, message: str, action_type: Optional[str] = None):
        super().__init__(message)
        self.action_type = action_type


class ExecutionNotFound(WorkflowError, LookupError):
    """No execution is stored under the requested id."""

    def __init__(self, execution_id: str):
        super().__init__(f"Workflow execution {execution_id} not found")
        self.execution_id = execution_id
