"""
Dealflow Workflow Automation

Runs sales-process workflow templates against opportunities: steps are
dispatched in order, gated by their dependencies, and template automation
rules react to execution events.

Core Features:
- Template registry with structural validation
- Automated, manual and approval steps
- Pause, resume and cancel of running executions
- Trigger/condition/action automation rules
- Built-in templates for common sales processes
"""

from dealflow.automation.types import (
    # Enums
    StepType,
    ResourceType,
    ActionType,
    ExecutionStatus,
    StepStatus,
    RuleTrigger,
    # Definitions
    Opportunity,
    WorkflowResource,
    WorkflowStep,
    AutomationAction,
    AutomationRule,
    WorkflowTemplate,
    # Execution
    ExecutionFailure,
    ExecutionResult,
    RuleOutcome,
    WorkflowExecution,
)
from dealflow.automation.errors import (
    WorkflowError,
    TemplateNotFound,
    InvalidTemplateError,
    StepExecutionError,
    UnknownStepKind,
    ActionError,
    ExecutionNotFound,
)
from dealflow.automation.engine import WorkflowEngine
from dealflow.automation.registry import TemplateRegistry
from dealflow.automation.store import ExecutionStore
from dealflow.automation.processor import WorkflowProcessor
from dealflow.automation.dependencies import dependencies_satisfied, unmet_dependencies
from dealflow.automation.notifications import (
    NotificationSink,
    LogNotificationSink,
    CollectingNotificationSink,
)
from dealflow.automation.steps import StepDispatcher, BaseStepHandler
from dealflow.automation.rules import (
    AutomationRuleEngine,
    ActionExecutor,
    ConditionEvaluator,
    FieldWriter,
    IntegrationGateway,
)
from dealflow.automation.templates import get_builtin_templates

__all__ = [
    # Enums
    "StepType",
    "ResourceType",
    "ActionType",
    "ExecutionStatus",
    "StepStatus",
    "RuleTrigger",
    # Definitions
    "Opportunity",
    "WorkflowResource",
    "WorkflowStep",
    "AutomationAction",
    "AutomationRule",
    "WorkflowTemplate",
    # Execution
    "ExecutionFailure",
    "ExecutionResult",
    "RuleOutcome",
    "WorkflowExecution",
    # Errors
    "WorkflowError",
    "TemplateNotFound",
    "InvalidTemplateError",
    "StepExecutionError",
    "UnknownStepKind",
    "ActionError",
    "ExecutionNotFound",
    # Components
    "WorkflowEngine",
    "TemplateRegistry",
    "ExecutionStore",
    "WorkflowProcessor",
    "StepDispatcher",
    "BaseStepHandler",
    "AutomationRuleEngine",
    "ActionExecutor",
    "ConditionEvaluator",
    "FieldWriter",
    "IntegrationGateway",
    "NotificationSink",
    "LogNotificationSink",
    "CollectingNotificationSink",
    "dependencies_satisfied",
    "unmet_dependencies",
    # Templates
    "get_builtin_templates",
]
