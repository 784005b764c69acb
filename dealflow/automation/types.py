"""
Dealflow Workflow Types

Core dataclasses for workflow templates and executions.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# === Enums ===


class StepType(str, Enum):
    """Kinds of workflow steps."""
    AUTOMATED = "automated"
    MANUAL = "manual"
    APPROVAL = "approval"


class ResourceType(str, Enum):
    """Kinds of resources attached to a step."""
    DOCUMENT = "document"
    TEMPLATE = "template"
    CHECKLIST = "checklist"
    VIDEO = "video"
    LINK = "link"


class ActionType(str, Enum):
    """Automation action types."""
    FIELD_UPDATE = "field_update"
    NOTIFICATION = "notification"
    INTEGRATION = "integration"
    TASK = "task"
    EMAIL = "email"
    WEBHOOK = "webhook"
    DELAY = "delay"
    CONDITIONAL = "conditional"


class ExecutionStatus(str, Enum):
    """Status of a workflow execution."""
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


class StepStatus(str, Enum):
    """Status of a single step result."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


class RuleTrigger(str, Enum):
    """Trigger events raised by the processor."""
    STEP_COMPLETED = "step_completed"
    ALL_STEPS_COMPLETED = "all_steps_completed"


# === Opportunity ===


@dataclass
class Opportunity:
    """
    The sales opportunity a workflow runs against.

    Owned by the surrounding application; the engine only reads it.
    """
    id: str = ""
    title: str = ""
    value: float = 0.0
    stage: str = "prospect"
    fields: Dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        """Read a named attribute or an arbitrary field."""
        if name in ("id", "title", "value", "stage"):
            return getattr(self, name)
        return self.fields.get(name, default)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "value": self.value,
            "stage": self.stage,
            **self.fields,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Opportunity":
        """Create from dictionary. Unknown keys land in ``fields``."""
        known = {"id", "title", "value", "stage"}
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title", ""),
            value=data.get("value", 0.0),
            stage=data.get("stage", "prospect"),
            fields={k: v for k, v in data.items() if k not in known},
        )


# === Template Definition ===


@dataclass
class WorkflowResource:
    """A resource attached to a step (template text, checklist, document)."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    type: ResourceType = ResourceType.DOCUMENT
    content: Optional[str] = None
    url: Optional[str] = None
    sharepoint_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "content": self.content,
            "url": self.url,
            "sharepoint_path": self.sharepoint_path,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowResource":
        """Create from dictionary."""
        return cls(
            id=data.get("id", str(uuid.uuid4())),
            name=data.get("name", ""),
            type=ResourceType(data.get("type", "document")),
            content=data.get("content"),
            url=data.get("url"),
            sharepoint_path=data.get("sharepoint_path"),
        )


@dataclass
class WorkflowStep:
    """A step in a workflow template."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    description: str = ""

    # Unrecognised kinds stay as plain strings so dispatch can reject them
    type: Union[StepType, str] = StepType.MANUAL

    assigned_role: Optional[str] = None
    due_in_days: float = 0
    dependencies: List[str] = field(default_factory=list)
    completion_criteria: str = ""
    resources: List[WorkflowResource] = field(default_factory=list)

    @property
    def kind(self) -> str:
        """Step kind as a plain string."""
        return self.type.value if isinstance(self.type, StepType) else str(self.type)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.kind,
            "assigned_role": self.assigned_role,
            "due_in_days": self.due_in_days,
            "dependencies": list(self.dependencies),
            "completion_criteria": self.completion_criteria,
            "resources": [r.to_dict() for r in self.resources],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowStep":
        """Create from dictionary."""
        raw_type = data.get("type", "manual")
        try:
            step_type: Union[StepType, str] = StepType(raw_type)
        except ValueError:
            step_type = raw_type
        return cls(
            id=data.get("id", str(uuid.uuid4())),
            name=data.get("name", ""),
            description=data.get("description", ""),
            type=step_type,
            assigned_role=data.get("assigned_role"),
            due_in_days=data.get("due_in_days", 0),
            dependencies=list(data.get("dependencies", [])),
            completion_criteria=data.get("completion_criteria", ""),
            resources=[WorkflowResource.from_dict(r) for r in data.get("resources", [])],
        )


@dataclass
class AutomationAction:
    """An action applied when a rule fires."""
    type: ActionType = ActionType.NOTIFICATION
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {"type": self.type.value, "parameters": dict(self.parameters)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AutomationAction":
        """Create from dictionary."""
        return cls(
            type=ActionType(data.get("type", "notification")),
            parameters=dict(data.get("parameters", {})),
        )


@dataclass
class AutomationRule:
    """A trigger/condition/action rule attached to a template."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    trigger: str = RuleTrigger.ALL_STEPS_COMPLETED.value
    conditions: List[str] = field(default_factory=list)
    actions: List[AutomationAction] = field(default_factory=list)
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "trigger": self.trigger,
            "conditions": list(self.conditions),
            "actions": [a.to_dict() for a in self.actions],
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AutomationRule":
        """Create from dictionary."""
        return cls(
            id=data.get("id", str(uuid.uuid4())),
            trigger=data.get("trigger", RuleTrigger.ALL_STEPS_COMPLETED.value),
            conditions=list(data.get("conditions", [])),
            actions=[AutomationAction.from_dict(a) for a in data.get("actions", [])],
            is_active=data.get("is_active", True),
        )


@dataclass
class WorkflowTemplate:
    """A reusable workflow definition for a pipeline stage."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    description: str = ""
    stage: str = "prospect"

    steps: List[WorkflowStep] = field(default_factory=list)
    automation_rules: List[AutomationRule] = field(default_factory=list)

    created_by: str = "system"
    created_at: datetime = field(default_factory=utcnow)
    is_active: bool = True

    def get_step(self, step_id: str) -> Optional[WorkflowStep]:
        """Get a step by ID."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def step_index(self, step_id: str) -> Optional[int]:
        """Position of a step in the template, if present."""
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index
        return None

    def validate(self) -> List[str]:
        """Validate the template structure. Returns list of errors."""
        errors = []

        seen: Dict[str, int] = {}
        for index, step in enumerate(self.steps):
            if step.id in seen:
                errors.append(f"Duplicate step id: {step.id}")
            else:
                seen[step.id] = index

        for index, step in enumerate(self.steps):
            for dep_id in step.dependencies:
                dep_index = seen.get(dep_id)
                if dep_index is None:
                    errors.append(f"Step {step.id} depends on unknown step: {dep_id}")
                elif dep_index >= index:
                    errors.append(
                        f"Step {step.id} depends on {dep_id}, which does not precede it"
                    )

        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "stage": self.stage,
            "steps": [s.to_dict() for s in self.steps],
            "automation_rules": [r.to_dict() for r in self.automation_rules],
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowTemplate":
        """Create from dictionary."""
        template = cls(
            id=data.get("id", str(uuid.uuid4())),
            name=data.get("name", ""),
            description=data.get("description", ""),
            stage=data.get("stage", "prospect"),
            steps=[WorkflowStep.from_dict(s) for s in data.get("steps", [])],
            automation_rules=[
                AutomationRule.from_dict(r) for r in data.get("automation_rules", [])
            ],
            created_by=data.get("created_by", "system"),
            is_active=data.get("is_active", True),
        )
        if data.get("created_at"):
            template.created_at = _parse_datetime(data["created_at"])
        return template


# === Execution ===


@dataclass
class ExecutionFailure:
    """Why an execution failed."""
    message: str = ""
    error_type: str = "Exception"
    step_id: Optional[str] = None
    step_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "message": self.message,
            "error_type": self.error_type,
            "step_id": self.step_id,
            "step_type": self.step_type,
        }


@dataclass
class ExecutionResult:
    """Per-step record inside an execution."""
    step_id: str = ""
    status: StepStatus = StepStatus.PENDING
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    output: Any = None
    error: Optional[str] = None
    assigned_to: Optional[str] = None

    def start(self) -> None:
        """Mark step as in progress."""
        self.status = StepStatus.IN_PROGRESS
        self.started_at = utcnow()

    def complete(self, output: Any = None) -> None:
        """Mark step as completed."""
        self.status = StepStatus.COMPLETED
        self.output = output
        self.completed_at = utcnow()

    def skip(self, output: Any = None) -> None:
        """Mark step as skipped."""
        self.status = StepStatus.SKIPPED
        self.output = output
        self.completed_at = utcnow()

    def fail(self, error: str) -> None:
        """Mark step as failed."""
        self.status = StepStatus.FAILED
        self.error = error
        self.completed_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "step_id": self.step_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": _format_datetime(self.completed_at),
            "output": self.output,
            "error": self.error,
            "assigned_to": self.assigned_to,
        }


@dataclass
class RuleOutcome:
    """Record of one automation rule evaluation."""
    rule_id: str = ""
    trigger: str = ""
    step_id: Optional[str] = None
    fired: bool = False
    actions: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None
    evaluated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "rule_id": self.rule_id,
            "trigger": self.trigger,
            "step_id": self.step_id,
            "fired": self.fired,
            "actions": self.actions,
            "error": self.error,
            "evaluated_at": self.evaluated_at.isoformat(),
        }


@dataclass
class WorkflowExecution:
    """One live run of a template against a single opportunity."""
    id: str = field(default_factory=lambda: f"exec_{uuid.uuid4().hex[:12]}")
    workflow_id: str = ""
    opportunity_id: str = ""

    status: ExecutionStatus = ExecutionStatus.RUNNING
    current_step: int = 0

    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    executed_by: str = ""

    results: List[ExecutionResult] = field(default_factory=list)

    failure: Optional[ExecutionFailure] = None
    rule_outcomes: List[RuleOutcome] = field(default_factory=list)
    completion_rules_fired: bool = False

    def is_terminal(self) -> bool:
        """Check if execution is in a terminal state."""
        return self.status.is_terminal

    def get_result(self, step_id: str) -> Optional[ExecutionResult]:
        """Get the result for a step."""
        for result in self.results:
            if result.step_id == step_id:
                return result
        return None

    def complete(self) -> None:
        """Mark execution as completed."""
        self.status = ExecutionStatus.COMPLETED
        self.completed_at = utcnow()

    def fail(self, failure: ExecutionFailure) -> None:
        """Mark execution as failed."""
        self.status = ExecutionStatus.FAILED
        self.failure = failure
        self.completed_at = utcnow()

    @property
    def duration_ms(self) -> float:
        if not self.completed_at:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds() * 1000

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "opportunity_id": self.opportunity_id,
            "status": self.status.value,
            "current_step": self.current_step,
            "started_at": self.started_at.isoformat(),
            "completed_at": _format_datetime(self.completed_at),
            "executed_by": self.executed_by,
            "results": [r.to_dict() for r in self.results],
            "failure": self.failure.to_dict() if self.failure else None,
            "rule_outcomes": [o.to_dict() for o in self.rule_outcomes],
        }
