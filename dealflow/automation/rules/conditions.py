"""
Dealflow Rule Conditions

Evaluates the string conditions attached to automation rules.

Grammar:
- ``step_id:<id>``             the event concerns step <id>
- ``approval_received``        every approval step has completed
- ``stage:<stage>``            opportunity stage equals <stage>
- ``value_above:<n>``          opportunity value > n
- ``value_below:<n>``          opportunity value < n
- ``step_status:<id>=<status>`` step <id> has result status <status>
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

import structlog

from dealflow.automation.types import (
    Opportunity,
    StepStatus,
    StepType,
    WorkflowExecution,
    WorkflowTemplate,
)

logger = structlog.get_logger(__name__)


@dataclass
class RuleContext:
    """What a rule sees when it is evaluated."""
    trigger: str
    template: WorkflowTemplate
    execution: WorkflowExecution
    opportunity: Opportunity
    step_id: Optional[str] = None


ConditionCheck = Callable[[str, RuleContext], bool]


class ConditionEvaluator:
    """
    Evaluates rule condition strings.

    Unknown conditions, and conditions whose check raises, evaluate to False
    so a misspelt or broken rule never fires.
    """

    def __init__(self):
        self._checks: Dict[str, ConditionCheck] = {
            "step_id": _check_step_id,
            "approval_received": _check_approval_received,
            "stage": _check_stage,
            "value_above": _check_value_above,
            "value_below": _check_value_below,
            "step_status": _check_step_status,
        }

    def evaluate(self, condition: str, context: RuleContext) -> bool:
        """Evaluate a single condition string."""
        name, _, argument = condition.partition(":")
        check = self._checks.get(name.strip())

        if check is None:
            logger.warning(
                "unknown_condition",
                condition=condition,
                execution_id=context.execution.id,
            )
            return False

        try:
            result = check(argument.strip(), context)
        except Exception as e:
            logger.error(
                "condition_error",
                condition=condition,
                execution_id=context.execution.id,
                error=str(e),
            )
            return False

        logger.debug("condition_evaluated", condition=condition, result=result)
        return result

    def evaluate_all(self, conditions: list, context: RuleContext) -> bool:
        """True when every condition holds (vacuously true when empty)."""
        return all(self.evaluate(c, context) for c in conditions)

    def register(self, name: str, check: ConditionCheck) -> None:
        """Register a custom condition."""
        self._checks[name] = check


# === Built-in Checks ===


def _check_step_id(argument: str, context: RuleContext) -> bool:
    return context.step_id == argument


def _check_approval_received(argument: str, context: RuleContext) -> bool:
    approval_steps = [
        s for s in context.template.steps if s.kind == StepType.APPROVAL.value
    ]
    if not approval_steps:
        return False
    for step in approval_steps:
        result = context.execution.get_result(step.id)
        if result is None or result.status != StepStatus.COMPLETED:
            return False
    return True


def _check_stage(argument: str, context: RuleContext) -> bool:
    return context.opportunity.stage == argument


def _check_value_above(argument: str, context: RuleContext) -> bool:
    return float(context.opportunity.value) > float(argument)


def _check_value_below(argument: str, context: RuleContext) -> bool:
    return float(context.opportunity.value) < float(argument)


def _check_step_status(argument: str, context: RuleContext) -> bool:
    step_id, sep, status = argument.partition("=")
    if not sep:
        raise ValueError(f"step_status expects <step_id>=<status>, got {argument!r}")
    result = context.execution.get_result(step_id.strip())
    return result is not None and result.status == StepStatus(status.strip())
