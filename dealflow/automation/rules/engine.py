"""
Dealflow Automation Rule Engine

Reacts to execution events with the rules attached to a template.
"""

from __future__ import annotations

from typing import List, Optional

import structlog

from dealflow.automation.errors import ActionError
from dealflow.automation.rules.actions import ActionExecutor
from dealflow.automation.rules.conditions import ConditionEvaluator, RuleContext
from dealflow.automation.types import (
    Opportunity,
    RuleOutcome,
    WorkflowExecution,
    WorkflowTemplate,
)

logger = structlog.get_logger(__name__)


class AutomationRuleEngine:
    """
    Evaluates automation rules against execution events.

    For every active rule whose trigger matches the event, all conditions
    must hold before its actions run, in order. A failing action is recorded
    on the outcome and skips the rest of that rule's actions; other rules
    still run.
    """

    def __init__(
        self,
        executor: Optional[ActionExecutor] = None,
        evaluator: Optional[ConditionEvaluator] = None,
    ):
        self.executor = executor or ActionExecutor()
        self.evaluator = evaluator or ConditionEvaluator()

    async def evaluate(
        self,
        trigger: str,
        template: WorkflowTemplate,
        execution: WorkflowExecution,
        opportunity: Opportunity,
        step_id: Optional[str] = None,
    ) -> List[RuleOutcome]:
        """
        Evaluate the template's rules for one event.

        Args:
            trigger: Event name (``step_completed``, ``all_steps_completed``, ...)
            template: Template whose rules apply
            execution: Execution the event belongs to
            opportunity: Opportunity snapshot of the execution
            step_id: Step the event concerns, if any

        Returns:
            One outcome per rule whose trigger matched
        """
        context = RuleContext(
            trigger=trigger,
            template=template,
            execution=execution,
            opportunity=opportunity,
            step_id=step_id,
        )

        outcomes: List[RuleOutcome] = []

        for rule in template.automation_rules:
            if not rule.is_active or rule.trigger != trigger:
                continue

            outcome = RuleOutcome(rule_id=rule.id, trigger=trigger, step_id=step_id)
            outcomes.append(outcome)

            if not self.evaluator.evaluate_all(rule.conditions, context):
                logger.debug(
                    "rule_conditions_unmet",
                    rule_id=rule.id,
                    execution_id=execution.id,
                )
                continue

            outcome.fired = True

            for action in rule.actions:
                try:
                    result = await self.executor.execute(action, context)
                except ActionError as e:
                    outcome.actions.append(
                        {"type": action.type.value, "success": False, "error": str(e)}
                    )
                    outcome.error = str(e)
                    logger.error(
                        "rule_action_failed",
                        rule_id=rule.id,
                        action_type=action.type.value,
                        execution_id=execution.id,
                        error=str(e),
                    )
                    break

                outcome.actions.append(
                    {"type": action.type.value, "success": True, "result": result}
                )

            logger.info(
                "rule_fired",
                rule_id=rule.id,
                trigger=trigger,
                execution_id=execution.id,
                actions=len(outcome.actions),
                error=outcome.error,
            )

        return outcomes
