"""
Tests for automation rules: conditions, actions and the rule engine.
"""

import asyncio
from typing import Any, Dict, List, Tuple

import pytest

from dealflow.automation.engine import WorkflowEngine
from dealflow.automation.errors import ActionError
from dealflow.automation.notifications import CollectingNotificationSink
from dealflow.automation.rules import (
    ActionExecutor,
    AutomationRuleEngine,
    ConditionEvaluator,
    FieldWriter,
    IntegrationGateway,
    RuleContext,
)
from dealflow.automation.types import (
    ActionType,
    AutomationAction,
    AutomationRule,
    ExecutionResult,
    ExecutionStatus,
    Opportunity,
    StepStatus,
    StepType,
    WorkflowExecution,
)
from dealflow.core.config import DealflowConfig

from conftest import make_step, make_template


class RecordingFieldWriter(FieldWriter):
    def __init__(self):
        self.updates: List[Tuple[str, str, Any]] = []

    async def update_field(self, opportunity_id: str, field: str, value: Any) -> None:
        self.updates.append((opportunity_id, field, value))


class BlockingFieldWriter(RecordingFieldWriter):
    """Records updates, blocking each one until released."""

    def __init__(self):
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def update_field(self, opportunity_id: str, field: str, value: Any) -> None:
        self.entered.set()
        await self.release.wait()
        await super().update_field(opportunity_id, field, value)


class RecordingGateway(IntegrationGateway):
    def __init__(self):
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []

    async def invoke(self, service, action, parameters):
        self.calls.append((service, action, parameters))
        return {"envelope_id": "env-1"}


def _context(
    step_id=None,
    statuses=None,
    opportunity=None,
    steps=None,
) -> RuleContext:
    template = make_template(
        "t",
        steps
        or [
            make_step("draft", StepType.MANUAL),
            make_step("review", StepType.APPROVAL, dependencies=["draft"]),
        ],
    )
    statuses = statuses or {}
    execution = WorkflowExecution(
        workflow_id="t",
        results=[
            ExecutionResult(step_id=s.id, status=statuses.get(s.id, StepStatus.PENDING))
            for s in template.steps
        ],
    )
    return RuleContext(
        trigger="step_completed",
        template=template,
        execution=execution,
        opportunity=opportunity or Opportunity(id="o1", title="Acme", value=60000.0, stage="engage"),
        step_id=step_id,
    )


class TestConditionEvaluator:
    """Tests for rule condition strings."""

    def test_step_id(self):
        """step_id matches the step the event concerns."""
        evaluator = ConditionEvaluator()

        assert evaluator.evaluate("step_id:review", _context(step_id="review"))
        assert not evaluator.evaluate("step_id:review", _context(step_id="draft"))
        assert not evaluator.evaluate("step_id:review", _context())

    def test_approval_received(self):
        """approval_received needs every approval step completed."""
        evaluator = ConditionEvaluator()

        done = _context(statuses={"review": StepStatus.COMPLETED})
        pending = _context(statuses={"review": StepStatus.FAILED})
        no_approvals = _context(steps=[make_step("a")], statuses={"a": StepStatus.COMPLETED})

        assert evaluator.evaluate("approval_received", done)
        assert not evaluator.evaluate("approval_received", pending)
        assert not evaluator.evaluate("approval_received", no_approvals)

    def test_stage_and_value(self):
        """Opportunity stage and value comparisons."""
        evaluator = ConditionEvaluator()
        context = _context()

        assert evaluator.evaluate("stage:engage", context)
        assert not evaluator.evaluate("stage:prospect", context)
        assert evaluator.evaluate("value_above:50000", context)
        assert not evaluator.evaluate("value_above:60000", context)
        assert evaluator.evaluate("value_below:100000", context)
        assert not evaluator.evaluate("value_below:1000", context)

    def test_step_status(self):
        """step_status compares a step's result status."""
        evaluator = ConditionEvaluator()
        context = _context(statuses={"draft": StepStatus.SKIPPED})

        assert evaluator.evaluate("step_status:draft=skipped", context)
        assert not evaluator.evaluate("step_status:draft=completed", context)
        assert not evaluator.evaluate("step_status:ghost=completed", context)

    def test_malformed_and_unknown_conditions_are_false(self):
        """Unknown or malformed conditions never hold."""
        evaluator = ConditionEvaluator()
        context = _context()

        assert not evaluator.evaluate("usage_below_30_percent", context)
        assert not evaluator.evaluate("value_above:lots", context)
        assert not evaluator.evaluate("step_status:draft", context)
        assert not evaluator.evaluate("step_status:draft=bogus", context)

    def test_evaluate_all(self):
        """All conditions must hold; an empty list holds."""
        evaluator = ConditionEvaluator()
        context = _context(step_id="review")

        assert evaluator.evaluate_all([], context)
        assert evaluator.evaluate_all(["step_id:review", "stage:engage"], context)
        assert not evaluator.evaluate_all(["step_id:review", "stage:keep"], context)

    def test_register_custom_condition(self):
        """Custom conditions can be registered."""
        evaluator = ConditionEvaluator()
        evaluator.register("title_contains", lambda arg, ctx: arg in ctx.opportunity.title)

        assert evaluator.evaluate("title_contains:Ac", _context())
        assert not evaluator.evaluate("title_contains:Zeta", _context())

    def test_raising_custom_condition_is_false(self):
        """A custom check that raises evaluates to False."""

        def explode(argument, context):
            raise RuntimeError("condition backend down")

        evaluator = ConditionEvaluator()
        evaluator.register("remote", explode)

        assert not evaluator.evaluate("remote:x", _context())
        assert not evaluator.evaluate_all(["stage:engage", "remote:x"], _context())



class TestActionExecutor:
    """Tests for automation actions."""

    @pytest.mark.asyncio
    async def test_field_update(self):
        """field_update goes through the field writer."""
        writer = RecordingFieldWriter()
        executor = ActionExecutor(CollectingNotificationSink(), field_writer=writer)

        result = await executor.execute(
            AutomationAction(
                type=ActionType.FIELD_UPDATE,
                parameters={"field": "stage", "value": "engage"},
            ),
            _context(),
        )

        assert result == {"field": "stage", "value": "engage"}
        assert writer.updates == [("o1", "stage", "engage")]

    @pytest.mark.asyncio
    async def test_notification_renders_message(self):
        """Notification messages are rendered against the opportunity."""
        notifications = CollectingNotificationSink()
        executor = ActionExecutor(notifications)

        await executor.execute(
            AutomationAction(
                type=ActionType.NOTIFICATION,
                parameters={
                    "message": "Opportunity {opportunity.title} moved to Engage stage",
                    "recipients": ["rep", "manager"],
                    "priority": "high",
                },
            ),
            _context(),
        )

        sent = notifications.notifications[0]
        assert sent.message == "Opportunity Acme moved to Engage stage"
        assert sent.recipients == ["rep", "manager"]
        assert sent.metadata["priority"] == "high"

    @pytest.mark.asyncio
    async def test_integration(self):
        """Integration actions call the gateway with the remaining parameters."""
        gateway = RecordingGateway()
        executor = ActionExecutor(CollectingNotificationSink(), integrations=gateway)

        result = await executor.execute(
            AutomationAction(
                type=ActionType.INTEGRATION,
                parameters={"service": "docusign", "action": "send_for_signature", "document": "contract"},
            ),
            _context(),
        )

        assert gateway.calls == [
            ("docusign", "send_for_signature", {"document": "contract", "opportunity_id": "o1"}),
        ]
        assert result["response"] == {"envelope_id": "env-1"}

    @pytest.mark.asyncio
    async def test_task(self):
        """Task actions announce a follow-up task."""
        notifications = CollectingNotificationSink()
        executor = ActionExecutor(notifications)

        task = await executor.execute(
            AutomationAction(
                type=ActionType.TASK,
                parameters={"title": "Follow up with {opportunity.title}", "assignee": "rep"},
            ),
            _context(),
        )

        assert task["title"] == "Follow up with Acme"
        assert task["assigned_to"] == "rep"
        assert notifications.messages == ["Task created: Follow up with Acme"]

    @pytest.mark.asyncio
    async def test_unsupported_type(self):
        """Action types without a handler raise ActionError."""
        executor = ActionExecutor(CollectingNotificationSink())

        with pytest.raises(ActionError) as exc_info:
            await executor.execute(AutomationAction(type=ActionType.WEBHOOK), _context())

        assert exc_info.value.action_type == "webhook"

    @pytest.mark.asyncio
    async def test_missing_parameters(self):
        """Required parameters are checked."""
        executor = ActionExecutor(CollectingNotificationSink())

        with pytest.raises(ActionError, match="missing parameters"):
            await executor.execute(
                AutomationAction(type=ActionType.FIELD_UPDATE, parameters={"field": "stage"}),
                _context(),
            )


class TestAutomationRuleEngine:
    """Tests for rule evaluation."""

    @pytest.mark.asyncio
    async def test_matching_rule_fires_actions_in_order(self):
        """Actions of a matching rule run in order."""
        notifications = CollectingNotificationSink()
        rules = AutomationRuleEngine(ActionExecutor(notifications))
        context = _context(step_id="review")
        context.template.automation_rules = [
            AutomationRule(
                id="r1",
                trigger="step_completed",
                conditions=["step_id:review"],
                actions=[
                    AutomationAction(type=ActionType.NOTIFICATION, parameters={"message": "one"}),
                    AutomationAction(type=ActionType.NOTIFICATION, parameters={"message": "two"}),
                ],
            ),
            AutomationRule(id="r2", trigger="all_steps_completed"),
            AutomationRule(id="r3", trigger="step_completed", is_active=False),
        ]

        outcomes = await rules.evaluate(
            "step_completed", context.template, context.execution, context.opportunity, step_id="review"
        )

        assert [o.rule_id for o in outcomes] == ["r1"]
        assert outcomes[0].fired is True
        assert [a["success"] for a in outcomes[0].actions] == [True, True]
        assert notifications.messages == ["one", "two"]

    @pytest.mark.asyncio
    async def test_action_failure_is_recorded(self):
        """A failing action stops its rule; other rules still run."""
        notifications = CollectingNotificationSink()
        rules = AutomationRuleEngine(ActionExecutor(notifications))
        context = _context()
        context.template.automation_rules = [
            AutomationRule(
                id="bad",
                trigger="all_steps_completed",
                actions=[
                    AutomationAction(type=ActionType.EMAIL, parameters={"template": "x"}),
                    AutomationAction(type=ActionType.NOTIFICATION, parameters={"message": "skipped"}),
                ],
            ),
            AutomationRule(
                id="good",
                trigger="all_steps_completed",
                actions=[AutomationAction(type=ActionType.NOTIFICATION, parameters={"message": "ran"})],
            ),
        ]

        outcomes = await rules.evaluate(
            "all_steps_completed", context.template, context.execution, context.opportunity
        )

        bad, good = outcomes
        assert bad.fired is True
        assert bad.error is not None
        assert bad.actions == [{"type": "email", "success": False, "error": bad.error}]
        assert good.error is None
        assert notifications.messages == ["ran"]

    @pytest.mark.asyncio
    async def test_unmet_conditions(self):
        """Rules whose conditions fail are recorded as not fired."""
        rules = AutomationRuleEngine(ActionExecutor(CollectingNotificationSink()))
        context = _context(step_id="draft")
        context.template.automation_rules = [
            AutomationRule(
                id="r1",
                trigger="step_completed",
                conditions=["step_id:review"],
                actions=[AutomationAction(type=ActionType.NOTIFICATION, parameters={"message": "x"})],
            ),
        ]

        outcomes = await rules.evaluate(
            "step_completed", context.template, context.execution, context.opportunity, step_id="draft"
        )

        assert outcomes[0].fired is False
        assert outcomes[0].actions == []


class TestRulesInEngine:
    """Tests for rules wired into execution processing."""

    def _engine(self, notifications, writer, **config) -> WorkflowEngine:
        return WorkflowEngine(
            notifications=notifications,
            rules=AutomationRuleEngine(ActionExecutor(notifications, field_writer=writer)),
            config=DealflowConfig(**config),
        )

    def _template(self):
        return make_template(
            "t",
            [make_step("draft", StepType.MANUAL), make_step("review", StepType.APPROVAL, dependencies=["draft"])],
            automation_rules=[
                AutomationRule(
                    id="on-review",
                    trigger="step_completed",
                    conditions=["step_id:review"],
                    actions=[
                        AutomationAction(
                            type=ActionType.FIELD_UPDATE,
                            parameters={"field": "reviewed", "value": True},
                        ),
                    ],
                ),
                AutomationRule(
                    id="stage-progression",
                    trigger="all_steps_completed",
                    conditions=["approval_received"],
                    actions=[
                        AutomationAction(
                            type=ActionType.FIELD_UPDATE,
                            parameters={"field": "stage", "value": "engage"},
                        ),
                    ],
                ),
            ],
        )

    @pytest.mark.asyncio
    async def test_rules_fire_on_step_and_completion(self, opportunity):
        """step_completed and all_steps_completed rules fire during processing."""
        notifications = CollectingNotificationSink()
        writer = RecordingFieldWriter()
        engine = self._engine(notifications, writer)
        engine.register_template(self._template())

        execution = await engine.start("t", opportunity, "alice")
        await engine.wait(execution.id, timeout=1)

        assert execution.status == ExecutionStatus.COMPLETED
        assert writer.updates == [
            (opportunity.id, "reviewed", True),
            (opportunity.id, "stage", "engage"),
        ]
        fired = [o.rule_id for o in execution.rule_outcomes if o.fired]
        assert fired == ["on-review", "stage-progression"]

    @pytest.mark.asyncio
    async def test_completion_rules_fire_once_across_pause(self, opportunity, notifications):
        """Pausing while completion rules run does not fire them again on resume."""
        writer = BlockingFieldWriter()
        engine = self._engine(notifications, writer)
        engine.register_template(
            make_template(
                "t",
                [make_step("a")],
                automation_rules=[
                    AutomationRule(
                        id="stage-progression",
                        trigger="all_steps_completed",
                        actions=[
                            AutomationAction(
                                type=ActionType.FIELD_UPDATE,
                                parameters={"field": "stage", "value": "engage"},
                            ),
                        ],
                    ),
                ],
            )
        )

        execution = await engine.start("t", opportunity, "alice")
        await writer.entered.wait()

        assert await engine.pause(execution.id)
        writer.release.set()
        task = engine._tasks.get(execution.id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

        assert execution.status == ExecutionStatus.PAUSED
        assert writer.updates == [(opportunity.id, "stage", "engage")]

        assert await engine.resume(execution.id)
        await engine.wait(execution.id, timeout=1)

        assert execution.status == ExecutionStatus.COMPLETED
        assert writer.updates == [(opportunity.id, "stage", "engage")]
        assert [o.rule_id for o in execution.rule_outcomes] == ["stage-progression"]

    @pytest.mark.asyncio
    async def test_failed_action_does_not_fail_execution(self, opportunity, notifications):
        """Action failures are recorded without changing execution status."""
        engine = WorkflowEngine(notifications=notifications, config=DealflowConfig())
        engine.register_template(
            make_template(
                "t",
                [make_step("a")],
                automation_rules=[
                    AutomationRule(
                        id="mail",
                        trigger="all_steps_completed",
                        actions=[AutomationAction(type=ActionType.EMAIL)],
                    ),
                ],
            )
        )

        execution = await engine.start("t", opportunity, "alice")
        await engine.wait(execution.id, timeout=1)

        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.rule_outcomes[0].actions[0]["success"] is False

    @pytest.mark.asyncio
    async def test_rules_can_be_disabled(self, opportunity, notifications):
        """With rules disabled no outcomes are recorded."""
        engine = WorkflowEngine(
            notifications=notifications,
            config=DealflowConfig(automation_rules_enabled=False),
        )
        engine.register_template(self._template())

        execution = await engine.start("t", opportunity, "alice")
        await engine.wait(execution.id, timeout=1)

        assert engine.rules is None
        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.rule_outcomes == []
        assert await engine.fire_event(execution.id, "usage_threshold") == []

    @pytest.mark.asyncio
    async def test_fire_event(self, opportunity, notifications):
        """External events evaluate matching rules on demand."""
        engine = WorkflowEngine(notifications=notifications, config=DealflowConfig())
        engine.register_template(
            make_template(
                "t",
                [make_step("a")],
                automation_rules=[
                    AutomationRule(
                        id="low-usage",
                        trigger="usage_threshold",
                        conditions=["value_above:1000"],
                        actions=[
                            AutomationAction(type=ActionType.TASK, parameters={"title": "Call the user"}),
                        ],
                    ),
                ],
            )
        )

        execution = await engine.start("t", opportunity, "alice")
        await engine.wait(execution.id, timeout=1)

        outcomes = await engine.fire_event(execution.id, "usage_threshold")

        assert [o.fired for o in outcomes] == [True]
        assert outcomes[0] in execution.rule_outcomes
        assert "Task created: Call the user" in notifications.messages

    @pytest.mark.asyncio
    async def test_unexpected_rule_error_fails_execution(self, opportunity, notifications):
        """An unexpected error while processing fails the execution and is reported."""

        class BrokenEvaluator(ConditionEvaluator):
            def evaluate_all(self, conditions, context):
                raise RuntimeError("condition backend down")

        engine = WorkflowEngine(
            notifications=notifications,
            rules=AutomationRuleEngine(ActionExecutor(notifications), BrokenEvaluator()),
            config=DealflowConfig(),
        )
        engine.register_template(
            make_template(
                "t",
                [make_step("a"), make_step("b")],
                automation_rules=[
                    AutomationRule(id="r", trigger="step_completed", conditions=["step_id:a"]),
                ],
            )
        )

        execution = await engine.start("t", opportunity, "alice")
        await engine.wait(execution.id, timeout=1)

        assert execution.status == ExecutionStatus.FAILED
        assert execution.failure.error_type == "RuntimeError"
        assert execution.failure.step_id == "b"
        assert "Workflow execution failed: condition backend down" in notifications.messages
