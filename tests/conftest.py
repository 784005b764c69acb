"""
Shared fixtures for the Dealflow test suite.
"""

import asyncio
from typing import Any, List, Optional

import pytest

from dealflow.automation.engine import WorkflowEngine
from dealflow.automation.notifications import CollectingNotificationSink
from dealflow.automation.steps.dispatcher import BaseStepHandler
from dealflow.automation.types import (
    Opportunity,
    StepType,
    WorkflowStep,
    WorkflowTemplate,
)
from dealflow.core.config import DealflowConfig, reset_config


@pytest.fixture(autouse=True)
def _fresh_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def notifications() -> CollectingNotificationSink:
    return CollectingNotificationSink()


@pytest.fixture
def engine(notifications) -> WorkflowEngine:
    return WorkflowEngine(notifications=notifications, config=DealflowConfig())


@pytest.fixture
def opportunity() -> Opportunity:
    return Opportunity(id="opp-1", title="Acme Expansion", value=75000.0, stage="prospect")


def make_step(
    step_id: str,
    step_type: Any = StepType.AUTOMATED,
    dependencies: Optional[List[str]] = None,
    **kwargs: Any,
) -> WorkflowStep:
    return WorkflowStep(
        id=step_id,
        name=step_id.replace("-", " ").title(),
        type=step_type,
        dependencies=list(dependencies or []),
        **kwargs,
    )


def make_template(template_id: str, steps: List[WorkflowStep], **kwargs: Any) -> WorkflowTemplate:
    return WorkflowTemplate(id=template_id, name=template_id, steps=steps, **kwargs)


class FailingStepHandler(BaseStepHandler):
    """Fails every step it is given."""

    def __init__(self, message: str = "boom", exc_type: type = RuntimeError):
        self.message = message
        self.exc_type = exc_type
        self.calls: List[str] = []

    async def execute(self, step, opportunity, execution):
        self.calls.append(step.id)
        raise self.exc_type(self.message)


class BlockingStepHandler(BaseStepHandler):
    """Blocks each dispatch until released; records the steps it saw."""

    def __init__(self, output: Any = "done"):
        self.output = output
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.calls: List[str] = []

    async def execute(self, step, opportunity, execution):
        self.calls.append(step.id)
        self.entered.set()
        await self.release.wait()
        return self.output


class RecordingStepHandler(BaseStepHandler):
    """Returns a fixed output and records the steps it saw."""

    def __init__(self, output: Any = "ok"):
        self.output = output
        self.calls: List[str] = []

    async def execute(self, step, opportunity, execution):
        self.calls.append(step.id)
        return self.output
