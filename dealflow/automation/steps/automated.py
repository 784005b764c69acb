"""
Dealflow Automated Step Handler

Renders a step's template resources against the opportunity.
"""

from __future__ import annotations

from typing import Any, List

import structlog

from dealflow.automation.errors import StepExecutionError
from dealflow.automation.steps.dispatcher import BaseStepHandler
from dealflow.automation.templating import render
from dealflow.automation.types import (
    Opportunity,
    ResourceType,
    WorkflowExecution,
    WorkflowStep,
)

logger = structlog.get_logger(__name__)


class AutomatedStepHandler(BaseStepHandler):
    """
    Handler for automated steps.

    Only ``template`` resources with content are rendered; checklists,
    documents and links are ignored.
    """

    async def execute(
        self,
        step: WorkflowStep,
        opportunity: Opportunity,
        execution: WorkflowExecution,
    ) -> Any:
        """Execute an automated step."""
        results: List[str] = []

        for resource in step.resources:
            if resource.type != ResourceType.TEMPLATE or not resource.content:
                continue

            try:
                results.append(render(resource.content, opportunity))
            except Exception as e:
                raise StepExecutionError(
                    f"Template {resource.id} failed to render: {e}",
                    step_id=step.id,
                    step_type=step.kind,
                    cause=e,
                ) from e

        logger.info(
            "automated_step_rendered",
            step_id=step.id,
            execution_id=execution.id,
            rendered=len(results),
        )

        return results
