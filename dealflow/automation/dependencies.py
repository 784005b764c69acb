"""
Dealflow Dependency Resolver

Decides whether a step's prerequisites have completed.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

from dealflow.automation.types import ExecutionResult, StepStatus, WorkflowStep


def unmet_dependencies(
    step: WorkflowStep,
    results: Iterable[ExecutionResult],
) -> List[str]:
    """
    Return the dependency ids of ``step`` that have not completed.

    ``results`` must only hold the results of steps already visited in this
    pass, so a dependency that appears later in the template can never be
    satisfied.
    """
    if not step.dependencies:
        return []

    by_step: Dict[str, ExecutionResult] = {r.step_id: r for r in results}

    return [
        dep_id for dep_id in step.dependencies
        if dep_id not in by_step or by_step[dep_id].status != StepStatus.COMPLETED
    ]


def dependencies_satisfied(
    step: WorkflowStep,
    results: Iterable[ExecutionResult],
) -> bool:
    """True if every dependency of ``step`` has a completed result."""
    return not unmet_dependencies(step, results)
