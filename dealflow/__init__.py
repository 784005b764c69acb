"""
Dealflow - Sales Pipeline Workflow Engine

Executes multi-step workflow templates against sales opportunities.
"""

__version__ = "1.0.0"

from dealflow.automation import (
    Opportunity,
    WorkflowEngine,
    WorkflowExecution,
    WorkflowTemplate,
)
from dealflow.core.config import DealflowConfig, get_config

__all__ = [
    "__version__",
    "Opportunity",
    "WorkflowEngine",
    "WorkflowExecution",
    "WorkflowTemplate",
    "DealflowConfig",
    "get_config",
]
