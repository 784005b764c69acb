"""
Dealflow Step Handlers

Step kinds:
- Automated (template rendering)
- Manual (task creation)
- Approval (approval request)
"""

from dealflow.automation.steps.dispatcher import BaseStepHandler, StepDispatcher
from dealflow.automation.steps.automated import AutomatedStepHandler
from dealflow.automation.steps.manual import ManualStepHandler
from dealflow.automation.steps.approval import ApprovalStepHandler

__all__ = [
    "StepDispatcher",
    "BaseStepHandler",
    "AutomatedStepHandler",
    "ManualStepHandler",
    "ApprovalStepHandler",
]
