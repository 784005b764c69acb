"""
Dealflow Automation Rules

Trigger/condition/action rules evaluated on execution events.
"""

from dealflow.automation.rules.conditions import ConditionEvaluator, RuleContext
from dealflow.automation.rules.actions import (
    ActionExecutor,
    BaseActionHandler,
    FieldWriter,
    IntegrationGateway,
    LogFieldWriter,
    LogIntegrationGateway,
)
from dealflow.automation.rules.engine import AutomationRuleEngine

__all__ = [
    "AutomationRuleEngine",
    "ConditionEvaluator",
    "RuleContext",
    "ActionExecutor",
    "BaseActionHandler",
    "FieldWriter",
    "IntegrationGateway",
    "LogFieldWriter",
    "LogIntegrationGateway",
]
