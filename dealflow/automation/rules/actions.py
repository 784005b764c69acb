"""
Dealflow Rule Actions

Applies automation actions through external collaborators.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

import structlog

from dealflow.automation.errors import ActionError
from dealflow.automation.notifications import LogNotificationSink, NotificationSink
from dealflow.automation.rules.conditions import RuleContext
from dealflow.automation.templating import render
from dealflow.automation.types import ActionType, AutomationAction, utcnow

logger = structlog.get_logger(__name__)


# === Collaborators ===


class FieldWriter:
    """Writes a field on an opportunity in the host application's store."""

    async def update_field(self, opportunity_id: str, field: str, value: Any) -> None:
        raise NotImplementedError


class LogFieldWriter(FieldWriter):
    """Logs the update instead of writing it."""

    async def update_field(self, opportunity_id: str, field: str, value: Any) -> None:
        logger.info(
            "opportunity_field_update",
            opportunity_id=opportunity_id,
            field=field,
            value=value,
        )


class IntegrationGateway:
    """Invokes a verb on an external service (e-signature, ERP, ...)."""

    async def invoke(
        self,
        service: str,
        action: str,
        parameters: Dict[str, Any],
    ) -> Dict[str, Any]:
        raise NotImplementedError


class LogIntegrationGateway(IntegrationGateway):
    """Logs the call and reports it as queued."""

    async def invoke(
        self,
        service: str,
        action: str,
        parameters: Dict[str, Any],
    ) -> Dict[str, Any]:
        logger.info(
            "integration_invoked",
            service=service,
            action=action,
            parameters=parameters,
        )
        return {"queued": True}


# === Executor ===


class ActionExecutor:
    """
    Executes automation actions.

    Supports:
    - Field updates
    - Notifications
    - Integrations
    - Tasks
    """

    def __init__(
        self,
        notifications: Optional[NotificationSink] = None,
        field_writer: Optional[FieldWriter] = None,
        integrations: Optional[IntegrationGateway] = None,
    ):
        notifications = notifications or LogNotificationSink()

        self._handlers: Dict[ActionType, "BaseActionHandler"] = {
            ActionType.FIELD_UPDATE: FieldUpdateActionHandler(
                field_writer or LogFieldWriter()
            ),
            ActionType.NOTIFICATION: NotificationActionHandler(notifications),
            ActionType.INTEGRATION: IntegrationActionHandler(
                integrations or LogIntegrationGateway()
            ),
            ActionType.TASK: TaskActionHandler(notifications),
        }

    async def execute(
        self,
        action: AutomationAction,
        context: RuleContext,
    ) -> Dict[str, Any]:
        """
        Execute an action.

        Raises:
            ActionError: no handler for the action type, or the handler failed
        """
        handler = self._handlers.get(action.type)
        if handler is None:
            raise ActionError(
                f"Unsupported action type: {action.type.value}",
                action_type=action.type.value,
            )

        try:
            result = await handler.execute(action, context)
        except ActionError:
            raise
        except Exception as e:
            logger.error(
                "action_error",
                action_type=action.type.value,
                error=str(e),
            )
            raise ActionError(str(e), action_type=action.type.value) from e

        logger.debug("action_executed", action_type=action.type.value)
        return result

    def register_handler(
        self,
        action_type: ActionType,
        handler: "BaseActionHandler",
    ) -> None:
        """Register a custom action handler."""
        self._handlers[action_type] = handler
        logger.info("action_handler_registered", action_type=action_type.value)


class BaseActionHandler:
    """Base class for action handlers."""

    async def execute(
        self,
        action: AutomationAction,
        context: RuleContext,
    ) -> Dict[str, Any]:
        """Execute the action."""
        raise NotImplementedError

    def require(self, action: AutomationAction, *names: str) -> List[Any]:
        """Fetch required parameters or raise ActionError."""
        missing = [n for n in names if n not in action.parameters]
        if missing:
            raise ActionError(
                f"{action.type.value} action missing parameters: {missing}",
                action_type=action.type.value,
            )
        return [action.parameters[n] for n in names]


class FieldUpdateActionHandler(BaseActionHandler):
    """Handler for field_update actions."""

    def __init__(self, writer: FieldWriter):
        self.writer = writer

    async def execute(
        self,
        action: AutomationAction,
        context: RuleContext,
    ) -> Dict[str, Any]:
        field, value = self.require(action, "field", "value")
        await self.writer.update_field(context.opportunity.id, field, value)
        return {"field": field, "value": value}


class NotificationActionHandler(BaseActionHandler):
    """Handler for notification actions."""

    def __init__(self, notifications: NotificationSink):
        self.notifications = notifications

    async def execute(
        self,
        action: AutomationAction,
        context: RuleContext,
    ) -> Dict[str, Any]:
        (message,) = self.require(action, "message")
        message = render(str(message), context.opportunity)
        recipients = list(action.parameters.get("recipients", []))
        priority = action.parameters.get("priority", "normal")

        await self.notifications.send(
            "info",
            message,
            recipients=recipients,
            priority=priority,
            execution_id=context.execution.id,
        )
        return {"message": message, "recipients": recipients, "priority": priority}


class IntegrationActionHandler(BaseActionHandler):
    """Handler for integration actions."""

    def __init__(self, gateway: IntegrationGateway):
        self.gateway = gateway

    async def execute(
        self,
        action: AutomationAction,
        context: RuleContext,
    ) -> Dict[str, Any]:
        service, verb = self.require(action, "service", "action")
        parameters = {
            k: v for k, v in action.parameters.items() if k not in ("service", "action")
        }
        parameters["opportunity_id"] = context.opportunity.id
        response = await self.gateway.invoke(service, verb, parameters)
        return {"service": service, "action": verb, "response": response}


class TaskActionHandler(BaseActionHandler):
    """Handler for task actions: a follow-up task record, announced."""

    def __init__(self, notifications: NotificationSink):
        self.notifications = notifications

    async def execute(
        self,
        action: AutomationAction,
        context: RuleContext,
    ) -> Dict[str, Any]:
        (title,) = self.require(action, "title")
        task = {
            "id": f"task_{uuid.uuid4().hex[:12]}",
            "title": render(str(title), context.opportunity),
            "opportunity_id": context.opportunity.id,
            "assigned_to": action.parameters.get("assignee", context.execution.executed_by),
            "status": "pending",
            "created_at": utcnow(),
        }
        await self.notifications.info(
            f"Task created: {task['title']}",
            execution_id=context.execution.id,
        )
        return task
