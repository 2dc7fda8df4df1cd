"""Workflow action handlers and the registry that dispatches to them.

Each action type is one :class:`ActionHandler` subclass registered under its
type tag. Adding an action type means writing a handler and registering
it; the engine never branches on the tag itself::

    registry = ActionRegistry()
    registry.register(SendEmailAction(emails))
    handler = registry.get("send_email")
    result = await handler.execute({"template_id": "welcome"}, lead, execution)
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from leadflow.collaborators.base import (
    EmailService,
    LeadRepository,
    NotificationService,
    TaskService,
)
from leadflow.core.config import AutomationConfig
from leadflow.core.constants import ActionType
from leadflow.core.exceptions import ValidationError
from leadflow.core.types import Lead, Notification, TaskSpec, utcnow

if TYPE_CHECKING:
    from leadflow.approvals.manager import ApprovalManager
    from leadflow.routing.engine import RoutingEngine
    from leadflow.workflows.models import WorkflowExecution


def _require(parameters: dict[str, Any], name: str, action_type: str) -> Any:
    value = parameters.get(name)
    if value is None or value == "":
        raise ValidationError(
            f"{action_type} action requires parameter {name!r}",
            code="MISSING_ACTION_PARAMETER",
            details={"action_type": action_type, "parameter": name},
        )
    return value


class ActionHandler(ABC):
    """Executes one action type against a lead.

    Subclasses set :attr:`action_type` and implement :meth:`execute`. The
    returned value is stored on the execution's outcome for audit only.
    Raising marks the action failed; the run continues with the next one.
    """

    action_type: str

    @abstractmethod
    async def execute(
        self,
        parameters: dict[str, Any],
        lead: Lead,
        execution: WorkflowExecution,
    ) -> Any:
        """Perform the action's side effect and return an audit result."""


class ActionRegistry:
    """Lookup table from action type tag to :class:`ActionHandler`."""

    def __init__(self, handlers: list[ActionHandler] | None = None) -> None:
        self._handlers: dict[str, ActionHandler] = {}
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: ActionHandler) -> ActionRegistry:
        """Register *handler*, replacing any handler for the same tag.  Returns ``self``."""
        self._handlers[str(handler.action_type)] = handler
        return self

    def get(self, action_type: str) -> ActionHandler | None:
        return self._handlers.get(action_type)

    def __contains__(self, action_type: object) -> bool:
        return action_type in self._handlers

    @property
    def action_types(self) -> list[str]:
        return sorted(self._handlers)


# --------------------------------------------------------------------------- #
# Built-in handlers
# --------------------------------------------------------------------------- #


class SendEmailAction(ActionHandler):
    """Parameters: ``template_id`` (required), ``variables``.

    Execution context keys override same-named template variables.
    """

    action_type = ActionType.SEND_EMAIL

    def __init__(self, emails: EmailService) -> None:
        self._emails = emails

    async def execute(
        self, parameters: dict[str, Any], lead: Lead, execution: WorkflowExecution
    ) -> Any:
        template_id = _require(parameters, "template_id", self.action_type)
        variables = {**(parameters.get("variables") or {}), **execution.context}
        return await self._emails.send_email(template_id, lead.id, variables)


class CreateTaskAction(ActionHandler):
    """Parameters: ``subject`` (required), ``description``, ``type``, ``priority``,
    ``assigned_to`` (default: the lead's assignee), ``due_date`` (default:
    :attr:`AutomationConfig.task_due_hours` from now).
    """

    action_type = ActionType.CREATE_TASK

    def __init__(
        self,
        tasks: TaskService,
        *,
        config: AutomationConfig,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._tasks = tasks
        self._config = config
        self._clock = clock

    async def execute(
        self, parameters: dict[str, Any], lead: Lead, execution: WorkflowExecution
    ) -> Any:
        due_date = parameters.get("due_date") or (
            self._clock() + timedelta(hours=self._config.task_due_hours)
        )
        spec = TaskSpec(
            lead_id=lead.id,
            subject=_require(parameters, "subject", self.action_type),
            description=parameters.get("description"),
            type=parameters.get("type") or "follow_up",
            priority=parameters.get("priority") or "medium",
            assigned_to=parameters.get("assigned_to") or lead.assignment.assigned_to,
            due_date=due_date,
            created_by=execution.triggered_by,
        )
        return await self._tasks.create_task(spec)


class UpdateFieldAction(ActionHandler):
    """Parameters: ``field`` (dot-path, required), ``value``.

    The lead collaborator only accepts whole-field updates, so a nested path
    such as ``score.band`` rewrites the complete top-level ``score`` value.
    """

    action_type = ActionType.UPDATE_FIELD

    def __init__(self, leads: LeadRepository) -> None:
        self._leads = leads

    async def execute(
        self, parameters: dict[str, Any], lead: Lead, execution: WorkflowExecution
    ) -> Any:
        path = str(_require(parameters, "field", self.action_type)).split(".")
        value = parameters.get("value")
        top = path[0]

        if len(path) == 1:
            fields = {top: value}
        else:
            data = lead.model_dump()
            root = data.get(top)
            if not isinstance(root, dict):
                root = {}
            node = root
            for part in path[1:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = {}
                    node[part] = child
                node = child
            node[path[-1]] = value
            fields = {top: root}

        return await self._leads.update_lead(lead.id, fields, execution.triggered_by)


class AssignLeadAction(ActionHandler):
    """Parameters: ``assignee_id``, ``reason`` (default ``"Workflow automation"``).

    Without ``assignee_id`` the routing engine's rules and round-robin decide.
    """

    action_type = ActionType.ASSIGN_LEAD

    def __init__(self, routing: RoutingEngine) -> None:
        self._routing = routing

    async def execute(
        self, parameters: dict[str, Any], lead: Lead, execution: WorkflowExecution
    ) -> Any:
        return await self._routing.assign_lead(
            lead.id,
            parameters.get("assignee_id"),
            reason=parameters.get("reason") or "Workflow automation",
            performed_by=execution.triggered_by,
        )


class SendNotificationAction(ActionHandler):
    """Parameters: ``recipient_id`` (required), ``message`` (required), ``type``."""

    action_type = ActionType.SEND_NOTIFICATION

    def __init__(self, notifications: NotificationService) -> None:
        self._notifications = notifications

    async def execute(
        self, parameters: dict[str, Any], lead: Lead, execution: WorkflowExecution
    ) -> Any:
        return await self._notifications.send_notification(
            Notification(
                recipient_id=_require(parameters, "recipient_id", self.action_type),
                message=_require(parameters, "message", self.action_type),
                type=parameters.get("type") or "info",
                related_entity_type="lead",
                related_entity_id=lead.id,
            )
        )


class RequestApprovalAction(ActionHandler):
    """Parameters: ``approver_role`` (required), ``approver``, ``request_data``,
    ``expires_in_hours``.

    Completes as soon as the request exists; the decision is tracked on the
    :class:`~leadflow.approvals.models.ApprovalRequest` alone.
    """

    action_type = ActionType.REQUEST_APPROVAL

    def __init__(self, approvals: ApprovalManager) -> None:
        self._approvals = approvals

    async def execute(
        self, parameters: dict[str, Any], lead: Lead, execution: WorkflowExecution
    ) -> Any:
        return await self._approvals.create_request(
            lead_id=lead.id,
            requested_by=execution.triggered_by,
            approver_role=_require(parameters, "approver_role", self.action_type),
            approver=parameters.get("approver"),
            request_data=parameters.get("request_data"),
            workflow_execution_id=execution.id,
            expires_in_hours=parameters.get("expires_in_hours"),
        )


def build_default_registry(
    *,
    leads: LeadRepository,
    tasks: TaskService,
    emails: EmailService,
    notifications: NotificationService,
    routing: RoutingEngine,
    approvals: ApprovalManager,
    config: AutomationConfig,
    clock: Callable[[], datetime] = utcnow,
) -> ActionRegistry:
    """Registry with one handler per :class:`~leadflow.core.constants.ActionType`."""
    return ActionRegistry(
        [
            SendEmailAction(emails),
            CreateTaskAction(tasks, config=config, clock=clock),
            UpdateFieldAction(leads),
            AssignLeadAction(routing),
            SendNotificationAction(notifications),
            RequestApprovalAction(approvals),
        ]
    )
