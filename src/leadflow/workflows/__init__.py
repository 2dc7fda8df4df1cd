"""Event-driven workflow automation for leads."""
from leadflow.workflows.actions import (
    ActionHandler,
    ActionRegistry,
    AssignLeadAction,
    CreateTaskAction,
    RequestApprovalAction,
    SendEmailAction,
    SendNotificationAction,
    UpdateFieldAction,
    build_default_registry,
)
from leadflow.workflows.engine import WorkflowEngine
from leadflow.workflows.models import (
    ActionOutcome,
    WorkflowAction,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowTrigger,
)
from leadflow.workflows.service import WorkflowService
from leadflow.workflows.triggers import WorkflowTriggers

__all__ = [
    "ActionHandler",
    "ActionOutcome",
    "ActionRegistry",
    "AssignLeadAction",
    "CreateTaskAction",
    "RequestApprovalAction",
    "SendEmailAction",
    "SendNotificationAction",
    "UpdateFieldAction",
    "WorkflowAction",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowExecution",
    "WorkflowService",
    "WorkflowTrigger",
    "WorkflowTriggers",
    "build_default_registry",
]
