"""leadflow -- workflow automation, lead routing and SLA escalation for sales leads."""

from leadflow.__version__ import __version__
from leadflow.activity import (
    Activity,
    ActivityLog,
    ActivitySink,
    ActivityStatistics,
    WebhookActivitySink,
)
from leadflow.approvals import ApprovalManager, ApprovalRequest
from leadflow.collaborators.memory import (
    InMemoryEmailService,
    InMemoryLeadRepository,
    InMemoryNotificationService,
    InMemoryTaskService,
    InMemoryUserDirectory,
)
from leadflow.conditions import Condition, evaluate
from leadflow.core.automation import AutomationCore
from leadflow.core.config import AutomationConfig
from leadflow.core.constants import (
    ActionType,
    ActivityType,
    ApprovalStatus,
    ConditionOperator,
    EscalationPolicy,
    ExecutionStatus,
    LeadStatus,
    LogicalOperator,
    OutcomeStatus,
    RuleActionType,
    TriggerEvent,
    UserRole,
)
from leadflow.core.exceptions import (
    BusinessLogicError,
    ConfigurationError,
    LeadflowError,
    NotFoundError,
    ValidationError,
    WorkflowError,
)
from leadflow.core.types import (
    DaySchedule,
    Lead,
    Notification,
    Task,
    TaskSpec,
    User,
    WorkingHours,
)
from leadflow.routing import (
    AssignmentResult,
    AssignmentRule,
    AssignmentRuleManager,
    ReassignmentRequest,
    RoutingEngine,
    RuleAction,
    Territory,
    WorkloadInfo,
)
from leadflow.scheduling import AutomationSweeper
from leadflow.sla import EscalationRecord, SLAStatus, SLATracker
from leadflow.utils.logging import configure_logging, get_logger
from leadflow.workflows import (
    ActionHandler,
    ActionOutcome,
    ActionRegistry,
    WorkflowAction,
    WorkflowDefinition,
    WorkflowEngine,
    WorkflowExecution,
    WorkflowService,
    WorkflowTrigger,
    WorkflowTriggers,
)

__all__ = [
    "__version__",
    # Composition
    "AutomationConfig",
    "AutomationCore",
    "AutomationSweeper",
    # Conditions
    "Condition",
    "evaluate",
    # Workflows
    "ActionHandler",
    "ActionOutcome",
    "ActionRegistry",
    "WorkflowAction",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowExecution",
    "WorkflowService",
    "WorkflowTrigger",
    "WorkflowTriggers",
    # Approvals
    "ApprovalManager",
    "ApprovalRequest",
    # Routing
    "AssignmentResult",
    "AssignmentRule",
    "AssignmentRuleManager",
    "ReassignmentRequest",
    "RoutingEngine",
    "RuleAction",
    "Territory",
    "WorkloadInfo",
    # SLA
    "EscalationRecord",
    "SLAStatus",
    "SLATracker",
    # Activity
    "Activity",
    "ActivityLog",
    "ActivitySink",
    "ActivityStatistics",
    "WebhookActivitySink",
    # Collaborators
    "InMemoryEmailService",
    "InMemoryLeadRepository",
    "InMemoryNotificationService",
    "InMemoryTaskService",
    "InMemoryUserDirectory",
    # Types
    "DaySchedule",
    "Lead",
    "Notification",
    "Task",
    "TaskSpec",
    "User",
    "WorkingHours",
    # Constants
    "ActionType",
    "ActivityType",
    "ApprovalStatus",
    "ConditionOperator",
    "EscalationPolicy",
    "ExecutionStatus",
    "LeadStatus",
    "LogicalOperator",
    "OutcomeStatus",
    "RuleActionType",
    "TriggerEvent",
    "UserRole",
    # Exceptions
    "BusinessLogicError",
    "ConfigurationError",
    "LeadflowError",
    "NotFoundError",
    "ValidationError",
    "WorkflowError",
    # Logging
    "configure_logging",
    "get_logger",
]
