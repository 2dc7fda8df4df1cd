from leadflow.scheduling.sweeper import APPROVAL_JOB_ID, SLA_JOB_ID, AutomationSweeper

__all__ = ["APPROVAL_JOB_ID", "AutomationSweeper", "SLA_JOB_ID"]
