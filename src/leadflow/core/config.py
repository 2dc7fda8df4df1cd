from __future__ import annotations

import os
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from leadflow.core.constants import EscalationPolicy
from leadflow.core.exceptions import ConfigurationError


class AutomationConfig(BaseModel):
    sla_hours: float = Field(default=24.0, gt=0)
    escalation_thresholds_hours: list[float] = Field(
        default_factory=lambda: [24.0, 48.0, 72.0]
    )
    """Hours elapsed since assignment at which each escalation level is reached."""
    escalation_policy: EscalationPolicy = EscalationPolicy.SKIP
    """What to do with an overdue lead whose assignee has no department manager."""
    approval_expiry_hours: float = Field(default=24.0, gt=0)
    task_due_hours: float = Field(default=24.0, gt=0)
    delay_unit_seconds: float = Field(default=60.0, ge=0)
    """Seconds per action-delay minute. Lowered in tests and demos."""
    active_lead_weight: float = Field(default=1.0, ge=0)
    overdue_task_weight: float = Field(default=2.0, ge=0)
    sla_sweep_interval_seconds: int = Field(default=900, ge=1)
    approval_sweep_interval_seconds: int = Field(default=300, ge=1)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("escalation_thresholds_hours")
    @classmethod
    def _check_thresholds(cls, value: list[float]) -> list[float]:
        if not value:
            raise ValueError("at least one escalation threshold is required")
        if any(b <= a for a, b in zip(value, value[1:])):
            raise ValueError("escalation thresholds must be strictly ascending")
        if value[0] <= 0:
            raise ValueError("escalation thresholds must be positive")
        return value

    @classmethod
    def from_env(cls) -> AutomationConfig:
        """Create an :class:`AutomationConfig` from ``LEADFLOW_*`` environment variables.

        Reads the following env vars (all optional):

        * ``LEADFLOW_SLA_HOURS`` → ``sla_hours``
        * ``LEADFLOW_ESCALATION_THRESHOLDS`` → ``escalation_thresholds_hours``
          (comma separated, e.g. ``"24,48,72"``)
        * ``LEADFLOW_ESCALATION_POLICY`` → ``escalation_policy``
          (``skip`` or ``escalate_to_admin``)
        * ``LEADFLOW_APPROVAL_EXPIRY_HOURS`` → ``approval_expiry_hours``
        * ``LEADFLOW_TASK_DUE_HOURS`` → ``task_due_hours``
        * ``LEADFLOW_DELAY_UNIT_SECONDS`` → ``delay_unit_seconds``
        * ``LEADFLOW_SLA_SWEEP_INTERVAL`` → ``sla_sweep_interval_seconds``
        * ``LEADFLOW_APPROVAL_SWEEP_INTERVAL`` → ``approval_sweep_interval_seconds``
        * ``LEADFLOW_LOG_LEVEL`` → ``log_level``

        Any variable that is not set or is empty is left at its default value.

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed.
        """
        kwargs: dict[str, Any] = {}

        float_vars = {
            "LEADFLOW_SLA_HOURS": "sla_hours",
            "LEADFLOW_APPROVAL_EXPIRY_HOURS": "approval_expiry_hours",
            "LEADFLOW_TASK_DUE_HOURS": "task_due_hours",
            "LEADFLOW_DELAY_UNIT_SECONDS": "delay_unit_seconds",
        }
        int_vars = {
            "LEADFLOW_SLA_SWEEP_INTERVAL": "sla_sweep_interval_seconds",
            "LEADFLOW_APPROVAL_SWEEP_INTERVAL": "approval_sweep_interval_seconds",
        }

        for env_name, field_name in float_vars.items():
            raw = os.environ.get(env_name)
            if raw:
                kwargs[field_name] = _parse(env_name, raw, float)

        for env_name, field_name in int_vars.items():
            raw = os.environ.get(env_name)
            if raw:
                kwargs[field_name] = _parse(env_name, raw, int)

        thresholds = os.environ.get("LEADFLOW_ESCALATION_THRESHOLDS")
        if thresholds:
            kwargs["escalation_thresholds_hours"] = [
                _parse("LEADFLOW_ESCALATION_THRESHOLDS", part, float)
                for part in thresholds.split(",")
                if part.strip()
            ]

        policy = os.environ.get("LEADFLOW_ESCALATION_POLICY")
        if policy:
            kwargs["escalation_policy"] = policy

        log_level = os.environ.get("LEADFLOW_LOG_LEVEL")
        if log_level:
            kwargs["log_level"] = log_level.upper()

        return cls(**kwargs)


def _parse(env_name: str, raw: str, kind: type[float] | type[int]) -> Any:
    try:
        return kind(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid value for {env_name}: {raw!r}",
            details={"variable": env_name, "value": raw},
        ) from exc
