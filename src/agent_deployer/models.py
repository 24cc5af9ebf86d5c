"""
agent_deployer.models — Agent identities, derived resource names and deployment records.

Derived names are part of the deployment contract: a re-deployment must land
on the same log group, task family and service as the first one, so the
formats below never change.

    task family   agent-{agentId}
    service name  agent-svc-{agentId}
    log group     /agents/{agentId}
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from urllib.parse import quote

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
TASK_FAMILY_PREFIX = "agent-"
SERVICE_NAME_PREFIX = "agent-svc-"
LOG_GROUP_PREFIX = "/agents/"

DESIRED_COUNT: int = 1
# Surge then drain: start the replacement before the only instance goes away.
MAXIMUM_PERCENT: int = 200
MINIMUM_HEALTHY_PERCENT: int = 100

_AGENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ServiceState(StrEnum):
    ABSENT = "absent"
    ACTIVE = "active"
    NON_UPDATABLE = "non_updatable"


class ReconcileAction(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    RECREATED = "recreated"


# ---------------------------------------------------------------------------
# Identity and inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AgentIdentity:
    agent_id: str

    def __post_init__(self) -> None:
        if not self.agent_id or not _AGENT_ID_PATTERN.match(self.agent_id):
            raise ValueError(
                f"Invalid agent id {self.agent_id!r}: use letters, digits, '-' or '_'"
            )

    @property
    def task_family(self) -> str:
        return f"{TASK_FAMILY_PREFIX}{self.agent_id}"

    @property
    def service_name(self) -> str:
        return f"{SERVICE_NAME_PREFIX}{self.agent_id}"

    @property
    def log_group_name(self) -> str:
        return f"{LOG_GROUP_PREFIX}{self.agent_id}"


@dataclass(frozen=True)
class DeploymentCredentials:
    """Per-agent secrets forwarded into the container environment. Never persisted."""

    api_key: str = field(repr=False)
    address: str


@dataclass(frozen=True)
class NetworkPlacement:
    subnets: tuple[str, ...]
    security_groups: tuple[str, ...]
    assign_public_ip: bool = False

    def awsvpc_configuration(self) -> dict[str, object]:
        return {
            "subnets": list(self.subnets),
            "securityGroups": list(self.security_groups),
            "assignPublicIp": "ENABLED" if self.assign_public_ip else "DISABLED",
        }


# ---------------------------------------------------------------------------
# Handles returned by the stages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaskSpecHandle:
    task_definition_arn: str
    family: str
    revision: int


@dataclass(frozen=True)
class ServiceHandle:
    service_arn: str
    service_name: str
    task_definition_arn: str
    action: ReconcileAction
    previous_status: str | None = None


# ---------------------------------------------------------------------------
# Describe outcome: exactly one of these comes back from a service lookup
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServiceAbsent:
    reason: str = "MISSING"

    @property
    def state(self) -> ServiceState:
        return ServiceState.ABSENT


@dataclass(frozen=True)
class ServiceFound:
    service_arn: str
    status: str
    task_definition_arn: str | None = None

    @property
    def state(self) -> ServiceState:
        if self.status == "ACTIVE":
            return ServiceState.ACTIVE
        return ServiceState.NON_UPDATABLE


@dataclass(frozen=True)
class DescribeFailed:
    error: Exception


DescribeOutcome = ServiceAbsent | ServiceFound | DescribeFailed


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


def log_console_url(region: str, log_group_name: str) -> str:
    encoded = quote(log_group_name, safe="")
    return (
        f"https://{region}.console.aws.amazon.com/cloudwatch/home?region={region}"
        f"#logsV2:log-groups/log-group/{encoded}"
    )


@dataclass(frozen=True)
class DeploymentResult:
    service_arn: str
    task_definition_arn: str
    log_group_name: str
    region: str
    action: ReconcileAction

    @property
    def log_url(self) -> str:
        return log_console_url(self.region, self.log_group_name)

    @property
    def log_location(self) -> str:
        return f"CloudWatch Logs {self.log_group_name} ({self.region})"

    def as_dict(self) -> dict[str, str]:
        return {
            "serviceArn": self.service_arn,
            "taskDefArn": self.task_definition_arn,
            "logGroupName": self.log_group_name,
            "logUrl": self.log_url,
            "logLocation": self.log_location,
            "action": self.action.value,
        }
