"""
agent_deployer.log_channel — Per-agent CloudWatch Logs log group.

The log group must exist before the task is scheduled; the retention policy
is best-effort and never fails the deployment.
"""

from __future__ import annotations

from typing import Any

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from agent_deployer.config import DEFAULT_LOG_RETENTION_DAYS
from agent_deployer.models import AgentIdentity

logger = Logger(service="agent-deployer")


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class LogChannelProvisioner:
    def __init__(
        self,
        logs_client: Any,
        *,
        retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
    ) -> None:
        self._logs = logs_client
        self._retention_days = retention_days

    def ensure(self, agent_id: str) -> str:
        """Create the agent's log group if needed and return its name."""
        log_group_name = AgentIdentity(agent_id).log_group_name
        try:
            self._logs.create_log_group(logGroupName=log_group_name)
            logger.info("Created log group", log_group=log_group_name)
        except ClientError as exc:
            if _error_code(exc) != "ResourceAlreadyExistsException":
                raise
            logger.info("Log group already exists", log_group=log_group_name)

        try:
            self._logs.put_retention_policy(
                logGroupName=log_group_name,
                retentionInDays=self._retention_days,
            )
        except (ClientError, BotoCoreError) as exc:
            logger.warning("Retention policy failed", log_group=log_group_name, error=str(exc))
        return log_group_name
