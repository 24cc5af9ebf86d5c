"""
agent_deployer.task_spec — ECS task definition registration for one agent.

Each registration creates a new revision of the agent's task family. Older
revisions are left alone, so a task still running an older revision is never
affected by a newer registration.
"""

from __future__ import annotations

from typing import Any

from aws_lambda_powertools import Logger

from agent_deployer.config import (
    DEFAULT_TASK_CPU,
    DEFAULT_TASK_MEMORY,
    DEFAULT_WORKER_PROCESS,
)
from agent_deployer.models import AgentIdentity, DeploymentCredentials, TaskSpecHandle

logger = Logger(service="agent-deployer")

CONTAINER_NAME = "agent"
LOG_STREAM_PREFIX = "agent"

HEALTH_CHECK_INTERVAL_SECONDS = 30
HEALTH_CHECK_TIMEOUT_SECONDS = 5
HEALTH_CHECK_RETRIES = 3
# Worker start-up loads generated code and connects to the exchange before it settles.
HEALTH_CHECK_START_PERIOD_SECONDS = 120


class TaskSpecRegistrar:
    def __init__(
        self,
        ecs_client: Any,
        *,
        region: str,
        execution_role_arn: str | None,
        task_role_arn: str | None = None,
        datastore_url: str = "",
        datastore_key: str = "",
        cpu: str = DEFAULT_TASK_CPU,
        memory: str = DEFAULT_TASK_MEMORY,
        worker_process: str = DEFAULT_WORKER_PROCESS,
    ) -> None:
        self._ecs = ecs_client
        self._region = region
        self._execution_role_arn = execution_role_arn
        self._task_role_arn = task_role_arn
        self._datastore_url = datastore_url
        self._datastore_key = datastore_key
        self._cpu = cpu
        self._memory = memory
        self._worker_process = worker_process

    def environment(
        self,
        agent_id: str,
        credentials: DeploymentCredentials,
        log_group_name: str,
    ) -> list[dict[str, str]]:
        return [
            {"name": "AGENT_ID", "value": agent_id},
            {"name": "HYPERLIQUID_PRIVATE_KEY", "value": credentials.api_key},
            {"name": "HYPERLIQUID_ADDRESS", "value": credentials.address},
            {"name": "SUPABASE_URL", "value": self._datastore_url},
            {"name": "SUPABASE_ANON_KEY", "value": self._datastore_key},
            {"name": "AWS_REGION", "value": self._region},
            {"name": "LOG_GROUP_NAME", "value": log_group_name},
        ]

    def container_definition(
        self,
        agent_id: str,
        image: str,
        credentials: DeploymentCredentials,
        log_group_name: str,
    ) -> dict[str, Any]:
        return {
            "name": CONTAINER_NAME,
            "image": image,
            "essential": True,
            "environment": self.environment(agent_id, credentials, log_group_name),
            "command": ["sh", "-c", f"{self._worker_process} $AGENT_ID"],
            "logConfiguration": {
                "logDriver": "awslogs",
                "options": {
                    "awslogs-group": log_group_name,
                    "awslogs-region": self._region,
                    "awslogs-stream-prefix": LOG_STREAM_PREFIX,
                    "awslogs-create-group": "true",
                },
            },
            "healthCheck": {
                "command": ["CMD-SHELL", f'pgrep -f "{self._worker_process}" || exit 1'],
                "interval": HEALTH_CHECK_INTERVAL_SECONDS,
                "timeout": HEALTH_CHECK_TIMEOUT_SECONDS,
                "retries": HEALTH_CHECK_RETRIES,
                "startPeriod": HEALTH_CHECK_START_PERIOD_SECONDS,
            },
        }

    def register(
        self,
        agent_id: str,
        image: str,
        credentials: DeploymentCredentials,
        log_group_name: str,
    ) -> TaskSpecHandle:
        """Register a new task definition revision. ECS rejections propagate unchanged."""
        family = AgentIdentity(agent_id).task_family
        kwargs: dict[str, Any] = {
            "family": family,
            "requiresCompatibilities": ["FARGATE"],
            "networkMode": "awsvpc",
            "cpu": self._cpu,
            "memory": self._memory,
            "containerDefinitions": [
                self.container_definition(agent_id, image, credentials, log_group_name)
            ],
        }
        if self._execution_role_arn:
            kwargs["executionRoleArn"] = self._execution_role_arn
        if self._task_role_arn:
            kwargs["taskRoleArn"] = self._task_role_arn

        response = self._ecs.register_task_definition(**kwargs)
        task_definition = response["taskDefinition"]
        handle = TaskSpecHandle(
            task_definition_arn=task_definition["taskDefinitionArn"],
            family=task_definition.get("family", family),
            revision=int(task_definition.get("revision", 0)),
        )
        logger.info(
            "Registered task definition",
            task_definition_arn=handle.task_definition_arn,
            image=image,
        )
        return handle
