"""
agent_deployer.orchestrator — Log group, task definition, service, in that order.

A failure at any stage aborts the remaining stages. Side effects of completed
stages are kept: log group creation is idempotent and every registration is
a fresh revision, so re-running the whole deployment is always safe. The
agent lock is held across all three stages; failing to take it is reported
as the "lock" stage.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import ExitStack
from typing import TypeVar

from aws_lambda_powertools import Logger
from botocore.exceptions import ConnectTimeoutError, ReadTimeoutError

from agent_deployer.clients import PlatformClients, build_clients
from agent_deployer.config import DeployerSettings
from agent_deployer.exceptions import (
    ConfigurationError,
    DeploymentInProgressError,
    DeploymentStageError,
    PlatformTimeoutError,
)
from agent_deployer.locks import AgentLock, DynamoDBAgentLock, InProcessAgentLock
from agent_deployer.log_channel import LogChannelProvisioner
from agent_deployer.models import (
    AgentIdentity,
    DeploymentCredentials,
    DeploymentResult,
    NetworkPlacement,
)
from agent_deployer.reconciler import ServiceReconciler
from agent_deployer.task_spec import TaskSpecRegistrar

logger = Logger(service="agent-deployer")

T = TypeVar("T")

STAGE_LOCK = "lock"
STAGE_LOG_GROUP = "log-group"
STAGE_TASK_DEFINITION = "task-definition"
STAGE_SERVICE = "service"


def _timed_out(error: BaseException) -> bool:
    current: BaseException | None = error
    while current is not None:
        if isinstance(current, (ConnectTimeoutError, ReadTimeoutError)):
            return True
        current = current.__cause__
    return False


class DeploymentOrchestrator:
    def __init__(
        self,
        *,
        provisioner: LogChannelProvisioner,
        registrar: TaskSpecRegistrar,
        reconciler: ServiceReconciler,
        region: str,
        lock: AgentLock | None = None,
    ) -> None:
        self._provisioner = provisioner
        self._registrar = registrar
        self._reconciler = reconciler
        self._region = region
        self._lock: AgentLock = lock or InProcessAgentLock()

    @classmethod
    def from_settings(
        cls,
        settings: DeployerSettings,
        clients: PlatformClients | None = None,
    ) -> DeploymentOrchestrator:
        clients = clients or build_clients(settings)
        lock: AgentLock
        if settings.lock_table:
            if clients.dynamodb is None:
                raise ConfigurationError("DEPLOY_LOCK_TABLE is set but no DynamoDB client")
            lock = DynamoDBAgentLock(clients.dynamodb, table_name=settings.lock_table)
        else:
            lock = InProcessAgentLock(wait_seconds=settings.lock_wait_seconds)
        return cls(
            provisioner=LogChannelProvisioner(
                clients.logs, retention_days=settings.log_retention_days
            ),
            registrar=TaskSpecRegistrar(
                clients.ecs,
                region=settings.aws_region,
                execution_role_arn=settings.execution_role_arn,
                task_role_arn=settings.task_role_arn,
                datastore_url=settings.supabase_url,
                datastore_key=settings.supabase_anon_key,
                cpu=settings.task_cpu,
                memory=settings.task_memory,
                worker_process=settings.worker_process,
            ),
            reconciler=ServiceReconciler(
                clients.ecs,
                cluster=settings.cluster,
                execution_role_arn=settings.execution_role_arn,
                recovery_delay_seconds=settings.recovery_delay_seconds,
                recovery_poll_attempts=settings.recovery_poll_attempts,
            ),
            region=settings.aws_region,
            lock=lock,
        )

    def _run_stage(self, stage: str, agent_id: str, step: Callable[[], T]) -> T:
        try:
            return step()
        except (ConfigurationError, DeploymentInProgressError):
            raise
        except Exception as exc:
            error_cls = PlatformTimeoutError if _timed_out(exc) else DeploymentStageError
            logger.error("Deployment stage failed", stage=stage, agent_id=agent_id, error=str(exc))
            raise error_cls(stage, agent_id, exc) from exc

    def deploy(
        self,
        agent_id: str,
        image: str,
        credentials: DeploymentCredentials,
        placement: NetworkPlacement,
    ) -> DeploymentResult:
        """Deploy one agent and return where it runs and where it logs."""
        try:
            AgentIdentity(agent_id)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        self._reconciler.check_preconditions(placement)

        with ExitStack() as stack:
            self._run_stage(
                STAGE_LOCK, agent_id, lambda: stack.enter_context(self._lock.hold(agent_id))
            )
            logger.info("Deploying agent service", agent_id=agent_id, image=image)
            log_group_name = self._run_stage(
                STAGE_LOG_GROUP, agent_id, lambda: self._provisioner.ensure(agent_id)
            )
            task_spec = self._run_stage(
                STAGE_TASK_DEFINITION,
                agent_id,
                lambda: self._registrar.register(agent_id, image, credentials, log_group_name),
            )
            service = self._run_stage(
                STAGE_SERVICE,
                agent_id,
                lambda: self._reconciler.reconcile(agent_id, task_spec, placement),
            )

        result = DeploymentResult(
            service_arn=service.service_arn,
            task_definition_arn=task_spec.task_definition_arn,
            log_group_name=log_group_name,
            region=self._region,
            action=service.action,
        )
        logger.info(
            "Agent deployed",
            agent_id=agent_id,
            service_arn=result.service_arn,
            action=result.action.value,
        )
        return result
