"""
agent_deployer.reconciler — Drives an agent's ECS service to one running task.

State transitions:

    ABSENT                 -> create
    ACTIVE / NON_UPDATABLE -> update(forceNewDeployment)
    update rejected        -> delete(force) -> wait for teardown -> create

Deletion is only ever the fallback for a rejected update. A describe that
fails for any reason other than not-found aborts the reconciliation, and so
does a failed create. When recovery itself fails, the raised error carries
both the update rejection and the recovery failure.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from agent_deployer.config import DEFAULT_RECOVERY_DELAY_SECONDS, DEFAULT_RECOVERY_POLL_ATTEMPTS
from agent_deployer.exceptions import (
    ConfigurationError,
    ServiceCreateError,
    ServiceQueryError,
    ServiceRecoveryError,
)
from agent_deployer.models import (
    DESIRED_COUNT,
    MAXIMUM_PERCENT,
    MINIMUM_HEALTHY_PERCENT,
    AgentIdentity,
    DescribeFailed,
    DescribeOutcome,
    NetworkPlacement,
    ReconcileAction,
    ServiceAbsent,
    ServiceFound,
    ServiceHandle,
    TaskSpecHandle,
)

logger = Logger(service="agent-deployer")

_NOT_FOUND_CODE = "ServiceNotFoundException"
# A missing cluster also reads "not found" but is a configuration fault, not an absent service.
_NEVER_ABSENT_CODES = frozenset({"ClusterNotFoundException"})

DEPLOYMENT_CONFIGURATION: dict[str, int] = {
    "maximumPercent": MAXIMUM_PERCENT,
    "minimumHealthyPercent": MINIMUM_HEALTHY_PERCENT,
}


def _is_not_found(error: ClientError) -> bool:
    details = error.response.get("Error", {})
    code = str(details.get("Code", ""))
    if code == _NOT_FOUND_CODE:
        return True
    if code in _NEVER_ABSENT_CODES:
        return False
    return "not found" in str(details.get("Message", "")).lower()


class ServiceReconciler:
    def __init__(
        self,
        ecs_client: Any,
        *,
        cluster: str,
        execution_role_arn: str | None,
        recovery_delay_seconds: float = DEFAULT_RECOVERY_DELAY_SECONDS,
        recovery_poll_attempts: int = DEFAULT_RECOVERY_POLL_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._ecs = ecs_client
        self._cluster = cluster
        self._execution_role_arn = execution_role_arn
        self._recovery_delay_seconds = recovery_delay_seconds
        self._recovery_poll_attempts = max(0, recovery_poll_attempts)
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def check_preconditions(self, placement: NetworkPlacement) -> None:
        """Raise ConfigurationError if the service could never be placed."""
        if not placement.subnets:
            raise ConfigurationError("At least one subnet is required (SUBNET_IDS)")
        if not placement.security_groups:
            raise ConfigurationError(
                "At least one security group is required (SECURITY_GROUP_IDS)"
            )
        role = (self._execution_role_arn or "").strip()
        if not role:
            raise ConfigurationError("An execution role is required (ECS_EXECUTION_ROLE_ARN)")
        if not role.startswith("arn:"):
            raise ConfigurationError(f"Execution role is not an ARN: {role!r}")

    # ------------------------------------------------------------------
    # Platform calls
    # ------------------------------------------------------------------

    def describe(self, service_name: str) -> DescribeOutcome:
        try:
            response = self._ecs.describe_services(cluster=self._cluster, services=[service_name])
        except ClientError as exc:
            if _is_not_found(exc):
                return ServiceAbsent(reason="NOT_FOUND")
            return DescribeFailed(error=exc)
        except BotoCoreError as exc:
            return DescribeFailed(error=exc)

        services = response.get("services") or []
        if not services:
            failures = response.get("failures") or []
            reason = failures[0].get("reason", "MISSING") if failures else "MISSING"
            return ServiceAbsent(reason=reason)
        service = services[0]
        return ServiceFound(
            service_arn=service.get("serviceArn", ""),
            status=service.get("status", ""),
            task_definition_arn=service.get("taskDefinition"),
        )

    def _create(
        self,
        service_name: str,
        task_spec: TaskSpecHandle,
        placement: NetworkPlacement,
    ) -> str:
        response = self._ecs.create_service(
            cluster=self._cluster,
            serviceName=service_name,
            taskDefinition=task_spec.task_definition_arn,
            desiredCount=DESIRED_COUNT,
            launchType="FARGATE",
            networkConfiguration={"awsvpcConfiguration": placement.awsvpc_configuration()},
            deploymentConfiguration=dict(DEPLOYMENT_CONFIGURATION),
        )
        return response["service"]["serviceArn"]

    def _update(self, service_name: str, task_spec: TaskSpecHandle) -> str:
        response = self._ecs.update_service(
            cluster=self._cluster,
            service=service_name,
            taskDefinition=task_spec.task_definition_arn,
            desiredCount=DESIRED_COUNT,
            forceNewDeployment=True,
            deploymentConfiguration=dict(DEPLOYMENT_CONFIGURATION),
        )
        return response["service"]["serviceArn"]

    def _wait_for_teardown(self, service_name: str) -> None:
        # Deletion is asynchronous; creating under the same name while the old
        # service is still draining is rejected by ECS.
        self._sleep(self._recovery_delay_seconds)
        for _ in range(self._recovery_poll_attempts):
            match self.describe(service_name):
                case ServiceAbsent() | ServiceFound(status="INACTIVE"):
                    return
                case DescribeFailed(error=error):
                    raise error
            self._sleep(self._recovery_delay_seconds)
        if self._recovery_poll_attempts:
            logger.warning("Service still draining, recreating anyway", service_name=service_name)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _create_absent(
        self,
        service_name: str,
        task_spec: TaskSpecHandle,
        placement: NetworkPlacement,
    ) -> ServiceHandle:
        try:
            service_arn = self._create(service_name, task_spec, placement)
        except (ClientError, BotoCoreError) as exc:
            raise ServiceCreateError(service_name, exc) from exc
        logger.info("Service created", service_arn=service_arn)
        return ServiceHandle(
            service_arn=service_arn,
            service_name=service_name,
            task_definition_arn=task_spec.task_definition_arn,
            action=ReconcileAction.CREATED,
        )

    def _update_existing(
        self,
        service_name: str,
        found: ServiceFound,
        task_spec: TaskSpecHandle,
        placement: NetworkPlacement,
    ) -> ServiceHandle:
        try:
            service_arn = self._update(service_name, task_spec)
        except ClientError as update_error:
            logger.warning(
                "Failed to update service, deleting and recreating",
                service_name=service_name,
                status=found.status,
                error=str(update_error),
            )
            return self._recreate(service_name, found, task_spec, placement, update_error)

        logger.info("Service updated", service_arn=service_arn, previous_status=found.status)
        return ServiceHandle(
            service_arn=service_arn,
            service_name=service_name,
            task_definition_arn=task_spec.task_definition_arn,
            action=ReconcileAction.UPDATED,
            previous_status=found.status,
        )

    def _recreate(
        self,
        service_name: str,
        found: ServiceFound,
        task_spec: TaskSpecHandle,
        placement: NetworkPlacement,
        update_error: ClientError,
    ) -> ServiceHandle:
        try:
            self._ecs.delete_service(cluster=self._cluster, service=service_name, force=True)
            logger.info("Deleted service", service_name=service_name)
            self._wait_for_teardown(service_name)
            service_arn = self._create(service_name, task_spec, placement)
        except (ClientError, BotoCoreError) as recovery_error:
            raise ServiceRecoveryError(
                service_name,
                update_error=update_error,
                recovery_error=recovery_error,
            ) from recovery_error

        logger.info("Service recreated", service_arn=service_arn)
        return ServiceHandle(
            service_arn=service_arn,
            service_name=service_name,
            task_definition_arn=task_spec.task_definition_arn,
            action=ReconcileAction.RECREATED,
            previous_status=found.status,
        )

    def reconcile(
        self,
        agent_id: str,
        task_spec: TaskSpecHandle,
        placement: NetworkPlacement,
    ) -> ServiceHandle:
        """Converge the agent's service onto ``task_spec`` with one running task."""
        self.check_preconditions(placement)
        service_name = AgentIdentity(agent_id).service_name
        logger.info("Reconciling service", service_name=service_name, cluster=self._cluster)

        match self.describe(service_name):
            case ServiceAbsent(reason=reason):
                logger.info("Service absent, creating", service_name=service_name, reason=reason)
                return self._create_absent(service_name, task_spec, placement)
            case ServiceFound() as found:
                return self._update_existing(service_name, found, task_spec, placement)
            case DescribeFailed(error=error):
                raise ServiceQueryError(service_name, error) from error
            case unexpected:
                raise TypeError(f"Unexpected describe outcome: {unexpected!r}")
