"""
agent_deployer.exceptions — Deployment failure taxonomy.

Only two AWS failures are ever swallowed by this package: an already-existing
log group and a failed retention policy. Everything else surfaces as one of
the errors below, with the underlying AWS error chained as ``__cause__``.
"""

from __future__ import annotations


class DeploymentError(RuntimeError):
    """Base class for every failure raised by the deployment engine."""


class ConfigurationError(DeploymentError):
    """Raised before any platform call when placement or roles are missing."""


class DeploymentInProgressError(DeploymentError):
    """Raised when another deployment for the same agent holds the agent lock."""

    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        super().__init__(f"Deployment already in progress for agent {agent_id!r}")


class ServiceQueryError(DeploymentError):
    """Raised when describing the service fails for a reason other than not-found."""

    def __init__(self, service_name: str, error: Exception) -> None:
        self.service_name = service_name
        self.error = error
        super().__init__(f"Failed to check service status for {service_name}: {error}")


class ServiceCreateError(DeploymentError):
    """Raised when creating a service that did not exist fails."""

    def __init__(self, service_name: str, error: Exception) -> None:
        self.service_name = service_name
        self.error = error
        super().__init__(f"Failed to create service {service_name}: {error}")


class ServiceRecoveryError(DeploymentError):
    """
    Raised when an update was rejected and the delete-then-recreate path also failed.

    Attributes:
        service_name:   ECS service that could not be converged.
        update_error:   The rejection that triggered recovery.
        recovery_error: The failure raised by delete, drain wait or recreate.
    """

    def __init__(
        self,
        service_name: str,
        *,
        update_error: Exception,
        recovery_error: Exception,
    ) -> None:
        self.service_name = service_name
        self.update_error = update_error
        self.recovery_error = recovery_error
        super().__init__(
            f"Failed to update or recreate service {service_name}: {update_error}. "
            f"Recovery attempt: {recovery_error}"
        )


class DeploymentStageError(DeploymentError):
    """Raised by the orchestrator when a stage fails; names the stage that aborted."""

    def __init__(self, stage: str, agent_id: str, error: Exception) -> None:
        self.stage = stage
        self.agent_id = agent_id
        self.error = error
        super().__init__(f"Deployment of agent {agent_id!r} failed at stage {stage!r}: {error}")


class PlatformTimeoutError(DeploymentStageError):
    """A platform call exceeded its configured timeout. Never retried."""
