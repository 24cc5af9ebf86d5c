"""
agent_deployer — Deploys long-lived trading agents as ECS Fargate services.

One agent, one service: every deployment provisions the agent's log group,
registers a fresh task definition revision and converges the agent's service
onto it with exactly one running task.
"""

from agent_deployer.config import DeployerSettings
from agent_deployer.exceptions import (
    ConfigurationError,
    DeploymentError,
    DeploymentInProgressError,
    DeploymentStageError,
    PlatformTimeoutError,
    ServiceCreateError,
    ServiceQueryError,
    ServiceRecoveryError,
)
from agent_deployer.models import (
    DeploymentCredentials,
    DeploymentResult,
    NetworkPlacement,
    ReconcileAction,
)
from agent_deployer.orchestrator import DeploymentOrchestrator

__all__ = [
    "ConfigurationError",
    "DeployerSettings",
    "DeploymentCredentials",
    "DeploymentError",
    "DeploymentInProgressError",
    "DeploymentOrchestrator",
    "DeploymentResult",
    "DeploymentStageError",
    "NetworkPlacement",
    "PlatformTimeoutError",
    "ReconcileAction",
    "ServiceCreateError",
    "ServiceQueryError",
    "ServiceRecoveryError",
]
