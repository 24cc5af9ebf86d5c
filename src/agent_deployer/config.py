"""
agent_deployer.config — Deployer settings read from the process environment.

Settings are resolved once per process (``DeployerSettings.from_env()``) and
passed explicitly to the components that need them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from agent_deployer.exceptions import ConfigurationError
from agent_deployer.models import NetworkPlacement

DEFAULT_CLUSTER = "hyperliquid-agents"
DEFAULT_REPOSITORY = "hyperliquid-agent"
DEFAULT_AI_ENGINE_URL = "http://localhost:8000"
DEFAULT_TASK_CPU = "512"
DEFAULT_TASK_MEMORY = "1024"
DEFAULT_WORKER_PROCESS = "node agentRunner.js"
DEFAULT_LOG_RETENTION_DAYS = 30
DEFAULT_RECOVERY_DELAY_SECONDS = 2.0
DEFAULT_RECOVERY_POLL_ATTEMPTS = 5
DEFAULT_CALL_TIMEOUT_SECONDS = 30
DEFAULT_LOCK_WAIT_SECONDS = 120.0


def require_aws_region() -> str:
    """Read AWS_REGION from environment and fail fast if missing."""
    region = os.environ.get("AWS_REGION", "").strip()
    if not region:
        raise ConfigurationError("AWS_REGION environment variable not set")
    return region


def _env_str(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _env_optional(name: str) -> str | None:
    return _env_str(name) or None


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _env_list(name: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in _env_str(name).split(",") if part.strip())


@dataclass(frozen=True)
class DeployerSettings:
    aws_region: str
    cluster: str = DEFAULT_CLUSTER
    subnet_ids: tuple[str, ...] = ()
    security_group_ids: tuple[str, ...] = ()
    assign_public_ip: bool = False
    execution_role_arn: str | None = None
    task_role_arn: str | None = None
    ecr_registry: str = ""
    ecr_repository: str = DEFAULT_REPOSITORY
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_key: str = ""
    ai_engine_url: str = DEFAULT_AI_ENGINE_URL
    task_cpu: str = DEFAULT_TASK_CPU
    task_memory: str = DEFAULT_TASK_MEMORY
    worker_process: str = DEFAULT_WORKER_PROCESS
    log_retention_days: int = DEFAULT_LOG_RETENTION_DAYS
    recovery_delay_seconds: float = DEFAULT_RECOVERY_DELAY_SECONDS
    recovery_poll_attempts: int = DEFAULT_RECOVERY_POLL_ATTEMPTS
    call_timeout_seconds: int = DEFAULT_CALL_TIMEOUT_SECONDS
    lock_table: str | None = None
    lock_wait_seconds: float = DEFAULT_LOCK_WAIT_SECONDS

    @classmethod
    def from_env(cls) -> DeployerSettings:
        region = require_aws_region()
        registry = _env_str("ECR_REGISTRY")
        if not registry:
            account_id = _env_str("AWS_ACCOUNT_ID")
            registry = f"{account_id}.dkr.ecr.{region}.amazonaws.com" if account_id else ""
        return cls(
            aws_region=region,
            cluster=_env_str("ECS_CLUSTER", DEFAULT_CLUSTER),
            subnet_ids=_env_list("SUBNET_IDS"),
            security_group_ids=_env_list("SECURITY_GROUP_IDS"),
            assign_public_ip=_env_bool("ASSIGN_PUBLIC_IP"),
            execution_role_arn=_env_optional("ECS_EXECUTION_ROLE_ARN"),
            task_role_arn=_env_optional("ECS_TASK_ROLE_ARN"),
            ecr_registry=registry,
            ecr_repository=_env_str("ECR_REPOSITORY", DEFAULT_REPOSITORY),
            supabase_url=_env_str("SUPABASE_URL"),
            supabase_anon_key=_env_str("SUPABASE_ANON_KEY"),
            supabase_service_key=_env_str("SUPABASE_SERVICE_KEY"),
            ai_engine_url=_env_str("AI_ENGINE_URL", DEFAULT_AI_ENGINE_URL),
            task_cpu=_env_str("TASK_CPU", DEFAULT_TASK_CPU),
            task_memory=_env_str("TASK_MEMORY", DEFAULT_TASK_MEMORY),
            worker_process=_env_str("WORKER_PROCESS", DEFAULT_WORKER_PROCESS),
            log_retention_days=_env_int("LOG_RETENTION_DAYS", DEFAULT_LOG_RETENTION_DAYS),
            recovery_delay_seconds=_env_float(
                "RECOVERY_DELAY_SECONDS", DEFAULT_RECOVERY_DELAY_SECONDS
            ),
            recovery_poll_attempts=_env_int(
                "RECOVERY_POLL_ATTEMPTS", DEFAULT_RECOVERY_POLL_ATTEMPTS
            ),
            call_timeout_seconds=_env_int(
                "PLATFORM_CALL_TIMEOUT_SECONDS", DEFAULT_CALL_TIMEOUT_SECONDS
            ),
            lock_table=_env_optional("DEPLOY_LOCK_TABLE"),
            lock_wait_seconds=_env_float("DEPLOY_LOCK_WAIT_SECONDS", DEFAULT_LOCK_WAIT_SECONDS),
        )

    @property
    def default_image(self) -> str:
        if not self.ecr_registry:
            raise ConfigurationError("ECR_REGISTRY or AWS_ACCOUNT_ID must be set")
        return f"{self.ecr_registry}/{self.ecr_repository}:latest"

    def placement(self) -> NetworkPlacement:
        return NetworkPlacement(
            subnets=self.subnet_ids,
            security_groups=self.security_group_ids,
            assign_public_ip=self.assign_public_ip,
        )
