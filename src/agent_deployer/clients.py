"""
agent_deployer.clients — boto3 clients shared by every deployment in the process.

Clients are created once and injected into the components. Each one has an
explicit connect/read timeout and a single attempt, so a hung or failed call
surfaces immediately instead of being retried behind the caller's back.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import boto3
from botocore.config import Config

from agent_deployer.config import DeployerSettings


@dataclass(frozen=True)
class PlatformClients:
    ecs: Any
    logs: Any
    dynamodb: Any | None = None


def client_config(timeout_seconds: int) -> Config:
    return Config(
        connect_timeout=timeout_seconds,
        read_timeout=timeout_seconds,
        retries={"total_max_attempts": 1, "mode": "standard"},
    )


def build_clients(settings: DeployerSettings) -> PlatformClients:
    session = boto3.session.Session(region_name=settings.aws_region)
    config = client_config(settings.call_timeout_seconds)
    return PlatformClients(
        ecs=session.client("ecs", config=config),
        logs=session.client("logs", config=config),
        dynamodb=session.client("dynamodb", config=config) if settings.lock_table else None,
    )
