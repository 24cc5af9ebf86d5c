from __future__ import annotations

from agent_deployer.clients import build_clients
from agent_deployer.config import DeployerSettings


def test_clients_use_single_attempt_and_timeouts() -> None:
    clients = build_clients(DeployerSettings(aws_region="eu-west-2", call_timeout_seconds=7))

    for client in (clients.ecs, clients.logs):
        config = client.meta.config
        assert client.meta.region_name == "eu-west-2"
        assert config.connect_timeout == 7
        assert config.read_timeout == 7
        assert config.retries["total_max_attempts"] == 1
    assert clients.dynamodb is None


def test_dynamodb_client_only_with_lock_table() -> None:
    clients = build_clients(
        DeployerSettings(aws_region="eu-west-2", lock_table="platform-ops-locks")
    )
    assert clients.dynamodb is not None
    assert clients.dynamodb.meta.service_model.service_name == "dynamodb"
