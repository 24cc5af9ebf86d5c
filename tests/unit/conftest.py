from __future__ import annotations

import copy
from typing import Any

import pytest
from botocore.exceptions import ClientError

REGION = "eu-west-2"
ACCOUNT_ID = "123456789012"
CLUSTER = "hyperliquid-agents"
EXECUTION_ROLE_ARN = f"arn:aws:iam::{ACCOUNT_ID}:role/ecsTaskExecutionRole"


def client_error(code: str, message: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


@pytest.fixture(autouse=True)
def aws_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Mocked AWS credentials and region for boto3/moto."""
    monkeypatch.setenv("AWS_REGION", REGION)
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")  # pragma: allowlist secret
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")


class FakeEcs:
    """In-memory stand-in for the ECS calls the deployer makes.

    Set ``describe_error``, ``update_error``, ``delete_error`` or
    ``create_errors`` (consumed one per create call) to make a call fail.
    Deleted services stay visible as INACTIVE, as they do on ECS.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.services: dict[str, dict[str, Any]] = {}
        self.task_definitions: dict[str, dict[str, Any]] = {}
        self.revisions: dict[str, int] = {}
        self.describe_error: Exception | None = None
        self.register_error: Exception | None = None
        self.update_error: Exception | None = None
        self.delete_error: Exception | None = None
        self.create_errors: list[Exception] = []

    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]

    def kwargs_for(self, operation: str) -> list[dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == operation]

    def seed_service(self, name: str, *, status: str = "ACTIVE", task_definition: str = "") -> None:
        self.services[name] = {
            "serviceArn": f"arn:aws:ecs:eu-west-2:{ACCOUNT_ID}:service/{CLUSTER}/{name}",
            "serviceName": name,
            "status": status,
            "taskDefinition": task_definition,
            "desiredCount": 1,
            "runningCount": 1 if status == "ACTIVE" else 0,
        }

    def register_task_definition(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("register_task_definition", copy.deepcopy(kwargs)))
        if self.register_error is not None:
            raise self.register_error
        family = kwargs["family"]
        revision = self.revisions.get(family, 0) + 1
        self.revisions[family] = revision
        arn = f"arn:aws:ecs:eu-west-2:{ACCOUNT_ID}:task-definition/{family}:{revision}"
        definition = {**kwargs, "taskDefinitionArn": arn, "revision": revision}
        self.task_definitions[arn] = definition
        return {"taskDefinition": copy.deepcopy(definition)}

    def describe_services(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("describe_services", copy.deepcopy(kwargs)))
        if self.describe_error is not None:
            raise self.describe_error
        name = kwargs["services"][0]
        service = self.services.get(name)
        if service is None:
            return {
                "services": [],
                "failures": [
                    {
                        "arn": f"arn:aws:ecs:eu-west-2:{ACCOUNT_ID}:service/{CLUSTER}/{name}",
                        "reason": "MISSING",
                    }
                ],
            }
        return {"services": [dict(service)], "failures": []}

    def create_service(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("create_service", copy.deepcopy(kwargs)))
        if self.create_errors:
            raise self.create_errors.pop(0)
        name = kwargs["serviceName"]
        self.seed_service(name, task_definition=kwargs["taskDefinition"])
        return {"service": dict(self.services[name])}

    def update_service(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("update_service", copy.deepcopy(kwargs)))
        if self.update_error is not None:
            raise self.update_error
        service = self.services[kwargs["service"]]
        service["taskDefinition"] = kwargs["taskDefinition"]
        return {"service": dict(service)}

    def delete_service(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("delete_service", copy.deepcopy(kwargs)))
        if self.delete_error is not None:
            raise self.delete_error
        service = self.services[kwargs["service"]]
        service["status"] = "INACTIVE"
        service["runningCount"] = 0
        return {"service": dict(service)}


class FakeLogs:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.groups: dict[str, int | None] = {}
        self.create_error: Exception | None = None
        self.retention_error: Exception | None = None

    def create_log_group(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("create_log_group", kwargs))
        if self.create_error is not None:
            raise self.create_error
        name = kwargs["logGroupName"]
        if name in self.groups:
            raise client_error(
                "ResourceAlreadyExistsException",
                "The specified log group already exists",
                "CreateLogGroup",
            )
        self.groups[name] = None
        return {}

    def put_retention_policy(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("put_retention_policy", kwargs))
        if self.retention_error is not None:
            raise self.retention_error
        self.groups[kwargs["logGroupName"]] = kwargs["retentionInDays"]
        return {}


@pytest.fixture
def fake_ecs() -> FakeEcs:
    return FakeEcs()


@pytest.fixture
def fake_logs() -> FakeLogs:
    return FakeLogs()


@pytest.fixture
def sleeps() -> list[float]:
    return []
