"""
deploy_api.records — Agent bookkeeping rows in the datastore's REST API.

Rows go through three states: ``deploying`` when the request is accepted,
then ``running`` once the service is converged, or ``error`` if deployment
failed. The deployment engine itself never touches these rows.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import requests
from aws_lambda_powertools import Logger

from agent_deployer.models import DeploymentResult
from deploy_api.codegen import GeneratedCode

logger = Logger(service="deploy-api")

AGENTS_TABLE = "agents"
DEFAULT_TIMEOUT_SECONDS = 15


class AgentRecordError(RuntimeError):
    """Raised when an agent row cannot be written."""


def _now_utc() -> datetime:
    return datetime.now(UTC)


def _iso(dt: datetime) -> str:
    return dt.replace(microsecond=0).isoformat().replace("+00:00", "Z")


class AgentRecordStore:
    def __init__(
        self,
        base_url: str,
        service_key: str,
        *,
        session: Any = None,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._endpoint = f"{base_url.rstrip('/')}/rest/v1/{AGENTS_TABLE}"
        self._service_key = service_key
        self._session = session or requests.Session()
        self._timeout_seconds = timeout_seconds

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    def _send(self, method: str, *, params: dict[str, str] | None, body: dict[str, Any]) -> Any:
        try:
            response = self._session.request(
                method,
                self._endpoint,
                params=params,
                json=body,
                headers=self._headers(),
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            raise AgentRecordError(f"Agent record request failed: {exc}") from exc
        if response.status_code >= 400:
            raise AgentRecordError(
                f"Agent record {method} failed: HTTP {response.status_code} {response.text}"
            )
        return response.json() if response.content else None

    def create(
        self,
        *,
        user_id: str,
        agent_name: str,
        strategy_description: str,
        address: str,
        code: GeneratedCode,
        cluster: str,
        repository: str,
    ) -> dict[str, Any]:
        rows = self._send(
            "POST",
            params=None,
            body={
                "user_id": user_id,
                "agent_name": agent_name,
                "strategy_description": strategy_description,
                "initialization_code": code.initialization_code,
                "trigger_code": code.trigger_code,
                "execution_code": code.execution_code,
                "status": "deploying",
                "instruction": "RUN",
                "agent_deployed": False,
                "hyperliquid_address": address,
                "deployment": {"ecr_repository": repository, "ecs_cluster": cluster},
            },
        )
        row = rows[0] if isinstance(rows, list) and rows else rows
        if not isinstance(row, dict) or "id" not in row:
            raise AgentRecordError("Agent insert returned no row")
        logger.info("Agent record created", agent_id=row["id"])
        return row

    def mark_deployed(self, agent_id: str, result: DeploymentResult) -> None:
        now = _iso(_now_utc())
        self._send(
            "PATCH",
            params={"id": f"eq.{agent_id}"},
            body={
                "status": "running",
                "agent_deployed": True,
                "deployment": {
                    "service_arn": result.service_arn,
                    "task_definition_arn": result.task_definition_arn,
                    "log_group": result.log_group_name,
                    "log_url": result.log_url,
                    "deployed_at": now,
                },
                "updated_at": now,
            },
        )
        logger.info("Agent record updated with deployment info", agent_id=agent_id)

    def mark_failed(self, agent_id: str) -> None:
        self._send(
            "PATCH",
            params={"id": f"eq.{agent_id}"},
            body={"status": "error", "updated_at": _iso(_now_utc())},
        )
