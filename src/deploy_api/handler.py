"""
deploy_api.handler — Agent deployment REST API Lambda.

Routes:
    POST /deploy   generate strategy code, record the agent, deploy its service
    GET  /status   liveness

The deployment engine, code generation client and record store are built
once per Lambda container and reused across invocations.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from aws_lambda_powertools import Logger
from botocore.exceptions import ClientError

from agent_deployer import (
    DeployerSettings,
    DeploymentCredentials,
    DeploymentError,
    DeploymentOrchestrator,
)
from deploy_api.codegen import CodeGenerationClient, CodeGenerationError
from deploy_api.records import AgentRecordError, AgentRecordStore

logger = Logger(service="deploy-api")

SERVICE_NAME = "hyperliquid-deployer"
_REQUIRED_FIELDS = ("userId", "agentName", "strategyDescription", "hyperliquidAddress", "apiKey")


@dataclass(frozen=True)
class DeployApiDependencies:
    settings: DeployerSettings
    orchestrator: DeploymentOrchestrator
    codegen: CodeGenerationClient
    records: AgentRecordStore


_deps: DeployApiDependencies | None = None


def _dependencies() -> DeployApiDependencies:
    global _deps
    if _deps is None:
        settings = DeployerSettings.from_env()
        _deps = DeployApiDependencies(
            settings=settings,
            orchestrator=DeploymentOrchestrator.from_settings(settings),
            codegen=CodeGenerationClient(settings.ai_engine_url),
            records=AgentRecordStore(settings.supabase_url, settings.supabase_service_key),
        )
    return _deps


def _response(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def _failure(status_code: int, message: str) -> dict[str, Any]:
    return _response(status_code, {"success": False, "error": message})


def _http_method(event: dict[str, Any]) -> str:
    method = event.get("httpMethod")
    if not method:
        method = event.get("requestContext", {}).get("http", {}).get("method")
    return str(method or "").upper()


def _request_path(event: dict[str, Any]) -> str:
    path = event.get("path")
    if not path:
        path = event.get("requestContext", {}).get("http", {}).get("path")
    return str(path or "").rstrip("/")


def _require_json_body(event: dict[str, Any]) -> dict[str, Any]:
    raw_body = event.get("body")
    if raw_body is None:
        raise ValueError("Request body is required")
    if not isinstance(raw_body, str):
        raise ValueError("Request body must be a JSON string")
    try:
        body = json.loads(raw_body)
    except json.JSONDecodeError as exc:
        raise ValueError("Malformed JSON body") from exc
    if not isinstance(body, dict):
        raise ValueError("JSON body must be an object")
    return body


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _handle_deploy(event: dict[str, Any], deps: DeployApiDependencies) -> dict[str, Any]:
    body = _require_json_body(event)
    fields = {name: _str_or_none(body.get(name)) for name in _REQUIRED_FIELDS}
    if not all(fields.values()):
        return _failure(400, "Missing required fields")

    code = deps.codegen.generate(str(fields["strategyDescription"]))
    agent = deps.records.create(
        user_id=str(fields["userId"]),
        agent_name=str(fields["agentName"]),
        strategy_description=str(fields["strategyDescription"]),
        address=str(fields["hyperliquidAddress"]),
        code=code,
        cluster=deps.settings.cluster,
        repository=deps.settings.ecr_repository,
    )
    agent_id = str(agent["id"])

    try:
        result = deps.orchestrator.deploy(
            agent_id,
            deps.settings.default_image,
            DeploymentCredentials(
                api_key=str(fields["apiKey"]),
                address=str(fields["hyperliquidAddress"]),
            ),
            deps.settings.placement(),
        )
        deps.records.mark_deployed(agent_id, result)
    except Exception:
        logger.exception("Deployment failed", agent_id=agent_id)
        try:
            deps.records.mark_failed(agent_id)
        except AgentRecordError:
            logger.exception("Failed to update agent status", agent_id=agent_id)
        raise

    return _response(
        200,
        {
            "success": True,
            "agentId": agent_id,
            "serviceArn": result.service_arn,
            "taskDefArn": result.task_definition_arn,
            "logUrl": result.log_url,
            "status": "running",
        },
    )


@logger.inject_lambda_context(clear_state=True, log_event=False)
def lambda_handler(event: dict[str, Any], _context: Any) -> dict[str, Any]:
    method = _http_method(event)
    path = _request_path(event)

    if path == "/status" and method == "GET":
        return _response(200, {"status": "running", "service": SERVICE_NAME})

    try:
        if path == "/deploy" and method == "POST":
            return _handle_deploy(event, _dependencies())
        return _failure(405, "Unsupported deployer route")
    except ValueError as exc:
        return _failure(400, str(exc))
    except (CodeGenerationError, AgentRecordError, DeploymentError) as exc:
        logger.error("Deployment request failed", error=str(exc))
        return _failure(500, str(exc))
    except ClientError as exc:
        logger.exception("AWS client error in deploy API handler")
        return _failure(502, exc.response.get("Error", {}).get("Code", "Unknown"))
    except Exception:
        logger.exception("Unhandled deploy API handler error")
        return _failure(500, "Internal server error")
