"""
deploy_api.codegen — Client for the strategy code generation service.

The service turns a natural-language strategy into three code fragments
(initialization, trigger, execution). The deployer never inspects them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import requests
from aws_lambda_powertools import Logger

logger = Logger(service="deploy-api")

DEFAULT_TIMEOUT_SECONDS = 120


class CodeGenerationError(RuntimeError):
    """Raised when the code generation service fails or reports failure."""


@dataclass(frozen=True)
class GeneratedCode:
    initialization_code: str
    trigger_code: str
    execution_code: str


class CodeGenerationClient:
    def __init__(
        self,
        base_url: str,
        *,
        session: Any = None,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout_seconds = timeout_seconds

    def generate(self, strategy_description: str) -> GeneratedCode:
        logger.info("Requesting agent code", engine_url=self._base_url)
        try:
            response = self._session.post(
                f"{self._base_url}/generate",
                json={"strategy_description": strategy_description},
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            raise CodeGenerationError(f"Code generation request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        if response.status_code >= 400 or not payload.get("success"):
            message = payload.get("error") or f"HTTP {response.status_code}"
            raise CodeGenerationError(f"Code generation failed: {message}")

        return GeneratedCode(
            initialization_code=str(payload.get("initialization_code") or ""),
            trigger_code=str(payload.get("trigger_code") or ""),
            execution_code=str(payload.get("execution_code") or ""),
        )
