#!/usr/bin/env python3
"""
deploy_agent.py — Deploy or re-deploy one agent's ECS service from a terminal.

Runs the same log group / task definition / service reconciliation as the
deploy API, using the deployer settings from the environment. The agent's
secret key is read from an environment variable so it never lands in shell
history.

Usage:
    uv run python scripts/deploy_agent.py <agent_id> --address <addr> \
        [--image <image>] [--api-key-env HYPERLIQUID_PRIVATE_KEY]
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

from agent_deployer import (
    ConfigurationError,
    DeployerSettings,
    DeploymentCredentials,
    DeploymentError,
    DeploymentOrchestrator,
)

logger = logging.getLogger("deploy_agent")

DEFAULT_API_KEY_ENV = "HYPERLIQUID_PRIVATE_KEY"  # pragma: allowlist secret


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("agent_id", help="Agent identity (names the log group and service)")
    parser.add_argument("--address", required=True, help="On-chain address of the agent")
    parser.add_argument(
        "--image",
        default=None,
        help="Container image (default <ECR_REGISTRY>/<ECR_REPOSITORY>:latest)",
    )
    parser.add_argument(
        "--api-key-env",
        default=DEFAULT_API_KEY_ENV,
        help=f"Environment variable holding the agent's secret key (default {DEFAULT_API_KEY_ENV})",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    args = parse_args(argv)

    api_key = os.environ.get(args.api_key_env, "").strip()
    if not api_key:
        print(f"{args.api_key_env} is not set", file=sys.stderr)
        return 2

    try:
        settings = DeployerSettings.from_env()
        image = args.image or settings.default_image
        orchestrator = DeploymentOrchestrator.from_settings(settings)
        result = orchestrator.deploy(
            args.agent_id,
            image,
            DeploymentCredentials(api_key=api_key, address=args.address),
            settings.placement(),
        )
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    except DeploymentError as exc:
        logger.error("Deployment failed: %s", exc)
        return 1

    print(json.dumps(result.as_dict(), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
