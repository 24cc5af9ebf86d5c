"""
agent_deployer.locks — Per-agent deployment locks.

Two deployments for the same agent must not interleave their describe,
update, delete and create calls. Deployments for different agents never
contend.

InProcessAgentLock serializes deployments inside one process. When several
processes deploy (concurrent Lambda invocations, operators running the CLI),
DynamoDBAgentLock keeps a conditional-put lock record per agent:

    PK:  LOCK#agent-{agentId}
    SK:  METADATA
    TTL: 5 minutes (an abandoned lock expires instead of blocking forever)
"""

from __future__ import annotations

import os
import socket
import threading
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol
from uuid import uuid4

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from agent_deployer.config import DEFAULT_LOCK_WAIT_SECONDS
from agent_deployer.exceptions import DeploymentInProgressError

logger = Logger(service="agent-deployer")

DEFAULT_LOCK_TTL_SECONDS = 300


class AgentLock(Protocol):
    def hold(self, agent_id: str) -> AbstractContextManager[None]: ...


class InProcessAgentLock:
    """One ``threading.Lock`` per agent id, dropped once nobody waits on it."""

    def __init__(self, *, wait_seconds: float = DEFAULT_LOCK_WAIT_SECONDS) -> None:
        self._wait_seconds = wait_seconds
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._users: dict[str, int] = {}

    def is_held(self, agent_id: str) -> bool:
        with self._guard:
            lock = self._locks.get(agent_id)
            return lock is not None and lock.locked()

    @contextmanager
    def hold(self, agent_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(agent_id, threading.Lock())
            self._users[agent_id] = self._users.get(agent_id, 0) + 1
        try:
            if not lock.acquire(timeout=self._wait_seconds):
                raise DeploymentInProgressError(agent_id)
            try:
                yield
            finally:
                lock.release()
        finally:
            with self._guard:
                self._users[agent_id] -= 1
                if self._users[agent_id] == 0:
                    del self._users[agent_id]
                    del self._locks[agent_id]


# ---------------------------------------------------------------------------
# DynamoDB-backed lock
# ---------------------------------------------------------------------------


class LockOwnershipError(RuntimeError):
    """Raised when release fails because the lock now belongs to someone else."""


@dataclass(frozen=True)
class LockRecord:
    agent_id: str
    lock_id: str
    acquired_by: str
    acquired_at: str
    ttl: int

    @property
    def pk(self) -> str:
        return lock_pk(self.agent_id)

    @property
    def sk(self) -> str:
        return "METADATA"


def lock_pk(agent_id: str) -> str:
    return f"LOCK#agent-{agent_id}"


def now_utc() -> datetime:
    return datetime.now(UTC)


def iso8601_utc(dt: datetime) -> str:
    return dt.astimezone(UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


def default_owner() -> str:
    user = os.environ.get("USER") or os.environ.get("USERNAME") or "unknown"
    host = socket.gethostname() or "unknown-host"
    return f"agent-deployer:{user}@{host}"


def _is_conditional_check_failed(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class DynamoDBAgentLock:
    def __init__(
        self,
        ddb_client: Any,
        *,
        table_name: str,
        owner: str | None = None,
        ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._ddb = ddb_client
        self._table_name = table_name
        self._owner = owner or default_owner()
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    def acquire(self, agent_id: str) -> LockRecord:
        current_time = self._clock()
        now_epoch = int(current_time.timestamp())
        record = LockRecord(
            agent_id=agent_id,
            lock_id=str(uuid4()),
            acquired_by=self._owner,
            acquired_at=iso8601_utc(current_time),
            ttl=now_epoch + self._ttl_seconds,
        )
        item = {
            "PK": {"S": record.pk},
            "SK": {"S": record.sk},
            "agentId": {"S": record.agent_id},
            "lockId": {"S": record.lock_id},
            "acquiredBy": {"S": record.acquired_by},
            "acquiredAt": {"S": record.acquired_at},
            "ttl": {"N": str(record.ttl)},
        }
        try:
            # DynamoDB TTL deletion lags; an expired record is free to take over.
            self._ddb.put_item(
                TableName=self._table_name,
                Item=item,
                ConditionExpression="attribute_not_exists(PK) OR #ttl < :now",
                ExpressionAttributeNames={"#ttl": "ttl"},
                ExpressionAttributeValues={":now": {"N": str(now_epoch)}},
            )
        except ClientError as exc:
            if _is_conditional_check_failed(exc):
                raise DeploymentInProgressError(agent_id) from exc
            raise
        return record

    def release(self, record: LockRecord) -> bool:
        try:
            response = self._ddb.delete_item(
                TableName=self._table_name,
                Key={"PK": {"S": record.pk}, "SK": {"S": record.sk}},
                ConditionExpression="lockId = :lock_id",
                ExpressionAttributeValues={":lock_id": {"S": record.lock_id}},
                ReturnValues="ALL_OLD",
            )
        except ClientError as exc:
            if _is_conditional_check_failed(exc):
                raise LockOwnershipError(
                    f"Lock ownership mismatch for agent {record.agent_id}; refusing to release"
                ) from exc
            raise
        return "Attributes" in response

    @contextmanager
    def hold(self, agent_id: str) -> Iterator[None]:
        record = self.acquire(agent_id)
        try:
            yield
        finally:
            try:
                self.release(record)
            except LockOwnershipError:
                # Lock expired and was taken over; the new holder owns the record now.
                logger.warning("Deploy lock expired before release", agent_id=agent_id)
            except (ClientError, BotoCoreError) as exc:
                # The record expires through its TTL.
                logger.warning(
                    "Deploy lock release failed", agent_id=agent_id, error=str(exc)
                )
