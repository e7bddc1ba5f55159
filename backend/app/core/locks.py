"""Redis-backed mutual exclusion and request deduplication.

Locks are plain ``SET key token NX PX ttl`` entries. The random token proves
ownership: release only deletes the key while it still holds our token, so a
holder whose lock already expired cannot free somebody else's lock.
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from collections.abc import Callable, Iterable, Iterator
from contextlib import ExitStack, contextmanager
from functools import lru_cache
from typing import TypeVar

import redis
from pydantic import BaseModel
from redis.exceptions import WatchError
from tenacity import RetryCallState, RetryError, Retrying, retry_if_result, stop_after_attempt, wait_exponential

from app.core.config import settings
from app.core.errors import LockTimeout

logger = logging.getLogger("tankplanner.locks")

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


def tank_lock_key(tenant_id: str, tank_id: int) -> str:
    return f"tank:{tenant_id}:{tank_id}"


def batch_create_lock_key(tenant_id: str) -> str:
    return f"batch:create:{tenant_id}"


def inventory_lock_key(tenant_id: str, item_id: int) -> str:
    return f"inventory:{tenant_id}:{item_id}"


def _as_text(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class LockGateway:
    def __init__(
        self,
        client: redis.Redis,
        *,
        retry_count: int = settings.lock_retry_count,
        retry_base_delay: float = settings.lock_retry_base_delay_seconds,
        retry_max_delay: float = settings.lock_retry_max_delay_seconds,
        lock_ttl: float = settings.lock_ttl_seconds,
        idempotency_ttl: float = settings.idempotency_ttl_seconds,
    ) -> None:
        if retry_count < 1:
            raise ValueError("retry_count must be at least 1")
        self._client = client
        self.retry_count = retry_count
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self.lock_ttl = lock_ttl
        self.idempotency_ttl = idempotency_ttl

    @property
    def client(self) -> redis.Redis:
        return self._client

    def try_acquire(self, key: str, ttl: float | None = None) -> str | None:
        token = secrets.token_hex(16)
        ttl_ms = max(1, int((ttl or self.lock_ttl) * 1000))
        if self._client.set(key, token, nx=True, px=ttl_ms):
            return token
        return None

    def acquire(self, key: str, ttl: float | None = None) -> str:
        def log_busy(retry_state: RetryCallState) -> None:
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            logger.debug(
                json.dumps({"event": "lock_busy", "key": key, "attempt": retry_state.attempt_number, "delay_s": delay})
            )

        retrying = Retrying(
            stop=stop_after_attempt(self.retry_count),
            wait=wait_exponential(multiplier=self.retry_base_delay, max=self.retry_max_delay),
            retry=retry_if_result(lambda token: token is None),
            before_sleep=log_busy,
            sleep=time.sleep,
        )
        try:
            return retrying(self.try_acquire, key, ttl)
        except RetryError:
            logger.warning(json.dumps({"event": "lock_timeout", "key": key, "attempts": self.retry_count}))
            raise LockTimeout(key, self.retry_count) from None

    def release(self, key: str, token: str) -> bool:
        with self._client.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(key)
                    if _as_text(pipe.get(key)) != token:
                        pipe.unwatch()
                        logger.warning(json.dumps({"event": "lock_lost", "key": key}))
                        return False
                    pipe.multi()
                    pipe.delete(key)
                    pipe.execute()
                    return True
                except WatchError:
                    continue

    @contextmanager
    def hold(self, key: str, ttl: float | None = None) -> Iterator[str]:
        token = self.acquire(key, ttl)
        try:
            yield token
        finally:
            self.release(key, token)

    @contextmanager
    def hold_many(self, keys: Iterable[str], ttl: float | None = None) -> Iterator[list[str]]:
        ordered = sorted(set(keys))
        with ExitStack() as stack:
            for key in ordered:
                stack.enter_context(self.hold(key, ttl))
            yield ordered

    def with_lock(self, key: str, fn: Callable[[], T], ttl: float | None = None) -> T:
        with self.hold(key, ttl):
            return fn()

    def with_idempotency(
        self,
        tenant_id: str,
        key: str,
        fn: Callable[[], M],
        model: type[M],
        ttl: float | None = None,
    ) -> M:
        cache_key = f"idempotency:{tenant_id}:{key}"

        cached = _as_text(self._client.get(cache_key))
        if cached is not None:
            logger.info(json.dumps({"event": "idempotent_replay", "tenant_id": tenant_id, "key": key}))
            return model.model_validate_json(cached)

        with self.hold(f"idempotency-lock:{tenant_id}:{key}"):
            cached = _as_text(self._client.get(cache_key))
            if cached is not None:
                logger.info(json.dumps({"event": "idempotent_replay", "tenant_id": tenant_id, "key": key}))
                return model.model_validate_json(cached)

            result = fn()
            ttl_ms = max(1, int((ttl or self.idempotency_ttl) * 1000))
            self._client.set(cache_key, result.model_dump_json(), px=ttl_ms)
            return result


@lru_cache
def _redis_client() -> redis.Redis:
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)


def get_lock_gateway() -> LockGateway:
    return LockGateway(_redis_client())
