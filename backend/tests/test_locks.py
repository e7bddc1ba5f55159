import fakeredis
import pytest
from pydantic import BaseModel

from app.core.errors import LockTimeout
from app.core.locks import LockGateway, batch_create_lock_key, inventory_lock_key, tank_lock_key


class Echo(BaseModel):
    value: int


def test_key_layout() -> None:
    assert tank_lock_key("t1", 7) == "tank:t1:7"
    assert batch_create_lock_key("t1") == "batch:create:t1"
    assert inventory_lock_key("t1", 3) == "inventory:t1:3"


def test_with_lock_runs_and_releases(locks: LockGateway, redis_client: fakeredis.FakeRedis) -> None:
    seen: list[str | None] = []

    def work() -> int:
        seen.append(redis_client.get("tank:t1:1"))
        return 42

    assert locks.with_lock("tank:t1:1", work) == 42
    assert seen[0] is not None
    assert redis_client.get("tank:t1:1") is None


def test_with_lock_releases_on_error(locks: LockGateway, redis_client: fakeredis.FakeRedis) -> None:
    def boom() -> None:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        locks.with_lock("tank:t1:1", boom)

    assert redis_client.get("tank:t1:1") is None


def test_lock_timeout_after_bounded_retries(
    locks: LockGateway,
    redis_client: fakeredis.FakeRedis,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    delays: list[float] = []
    monkeypatch.setattr("app.core.locks.time.sleep", delays.append)
    redis_client.set("tank:t1:1", "someone-else")

    with pytest.raises(LockTimeout) as exc_info:
        locks.with_lock("tank:t1:1", lambda: None)

    assert exc_info.value.attempts == 3
    assert exc_info.value.retryable is True
    assert delays == [0.001, 0.002]
    assert redis_client.get("tank:t1:1") == "someone-else"


def test_release_requires_matching_token(locks: LockGateway, redis_client: fakeredis.FakeRedis) -> None:
    token = locks.acquire("tank:t1:1")
    # lock expired and was taken by another holder
    redis_client.set("tank:t1:1", "new-owner")

    assert locks.release("tank:t1:1", token) is False
    assert redis_client.get("tank:t1:1") == "new-owner"


def test_acquire_sets_expiry(locks: LockGateway, redis_client: fakeredis.FakeRedis) -> None:
    locks.acquire("tank:t1:1", ttl=2.0)

    ttl_ms = redis_client.pttl("tank:t1:1")
    assert 0 < ttl_ms <= 2000


def test_hold_many_takes_every_key(locks: LockGateway, redis_client: fakeredis.FakeRedis) -> None:
    keys = ["tank:t1:9", "tank:t1:2", "batch:create:t1", "tank:t1:2"]

    with locks.hold_many(keys) as ordered:
        assert ordered == sorted(set(keys))
        assert all(redis_client.get(key) is not None for key in ordered)

    assert all(redis_client.get(key) is None for key in keys)


def test_hold_many_releases_taken_keys_when_one_is_busy(
    locks: LockGateway,
    redis_client: fakeredis.FakeRedis,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr("app.core.locks.time.sleep", lambda _: None)
    redis_client.set("tank:t1:2", "busy")

    with pytest.raises(LockTimeout):
        with locks.hold_many(["tank:t1:1", "tank:t1:2"]):
            pass

    assert redis_client.get("tank:t1:1") is None
    assert redis_client.get("tank:t1:2") == "busy"


def test_idempotency_runs_once_per_key(locks: LockGateway) -> None:
    calls: list[int] = []

    def compute() -> Echo:
        calls.append(1)
        return Echo(value=len(calls))

    first = locks.with_idempotency("t1", "req-1", compute, Echo)
    second = locks.with_idempotency("t1", "req-1", compute, Echo)

    assert first == second == Echo(value=1)
    assert len(calls) == 1


def test_idempotency_is_scoped_per_tenant(locks: LockGateway) -> None:
    calls: list[str] = []

    def compute() -> Echo:
        calls.append("x")
        return Echo(value=len(calls))

    locks.with_idempotency("t1", "req-1", compute, Echo)
    other = locks.with_idempotency("t2", "req-1", compute, Echo)

    assert other == Echo(value=2)


def test_idempotency_does_not_cache_failures(locks: LockGateway) -> None:
    attempts: list[int] = []

    def flaky() -> Echo:
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("lost connection")
        return Echo(value=7)

    with pytest.raises(RuntimeError):
        locks.with_idempotency("t1", "req-2", flaky, Echo)

    assert locks.with_idempotency("t1", "req-2", flaky, Echo) == Echo(value=7)
    assert len(attempts) == 2


def test_idempotency_expires(locks: LockGateway, redis_client: fakeredis.FakeRedis) -> None:
    locks.with_idempotency("t1", "req-3", lambda: Echo(value=1), Echo, ttl=30)

    assert 0 < redis_client.pttl("idempotency:t1:req-3") <= 30000


def test_retry_count_must_be_positive(redis_client: fakeredis.FakeRedis) -> None:
    with pytest.raises(ValueError):
        LockGateway(redis_client, retry_count=0)


def test_retry_delay_is_capped(redis_client: fakeredis.FakeRedis, monkeypatch: pytest.MonkeyPatch) -> None:
    delays: list[float] = []
    monkeypatch.setattr("time.sleep", delays.append)
    gateway = LockGateway(redis_client, retry_count=5, retry_base_delay=0.01, retry_max_delay=0.03)
    redis_client.set("tank:t1:1", "someone-else")

    with pytest.raises(LockTimeout):
        gateway.acquire("tank:t1:1")

    assert delays == [0.01, 0.02, 0.03, 0.03]
