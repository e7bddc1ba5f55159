from collections.abc import Callable, Generator
from datetime import datetime

import fakeredis
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.core.database import Base
from app.core.locks import LockGateway
from app.models.batch import Batch
from app.models.enums import BatchStatus, TankType
from app.models.tank import Tank
from app.repositories.scheduling import SchedulingRepository
from app.schemas.batch import BatchCreate
from app.schemas.tank import TankCreate
from app.services import lifecycle, registry
from app.services.scheduler import TankScheduler

TENANT = "brewery-a"
ACTOR = "head-brewer"


def at(day: int, hour: int = 0, month: int = 6) -> datetime:
    return datetime(2026, month, day, hour)


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def redis_client() -> Generator[fakeredis.FakeRedis, None, None]:
    client = fakeredis.FakeRedis(decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture
def locks(redis_client: fakeredis.FakeRedis) -> LockGateway:
    return LockGateway(
        redis_client,
        retry_count=3,
        retry_base_delay=0.001,
        lock_ttl=5.0,
        idempotency_ttl=60.0,
    )


@pytest.fixture
def repo(db_session: Session) -> SchedulingRepository:
    return SchedulingRepository(db_session, TENANT)


@pytest.fixture
def scheduler(repo: SchedulingRepository, locks: LockGateway) -> TankScheduler:
    return TankScheduler(repo, locks)


@pytest.fixture
def make_tank(repo: SchedulingRepository) -> Callable[..., Tank]:
    def _make(name: str = "FV-1", capacity: float = 1000.0, tank_type: TankType = TankType.FERMENTER) -> Tank:
        return registry.create_tank(repo, TankCreate(name=name, type=tank_type, capacity_liters=capacity))

    return _make


@pytest.fixture
def make_batch(repo: SchedulingRepository) -> Callable[..., Batch]:
    def _make(
        volume: float = 500.0,
        status: BatchStatus = BatchStatus.PLANNED,
        original_gravity: float | None = None,
    ) -> Batch:
        batch = lifecycle.create_batch(
            repo,
            ACTOR,
            BatchCreate(volume_liters=volume, original_gravity=original_gravity),
        )
        if status != BatchStatus.PLANNED:
            batch.status = status.value
            repo.db.commit()
            repo.refresh(batch)
        return batch

    return _make
