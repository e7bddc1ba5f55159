import re

import pydantic
import pytest
from sqlalchemy import update

from app.core.errors import (
    AssignmentNotPlanned,
    ConflictError,
    IncompatibleBatchState,
    InvalidTransition,
    LockTimeout,
    NotFound,
    ValidationError,
)
from app.core.locks import tank_lock_key
from app.models.enums import AssignmentStatus, BatchStatus, Phase, TankStatus
from app.models.lot import Lot
from app.models.tank_assignment import TankAssignment
from app.repositories.scheduling import SchedulingRepository
from app.schemas.scheduler import (
    PlanBlendRequest,
    PlanFermentationRequest,
    PlanTransferRequest,
    SplitDestination,
)
from app.services.scheduler import TankScheduler
from app.services.timeline import list_events
from conftest import ACTOR, TENANT, at


def _single(batch_id: int, tank_id: int, start, end) -> PlanFermentationRequest:
    return PlanFermentationRequest(batch_ids=[batch_id], tank_id=tank_id, planned_start=start, planned_end=end)


def _assignment_count(repo: SchedulingRepository, tank_id: int | None = None) -> int:
    query = repo.db.query(TankAssignment)
    if tank_id is not None:
        query = query.filter(TankAssignment.tank_id == tank_id)
    return query.count()


def test_plan_fermentation_creates_lot_and_planned_assignment(repo, scheduler, make_tank, make_batch) -> None:
    tank = make_tank()
    batch = make_batch(volume=800.0)

    result = scheduler.plan_fermentation(ACTOR, _single(batch.id, tank.id, at(1), at(10)))

    assert result.kind == "fermentation"
    planned = result.lots[0]
    assert re.fullmatch(r"LOT-\d{4}-F001", planned.lot_code)
    assert planned.planned_volume == 800.0
    assignment = repo.get_assignment(planned.assignment_id)
    assert assignment.status == "PLANNED"
    assert assignment.phase == "FERMENTATION"
    assert repo.get_batch(batch.id).status == "PLANNED"
    assert list_events(repo, batch.id)[-1].type == "FERMENTATION_PLANNED"


def test_overlapping_plan_is_rejected_with_conflicting_ids(scheduler, make_tank, make_batch) -> None:
    tank = make_tank()
    first = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, tank.id, at(1), at(10)))

    with pytest.raises(ConflictError) as exc_info:
        scheduler.plan_fermentation(ACTOR, _single(make_batch().id, tank.id, at(9), at(12)))

    assert exc_info.value.assignment_ids == [first.lots[0].assignment_id]
    assert exc_info.value.conflicts[0]["tank_id"] == tank.id


def test_back_to_back_plans_are_allowed(scheduler, make_tank, make_batch) -> None:
    tank = make_tank()
    scheduler.plan_fermentation(ACTOR, _single(make_batch().id, tank.id, at(1), at(10)))

    result = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, tank.id, at(10), at(20)))

    assert result.lots[0].planned_start == at(10)


def test_split_books_every_destination(repo, scheduler, make_tank, make_batch) -> None:
    f1 = make_tank("F1")
    f2 = make_tank("F2")
    batch = make_batch(volume=1000.0)

    result = scheduler.plan_fermentation(
        ACTOR,
        PlanFermentationRequest(
            batch_ids=[batch.id],
            split_destinations=[
                SplitDestination(tank_id=f1.id, planned_start=at(1), planned_end=at(10), volume_percent=60),
                SplitDestination(tank_id=f2.id, planned_start=at(2), planned_end=at(11), volume_percent=40),
            ],
        ),
    )

    assert result.kind == "split"
    assert [lot.tank_id for lot in result.lots] == [f1.id, f2.id]
    assert [lot.planned_volume for lot in result.lots] == [600.0, 400.0]
    assert len({lot.lot_code for lot in result.lots}) == 2
    links = repo.lot_batches(result.lots[0].lot_id)
    assert links[0].batch_percentage == 60
    assert repo.get_lot(result.lots[1].lot_id).split_ratio == 40


def test_split_is_all_or_nothing(repo, scheduler, make_tank, make_batch) -> None:
    f1 = make_tank("F1")
    f2 = make_tank("F2")
    blocker = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, f2.id, at(1), at(10)))
    batch = make_batch(volume=1000.0)

    with pytest.raises(ConflictError) as exc_info:
        scheduler.plan_fermentation(
            ACTOR,
            PlanFermentationRequest(
                batch_ids=[batch.id],
                split_destinations=[
                    SplitDestination(tank_id=f1.id, planned_start=at(1), planned_end=at(10), volume_percent=50),
                    SplitDestination(tank_id=f2.id, planned_start=at(1), planned_end=at(10), volume_percent=50),
                ],
            ),
        )

    assert exc_info.value.assignment_ids == [blocker.lots[0].assignment_id]
    assert _assignment_count(repo, f1.id) == 0
    assert repo.db.query(Lot).count() == 1
    assert [entry.type for entry in list_events(repo, batch.id)] == ["CREATED"]


def test_split_request_validation() -> None:
    destination = {"tank_id": 1, "planned_start": at(1), "planned_end": at(10)}

    with pytest.raises(pydantic.ValidationError):
        PlanFermentationRequest(
            batch_ids=[1],
            split_destinations=[{**destination, "volume_percent": 70}, {**destination, "tank_id": 2, "volume_percent": 40}],
        )
    with pytest.raises(pydantic.ValidationError):
        PlanFermentationRequest(
            batch_ids=[1],
            split_destinations=[{**destination, "volume_percent": 50}, {**destination, "volume_percent": 50}],
        )
    with pytest.raises(pydantic.ValidationError):
        PlanFermentationRequest(batch_ids=[1, 2], split_destinations=[{**destination, "volume_percent": 50}])
    with pytest.raises(pydantic.ValidationError):
        PlanFermentationRequest(batch_ids=[1], tank_id=1, planned_start=at(10), planned_end=at(1))


def test_idempotent_replay_creates_one_set(repo, scheduler, make_tank, make_batch) -> None:
    tank = make_tank()
    request = _single(make_batch().id, tank.id, at(1), at(10))

    first = scheduler.plan_fermentation(ACTOR, request, idempotency_key="retry-1")
    second = scheduler.plan_fermentation(ACTOR, request, idempotency_key="retry-1")

    assert first == second
    assert repo.db.query(Lot).count() == 1
    assert _assignment_count(repo) == 1


def test_capacity_is_enforced(scheduler, make_tank, make_batch) -> None:
    tank = make_tank(capacity=500.0)

    with pytest.raises(ValidationError):
        scheduler.plan_fermentation(ACTOR, _single(make_batch(volume=800.0).id, tank.id, at(1), at(10)))


def test_fermentation_needs_planned_or_brewing_batches(scheduler, make_tank, make_batch) -> None:
    tank = make_tank()
    batch = make_batch(status=BatchStatus.FERMENTING)

    with pytest.raises(IncompatibleBatchState):
        scheduler.plan_fermentation(ACTOR, _single(batch.id, tank.id, at(1), at(10)))


def test_busy_tank_lock_surfaces_as_timeout(repo, scheduler, redis_client, make_tank, make_batch, monkeypatch) -> None:
    monkeypatch.setattr("app.core.locks.time.sleep", lambda _: None)
    tank = make_tank()
    redis_client.set(tank_lock_key(TENANT, tank.id), "other-request")

    with pytest.raises(LockTimeout):
        scheduler.plan_fermentation(ACTOR, _single(make_batch().id, tank.id, at(1), at(10)))

    assert _assignment_count(repo) == 0


def test_blend_joins_batches_into_one_lot(repo, scheduler, make_tank, make_batch) -> None:
    brite = make_tank("BT-1", capacity=2000.0)
    first = make_batch(volume=600.0, status=BatchStatus.FERMENTING)
    second = make_batch(volume=700.0, status=BatchStatus.FERMENTING)

    result = scheduler.plan_blend(
        ACTOR,
        PlanBlendRequest(batch_ids=[first.id, second.id], tank_id=brite.id, planned_start=at(5), planned_end=at(9)),
    )

    assert result.kind == "blend"
    assert len(result.lots) == 1
    planned = result.lots[0]
    assert re.fullmatch(r"LOT-\d{4}-X001", planned.lot_code)
    assert planned.phase == Phase.BRIGHT
    assert planned.planned_volume == 1300.0
    assert sorted(planned.batch_ids) == sorted([first.id, second.id])
    assert len(repo.lot_batches(planned.lot_id)) == 2


def test_blend_rejects_mixed_statuses(repo, scheduler, make_tank, make_batch) -> None:
    brite = make_tank("BT-1", capacity=2000.0)
    first = make_batch(status=BatchStatus.FERMENTING)
    second = make_batch(status=BatchStatus.READY)

    with pytest.raises(IncompatibleBatchState):
        scheduler.plan_blend(
            ACTOR,
            PlanBlendRequest(batch_ids=[first.id, second.id], tank_id=brite.id, planned_start=at(5), planned_end=at(9)),
        )

    assert _assignment_count(repo) == 0


def test_start_assignment_activates_and_syncs_batches(repo, scheduler, make_tank, make_batch) -> None:
    tank = make_tank()
    batch = make_batch(status=BatchStatus.BREWING)
    planned = scheduler.plan_fermentation(ACTOR, _single(batch.id, tank.id, at(1), at(10))).lots[0]

    result = scheduler.start_assignment(ACTOR, planned.assignment_id, started_at=at(1, 6))

    assert result.assignment.status == "ACTIVE"
    assert result.assignment.started_at == at(1, 6)
    assert repo.get_tank(tank.id).status == TankStatus.IN_USE.value
    assert repo.get_batch(batch.id).status == BatchStatus.FERMENTING.value
    assert {(item.entity, item.id) for item in result.touched} >= {
        ("TankAssignment", planned.assignment_id),
        ("Tank", tank.id),
        ("Batch", batch.id),
    }


def test_double_start_fails_and_changes_nothing(repo, scheduler, make_tank, make_batch) -> None:
    tank = make_tank()
    planned = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, tank.id, at(1), at(10))).lots[0]
    scheduler.start_lot(ACTOR, planned.lot_id, started_at=at(1))

    with pytest.raises(AssignmentNotPlanned) as exc_info:
        scheduler.start_lot(ACTOR, planned.lot_id, started_at=at(2))

    assert exc_info.value.actual == "ACTIVE"
    assert repo.get_assignment(planned.assignment_id).started_at == at(1)

    with pytest.raises(AssignmentNotPlanned):
        scheduler.start_assignment(ACTOR, planned.assignment_id)


def test_start_after_planned_end_is_rejected(scheduler, make_tank, make_batch) -> None:
    tank = make_tank()
    planned = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, tank.id, at(1), at(10))).lots[0]

    with pytest.raises(ValidationError):
        scheduler.start_assignment(ACTOR, planned.assignment_id, started_at=at(10))


def test_complete_requires_active(scheduler, make_tank, make_batch) -> None:
    tank = make_tank()
    planned = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, tank.id, at(1), at(10))).lots[0]

    with pytest.raises(InvalidTransition) as exc_info:
        scheduler.complete_assignment(ACTOR, planned.assignment_id)

    assert exc_info.value.expected == "ACTIVE"
    assert exc_info.value.actual == "PLANNED"


def test_complete_releases_tank_and_closes_lot(repo, scheduler, make_tank, make_batch) -> None:
    tank = make_tank()
    planned = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, tank.id, at(1), at(10))).lots[0]
    scheduler.start_assignment(ACTOR, planned.assignment_id, started_at=at(1))

    result = scheduler.complete_assignment(ACTOR, planned.assignment_id, ended_at=at(8))

    assert result.assignment.status == "COMPLETED"
    assert result.assignment.ended_at == at(8)
    assert repo.get_tank(tank.id).status == TankStatus.NEEDS_CIP.value
    assert repo.get_lot(planned.lot_id).completed_at == at(8)

    with pytest.raises(InvalidTransition):
        scheduler.complete_assignment(ACTOR, planned.assignment_id)


def test_complete_without_release_keeps_tank_status(repo, scheduler, make_tank, make_batch) -> None:
    tank = make_tank()
    planned = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, tank.id, at(1), at(10))).lots[0]
    scheduler.start_assignment(ACTOR, planned.assignment_id, started_at=at(1))

    scheduler.complete_assignment(ACTOR, planned.assignment_id, release_tank=False, ended_at=at(8))

    assert repo.get_tank(tank.id).status == TankStatus.IN_USE.value


def test_phase_moves_forward_only(scheduler, make_tank, make_batch) -> None:
    tank = make_tank()
    planned = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, tank.id, at(1), at(10))).lots[0]

    result = scheduler.mark_phase(ACTOR, planned.assignment_id, Phase.BRIGHT)
    assert result.assignment.phase == Phase.BRIGHT

    with pytest.raises(InvalidTransition):
        scheduler.mark_phase(ACTOR, planned.assignment_id, Phase.CONDITIONING)
    with pytest.raises(InvalidTransition):
        scheduler.mark_phase(ACTOR, planned.assignment_id, Phase.BRIGHT)


def test_packaging_phase_walks_batches_forward(repo, scheduler, make_tank, make_batch) -> None:
    tank = make_tank()
    batch = make_batch(status=BatchStatus.BREWING)
    planned = scheduler.plan_fermentation(ACTOR, _single(batch.id, tank.id, at(1), at(10))).lots[0]
    scheduler.start_assignment(ACTOR, planned.assignment_id, started_at=at(1))

    scheduler.mark_phase(ACTOR, planned.assignment_id, Phase.PACKAGING)

    assert repo.get_batch(batch.id).status == BatchStatus.PACKAGING.value
    types = [entry.type for entry in list_events(repo, batch.id)]
    assert types.index("CONDITIONING_STARTED") < types.index("PACKAGING_STARTED")
    assert types[-1] == "PHASE_CHANGED"


def test_transfer_requires_active_assignment(scheduler, make_tank, make_batch) -> None:
    f1 = make_tank("F1")
    f2 = make_tank("F2")
    planned = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, f1.id, at(1), at(10))).lots[0]

    with pytest.raises(InvalidTransition):
        scheduler.plan_transfer(
            ACTOR,
            PlanTransferRequest(lot_id=planned.lot_id, to_tank_id=f2.id, planned_at=at(5)),
        )


def test_transfer_moves_assignment_between_tanks(repo, scheduler, make_tank, make_batch) -> None:
    f1 = make_tank("F1")
    bt = make_tank("BT-1")
    planned = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, f1.id, at(1), at(14))).lots[0]
    scheduler.start_assignment(ACTOR, planned.assignment_id, started_at=at(1))

    transfer = scheduler.plan_transfer(
        ACTOR,
        PlanTransferRequest(lot_id=planned.lot_id, to_tank_id=bt.id, planned_at=at(7)),
    )
    assert re.fullmatch(r"TRF-\d{8}-001", transfer.transfer_code)

    result = scheduler.execute_transfer(ACTOR, transfer.id, executed_at=at(7), phase=Phase.BRIGHT)

    assert result.assignment.tank_id == bt.id
    assert result.assignment.started_at == at(7)
    assert result.assignment.phase == Phase.BRIGHT
    assert repo.get_tank(f1.id).status == TankStatus.NEEDS_CIP.value
    assert repo.get_tank(bt.id).status == TankStatus.IN_USE.value
    assert repo.get_transfer(transfer.id).executed_at == at(7)

    with pytest.raises(InvalidTransition):
        scheduler.execute_transfer(ACTOR, transfer.id, executed_at=at(8))


def test_transfer_into_booked_tank_conflicts(scheduler, make_tank, make_batch) -> None:
    f1 = make_tank("F1")
    bt = make_tank("BT-1")
    planned = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, f1.id, at(1), at(14))).lots[0]
    scheduler.start_assignment(ACTOR, planned.assignment_id, started_at=at(1))
    scheduler.plan_fermentation(ACTOR, _single(make_batch().id, bt.id, at(6), at(9)))

    with pytest.raises(ConflictError):
        scheduler.plan_transfer(
            ACTOR,
            PlanTransferRequest(lot_id=planned.lot_id, to_tank_id=bt.id, planned_at=at(7)),
        )


def test_other_tenant_cannot_touch_bookings(db_session, scheduler, locks, make_tank, make_batch) -> None:
    tank = make_tank()
    planned = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, tank.id, at(1), at(10))).lots[0]
    intruder = TankScheduler(SchedulingRepository(db_session, "brewery-b"), locks)

    with pytest.raises(NotFound):
        intruder.start_assignment("intruder", planned.assignment_id)
    with pytest.raises(NotFound):
        intruder.start_lot("intruder", planned.lot_id)


def test_planned_volume_scales_blend_portions(repo, scheduler, make_tank, make_batch) -> None:
    brite = make_tank("BT-1", capacity=1000.0)
    first = make_batch(volume=600.0, status=BatchStatus.FERMENTING)
    second = make_batch(volume=600.0, status=BatchStatus.FERMENTING)

    planned = scheduler.plan_blend(
        ACTOR,
        PlanBlendRequest(
            batch_ids=[first.id, second.id],
            tank_id=brite.id,
            planned_start=at(5),
            planned_end=at(9),
            planned_volume=500.0,
        ),
    ).lots[0]

    assert planned.planned_volume == 500.0
    links = repo.lot_batches(planned.lot_id)
    assert [link.volume_portion for link in links] == [250.0, 250.0]
    assert all(abs(link.batch_percentage - 41.667) < 0.001 for link in links)


def test_blend_capacity_uses_combined_volume_without_planned_volume(repo, scheduler, make_tank, make_batch) -> None:
    brite = make_tank("BT-1", capacity=1000.0)
    first = make_batch(volume=600.0, status=BatchStatus.FERMENTING)
    second = make_batch(volume=600.0, status=BatchStatus.FERMENTING)

    with pytest.raises(ValidationError):
        scheduler.plan_blend(
            ACTOR,
            PlanBlendRequest(batch_ids=[first.id, second.id], tank_id=brite.id, planned_start=at(5), planned_end=at(9)),
        )

    assert _assignment_count(repo) == 0


def test_planned_volume_cannot_exceed_batches(repo, scheduler, make_tank, make_batch) -> None:
    tank = make_tank(capacity=2000.0)
    request = PlanFermentationRequest(
        batch_ids=[make_batch(volume=500.0).id],
        tank_id=tank.id,
        planned_start=at(1),
        planned_end=at(10),
        planned_volume=800.0,
    )

    with pytest.raises(ValidationError):
        scheduler.plan_fermentation(ACTOR, request)

    assert _assignment_count(repo) == 0


def test_fermentation_writes_planned_volume(repo, scheduler, make_tank, make_batch) -> None:
    tank = make_tank(capacity=1000.0)
    batch = make_batch(volume=1200.0)

    planned = scheduler.plan_fermentation(
        ACTOR,
        PlanFermentationRequest(
            batch_ids=[batch.id], tank_id=tank.id, planned_start=at(1), planned_end=at(10), planned_volume=900.0
        ),
    ).lots[0]

    assert planned.planned_volume == 900.0
    assert repo.get_assignment(planned.assignment_id).planned_volume == 900.0
    assert repo.lot_batches(planned.lot_id)[0].volume_portion == 900.0


def test_transfer_window_runs_to_the_lot_planned_end(scheduler, make_tank, make_batch) -> None:
    f1 = make_tank("F1")
    bt = make_tank("BT-1")
    planned = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, f1.id, at(1), at(20))).lots[0]
    scheduler.start_assignment(ACTOR, planned.assignment_id, started_at=at(1))
    scheduler.plan_fermentation(ACTOR, _single(make_batch().id, bt.id, at(12), at(18)))

    with pytest.raises(ConflictError):
        scheduler.plan_transfer(
            ACTOR,
            PlanTransferRequest(lot_id=planned.lot_id, to_tank_id=bt.id, planned_at=at(10)),
        )


def test_transfer_must_start_before_the_lot_ends(scheduler, make_tank, make_batch) -> None:
    f1 = make_tank("F1")
    bt = make_tank("BT-1")
    planned = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, f1.id, at(1), at(10))).lots[0]
    scheduler.start_assignment(ACTOR, planned.assignment_id, started_at=at(1))

    with pytest.raises(ValidationError):
        scheduler.plan_transfer(
            ACTOR,
            PlanTransferRequest(lot_id=planned.lot_id, to_tank_id=bt.id, planned_at=at(10)),
        )


def test_transfer_into_packaging_walks_batches_forward(repo, scheduler, make_tank, make_batch) -> None:
    f1 = make_tank("F1")
    bt = make_tank("BT-1")
    batch = make_batch(status=BatchStatus.BREWING)
    planned = scheduler.plan_fermentation(ACTOR, _single(batch.id, f1.id, at(1), at(14))).lots[0]
    scheduler.start_assignment(ACTOR, planned.assignment_id, started_at=at(1))
    transfer = scheduler.plan_transfer(
        ACTOR,
        PlanTransferRequest(lot_id=planned.lot_id, to_tank_id=bt.id, planned_at=at(7)),
    )

    result = scheduler.execute_transfer(ACTOR, transfer.id, executed_at=at(7), phase=Phase.PACKAGING)

    assert result.assignment.phase == Phase.PACKAGING
    assert repo.get_batch(batch.id).status == BatchStatus.PACKAGING.value
    assert {"entity": "Batch", "id": batch.id, "status": "PACKAGING"} in [
        item.model_dump(mode="json") for item in result.touched
    ]


def test_phase_change_rechecks_status_under_the_lock(repo, scheduler, make_tank, make_batch, monkeypatch) -> None:
    tank = make_tank()
    planned = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, tank.id, at(1), at(10))).lots[0]
    acquire = scheduler.locks.acquire

    def acquire_after_completion(key: str, ttl: float | None = None) -> str:
        # another request completes the booking while this one waits for the lock
        repo.db.execute(
            update(TankAssignment)
            .where(TankAssignment.id == planned.assignment_id)
            .values(status=AssignmentStatus.COMPLETED.value)
            .execution_options(synchronize_session=False)
        )
        return acquire(key, ttl)

    monkeypatch.setattr(scheduler.locks, "acquire", acquire_after_completion)

    with pytest.raises(InvalidTransition):
        scheduler.mark_phase(ACTOR, planned.assignment_id, Phase.CONDITIONING)

    assert repo.get_assignment(planned.assignment_id).phase == Phase.FERMENTATION.value


def test_plan_result_carries_fill_warnings(scheduler, make_tank, make_batch) -> None:
    tank = make_tank(capacity=1000.0)

    underfilled = scheduler.plan_fermentation(ACTOR, _single(make_batch(volume=100.0).id, tank.id, at(1), at(5))).lots[0]
    overfilled = scheduler.plan_fermentation(ACTOR, _single(make_batch(volume=990.0).id, tank.id, at(5), at(9))).lots[0]
    comfortable = scheduler.plan_fermentation(ACTOR, _single(make_batch(volume=500.0).id, tank.id, at(9), at(12))).lots[0]

    assert len(underfilled.warnings) == 1
    assert "below its 20% minimum" in underfilled.warnings[0]
    assert len(overfilled.warnings) == 1
    assert "above its 95% maximum" in overfilled.warnings[0]
    assert comfortable.warnings == []


def test_maintenance_tank_is_flagged_but_not_blocked(repo, scheduler, make_tank, make_batch) -> None:
    tank = make_tank()
    tank.status = TankStatus.MAINTENANCE.value
    repo.db.commit()

    planned = scheduler.plan_fermentation(ACTOR, _single(make_batch().id, tank.id, at(1), at(10))).lots[0]

    assert planned.warnings == ["Tank FV-1 is under maintenance"]


def test_single_tank_plan_needs_tank_and_window(repo, scheduler, make_batch) -> None:
    with pytest.raises(pydantic.ValidationError):
        PlanFermentationRequest(batch_ids=[1], tank_id=1, planned_start=at(1))

    unchecked = PlanFermentationRequest.model_construct(batch_ids=[make_batch().id], tank_id=None, split_destinations=None)
    with pytest.raises(ValidationError):
        scheduler.plan_fermentation(ACTOR, unchecked)

    assert _assignment_count(repo) == 0
