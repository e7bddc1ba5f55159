from datetime import date, datetime
from enum import Enum

from app.models.batch import BatchTimeline
from app.models.enums import TimelineEventType
from app.repositories.scheduling import SchedulingRepository


def _jsonable(value: object) -> object:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def record_event(
    repo: SchedulingRepository,
    batch_id: int,
    event_type: TimelineEventType,
    title: str,
    actor: str,
    description: str | None = None,
    data: dict | None = None,
) -> BatchTimeline:
    """Append one audit entry. Entries are never updated or removed."""
    return repo.add(
        BatchTimeline(
            batch_id=batch_id,
            type=event_type.value,
            title=title,
            description=description,
            data=_jsonable(data) if data is not None else None,
            created_by=actor,
            created_at=datetime.utcnow(),
        )
    )


def list_events(repo: SchedulingRepository, batch_id: int) -> list[BatchTimeline]:
    repo.get_batch(batch_id)
    return repo.timeline_for_batch(batch_id)
