from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.services.observability import observability_tracker


class SchedulingError(Exception):
    """Base for failures that carry a machine-readable kind and a readable reason."""

    kind = "scheduling_error"
    status_code = status.HTTP_400_BAD_REQUEST
    retryable = False

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    def details(self) -> dict[str, object]:
        return {}

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "kind": self.kind,
            "reason": self.reason,
            "retryable": self.retryable,
        }
        payload.update(self.details())
        return payload


class NotFound(SchedulingError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id

    def details(self) -> dict[str, object]:
        return {"entity": self.entity, "entity_id": self.entity_id}


class ValidationError(SchedulingError):
    kind = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class ConflictError(SchedulingError):
    """A requested tank window overlaps PLANNED/ACTIVE bookings.

    ``conflicts`` holds one entry per blocked destination: the tank, the
    requested window and the ids of every assignment in the way.
    """

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, reason: str, conflicts: list[dict[str, object]]) -> None:
        super().__init__(reason)
        self.conflicts = conflicts

    @property
    def assignment_ids(self) -> list[int]:
        ids: list[int] = []
        for conflict in self.conflicts:
            for assignment_id in conflict.get("assignment_ids", []):  # type: ignore[union-attr]
                if assignment_id not in ids:
                    ids.append(assignment_id)
        return ids

    def details(self) -> dict[str, object]:
        return {"conflicts": self.conflicts, "assignment_ids": self.assignment_ids}


class InvalidTransition(SchedulingError):
    kind = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, entity: str, expected: str | list[str], actual: str, reason: str | None = None) -> None:
        expected_label = expected if isinstance(expected, str) else " or ".join(expected)
        super().__init__(reason or f"{entity} must be {expected_label}, found {actual}")
        self.entity = entity
        self.expected = expected
        self.actual = actual

    def details(self) -> dict[str, object]:
        return {"entity": self.entity, "expected": self.expected, "actual": self.actual}


class AssignmentNotPlanned(InvalidTransition):
    kind = "assignment_not_planned"

    def __init__(self, assignment_id: int | None, actual: str) -> None:
        super().__init__(
            "TankAssignment",
            "PLANNED",
            actual,
            reason=f"Assignment {assignment_id} cannot be started from status {actual}",
        )
        self.assignment_id = assignment_id

    def details(self) -> dict[str, object]:
        payload = super().details()
        payload["assignment_id"] = self.assignment_id
        return payload


class IncompatibleBatchState(SchedulingError):
    kind = "incompatible_batch_state"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, reason: str, batch_statuses: dict[int, str] | None = None) -> None:
        super().__init__(reason)
        self.batch_statuses = batch_statuses or {}

    def details(self) -> dict[str, object]:
        return {"batch_statuses": {str(key): value for key, value in self.batch_statuses.items()}}


class LockTimeout(SchedulingError):
    kind = "lock_timeout"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True

    def __init__(self, key: str, attempts: int) -> None:
        super().__init__(f"Resource busy, retry later ({key})")
        self.key = key
        self.attempts = attempts

    def details(self) -> dict[str, object]:
        return {"lock_key": self.key, "attempts": self.attempts}


async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    observability_tracker.record_scheduling_error(exc.kind)
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_payload()}, headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render malformed requests in the same envelope as domain validation errors."""
    errors = jsonable_encoder(exc.errors())
    reason = errors[0]["msg"] if errors else "Invalid request"
    observability_tracker.record_scheduling_error(ValidationError.kind)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": {
                "kind": ValidationError.kind,
                "reason": reason,
                "retryable": False,
                "errors": errors,
            }
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SchedulingError, scheduling_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
