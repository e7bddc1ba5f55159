from enum import Enum


class TankType(str, Enum):
    FERMENTER = "FERMENTER"
    BRITE = "BRITE"
    KETTLE = "KETTLE"
    UNITANK = "UNITANK"


class TankStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    IN_USE = "IN_USE"
    CLEANING = "CLEANING"
    MAINTENANCE = "MAINTENANCE"
    NEEDS_CIP = "NEEDS_CIP"


class BatchStatus(str, Enum):
    PLANNED = "PLANNED"
    BREWING = "BREWING"
    FERMENTING = "FERMENTING"
    CONDITIONING = "CONDITIONING"
    PACKAGING = "PACKAGING"
    READY = "READY"
    PACKAGED = "PACKAGED"
    CANCELLED = "CANCELLED"


class AssignmentStatus(str, Enum):
    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class Phase(str, Enum):
    FERMENTATION = "FERMENTATION"
    CONDITIONING = "CONDITIONING"
    BRIGHT = "BRIGHT"
    PACKAGING = "PACKAGING"


class TimelineEventType(str, Enum):
    CREATED = "CREATED"
    BREWING_STARTED = "BREWING_STARTED"
    FERMENTATION_PLANNED = "FERMENTATION_PLANNED"
    BLEND_PLANNED = "BLEND_PLANNED"
    FERMENTATION_STARTED = "FERMENTATION_STARTED"
    CONDITIONING_STARTED = "CONDITIONING_STARTED"
    PACKAGING_STARTED = "PACKAGING_STARTED"
    READY_FOR_PACKAGING = "READY_FOR_PACKAGING"
    PACKAGED = "PACKAGED"
    CANCELLED = "CANCELLED"
    GRAVITY_READING = "GRAVITY_READING"
    TRANSFER_PLANNED = "TRANSFER_PLANNED"
    TRANSFER = "TRANSFER"
    ASSIGNMENT_STARTED = "ASSIGNMENT_STARTED"
    ASSIGNMENT_COMPLETED = "ASSIGNMENT_COMPLETED"
    PHASE_CHANGED = "PHASE_CHANGED"


BATCH_FLOW: tuple[BatchStatus, ...] = (
    BatchStatus.PLANNED,
    BatchStatus.BREWING,
    BatchStatus.FERMENTING,
    BatchStatus.CONDITIONING,
    BatchStatus.PACKAGING,
    BatchStatus.READY,
    BatchStatus.PACKAGED,
)

TERMINAL_BATCH_STATUSES = frozenset({BatchStatus.PACKAGED, BatchStatus.CANCELLED})

PHASE_ORDER: dict[Phase, int] = {
    Phase.FERMENTATION: 1,
    Phase.CONDITIONING: 2,
    Phase.BRIGHT: 3,
    Phase.PACKAGING: 4,
}

BOOKING_STATUSES = (AssignmentStatus.PLANNED.value, AssignmentStatus.ACTIVE.value)
