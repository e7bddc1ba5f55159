from app.models.batch import Batch, BatchTimeline, GravityReading
from app.models.lot import Lot, LotBatch
from app.models.tank import Tank
from app.models.tank_assignment import TankAssignment
from app.models.transfer import TransferPlan
from app.models.user import User

__all__ = [
    "Batch",
    "BatchTimeline",
    "GravityReading",
    "Lot",
    "LotBatch",
    "Tank",
    "TankAssignment",
    "TransferPlan",
    "User",
]
