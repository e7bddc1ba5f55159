from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.locks import LockGateway, get_lock_gateway
from app.core.security import get_current_user
from app.models.user import User
from app.repositories.scheduling import SchedulingRepository
from app.services.scheduler import TankScheduler


def get_repository(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> SchedulingRepository:
    return SchedulingRepository(db, current_user.tenant_id)


def get_scheduler(
    repo: SchedulingRepository = Depends(get_repository),
    locks: LockGateway = Depends(get_lock_gateway),
) -> TankScheduler:
    return TankScheduler(repo, locks)
