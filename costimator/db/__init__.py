"""Database layer for Costimator with async SQLAlchemy."""

from costimator.db.connection import get_session, init_db
from costimator.db.models import (
    Base,
    CalcRunModel,
    ProjectEstimateModel,
    ProjectModel,
    ProjectVersionSequenceModel,
    ScheduleItemModel,
    TakeoffVersionModel,
)

__all__ = [
    "Base",
    "ProjectModel",
    "ScheduleItemModel",
    "TakeoffVersionModel",
    "ProjectVersionSequenceModel",
    "ProjectEstimateModel",
    "CalcRunModel",
    "get_session",
    "init_db",
]
