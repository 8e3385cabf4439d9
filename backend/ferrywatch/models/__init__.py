"""Import all models to register them with SQLAlchemy metadata."""
from ferrywatch.models.base import Base, ModelTypeEnum, TrainingRunStatusEnum, TrainingSourceEnum
from ferrywatch.models.vessel_location import VesselLocationSnapshot
from ferrywatch.models.active_vessel_trip import ActiveVesselTrip
from ferrywatch.models.completed_vessel_trip import CompletedVesselTrip
from ferrywatch.models.model_parameters import ModelParameters
from ferrywatch.models.training_run import TrainingRun

__all__ = [
    "Base",
    "ModelTypeEnum",
    "TrainingRunStatusEnum",
    "TrainingSourceEnum",
    "VesselLocationSnapshot",
    "ActiveVesselTrip",
    "CompletedVesselTrip",
    "ModelParameters",
    "TrainingRun",
]
