"""The five pipeline stages, in execution order."""

from app.pipeline.stages.detector import Detector
from app.pipeline.stages.diagnoser import Diagnoser
from app.pipeline.stages.notifier import Notifier
from app.pipeline.stages.planner import Planner
from app.pipeline.stages.validator import Validator

__all__ = ["Detector", "Diagnoser", "Planner", "Validator", "Notifier"]
