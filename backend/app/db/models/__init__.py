"""
Models package — re-exports Base and all models.

When adding a new model:
    1. Create `app/db/models/<table_name>.py`
    2. Import it here
"""

from app.db.models.base import Base
from app.db.models.pipeline_session import PipelineSession
from app.db.models.stage_log import StageLog
from app.db.models.anomaly import AnomalyRecord
from app.db.models.diagnosis import DiagnosisRecord
from app.db.models.work_order import WorkOrderRecord
from app.db.models.notification import NotificationRecord
from app.db.models.resources import (
    EmployeeRecord,
    MachineRecord,
    PartRecord,
    TechnicianRecord,
    ThresholdRecord,
)

__all__ = [
    "Base",
    "PipelineSession",
    "StageLog",
    "AnomalyRecord",
    "DiagnosisRecord",
    "WorkOrderRecord",
    "NotificationRecord",
    "EmployeeRecord",
    "MachineRecord",
    "PartRecord",
    "TechnicianRecord",
    "ThresholdRecord",
]
