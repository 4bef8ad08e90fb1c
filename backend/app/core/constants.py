"""Shared constants and enums used across the application."""

from enum import StrEnum


class SessionStatus(StrEnum):
    """Lifecycle status of a pipeline session."""

    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_SESSION_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.FAILED})


class StageName(StrEnum):
    """The five pipeline stages, in execution order."""

    DETECTOR = "DETECTOR"
    DIAGNOSER = "DIAGNOSER"
    PLANNER = "PLANNER"
    VALIDATOR = "VALIDATOR"
    NOTIFIER = "NOTIFIER"


# Terminal marker written into LogEntry.next_stage
END = "END"


class LogStatus(StrEnum):
    """Status of a stage log entry."""

    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Severity(StrEnum):
    """Anomaly severity as classified by the Detector."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ViolationLevel(StrEnum):
    """Which threshold band a metric crossed."""

    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class Criticality(StrEnum):
    """How important a machine is to production."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class MachineStatus(StrEnum):
    """Operational status shown on the machine record."""

    NORMAL = "NORMAL"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
    MAINTENANCE = "MAINTENANCE"


class SafetyDecision(StrEnum):
    """Validator outcome for a work order."""

    APPROVED = "APPROVED"
    BLOCKED = "BLOCKED"
    ESCALATE_HUMAN = "ESCALATE_HUMAN"


class SafetyCheckName(StrEnum):
    """Named guardrail checks run by the Validator."""

    COST_LIMIT = "COST_LIMIT"
    CONFIDENCE_LEVEL = "CONFIDENCE_LEVEL"
    EMERGENCY_CHECK = "EMERGENCY_CHECK"
    LOGIC_VALIDATION = "LOGIC_VALIDATION"


class Priority(StrEnum):
    """Work-order and notification priority."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class MaintenanceUrgency(StrEnum):
    """How soon the Diagnoser thinks maintenance must happen."""

    IMMEDIATE = "IMMEDIATE"
    URGENT = "URGENT"
    SCHEDULED = "SCHEDULED"
    ROUTINE = "ROUTINE"


class WorkOrderStatus(StrEnum):
    """Status written to the work-order record by the Validator."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"


class RecipientType(StrEnum):
    """Stakeholder roles the Notifier can address."""

    TECHNICIAN = "TECHNICIAN"
    MAINTENANCE_HEAD = "MAINTENANCE_HEAD"
    PLANT_MANAGER = "PLANT_MANAGER"


class Channel(StrEnum):
    """Notification delivery channel."""

    LINE = "LINE"
    EMAIL = "EMAIL"
    DASHBOARD = "DASHBOARD"


class MessageType(StrEnum):
    """Kind of notification message."""

    ALERT = "ALERT"
    WORK_ORDER = "WORK_ORDER"
    STATUS_UPDATE = "STATUS_UPDATE"


class EmployeeRole(StrEnum):
    """Roles stored in the employees directory."""

    TECHNICIAN = "TECHNICIAN"
    SUPERVISOR = "SUPERVISOR"
    MANAGER = "MANAGER"


class ResultKind(StrEnum):
    """Domain-result stores a stage can persist into."""

    ANOMALY = "anomaly"
    DIAGNOSIS = "diagnosis"
    WORK_ORDER = "work_order"
    NOTIFICATION = "notification"
