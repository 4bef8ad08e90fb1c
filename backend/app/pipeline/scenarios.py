"""
Demo anomaly scenarios and the default threshold table for BOILER_PUMP
machines.

Used by the /pipeline/scenarios endpoint, the demo script and as the
threshold fallback when a machine type has no rows in the database.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from app.pipeline.models import SensorReading, Threshold

DEFAULT_MACHINE_TYPE = "BOILER_PUMP"

DEFAULT_THRESHOLDS: tuple[Threshold, ...] = (
    Threshold("vib_rms_horizontal", "mm/s", warning_high=2.8, critical_high=4.0),
    Threshold("vib_rms_vertical", "mm/s", warning_high=2.8, critical_high=4.0),
    Threshold("vib_peak_accel", "g", warning_high=0.7, critical_high=1.2),
    Threshold("bearing_temp", "°C", warning_high=75, critical_high=85),
    Threshold("pressure", "bar", warning_low=6, warning_high=10, critical_low=5, critical_high=11),
)

SCENARIOS: dict[str, dict[str, Any]] = {
    "bearing_wear": {
        "name": "Bearing Wear (Critical)",
        "values": {
            "vib_rms_horizontal": 4.5,
            "vib_rms_vertical": 3.8,
            "vib_peak_accel": 1.2,
            "bearing_temp": 88,
            "pressure": 8.5,
        },
    },
    "overheat": {
        "name": "Overheating (Warning)",
        "values": {
            "vib_rms_horizontal": 0.6,
            "vib_rms_vertical": 0.5,
            "vib_peak_accel": 0.15,
            "bearing_temp": 78,
            "pressure": 8.2,
        },
    },
    "vibration_spike": {
        "name": "Vibration Spike (Warning)",
        "values": {
            "vib_rms_horizontal": 3.2,
            "vib_rms_vertical": 2.8,
            "vib_peak_accel": 0.8,
            "bearing_temp": 65,
            "pressure": 8.4,
        },
    },
    "pressure_critical": {
        "name": "Pressure Critical",
        "values": {
            "vib_rms_horizontal": 0.5,
            "vib_rms_vertical": 0.4,
            "vib_peak_accel": 0.12,
            "bearing_temp": 63,
            "pressure": 11.5,
        },
    },
    "combined_failure": {
        "name": "Combined Failure (Critical)",
        "values": {
            "vib_rms_horizontal": 5.2,
            "vib_rms_vertical": 4.5,
            "vib_peak_accel": 1.5,
            "bearing_temp": 92,
            "pressure": 11.8,
        },
    },
}


def list_scenarios() -> list[dict[str, Any]]:
    return [{"id": key, "name": data["name"], "values": data["values"]} for key, data in SCENARIOS.items()]


def build_reading(machine_id: str, scenario: str) -> SensorReading:
    """
    Sensor reading for a named scenario.

    Raises:
        KeyError: unknown scenario.
    """
    data = SCENARIOS[scenario]
    return SensorReading(
        machine_id=machine_id,
        timestamp=datetime.now(timezone.utc),
        **data["values"],
    )
