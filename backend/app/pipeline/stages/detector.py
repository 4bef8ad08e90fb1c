"""
Detector — decides whether a sensor reading is anomalous.

1. Deterministic threshold check (critical bounds before warning bounds)
2. No violations → anomaly_detected=False, no reasoning call, route to END
3. Violations → reasoning call classifies type/severity/confidence;
   on failure the verdict is derived from the violations alone
"""

from __future__ import annotations

from app.core.constants import ResultKind, Severity, StageName, ViolationLevel
from app.pipeline.gates import after_detection
from app.pipeline.models import AnomalyDetails, AnomalyMetric, SensorReading, Threshold
from app.pipeline.prompts import DETECTOR_SYSTEM_PROMPT, detector_prompt
from app.pipeline.schemas import DetectorResponse
from app.pipeline.stage import PipelineStage, ThinkingTrail, decision_path
from app.pipeline.state import PipelineState, StateUpdate

FALLBACK_ANOMALY_TYPE = "THRESHOLD_EXCEEDED"


def _deviation(value: float, bound: float) -> float:
    if bound == 0:
        return 0.0
    return round((value - bound) / abs(bound) * 100, 1)


def check_thresholds(reading: SensorReading, thresholds: tuple[Threshold, ...] | list[Threshold]) -> list[AnomalyMetric]:
    """
    Compare each metric in the reading against its threshold row.

    At most one violation per metric, the most severe band it crossed.
    Bounds are exclusive: a value equal to a bound is not a violation.
    """
    violations: list[AnomalyMetric] = []
    for t in thresholds:
        value = reading.value_of(t.metric)
        if value is None:
            continue

        bands = (
            (ViolationLevel.CRITICAL, t.critical_high, True),
            (ViolationLevel.CRITICAL, t.critical_low, False),
            (ViolationLevel.WARNING, t.warning_high, True),
            (ViolationLevel.WARNING, t.warning_low, False),
        )
        for level, bound, is_upper in bands:
            if bound is None:
                continue
            crossed = value > bound if is_upper else value < bound
            if crossed:
                violations.append(AnomalyMetric(
                    metric=t.metric,
                    value=value,
                    threshold=bound,
                    level=level,
                    deviation_percent=_deviation(value, bound),
                ))
                break
    return violations


def _describe(violations: list[AnomalyMetric]) -> str:
    return ", ".join(f"{v.metric}={v.value:g} {v.level} ({v.deviation})" for v in violations)


class Detector(PipelineStage):
    """Threshold check plus reasoning-assisted anomaly classification."""

    name = StageName.DETECTOR
    description = "Detect anomalies in a sensor reading"

    async def execute(self, state: PipelineState) -> StateUpdate:
        started_at = self._now()
        trail = ThinkingTrail()

        await self._progress(state, "Checking sensor values against thresholds", 10)
        violations = check_thresholds(state.reading, state.thresholds)
        trail.add(
            "Compare every reported metric with its warning and critical bounds.",
            f"{len(state.reading.metrics())} metrics checked, {len(violations)} violation(s)"
            + (f": {_describe(violations)}" if violations else "."),
            "Escalate to analysis." if violations else "All metrics are within limits.",
        )

        if not violations:
            action = "All sensor values within thresholds"
            entry = self._entry(
                state,
                started_at=started_at,
                action=action,
                decision="NORMAL",
                next_stage=after_detection(False),
                reasoning="No metric crossed a warning or critical threshold.",
                trail=trail,
                input_data={"reading": state.reading.to_dict()},
                output_data={"anomaly_detected": False, "violations": []},
                confidence=100,
            )
            progress = await self._progress(state, action, 20)
            await self._record(entry)
            return self._update(action, progress, entry, anomaly_detected=False, anomaly_details=None)

        await self._progress(state, "Analyzing threshold violations", 15)
        has_critical = any(v.is_critical for v in violations)

        outcome = await self._consult(
            state,
            DETECTOR_SYSTEM_PROMPT,
            detector_prompt(
                state.machine.to_dict(),
                state.reading.to_dict(),
                [v.to_dict() for v in violations],
            ),
            DetectorResponse,
        )

        if outcome.used_fallback:
            is_anomaly = True
            severity = Severity.CRITICAL if has_critical else Severity.HIGH
            anomaly_type = FALLBACK_ANOMALY_TYPE
            confidence = None
            reasoning = f"Classified from thresholds only ({outcome.fallback_reason}): {_describe(violations)}"
            analysis = None
            trail.add(
                "Reasoning service unavailable; classify from threshold bands.",
                outcome.fallback_reason or "",
                f"{severity} anomaly assumed.",
            )
        else:
            verdict = outcome.response
            trail.extend(verdict)
            is_anomaly = verdict.is_anomaly
            severity = verdict.severity
            anomaly_type = verdict.anomaly_type
            confidence = verdict.confidence
            reasoning = verdict.reasoning or _describe(violations)
            analysis = verdict.decision_analysis

            if not is_anomaly and has_critical:
                is_anomaly = True
                severity = Severity.CRITICAL
                trail.add(
                    "Reasoning verdict says false positive, but a CRITICAL threshold was crossed.",
                    _describe([v for v in violations if v.is_critical]),
                    "Keep the anomaly confirmed.",
                )
                reasoning = f"{reasoning} Overridden: critical threshold violation present."

        await self._progress(state, "Classifying anomaly", 18)

        details = None
        if is_anomaly:
            details = AnomalyDetails(
                type=anomaly_type,
                severity=severity,
                metrics=tuple(violations),
                reasoning=reasoning,
                confidence=confidence,
            )

        decision = f"ANOMALY {severity}" if is_anomaly else "FALSE_POSITIVE"
        action = f"Anomaly detected: {anomaly_type}" if is_anomaly else "Violations judged a false positive"
        entry = self._entry(
            state,
            started_at=started_at,
            action=action,
            decision=decision,
            next_stage=after_detection(is_anomaly),
            reasoning=reasoning,
            trail=trail,
            input_data={"reading": state.reading.to_dict(), "violations": [v.to_dict() for v in violations]},
            output_data={"anomaly_detected": is_anomaly, "anomaly_details": details.to_dict() if details else None},
            decision_path=decision_path(
                "Is this reading a real equipment anomaly?",
                "ANOMALY" if is_anomaly else "FALSE_POSITIVE",
                analysis,
                reasoning,
            ),
            confidence=confidence,
        )

        progress = await self._progress(state, action, 20)
        await self._record(entry)
        if details is not None:
            await self.services.store.save_result(ResultKind.ANOMALY, state.session_id, state.machine_id, details)

        return self._update(action, progress, entry, anomaly_detected=is_anomaly, anomaly_details=details)
