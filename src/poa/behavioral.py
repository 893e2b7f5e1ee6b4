"""
poa.behavioral — Behavioral bonus from submitted execution traces.

Agents submit summaries of what they did over a period (action count,
success rate, error rate). The registry folds all traces of an agent into a
bonus of at most 25 points for the additive scoring path:

    bonus = 15 * avg_success * (1 - avg_error)     reliability
          + 5 * min(total_actions / 1000, 1)        volume
          + min(trace_count, 5)                     history
"""

from __future__ import annotations

import hashlib
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from poa.models import BehavioralScore, ValidationError
from poa.scoring import BEHAVIORAL_MAX

RELIABILITY_POINTS = 15
VOLUME_POINTS = 5
VOLUME_SATURATION = 1000
HISTORY_CAP = 5


@dataclass(frozen=True)
class ExecutionTrace:
    period_start: datetime
    period_end: datetime
    total_actions: int
    success_rate: float
    error_rate: float
    avg_response_time: Optional[float] = None
    actions: tuple = field(default=(), compare=False)

    def __post_init__(self):
        for name in ("period_start", "period_end"):
            value = getattr(self, name)
            if value.tzinfo is None:
                object.__setattr__(self, name, value.replace(tzinfo=timezone.utc))
        if self.period_end < self.period_start:
            raise ValidationError("trace period ends before it starts")
        if self.total_actions < 0:
            raise ValidationError("totalActions must be non-negative")
        for name in ("success_rate", "error_rate"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValidationError(f"{name} must be within [0, 1]")

    @property
    def quality(self) -> int:
        """0-100 reliability of this trace alone."""
        return int(100 * self.success_rate * (1 - self.error_rate) + 0.5)

    @classmethod
    def from_dict(cls, data: dict) -> "ExecutionTrace":
        try:
            period = data["period"]
            summary = data["summary"]
            return cls(
                period_start=_parse_timestamp(period["start"]),
                period_end=_parse_timestamp(period["end"]),
                total_actions=int(summary["totalActions"]),
                success_rate=float(summary["successRate"]),
                error_rate=float(summary["errorRate"]),
                avg_response_time=summary.get("avgResponseTime"),
                actions=tuple(data.get("actions") or ()),
            )
        except ValidationError:
            raise
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise ValidationError(f"malformed trace: {e}") from e

    def to_dict(self) -> dict:
        return {
            "period": {"start": self.period_start.isoformat(), "end": self.period_end.isoformat()},
            "summary": {
                "totalActions": self.total_actions,
                "successRate": self.success_rate,
                "errorRate": self.error_rate,
                "avgResponseTime": self.avg_response_time,
            },
            "actionCount": len(self.actions),
        }


def _parse_timestamp(value: str) -> datetime:
    """ISO-8601 with an optional trailing Z; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def behavioral_bonus(traces: list[ExecutionTrace]) -> int:
    if not traces:
        return 0
    n = len(traces)
    avg_success = sum(t.success_rate for t in traces) / n
    avg_error = sum(t.error_rate for t in traces) / n
    total_actions = sum(t.total_actions for t in traces)
    raw = (
        RELIABILITY_POINTS * avg_success * (1 - avg_error)
        + VOLUME_POINTS * min(total_actions / VOLUME_SATURATION, 1.0)
        + min(n, HISTORY_CAP)
    )
    return min(BEHAVIORAL_MAX, int(raw + 0.5))


class TraceRegistry:
    """Per-agent trace log."""

    def __init__(self):
        self._traces: dict[str, list[tuple[str, ExecutionTrace]]] = {}
        self._lock = threading.Lock()

    def submit(self, agent_id: str, trace: ExecutionTrace) -> dict:
        if not agent_id:
            raise ValidationError("agentId is required")
        with self._lock:
            bucket = self._traces.get(agent_id, [])
            # Score the extended history before anything is stored.
            total_bonus = behavioral_bonus([t for _, t in bucket] + [trace])
            seed = f"{agent_id}:{len(bucket)}:{trace.period_start.isoformat()}"
            trace_id = "trace-" + hashlib.sha256(seed.encode()).hexdigest()[:12]
            self._traces[agent_id] = bucket + [(trace_id, trace)]
        return {
            "traceId": trace_id,
            "behavioralScore": trace.quality,
            "totalBonus": total_bonus,
        }

    def traces_for(self, agent_id: str) -> list[dict]:
        return [
            {"traceId": tid, **t.to_dict()}
            for tid, t in self._traces.get(agent_id, [])
        ]

    def score_for(self, agent_id: str) -> BehavioralScore:
        traces = [t for _, t in self._traces.get(agent_id, [])]
        if not traces:
            return BehavioralScore(bonus=0, trace_count=0)
        latest = max(t.period_end for t in traces)
        return BehavioralScore(
            bonus=behavioral_bonus(traces),
            trace_count=len(traces),
            last_trace_at=latest.isoformat(),
            avg_success_rate=round(sum(t.success_rate for t in traces) / len(traces), 4),
        )
