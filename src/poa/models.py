"""
poa.models — Value objects and the verification record.

VerificationRecord is frozen: the engine moves it between lifecycle states
by building a new snapshot (dataclasses.replace) and handing the whole
snapshot to the record store, so readers never see a half-written record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class ValidationError(ValueError):
    """Raised when a verification request is missing required fields."""


class VerificationLevel(str, Enum):
    BASIC = "basic"
    STANDARD = "standard"
    COMPREHENSIVE = "comprehensive"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    TESTING = "testing"
    VERIFIED = "verified"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (VerificationStatus.VERIFIED, VerificationStatus.FAILED)


class Tier(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    NEEDS_WORK = "needs-work"


ESTIMATED_DURATION = {
    VerificationLevel.BASIC: "10 seconds",
    VerificationLevel.STANDARD: "1 minute",
    VerificationLevel.COMPREHENSIVE: "5 minutes",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class VerificationRequest:
    """Immutable caller input. Capabilities are deduplicated, order-insensitive."""
    agent_name: str
    endpoint: Optional[str] = None
    capabilities: frozenset = frozenset()
    level: VerificationLevel = VerificationLevel.BASIC
    wallet_address: Optional[str] = None
    # Static signals for the additive scoring path
    code_url: Optional[str] = None
    documentation: Optional[bool] = None
    code_lines: Optional[int] = None
    test_coverage: Optional[float] = None
    package_json: Optional[dict] = field(default=None, hash=False, compare=False)
    uses_pyth: bool = False
    uses_jito: bool = False

    def __post_init__(self):
        name = (self.agent_name or "").strip()
        if not name:
            raise ValidationError("agentName is required")
        object.__setattr__(self, "agent_name", name)
        try:
            object.__setattr__(self, "level", VerificationLevel(self.level))
        except ValueError:
            raise ValidationError(f"unknown testLevel: {self.level!r}") from None
        object.__setattr__(self, "capabilities",
                           frozenset(c.strip() for c in (self.capabilities or ()) if c and c.strip()))
        if self.test_coverage is not None and not 0 <= self.test_coverage <= 100:
            raise ValidationError("testCoverage must be between 0 and 100")
        if self.code_lines is not None and self.code_lines < 0:
            raise ValidationError("codeLines must be non-negative")
        if not self.is_deep and not self.endpoint:
            raise ValidationError("agentName and apiEndpoint required")

    @property
    def is_deep(self) -> bool:
        """True when static or ecosystem signals select the additive scoring path."""
        return any((
            self.code_url,
            self.documentation is not None,
            self.code_lines is not None,
            self.test_coverage is not None,
            self.package_json is not None,
            self.uses_pyth,
            self.uses_jito,
        ))

    @property
    def sorted_capabilities(self) -> list[str]:
        return sorted(self.capabilities)


@dataclass(frozen=True)
class CheckResult:
    success: bool
    detail: str = ""

    def __bool__(self) -> bool:
        return self.success


@dataclass(frozen=True)
class BehavioralScore:
    bonus: int
    trace_count: int
    last_trace_at: Optional[str] = None
    avg_success_rate: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "bonus": self.bonus,
            "traceCount": self.trace_count,
            "lastTraceAt": self.last_trace_at,
            "avgSuccessRate": self.avg_success_rate,
        }


@dataclass(frozen=True)
class AttestationReceipt:
    reference: str
    confirmed_at: str
    signature: str = ""
    valid_until: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "reference": self.reference,
            "confirmedAt": self.confirmed_at,
            "signature": self.signature,
            "validUntil": self.valid_until,
        }


@dataclass(frozen=True)
class VerificationRecord:
    id: str
    agent_name: str
    status: VerificationStatus = VerificationStatus.PENDING
    score: int = 0
    tier: Tier = Tier.NEEDS_WORK
    checks: dict = field(default_factory=dict)  # check name -> CheckResult, insertion ordered
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    attestation: Optional[AttestationReceipt] = None
    behavioral: Optional[BehavioralScore] = None
    level: VerificationLevel = VerificationLevel.BASIC
    scoring: str = "normalized"

    @property
    def check_flags(self) -> dict[str, bool]:
        return {name: result.success for name, result in self.checks.items()}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "agentName": self.agent_name,
            "status": self.status.value,
            "score": self.score,
            "tier": self.tier.value,
            "level": self.level.value,
            "scoring": self.scoring,
            "checks": self.check_flags,
            "details": {name: r.detail for name, r in self.checks.items()},
            "createdAt": self.created_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "attestation": self.attestation.to_dict() if self.attestation else None,
            "behavioral": self.behavioral.to_dict() if self.behavioral else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VerificationRecord":
        details = data.get("details") or {}
        checks = {
            name: CheckResult(bool(ok), details.get(name, ""))
            for name, ok in (data.get("checks") or {}).items()
        }
        att = data.get("attestation")
        beh = data.get("behavioral")
        return cls(
            id=data["id"],
            agent_name=data["agentName"],
            status=VerificationStatus(data.get("status", "pending")),
            score=data.get("score", 0),
            tier=Tier(data.get("tier", Tier.NEEDS_WORK.value)),
            checks=checks,
            created_at=_parse_dt(data["createdAt"]),
            completed_at=_parse_dt(data.get("completedAt")),
            expires_at=_parse_dt(data.get("expiresAt")),
            attestation=AttestationReceipt(
                reference=att["reference"],
                confirmed_at=att["confirmedAt"],
                signature=att.get("signature", ""),
                valid_until=att.get("validUntil"),
            ) if att else None,
            behavioral=BehavioralScore(
                bonus=beh["bonus"],
                trace_count=beh["traceCount"],
                last_trace_at=beh.get("lastTraceAt"),
                avg_success_rate=beh.get("avgSuccessRate"),
            ) if beh else None,
            level=VerificationLevel(data.get("level", "basic")),
            scoring=data.get("scoring", "normalized"),
        )


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)
