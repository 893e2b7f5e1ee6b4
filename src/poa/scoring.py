"""
poa.scoring — Two independent scoring paths plus tier classification.

Normalized path (quick verification):
    score = round(100 * sum(weight of passed checks) / sum(weight of present checks))
    Named checks use CHECK_WEIGHTS; every other check (capability_* included)
    weighs DEFAULT_WEIGHT.

Additive path (deep verification):
    fixed credits for static signals and ecosystem integrations, capped at
    100, plus a behavioral bonus capped at 25. Range 0-125.

The two paths never mix; which one a caller sees depends on
the shape of its request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

from poa.models import CheckResult, Tier

CHECK_WEIGHTS = {
    "liveness": 30,
    "healthEndpoint": 10,
    "validJson": 15,
    "consistency": 10,
    "errorHandling": 10,
    "rateLimiting": 5,
}
DEFAULT_WEIGHT = 10

SCORE_WEIGHTS = {
    "has_code_url": 15,
    "has_api_endpoint": 20,
    "per_capability": 5,
    "per_100_code_lines": 0.3,
    "has_documentation": 10,
    "per_coverage_point": 0.2,
    # Ecosystem bonuses
    "uses_pyth": 10,
    "uses_jito": 15,
    "uses_agent_kit": 5,
    "per_agent_kit_plugin": 3,
}
BASE_MAX = 100
BEHAVIORAL_MAX = 25
MAX_SCORE = BASE_MAX + BEHAVIORAL_MAX


def weight_for(check_name: str) -> int:
    return CHECK_WEIGHTS.get(check_name, DEFAULT_WEIGHT)


def _passed(value: Union[bool, CheckResult]) -> bool:
    return value.success if isinstance(value, CheckResult) else bool(value)


def score_checks(checks: Mapping[str, Union[bool, CheckResult]]) -> int:
    """Normalized percentage over the checks actually present. Empty -> 0."""
    total = sum(weight_for(name) for name in checks)
    if total == 0:
        return 0
    earned = sum(weight_for(name) for name, ok in checks.items() if _passed(ok))
    # Half-up rounding, matching Math.round for non-negative values.
    return int(100 * earned / total + 0.5)


def calculate_tier(score: Union[int, float]) -> Tier:
    """Total over all numbers; scores above 100 classify as excellent."""
    clamped = min(max(score, 0), BASE_MAX)
    if clamped >= 80:
        return Tier.EXCELLENT
    if clamped >= 60:
        return Tier.GOOD
    if clamped >= 40:
        return Tier.FAIR
    return Tier.NEEDS_WORK


@dataclass
class EcosystemSignals:
    uses_pyth: bool = False
    uses_jito: bool = False
    uses_agent_kit: bool = False
    agent_kit_plugins: list[str] = field(default_factory=list)

    @property
    def total_bonus(self) -> int:
        bonus = 0
        if self.uses_pyth:
            bonus += SCORE_WEIGHTS["uses_pyth"]
        if self.uses_jito:
            bonus += SCORE_WEIGHTS["uses_jito"]
        if self.uses_agent_kit:
            bonus += SCORE_WEIGHTS["uses_agent_kit"]
        bonus += SCORE_WEIGHTS["per_agent_kit_plugin"] * len(self.agent_kit_plugins)
        return bonus

    def to_dict(self) -> dict:
        return {
            "pyth": self.uses_pyth,
            "jito": self.uses_jito,
            "agentKit": self.uses_agent_kit,
            "agentKitPlugins": list(self.agent_kit_plugins),
            "totalBonus": self.total_bonus,
        }


@dataclass
class DeepScoreBreakdown:
    total: int
    base: float
    behavioral_bonus: int
    components: dict[str, float] = field(default_factory=dict)

    @property
    def tier(self) -> Tier:
        return calculate_tier(self.total)


def score_deep(
    *,
    has_code_url: bool = False,
    endpoint_working: bool = False,
    capability_count: int = 0,
    code_lines: int = 0,
    documentation: bool = False,
    test_coverage: float = 0.0,
    ecosystem: Optional[EcosystemSignals] = None,
    behavioral_bonus: int = 0,
) -> DeepScoreBreakdown:
    """Additive score from static signals, ecosystem bonuses and behavioral credit."""
    components: dict[str, float] = {}
    if has_code_url:
        components["codeUrl"] = SCORE_WEIGHTS["has_code_url"]
    if endpoint_working:
        components["apiEndpoint"] = SCORE_WEIGHTS["has_api_endpoint"]
    if capability_count:
        components["capabilities"] = SCORE_WEIGHTS["per_capability"] * capability_count
    if code_lines:
        components["codeLines"] = SCORE_WEIGHTS["per_100_code_lines"] * (code_lines / 100)
    if documentation:
        components["documentation"] = SCORE_WEIGHTS["has_documentation"]
    if test_coverage:
        components["testCoverage"] = SCORE_WEIGHTS["per_coverage_point"] * test_coverage
    if ecosystem is not None and ecosystem.total_bonus:
        components["ecosystem"] = ecosystem.total_bonus

    base = min(sum(components.values()), BASE_MAX)
    bonus = min(max(int(behavioral_bonus), 0), BEHAVIORAL_MAX)
    total = int(base + 0.5) + bonus
    return DeepScoreBreakdown(
        total=min(total, MAX_SCORE),
        base=round(base, 2),
        behavioral_bonus=bonus,
        components={k: round(v, 2) for k, v in components.items()},
    )
