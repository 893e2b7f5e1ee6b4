"""
poa.verifier — Run the probe battery at a depth level and score it.

Levels are strict prefixes of each other:
    basic          liveness, healthEndpoint, validJson
    standard       + capability_<name> for each requested capability
    comprehensive  + consistency, errorHandling, rateLimiting

A failed liveness probe ends the run immediately with score 0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from poa import probes
from poa.models import CheckResult, VerificationLevel
from poa.scoring import score_checks
from poa.transport import HttpTransport

logger = logging.getLogger(__name__)


@dataclass
class BatteryResult:
    score: int
    checks: dict[str, CheckResult] = field(default_factory=dict)

    @property
    def live(self) -> bool:
        liveness = self.checks.get("liveness")
        return bool(liveness and liveness.success)


async def run_battery(
    endpoint: str,
    capabilities: Iterable[str] = (),
    level: Union[VerificationLevel, str] = VerificationLevel.BASIC,
    transport: Optional[HttpTransport] = None,
) -> dict[str, CheckResult]:
    """Execute the probes for ``level`` in order and return the ordered checks."""
    level = VerificationLevel(level)
    owns_transport = transport is None
    transport = transport or HttpTransport()
    checks: dict[str, CheckResult] = {}
    try:
        checks["liveness"] = await probes.check_liveness(transport, endpoint)
        if not checks["liveness"].success:
            logger.info("Liveness failed for %s, skipping remaining probes", endpoint)
            return checks

        checks["healthEndpoint"] = await probes.check_health(transport, endpoint)
        checks["validJson"] = await probes.check_response_format(transport, endpoint)
        if level is VerificationLevel.BASIC:
            return checks

        for cap in sorted(set(capabilities)):
            checks[f"capability_{cap}"] = await probes.check_capability(transport, endpoint, cap)
        if level is VerificationLevel.STANDARD:
            return checks

        checks["consistency"] = await probes.check_consistency(transport, endpoint)
        checks["errorHandling"] = await probes.check_error_handling(transport, endpoint)
        checks["rateLimiting"] = await probes.check_rate_limiting(transport, endpoint)
        return checks
    finally:
        if owns_transport:
            await transport.aclose()


async def verify_agent(
    endpoint: str,
    capabilities: Iterable[str] = (),
    level: Union[VerificationLevel, str] = VerificationLevel.BASIC,
    transport: Optional[HttpTransport] = None,
) -> BatteryResult:
    """Run the battery and apply the normalized score."""
    checks = await run_battery(endpoint, capabilities, level, transport)
    if not checks["liveness"].success:
        return BatteryResult(score=0, checks=checks)
    return BatteryResult(score=score_checks(checks), checks=checks)
