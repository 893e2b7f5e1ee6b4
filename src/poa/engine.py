"""
poa.engine — Verification state machine.

Lifecycle of a VerificationRecord:

    pending --(accepted, synchronously)--> testing --+--> verified  (score >= threshold)
                                                     +--> failed    (score < threshold, or run crashed)

submit() stores the record, moves it to testing before any probe runs and
schedules the run as an asyncio task; callers poll get() by id or await
wait(). The terminal transition writes status, score, tier, checks and
completed_at in one replace() call. A best-effort attestation follows a
verified transition when the request carries a wallet address; its failure
is logged and never changes the outcome.

Usage:
    engine = VerificationEngine()
    record = engine.submit(VerificationRequest(agent_name="scout", endpoint=url))
    record = await engine.wait(record.id)
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Callable, Optional

from poa.attestation import AttestationWriter
from poa.behavioral import TraceRegistry
from poa.circuit import StarkProof, prove_threshold
from poa.ecosystem import detect_ecosystem
from poa.models import (
    BehavioralScore, CheckResult, VerificationLevel, VerificationRecord,
    VerificationRequest, VerificationStatus, utcnow,
)
from poa.scoring import calculate_tier, score_deep
from poa.storage import DEFAULT_LIST_LIMIT, MemoryRecordStore, RecordStore
from poa.transport import HttpTransport
from poa.verifier import run_battery, verify_agent

logger = logging.getLogger(__name__)

NORMALIZED = "normalized"
ADDITIVE = "additive"


def new_verification_id() -> str:
    return f"poa-{int(time.time() * 1000):x}-{secrets.token_hex(3)}"


@dataclass
class _Outcome:
    score: int
    checks: dict[str, CheckResult]
    behavioral: Optional[BehavioralScore] = None


class VerificationEngine:
    """Owns verification records from submission to their terminal state."""

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        *,
        attestor: Optional[AttestationWriter] = None,
        traces: Optional[TraceRegistry] = None,
        transport_factory: Optional[Callable[[], HttpTransport]] = None,
        pass_threshold: int = 60,
        attestation_ttl_days: int = 30,
    ):
        self.store = store if store is not None else MemoryRecordStore()
        self.attestor = attestor
        self.traces = traces if traces is not None else TraceRegistry()
        self._transport_factory = transport_factory or HttpTransport
        self.pass_threshold = pass_threshold
        self.ttl = timedelta(days=attestation_ttl_days)
        self._tasks: dict[str, asyncio.Task] = {}

    # ── Submission ──

    def submit(self, request: VerificationRequest, *,
               scoring: Optional[str] = None) -> VerificationRecord:
        """
        Accept a request and start its run on the current event loop.

        ``scoring`` forces a path; by default requests carrying static or
        ecosystem signals use the additive formula, all others the
        normalized one. Must be called with a running loop.
        """
        if scoring is None:
            scoring = ADDITIVE if request.is_deep else NORMALIZED
        if scoring not in (NORMALIZED, ADDITIVE):
            raise ValueError(f"unknown scoring path: {scoring}")
        if scoring == NORMALIZED and not request.endpoint:
            raise ValueError("normalized scoring needs an endpoint")

        loop = asyncio.get_running_loop()
        record = VerificationRecord(
            id=new_verification_id(),
            agent_name=request.agent_name,
            level=request.level,
            scoring=scoring,
        )
        self.store.create(record)
        logger.info("Verification %s submitted for %s (level=%s, scoring=%s)",
                    record.id, record.agent_name, record.level.value, scoring)

        testing = replace(record, status=VerificationStatus.TESTING)
        self.store.replace(record.id, testing)
        logger.info("Verification %s testing", record.id)
        task = loop.create_task(self._run(testing, request))
        task.add_done_callback(lambda _t, rid=record.id: self._tasks.pop(rid, None))
        self._tasks[record.id] = task
        return testing

    async def run(self, request: VerificationRequest, *,
                  scoring: Optional[str] = None) -> VerificationRecord:
        """Submit and wait for the terminal record."""
        record = self.submit(request, scoring=scoring)
        return await self.wait(record.id)

    async def wait(self, verification_id: str,
                   timeout: Optional[float] = None) -> VerificationRecord:
        task = self._tasks.get(verification_id)
        if task is not None:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        record = self.store.get(verification_id)
        if record is None:
            raise KeyError(verification_id)
        return record

    # ── Named verification flavors ──

    async def verify_quick(self, agent_name: str, endpoint: str) -> VerificationRecord:
        """Basic-depth battery, normalized score."""
        request = VerificationRequest(agent_name=agent_name, endpoint=endpoint,
                                      level=VerificationLevel.BASIC)
        return await self.run(request, scoring=NORMALIZED)

    async def verify_deep(self, request: VerificationRequest) -> VerificationRecord:
        """Additive score over static, ecosystem and behavioral signals."""
        return await self.run(request, scoring=ADDITIVE)

    # ── Queries ──

    def get(self, verification_id: str) -> Optional[VerificationRecord]:
        return self.store.get(verification_id)

    def list_recent(self, limit: int = DEFAULT_LIST_LIMIT) -> list[VerificationRecord]:
        return self.store.list_recent(limit)

    def latest_verified(self, agent_name: str) -> Optional[VerificationRecord]:
        """Most recently completed verified record for an agent (case-insensitive)."""
        name = agent_name.lower()
        candidates = [
            r for r in self.store.all_records()
            if r.agent_name.lower() == name and r.status is VerificationStatus.VERIFIED
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda r: r.completed_at)

    def generate_proof(self, agent_name: str, threshold: int = 60) -> StarkProof:
        """Threshold proof over the agent's latest verified score."""
        record = self.latest_verified(agent_name)
        if record is None:
            raise KeyError(agent_name)
        return prove_threshold(record.agent_name, record.score, threshold,
                               timestamp=int(record.completed_at.timestamp()))

    # ── Run ──

    async def _run(self, record: VerificationRecord, request: VerificationRequest) -> None:
        try:
            if record.scoring == ADDITIVE:
                outcome = await self._evaluate_additive(request)
            else:
                outcome = await self._evaluate_normalized(request)
        except Exception as e:
            logger.exception("Verification %s crashed", record.id)
            failed = replace(
                record,
                status=VerificationStatus.FAILED,
                score=0,
                tier=calculate_tier(0),
                checks={"error": CheckResult(False, str(e) or type(e).__name__)},
                completed_at=utcnow(),
            )
            self.store.replace(record.id, failed)
            return

        verified = outcome.score >= self.pass_threshold
        completed = utcnow()
        final = replace(
            record,
            status=VerificationStatus.VERIFIED if verified else VerificationStatus.FAILED,
            score=outcome.score,
            tier=calculate_tier(outcome.score),
            checks=outcome.checks,
            behavioral=outcome.behavioral,
            completed_at=completed,
            expires_at=completed + self.ttl if verified else None,
        )
        self.store.replace(record.id, final)
        logger.info("Verification %s %s with score %d",
                    record.id, final.status.value, final.score)

        if verified and request.wallet_address and self.attestor is not None:
            await self._attest(final, request.wallet_address)

    async def _evaluate_normalized(self, request: VerificationRequest) -> _Outcome:
        transport = self._transport_factory()
        try:
            result = await verify_agent(request.endpoint, request.capabilities,
                                        request.level, transport)
        finally:
            await transport.aclose()
        return _Outcome(score=result.score, checks=result.checks)

    async def _evaluate_additive(self, request: VerificationRequest) -> _Outcome:
        checks: dict[str, CheckResult] = {}
        if request.endpoint:
            transport = self._transport_factory()
            try:
                checks = await run_battery(request.endpoint, request.capabilities,
                                           request.level, transport)
            finally:
                await transport.aclose()

        behavioral = self.traces.score_for(request.agent_name)
        breakdown = score_deep(
            has_code_url=bool(request.code_url),
            endpoint_working=bool(checks.get("liveness")),
            capability_count=len(request.capabilities),
            code_lines=request.code_lines or 0,
            documentation=bool(request.documentation),
            test_coverage=request.test_coverage or 0.0,
            ecosystem=detect_ecosystem(request.package_json, uses_pyth=request.uses_pyth,
                                       uses_jito=request.uses_jito),
            behavioral_bonus=behavioral.bonus,
        )
        return _Outcome(
            score=breakdown.total,
            checks=checks,
            behavioral=behavioral if behavioral.trace_count else None,
        )

    async def _attest(self, record: VerificationRecord, identity: str) -> None:
        try:
            receipt = await self.attestor.write(record.agent_name, identity, record.score)
        except Exception:
            logger.exception("Attestation failed for verification %s", record.id)
            return
        self.store.replace(record.id, replace(record, attestation=receipt))
        logger.info("Verification %s attested as %s", record.id, receipt.reference)
