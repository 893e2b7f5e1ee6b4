"""
poa API — Proof-of-Agent verification service.

Endpoints (prefix /api):
  GET  /health                    — Service health
  POST /verify                    — Submit a verification (returns immediately)
  GET  /status/{id}               — Poll a verification record
  GET  /score/{agent}             — Latest verified score for an agent
  GET  /verifications             — Recent verifications
  POST /verify/quick              — Basic battery, normalized score (waits)
  POST /verify/deep               — Additive score from static signals (waits)
  GET  /verify/status/{agent}     — Verified/expiry summary for an agent
  GET  /verify/list               — Agents with a current verified score
  POST /verify/agent-kit          — Detect agent-kit usage from package.json
  POST /stark/generate/{agent}    — Threshold proof over the latest verified score
  POST /stark/verify              — Structural proof verification
  POST /traces                    — Submit an execution trace
  GET  /traces/{agent}            — Traces and behavioral bonus for an agent
  GET  /attestations/{reference}  — Check a signed attestation
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from poa import __version__
from poa.attestation import SignedAttestationLedger
from poa.behavioral import ExecutionTrace, TraceRegistry
from poa.circuit import ConstraintViolation, StarkProof, verify_stark_proof
from poa.config import Settings
from poa.ecosystem import detect_agent_kit
from poa.engine import VerificationEngine
from poa.models import (
    ESTIMATED_DURATION, ValidationError, VerificationRecord, VerificationRequest,
    VerificationStatus, utcnow,
)
from poa.security import apply_security, limiter, require_write_auth, setup_structured_logging
from poa.storage import open_store

# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class VerifyRequestModel(_CamelModel):
    agent_name: str = Field("", alias="agentName", max_length=200)
    api_endpoint: Optional[str] = Field(None, alias="apiEndpoint", max_length=2000)
    capabilities: list[str] = []
    test_level: str = Field("basic", alias="testLevel")
    wallet_address: Optional[str] = Field(None, alias="walletAddress", max_length=200)


class QuickVerifyModel(_CamelModel):
    agent_id: str = Field("", alias="agentId", max_length=200)
    api_endpoint: str = Field("", alias="apiEndpoint", max_length=2000)


class DeepVerifyModel(_CamelModel):
    agent_id: str = Field("", alias="agentId", max_length=200)
    api_endpoint: Optional[str] = Field(None, alias="apiEndpoint", max_length=2000)
    capabilities: list[str] = []
    test_level: str = Field("basic", alias="testLevel")
    wallet_address: Optional[str] = Field(None, alias="walletAddress", max_length=200)
    code_url: Optional[str] = Field(None, alias="codeUrl")
    documentation: Optional[bool] = None
    test_coverage: Optional[float] = Field(None, alias="testCoverage")
    code_lines: Optional[int] = Field(None, alias="codeLines")
    package_json: Optional[dict] = Field(None, alias="packageJson")
    uses_pyth: bool = Field(False, alias="usesPyth")
    uses_jito: bool = Field(False, alias="usesJito")


class ProofRequestModel(_CamelModel):
    threshold: int = Field(60, ge=0, le=100)


class ProofVerifyModel(_CamelModel):
    proof: Optional[dict] = None
    proof_hash: Optional[str] = Field(None, alias="proofHash")


class TraceSubmitModel(_CamelModel):
    agent_id: str = Field(..., alias="agentId", min_length=1, max_length=200)
    trace: dict


class AgentKitModel(_CamelModel):
    agent_id: str = Field("", alias="agentId")
    package_json: dict = Field(default_factory=dict, alias="packageJson")


# ---------------------------------------------------------------------------
# Proof cache
# ---------------------------------------------------------------------------

class ProofCache:
    """Recently generated proofs by proof hash, least recently used evicted first."""

    def __init__(self, max_size: int = 1000):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._max_size = max_size
        self._entries: OrderedDict[str, StarkProof] = OrderedDict()
        self._lock = threading.Lock()

    def put(self, proof: StarkProof) -> None:
        with self._lock:
            self._entries[proof.proof_hash] = proof
            self._entries.move_to_end(proof.proof_hash)
            while len(self._entries) > self._max_size:
                self._entries.popitem(last=False)

    def get(self, proof_hash: str) -> Optional[StarkProof]:
        with self._lock:
            proof = self._entries.get(proof_hash)
            if proof is not None:
                self._entries.move_to_end(proof_hash)
            return proof

    def __len__(self) -> int:
        return len(self._entries)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_engine(request: Request) -> VerificationEngine:
    return request.app.state.engine


def _record_or_404(engine: VerificationEngine, verification_id: str) -> VerificationRecord:
    record = engine.get(verification_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Verification not found")
    return record


def _result_body(record: VerificationRecord) -> dict:
    body = record.to_dict()
    body["success"] = record.status is VerificationStatus.VERIFIED
    body["agentId"] = record.agent_name
    body["verificationId"] = record.id
    return body


def _status_summary(record: Optional[VerificationRecord]) -> dict:
    if record is None:
        return {"verified": False, "score": 0, "tier": "needs-work"}
    expired = record.expires_at is not None and record.expires_at <= utcnow()
    return {
        "agent": record.agent_name,
        "verified": not expired,
        "score": record.score,
        "tier": record.tier.value,
        "verifiedAt": record.completed_at.isoformat(),
        "expiresAt": record.expires_at.isoformat() if record.expires_at else None,
        "attestation": record.attestation.to_dict() if record.attestation else None,
    }


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

router = APIRouter(prefix="/api")


@router.get("/health")
async def health(engine: VerificationEngine = Depends(get_engine)):
    return {
        "service": "Proof-of-Agent Verification",
        "version": __version__,
        "status": "operational",
        "verificationsProcessed": engine.store.count(),
    }


@router.post("/verify", dependencies=[Depends(require_write_auth)])
@limiter.limit("30/minute")
async def submit_verification(body: VerifyRequestModel, request: Request,
                              engine: VerificationEngine = Depends(get_engine)):
    req = VerificationRequest(
        agent_name=body.agent_name,
        endpoint=body.api_endpoint,
        capabilities=frozenset(body.capabilities),
        level=body.test_level,
        wallet_address=body.wallet_address,
    )
    record = engine.submit(req)
    return {
        "verificationId": record.id,
        "status": record.status.value,
        "message": "Verification started. Poll /api/status/:id for results.",
        "estimatedTime": ESTIMATED_DURATION[req.level],
    }


@router.get("/status/{verification_id}")
async def get_status(verification_id: str, engine: VerificationEngine = Depends(get_engine)):
    return _record_or_404(engine, verification_id).to_dict()


@router.get("/score/{agent}")
async def get_score(agent: str, engine: VerificationEngine = Depends(get_engine)):
    record = engine.latest_verified(agent)
    if record is None:
        raise HTTPException(status_code=404, detail="No verified score found for agent")
    return {
        "agent": record.agent_name,
        "score": record.score,
        "tier": record.tier.value,
        "verifiedAt": record.completed_at.isoformat(),
        "attestation": record.attestation.reference if record.attestation else None,
    }


@router.get("/verifications")
async def list_verifications(limit: int = Query(20, ge=1, le=100),
                             engine: VerificationEngine = Depends(get_engine)):
    records = engine.list_recent(limit)
    return {
        "count": len(records),
        "total": engine.store.count(),
        "verifications": [r.to_dict() for r in records],
    }


@router.post("/verify/quick", dependencies=[Depends(require_write_auth)])
async def verify_quick(body: QuickVerifyModel, engine: VerificationEngine = Depends(get_engine)):
    if not body.agent_id or not body.api_endpoint:
        raise ValidationError("agentId and apiEndpoint required")
    record = await engine.verify_quick(body.agent_id, body.api_endpoint)
    return _result_body(record)


@router.post("/verify/deep", dependencies=[Depends(require_write_auth)])
async def verify_deep(body: DeepVerifyModel, engine: VerificationEngine = Depends(get_engine)):
    req = VerificationRequest(
        agent_name=body.agent_id,
        endpoint=body.api_endpoint,
        capabilities=frozenset(body.capabilities),
        level=body.test_level,
        wallet_address=body.wallet_address,
        code_url=body.code_url,
        documentation=body.documentation,
        code_lines=body.code_lines,
        test_coverage=body.test_coverage,
        package_json=body.package_json,
        uses_pyth=body.uses_pyth,
        uses_jito=body.uses_jito,
    )
    record = await engine.verify_deep(req)
    return _result_body(record)


@router.get("/verify/status/{agent}")
async def verify_status(agent: str, engine: VerificationEngine = Depends(get_engine)):
    return _status_summary(engine.latest_verified(agent))


@router.get("/verify/list")
async def verify_list(engine: VerificationEngine = Depends(get_engine)):
    names = {r.agent_name.lower() for r in engine.store.all_records()
             if r.status is VerificationStatus.VERIFIED}
    agents = [_status_summary(engine.latest_verified(n)) for n in sorted(names)]
    agents = [a for a in agents if a["verified"]]
    return {"agents": agents, "count": len(agents)}


@router.post("/verify/agent-kit")
async def agent_kit(body: AgentKitModel):
    return {"agentId": body.agent_id, **detect_agent_kit(body.package_json)}


@router.post("/stark/generate/{agent}")
async def stark_generate(agent: str, request: Request,
                         body: Optional[ProofRequestModel] = None,
                         engine: VerificationEngine = Depends(get_engine)):
    try:
        threshold = body.threshold if body is not None else 60
        proof = engine.generate_proof(agent, threshold)
    except KeyError:
        raise HTTPException(status_code=404, detail="No verified score found for agent")
    request.app.state.proofs.put(proof)
    wire = proof.to_dict()
    return {
        "valid": True,
        "meetsThreshold": proof.meets_threshold,
        "proof": {k: wire[k] for k in ("commitment", "trace", "proofHash")},
        "publicInputs": wire["publicInputs"],
        "metadata": wire["metadata"],
    }


@router.post("/stark/verify")
async def stark_verify(body: ProofVerifyModel, request: Request):
    proof = None
    if body.proof is not None:
        proof = StarkProof.from_dict(body.proof)
    elif body.proof_hash:
        proof = request.app.state.proofs.get(body.proof_hash)
    if proof is None:
        return {"valid": False}
    return {"valid": verify_stark_proof(proof), "details": proof.public_inputs}


@router.post("/traces", dependencies=[Depends(require_write_auth)])
async def submit_trace(body: TraceSubmitModel, engine: VerificationEngine = Depends(get_engine)):
    trace = ExecutionTrace.from_dict(body.trace)
    return engine.traces.submit(body.agent_id, trace)


@router.get("/traces/{agent_id}")
async def get_traces(agent_id: str, engine: VerificationEngine = Depends(get_engine)):
    score = engine.traces.score_for(agent_id)
    return {
        "agentId": agent_id,
        "traces": engine.traces.traces_for(agent_id),
        "behavioralScore": score.bonus,
    }


@router.get("/attestations/{reference}")
async def get_attestation(reference: str, request: Request):
    ledger = request.app.state.engine.attestor
    if not isinstance(ledger, SignedAttestationLedger):
        raise HTTPException(status_code=404, detail="Attestation lookup not available")
    return ledger.verify_attestation(reference)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

async def _validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


async def _constraint_violation_handler(request: Request, exc: ConstraintViolation):
    return JSONResponse(status_code=422, content={"error": str(exc), "violated": exc.violated})


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def build_engine(settings: Settings) -> VerificationEngine:
    if settings.signing_key:
        ledger = SignedAttestationLedger.from_seed_hex(
            settings.signing_key, ttl_days=settings.attestation_ttl_days)
    else:
        ledger = SignedAttestationLedger(ttl_days=settings.attestation_ttl_days)
    return VerificationEngine(
        open_store(settings.store),
        attestor=ledger,
        traces=TraceRegistry(),
        pass_threshold=settings.pass_threshold,
        attestation_ttl_days=settings.attestation_ttl_days,
    )


def create_app(settings: Optional[Settings] = None,
               engine: Optional[VerificationEngine] = None) -> FastAPI:
    """Create the FastAPI app around an engine (built from settings when omitted)."""
    settings = settings or Settings.from_env()
    setup_structured_logging(settings.log_level)

    app = FastAPI(
        title="Proof-of-Agent",
        description="Behavioral verification and threshold proofs for AI agents",
        version=__version__,
    )
    app.state.engine = engine or build_engine(settings)
    app.state.api_key = settings.api_key
    app.state.proofs = ProofCache(settings.proof_cache_size)
    limiter.enabled = settings.ratelimit_enabled

    apply_security(app, settings.allowed_origins)
    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.add_exception_handler(ConstraintViolation, _constraint_violation_handler)
    app.include_router(router)
    return app
