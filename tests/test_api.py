"""Tests for the Proof-of-Agent HTTP API."""

import pytest
from httpx import ASGITransport, AsyncClient

from poa.api import ProofCache, create_app
from poa.attestation import SignedAttestationLedger
from poa.circuit import prove_threshold
from poa.config import Settings
from poa.engine import VerificationEngine

AGENT_URL = "https://agent.test/api"
WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"

TRACE = {
    "period": {"start": "2026-02-01T00:00:00Z", "end": "2026-02-02T00:00:00Z"},
    "summary": {"totalActions": 1000, "successRate": 1.0, "errorRate": 0.0},
    "actions": [],
}


@pytest.fixture
def engine(fake_transport, agent_routes):
    return VerificationEngine(
        transport_factory=lambda: fake_transport(agent_routes),
        attestor=SignedAttestationLedger(),
    )


@pytest.fixture
def app(engine):
    return create_app(Settings(ratelimit_enabled=False), engine=engine)


@pytest.fixture
def secured_app(engine):
    return create_app(Settings(ratelimit_enabled=False, api_key="s3cret"), engine=engine)


def _client(app):
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


# ── Health ──

@pytest.mark.asyncio
async def test_health(app):
    async with _client(app) as c:
        r = await c.get("/api/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "operational"
    assert data["verificationsProcessed"] == 0
    assert r.headers["X-Request-ID"]
    assert r.headers["X-Content-Type-Options"] == "nosniff"


@pytest.mark.asyncio
async def test_request_id_echoed(app):
    async with _client(app) as c:
        r = await c.get("/api/health", headers={"X-Request-ID": "req-42"})
    assert r.headers["X-Request-ID"] == "req-42"


# ── Async verification ──

@pytest.mark.asyncio
async def test_submit_and_poll(app, engine):
    async with _client(app) as c:
        r = await c.post("/api/verify", json={
            "agentName": "scout",
            "apiEndpoint": AGENT_URL,
            "capabilities": ["trading"],
            "testLevel": "standard",
        })
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "testing"
        assert data["estimatedTime"] == "1 minute"
        vid = data["verificationId"]

        await engine.wait(vid)
        r = await c.get(f"/api/status/{vid}")
    assert r.status_code == 200
    record = r.json()
    assert record["status"] == "verified"
    assert record["score"] == 100
    assert record["tier"] == "excellent"
    assert list(record["checks"]) == [
        "liveness", "healthEndpoint", "validJson", "capability_trading"]
    assert record["completedAt"] is not None


@pytest.mark.asyncio
async def test_status_not_found(app):
    async with _client(app) as c:
        r = await c.get("/api/status/poa-nope")
    assert r.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"agentName": "", "apiEndpoint": AGENT_URL},
    {"agentName": "scout"},
    {"agentName": "scout", "apiEndpoint": AGENT_URL, "testLevel": "extreme"},
])
async def test_submit_validation(app, body):
    async with _client(app) as c:
        r = await c.post("/api/verify", json=body)
    assert r.status_code == 400
    assert "error" in r.json()


@pytest.mark.asyncio
async def test_score_and_verifications(app, engine):
    async with _client(app) as c:
        r = await c.get("/api/score/scout")
        assert r.status_code == 404

        r = await c.post("/api/verify", json={"agentName": "Scout", "apiEndpoint": AGENT_URL})
        await engine.wait(r.json()["verificationId"])

        r = await c.get("/api/score/scout")
        assert r.status_code == 200
        assert r.json()["score"] == 100

        r = await c.get("/api/verifications", params={"limit": 5})
        assert r.json()["count"] == 1

        r = await c.get("/api/verifications", params={"limit": 0})
        assert r.status_code == 422


# ── Synchronous flavors ──

@pytest.mark.asyncio
async def test_verify_quick(app):
    async with _client(app) as c:
        r = await c.post("/api/verify/quick", json={"agentId": "quick", "apiEndpoint": AGENT_URL})
    data = r.json()
    assert r.status_code == 200
    assert data["success"] is True
    assert data["agentId"] == "quick"
    assert data["scoring"] == "normalized"


@pytest.mark.asyncio
async def test_verify_quick_requires_fields(app):
    async with _client(app) as c:
        r = await c.post("/api/verify/quick", json={"agentId": "quick"})
    assert r.status_code == 400
    assert r.json()["error"] == "agentId and apiEndpoint required"


@pytest.mark.asyncio
async def test_verify_deep(app):
    async with _client(app) as c:
        r = await c.post("/api/verify/deep", json={
            "agentId": "deep",
            "codeUrl": "https://github.com/example/deep",
            "documentation": True,
            "testCoverage": 100,
            "codeLines": 10000,
        })
    data = r.json()
    # 15 + 10 + 20 + 30
    assert data["score"] == 75
    assert data["scoring"] == "additive"
    assert data["success"] is True


@pytest.mark.asyncio
async def test_verify_deep_rejects_bad_coverage(app):
    async with _client(app) as c:
        r = await c.post("/api/verify/deep", json={"agentId": "deep", "testCoverage": 140})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_verify_status_and_list(app):
    async with _client(app) as c:
        r = await c.get("/api/verify/status/ghost")
        assert r.json() == {"verified": False, "score": 0, "tier": "needs-work"}

        await c.post("/api/verify/quick", json={"agentId": "listed", "apiEndpoint": AGENT_URL})
        r = await c.get("/api/verify/status/listed")
        assert r.json()["verified"] is True
        assert r.json()["expiresAt"] is not None

        r = await c.get("/api/verify/list")
    assert r.json()["count"] == 1
    assert r.json()["agents"][0]["agent"] == "listed"


@pytest.mark.asyncio
async def test_agent_kit(app):
    async with _client(app) as c:
        r = await c.post("/api/verify/agent-kit", json={
            "agentId": "kit",
            "packageJson": {"dependencies": {"solana-agent-kit": "^2",
                                             "@solana-agent-kit/plugin-token": "^2"}},
        })
    assert r.json() == {"agentId": "kit", "usesAgentKit": True,
                        "detectedPlugins": ["token"], "scoreBoost": 8}


# ── Proofs ──

@pytest.mark.asyncio
async def test_stark_generate_unknown_agent(app):
    async with _client(app) as c:
        r = await c.post("/api/stark/generate/ghost", json={"threshold": 60})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_stark_generate_and_verify(app):
    async with _client(app) as c:
        await c.post("/api/verify/quick", json={"agentId": "prover", "apiEndpoint": AGENT_URL})
        r = await c.post("/api/stark/generate/prover", json={"threshold": 80})
        assert r.status_code == 200
        data = r.json()
        assert data["valid"] is True
        assert data["meetsThreshold"] is True
        assert data["publicInputs"]["threshold"] == 80
        assert "score" not in data["publicInputs"]
        assert data["metadata"]["security"] == 0

        by_hash = await c.post("/api/stark/verify",
                               json={"proofHash": data["proof"]["proofHash"]})
        assert by_hash.json()["valid"] is True

        wire = {**data["proof"], "publicInputs": data["publicInputs"],
                "metadata": data["metadata"]}
        by_body = await c.post("/api/stark/verify", json={"proof": wire})
        assert by_body.json()["valid"] is True

        wire["publicInputs"] = {**wire["publicInputs"], "threshold": 150}
        forged = await c.post("/api/stark/verify", json={"proof": wire})
        assert forged.json()["valid"] is False

        unknown = await c.post("/api/stark/verify", json={"proofHash": "deadbeef"})
        assert unknown.json() == {"valid": False}


@pytest.mark.asyncio
@pytest.mark.parametrize("public", [[1], "threshold", 7])
async def test_stark_verify_non_object_public_inputs(app, public):
    proof = {"commitment": "a", "trace": "b", "proofHash": "c", "publicInputs": public}
    async with _client(app) as c:
        r = await c.post("/api/stark/verify", json={"proof": proof})
    assert r.status_code == 200
    assert r.json()["valid"] is False


def test_proof_cache_evicts_least_recently_used():
    proofs = [prove_threshold(f"agent-{i}", score=70, threshold=60) for i in range(3)]
    cache = ProofCache(max_size=2)
    cache.put(proofs[0])
    cache.put(proofs[1])
    assert cache.get(proofs[0].proof_hash) is proofs[0]
    cache.put(proofs[2])
    assert len(cache) == 2
    assert cache.get(proofs[1].proof_hash) is None
    assert cache.get(proofs[0].proof_hash) is proofs[0]
    assert cache.get(proofs[2].proof_hash) is proofs[2]


@pytest.mark.asyncio
async def test_proof_cache_bounded_by_settings(engine):
    app = create_app(Settings(ratelimit_enabled=False, proof_cache_size=1), engine=engine)
    async with _client(app) as c:
        await c.post("/api/verify/quick", json={"agentId": "cached", "apiEndpoint": AGENT_URL})
        first = (await c.post("/api/stark/generate/cached", json={"threshold": 50})).json()
        second = (await c.post("/api/stark/generate/cached", json={"threshold": 70})).json()
        old = await c.post("/api/stark/verify", json={"proofHash": first["proof"]["proofHash"]})
        new = await c.post("/api/stark/verify", json={"proofHash": second["proof"]["proofHash"]})
    assert len(app.state.proofs) == 1
    assert old.json() == {"valid": False}
    assert new.json()["valid"] is True


@pytest.mark.asyncio
async def test_stark_generate_default_threshold(app):
    async with _client(app) as c:
        await c.post("/api/verify/quick", json={"agentId": "dflt", "apiEndpoint": AGENT_URL})
        r = await c.post("/api/stark/generate/dflt")
    assert r.json()["publicInputs"]["threshold"] == 60


@pytest.mark.asyncio
async def test_stark_threshold_bounds(app):
    async with _client(app) as c:
        r = await c.post("/api/stark/generate/any", json={"threshold": 101})
    assert r.status_code == 422


# ── Traces ──

@pytest.mark.asyncio
async def test_traces(app):
    async with _client(app) as c:
        r = await c.post("/api/traces", json={"agentId": "tracer", "trace": TRACE})
        assert r.status_code == 200
        assert r.json()["totalBonus"] == 21

        r = await c.get("/api/traces/tracer")
    data = r.json()
    assert data["behavioralScore"] == 21
    assert len(data["traces"]) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("period,summary", [
    (TRACE["period"], {**TRACE["summary"], "successRate": "high"}),
    ({"start": "yesterday", "end": "2026-02-02T00:00:00Z"}, TRACE["summary"]),
])
async def test_unparseable_trace_values(app, period, summary):
    async with _client(app) as c:
        r = await c.post("/api/traces", json={
            "agentId": "tracer", "trace": {"period": period, "summary": summary}})
    assert r.status_code == 400
    assert r.json()["error"].startswith("malformed trace")


@pytest.mark.asyncio
async def test_mixed_timestamp_traces_keep_deep_scoring(app):
    naive = {**TRACE, "period": {"start": "2026-02-03T00:00:00", "end": "2026-02-04T00:00:00"}}
    async with _client(app) as c:
        first = await c.post("/api/traces", json={"agentId": "mixed", "trace": TRACE})
        second = await c.post("/api/traces", json={"agentId": "mixed", "trace": naive})
        deep = await c.post("/api/verify/deep", json={
            "agentId": "mixed", "codeUrl": "https://github.com/example/mixed"})
    assert first.status_code == second.status_code == 200
    data = deep.json()
    assert data["scoring"] == "additive"
    assert data["behavioral"]["traceCount"] == 2
    assert "error" not in data["checks"]


@pytest.mark.asyncio
async def test_malformed_trace(app):
    async with _client(app) as c:
        r = await c.post("/api/traces", json={"agentId": "tracer", "trace": {"summary": {}}})
    assert r.status_code == 400


# ── Attestations ──

@pytest.mark.asyncio
async def test_attestation_lookup(app, engine):
    async with _client(app) as c:
        r = await c.post("/api/verify", json={
            "agentName": "attested", "apiEndpoint": AGENT_URL, "walletAddress": WALLET,
        })
        record = await engine.wait(r.json()["verificationId"])
        ref = record.attestation.reference

        r = await c.get(f"/api/attestations/{ref}")
        assert r.json()["valid"] is True
        assert r.json()["attestation"]["identity"] == WALLET

        r = await c.get("/api/attestations/unknown")
    assert r.json() == {"valid": False}


# ── Auth ──

@pytest.mark.asyncio
async def test_write_auth(secured_app):
    body = {"agentName": "scout", "apiEndpoint": AGENT_URL}
    async with _client(secured_app) as c:
        missing = await c.post("/api/verify", json=body)
        wrong = await c.post("/api/verify", json=body, headers={"X-API-Key": "nope"})
        ok = await c.post("/api/verify", json=body, headers={"X-API-Key": "s3cret"})
        read = await c.get("/api/health")
    assert missing.status_code == 401
    assert wrong.status_code == 403
    assert ok.status_code == 200
    assert read.status_code == 200
