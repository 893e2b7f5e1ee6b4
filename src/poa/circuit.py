"""
poa.circuit — Threshold proof circuit: prove "score >= threshold" over M31.

Pipeline:
    inputs -> evaluate_circuit (3 boolean constraints + commitment)
           -> generate_execution_trace (fixed 4-row synthetic trace)
           -> generate_stark_proof (commitment, trace, proof hash, public inputs)
           -> verify_stark_proof (structural check only)

Deprecated demonstration scheme: the "proof" is a sponge commitment plus a
didactic trace. It is not a STARK and provides no soundness. In particular
verify_stark_proof never recomputes the commitment, so a proof carrying an
unrelated commitment still verifies.

Usage:
    proof = prove_threshold("agent-7", score=72, threshold=60)
    assert verify_stark_proof(proof)
    wire = proof.to_dict()
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field as dc_field
from typing import Optional, Union

from poa import field
from poa.sponge import agent_id_to_field_element, sponge_hash

MIN_SCORE = 0
MAX_SCORE = 125  # 100 base + 25 behavioral bonus
MAX_PUBLIC_THRESHOLD = 100
EXPIRY_SECONDS = 30 * 24 * 60 * 60

PROVER_NAME = "poa-stark-v1-DEPRECATED"
SECURITY_BITS = 0


class ConstraintViolation(ValueError):
    """Raised when inputs cannot produce a proof at all (out of range or expired)."""

    def __init__(self, violated: list[str]):
        self.violated = violated
        super().__init__(f"Circuit constraints not satisfied: {', '.join(violated)}")


@dataclass(frozen=True)
class CircuitInputs:
    score: int
    threshold: int
    timestamp: int  # unix seconds of the verification
    agent_id_hash: int  # field element derived from the identity


@dataclass(frozen=True)
class CircuitOutputs:
    range_valid: bool
    meets_threshold: bool
    not_expired: bool
    commitment: int

    @property
    def constraints_satisfied(self) -> bool:
        return self.range_valid and self.not_expired


@dataclass(frozen=True)
class CircuitTrace:
    states: tuple[tuple[int, int, int, int], ...]

    @property
    def length(self) -> int:
        return len(self.states)

    def serialize(self) -> str:
        return ";".join(",".join(_hex(v) for v in row) for row in self.states)


@dataclass
class StarkProof:
    commitment: str
    trace: str
    proof_hash: str
    threshold: int
    agent_id_hash: str
    timestamp_verified: int
    prover: str = PROVER_NAME
    field_name: str = field.FIELD_NAME
    security: int = SECURITY_BITS
    meets_threshold: bool = dc_field(default=False, compare=False)

    @property
    def public_inputs(self) -> dict:
        return {
            "threshold": self.threshold,
            "agentIdHash": self.agent_id_hash,
            "timestampVerified": self.timestamp_verified,
        }

    @property
    def metadata(self) -> dict:
        return {"prover": self.prover, "field": self.field_name, "security": self.security}

    def to_dict(self) -> dict:
        """Wire shape. The score itself is never part of it."""
        return {
            "commitment": self.commitment,
            "trace": self.trace,
            "proofHash": self.proof_hash,
            "publicInputs": self.public_inputs,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StarkProof":
        public = data.get("publicInputs")
        meta = data.get("metadata")
        public = public if isinstance(public, dict) else {}
        meta = meta if isinstance(meta, dict) else {}
        return cls(
            commitment=data.get("commitment", ""),
            trace=data.get("trace", ""),
            proof_hash=data.get("proofHash", ""),
            threshold=public.get("threshold", -1),
            agent_id_hash=public.get("agentIdHash", ""),
            timestamp_verified=public.get("timestampVerified", 0),
            prover=meta.get("prover", PROVER_NAME),
            field_name=meta.get("field", field.FIELD_NAME),
            security=meta.get("security", SECURITY_BITS),
        )


def _hex(value: int) -> str:
    return format(value, "x")


def _now() -> int:
    return int(time.time())


def commitment_for(inputs: CircuitInputs) -> int:
    return sponge_hash([inputs.agent_id_hash, inputs.score, inputs.threshold, inputs.timestamp])


def evaluate_circuit(inputs: CircuitInputs, *, now: Optional[int] = None) -> CircuitOutputs:
    """Evaluate range, threshold and freshness constraints and commit to the score."""
    now = _now() if now is None else now
    range_valid = MIN_SCORE <= inputs.score <= MAX_SCORE
    not_expired = now - inputs.timestamp < EXPIRY_SECONDS
    meets = inputs.score >= inputs.threshold
    return CircuitOutputs(
        range_valid=range_valid,
        meets_threshold=meets and range_valid and not_expired,
        not_expired=not_expired,
        commitment=commitment_for(inputs),
    )


def generate_execution_trace(inputs: CircuitInputs) -> CircuitTrace:
    """Four rows: inputs, range check, threshold check, commitment."""
    range_bit = 1 if MIN_SCORE <= inputs.score <= MAX_SCORE else 0
    threshold_bit = 1 if inputs.score >= inputs.threshold else 0
    rows = (
        (inputs.score, inputs.threshold, inputs.agent_id_hash, inputs.timestamp),
        (inputs.score, range_bit, inputs.agent_id_hash, inputs.timestamp),
        (inputs.score, threshold_bit, inputs.agent_id_hash, inputs.timestamp),
        (commitment_for(inputs), threshold_bit, inputs.agent_id_hash, inputs.timestamp),
    )
    return CircuitTrace(states=rows)


def generate_stark_proof(inputs: CircuitInputs, *, now: Optional[int] = None,
                         now_ms: Optional[int] = None) -> StarkProof:
    """
    Produce a threshold proof.

    Raises ConstraintViolation if the score is out of range or the timestamp
    is expired, whether or not the threshold is met. An unmet threshold is a
    normal outcome reported through ``meets_threshold``.
    """
    result = evaluate_circuit(inputs, now=now)
    if not result.constraints_satisfied:
        violated = []
        if not result.range_valid:
            violated.append("range_valid")
        if not result.not_expired:
            violated.append("not_expired")
        raise ConstraintViolation(violated)

    trace = generate_execution_trace(inputs)
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    # Wall-clock millis make re-proofs of identical inputs distinguishable.
    proof_hash = sponge_hash([result.commitment, trace.length, now_ms])

    return StarkProof(
        commitment=_hex(result.commitment),
        trace=trace.serialize(),
        proof_hash=_hex(proof_hash),
        threshold=inputs.threshold,
        agent_id_hash=_hex(inputs.agent_id_hash),
        timestamp_verified=inputs.timestamp,
        meets_threshold=result.meets_threshold,
    )


def verify_stark_proof(proof: Union[StarkProof, dict]) -> bool:
    """Structural verification only: non-empty fields and a public threshold in [0, 100]."""
    if isinstance(proof, dict):
        proof = StarkProof.from_dict(proof)
    for value in (proof.commitment, proof.trace, proof.proof_hash):
        if not isinstance(value, str) or not value:
            return False
    try:
        int(proof.commitment, 16)
    except ValueError:
        return False
    threshold = proof.threshold
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        return False
    return 0 <= threshold <= MAX_PUBLIC_THRESHOLD


def prove_threshold(agent_id: str, score: int, threshold: int,
                    timestamp: Optional[int] = None) -> StarkProof:
    """Convenience wrapper deriving the identity element from ``agent_id``."""
    inputs = CircuitInputs(
        score=score,
        threshold=threshold,
        timestamp=_now() if timestamp is None else timestamp,
        agent_id_hash=agent_id_to_field_element(agent_id),
    )
    return generate_stark_proof(inputs)
