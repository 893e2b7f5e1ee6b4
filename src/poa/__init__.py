"""poa — Proof-of-Agent: behavioral verification and threshold proofs for AI agents."""

__version__ = "1.0.0"

from poa.models import (
    VerificationLevel, VerificationStatus, Tier, ValidationError,
    VerificationRequest, CheckResult, VerificationRecord,
    BehavioralScore, AttestationReceipt,
)
from poa.scoring import (
    CHECK_WEIGHTS, DEFAULT_WEIGHT, SCORE_WEIGHTS,
    EcosystemSignals, DeepScoreBreakdown,
    weight_for, score_checks, score_deep, calculate_tier,
)
from poa.circuit import (
    CircuitInputs, CircuitOutputs, CircuitTrace, StarkProof, ConstraintViolation,
    evaluate_circuit, generate_execution_trace, generate_stark_proof,
    verify_stark_proof, prove_threshold,
)
from poa.sponge import sponge_hash, agent_id_to_field_element
from poa.verifier import BatteryResult, run_battery, verify_agent
from poa.storage import RecordStore, MemoryRecordStore, SQLiteRecordStore, RecordExistsError
from poa.attestation import AttestationWriter, SignedAttestationLedger, build_attestation_payload
from poa.behavioral import TraceRegistry
from poa.engine import VerificationEngine

__all__ = [
    "__version__",
    "VerificationLevel",
    "VerificationStatus",
    "Tier",
    "ValidationError",
    "VerificationRequest",
    "CheckResult",
    "VerificationRecord",
    "BehavioralScore",
    "AttestationReceipt",
    "CHECK_WEIGHTS",
    "DEFAULT_WEIGHT",
    "SCORE_WEIGHTS",
    "EcosystemSignals",
    "DeepScoreBreakdown",
    "weight_for",
    "score_checks",
    "score_deep",
    "calculate_tier",
    "CircuitInputs",
    "CircuitOutputs",
    "CircuitTrace",
    "StarkProof",
    "ConstraintViolation",
    "evaluate_circuit",
    "generate_execution_trace",
    "generate_stark_proof",
    "verify_stark_proof",
    "prove_threshold",
    "sponge_hash",
    "agent_id_to_field_element",
    "BatteryResult",
    "run_battery",
    "verify_agent",
    "RecordStore",
    "MemoryRecordStore",
    "SQLiteRecordStore",
    "RecordExistsError",
    "AttestationWriter",
    "SignedAttestationLedger",
    "build_attestation_payload",
    "TraceRegistry",
    "VerificationEngine",
]
