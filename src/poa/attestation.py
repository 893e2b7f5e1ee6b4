"""
poa.attestation — Signed attestation records for verified agents.

An attestation binds an identity to a score as a canonical JSON memo:

    {"type": "poa", "version": "1.0", "identity": ..., "score": ..., "tier": ..., "ts": ...}

SignedAttestationLedger signs each memo with Ed25519 and keeps an append-only
log addressed by reference. It is the local stand-in for a distributed-ledger
memo write; any other backend only has to implement AttestationWriter.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from nacl.encoding import HexEncoder
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from poa.models import AttestationReceipt
from poa.scoring import calculate_tier

ATTESTATION_TYPE = "poa"
ATTESTATION_VERSION = "1.0"


class AttestationError(Exception):
    """Raised when an attestation cannot be written."""


def build_attestation_payload(identity: str, score: int, *, ts: Optional[int] = None,
                              version: str = ATTESTATION_VERSION) -> dict:
    if not identity:
        raise AttestationError("identity is required")
    return {
        "type": ATTESTATION_TYPE,
        "version": version,
        "identity": identity,
        "score": score,
        "tier": calculate_tier(score).value,
        "ts": int(time.time()) if ts is None else ts,
    }


def canonical_bytes(payload: dict) -> bytes:
    """Deterministic encoding used for signing."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()


class AttestationWriter(ABC):
    """Collaborator interface: persist an attestation and return its receipt."""

    @abstractmethod
    async def write(self, name: str, identity: str, score: int) -> AttestationReceipt: ...


@dataclass(frozen=True)
class LedgerEntry:
    reference: str
    name: str
    payload: dict
    signature: str
    signer: str
    slot: int
    confirmed_at: str


class SignedAttestationLedger(AttestationWriter):
    """In-process append-only ledger of Ed25519-signed attestations."""

    def __init__(self, signing_key: Optional[SigningKey] = None, *, ttl_days: int = 30):
        self.signing_key = signing_key or SigningKey.generate()
        self.verify_key = self.signing_key.verify_key
        self.ttl_days = ttl_days
        self._entries: dict[str, LedgerEntry] = {}
        self._slot = 0
        self._lock = threading.Lock()

    @classmethod
    def from_seed_hex(cls, seed_hex: str, **kwargs) -> "SignedAttestationLedger":
        return cls(SigningKey(seed_hex.encode(), encoder=HexEncoder), **kwargs)

    @property
    def public_key_hex(self) -> str:
        return self.verify_key.encode(encoder=HexEncoder).decode()

    async def write(self, name: str, identity: str, score: int) -> AttestationReceipt:
        payload = build_attestation_payload(identity, score)
        memo = canonical_bytes(payload)
        signature = self.signing_key.sign(memo).signature.hex()
        reference = hashlib.sha256(memo + bytes.fromhex(signature)).hexdigest()
        confirmed = datetime.fromtimestamp(payload["ts"], tz=timezone.utc)

        with self._lock:
            self._slot += 1
            entry = LedgerEntry(
                reference=reference,
                name=name[:32],
                payload=payload,
                signature=signature,
                signer=self.public_key_hex,
                slot=self._slot,
                confirmed_at=confirmed.isoformat(),
            )
            self._entries[reference] = entry

        return AttestationReceipt(
            reference=reference,
            confirmed_at=entry.confirmed_at,
            signature=signature,
            valid_until=(confirmed + timedelta(days=self.ttl_days)).isoformat(),
        )

    def get(self, reference: str) -> Optional[LedgerEntry]:
        return self._entries.get(reference)

    def verify_attestation(self, reference: str) -> dict:
        """Check that a reference exists, is a poa memo, and its signature holds."""
        entry = self._entries.get(reference)
        if entry is None:
            return {"valid": False}
        if entry.payload.get("type") != ATTESTATION_TYPE:
            return {"valid": False}
        try:
            vk = VerifyKey(entry.signer.encode(), encoder=HexEncoder)
            vk.verify(canonical_bytes(entry.payload), bytes.fromhex(entry.signature))
        except (BadSignatureError, ValueError):
            return {"valid": False}
        return {"valid": True, "attestation": dict(entry.payload), "slot": entry.slot}

    def attestations_for(self, identity: str) -> list[dict]:
        """All attestations for an identity, newest first."""
        entries = [e for e in self._entries.values() if e.payload["identity"] == identity]
        entries.sort(key=lambda e: e.slot, reverse=True)
        return [
            {"reference": e.reference, "slot": e.slot, **e.payload}
            for e in entries
        ]

    def __len__(self) -> int:
        return len(self._entries)
