"""
poa.client — Python SDK for the Proof-of-Agent API.

Usage:
    from poa.client import PoAClient

    with PoAClient("http://localhost:3001") as client:
        result = client.verify_quick("scout", "https://scout.example.com/api")
        proof = client.generate_proof("scout", threshold=60)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import httpx

DEFAULT_BASE_URL = "http://localhost:3001"


class PoAError(Exception):
    """Raised when the API returns an error."""
    def __init__(self, status: int, detail: str):
        self.status = status
        self.detail = detail
        super().__init__(f"[{status}] {detail}")


@dataclass
class PoAClient:
    """Lightweight client for the Proof-of-Agent API."""

    base_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout: float = 120.0  # deep verification waits for the whole battery
    transport: Optional[httpx.BaseTransport] = field(default=None, repr=False)
    _http: httpx.Client = field(init=False, repr=False)

    def __post_init__(self):
        if not self.base_url:
            self.base_url = DEFAULT_BASE_URL
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        self._http = httpx.Client(base_url=self.base_url, timeout=self.timeout,
                                  headers=headers, transport=self.transport)

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # -- internal --

    def _request(self, method: str, path: str, **kwargs) -> dict:
        r = self._http.request(method, path, **kwargs)
        if r.status_code >= 400:
            detail = r.text
            if r.headers.get("content-type", "").startswith("application/json"):
                data = r.json()
                detail = data.get("error") or data.get("detail") or r.text
            raise PoAError(r.status_code, str(detail))
        return r.json()

    # -- Verification --

    def submit(self, agent_name: str, api_endpoint: str, capabilities: Optional[list[str]] = None,
               test_level: str = "basic", wallet_address: Optional[str] = None) -> dict:
        """Start an asynchronous verification. Poll status() with the returned id."""
        payload: dict = {
            "agentName": agent_name,
            "apiEndpoint": api_endpoint,
            "capabilities": capabilities or [],
            "testLevel": test_level,
        }
        if wallet_address:
            payload["walletAddress"] = wallet_address
        return self._request("POST", "/api/verify", json=payload)

    def status(self, verification_id: str) -> dict:
        return self._request("GET", f"/api/status/{verification_id}")

    def score(self, agent: str) -> dict:
        return self._request("GET", f"/api/score/{agent}")

    def verifications(self, limit: int = 20) -> dict:
        return self._request("GET", "/api/verifications", params={"limit": limit})

    def verify_quick(self, agent_id: str, api_endpoint: str) -> dict:
        """Basic checks, roughly ten seconds."""
        return self._request("POST", "/api/verify/quick",
                             json={"agentId": agent_id, "apiEndpoint": api_endpoint})

    def verify_deep(self, agent_id: str, **signals) -> dict:
        """Additive scoring; signals use the API's camelCase names (codeUrl, testCoverage, ...)."""
        return self._request("POST", "/api/verify/deep", json={"agentId": agent_id, **signals})

    def get_status(self, agent_id: str) -> dict:
        return self._request("GET", f"/api/verify/status/{agent_id}")

    def list_verified(self) -> dict:
        return self._request("GET", "/api/verify/list")

    def detect_agent_kit(self, agent_id: str, package_json: dict) -> dict:
        return self._request("POST", "/api/verify/agent-kit",
                             json={"agentId": agent_id, "packageJson": package_json})

    # -- Proofs --

    def generate_proof(self, agent_id: str, threshold: int = 60) -> dict:
        return self._request("POST", f"/api/stark/generate/{agent_id}",
                             json={"threshold": threshold})

    def verify_proof(self, proof: Optional[dict] = None, proof_hash: Optional[str] = None) -> dict:
        payload: dict = {}
        if proof is not None:
            payload["proof"] = proof
        if proof_hash:
            payload["proofHash"] = proof_hash
        return self._request("POST", "/api/stark/verify", json=payload)

    # -- Behavioral traces --

    def submit_trace(self, agent_id: str, trace: dict) -> dict:
        return self._request("POST", "/api/traces", json={"agentId": agent_id, "trace": trace})

    def get_traces(self, agent_id: str) -> dict:
        return self._request("GET", f"/api/traces/{agent_id}")

    # -- Health --

    def health(self) -> dict:
        return self._request("GET", "/api/health")
