"""
poa.probes — Behavioral probes run against an agent's API endpoint.

Every probe is independent, bounded by its own timeout and never raises:
transport failures and unexpected exceptions become CheckResult(False, ...).

Probe order for the comprehensive level:
    liveness, healthEndpoint, validJson, capability_<name>...,
    consistency, errorHandling, rateLimiting
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from poa.models import CheckResult
from poa.transport import HttpTransport

logger = logging.getLogger(__name__)

LIVENESS_TIMEOUT = 10.0
HEALTH_TIMEOUT = 5.0
FORMAT_TIMEOUT = 5.0
CAPABILITY_TIMEOUT = 15.0
CONSISTENCY_TIMEOUT = 5.0
ERROR_HANDLING_TIMEOUT = 5.0
RATE_LIMIT_TIMEOUT = 5.0

HEALTH_PATHS = ("/health", "/api/health", "/_health", "/status")
INVALID_PATH = "/invalid-endpoint-test"
RATE_LIMIT_BURST = 5
RATE_LIMIT_HEADERS = ("x-ratelimit-limit", "ratelimit-limit", "retry-after")

CAPABILITY_TESTS: dict[str, dict[str, Any]] = {
    "trading": {
        "path": "/analyze",
        "body": {"symbol": "SOL", "action": "analyze"},
        "expected_fields": ("recommendation", "signal", "action"),
    },
    "analysis": {
        "path": "/analyze",
        "body": {"query": "What is the current market sentiment?"},
        "expected_fields": ("analysis", "summary", "result"),
    },
    "social": {
        "path": "/generate",
        "body": {"prompt": "Generate a tweet about Solana"},
        "expected_fields": ("content", "text", "response"),
    },
    "defi": {
        "path": "/quote",
        "body": {"fromToken": "SOL", "toToken": "USDC", "amount": 1},
        "expected_fields": ("quote", "price", "route"),
    },
}


def capability_test(capability: str) -> dict[str, Any]:
    """Test definition for a capability; unknown ones hit the generic /test probe."""
    return CAPABILITY_TESTS.get(capability, {
        "path": "/test",
        "body": {"capability": capability},
        "expected_fields": ("success", "result"),
    })


def base_url(endpoint: str) -> str:
    return endpoint.rstrip("/")


def is_structured(body: Any) -> bool:
    return isinstance(body, (dict, list))


def _shape(body: Any) -> list[str]:
    if isinstance(body, dict):
        return sorted(str(k) for k in body)
    if isinstance(body, list):
        return sorted(str(i) for i in range(len(body)))
    return []


def _failed(probe: str, endpoint: str, exc: Exception) -> CheckResult:
    logger.debug("Probe %s failed for %s: %s", probe, endpoint, exc)
    return CheckResult(False, str(exc) or type(exc).__name__)


async def check_liveness(transport: HttpTransport, endpoint: str) -> CheckResult:
    start = time.monotonic()
    try:
        resp = await transport.get(endpoint, LIVENESS_TIMEOUT, accept_any_status=True)
    except Exception as e:
        return _failed("liveness", endpoint, e)
    elapsed_ms = int((time.monotonic() - start) * 1000)
    if 200 <= resp.status < 400:
        return CheckResult(True, f"Responded in {elapsed_ms}ms")
    return CheckResult(False, f"Responded with status {resp.status}")


async def check_health(transport: HttpTransport, endpoint: str) -> CheckResult:
    base = base_url(endpoint)
    for path in HEALTH_PATHS:
        try:
            resp = await transport.get(f"{base}{path}", HEALTH_TIMEOUT)
        except Exception as e:
            logger.debug("Health path %s unavailable on %s: %s", path, base, e)
            continue
        if resp.status == 200:
            return CheckResult(True, f"Health endpoint available at {path}")
    return CheckResult(False, "No health endpoint")


async def check_response_format(transport: HttpTransport, endpoint: str) -> CheckResult:
    try:
        resp = await transport.get(endpoint, FORMAT_TIMEOUT)
    except Exception as e:
        return _failed("validJson", endpoint, e)
    # Bodies that parse as JSON were already decoded by the transport.
    if is_structured(resp.body):
        return CheckResult(True, "Returns valid JSON")
    return CheckResult(False, "Invalid response format")


async def check_capability(transport: HttpTransport, endpoint: str,
                           capability: str) -> CheckResult:
    test = capability_test(capability)
    url = f"{base_url(endpoint)}{test['path']}"
    try:
        resp = await transport.post(url, test["body"], CAPABILITY_TIMEOUT,
                                    accept_any_status=True)
    except Exception as e:
        return _failed(f"capability_{capability}", endpoint, e)

    has_field = isinstance(resp.body, dict) and any(
        f in resp.body for f in test["expected_fields"]
    )
    if has_field or resp.status == 200:
        return CheckResult(True, f"{capability} capability verified")
    return CheckResult(False, f"{capability} capability failed")


async def check_consistency(transport: HttpTransport, endpoint: str) -> CheckResult:
    try:
        first, second = await asyncio.gather(
            transport.get(endpoint, CONSISTENCY_TIMEOUT),
            transport.get(endpoint, CONSISTENCY_TIMEOUT),
        )
    except Exception as e:
        return _failed("consistency", endpoint, e)
    if _shape(first.body) == _shape(second.body):
        return CheckResult(True, "Responses are consistent")
    return CheckResult(False, "Inconsistent responses")


async def check_error_handling(transport: HttpTransport, endpoint: str) -> CheckResult:
    url = f"{base_url(endpoint)}{INVALID_PATH}"
    try:
        resp = await transport.post(url, {"invalid": "data"}, ERROR_HANDLING_TIMEOUT,
                                    accept_any_status=True)
    except Exception as e:
        return _failed("errorHandling", endpoint, e)
    if 400 <= resp.status < 600 and isinstance(resp.body, dict) and "error" in resp.body:
        return CheckResult(True, "Handles errors gracefully")
    return CheckResult(False, "Poor error handling")


async def check_rate_limiting(transport: HttpTransport, endpoint: str) -> CheckResult:
    try:
        responses = await asyncio.gather(*(
            transport.get(endpoint, RATE_LIMIT_TIMEOUT, accept_any_status=True)
            for _ in range(RATE_LIMIT_BURST)
        ))
    except Exception as e:
        return _failed("rateLimiting", endpoint, e)
    limited = any(r.status == 429 for r in responses)
    advertised = any(r.header(h) for r in responses for h in RATE_LIMIT_HEADERS)
    if limited or advertised:
        return CheckResult(True, "Has rate limiting")
    return CheckResult(False, "No rate limiting detected")
