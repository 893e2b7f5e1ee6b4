"""Tests for poa.verifier — level prefixes, ordering and short-circuit."""

import pytest

from poa.transport import HttpResponse
from poa.verifier import BatteryResult, run_battery, verify_agent

AGENT_URL = "https://agent.test/api"
BASIC = ["liveness", "healthEndpoint", "validJson"]
TAIL = ["consistency", "errorHandling", "rateLimiting"]


@pytest.mark.asyncio
async def test_basic_level(fake_transport, agent_routes):
    transport = fake_transport(agent_routes)
    result = await verify_agent(AGENT_URL, ["trading"], "basic", transport)
    assert list(result.checks) == BASIC
    assert result.score == 100
    assert result.live


@pytest.mark.asyncio
async def test_standard_adds_sorted_capabilities(fake_transport, agent_routes):
    transport = fake_transport(agent_routes)
    checks = await run_battery(AGENT_URL, {"trading", "social"}, "standard", transport)
    assert list(checks) == BASIC + ["capability_social", "capability_trading"]
    assert all(c.success for c in checks.values())


@pytest.mark.asyncio
async def test_comprehensive_order(fake_transport, agent_routes):
    transport = fake_transport(agent_routes)
    result = await verify_agent(AGENT_URL, ["trading"], "comprehensive", transport)
    assert list(result.checks) == BASIC + ["capability_trading"] + TAIL
    assert result.score == 100


@pytest.mark.asyncio
async def test_levels_are_prefixes(fake_transport, agent_routes):
    caps = ["analysis", "social"]
    basic = await run_battery(AGENT_URL, caps, "basic", fake_transport(agent_routes))
    standard = await run_battery(AGENT_URL, caps, "standard", fake_transport(agent_routes))
    comprehensive = await run_battery(AGENT_URL, caps, "comprehensive",
                                      fake_transport(agent_routes))
    assert list(standard)[:len(basic)] == list(basic)
    assert list(comprehensive)[:len(standard)] == list(standard)


@pytest.mark.asyncio
async def test_missing_rate_limit_lowers_score(fake_transport, agent_routes):
    routes = agent_routes
    routes[("GET", AGENT_URL)] = HttpResponse(200, {"status": "ok", "agent": "scout"})
    result = await verify_agent(AGENT_URL, ["trading"], "comprehensive", fake_transport(routes))
    assert result.checks["rateLimiting"].success is False
    # 85 of 90
    assert result.score == 94


@pytest.mark.asyncio
async def test_liveness_failure_short_circuits(fake_transport):
    transport = fake_transport({})
    result = await verify_agent(AGENT_URL, ["trading"], "comprehensive", transport)
    assert list(result.checks) == ["liveness"]
    assert result.score == 0
    assert not result.live
    assert transport.calls == [("GET", AGENT_URL)]


@pytest.mark.asyncio
async def test_liveness_failure_on_error_status(fake_transport):
    transport = fake_transport({("GET", AGENT_URL): HttpResponse(500, "oops")})
    result = await verify_agent(AGENT_URL, (), "basic", transport)
    assert result.score == 0
    assert list(result.checks) == ["liveness"]


@pytest.mark.asyncio
async def test_partial_basic(fake_transport):
    routes = {("GET", AGENT_URL): HttpResponse(200, {"status": "ok"})}
    result = await verify_agent(AGENT_URL, (), "basic", fake_transport(routes))
    assert result.checks["healthEndpoint"].success is False
    # 45 of 55
    assert result.score == 82


@pytest.mark.asyncio
async def test_supplied_transport_left_open(fake_transport, agent_routes):
    transport = fake_transport(agent_routes)
    await run_battery(AGENT_URL, (), "basic", transport)
    assert transport.closed is False


def test_battery_result_live_without_checks():
    assert BatteryResult(score=0).live is False
