"""
poa.ecosystem — Detect ecosystem integrations from an agent's package manifest.

Agent-kit usage is read from a package.json-shaped mapping: the toolkit
itself in dependencies/devDependencies, and each scoped plugin package.
"""

from __future__ import annotations

from typing import Optional

from poa.scoring import SCORE_WEIGHTS, EcosystemSignals

AGENT_KIT_PACKAGE = "solana-agent-kit"
AGENT_KIT_PLUGIN_PREFIX = "@solana-agent-kit/plugin-"
PYTH_PACKAGES = ("@pythnetwork/client", "@pythnetwork/price-service-client",
                 "@pythnetwork/hermes-client")
JITO_PACKAGES = ("jito-ts", "@jito-foundation/sdk")


def _dependencies(package_json: Optional[dict]) -> dict:
    if not isinstance(package_json, dict):
        return {}
    deps: dict = {}
    for key in ("dependencies", "devDependencies"):
        section = package_json.get(key)
        if isinstance(section, dict):
            deps.update(section)
    return deps


def detect_agent_kit(package_json: Optional[dict]) -> dict:
    """Return {usesAgentKit, detectedPlugins, scoreBoost}."""
    deps = _dependencies(package_json)
    plugins = sorted(
        name[len(AGENT_KIT_PLUGIN_PREFIX):]
        for name in deps if name.startswith(AGENT_KIT_PLUGIN_PREFIX)
    )
    uses = AGENT_KIT_PACKAGE in deps or bool(plugins)
    boost = 0
    if uses:
        boost = SCORE_WEIGHTS["uses_agent_kit"] + SCORE_WEIGHTS["per_agent_kit_plugin"] * len(plugins)
    return {"usesAgentKit": uses, "detectedPlugins": plugins, "scoreBoost": boost}


def detect_ecosystem(package_json: Optional[dict] = None, *,
                     uses_pyth: bool = False, uses_jito: bool = False) -> EcosystemSignals:
    """Combine declared flags with what the manifest reveals."""
    deps = _dependencies(package_json)
    kit = detect_agent_kit(package_json)
    return EcosystemSignals(
        uses_pyth=uses_pyth or any(p in deps for p in PYTH_PACKAGES),
        uses_jito=uses_jito or any(p in deps for p in JITO_PACKAGES),
        uses_agent_kit=kit["usesAgentKit"],
        agent_kit_plugins=kit["detectedPlugins"],
    )
