"""
Per-agent tool permissions.

Answers one question for the gateway: may this agent call this tool?

Resolution rules:
- Empty agent id (no identity asserted)  -> default list
- Agent id not present in the config     -> default list
- Agent id present                       -> that agent's list, verbatim,
                                            even when it is empty

Lookups never fail. An unknown identity is not an error, it simply gets the
default permissions. Membership is exact string equality; there are no
wildcards or prefixes.

The resolver is an immutable snapshot. Reloading permissions means building
a new resolver and swapping the reference, never mutating this one.
"""

from types import MappingProxyType
from typing import Iterable, Mapping

from mcp_gateway.config import PermissionsConfig


class PermissionResolver:
    def __init__(
        self,
        default_tools: Iterable[str],
        agent_tools: Mapping[str, Iterable[str]] | None = None,
    ) -> None:
        self._default = tuple(default_tools)
        self._agents = MappingProxyType(
            {agent: tuple(tools) for agent, tools in (agent_tools or {}).items()}
        )

    @classmethod
    def from_config(cls, permissions: PermissionsConfig) -> "PermissionResolver":
        return cls(
            default_tools=permissions.default.tools,
            agent_tools={agent: access.tools for agent, access in permissions.agents.items()},
        )

    def allowed_tools(self, agent_id: str) -> list[str]:
        """Ordered list of tool names the agent may call."""
        if agent_id and agent_id in self._agents:
            return list(self._agents[agent_id])
        return list(self._default)

    def is_allowed(self, agent_id: str, tool_name: str) -> bool:
        return tool_name in self.allowed_tools(agent_id)

    def is_configured(self, agent_id: str) -> bool:
        """True if the agent has its own entry (as opposed to using the default)."""
        return bool(agent_id) and agent_id in self._agents
