"""
Shared test fixtures for the tool gateway test suite.

Key fixtures:
- registry: A fresh ToolRegistry per test, with get_current_time and an
  `echo` tool registered
- make_permissions: Factory for PermissionResolver instances
- make_app: Factory building the ASGI app from a registry and permissions
- client: An httpx.AsyncClient wired to the default app (in-memory, no
  network needed)
- post_envelope: Helper POSTing a JSON body to the envelope endpoint

Testing approach:
- test_registry.py / test_permissions.py / test_protocol.py: unit tests of
  the pure components
- test_gateway.py: end-to-end tests of the envelope endpoint over ASGI
- test_mcp_surface.py: the native MCP endpoint, following the MCP handshake
"""

import httpx
import pytest

from mcp_gateway.config import Settings
from mcp_gateway.permissions import PermissionResolver
from mcp_gateway.registry import ToolDefinition, ToolParameter, ToolRegistry, ToolSchema
from mcp_gateway.server import create_server
from mcp_gateway.tools import register_builtin_tools

TEST_SETTINGS = Settings(
    rpc_path="/mcp",
    mcp_path="/mcp/stream",
    agent_header="x-agent-id",
    filter_tool_list=False,
)


def echo(args: dict) -> dict:
    """Pure tool: returns its arguments unchanged."""
    return args


ECHO_TOOL = ToolDefinition(
    name="echo",
    description="Return the arguments unchanged.",
    parameters=ToolSchema(
        properties={"text": ToolParameter(type="string", description="Text to echo")},
        required=[],
    ),
    handler=echo,
)


@pytest.fixture
def registry():
    """A fresh registry per test, so registrations never leak between tests."""
    registry = ToolRegistry()
    register_builtin_tools(registry)
    registry.register(ECHO_TOOL)
    return registry


@pytest.fixture
def make_permissions():
    """
    Factory fixture for permission resolvers.

    Usage in tests:
        def test_something(make_permissions):
            permissions = make_permissions(default=["echo"], agents={"bot": []})
    """

    def _make_permissions(
        default: list[str] | None = None,
        agents: dict[str, list[str]] | None = None,
    ) -> PermissionResolver:
        if default is None:
            default = ["get_current_time", "echo"]
        return PermissionResolver(default_tools=default, agent_tools=agents or {})

    return _make_permissions


@pytest.fixture
def permissions(make_permissions):
    return make_permissions(
        agents={
            "reporting-agent": ["get_current_time"],
            "sandboxed-agent": [],
        }
    )


@pytest.fixture
def make_app(registry, permissions):
    """Factory building the ASGI app; overrides fall back to the default fixtures."""

    def _make_app(registry=registry, permissions=permissions, settings=TEST_SETTINGS):
        server = create_server(registry, permissions, settings)
        return server.http_app(path=settings.mcp_path, transport="streamable-http")

    return _make_app


@pytest.fixture
async def client(make_app):
    transport = httpx.ASGITransport(app=make_app())
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def post_envelope(client):
    """
    POST a JSON envelope (dict) or raw body (bytes/str) to the envelope endpoint.

    Usage in tests:
        response = await post_envelope({"method": "list_tools"})
    """

    async def _post_envelope(body, http_client=None) -> httpx.Response:
        http_client = http_client or client
        if isinstance(body, (bytes, str)):
            return await http_client.post(
                "/mcp", content=body, headers={"Content-Type": "application/json"}
            )
        return await http_client.post("/mcp", json=body)

    return _post_envelope
