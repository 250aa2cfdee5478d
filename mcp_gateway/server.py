"""
HTTP server for the tool gateway, built on FastMCP.

Routes:
    POST <rpc_path>   (default /mcp)         JSON envelope endpoint
                                             (list_tools / call_tool)
    <mcp_path>        (default /mcp/stream)  native MCP streamable-HTTP endpoint
    GET  /health                             liveness probe
    GET  /ready                              readiness probe

Both tool endpoints serve the same ToolRegistry and enforce the same
PermissionResolver:

    Envelope endpoint: the agent identity is the envelope's `agent_id`.
                       InvocationGateway does decoding, permission checks
                       and dispatch.

    MCP endpoint:      the agent identity is the X-Agent-Id header.
                       AgentPermissionMiddleware intercepts tools/list and
                       tools/call; RegistryTool runs the handler.

Running the server:
    python -m mcp_gateway.server

Transport status codes on the envelope endpoint:
    200  every decoded request, including unknown tool / denied / failed calls
         (those are reported in the `error` field)
    400  body is not JSON, `method` missing / not a string / unknown,
         or fields have the wrong type
    405  any HTTP method other than POST (answered by Starlette's router)
    500  the response could not be encoded
"""

import json
import logging
import sys
import uuid
from typing import Any, Sequence

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.server.dependencies import get_http_request
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext
from fastmcp.tools.tool import Tool, ToolResult
from mcp.types import CallToolRequestParams, ListToolsRequest, TextContent
from pydantic import Field
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response

from mcp_gateway.config import ConfigError, Settings, load_config, settings
from mcp_gateway.gateway import (
    InvocationGateway,
    ToolExecutionError,
    execute_tool,
    permission_denied_message,
)
from mcp_gateway.permissions import PermissionResolver
from mcp_gateway.protocol import GatewayError, InternalEncodingError, encode_result
from mcp_gateway.registry import ToolDefinition, ToolRegistry
from mcp_gateway.tools import register_builtin_tools

logger = logging.getLogger("mcp-gateway")


# ---------------------------------------------------------------------------
# Structured JSON Logging
# ---------------------------------------------------------------------------


class JSONLogFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Structured fields are passed with extra={"log_data": {...}} and merged
    into the top-level object:

        {"timestamp": "2026-10-19 10:30:00,123", "level": "INFO",
         "logger": "mcp-gateway", "message": "Tool call authorized",
         "request_id": "3f2a9c1e", "agent_id": "alice", "tool": "get_current_time",
         "decision": "allowed"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "log_data"):
            log_entry.update(record.log_data)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONLogFormatter())

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        handlers=[handler],
        force=True,
    )


# ---------------------------------------------------------------------------
# Native MCP surface
# ---------------------------------------------------------------------------


class RegistryTool(Tool):
    """
    Adapts a registry ToolDefinition to a FastMCP tool.

    FastMCP derives tool schemas from function signatures, which doesn't fit
    handlers that take a free-form argument mapping. This subclass advertises
    the definition's own schema and hands the raw arguments to the handler.
    """

    tool_definition: Any = Field(exclude=True)

    @classmethod
    def from_definition(cls, definition: ToolDefinition) -> "RegistryTool":
        return cls(
            name=definition.name,
            description=definition.description,
            parameters=definition.parameters.model_dump(exclude_none=True),
            tool_definition=definition,
        )

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        try:
            result = await execute_tool(self.tool_definition, arguments or {})
        except ToolExecutionError as e:
            raise ToolError(str(e)) from e

        if isinstance(result, str):
            text = result
        else:
            try:
                text = encode_result(result)
            except InternalEncodingError as e:
                logger.error(
                    "Failed to encode tool result",
                    exc_info=e.__cause__,
                    extra={"log_data": {"tool": self.name}},
                )
                raise ToolError(e.message) from e

        return ToolResult(content=[TextContent(type="text", text=text)])


class AgentPermissionMiddleware(Middleware):
    """
    Enforces per-agent tool permissions on the native MCP endpoint.

    - tools/call for a registered tool the agent may not call is rejected
      with a PermissionError before the handler runs. FastMCP reports it as
      an error result. Unknown tools pass through so FastMCP can report them.
    - tools/list is filtered to the agent's allowed tools only when
      filter_tool_list is enabled, same as the envelope endpoint.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        permissions: PermissionResolver,
        agent_header: str = "x-agent-id",
        filter_tool_list: bool = False,
    ):
        self.registry = registry
        self.permissions = permissions
        self.agent_header = agent_header
        self.filter_tool_list = filter_tool_list

    def _get_agent_id(self) -> str:
        """
        Read the agent identity from the current HTTP request.

        Returns "" (no identity asserted) when the header is absent or there
        is no HTTP request (e.g. stdio transport).
        """
        try:
            request = get_http_request()
        except RuntimeError:
            return ""
        return request.headers.get(self.agent_header, "")

    async def on_list_tools(
        self,
        context: MiddlewareContext[ListToolsRequest],
        call_next: CallNext[ListToolsRequest, Sequence[Tool]],
    ) -> Sequence[Tool]:
        all_tools = await call_next(context)
        if not self.filter_tool_list:
            return all_tools

        agent_id = self._get_agent_id()
        allowed = set(self.permissions.allowed_tools(agent_id))
        authorized_tools = [tool for tool in all_tools if tool.name in allowed]

        logger.info(
            "Tool list filtered by permissions",
            extra={
                "log_data": {
                    "agent_id": agent_id,
                    "total_tools": len(all_tools),
                    "authorized_tools": [t.name for t in authorized_tools],
                    "decision": "filtered",
                }
            },
        )
        return authorized_tools

    async def on_call_tool(
        self,
        context: MiddlewareContext[CallToolRequestParams],
        call_next: CallNext[CallToolRequestParams, ToolResult],
    ) -> ToolResult:
        request_id = str(uuid.uuid4())[:8]
        tool_name = context.message.name
        agent_id = self._get_agent_id()

        if tool_name in self.registry and not self.permissions.is_allowed(agent_id, tool_name):
            logger.warning(
                "Tool call denied: not in agent's allowed tools",
                extra={
                    "log_data": {
                        "request_id": request_id,
                        "agent_id": agent_id,
                        "tool": tool_name,
                        "decision": "denied",
                        "transport": "mcp",
                    }
                },
            )
            raise PermissionError(permission_denied_message(agent_id, tool_name))

        logger.info(
            "Tool call authorized",
            extra={
                "log_data": {
                    "request_id": request_id,
                    "agent_id": agent_id,
                    "tool": tool_name,
                    "decision": "allowed",
                    "transport": "mcp",
                }
            },
        )
        return await call_next(context)


# ---------------------------------------------------------------------------
# Server assembly
# ---------------------------------------------------------------------------


def create_server(
    registry: ToolRegistry,
    permissions: PermissionResolver,
    server_settings: Settings = settings,
) -> FastMCP:
    """
    Build the FastMCP server exposing `registry` on both tool endpoints.

    Every tool registered at this point is also published on the native MCP
    endpoint. The envelope endpoint reads the registry on every request, so
    it also sees tools registered later.
    """
    gateway = InvocationGateway(
        registry,
        permissions,
        filter_tool_list=server_settings.filter_tool_list,
    )

    mcp = FastMCP(
        name="mcp-tool-gateway",
        instructions=(
            "Tool gateway exposing registered tools to agents. Which tools an "
            "agent may call is decided by its configured permissions."
        ),
        middleware=[
            AgentPermissionMiddleware(
                registry,
                permissions,
                agent_header=server_settings.agent_header,
                filter_tool_list=server_settings.filter_tool_list,
            )
        ],
    )

    for definition in registry.list_all():
        mcp.add_tool(RegistryTool.from_definition(definition))

    async def handle_envelope(request: Request) -> Response:
        body = await request.body()
        try:
            payload = await gateway.handle(body)
        except InternalEncodingError as e:
            logger.error(
                "Error encoding response",
                exc_info=e.__cause__,
                extra={"log_data": {"path": request.url.path}},
            )
            return PlainTextResponse(e.message, status_code=e.status_code)
        except GatewayError as e:
            logger.info(
                "Request rejected",
                extra={
                    "log_data": {
                        "reason": type(e).__name__,
                        "detail": e.message,
                    }
                },
            )
            return PlainTextResponse(e.message, status_code=e.status_code)
        return Response(payload, media_type="application/json")

    async def health_check(request: Request) -> Response:
        """Liveness probe: is the server process alive and responsive?"""
        return JSONResponse({"status": "healthy"})

    async def readiness_check(request: Request) -> Response:
        """Readiness probe: are there any tools to serve?"""
        tool_count = len(registry)
        if tool_count == 0:
            return JSONResponse(
                {"status": "not_ready", "reason": "no tools registered"},
                status_code=503,
            )
        return JSONResponse({"status": "ready", "tools": tool_count})

    mcp.custom_route(server_settings.rpc_path, methods=["POST"])(handle_envelope)
    mcp.custom_route("/health", methods=["GET"])(health_check)
    mcp.custom_route("/ready", methods=["GET"])(readiness_check)

    return mcp


def main() -> None:
    configure_logging(settings.log_level)

    try:
        config = load_config(settings.config_file)
    except ConfigError as e:
        logger.error("Failed to load config: %s", e)
        sys.exit(1)

    registry = ToolRegistry()
    register_builtin_tools(registry)
    permissions = PermissionResolver.from_config(config.permissions)

    mcp = create_server(registry, permissions)

    logger.info(
        "Starting tool gateway on %s:%d (rpc=%s, mcp=%s)",
        config.server.host,
        config.server.port,
        settings.rpc_path,
        settings.mcp_path,
    )
    mcp.run(
        transport="streamable-http",
        host=config.server.host,
        port=config.server.port,
        log_level=settings.log_level,
        path=settings.mcp_path,
    )


if __name__ == "__main__":
    main()
