"""
The invocation gateway: decode, authorize, dispatch, encode.

Per-request flow (no state is kept between requests):

    1. Decode the body into a ListToolsRequest or CallToolRequest
       (protocol.decode_request raises GatewayError on bad input)
    2. list_tools -> descriptors of every registered tool
       call_tool  -> look up the tool, check the agent's permissions,
                     run the handler
    3. Encode the response envelope (InternalEncodingError if a tool
       returned something JSON cannot represent)

Errors that belong to a *call* (unknown tool, permission denied, handler
raised) are not exceptions at this level: they are reported in the `error`
field of a normal response.

Tool authors are trusted. The gateway applies no timeout, sandbox, or
cancellation to handlers; a slow handler only holds up its own request
because sync handlers run in the threadpool.
"""

import inspect
import logging
import uuid
from typing import Any

from starlette.concurrency import run_in_threadpool

from mcp_gateway.permissions import PermissionResolver
from mcp_gateway.protocol import (
    CallToolRequest,
    CallToolResponse,
    ListToolsRequest,
    ListToolsResponse,
    decode_request,
    encode_response,
)
from mcp_gateway.registry import ToolArguments, ToolDefinition, ToolRegistry

logger = logging.getLogger("mcp-gateway")


class ToolExecutionError(Exception):
    """A handler failed. The message is what the caller sees in `error`."""


def _is_async_callable(handler: Any) -> bool:
    return inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
        getattr(handler, "__call__", None)
    )


async def execute_tool(definition: ToolDefinition, args: ToolArguments) -> Any:
    """
    Run a tool handler with the given arguments.

    Coroutine handlers (functions or objects with an async __call__) are
    called on the event loop; plain handlers run in the threadpool so they
    don't block it. Whatever awaitable a handler returns is awaited.

    Raises:
        ToolExecutionError: Wrapping whatever the handler raised
    """
    handler = definition.handler
    try:
        if _is_async_callable(handler):
            result = handler(args)
        else:
            result = await run_in_threadpool(handler, args)
        if inspect.isawaitable(result):
            result = await result
        return result
    except Exception as e:
        raise ToolExecutionError(str(e) or type(e).__name__) from e


def permission_denied_message(agent_id: str, tool_name: str) -> str:
    return f"Permission denied: agent '{agent_id}' may not call tool '{tool_name}'"


class InvocationGateway:
    """
    Routes decoded envelopes to the registry, enforcing permissions.

    Args:
        registry: Where tools are looked up
        permissions: Which agent may call which tool
        filter_tool_list: When true, list_tools only shows the caller's
                          allowed tools. Off by default: listing is not
                          permission-checked, only calling is.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        permissions: PermissionResolver,
        filter_tool_list: bool = False,
    ):
        self.registry = registry
        self.permissions = permissions
        self.filter_tool_list = filter_tool_list

    async def handle(self, body: bytes) -> bytes:
        """
        Process one raw request body and return the encoded response.

        Raises:
            GatewayError: Malformed input (400) or an encoding failure (500)
        """
        request = decode_request(body)

        if isinstance(request, ListToolsRequest):
            response = self.list_tools(request)
        else:
            response = await self.call_tool(request)

        return encode_response(response)

    def list_tools(self, request: ListToolsRequest) -> ListToolsResponse:
        definitions = self.registry.list_all()
        if self.filter_tool_list:
            allowed = set(self.permissions.allowed_tools(request.agent_id))
            definitions = [d for d in definitions if d.name in allowed]
        return ListToolsResponse(tools=[d.to_descriptor() for d in definitions])

    async def call_tool(self, request: CallToolRequest) -> CallToolResponse:
        request_id = str(uuid.uuid4())[:8]
        log_data = {
            "request_id": request_id,
            "agent_id": request.agent_id,
            "tool": request.name,
        }

        definition = self.registry.get(request.name)
        if definition is None:
            logger.info(
                "Tool call rejected: unknown tool",
                extra={"log_data": {**log_data, "decision": "not_found"}},
            )
            return CallToolResponse(error=f"Tool not found: {request.name}")

        if not self.permissions.is_allowed(request.agent_id, request.name):
            logger.warning(
                "Tool call denied: not in agent's allowed tools",
                extra={
                    "log_data": {
                        **log_data,
                        "decision": "denied",
                        "permission_source": (
                            "agent" if self.permissions.is_configured(request.agent_id) else "default"
                        ),
                    }
                },
            )
            return CallToolResponse(error=permission_denied_message(request.agent_id, request.name))

        logger.info(
            "Tool call authorized",
            extra={"log_data": {**log_data, "decision": "allowed"}},
        )

        try:
            result = await execute_tool(definition, request.args)
        except ToolExecutionError as e:
            logger.warning(
                "Tool execution failed",
                extra={"log_data": {**log_data, "decision": "failed", "reason": str(e)}},
            )
            return CallToolResponse(error=str(e))

        return CallToolResponse(result=result)
