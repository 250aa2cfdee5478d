"""
Built-in tools shipped with the gateway.

Each tool is a plain function taking the argument mapping, paired with a
ToolDefinition describing it. register_builtin_tools() is called once at
startup; other tools can be registered alongside them the same way.

Whether an agent may actually call a tool is decided by the permissions
section of the config document, not here.
"""

import datetime

from mcp_gateway.registry import ToolArguments, ToolDefinition, ToolRegistry, ToolSchema

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_current_time(args: ToolArguments) -> str:
    """Local wall-clock time as 'YYYY-MM-DD HH:MM:SS'. Ignores its arguments."""
    return datetime.datetime.now().strftime(TIME_FORMAT)


GET_CURRENT_TIME = ToolDefinition(
    name="get_current_time",
    description="Get the current date and time in 'YYYY-MM-DD HH:MM:SS' format.",
    parameters=ToolSchema(type="object", properties={}, required=[]),
    handler=get_current_time,
)

BUILTIN_TOOLS: tuple[ToolDefinition, ...] = (GET_CURRENT_TIME,)


def register_builtin_tools(registry: ToolRegistry) -> None:
    for definition in BUILTIN_TOOLS:
        registry.register(definition)
