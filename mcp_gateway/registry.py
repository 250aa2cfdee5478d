"""
Tool definitions and the in-memory tool registry.

A tool is a named capability with a human-readable description, an advertised
parameter schema, and a handler. The registry is the only owner of tool
definitions; the gateway and the MCP surface both receive it by reference.

Two shapes describe a tool:

    ToolDefinition  - what the server holds (includes the handler)
    ToolDescriptor  - what callers see (name, description, parameters)

The descriptor is a separate type so the handler can never end up in a
serialized response. Use ToolDefinition.to_descriptor() to cross the boundary.

Registration semantics:
- Last registration wins: registering an existing name replaces the entry.
- No validation: even an empty name becomes a valid key.
- There is no unregister operation.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union

from pydantic import BaseModel, Field

# Argument bag passed to every handler: whatever JSON object the caller sent.
ToolArguments = dict[str, Any]

# Handlers may be plain functions or coroutine functions. Failure is signalled
# by raising; the exception message is reported back to the caller.
ToolHandler = Callable[[ToolArguments], Union[Any, Awaitable[Any]]]


class ToolParameter(BaseModel):
    """
    One node of a parameter schema tree.

    Mirrors the JSON Schema subset tools advertise: a type, a description,
    and for objects/arrays the nested structure.
    """

    type: str
    description: str = ""
    enum: list[Any] | None = None
    properties: dict[str, "ToolParameter"] | None = None
    required: list[str] | None = None
    items: "ToolParameter | None" = None


class ToolSchema(BaseModel):
    """Top-level parameter schema of a tool (always an object)."""

    type: str = "object"
    properties: dict[str, ToolParameter] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)


class ToolDescriptor(BaseModel):
    """The externally visible description of a tool. Carries no handler."""

    name: str
    description: str
    parameters: ToolSchema


@dataclass(frozen=True)
class ToolDefinition:
    """
    A registered tool as held by the server.

    Frozen: a definition never changes after it is built. Replacing a tool
    means registering a new definition under the same name.

    Attributes:
        name: Registry key
        description: Advisory text shown to callers
        handler: Callable invoked with the argument mapping
        parameters: Advertised argument schema (never enforced by the gateway)
    """

    name: str
    description: str
    handler: ToolHandler
    parameters: ToolSchema = field(default_factory=ToolSchema)

    def to_descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )


class ToolRegistry:
    """
    Name-keyed store of tool definitions.

    Registration normally happens once at startup, before the server accepts
    traffic. The mapping is still guarded by a lock so tools can be registered
    while requests are being served (e.g. from a plugin loader); readers
    always see either the old or the new definition, never a partial state.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self._lock = threading.Lock()

    def register(self, definition: ToolDefinition) -> None:
        """Insert or replace the entry keyed by definition.name."""
        with self._lock:
            self._tools[definition.name] = definition

    def get(self, name: str) -> ToolDefinition | None:
        """Exact-match lookup. Returns None when no tool has this name."""
        with self._lock:
            return self._tools.get(name)

    def list_all(self) -> list[ToolDefinition]:
        """Every registered definition. Order is not part of the contract."""
        with self._lock:
            return list(self._tools.values())

    def descriptors(self) -> list[ToolDescriptor]:
        """Every registered tool projected to its external descriptor."""
        return [definition.to_descriptor() for definition in self.list_all()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools
