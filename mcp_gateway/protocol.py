"""
Request/response envelopes and the gateway error taxonomy.

Wire format (JSON over HTTP POST):

    request:   {"method": "list_tools" | "call_tool",
                "agent_id": "...",           # optional, "" when absent
                "name": "...",               # call_tool only
                "args": {...}}               # call_tool only

    list_tools response:  {"tools": [{"name", "description", "parameters"}, ...]}
    call_tool response:   {"result": <any>, "error": "<message>"}

A call_tool response always carries both keys. Exactly one is populated; the
other holds its zero value (null / ""). Callers must check `error`, not the
HTTP status, to detect a failed call.

Decoding happens in two stages:
1. Parse the body as a JSON object and check the `method` field.
2. Validate the whole object against the request model selected by `method`
   (a pydantic discriminated union).
"""

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic_core import PydanticSerializationError, to_json

from mcp_gateway.registry import ToolArguments, ToolDescriptor

METHOD_LIST_TOOLS = "list_tools"
METHOD_CALL_TOOL = "call_tool"
METHODS = (METHOD_LIST_TOOLS, METHOD_CALL_TOOL)


class GatewayError(Exception):
    """
    Base class for failures that abort a request before a response envelope
    is produced.

    Attributes:
        message: Plain-text reason returned to the client
        status_code: HTTP status the transport should answer with
    """

    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class MalformedEnvelope(GatewayError):
    """Body is not a JSON object, or fields have the wrong shape for the method."""


class MissingMethod(GatewayError):
    """The `method` field is absent."""


class InvalidMethodType(GatewayError):
    """The `method` field is not a string."""


class UnknownMethod(GatewayError):
    """The `method` field names no supported operation."""


class InternalEncodingError(GatewayError):
    """The response could not be serialized (a tool returned a non-JSON value)."""

    status_code = 500


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ListToolsRequest(BaseModel):
    method: Literal["list_tools"]
    agent_id: str = ""

    @field_validator("agent_id", mode="before")
    @classmethod
    def _null_string(cls, value: Any) -> Any:
        return "" if value is None else value


class CallToolRequest(BaseModel):
    method: Literal["call_tool"]
    agent_id: str = ""
    name: str = ""
    args: ToolArguments = Field(default_factory=dict)

    @field_validator("agent_id", "name", mode="before")
    @classmethod
    def _null_string(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("args", mode="before")
    @classmethod
    def _null_args(cls, value: Any) -> Any:
        return {} if value is None else value


GatewayRequest = Annotated[
    Union[ListToolsRequest, CallToolRequest],
    Field(discriminator="method"),
]

_request_adapter: TypeAdapter[GatewayRequest] = TypeAdapter(GatewayRequest)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ListToolsResponse(BaseModel):
    tools: list[ToolDescriptor]

    model_config = ConfigDict(ser_json_inf_nan="constants")


class CallToolResponse(BaseModel):
    result: Any = None
    error: str = ""

    # Non-finite floats serialize as bare constants so encode_response can
    # reject them instead of silently turning them into null.
    model_config = ConfigDict(ser_json_inf_nan="constants")


def decode_request(body: bytes) -> ListToolsRequest | CallToolRequest:
    """
    Decode a request body into its method-specific request model.

    Raises:
        MalformedEnvelope: Body is not a JSON object or has mistyped fields
        MissingMethod: No `method` field
        InvalidMethodType: `method` is not a string
        UnknownMethod: `method` is not list_tools or call_tool
    """
    try:
        envelope = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        raise MalformedEnvelope("Invalid JSON format")

    if not isinstance(envelope, dict):
        raise MalformedEnvelope("Invalid JSON format")

    if "method" not in envelope:
        raise MissingMethod("Missing 'method' field")

    method = envelope["method"]
    if not isinstance(method, str):
        raise InvalidMethodType("'method' must be a string")

    if method not in METHODS:
        raise UnknownMethod("Unknown method")

    try:
        return _request_adapter.validate_python(envelope)
    except ValidationError:
        raise MalformedEnvelope(f"Invalid {method} request format")


def encode_response(response: ListToolsResponse | CallToolResponse) -> bytes:
    """
    Serialize a response envelope to JSON bytes.

    Raises:
        InternalEncodingError: The payload holds a value JSON cannot represent
    """
    try:
        text = response.model_dump_json()
        _reject_non_finite(text)
    except (PydanticSerializationError, TypeError, ValueError) as e:
        raise InternalEncodingError("Internal server error") from e
    return text.encode("utf-8")


def encode_result(value: Any) -> str:
    """
    Serialize a bare tool result to JSON text, with the same rules as
    encode_response.

    Raises:
        InternalEncodingError: The value is not representable as JSON
    """
    try:
        text = to_json(value, inf_nan_mode="constants").decode("utf-8")
        _reject_non_finite(text)
    except (PydanticSerializationError, TypeError, ValueError) as e:
        raise InternalEncodingError("Internal server error") from e
    return text


def _non_finite_constant(token: str) -> Any:
    raise ValueError(f"Out of range float value {token} is not JSON compliant")


def _reject_non_finite(text: str) -> None:
    # NaN and +/-Infinity are written as bare constants, which strict JSON forbids.
    json.loads(text, parse_constant=_non_finite_constant)
