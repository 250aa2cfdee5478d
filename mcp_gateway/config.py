"""
Application configuration.

Two layers:

1. Process settings (pydantic-settings), read from MCP_-prefixed environment
   variables or a .env file. These say *where* things are and how the server
   behaves: config file path, log level, endpoint paths.

2. The gateway config document (YAML, default config/config.yaml), which holds
   the listen address and the per-agent tool permissions:

       server:
         host: "0.0.0.0"
         port: 44444
       permissions:
         default:
           tools: [get_current_time]
         agents:
           reporting-agent:
             tools: [get_current_time]
           sandboxed-agent:
             tools: []

The document is loaded once at startup. Nothing re-reads it afterwards; the
permission table built from it is immutable for the process lifetime.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 44444


class ConfigError(Exception):
    """Raised when the config document is missing, unreadable, or invalid."""


class Settings(BaseSettings):
    """
    Server settings with environment variable bindings.

    Each field maps to an environment variable with the MCP_ prefix, e.g.
    `config_file` reads from MCP_CONFIG_FILE.
    """

    # Path to the YAML document with server address and permissions.
    config_file: Path = Path("config/config.yaml")

    # Logging verbosity. Maps to Python's logging levels.
    log_level: str = "info"

    # Path of the JSON envelope endpoint (list_tools / call_tool).
    rpc_path: str = "/mcp"

    # Path of the native MCP streamable-HTTP endpoint.
    mcp_path: str = "/mcp/stream"

    # HTTP header carrying the agent identity on the native MCP endpoint.
    agent_header: str = "x-agent-id"

    # When true, list_tools only returns the tools the caller may call.
    filter_tool_list: bool = False

    model_config = {
        "env_prefix": "MCP_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


class ServerConfig(BaseModel):
    """Listen address. Empty values fall back to the defaults."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    @field_validator("host", mode="before")
    @classmethod
    def _default_host(cls, value: Any) -> Any:
        return value or DEFAULT_HOST

    @field_validator("port", mode="before")
    @classmethod
    def _default_port(cls, value: Any) -> Any:
        return value or DEFAULT_PORT


class ToolAccess(BaseModel):
    """A list of tool names an identity may call."""

    tools: list[str] = Field(default_factory=list)


class PermissionsConfig(BaseModel):
    """
    Tool permissions: a default list plus per-agent overrides.

    An agent listed with an empty (or null) body is configured with an empty
    tool list, which is different from not being listed at all.
    """

    default: ToolAccess = Field(default_factory=ToolAccess)
    agents: dict[str, ToolAccess] = Field(default_factory=dict)

    @field_validator("default", mode="before")
    @classmethod
    def _null_default(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("agents", mode="before")
    @classmethod
    def _null_agents(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {agent: {} if body is None else body for agent, body in value.items()}
        return value


class GatewayConfig(BaseModel):
    """The whole config document."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    permissions: PermissionsConfig = Field(default_factory=PermissionsConfig)

    @field_validator("server", "permissions", mode="before")
    @classmethod
    def _null_section(cls, value: Any) -> Any:
        return {} if value is None else value


def load_config(path: Path) -> GatewayConfig:
    """
    Read and validate the gateway config document.

    An empty document is valid and yields all defaults (no tools allowed).

    Raises:
        ConfigError: If the file cannot be read, is not YAML, or does not
                     match the expected structure
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {path} is not valid YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")

    try:
        return GatewayConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e


# Singleton instance: import this from other modules.
settings = Settings()
