"""
CLI utility to send envelope requests to a running tool gateway.

Usage examples:

    # List registered tools
    python -m scripts.call_tool list

    # Call a tool with no arguments, as the default (anonymous) agent
    python -m scripts.call_tool call get_current_time

    # Call a tool as a specific agent, with arguments
    python -m scripts.call_tool --agent reporting-agent call echo --args '{"text": "hi"}'

    # Against a different server
    python -m scripts.call_tool --url http://gateway.internal:44444/mcp list

The same requests with curl:

    curl -X POST http://localhost:44444/mcp \\
      -H "Content-Type: application/json" \\
      -d '{"method": "call_tool", "name": "get_current_time", "args": {}}'

Exit status is 1 when the server answers with a non-2xx status or when a
call_tool response carries an `error`.
"""

import argparse
import json
import sys
from typing import Any

import httpx

DEFAULT_URL = "http://localhost:44444/mcp"


def build_envelope(
    method: str,
    name: str | None = None,
    args: dict[str, Any] | None = None,
    agent_id: str | None = None,
) -> dict[str, Any]:
    """Build a request envelope for the given method."""
    envelope: dict[str, Any] = {"method": method}
    if agent_id:
        envelope["agent_id"] = agent_id
    if method == "call_tool":
        envelope["name"] = name or ""
        envelope["args"] = args or {}
    return envelope


def send_envelope(
    envelope: dict[str, Any],
    url: str = DEFAULT_URL,
    client: httpx.Client | None = None,
) -> httpx.Response:
    """POST an envelope and return the raw HTTP response."""
    if client is None:
        with httpx.Client(timeout=30.0) as owned_client:
            return owned_client.post(url, json=envelope)
    return client.post(url, json=envelope)


def _parse_args_json(value: str) -> dict[str, Any]:
    try:
        parsed = json.loads(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"--args must be valid JSON: {e}")
    if not isinstance(parsed, dict):
        raise argparse.ArgumentTypeError("--args must be a JSON object")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Send list_tools / call_tool requests to the tool gateway.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  List tools:
    %(prog)s list

  Call a tool:
    %(prog)s call get_current_time

  Call as an agent, with arguments:
    %(prog)s --agent reporting-agent call echo --args '{"text": "hi"}'
        """,
    )
    parser.add_argument(
        "--url",
        default=DEFAULT_URL,
        help=f"Envelope endpoint URL (default: {DEFAULT_URL})",
    )
    parser.add_argument(
        "--agent",
        default=None,
        help="Agent identity sent as agent_id (default: none, uses default permissions)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("list", help="List registered tools")

    call_parser = subparsers.add_parser("call", help="Call a tool")
    call_parser.add_argument("name", help="Tool name")
    call_parser.add_argument(
        "--args",
        type=_parse_args_json,
        default={},
        help="Tool arguments as a JSON object (default: {})",
    )
    return parser


def main(argv: list[str] | None = None, client: httpx.Client | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "list":
        envelope = build_envelope("list_tools", agent_id=args.agent)
    else:
        envelope = build_envelope("call_tool", name=args.name, args=args.args, agent_id=args.agent)

    try:
        response = send_envelope(envelope, url=args.url, client=client)
    except httpx.HTTPError as e:
        print(f"Request failed: {e}", file=sys.stderr)
        return 1

    if not response.is_success:
        print(f"Server returned {response.status_code}: {response.text.strip()}", file=sys.stderr)
        return 1

    body = response.json()
    print(json.dumps(body, indent=2))

    if body.get("error"):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
