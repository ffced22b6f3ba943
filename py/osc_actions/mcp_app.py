"""FastMCP app factory and tool/resource registration.

Exposes the OSC action service to MCP clients: send a message as if it had
arrived over OSC, evaluate an expression in the sandbox, and list what is
available.
"""

import json
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from .service import OscActionService


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return repr(value)


def create_mcp_app(service: OscActionService) -> FastMCP:
    """Create and configure MCP tools/resources for the action service."""
    mcp = FastMCP(service.config.server_name)

    @mcp.tool()
    def send_message(pattern: str, arguments: Optional[List[Any]] = None) -> Dict[str, Any]:
        """Dispatch one OSC message to the registered actions.

        Parameters:
        - pattern:   message pattern without the host prefix, e.g. "/transport/bpm"
        - arguments: positional values in order. Either plain JSON values
                     (numbers, strings, booleans, null) or objects of the form
                     {"tag": "f", "value": 140.0} with an OSC type tag.

        Returns {"handled": false} for unknown patterns and for argument
        mismatches; see recent_rejections() for the reason.

        Examples:
        send_message("/transport/start")
        send_message("/transport/bpm", [140])
        send_message("/evaluate", ["song().transport.lpb = 8"])
        """
        handled = service.dispatch(pattern.strip(), arguments or [])
        return {"handled": handled, "pattern": pattern.strip()}

    @mcp.tool()
    def evaluate(expression: str) -> Dict[str, Any]:
        """Evaluate an expression in the sandbox and return its result.

        Unlike sending "/evaluate", this returns the value or the diagnostic.
        Available names: host, song, math, string, table, error, pcall, print,
        range, enumerate, pairs, ipairs, len, type, tostring, tonumber, ...

        Examples:
        evaluate("song().transport.bpm")
        evaluate("song().transport.bpm = 140")
        evaluate("[t.name for t in song().tracks]")
        """
        result = service.evaluate(expression)
        if result.success:
            return {"ok": True, "result": _jsonable(result.value)}
        return {"ok": False, "message": result.diagnostic}

    @mcp.tool()
    def available_messages() -> List[Dict[str, Any]]:
        """List every registered pattern with its description and argument types."""
        return service.available_messages()

    @mcp.tool()
    def recent_rejections(limit: int = 20) -> List[Dict[str, Any]]:
        """Return the most recent rejected messages (unknown pattern or bad arguments)."""
        return service.rejections(limit=max(0, int(limit)))

    @mcp.resource("osc://actions")
    def actions_resource() -> str:
        """Registered actions as JSON."""
        return json.dumps(service.available_messages(), indent=2)

    return mcp
