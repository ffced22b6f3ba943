"""Entrypoint for the OSC action MCP server.

This module intentionally avoids side effects at import-time so an MCP
client can start it reliably as a stdio process. Until the service is
embedded in the host application it runs against the in-memory DummyHost.
"""

from osc_actions import DummyHost, OscActionService
from osc_actions.mcp_app import create_mcp_app


def main() -> None:
    """Start the action service and run MCP over stdio."""
    service = OscActionService(DummyHost())
    service.start()
    mcp = create_mcp_app(service)

    try:
        mcp.run(transport="stdio")
    finally:
        service.stop()


if __name__ == "__main__":
    main()
