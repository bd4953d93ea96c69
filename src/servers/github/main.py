import json
import asyncio
import logging

import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from src.utils.github.service import RepositoryService
from src.utils.github.tools import SERVER_VERSION, TOOLS

SERVICE_NAME = "github-server"

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(SERVICE_NAME)


def create_server(service: RepositoryService) -> Server:
    """
    Initializes an MCP server exposing the gateway tools.

    Args:
        service (RepositoryService): Service shared with the HTTP adapters.

    Returns:
        Server: Configured server instance with all GitHub tools registered.
    """
    server = Server(SERVICE_NAME)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        """
        Lists the five repository tools, identical to /metadata.
        """
        logger.info("Listing tools")
        return list(TOOLS)

    @server.call_tool()
    async def handle_call_tool(
        name: str, arguments: dict | None
    ) -> list[types.TextContent]:
        """
        Dispatches a tool call through the shared service.

        Failures come back as an ``{"error": ...}`` payload, the same body the
        /execute endpoint returns.
        """
        logger.info(f"Calling tool: {name} with args: {sorted(arguments or {})}")

        # PyGithub blocks; keep the event loop free for the transport
        result = await asyncio.to_thread(service.execute, name, arguments or {})
        return [types.TextContent(type="text", text=json.dumps(result, indent=2))]

    return server


def get_initialization_options(server_instance: Server) -> InitializationOptions:
    """
    Provides initialization options required for running the server.

    Args:
        server_instance (Server): The MCP server instance.

    Returns:
        InitializationOptions: The initialization configuration block.
    """
    return InitializationOptions(
        server_name=SERVICE_NAME,
        server_version=SERVER_VERSION,
        capabilities=server_instance.get_capabilities(
            notification_options=NotificationOptions(),
            experimental_capabilities={},
        ),
    )
