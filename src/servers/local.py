import sys
import asyncio
import logging

import mcp.server.stdio
from dotenv import load_dotenv

from src.servers.github.main import create_server, get_initialization_options
from src.utils.config import GatewaySettings
from src.utils.errors import ConfigurationError
from src.utils.github.service import RepositoryService
from src.utils.github.util import create_github_client

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("github-gateway-stdio")


async def run_stdio_server(server, get_initialization_options):
    """Run the server using stdin/stdout streams"""
    logger.info("Starting stdio server")
    async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            get_initialization_options(),
        )


async def main():
    """Main entry point for the stdio server"""
    load_dotenv()
    try:
        settings = GatewaySettings.from_env()
    except ConfigurationError as e:
        logger.error(f"ERROR: {e}")
        sys.exit(1)

    github = create_github_client(settings.github_token, settings.github_base_url)
    server_instance = create_server(RepositoryService(github))

    logger.info("Starting local stdio server for the GitHub tools")
    await run_stdio_server(
        server_instance, lambda: get_initialization_options(server_instance)
    )


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
