import argparse
import logging
import sys

from dotenv import load_dotenv

from src.utils.config import GatewaySettings
from src.utils.errors import ConfigurationError

# Configure logging for the main script
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("github-gateway")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="GitHub MCP gateway")
    parser.add_argument("--host", default=None, help="Host for server (env: HOST)")
    parser.add_argument(
        "--port", type=int, default=None, help="Port for server (env: PORT)"
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Port for the Prometheus metrics server, 0 to disable (env: METRICS_PORT)",
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Parse arguments and launch the gateway"""
    args = parse_args(argv)
    load_dotenv()

    try:
        settings = GatewaySettings.from_env(
            host=args.host, port=args.port, metrics_port=args.metrics_port
        )
    except ConfigurationError as e:
        logger.error(f"ERROR: {e}")
        sys.exit(1)

    logger.info(f"Starting GitHub gateway on {settings.host}:{settings.port}")
    from src.servers.remote import serve

    serve(settings)


if __name__ == "__main__":
    main()
