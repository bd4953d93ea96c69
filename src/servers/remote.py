import json
import asyncio
import logging
import datetime
import functools
import threading
from pathlib import Path
from typing import Any, Dict, Optional

import uvicorn
from starlette.routing import Route
from starlette.requests import Request
from starlette.middleware import Middleware
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import FileResponse, JSONResponse, Response, StreamingResponse
from prometheus_client import Counter, Gauge, generate_latest, CONTENT_TYPE_LATEST

from src.auth.clients.BaseAuthClient import BaseAuthClient
from src.auth.factory import create_auth_client
from src.utils.config import GatewaySettings
from src.utils.errors import GatewayError, InvalidArgumentError
from src.utils.github.service import RepositoryService
from src.utils.github.tools import TOOL_NAMES, build_metadata, build_plugin_manifest
from src.utils.github.util import create_github_client

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("github-gateway")

KEEPALIVE_INTERVAL_SECONDS = 30

OPENAPI_PATH = Path(__file__).parent / "github" / "openapi.json"

# Prometheus metrics
active_connections = Gauge(
    "gateway_active_sse_connections", "Number of active SSE connections"
)
connection_total = Counter(
    "gateway_sse_connection_total", "Total number of SSE connections"
)
tool_calls = Counter(
    "gateway_tool_calls_total", "Tool invocations by outcome", ["tool", "outcome"]
)


def format_sse_event(data: Any) -> str:
    """Format data as a single SSE ``data:`` event"""
    return f"data: {json.dumps(data)}\n\n"


def format_sse_comment(comment: str) -> str:
    """Format a comment (for keepalive)."""
    return f": {comment}\n\n"


async def metadata_event_stream(interval: float = KEEPALIVE_INTERVAL_SECONDS):
    """
    Emit the discovery descriptor, then keepalive comments until the client goes away.

    Starlette cancels this generator when the client disconnects; the pending
    sleep is cancelled with it.
    """
    active_connections.inc()
    connection_total.inc()
    logger.info("SSE connection established")
    try:
        yield format_sse_event({"type": "metadata", "metadata": build_metadata("sse")})
        while True:
            await asyncio.sleep(interval)
            yield format_sse_comment("keepalive")
    finally:
        active_connections.dec()
        logger.info("Closed SSE connection")


def requires_auth(endpoint):
    """Reject requests the configured auth client does not accept"""

    @functools.wraps(endpoint)
    async def wrapper(request: Request) -> Response:
        auth_client: BaseAuthClient = request.app.state.auth_client
        if not auth_client.authenticate(request):
            return JSONResponse({"error": "Unauthorized"}, status_code=401)
        return await endpoint(request)

    return wrapper


async def read_json_body(request: Request) -> Dict[str, Any]:
    """Parse a JSON object body, raising InvalidArgumentError otherwise"""
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        raise InvalidArgumentError("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise InvalidArgumentError("Request body must be a JSON object")
    return body


async def run_tool(request: Request, tool: str, arguments: Dict[str, Any]) -> Any:
    """Run a tool on a worker thread and record the outcome"""
    service: RepositoryService = request.app.state.service
    label = tool if tool in TOOL_NAMES else "unknown"
    try:
        result = await run_in_threadpool(service.call, tool, arguments)
    except GatewayError as e:
        tool_calls.labels(tool=label, outcome="error").inc()
        logger.warning(f"Tool {tool} failed: {e.message}")
        raise
    tool_calls.labels(tool=label, outcome="success").inc()
    return result


async def rest_response(
    request: Request, tool: str, arguments: Dict[str, Any]
) -> JSONResponse:
    try:
        result = await run_tool(request, tool, arguments)
    except GatewayError as e:
        return JSONResponse(e.to_dict(), status_code=e.status_code)
    return JSONResponse(result)


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint"""
    timestamp = datetime.datetime.now(datetime.timezone.utc).isoformat(
        timespec="milliseconds"
    )
    return JSONResponse({"status": "ok", "timestamp": timestamp.replace("+00:00", "Z")})


@requires_auth
async def metadata_handler(request: Request) -> JSONResponse:
    """HTTP metadata endpoint used by agent clients for tool discovery"""
    return JSONResponse(build_metadata("http"))


async def plugin_manifest_handler(request: Request) -> JSONResponse:
    base_url = request.app.state.public_base_url or str(request.base_url)
    return JSONResponse(build_plugin_manifest(base_url))


async def openapi_handler(request: Request) -> FileResponse:
    return FileResponse(OPENAPI_PATH, media_type="application/json")


@requires_auth
async def list_repositories_handler(request: Request) -> JSONResponse:
    arguments = {"visibility": request.query_params.get("visibility")}
    return await rest_response(request, "list_repositories", arguments)


@requires_auth
async def get_file_handler(request: Request) -> JSONResponse:
    arguments = {
        "owner": request.path_params["owner"],
        "repo": request.path_params["repo"],
        "path": request.path_params["path"],
        "branch": request.query_params.get("branch"),
    }
    return await rest_response(request, "get_file", arguments)


@requires_auth
async def put_file_handler(request: Request) -> JSONResponse:
    try:
        body = await read_json_body(request)
    except GatewayError as e:
        return JSONResponse(e.to_dict(), status_code=e.status_code)

    arguments = {
        "owner": request.path_params["owner"],
        "repo": request.path_params["repo"],
        "path": request.path_params["path"],
        "content": body.get("content"),
        "message": body.get("message"),
        "branch": body.get("branch"),
    }
    return await rest_response(request, "create_or_update_file", arguments)


@requires_auth
async def create_branch_handler(request: Request) -> JSONResponse:
    try:
        body = await read_json_body(request)
    except GatewayError as e:
        return JSONResponse(e.to_dict(), status_code=e.status_code)

    arguments = {
        "owner": request.path_params["owner"],
        "repo": request.path_params["repo"],
        "branch": body.get("branch"),
        "from_branch": body.get("from_branch"),
    }
    return await rest_response(request, "create_branch", arguments)


@requires_auth
async def create_pull_request_handler(request: Request) -> JSONResponse:
    try:
        body = await read_json_body(request)
    except GatewayError as e:
        return JSONResponse(e.to_dict(), status_code=e.status_code)

    arguments = {
        "owner": request.path_params["owner"],
        "repo": request.path_params["repo"],
        "title": body.get("title"),
        "body": body.get("body"),
        "head": body.get("head"),
        "base": body.get("base"),
    }
    return await rest_response(request, "create_pull_request", arguments)


@requires_auth
async def handle_sse(request: Request) -> StreamingResponse:
    """MCP-style SSE endpoint: one metadata event, then keepalives"""
    return StreamingResponse(
        metadata_event_stream(request.app.state.keepalive_interval),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@requires_auth
async def handle_execute(request: Request) -> JSONResponse:
    """
    Tool-invocation endpoint.

    Every outcome, including unknown tools and upstream failures, is reported
    as HTTP 200 ``{"result": ...}``. Only an unreadable body is a 400.
    """
    try:
        body = await read_json_body(request)
    except GatewayError as e:
        return JSONResponse(e.to_dict(), status_code=e.status_code)

    tool = body.get("tool")
    arguments = body.get("arguments")
    if not isinstance(arguments, dict):
        arguments = {}

    if not tool:
        return JSONResponse(
            {"result": InvalidArgumentError("Missing required argument: tool").to_dict()}
        )

    try:
        result = await run_tool(request, str(tool), arguments)
    except GatewayError as e:
        result = e.to_dict()
    return JSONResponse({"result": result})


async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse({"error": str(exc)}, status_code=500)


def create_metrics_app():
    """Create a separate Starlette app just for metrics"""

    async def metrics_endpoint(request):
        """Prometheus metrics endpoint"""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    routes = [Route("/metrics", endpoint=metrics_endpoint)]

    app = Starlette(
        debug=False,
        routes=routes,
    )

    return app


def create_starlette_app(
    service: RepositoryService,
    auth_client: Optional[BaseAuthClient] = None,
    public_base_url: Optional[str] = None,
    keepalive_interval: float = KEEPALIVE_INTERVAL_SECONDS,
) -> Starlette:
    """
    Create the gateway Starlette app.

    Args:
        service: Repository service shared by every adapter
        auth_client: Authenticator for protected routes (default: allow all)
        public_base_url: Base URL advertised in the plugin manifest
        keepalive_interval: Seconds between SSE keepalive comments

    Returns:
        Starlette: The configured application
    """
    routes = [
        Route("/health", endpoint=health_check, methods=["GET"]),
        Route("/metadata", endpoint=metadata_handler, methods=["GET"]),
        Route(
            "/.well-known/ai-plugin.json",
            endpoint=plugin_manifest_handler,
            methods=["GET"],
        ),
        Route("/openapi.json", endpoint=openapi_handler, methods=["GET"]),
        Route("/repos", endpoint=list_repositories_handler, methods=["GET"]),
        Route(
            "/repos/{owner}/{repo}/contents/{path:path}",
            endpoint=get_file_handler,
            methods=["GET"],
        ),
        Route(
            "/repos/{owner}/{repo}/contents/{path:path}",
            endpoint=put_file_handler,
            methods=["PUT"],
        ),
        Route(
            "/repos/{owner}/{repo}/branches",
            endpoint=create_branch_handler,
            methods=["POST"],
        ),
        Route(
            "/repos/{owner}/{repo}/pulls",
            endpoint=create_pull_request_handler,
            methods=["POST"],
        ),
        Route("/sse", endpoint=handle_sse, methods=["GET"]),
        Route("/execute", endpoint=handle_execute, methods=["POST"]),
    ]

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "X-API-Key"],
            allow_credentials=False,
        )
    ]

    app = Starlette(
        debug=False,
        routes=routes,
        middleware=middleware,
        exception_handlers={Exception: unhandled_error},
    )
    app.state.service = service
    app.state.auth_client = auth_client or create_auth_client(auth_mode="none")
    app.state.public_base_url = public_base_url
    app.state.keepalive_interval = keepalive_interval

    return app


def create_app_from_settings(settings: GatewaySettings) -> Starlette:
    """Wire the GitHub client, service and auth client from settings"""
    github = create_github_client(settings.github_token, settings.github_base_url)
    auth_client = create_auth_client(
        api_key=settings.api_key, auth_mode=settings.auth_mode
    )
    return create_starlette_app(
        RepositoryService(github),
        auth_client=auth_client,
        public_base_url=settings.public_base_url,
    )


def run_metrics_server(host, port):
    """Run a separate metrics server on the specified port"""
    metrics_app = create_metrics_app()
    logger.info(f"Starting metrics server on {host}:{port}")
    uvicorn.run(metrics_app, host=host, port=port)


def serve(settings: GatewaySettings):
    """Run the gateway (and the metrics server, unless disabled) until interrupted"""
    app = create_app_from_settings(settings)

    if settings.metrics_port:
        metrics_thread = threading.Thread(
            target=run_metrics_server,
            args=(settings.host, settings.metrics_port),
            daemon=True,
        )
        metrics_thread.start()
        logger.info(
            f"Starting Metrics server on http://{settings.host}:{settings.metrics_port}/metrics"
        )

    logger.info(f"GitHub MCP Server running on port {settings.port}")
    logger.info(f"Health check: http://localhost:{settings.port}/health")
    uvicorn.run(app, host=settings.host, port=settings.port)
