"""
This file contains the tests for the GitHub gateway HTTP surface.
"""

import json
import asyncio
import datetime

import pytest
from github import GithubException
from prometheus_client import REGISTRY

from src.auth.clients.ApiKeyAuthClient import ApiKeyAuthClient
from src.servers.remote import create_starlette_app, metadata_event_stream
from src.utils.github.service import RepositoryService
from src.utils.github.tools import TOOL_NAMES
from tests.clients.FakeGithub import FakeGithub, FakeRepo, git_sha
from tests.clients.GatewayTestClient import GatewayTestClient
from tests.config import README_TEXT, TEST_OWNER, TEST_REPO

REPO_ARGS = {"owner": TEST_OWNER, "repo": TEST_REPO}
TEST_API_KEY = "test-api-key"


def make_client(auth_client=None, headers=None):
    """Build a gateway over a fresh fake account so mutating calls do not interfere"""
    github = FakeGithub()
    repo = github.add_repo(FakeRepo(TEST_OWNER, TEST_REPO, description="Sandbox"))
    repo.add_file("README.md", README_TEXT)
    repo.add_file("docs/guide.md", "Guide\n")
    repo.branches["feature"] = "1" * 40
    app = create_starlette_app(RepositoryService(github), auth_client=auth_client)
    return GatewayTestClient(app, headers=headers), repo


ADAPTER_PARITY_CASES = [
    ("list_repositories", {}),
    ("list_repositories", {"visibility": "public"}),
    ("get_file", {"path": "README.md", **REPO_ARGS}),
    ("get_file", {"path": "docs/guide.md", "branch": "main", **REPO_ARGS}),
    ("get_file", {"path": "docs", **REPO_ARGS}),
    ("get_file", {"path": "missing.txt", **REPO_ARGS}),
    (
        "create_or_update_file",
        {"path": "README.md", "content": "new\n", "message": "Update", **REPO_ARGS},
    ),
    (
        "create_or_update_file",
        {"path": "src/app.py", "content": "print(1)\n", "message": "Add", **REPO_ARGS},
    ),
    ("create_or_update_file", {"path": "x.txt", "content": "x", **REPO_ARGS}),
    ("create_branch", {"branch": "topic", **REPO_ARGS}),
    ("create_branch", {"branch": "topic", "from_branch": "feature", **REPO_ARGS}),
    ("create_branch", {"branch": "main", **REPO_ARGS}),
    (
        "create_pull_request",
        {"title": "Feature", "head": "feature", "base": "main", **REPO_ARGS},
    ),
    (
        "create_pull_request",
        {"title": "Broken", "head": "nope", "base": "main", "body": "b", **REPO_ARGS},
    ),
]


@pytest.mark.parametrize("tool,arguments", ADAPTER_PARITY_CASES)
def test_rest_and_execute_payloads_match(tool, arguments):
    """Both adapters return the same body for the same operation and arguments"""
    rest_client, _ = make_client()
    execute_client, _ = make_client()

    rest_status, rest_body = rest_client.rest(tool, arguments)
    execute_status, execute_body = execute_client.execute(tool, arguments)

    assert execute_status == 200
    assert execute_body == {"result": rest_body}
    if isinstance(rest_body, dict) and "error" in rest_body:
        assert rest_status in (400, 500)
        assert "success" not in rest_body
    else:
        assert rest_status == 200


def test_health(client):
    """Test the liveness endpoint"""
    response = client.http.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    parsed = datetime.datetime.fromisoformat(body["timestamp"].replace("Z", "+00:00"))
    assert parsed.tzinfo is not None


def test_metadata_lists_five_tools(client):
    response = client.http.get("/metadata")

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "github-mcp-server"
    assert body["version"] == "1.0.0"
    assert body["protocol"] == "http"
    assert [tool["name"] for tool in body["tools"]] == [
        "list_repositories",
        "get_file",
        "create_or_update_file",
        "create_branch",
        "create_pull_request",
    ]
    for tool in body["tools"]:
        assert set(tool) == {"name", "description", "inputSchema"}


def test_plugin_manifest_points_at_openapi(client):
    response = client.http.get("/.well-known/ai-plugin.json")

    assert response.status_code == 200
    manifest = response.json()
    assert manifest["schema_version"] == "v1"
    assert manifest["auth"] == {"type": "none"}
    assert manifest["api"] == {
        "type": "openapi",
        "url": "http://testserver/openapi.json",
    }


def test_plugin_manifest_uses_public_base_url(service):
    app = create_starlette_app(service, public_base_url="https://gateway.example.com/")
    client = GatewayTestClient(app)

    manifest = client.http.get("/.well-known/ai-plugin.json").json()

    assert manifest["api"]["url"] == "https://gateway.example.com/openapi.json"


def test_discovery_surfaces_agree(client):
    """/metadata, the OpenAPI document and the /sse first event expose the same tools"""
    metadata_tools = [t["name"] for t in client.http.get("/metadata").json()["tools"]]

    openapi = client.http.get("/openapi.json").json()
    operation_ids = [
        operation["operationId"]
        for path_item in openapi["paths"].values()
        for key, operation in path_item.items()
        if key != "parameters"
    ]

    async def first_event():
        stream = metadata_event_stream(interval=3600)
        try:
            return await stream.__anext__()
        finally:
            await stream.aclose()

    event = asyncio.run(first_event())
    assert event.startswith("data: ") and event.endswith("\n\n")
    payload = json.loads(event[len("data: ") :])
    assert payload["type"] == "metadata"
    sse_tools = [t["name"] for t in payload["metadata"]["tools"]]

    assert metadata_tools == TOOL_NAMES
    assert sse_tools == TOOL_NAMES
    assert sorted(operation_ids) == sorted(TOOL_NAMES)


@pytest.mark.asyncio
async def test_sse_stream_sends_keepalive_comments():
    stream = metadata_event_stream(interval=0)
    try:
        await stream.__anext__()
        assert await stream.__anext__() == ": keepalive\n\n"
        assert await stream.__anext__() == ": keepalive\n\n"
    finally:
        await stream.aclose()


@pytest.mark.asyncio
async def test_sse_disconnect_cancels_keepalive():
    """Cancelling the stream mid-sleep releases the connection"""
    baseline = REGISTRY.get_sample_value("gateway_active_sse_connections")
    stream = metadata_event_stream(interval=3600)

    await stream.__anext__()
    assert REGISTRY.get_sample_value("gateway_active_sse_connections") == baseline + 1

    pending = asyncio.ensure_future(stream.__anext__())
    await asyncio.sleep(0)
    pending.cancel()
    with pytest.raises(asyncio.CancelledError):
        await pending

    assert REGISTRY.get_sample_value("gateway_active_sse_connections") == baseline
    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()


def test_get_file_via_rest(client):
    response = client.http.get(
        f"/repos/{TEST_OWNER}/{TEST_REPO}/contents/docs/guide.md"
    )

    assert response.status_code == 200
    assert response.json()["content"] == "Guide\n"
    assert response.json()["path"] == "docs/guide.md"


def test_get_file_on_directory_is_distinct_error(client):
    status, body = client.rest("get_file", {"path": "docs", **REPO_ARGS})

    assert status == 400
    assert body == {"error": "Path is a directory, not a file"}


def test_get_file_missing_is_upstream_error(client):
    status, body = client.rest("get_file", {"path": "missing.txt", **REPO_ARGS})

    assert status == 500
    assert body == {"error": "Not Found"}


def test_get_then_put_unchanged_content_succeeds(client, sandbox_repo):
    """The read-then-write sha handshake works against an existing file"""
    _, current = client.rest("get_file", {"path": "README.md", **REPO_ARGS})

    status, body = client.rest(
        "create_or_update_file",
        {
            "path": "README.md",
            "content": current["content"],
            "message": "No-op update",
            **REPO_ARGS,
        },
    )

    assert status == 200
    assert body["success"] is True
    assert body["commit"] == sandbox_repo.branches["main"]
    assert any(
        name == "update_file" and args["sha"] == current["sha"]
        for name, args in sandbox_repo.calls
    )


def test_put_new_file_creates_without_sha(client, sandbox_repo):
    status, body = client.rest(
        "create_or_update_file",
        {"path": "new/file.txt", "content": "fresh", "message": "Add", **REPO_ARGS},
    )

    assert status == 200
    assert body["success"] is True
    assert sandbox_repo.files[("main", "new/file.txt")] == "fresh"
    assert not any(name == "update_file" for name, _ in sandbox_repo.calls)


def test_put_without_message_is_rejected(client, sandbox_repo):
    status, body = client.rest(
        "create_or_update_file", {"path": "a.txt", "content": "a", **REPO_ARGS}
    )

    assert status == 400
    assert body == {"error": "Missing required argument: message"}
    assert sandbox_repo.calls == []


def test_put_with_non_object_body_is_rejected(client):
    response = client.http.put(
        f"/repos/{TEST_OWNER}/{TEST_REPO}/contents/a.txt", json=["not", "an", "object"]
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Request body must be a JSON object"}


def test_create_branch_defaults_to_repository_default_branch(client, sandbox_repo):
    head = sandbox_repo.branches["main"]

    status, body = client.execute("create_branch", {"branch": "topic", **REPO_ARGS})

    assert status == 200
    assert body == {"result": {"success": True, "branch": "topic", "sha": head}}


def test_create_pull_request_via_rest(client, sandbox_repo):
    sandbox_repo.branches["feature"] = "2" * 40

    status, body = client.rest(
        "create_pull_request",
        {"title": "Feature", "head": "feature", "base": "main", **REPO_ARGS},
    )

    assert status == 200
    assert body == {
        "success": True,
        "number": 1,
        "url": f"https://github.com/{TEST_OWNER}/{TEST_REPO}/pull/1",
        "state": "open",
    }
    assert sandbox_repo.pulls[0].body == ""


def test_execute_unknown_tool(client):
    status, body = client.execute("not_a_real_tool", {})

    assert status == 200
    assert body == {"result": {"error": "Unknown tool: not_a_real_tool"}}


def test_execute_without_tool_name(client):
    response = client.http.post("/execute", json={"arguments": {}})

    assert response.status_code == 200
    assert response.json() == {"result": {"error": "Missing required argument: tool"}}


def test_execute_with_invalid_json(client):
    response = client.http.post(
        "/execute",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Request body must be valid JSON"}


def test_get_file_on_binary_blob_returns_200(client, sandbox_repo):
    png = b"\x89PNG\r\n\x1a\n\x00\xff\xfe"
    sandbox_repo.add_file("logo.png", png)

    status, body = client.execute("get_file", {"path": "logo.png", **REPO_ARGS})
    rest_status, rest_body = client.rest("get_file", {"path": "logo.png", **REPO_ARGS})

    assert status == 200
    assert body["result"]["content"] == png.decode("utf-8", errors="replace")
    assert rest_status == 200
    assert rest_body == body["result"]


def test_execute_rejects_non_string_arguments(client, sandbox_repo):
    status, body = client.execute("get_file", {"path": 123, **REPO_ARGS})
    branch_status, branch_body = client.execute(
        "get_file", {"path": "README.md", "branch": ["main"], **REPO_ARGS}
    )

    assert status == 200
    assert body == {"result": {"error": "Invalid argument: path must be a string"}}
    assert branch_status == 200
    assert branch_body == {
        "result": {"error": "Invalid argument: branch must be a string"}
    }
    assert sandbox_repo.calls == []


def test_execute_with_non_object_arguments(client):
    response = client.http.post(
        "/execute", json={"tool": "list_repositories", "arguments": "all"}
    )

    assert response.status_code == 200
    assert [r["name"] for r in response.json()["result"]] == [TEST_REPO, "secret-plans"]


def test_execute_reports_upstream_errors_as_200(client, fake_github):
    fake_github.error = GithubException(401, {"message": "Bad credentials"}, None)

    status, body = client.execute("list_repositories", {})
    rest_status, rest_body = client.rest("list_repositories", {})

    assert status == 200
    assert body == {"result": {"error": "Bad credentials"}}
    assert rest_status == 500
    assert rest_body == {"error": "Bad credentials"}


def test_cors_allows_any_origin(client):
    response = client.http.get("/health", headers={"Origin": "https://chat.openai.com"})

    assert response.headers["access-control-allow-origin"] == "*"


def test_api_key_auth_guards_protected_routes():
    client, _ = make_client(auth_client=ApiKeyAuthClient(api_key=TEST_API_KEY))

    assert client.http.get("/metadata").status_code == 401
    assert client.http.get("/metadata").json() == {"error": "Unauthorized"}
    assert client.http.get("/sse").status_code == 401
    assert client.execute("list_repositories", {})[0] == 401

    # Discovery of the plugin itself stays public
    assert client.http.get("/health").status_code == 200
    assert client.http.get("/.well-known/ai-plugin.json").status_code == 200
    assert client.http.get("/openapi.json").status_code == 200


def test_api_key_auth_accepts_bearer_and_header():
    bearer_client, _ = make_client(
        auth_client=ApiKeyAuthClient(api_key=TEST_API_KEY),
        headers={"Authorization": f"Bearer {TEST_API_KEY}"},
    )
    header_client, _ = make_client(
        auth_client=ApiKeyAuthClient(api_key=TEST_API_KEY),
        headers={"X-API-Key": TEST_API_KEY},
    )

    assert bearer_client.http.get("/metadata").status_code == 200
    assert header_client.execute("get_file", {"path": "README.md", **REPO_ARGS}) == (
        200,
        {
            "result": {
                "content": README_TEXT,
                "sha": git_sha(README_TEXT),
                "size": len(README_TEXT),
                "path": "README.md",
            }
        },
    )