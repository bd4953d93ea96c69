"""
Static tool descriptors for the GitHub gateway.

``TOOLS`` is the single source for every discovery surface: the ``/metadata``
endpoint, the ``/sse`` metadata event and the MCP ``tools/list`` handler.
"""

from typing import Any, Dict, List

import mcp.types as types

SERVER_NAME = "github-mcp-server"
SERVER_VERSION = "1.0.0"
SERVER_DESCRIPTION = "GitHub operations with read/write access"

VISIBILITY_CHOICES = ("all", "public", "private")

_OWNER = {"type": "string", "description": "Repository owner"}
_REPO = {"type": "string", "description": "Repository name"}

TOOLS: List[types.Tool] = [
    types.Tool(
        name="list_repositories",
        description="List all accessible repositories",
        inputSchema={
            "type": "object",
            "properties": {
                "visibility": {
                    "type": "string",
                    "enum": list(VISIBILITY_CHOICES),
                    "description": "Filter by visibility",
                }
            },
        },
    ),
    types.Tool(
        name="get_file",
        description="Get file contents from a repository",
        inputSchema={
            "type": "object",
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "path": {"type": "string", "description": "File path"},
                "branch": {"type": "string", "description": "Branch name (optional)"},
            },
            "required": ["owner", "repo", "path"],
        },
    ),
    types.Tool(
        name="create_or_update_file",
        description="Create or update a file in a repository",
        inputSchema={
            "type": "object",
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "path": {"type": "string", "description": "File path"},
                "content": {"type": "string", "description": "File content"},
                "message": {"type": "string", "description": "Commit message"},
                "branch": {"type": "string", "description": "Branch name (optional)"},
            },
            "required": ["owner", "repo", "path", "content", "message"],
        },
    ),
    types.Tool(
        name="create_branch",
        description="Create a new branch",
        inputSchema={
            "type": "object",
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "branch": {"type": "string", "description": "New branch name"},
                "from_branch": {
                    "type": "string",
                    "description": "Source branch (optional)",
                },
            },
            "required": ["owner", "repo", "branch"],
        },
    ),
    types.Tool(
        name="create_pull_request",
        description="Create a pull request",
        inputSchema={
            "type": "object",
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "title": {"type": "string", "description": "PR title"},
                "body": {"type": "string", "description": "PR description"},
                "head": {"type": "string", "description": "Source branch"},
                "base": {"type": "string", "description": "Target branch"},
            },
            "required": ["owner", "repo", "title", "head", "base"],
        },
    ),
]

TOOL_NAMES = [tool.name for tool in TOOLS]


def tool_to_dict(tool: types.Tool) -> Dict[str, Any]:
    """Serialize a tool as a ToolDescriptor: name, description, inputSchema"""
    return {
        "name": tool.name,
        "description": tool.description,
        "inputSchema": tool.inputSchema,
    }


def list_tools() -> List[Dict[str, Any]]:
    return [tool_to_dict(tool) for tool in TOOLS]


def build_metadata(protocol: str = "http") -> Dict[str, Any]:
    """
    Build the discovery descriptor served by /metadata and the /sse event.

    Args:
        protocol: Transport the descriptor is advertised on.

    Returns:
        Dict with name, version, description, protocol and tools.
    """
    return {
        "name": SERVER_NAME,
        "version": SERVER_VERSION,
        "description": SERVER_DESCRIPTION,
        "protocol": protocol,
        "tools": list_tools(),
    }


def build_plugin_manifest(base_url: str) -> Dict[str, Any]:
    """Build the ai-plugin.json manifest pointing at ``{base_url}/openapi.json``"""
    return {
        "schema_version": "v1",
        "name_for_human": "GitHub Manager",
        "name_for_model": "github",
        "description_for_human": "Manage GitHub repositories: read/write files, create branches, and PRs",
        "description_for_model": "Plugin for GitHub operations including listing repositories, reading/writing files, creating branches and pull requests.",
        "auth": {"type": "none"},
        "api": {"type": "openapi", "url": f"{base_url.rstrip('/')}/openapi.json"},
        "logo_url": "https://github.githubassets.com/images/modules/logos_page/GitHub-Mark.png",
        "contact_email": "support@example.com",
        "legal_info_url": "https://example.com/legal",
    }
