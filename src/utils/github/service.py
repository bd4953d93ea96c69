import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

import requests
from github import Github, GithubException, UnknownObjectException
from github.Repository import Repository

from src.utils.errors import (
    DirectoryPathError,
    GatewayError,
    InvalidArgumentError,
    UnknownToolError,
    UpstreamError,
)
from src.utils.github.tools import TOOLS, VISIBILITY_CHOICES
from src.utils.github.util import (
    PAGE_SIZE,
    decode_content,
    github_object_to_json,
    upstream_error_message,
)

logger = logging.getLogger("github-service")

# Required arguments that may legitimately be empty strings
EMPTY_ALLOWED = {"content"}

ExecutionResult = Union[Dict[str, Any], List[Dict[str, Any]]]


@contextmanager
def upstream_errors() -> Iterator[None]:
    """Translate PyGithub and transport failures into UpstreamError"""
    try:
        yield
    except GithubException as e:
        message = upstream_error_message(e)
        logger.error(f"GitHub API error ({e.status}): {message}")
        raise UpstreamError(message, upstream_status=e.status) from e
    except requests.RequestException as e:
        logger.error(f"Error reaching GitHub API: {e}")
        raise UpstreamError(str(e)) from e


def repository_summary(repo: Repository) -> Dict[str, Any]:
    return {
        "name": repo.name,
        "full_name": repo.full_name,
        "owner": repo.owner.login,
        "private": repo.private,
        "description": repo.description,
        "url": repo.html_url,
        "default_branch": repo.default_branch,
    }


def _ref_kwargs(branch: Optional[str]) -> Dict[str, str]:
    return {"ref": branch} if branch else {}


class RepositoryService:
    """
    The five repository operations shared by the REST, tool-invocation and MCP adapters.

    Operation methods return an ExecutionResult on success and raise a
    GatewayError subclass on failure. ``call`` validates arguments and
    dispatches by tool name; ``execute`` additionally folds errors into
    ``{"error": message}``.
    """

    def __init__(self, github: Github):
        self.github = github
        self._handlers: Dict[str, Callable[..., ExecutionResult]] = {
            "list_repositories": self.list_repositories,
            "get_file": self.get_file,
            "create_or_update_file": self.create_or_update_file,
            "create_branch": self.create_branch,
            "create_pull_request": self.create_pull_request,
        }
        self._schemas = {tool.name: tool.inputSchema for tool in TOOLS}

    @property
    def tool_names(self) -> List[str]:
        return list(self._handlers)

    def _repo(self, owner: str, repo: str) -> Repository:
        # Lazy: no request until an attribute or sub-resource is used
        return self.github.get_repo(f"{owner}/{repo}", lazy=True)

    def list_repositories(self, visibility: Optional[str] = None) -> List[Dict[str, Any]]:
        visibility = visibility or "all"
        if visibility not in VISIBILITY_CHOICES:
            raise InvalidArgumentError(
                f"Invalid visibility: {visibility}. Expected one of: {', '.join(VISIBILITY_CHOICES)}"
            )

        with upstream_errors():
            repos = self.github.get_user().get_repos(
                visibility=visibility, sort="updated"
            )
            return [repository_summary(repo) for repo in repos[:PAGE_SIZE]]

    def get_file(
        self, owner: str, repo: str, path: str, branch: Optional[str] = None
    ) -> Dict[str, Any]:
        with upstream_errors():
            contents = self._repo(owner, repo).get_contents(path, **_ref_kwargs(branch))

        if isinstance(contents, list):
            raise DirectoryPathError()

        return {
            "content": decode_content(contents.content),
            "sha": contents.sha,
            "size": contents.size,
            "path": contents.path,
        }

    def _current_sha(
        self, repository: Repository, path: str, branch: Optional[str]
    ) -> Optional[str]:
        """Revision token of the file at path, or None when it does not exist yet"""
        try:
            existing = repository.get_contents(path, **_ref_kwargs(branch))
        except UnknownObjectException:
            logger.info(f"{path} not found on {branch or 'default branch'}, creating")
            return None

        if isinstance(existing, list):
            return None
        return existing.sha

    def create_or_update_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: Optional[str] = None,
    ) -> Dict[str, Any]:
        repository = self._repo(owner, repo)
        branch_kwargs = {"branch": branch} if branch else {}

        with upstream_errors():
            sha = self._current_sha(repository, path, branch)
            # PyGithub base64-encodes the content for the contents API
            if sha:
                response = repository.update_file(
                    path, message, content, sha, **branch_kwargs
                )
            else:
                response = repository.create_file(
                    path, message, content, **branch_kwargs
                )

        return {
            "success": True,
            "commit": response["commit"].sha,
            "content": github_object_to_json(response["content"]),
        }

    def create_branch(
        self, owner: str, repo: str, branch: str, from_branch: Optional[str] = None
    ) -> Dict[str, Any]:
        repository = self._repo(owner, repo)

        with upstream_errors():
            source = from_branch or repository.default_branch
            source_ref = repository.get_git_ref(f"heads/{source}")
            new_ref = repository.create_git_ref(
                ref=f"refs/heads/{branch}", sha=source_ref.object.sha
            )

        return {"success": True, "branch": branch, "sha": new_ref.object.sha}

    def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: Optional[str] = None,
    ) -> Dict[str, Any]:
        with upstream_errors():
            pull = self._repo(owner, repo).create_pull(
                base=base, head=head, title=title, body=body or ""
            )

        return {
            "success": True,
            "number": pull.number,
            "url": pull.html_url,
            "state": pull.state,
        }

    def _arguments_for(self, tool: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        schema = self._schemas[tool]

        for name in schema.get("required", []):
            value = arguments.get(name)
            if value is None or (value == "" and name not in EMPTY_ALLOWED):
                raise InvalidArgumentError(f"Missing required argument: {name}")

        # Unknown keys are dropped; empty optional values count as absent
        kwargs = {}
        for name, prop in schema.get("properties", {}).items():
            value = arguments.get(name)
            if value is None or (value == "" and name not in EMPTY_ALLOWED):
                continue
            if prop.get("type") == "string" and not isinstance(value, str):
                raise InvalidArgumentError(f"Invalid argument: {name} must be a string")
            kwargs[name] = value
        return kwargs

    def call(self, tool: str, arguments: Optional[Dict[str, Any]] = None) -> ExecutionResult:
        """
        Run a tool by name.

        Args:
            tool: One of the five tool names.
            arguments: Named arguments as described by the tool's inputSchema.

        Returns:
            ExecutionResult on success.

        Raises:
            UnknownToolError: If the tool is not in the dispatch table.
            InvalidArgumentError: If a required argument is missing.
            DirectoryPathError: If get_file targets a directory.
            UpstreamError: If GitHub rejects the request.
        """
        handler = self._handlers.get(tool)
        if handler is None:
            raise UnknownToolError(tool)

        arguments = arguments if isinstance(arguments, dict) else {}
        kwargs = self._arguments_for(tool, arguments)
        logger.info(f"Calling tool: {tool} with args: {sorted(kwargs)}")
        return handler(**kwargs)

    def execute(self, tool: str, arguments: Optional[Dict[str, Any]] = None) -> ExecutionResult:
        """Like ``call``, but reports failures as ``{"error": message}``"""
        try:
            return self.call(tool, arguments)
        except GatewayError as e:
            return e.to_dict()
