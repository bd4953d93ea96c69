from typing import Optional


class GatewayError(Exception):
    """Base class for errors reported back to gateway callers as ``{"error": ...}``"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class InvalidArgumentError(GatewayError):
    """A required argument is missing or has an unsupported value"""

    status_code = 400


class DirectoryPathError(GatewayError):
    """get_file was pointed at a directory"""

    status_code = 400

    def __init__(self, message: str = "Path is a directory, not a file"):
        super().__init__(message)


class UpstreamError(GatewayError):
    """GitHub rejected the request or could not be reached"""

    status_code = 500

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class UnknownToolError(InvalidArgumentError):
    """The tool-invocation adapter was asked for a tool outside the dispatch table"""

    status_code = 404

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class ConfigurationError(Exception):
    """Raised at startup when required configuration is missing"""
