from starlette.requests import Request

from .BaseAuthClient import BaseAuthClient


class LocalAuthClient(BaseAuthClient):
    """
    Implementation of BaseAuthClient that lets every request through.
    This is the default: agent clients such as ChatGPT actions connect
    without credentials, and the GitHub token stays server-side.
    """

    def authenticate(self, request: Request) -> bool:
        return True
