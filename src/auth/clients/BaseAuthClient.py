import abc

from starlette.requests import Request


class BaseAuthClient(abc.ABC):
    """
    Abstract base class for request authenticators.
    The gateway asks the configured client to vet every protected request
    before it reaches an adapter.
    """

    @abc.abstractmethod
    def authenticate(self, request: Request) -> bool:
        """
        Decides whether a request may use the protected endpoints

        Args:
            request: The inbound Starlette request

        Returns:
            True if the request is allowed, False otherwise
        """
        pass
