"""
Host interfaces consumed by the authentication flow.

The flow never touches a web framework directly. Hosts implement these small
interfaces; Flask implementations live in ``flask_integration``.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class SessionStore(ABC):
    """Key/value access to the server-side session of the current user."""

    @abstractmethod
    def read(self, key: str) -> Any:
        pass

    @abstractmethod
    def write(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass


class RequestView(ABC):
    """Read-only view of the inbound HTTP request."""

    @abstractmethod
    def query(self, name: str) -> Optional[Any]:
        """Query-string parameter."""
        pass

    @abstractmethod
    def data(self, name: str) -> Optional[Any]:
        """Body field (form or JSON)."""
        pass

    @abstractmethod
    def param(self, name: str) -> Optional[Any]:
        """Routing parameter."""
        pass

    @property
    @abstractmethod
    def session(self) -> SessionStore:
        pass


class ResponseBuilder(ABC):
    """Outbound response the flow may turn into a redirect."""

    @abstractmethod
    def location(self, url: str) -> None:
        pass
