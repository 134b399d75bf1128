"""
Anti-CSRF state handling for the OAuth2 authorization redirect.

The state check is opt-in per provider (``options.state``). When it is off,
``verify`` passes every request through unchanged.
"""

from typing import Optional
import logging

from .interfaces import SessionStore
from .providers.base_provider import BaseProvider


SESSION_KEY = 'oauth2state'


class StateGuard:
    """Issues state tokens into the session and verifies them on the return leg."""

    def __init__(self, session_key: str = SESSION_KEY):
        self.session_key = session_key
        self.logger = logging.getLogger(__name__)

    def issue(self, session: SessionStore, provider: BaseProvider) -> str:
        """
        Mint a state token through the provider and store it in the session.

        Args:
            session: Session of the current user
            provider: Provider the user is redirected to

        Returns:
            The stored state token
        """
        state = provider.get_state()
        session.write(self.session_key, state)
        return state

    def verify(self, session: SessionStore, supplied_state: Optional[str], enabled: bool = True) -> bool:
        """
        Check the state echoed back by the provider against the session.

        The stored value is consumed on every checked request.

        Args:
            session: Session of the current user
            supplied_state: ``state`` query parameter of the callback
            enabled: Whether the provider has state checking switched on

        Returns:
            True on exact match, or whenever checking is disabled
        """
        if not enabled:
            return True

        stored_state = session.read(self.session_key)
        session.delete(self.session_key)

        if not supplied_state or not stored_state:
            self.logger.warning(
                f"Missing state parameter - received: {bool(supplied_state)}, stored: {bool(stored_state)}"
            )
            return False

        if supplied_state != stored_state:
            self.logger.warning(
                f"State mismatch - received: {str(supplied_state)[:10]}..., expected: {str(stored_state)[:10]}..."
            )
            return False

        return True
