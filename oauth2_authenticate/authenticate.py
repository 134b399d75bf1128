"""
OAuth2 authentication flow.

One ``AuthenticationFlow`` serves one request. It resolves the provider named
by the request, and then either sends the user to the provider's
authorization URL (``unauthenticated``) or, on the return leg, verifies the
state and exchanges the grant for a token (``authenticate``).

Flow-control negatives (unknown provider, state mismatch, failed exchange)
are reported as ``None``/``False`` so the host can fall through to other
authentication methods. Only configuration and listener-contract problems
raise.
"""

from typing import Any, Callable, Dict, Mapping, Optional
import copy
import logging

from .audit_logger import AuditEventType, AuditLogger, get_audit_logger
from .config import ProviderConfig
from .events import AFTER_IDENTIFY, NEW_USER, EventManager
from .exceptions import MissingEventListenerError
from .grants import ExchangeResult, GrantExchanger, GrantType
from .interfaces import RequestView, ResponseBuilder
from .providers.base_provider import BaseProvider
from .providers.registry import ProviderRegistry
from .state import StateGuard


# Options the provider client supplies itself; never appended to the authorization URL
PRIVATE_OPTIONS = ('clientId', 'clientSecret', 'redirectUri')

DEFAULT_FIELDS = {'username': 'username', 'password': 'password'}

_MISSING = object()


def get_path(data: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Read a dotted path (``a.b.c``) from nested mappings."""
    current: Any = data
    for part in path.split('.'):
        if not isinstance(current, Mapping) or part not in current:
            return default
        current = current[part]
    return current


def remove_path(data: Dict[str, Any], path: str) -> None:
    """Delete a dotted path from nested dicts, in place. Missing paths are ignored."""
    parts = path.split('.')
    current: Any = data
    for part in parts[:-1]:
        if not isinstance(current, dict) or part not in current:
            return
        current = current[part]
    if isinstance(current, dict):
        current.pop(parts[-1], None)


class AuthenticationFlow:
    """
    Request-scoped OAuth2 authenticator.

    Args:
        registry: Resolves provider aliases
        events: Lifecycle event listeners
        audit: Audit trail (the global one by default)
        state_guard: Session state handling
        exchanger: Token exchange
        user_finder: Optional lookup of a local user by username; enables
            field mapping and the ``newUser`` event
        strict_listeners: Raise when ``newUser`` yields no user
    """

    def __init__(self, registry: ProviderRegistry, events: Optional[EventManager] = None,
                 audit: Optional[AuditLogger] = None, state_guard: Optional[StateGuard] = None,
                 exchanger: Optional[GrantExchanger] = None,
                 user_finder: Optional[Callable[[Any], Optional[Mapping[str, Any]]]] = None,
                 strict_listeners: bool = True):
        self.registry = registry
        self.events = events or EventManager()
        self.audit = audit or get_audit_logger()
        self.state_guard = state_guard or StateGuard()
        self.exchanger = exchanger or GrantExchanger()
        self.user_finder = user_finder
        self.strict_listeners = strict_listeners
        self.logger = logging.getLogger(__name__)

        self._alias: Optional[str] = None
        self._provider: Optional[BaseProvider] = None
        self.last_exchange: Optional[ExchangeResult] = None

    def _requested_alias(self, request: RequestView) -> Optional[str]:
        alias = request.data('provider') or request.param('provider') or request.query('provider')
        if not isinstance(alias, str) or not alias:
            return None
        return alias

    def provider(self, request: RequestView) -> Optional[BaseProvider]:
        """
        Return the provider requested by ``request``.

        The alias is read from the body, then the routing parameters, then the
        query string. The resolved instance is kept for the rest of this flow.

        Returns:
            Provider instance, or None if no configured provider matches
        """
        alias = self._requested_alias(request)
        if not alias:
            return None

        if self._provider is None or self._alias != alias:
            self._provider = self.registry.resolve(alias)
            self._alias = alias if self._provider is not None else None

        return self._provider

    @property
    def options(self) -> Mapping[str, Any]:
        """Effective options of the resolved provider."""
        return self.registry.options_for(self._alias)

    def _setting(self, key: str, default: Any = None) -> Any:
        entry = self.registry.config_for(self._alias)
        if isinstance(entry, ProviderConfig):
            if key == 'mapFields':
                return entry.map_fields
            value = entry.settings.get(key, _MISSING)
            if value is not _MISSING:
                return value
        return self.registry.config.settings.get(key, default)

    def has_grant_evidence(self, request: RequestView) -> bool:
        """Whether the request carries an authorization code or credentials."""
        return bool(request.query('code') or request.data('username') or request.param('username'))

    def authenticate(self, request: RequestView, response: Optional[ResponseBuilder] = None) -> Any:
        """
        Authenticate the request against its provider.

        Returns:
            Token payload (or the touched user), or False
        """
        return self.get_user(request)

    def get_user(self, request: RequestView) -> Any:
        """
        Validate the request, exchange the grant and notify listeners.

        Returns:
            Token payload (or the touched user), or False

        Raises:
            MissingEventListenerError: If user touch is enabled, strict, and no
                ``newUser`` listener produced a user
        """
        raw_data = self._authenticate(request)
        if not raw_data:
            return False

        result = raw_data
        if self.user_finder is not None:
            result = self._touch(self._map(raw_data))

        self.events.dispatch(AFTER_IDENTIFY, self._provider, result)
        return result

    def _authenticate(self, request: RequestView) -> Any:
        if not self._validate(request):
            return False

        provider = self.provider(request)
        grant = self.options.get('grant')
        grant_type = GrantType.from_option(grant).value

        result = self.exchanger.exchange(provider, request, grant)
        self.last_exchange = result

        if not result.ok:
            self.audit.log_event(
                event_type=AuditEventType.OAUTH_FAILED,
                provider=self._alias,
                grant_type=grant_type,
                success=False,
                details={
                    'failure': result.failure.value if result.failure else None,
                    'error_message': str(result.error) if result.error else None
                }
            )
            return False

        self.audit.log_event(
            event_type=AuditEventType.OAUTH_COMPLETED,
            provider=self._alias,
            grant_type=grant_type,
            success=True,
            details={'has_refresh_token': bool(result.token.get('refresh_token'))}
        )
        return result.token

    def _validate(self, request: RequestView) -> bool:
        if not self.provider(request):
            alias = self._requested_alias(request)
            if alias:
                self.audit.log_event(
                    event_type=AuditEventType.PROVIDER_NOT_FOUND,
                    provider=alias,
                    success=False
                )
            return False

        enabled = bool(self.options.get('state'))
        if not self.state_guard.verify(request.session, request.query('state'), enabled):
            self.logger.warning(f"OAuth state validation failed for {self._alias}")
            self.audit.log_event(
                event_type=AuditEventType.STATE_REJECTED,
                provider=self._alias,
                success=False
            )
            return False

        return True

    def _map(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Map raw provider data onto the local user schema.

        Each ``mapFields`` entry copies a dotted source path to a destination
        key and removes the source.
        """
        mapped = copy.deepcopy(dict(data))
        map_fields = self._setting('mapFields') or {}
        for dst, src in map_fields.items():
            value = get_path(mapped, src)
            if src != dst:
                remove_path(mapped, src)
            mapped[dst] = value
        return mapped

    def _touch(self, data: Dict[str, Any]) -> Any:
        """
        Find the local user for ``data`` or ask listeners to create one.

        Raises:
            MissingEventListenerError: If strict and ``newUser`` yields nothing
        """
        fields = dict(DEFAULT_FIELDS)
        fields.update(self._setting('fields') or {})

        found = self.user_finder(data.get(fields['username']))
        if found:
            merged = dict(data)
            merged.update(found)
            return merged

        event = self.events.dispatch(NEW_USER, self._provider, data)
        if not event.result:
            if self.strict_listeners:
                raise MissingEventListenerError(NEW_USER)
            self.logger.warning(f"No listener created a user for {self._alias}, using mapped data")
            return data

        self.audit.log_event(
            event_type=AuditEventType.USER_IDENTIFIED,
            provider=self._alias,
            success=True,
            details={'created': True}
        )
        return event.result

    def _query_params(self) -> Dict[str, Any]:
        """Provider options that may be sent as authorization query parameters."""
        return {key: value for key, value in self.options.items() if key not in PRIVATE_OPTIONS}

    def unauthenticated(self, request: RequestView, response: ResponseBuilder) -> Optional[ResponseBuilder]:
        """
        Send an unauthenticated user to the provider's authorization URL.

        Nothing happens when no provider matches or when the request is
        already a provider callback (it carries ``code``).

        Returns:
            ``response`` with its location set, or None
        """
        provider = self.provider(request)
        if not provider or request.query('code'):
            return None

        if self.options.get('state'):
            self.state_guard.issue(request.session, provider)

        response.location(provider.get_authorization_url(self._query_params()))

        self.audit.log_event(
            event_type=AuditEventType.OAUTH_INITIATED,
            provider=self._alias,
            grant_type=GrantType.from_option(self.options.get('grant')).value,
            success=True,
            details={'state_check': bool(self.options.get('state'))}
        )
        return response
