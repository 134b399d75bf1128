"""
Flask integration for the OAuth2 authentication flow.

Adapters map Flask's request, session and response objects onto the host
interfaces, and ``OAuth2Authenticate`` wires a login route that drives one
``AuthenticationFlow`` per request.
"""

from typing import Any, Callable, Dict, Mapping, Optional
import logging
import time

from flask import Flask, g, redirect, request, session

from .api_responses import APIResponse, ErrorCodes, create_flask_response, log_api_request
from .audit_logger import AuditLogger
from .authenticate import AuthenticationFlow
from .events import EventManager
from .grants import ExchangeFailure
from .interfaces import RequestView, ResponseBuilder, SessionStore
from .providers.base_provider import OAuthFlowError
from .providers.registry import ProviderRegistry


class FlaskSessionStore(SessionStore):
    """SessionStore over ``flask.session``."""

    def read(self, key: str) -> Any:
        return session.get(key)

    def write(self, key: str, value: Any) -> None:
        session[key] = value

    def delete(self, key: str) -> None:
        session.pop(key, None)


class FlaskRequestView(RequestView):
    """RequestView over the active ``flask.request``."""

    def __init__(self, session_store: Optional[SessionStore] = None):
        self._session = session_store or FlaskSessionStore()

    def query(self, name: str) -> Optional[Any]:
        return request.args.get(name)

    def data(self, name: str) -> Optional[Any]:
        if request.is_json:
            body = request.get_json(silent=True)
            if isinstance(body, dict):
                return body.get(name)
            return None
        return request.form.get(name)

    def param(self, name: str) -> Optional[Any]:
        return (request.view_args or {}).get(name)

    @property
    def session(self) -> SessionStore:
        return self._session


class FlaskResponseBuilder(ResponseBuilder):
    """Collects a redirect location and turns it into a Flask response."""

    def __init__(self, code: int = 302):
        self.code = code
        self.url: Optional[str] = None

    def location(self, url: str) -> None:
        self.url = url

    def to_response(self):
        return redirect(self.url, code=self.code)


class OAuth2Authenticate:
    """
    Flask extension exposing the OAuth2 login routes.

    Routes:
        ``/oauth/<provider>``: redirect leg and return leg of the flow
        ``/api/providers``: configured providers
    """

    def __init__(self, app: Optional[Flask] = None, registry: Optional[ProviderRegistry] = None,
                 events: Optional[EventManager] = None, audit: Optional[AuditLogger] = None,
                 user_finder: Optional[Callable[[Any], Optional[Mapping[str, Any]]]] = None,
                 strict_listeners: bool = True):
        self.registry = registry
        self.events = events or EventManager()
        self.audit = audit
        self.user_finder = user_finder
        self.strict_listeners = strict_listeners
        self.logger = logging.getLogger(__name__)

        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask, registry: Optional[ProviderRegistry] = None) -> None:
        """
        Register the extension and its routes on a Flask application.

        Without an explicit registry, one is built from ``app.config['OAUTH2']``.
        """
        if registry is not None:
            self.registry = registry
        if self.registry is None:
            self.registry = ProviderRegistry.from_config(app.config.get('OAUTH2') or {})

        app.extensions['oauth2_authenticate'] = self
        self.register_routes(app)

        self.logger.info(f"OAuth2 authentication initialized with providers: {', '.join(self.registry.aliases)}")

    def get_flow(self) -> AuthenticationFlow:
        """The flow of the current request, created on first use."""
        flow = g.get('oauth2_flow')
        if flow is None:
            flow = AuthenticationFlow(
                self.registry,
                events=self.events,
                audit=self.audit,
                user_finder=self.user_finder,
                strict_listeners=self.strict_listeners
            )
            g.oauth2_flow = flow
        return flow

    def register_routes(self, app: Flask) -> None:
        app.add_url_rule('/oauth/<provider>', 'oauth2_login', self._handle_login, methods=['GET', 'POST'])
        app.add_url_rule('/api/providers', 'oauth2_providers', self._handle_provider_list, methods=['GET'])

    def _handle_login(self, provider: str):
        start_time = time.time()
        flow = self.get_flow()
        request_view = FlaskRequestView()

        if flow.provider(request_view) is None:
            status_code, response_data = 404, APIResponse.error(
                ErrorCodes.PROVIDER_NOT_FOUND, f"Unknown provider: {provider}", status_code=404
            )
        elif flow.has_grant_evidence(request_view):
            result = flow.authenticate(request_view)
            if result:
                status_code, response_data = 200, APIResponse.success(
                    data=result, message=f"Authenticated with {provider}"
                )
            else:
                status_code, response_data = 401, self._failure_response(flow)
        else:
            response_builder = FlaskResponseBuilder()
            try:
                if flow.unauthenticated(request_view, response_builder):
                    log_api_request(302, start_time)
                    return response_builder.to_response()
            except OAuthFlowError as e:
                self.logger.error(f"OAuth flow error during {provider} authorization: {e}")
                status_code, response_data = 502, APIResponse.error(ErrorCodes.OAUTH_ERROR, str(e), status_code=502)
            else:
                status_code, response_data = 401, APIResponse.error(
                    ErrorCodes.UNAUTHENTICATED, 'Authentication required', status_code=401
                )

        log_api_request(status_code, start_time)
        return create_flask_response(response_data, status_code)

    def _failure_response(self, flow: AuthenticationFlow) -> Dict[str, Any]:
        exchange = flow.last_exchange
        if exchange is None:
            return APIResponse.error(
                ErrorCodes.OAUTH_STATE_MISMATCH, 'Security validation failed. Please try again.', status_code=401
            )
        if exchange.failure is ExchangeFailure.TRANSPORT:
            return APIResponse.error(
                ErrorCodes.NETWORK_ERROR, 'Could not reach the provider. Please try again.', status_code=401
            )
        if exchange.failure is ExchangeFailure.REJECTED:
            return APIResponse.error(
                ErrorCodes.OAUTH_INVALID_GRANT, 'The provider rejected the grant.', status_code=401
            )
        return APIResponse.error(ErrorCodes.OAUTH_ERROR, 'No token was obtained.', status_code=401)

    def _handle_provider_list(self):
        providers = self.registry.get_provider_info()
        response_data = APIResponse.success(
            data={'providers': providers, 'count': len(providers)},
            message=f"Retrieved {len(providers)} providers"
        )
        return create_flask_response(response_data, 200)
