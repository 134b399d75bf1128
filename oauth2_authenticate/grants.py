"""
Grant building and token exchange.

The exchanger turns the inbound request into a GrantRequest for the
configured grant type, performs exactly one token request and decodes the
token into a plain dict. Failures never raise out of ``exchange``; they come
back as an ExchangeResult that says why no token was obtained.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional
import logging

from authlib.common.errors import AuthlibBaseError
from requests.exceptions import RequestException, Timeout

from .interfaces import RequestView
from .providers.base_provider import BaseProvider, OAuthFlowError


TOKEN_REQUEST_HEADERS = {'Accept': 'application/json'}


class GrantType(Enum):
    """Supported OAuth2 grant types."""
    AUTHORIZATION_CODE = "authorization_code"
    CLIENT_CREDENTIALS = "client_credentials"

    @classmethod
    def from_option(cls, value: Optional[str]) -> 'GrantType':
        """Map ``options.grant`` to a grant type; anything unknown is authorization_code."""
        if value == cls.CLIENT_CREDENTIALS.value:
            return cls.CLIENT_CREDENTIALS
        return cls.AUTHORIZATION_CODE


class ExchangeFailure(Enum):
    """Why a token exchange produced no token."""
    NO_TOKEN = "no_token"
    REJECTED = "rejected"
    TRANSPORT = "transport"


@dataclass(frozen=True)
class GrantRequest:
    """Parameters of one token exchange attempt."""
    grant_type: GrantType
    parameters: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType(dict(TOKEN_REQUEST_HEADERS)))


@dataclass(frozen=True)
class ExchangeResult:
    """Outcome of a token exchange."""
    token: Optional[Dict[str, Any]] = None
    failure: Optional[ExchangeFailure] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.failure is None and bool(self.token)

    def __bool__(self) -> bool:
        return self.ok


def build_grant_request(request: RequestView, grant: Optional[str] = None) -> GrantRequest:
    """
    Collect grant parameters from the request.

    ``client_credentials`` reads ``username``/``password`` from the body when
    a body ``username`` is present (JSON-format submission), otherwise from
    the routing parameters. Every other grant reads the ``code`` query
    parameter.

    Args:
        request: Inbound request
        grant: Configured ``options.grant`` value

    Returns:
        Immutable GrantRequest
    """
    grant_type = GrantType.from_option(grant)

    if grant_type is GrantType.CLIENT_CREDENTIALS:
        if request.data('username'):
            parameters = {
                'username': request.data('username'),
                'password': request.data('password'),
                'format': 'json',
            }
        else:
            parameters = {
                'username': request.param('username'),
                'password': request.param('password'),
            }
    else:
        parameters = {'code': request.query('code')}

    return GrantRequest(
        grant_type=grant_type,
        parameters=MappingProxyType(parameters),
        headers=MappingProxyType(dict(TOKEN_REQUEST_HEADERS)),
    )


def token_to_dict(token: Any) -> Dict[str, Any]:
    """
    Decode a provider token object into a plain, JSON-compatible dict.

    Returns an empty dict for tokens that carry nothing.
    """
    if token is None:
        return {}
    if hasattr(token, 'to_dict') and callable(token.to_dict):
        token = token.to_dict()
    elif not isinstance(token, Mapping) and hasattr(token, '__dict__'):
        token = vars(token)
    if not isinstance(token, Mapping):
        return {}
    return json.loads(json.dumps(dict(token), default=str))


class GrantExchanger:
    """Performs the token exchange against one provider."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def exchange(self, provider: BaseProvider, request: RequestView,
                 grant: Optional[str] = None) -> ExchangeResult:
        """
        Build the grant request and run the exchange.

        Args:
            provider: Resolved provider client
            request: Inbound request
            grant: Configured ``options.grant`` value

        Returns:
            ExchangeResult with the decoded token or the failure reason
        """
        return self.exchange_grant(provider, build_grant_request(request, grant))

    def exchange_grant(self, provider: BaseProvider, grant_request: GrantRequest) -> ExchangeResult:
        grant_type = grant_request.grant_type.value
        name = getattr(provider, 'name', provider.__class__.__name__)

        try:
            token = provider.get_access_token(
                grant_type, dict(grant_request.parameters), headers=dict(grant_request.headers)
            )
            token_data = token_to_dict(token)
        except (AuthlibBaseError, OAuthFlowError) as e:
            self.logger.error(f"{name} rejected {grant_type} grant: {e}", exc_info=True)
            return ExchangeResult(failure=ExchangeFailure.REJECTED, error=e)
        except Timeout as e:
            self.logger.error(f"Token request to {name} timed out: {e}", exc_info=True)
            return ExchangeResult(failure=ExchangeFailure.TRANSPORT, error=e)
        except RequestException as e:
            self.logger.error(f"Network error during {name} token exchange: {e}", exc_info=True)
            return ExchangeResult(failure=ExchangeFailure.TRANSPORT, error=e)
        except Exception as e:
            self.logger.error(f"Unexpected error during {name} token exchange: {e}", exc_info=True)
            return ExchangeResult(failure=ExchangeFailure.TRANSPORT, error=e)

        if not token_data:
            self.logger.warning(f"{name} returned an empty token for {grant_type} grant")
            return ExchangeResult(failure=ExchangeFailure.NO_TOKEN)

        self.logger.info(f"Exchanged {grant_type} grant with {name}")
        return ExchangeResult(token=token_data)
