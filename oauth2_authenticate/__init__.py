"""
OAuth2 authentication through third-party identity providers.

Resolve the provider named by a request, send the user to its authorization
URL, verify the anti-CSRF state on the way back and exchange the grant for a
token payload.
"""

from .authenticate import AuthenticationFlow
from .config import Config, NormalizedConfig, ProviderConfig, normalize_config, merge_settings
from .events import AFTER_IDENTIFY, NEW_USER, Event, EventManager
from .exceptions import (
    OAuth2AuthenticateError, ConfigurationError, MissingProviderConfigurationError,
    InvalidProviderError, InvalidSettingsError, MissingEventListenerError
)
from .grants import ExchangeFailure, ExchangeResult, GrantExchanger, GrantRequest, GrantType
from .interfaces import RequestView, ResponseBuilder, SessionStore
from .providers import BaseProvider, GenericProvider, ProviderRegistry, register_provider_class
from .state import SESSION_KEY, StateGuard

__version__ = "1.0.0"

__all__ = [
    'AuthenticationFlow',
    'Config',
    'NormalizedConfig',
    'ProviderConfig',
    'normalize_config',
    'merge_settings',
    'AFTER_IDENTIFY',
    'NEW_USER',
    'Event',
    'EventManager',
    'OAuth2AuthenticateError',
    'ConfigurationError',
    'MissingProviderConfigurationError',
    'InvalidProviderError',
    'InvalidSettingsError',
    'MissingEventListenerError',
    'ExchangeFailure',
    'ExchangeResult',
    'GrantExchanger',
    'GrantRequest',
    'GrantType',
    'RequestView',
    'ResponseBuilder',
    'SessionStore',
    'BaseProvider',
    'GenericProvider',
    'ProviderRegistry',
    'register_provider_class',
    'SESSION_KEY',
    'StateGuard',
]
