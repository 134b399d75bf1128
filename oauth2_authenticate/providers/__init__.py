"""
OAuth provider clients for the OAuth2 authenticate package.

Provider kinds are registered under a tag and instantiated per request by
the ProviderRegistry from validated configuration.
"""

from .base_provider import BaseProvider, ProviderConfigurationError, OAuthFlowError
from .generic_provider import GenericProvider
from .registry import (
    ProviderRegistry, ProviderManagerError, register_provider_class,
    unregister_provider_class, resolve_provider_class, get_provider_classes
)

__all__ = [
    'BaseProvider',
    'GenericProvider',
    'ProviderRegistry',
    'ProviderConfigurationError',
    'OAuthFlowError',
    'ProviderManagerError',
    'register_provider_class',
    'unregister_provider_class',
    'resolve_provider_class',
    'get_provider_classes'
]
