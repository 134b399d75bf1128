"""
Base provider interface for OAuth 2.0 providers.

This module defines the abstract base class that every provider client must
implement. A provider is built from two mappings: ``options`` (client
credentials, endpoints, flow switches) and ``collaborators`` (HTTP session,
timeout). The authentication flow only talks to providers through the three
abstract methods below.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, Mapping
import logging
import secrets
from urllib.parse import urlparse


class ProviderConfigurationError(Exception):
    """Raised when provider configuration is invalid."""
    pass


class OAuthFlowError(Exception):
    """Raised when OAuth flow encounters an error."""
    pass


class BaseProvider(ABC):
    """
    Abstract base class for OAuth 2.0 provider clients.

    Subclasses receive the effective ``options`` and ``collaborators`` of one
    configured alias. The anti-CSRF state is owned by the provider instance:
    ``get_state()`` mints a fresh value and the next authorization URL
    carries it.
    """

    # Option keys consumed by the provider itself; never forwarded as
    # authorization query parameters.
    RESERVED_OPTIONS = frozenset([
        'clientId', 'clientSecret', 'redirectUri', 'grant', 'state',
        'name', 'displayName',
    ])

    def __init__(self, options: Optional[Mapping[str, Any]] = None,
                 collaborators: Optional[Mapping[str, Any]] = None):
        """
        Initialize the OAuth provider.

        Args:
            options: Provider options (``clientId``, ``clientSecret``, ``redirectUri``, ...)
            collaborators: External collaborators (``http_client``, ``timeout``)

        Raises:
            ProviderConfigurationError: If configuration is invalid
        """
        self.options = dict(options or {})
        self.collaborators = dict(collaborators or {})
        self.name = self.options.get('name', self.__class__.__name__.lower())
        self.logger = logging.getLogger(f"{__name__}.{self.name}")

        self._validate_config()

        self.client_id = self.options['clientId']
        self.client_secret = self.options['clientSecret']
        self.redirect_uri = self.options.get('redirectUri')
        self.display_name = self.options.get('displayName', self.name.title())
        self.state: Optional[str] = None

        self.logger.debug(f"Initialized {self.display_name} OAuth provider")

    def _validate_config(self) -> None:
        """
        Validate provider options.

        Raises:
            ProviderConfigurationError: If required options are missing or invalid
        """
        required_fields = ['clientId', 'clientSecret']
        missing_fields = [field for field in required_fields if not self.options.get(field)]

        if missing_fields:
            raise ProviderConfigurationError(
                f"Missing required configuration for {self.name} provider: {', '.join(missing_fields)}"
            )

        for field in required_fields:
            if not isinstance(self.options[field], str):
                raise ProviderConfigurationError(f"{field} must be a string for {self.name} provider")

        redirect_uri = self.options.get('redirectUri')
        if redirect_uri and not self._is_valid_url(redirect_uri):
            raise ProviderConfigurationError(f"Invalid redirectUri for {self.name} provider: {redirect_uri}")

    def _is_valid_url(self, url: str) -> bool:
        """
        Validate URL format.

        Args:
            url: URL to validate

        Returns:
            True if URL is valid, False otherwise
        """
        try:
            result = urlparse(url)
            return all([result.scheme, result.netloc])
        except (TypeError, ValueError, AttributeError):
            return False

    def get_state(self) -> str:
        """
        Mint a fresh anti-CSRF state value.

        The value is remembered and sent with the next authorization URL.

        Returns:
            Opaque, URL-safe state token
        """
        self.state = secrets.token_urlsafe(32)
        return self.state

    def authorization_params(self, extra_params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """
        Filter caller-supplied parameters down to the ones forwarded upstream.

        Args:
            extra_params: Extra query parameters for the authorization URL

        Returns:
            Parameters without reserved option keys or empty values
        """
        return {
            key: value for key, value in (extra_params or {}).items()
            if key not in self.RESERVED_OPTIONS and value not in (None, '')
        }

    @abstractmethod
    def get_authorization_url(self, extra_params: Optional[Mapping[str, Any]] = None) -> str:
        """
        Generate OAuth authorization URL.

        Args:
            extra_params: Additional query parameters

        Returns:
            Authorization URL for redirecting the user to the consent screen

        Raises:
            OAuthFlowError: If URL generation fails
        """
        pass

    @abstractmethod
    def get_access_token(self, grant_type: str, params: Mapping[str, Any],
                         headers: Optional[Mapping[str, str]] = None) -> Any:
        """
        Request an access token from the token endpoint.

        Args:
            grant_type: OAuth2 grant type
            params: Grant parameters (``code`` or ``username``/``password``)
            headers: Extra HTTP headers for the token request

        Returns:
            Token object (a mapping or an object exposing ``to_dict``)
        """
        pass

    def get_provider_info(self) -> Dict[str, Any]:
        """
        Get provider information for API responses.

        Returns:
            Provider information dictionary
        """
        return {
            'name': self.name,
            'display_name': self.display_name,
            'type': 'oauth2',
            'grant': self.options.get('grant', 'authorization_code'),
            'state_check': bool(self.options.get('state')),
        }

    def __str__(self) -> str:
        """String representation of the provider."""
        return f"{self.__class__.__name__}(name='{self.name}', display_name='{self.display_name}')"

    def __repr__(self) -> str:
        """Detailed string representation of the provider."""
        return (f"{self.__class__.__name__}(name='{self.name}', "
                f"display_name='{self.display_name}', redirect_uri='{self.redirect_uri}')")
