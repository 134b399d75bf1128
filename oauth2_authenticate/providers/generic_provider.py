"""
Generic OAuth 2.0 provider implementation.

This module implements a provider that works with any standards-compliant
authorization server given its endpoint URLs. The HTTP work is delegated to
Authlib's requests-based ``OAuth2Session``.
"""

from typing import Dict, Any, Optional, Mapping

from authlib.integrations.requests_client import OAuth2Session

from .base_provider import BaseProvider, OAuthFlowError, ProviderConfigurationError


DEFAULT_TIMEOUT = 30

DEFAULT_TOKEN_HEADERS = {
    'Accept': 'application/json',
    'Content-Type': 'application/x-www-form-urlencoded;charset=UTF-8',
}


class GenericProvider(BaseProvider):
    """
    Endpoint-driven OAuth 2.0 provider.

    Options:
        urlAuthorize: Authorization endpoint
        urlAccessToken: Token endpoint
        scopes: List of scopes or a pre-joined string
        scopeSeparator: Separator used when ``scopes`` is a list (default ``' '``)
        tokenEndpointAuthMethod: Authlib client auth method (default ``client_secret_basic``)

    Collaborators:
        http_client: Pre-built ``OAuth2Session`` (or compatible object) to use
        timeout: Token request timeout in seconds
    """

    RESERVED_OPTIONS = BaseProvider.RESERVED_OPTIONS | frozenset([
        'urlAuthorize', 'urlAccessToken', 'urlResourceOwnerDetails',
        'scopes', 'scopeSeparator', 'tokenEndpointAuthMethod',
    ])

    def __init__(self, options: Optional[Mapping[str, Any]] = None,
                 collaborators: Optional[Mapping[str, Any]] = None):
        super().__init__(options, collaborators)

        self.url_authorize = self.options.get('urlAuthorize')
        self.url_access_token = self.options.get('urlAccessToken')
        self.url_resource_owner_details = self.options.get('urlResourceOwnerDetails')
        self.scope = self._format_scopes(self.options.get('scopes'))
        self.timeout = self.collaborators.get('timeout', DEFAULT_TIMEOUT)

        self.client = self.collaborators.get('http_client') or OAuth2Session(
            client_id=self.client_id,
            client_secret=self.client_secret,
            scope=self.scope,
            redirect_uri=self.redirect_uri,
            token_endpoint_auth_method=self.options.get('tokenEndpointAuthMethod', 'client_secret_basic'),
        )

    def _validate_config(self) -> None:
        super()._validate_config()

        for field in ['urlAuthorize', 'urlAccessToken']:
            url = self.options.get(field)
            if not url:
                raise ProviderConfigurationError(f"Missing required configuration for {self.name} provider: {field}")
            if not self._is_valid_url(url):
                raise ProviderConfigurationError(f"Invalid {field} for {self.name} provider: {url}")

        scopes = self.options.get('scopes')
        if scopes is not None and not isinstance(scopes, (list, tuple, str)):
            raise ProviderConfigurationError(f"scopes must be a list or string for {self.name} provider")

    def _format_scopes(self, scopes: Any) -> Optional[str]:
        if not scopes:
            return None
        if isinstance(scopes, str):
            return scopes
        return self.options.get('scopeSeparator', ' ').join(scopes)

    def get_authorization_url(self, extra_params: Optional[Mapping[str, Any]] = None) -> str:
        """
        Generate the authorization URL.

        The current state (minting one if needed) is always included, so the
        value stored in the session matches the one the provider echoes back.

        Args:
            extra_params: Additional query parameters

        Returns:
            Authorization URL

        Raises:
            OAuthFlowError: If URL generation fails
        """
        params = self.authorization_params(extra_params)
        state = self.state or self.get_state()

        try:
            auth_url, _ = self.client.create_authorization_url(self.url_authorize, state=state, **params)
        except (TypeError, ValueError) as e:
            self.logger.error(f"Failed to generate {self.name} authorization URL: {e}", exc_info=True)
            raise OAuthFlowError(f"Failed to generate authorization URL: {e}")

        self.logger.debug(f"Generated {self.name} authorization URL with parameters: {sorted(params)}")
        return auth_url

    def get_access_token(self, grant_type: str, params: Mapping[str, Any],
                         headers: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        """
        Exchange a grant for tokens at the token endpoint.

        Network and OAuth errors propagate; the caller decides how to report them.

        Args:
            grant_type: OAuth2 grant type
            params: Grant parameters
            headers: Extra HTTP headers

        Returns:
            Authlib ``OAuth2Token`` (a ``dict`` subclass)
        """
        request_headers = dict(DEFAULT_TOKEN_HEADERS)
        request_headers.update(headers or {})

        self.logger.debug(f"Requesting {grant_type} token from {self.name}")

        return self.client.fetch_token(
            self.url_access_token,
            grant_type=grant_type,
            headers=request_headers,
            timeout=self.timeout,
            **dict(params)
        )

    def get_provider_info(self) -> Dict[str, Any]:
        info = super().get_provider_info()
        info['authorization_endpoint'] = self.url_authorize
        info['token_endpoint'] = self.url_access_token
        info['scopes'] = self.scope.split() if self.scope else []
        return info
