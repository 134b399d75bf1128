"""
Exception hierarchy for the OAuth2 authenticate package.

Configuration problems raise at setup time. Flow-control negatives (unknown
provider, state mismatch, failed exchange) are not exceptions at all; they
surface as ``False``/``None`` return values from the authentication flow.
"""

from typing import Any


class OAuth2AuthenticateError(Exception):
    """Base class for all package errors."""
    pass


class ConfigurationError(OAuth2AuthenticateError):
    """Raised when the settings file or environment is invalid or missing."""
    pass


class MissingProviderConfigurationError(ConfigurationError):
    """Raised when the configuration has no ``providers`` section."""

    def __init__(self, message: str = "Missing `providers` configuration"):
        super().__init__(message)


class InvalidProviderError(ConfigurationError):
    """Raised when ``className`` does not resolve to a provider kind."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Invalid provider or missing class ({value!r})")


class InvalidSettingsError(ConfigurationError):
    """Raised when ``options`` or ``collaborators`` is not a mapping."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Invalid settings for key ({key})")


class MissingEventListenerError(OAuth2AuthenticateError):
    """Raised when an event that must produce a result has no listener."""

    def __init__(self, event_name: str):
        self.event_name = event_name
        super().__init__(f"Missing listener to the `{event_name}` event")
