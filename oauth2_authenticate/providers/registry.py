"""
Provider registry for resolving configured aliases to provider clients.

Provider kinds are registered under a tag (``generic`` is built in) and
instantiated from the validated configuration on demand. The registry keeps
no provider instances of its own: every ``resolve`` builds a fresh client,
and the authentication flow holds it for the duration of one request.
"""

from types import MappingProxyType
from typing import Dict, Any, Optional, Mapping, Type, Union, TYPE_CHECKING
import logging

from .base_provider import BaseProvider, ProviderConfigurationError
from .generic_provider import GenericProvider
from ..exceptions import ConfigurationError

if TYPE_CHECKING:
    from ..config import NormalizedConfig, ProviderConfig


logger = logging.getLogger(__name__)


class ProviderManagerError(ConfigurationError):
    """Raised when a provider kind cannot be registered or instantiated."""
    pass


_provider_classes: Dict[str, Type[BaseProvider]] = {
    'generic': GenericProvider,
}


def register_provider_class(name: str, provider_class: Type[BaseProvider]) -> None:
    """
    Register a provider class under a kind tag.

    Args:
        name: Provider kind tag used as ``className`` in configuration
        provider_class: Class inheriting from BaseProvider

    Raises:
        ProviderManagerError: If provider class is invalid
    """
    if not isinstance(provider_class, type) or not issubclass(provider_class, BaseProvider):
        raise ProviderManagerError(f"Provider class {provider_class!r} must inherit from BaseProvider")

    _provider_classes[name] = provider_class
    logger.info(f"Registered provider class: {name} -> {provider_class.__name__}")


def unregister_provider_class(name: str) -> bool:
    """Remove a provider kind. Returns False if it was not registered."""
    return _provider_classes.pop(name, None) is not None


def get_provider_classes() -> Mapping[str, Type[BaseProvider]]:
    return MappingProxyType(_provider_classes)


def resolve_provider_class(value: Any) -> Optional[Type[BaseProvider]]:
    """
    Resolve a ``className`` value to a provider class.

    Accepts a registered kind tag or a BaseProvider subclass.

    Returns:
        Provider class, or None if the value does not resolve
    """
    if isinstance(value, type) and issubclass(value, BaseProvider):
        return value
    if isinstance(value, str):
        return _provider_classes.get(value)
    return None


class ProviderRegistry:
    """
    Resolves provider aliases against a validated configuration.

    The configuration is immutable, so one registry can serve concurrently
    handled requests.
    """

    def __init__(self, config: 'NormalizedConfig'):
        self.config = config
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, raw_config: Mapping[str, Any],
                    defaults: Optional[Mapping[str, Any]] = None) -> 'ProviderRegistry':
        """Normalize a raw configuration tree and build a registry over it."""
        from ..config import normalize_config

        return cls(normalize_config(raw_config, defaults))

    @property
    def aliases(self):
        return list(self.config.providers.keys())

    def config_for(self, alias: Optional[str]) -> Union['ProviderConfig', BaseProvider, None]:
        if not alias or not isinstance(alias, str):
            return None
        return self.config.providers.get(alias)

    def options_for(self, alias: Optional[str]) -> Mapping[str, Any]:
        """
        Effective options of an alias.

        Pre-built providers have no provider config; they get the shared options.
        """
        entry = self.config_for(alias)
        if entry is None:
            return MappingProxyType({})
        if isinstance(entry, BaseProvider):
            return self.config.shared_options
        return entry.options

    def resolve(self, alias: Optional[str]) -> Optional[BaseProvider]:
        """
        Resolve an alias to a provider client.

        Args:
            alias: Provider alias from the request

        Returns:
            Provider instance, or None when the alias is empty or unknown
        """
        entry = self.config_for(alias)
        if not entry:
            if alias:
                self.logger.debug(f"No provider configured for alias: {alias}")
            return None

        if isinstance(entry, BaseProvider):
            return entry

        provider_class = resolve_provider_class(entry.class_name)
        if provider_class is None:
            # normalize_config already checked this; a kind unregistered afterwards lands here
            raise ProviderManagerError(f"Provider kind no longer registered: {entry.class_name!r}")

        options = dict(entry.options)
        options.setdefault('name', alias)

        try:
            provider = provider_class(options, dict(entry.collaborators))
        except ProviderConfigurationError as e:
            self.logger.error(f"Provider configuration error for {alias}: {e}")
            raise ProviderManagerError(f"Failed to instantiate provider {alias}: {e}")

        self.logger.debug(f"Resolved provider: {alias} ({provider.__class__.__name__})")
        return provider

    def get_provider_info(self):
        """Describe every configured provider without contacting it."""
        info = []
        for alias, entry in self.config.providers.items():
            if isinstance(entry, BaseProvider):
                info.append(entry.get_provider_info())
                continue
            info.append({
                'name': alias,
                'display_name': entry.options.get('displayName', alias.title()),
                'type': 'oauth2',
                'grant': entry.options.get('grant', 'authorization_code'),
                'state_check': bool(entry.options.get('state')),
            })
        return info
