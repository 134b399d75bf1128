"""
Configuration module for the OAuth2 authenticate package.

Two layers live here:

* ``normalize_config`` turns a raw settings tree into an immutable
  ``NormalizedConfig``, merging shared settings into every provider entry and
  rejecting malformed entries. It is a pure function over its inputs.
* ``Config`` loads the settings tree from a JSON file, resolving ``env:NAME``
  references against the environment (``.env`` files are read with
  python-dotenv), together with the Flask application settings.
"""

import os
import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Any, Optional, List, Mapping, Union

from dotenv import load_dotenv

from .exceptions import (
    ConfigurationError, InvalidProviderError, InvalidSettingsError,
    MissingProviderConfigurationError
)
from .providers.base_provider import BaseProvider
from .providers.registry import resolve_provider_class


DEFAULT_PROVIDER_SETTINGS = {
    'className': None,
    'options': {},
    'collaborators': {},
    'mapFields': {},
}

# Sub-maps merged key by key instead of replaced wholesale
ADDITIVE_KEYS = ('options', 'collaborators')

MAPPING_KEYS = ('options', 'collaborators', 'mapFields')

ENV_PREFIX = 'env:'


@dataclass(frozen=True)
class ProviderConfig:
    """Effective, validated configuration of one provider alias."""
    alias: str
    class_name: Any
    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    collaborators: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    map_fields: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    settings: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class NormalizedConfig:
    """Validated configuration tree: shared settings plus per-alias providers."""
    providers: Mapping[str, Union[ProviderConfig, BaseProvider]]
    settings: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def shared_options(self) -> Mapping[str, Any]:
        return MappingProxyType(dict(self.settings.get('options') or {}))


def merge_settings(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge two settings trees into a new dict.

    Nested mappings are merged; any other value in ``override`` replaces the
    one in ``base``. Neither input is modified.
    """
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_settings(merged[key], value)
        else:
            merged[key] = value
    return merged


def _validate_mapping(key: str, value: Any) -> None:
    if not isinstance(value, Mapping):
        raise InvalidSettingsError(key)


def _normalize_provider(alias: str, entry: Mapping[str, Any], shared: Mapping[str, Any]) -> ProviderConfig:
    recognized = set(DEFAULT_PROVIDER_SETTINGS) | set(shared)
    own = {key: value for key, value in entry.items() if key in recognized}

    for key in MAPPING_KEYS:
        if key in own:
            _validate_mapping(key, own[key])

    merged = dict(DEFAULT_PROVIDER_SETTINGS)
    merged.update(shared)
    merged.update(own)

    for key in ADDITIVE_KEYS:
        combined = dict(shared.get(key) or {})
        combined.update(own.get(key) or {})
        merged[key] = combined

    class_name = merged['className']
    if resolve_provider_class(class_name) is None:
        raise InvalidProviderError(class_name)

    extra = {key: value for key, value in merged.items() if key not in DEFAULT_PROVIDER_SETTINGS}

    return ProviderConfig(
        alias=alias,
        class_name=class_name,
        options=MappingProxyType(merged['options']),
        collaborators=MappingProxyType(merged['collaborators']),
        map_fields=MappingProxyType(dict(merged['mapFields'] or {})),
        settings=MappingProxyType(extra),
    )


def normalize_config(raw_config: Optional[Mapping[str, Any]],
                     defaults: Optional[Mapping[str, Any]] = None) -> NormalizedConfig:
    """
    Normalize and validate a provider configuration tree.

    Args:
        raw_config: Settings tree with a ``providers`` mapping and shared settings
        defaults: Application-wide settings merged under ``raw_config``

    Returns:
        Immutable NormalizedConfig

    Raises:
        MissingProviderConfigurationError: If ``providers`` is missing or empty
        InvalidProviderError: If a ``className`` does not resolve
        InvalidSettingsError: If ``options``/``collaborators`` is not a mapping
    """
    config = merge_settings(defaults or {}, raw_config or {})

    providers = config.get('providers')
    if not providers:
        raise MissingProviderConfigurationError()
    _validate_mapping('providers', providers)

    shared = {key: value for key, value in config.items() if key != 'providers'}
    for key in MAPPING_KEYS:
        if key in shared:
            _validate_mapping(key, shared[key])

    normalized = {}
    for alias, entry in providers.items():
        if not alias or not isinstance(alias, str):
            raise ConfigurationError(f"Provider alias must be a non-empty string, got {alias!r}")

        if isinstance(entry, BaseProvider):
            normalized[alias] = entry
            continue

        _validate_mapping(alias, entry)
        normalized[alias] = _normalize_provider(alias, entry, shared)

    return NormalizedConfig(providers=MappingProxyType(normalized), settings=MappingProxyType(shared))


class Config:
    """Settings loaded from a providers JSON file and the environment."""

    def __init__(self, providers_config_path: str = "providers.json"):
        """
        Load environment variables and the provider configuration file.

        Args:
            providers_config_path: Path to the providers configuration file

        Raises:
            ConfigurationError: If the file is missing, malformed or references unset variables
        """
        load_dotenv()

        self.providers_config_path = providers_config_path

        self._load_flask_config()
        self._load_provider_configurations()
        self._validate_required_env_vars()

    def _load_flask_config(self) -> None:
        """Load Flask application configuration settings."""
        self.FLASK_CONFIG = {
            'SECRET_KEY': os.getenv('FLASK_SECRET_KEY'),
            'DEBUG': os.getenv('FLASK_DEBUG', 'False').lower() == 'true',
            'HOST': os.getenv('FLASK_HOST', '127.0.0.1'),
            'PORT': int(os.getenv('FLASK_PORT', '5000')),
            'SESSION_COOKIE_SECURE': os.getenv('SESSION_COOKIE_SECURE', 'False').lower() == 'true',
            'SESSION_COOKIE_HTTPONLY': True,
            'SESSION_COOKIE_SAMESITE': 'Lax'
        }

    def _load_provider_configurations(self) -> None:
        """Load provider configurations from JSON file with environment variable resolution."""
        try:
            with open(self.providers_config_path, 'r') as f:
                config_data = json.load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Provider configuration file not found: {self.providers_config_path}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in provider configuration file: {e}")

        if not isinstance(config_data, dict):
            raise ConfigurationError("Provider configuration file must contain a JSON object")

        self.PROVIDER_CONFIGS = config_data.get('providers') or {}
        self.PROVIDER_SETTINGS = config_data.get('settings') or {}

        self.OAUTH_CONFIG = {}
        for provider_name, provider_config in self.PROVIDER_CONFIGS.items():
            if not isinstance(provider_config, dict):
                # left for normalize_config to reject
                self.OAUTH_CONFIG[provider_name] = provider_config
                continue
            enabled = provider_config.get('enabled', True)
            self.OAUTH_CONFIG[provider_name] = self._resolve_env_refs(provider_config, provider_name, enabled)

        self.SHARED_SETTINGS = self._resolve_env_refs(self.PROVIDER_SETTINGS, 'settings', True)

    def _resolve_env_refs(self, value: Any, provider_name: str, required: bool) -> Any:
        """
        Replace ``env:NAME`` strings with the value of environment variable NAME.

        Args:
            value: Configuration value (walked recursively)
            provider_name: Provider the value belongs to, for error messages
            required: Whether an unset variable is an error

        Returns:
            Value with every environment reference resolved
        """
        if isinstance(value, dict):
            return {key: self._resolve_env_refs(item, provider_name, required) for key, item in value.items()}
        if isinstance(value, list):
            return [self._resolve_env_refs(item, provider_name, required) for item in value]
        if isinstance(value, str) and value.startswith(ENV_PREFIX):
            env_var_name = value[len(ENV_PREFIX):]
            env_value = os.getenv(env_var_name)
            if env_value is None and required:
                raise ConfigurationError(f"Environment variable {env_var_name} not found for provider {provider_name}")
            return env_value
        return value

    def _validate_required_env_vars(self) -> None:
        """Validate that the Flask secret key is set."""
        if not self.FLASK_CONFIG['SECRET_KEY']:
            raise ConfigurationError(
                "Missing required environment variables: FLASK_SECRET_KEY\n"
                "Please ensure these variables are set in your .env file or environment."
            )

    def get_flask_config(self) -> Dict[str, Any]:
        """
        Get Flask application configuration.

        Returns:
            Flask configuration dictionary
        """
        return self.FLASK_CONFIG.copy()

    def get_enabled_providers(self) -> List[str]:
        """
        Get list of enabled provider names.

        Returns:
            List of enabled provider names
        """
        return [
            provider_name for provider_name, config in self.PROVIDER_CONFIGS.items()
            if not isinstance(config, dict) or config.get('enabled', True)
        ]

    def get_auth_config(self) -> Dict[str, Any]:
        """
        Get the settings tree for ``normalize_config``.

        Shared settings sit at the top level next to the enabled providers.

        Returns:
            Raw authentication settings tree
        """
        tree = dict(self.SHARED_SETTINGS)
        tree['providers'] = {
            name: self.OAUTH_CONFIG[name] for name in self.get_enabled_providers()
        }
        return tree
