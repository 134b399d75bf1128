"""
Unit tests for the provider registry, the provider kind factory and the
generic Authlib-backed provider.
"""

import unittest
from unittest.mock import MagicMock, Mock, patch
from urllib.parse import parse_qs, urlparse

from authlib.common.errors import AuthlibBaseError

from oauth2_authenticate.config import normalize_config
from oauth2_authenticate.providers import (
    BaseProvider, GenericProvider, ProviderRegistry, ProviderManagerError,
    ProviderConfigurationError, register_provider_class, unregister_provider_class,
    resolve_provider_class, get_provider_classes
)

from oauth_fakes import MockProvider, provider_options


class TestProviderClassFactory(unittest.TestCase):
    """Test cases for provider kind registration."""

    def tearDown(self):
        unregister_provider_class('mock')

    def test_generic_is_builtin(self):
        self.assertIs(resolve_provider_class('generic'), GenericProvider)

    def test_register_provider_class_success(self):
        register_provider_class('mock', MockProvider)

        self.assertIs(resolve_provider_class('mock'), MockProvider)
        self.assertIn('mock', get_provider_classes())

    def test_register_provider_class_invalid_inheritance(self):
        class InvalidProvider:
            pass

        with self.assertRaises(ProviderManagerError):
            register_provider_class('invalid', InvalidProvider)

    def test_unregister_unknown_kind(self):
        self.assertFalse(unregister_provider_class('never_registered'))


class TestProviderRegistry(unittest.TestCase):
    """Test cases for resolving aliases."""

    def setUp(self):
        register_provider_class('mock', MockProvider)
        self.registry = ProviderRegistry.from_config({
            'options': {'state': True},
            'providers': {
                'github': {'className': 'mock', 'options': provider_options()},
                'broken': {'className': 'mock', 'options': {'clientId': 'only-id'}}
            }
        })

    def tearDown(self):
        unregister_provider_class('mock')

    def test_resolve_builds_provider_from_effective_config(self):
        provider = self.registry.resolve('github')

        self.assertIsInstance(provider, MockProvider)
        self.assertEqual(provider.client_id, 'test_client_id_123')
        self.assertTrue(provider.options['state'])
        self.assertEqual(provider.name, 'github')

    def test_resolve_returns_fresh_instances(self):
        self.assertIsNot(self.registry.resolve('github'), self.registry.resolve('github'))

    def test_resolve_unknown_or_empty_alias(self):
        for alias in ['unknown', '', None]:
            with self.subTest(alias=alias):
                self.assertIsNone(self.registry.resolve(alias))

    def test_resolve_prebuilt_provider(self):
        prebuilt = MockProvider(provider_options())
        registry = ProviderRegistry(normalize_config({'options': {'state': True}, 'providers': {'github': prebuilt}}))

        self.assertIs(registry.resolve('github'), prebuilt)
        self.assertEqual(dict(registry.options_for('github')), {'state': True})

    def test_resolve_invalid_provider_options_raises(self):
        with self.assertRaises(ProviderManagerError):
            self.registry.resolve('broken')

    def test_options_for_unknown_alias_is_empty(self):
        self.assertEqual(dict(self.registry.options_for('unknown')), {})

    def test_get_provider_info(self):
        info = {entry['name']: entry for entry in self.registry.get_provider_info()}

        self.assertEqual(set(info), {'github', 'broken'})
        self.assertTrue(info['github']['state_check'])
        self.assertEqual(info['github']['grant'], 'authorization_code')


class TestGenericProvider(unittest.TestCase):
    """Test cases for GenericProvider."""

    def setUp(self):
        self.options = {
            'name': 'github',
            'clientId': 'test_client_id_123',
            'clientSecret': 'test_client_secret_456',
            'redirectUri': 'https://app.example.com/oauth/github',
            'urlAuthorize': 'https://github.example.com/login/oauth/authorize',
            'urlAccessToken': 'https://github.example.com/login/oauth/access_token',
            'scopes': ['read:user', 'user:email'],
            'state': True,
            'grant': 'authorization_code'
        }

    def test_missing_endpoint_raises(self):
        del self.options['urlAccessToken']

        with self.assertRaises(ProviderConfigurationError):
            GenericProvider(self.options)

    def test_missing_client_secret_raises(self):
        del self.options['clientSecret']

        with self.assertRaises(ProviderConfigurationError):
            GenericProvider(self.options)

    def test_invalid_redirect_uri_raises(self):
        self.options['redirectUri'] = 'not-a-url'

        with self.assertRaises(ProviderConfigurationError):
            GenericProvider(self.options)

    def test_authorization_url_carries_state_and_extra_params(self):
        provider = GenericProvider(self.options)
        state = provider.get_state()

        url = provider.get_authorization_url({'prompt': 'consent', 'urlAccessToken': 'x', 'state': True})
        parsed = urlparse(url)
        query = parse_qs(parsed.query)

        self.assertEqual(f"{parsed.scheme}://{parsed.netloc}{parsed.path}", self.options['urlAuthorize'])
        self.assertEqual(query['state'], [state])
        self.assertEqual(query['client_id'], ['test_client_id_123'])
        self.assertEqual(query['response_type'], ['code'])
        self.assertEqual(query['prompt'], ['consent'])
        self.assertEqual(query['scope'], ['read:user user:email'])
        self.assertNotIn('urlAccessToken', query)

    def test_authorization_url_mints_state_when_missing(self):
        provider = GenericProvider(self.options)

        url = provider.get_authorization_url()

        self.assertIsNotNone(provider.state)
        self.assertEqual(parse_qs(urlparse(url).query)['state'], [provider.state])

    def test_get_access_token_uses_http_client_collaborator(self):
        http_client = MagicMock()
        http_client.fetch_token.return_value = {'access_token': 'abc'}
        provider = GenericProvider(self.options, {'http_client': http_client, 'timeout': 5})

        token = provider.get_access_token('authorization_code', {'code': 'xyz'}, headers={'Accept': 'application/json'})

        self.assertEqual(token, {'access_token': 'abc'})
        args, kwargs = http_client.fetch_token.call_args
        self.assertEqual(args[0], self.options['urlAccessToken'])
        self.assertEqual(kwargs['grant_type'], 'authorization_code')
        self.assertEqual(kwargs['code'], 'xyz')
        self.assertEqual(kwargs['timeout'], 5)
        self.assertEqual(kwargs['headers']['Accept'], 'application/json')

    def test_get_access_token_posts_to_token_endpoint(self):
        provider = GenericProvider(self.options)
        response = Mock(status_code=200)
        response.json.return_value = {'access_token': 'abc', 'token_type': 'Bearer'}

        with patch.object(provider.client, 'request', return_value=response) as mock_request:
            token = provider.get_access_token('authorization_code', {'code': 'xyz'})

        self.assertEqual(token['access_token'], 'abc')
        args, kwargs = mock_request.call_args
        self.assertEqual(args[0], 'POST')
        self.assertEqual(args[1], self.options['urlAccessToken'])
        self.assertEqual(kwargs['data']['code'], 'xyz')
        self.assertEqual(kwargs['data']['grant_type'], 'authorization_code')
        self.assertEqual(kwargs['timeout'], 30)
        self.assertEqual(kwargs['headers']['Accept'], 'application/json')

    def test_get_access_token_error_response_raises(self):
        provider = GenericProvider(self.options)
        response = Mock(status_code=400)
        response.json.return_value = {'error': 'invalid_grant', 'error_description': 'Bad code'}

        with patch.object(provider.client, 'request', return_value=response):
            with self.assertRaises(AuthlibBaseError):
                provider.get_access_token('authorization_code', {'code': 'xyz'})

    def test_provider_info(self):
        info = GenericProvider(self.options).get_provider_info()

        self.assertEqual(info['name'], 'github')
        self.assertEqual(info['token_endpoint'], self.options['urlAccessToken'])
        self.assertEqual(info['scopes'], ['read:user', 'user:email'])
        self.assertTrue(info['state_check'])

    def test_is_base_provider(self):
        self.assertIsInstance(GenericProvider(self.options), BaseProvider)


if __name__ == '__main__':
    unittest.main()
