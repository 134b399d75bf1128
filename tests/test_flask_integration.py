"""
Integration tests for the Flask routes and the application factory.
"""

import json
import os
import tempfile
import time
import unittest
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

from flask import Flask

from oauth2_authenticate.api_responses import APIResponse, ErrorCodes, create_flask_response, log_api_request
from oauth2_authenticate.app import create_app
from oauth2_authenticate.audit_logger import AuditLogger
from oauth2_authenticate.config import Config
from oauth2_authenticate.events import AFTER_IDENTIFY, EventManager
from oauth2_authenticate.flask_integration import OAuth2Authenticate
from oauth2_authenticate.providers import ProviderRegistry, register_provider_class, unregister_provider_class

from oauth_fakes import provider_options, MockProvider


class TestOAuth2Routes(unittest.TestCase):
    """Test cases for the login and provider list routes."""

    def setUp(self):
        register_provider_class('mock', MockProvider)
        registry = ProviderRegistry.from_config({
            'options': {'state': True},
            'providers': {
                'github': {'className': 'mock', 'options': provider_options()},
                'service': {
                    'className': 'mock',
                    'options': provider_options(grant='client_credentials', state=False)
                }
            }
        })

        self.app = Flask(__name__)
        self.app.config['SECRET_KEY'] = 'test-secret-key'
        self.app.config['TESTING'] = True
        self.events = EventManager()
        self.audit = AuditLogger()
        self.extension = OAuth2Authenticate(self.app, registry=registry, events=self.events, audit=self.audit)
        self.client = self.app.test_client()

    def tearDown(self):
        unregister_provider_class('mock')

    def test_extension_registered(self):
        self.assertIs(self.app.extensions['oauth2_authenticate'], self.extension)

    def test_login_redirects_to_provider(self):
        response = self.client.get('/oauth/github')

        self.assertEqual(response.status_code, 302)
        location = urlparse(response.headers['Location'])
        query = parse_qs(location.query)
        self.assertEqual(location.netloc, 'github.example.com')
        self.assertNotIn('clientSecret', query)

        with self.client.session_transaction() as sess:
            self.assertEqual(query['state'], [sess['oauth2state']])

    def test_full_authorization_code_flow(self):
        listener = MagicMock(return_value=None)
        self.events.on(AFTER_IDENTIFY, listener)

        redirect_response = self.client.get('/oauth/github')
        state = parse_qs(urlparse(redirect_response.headers['Location']).query)['state'][0]

        response = self.client.get(f'/oauth/github?code=abc&state={state}')

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertTrue(body['success'])
        self.assertEqual(body['data']['access_token'], 'mock_access_token_abc')
        listener.assert_called_once()
        with self.client.session_transaction() as sess:
            self.assertNotIn('oauth2state', sess)

    def test_state_mismatch_is_unauthorized(self):
        with self.client.session_transaction() as sess:
            sess['oauth2state'] = 'expected'

        response = self.client.get('/oauth/github?code=abc&state=forged')

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()['error']['code'], 'OAUTH_STATE_MISMATCH')

    def test_rejected_grant_is_unauthorized(self):
        with self.client.session_transaction() as sess:
            sess['oauth2state'] = 'S'

        response = self.client.get('/oauth/github?code=invalid_code&state=S')

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()['error']['code'], 'OAUTH_INVALID_GRANT')

    def test_network_failure_is_reported(self):
        with self.client.session_transaction() as sess:
            sess['oauth2state'] = 'S'

        response = self.client.get('/oauth/github?code=network_error&state=S')

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()['error']['code'], 'NETWORK_ERROR')

    def test_client_credentials_posted_as_form(self):
        response = self.client.post('/oauth/service', data={'username': 'alice', 'password': 'pw'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['data']['access_token'], 'mock_access_token_alice')

    def test_client_credentials_posted_as_json(self):
        response = self.client.post('/oauth/service', json={'username': 'alice', 'password': 'pw'})

        self.assertEqual(response.status_code, 200)

    def test_unknown_provider(self):
        response = self.client.get('/oauth/unknown')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['error']['code'], 'PROVIDER_NOT_FOUND')

    def test_non_string_provider_in_body(self):
        for alias in [['github'], {'a': 1}]:
            with self.subTest(alias=alias):
                response = self.client.post('/oauth/github', json={'provider': alias, 'username': 'u'})

                self.assertEqual(response.status_code, 404)
                self.assertEqual(response.get_json()['error']['code'], 'PROVIDER_NOT_FOUND')

    def test_provider_list(self):
        response = self.client.get('/api/providers')

        self.assertEqual(response.status_code, 200)
        data = response.get_json()['data']
        self.assertEqual(data['count'], 2)
        self.assertEqual({entry['name'] for entry in data['providers']}, {'github', 'service'})
        self.assertEqual(response.headers['X-API-Version'], '1.0')


class TestAPIResponse(unittest.TestCase):
    """Test cases for the JSON envelopes."""

    def test_success_body(self):
        body = APIResponse.success(data={'access_token': 'abc'}, message='Authenticated')

        self.assertTrue(body['success'])
        self.assertEqual(body['version'], '1.0')
        self.assertEqual(body['data'], {'access_token': 'abc'})
        self.assertEqual(body['message'], 'Authenticated')
        self.assertTrue(body['timestamp'].endswith('Z'))

    def test_error_body(self):
        body = APIResponse.error(ErrorCodes.OAUTH_STATE_MISMATCH, 'Security validation failed', status_code=401)

        self.assertFalse(body['success'])
        self.assertNotIn('data', body)
        self.assertEqual(
            body['error'],
            {'code': 'OAUTH_STATE_MISMATCH', 'message': 'Security validation failed', 'status_code': 401}
        )

    def test_flask_response_and_request_log(self):
        app = Flask(__name__)

        with app.test_request_context('/oauth/github'):
            response = create_flask_response(APIResponse.error(ErrorCodes.PROVIDER_NOT_FOUND, 'Unknown', 404), 404)
            with self.assertLogs('oauth2_authenticate.api_responses', level='INFO') as logs:
                log_api_request(404, time.time())

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.headers['X-API-Version'], '1.0')
        self.assertEqual(response.get_json()['error']['code'], 'PROVIDER_NOT_FOUND')
        self.assertIn('GET /oauth/github -> 404', logs.output[0])


class TestCreateApp(unittest.TestCase):
    """Test cases for the application factory."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.temp_dir.name, 'providers.json')
        with open(self.path, 'w') as f:
            json.dump({
                'settings': {'options': {'state': True}},
                'providers': {
                    'github': {
                        'className': 'generic',
                        'options': {
                            'clientId': 'env:TEST_GITHUB_CLIENT_ID',
                            'clientSecret': 'env:TEST_GITHUB_CLIENT_SECRET',
                            'redirectUri': 'http://localhost:5000/oauth/github',
                            'urlAuthorize': 'https://github.com/login/oauth/authorize',
                            'urlAccessToken': 'https://github.com/login/oauth/access_token',
                            'scopes': ['read:user']
                        }
                    }
                }
            }, f)

        env = {
            'FLASK_SECRET_KEY': 'test-secret-key',
            'TEST_GITHUB_CLIENT_ID': 'github-id',
            'TEST_GITHUB_CLIENT_SECRET': 'github-secret'
        }
        with patch.dict(os.environ, env):
            self.config = Config(self.path)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_create_app_from_config(self):
        app = create_app(self.config, audit=AuditLogger())

        self.assertEqual(app.config['SECRET_KEY'], 'test-secret-key')
        self.assertIn('github', app.config['OAUTH2']['providers'])
        self.assertIn('oauth2_authenticate', app.extensions)

    def test_generic_provider_redirect(self):
        client = create_app(self.config, audit=AuditLogger()).test_client()

        response = client.get('/oauth/github')

        self.assertEqual(response.status_code, 302)
        location = urlparse(response.headers['Location'])
        query = parse_qs(location.query)
        self.assertEqual(location.netloc, 'github.com')
        self.assertEqual(query['client_id'], ['github-id'])
        self.assertEqual(query['redirect_uri'], ['http://localhost:5000/oauth/github'])
        self.assertNotIn('github-secret', response.headers['Location'])

    def test_unknown_route_returns_json_404(self):
        client = create_app(self.config, audit=AuditLogger()).test_client()

        response = client.get('/nothing/here')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['error']['code'], 'NOT_FOUND')


if __name__ == '__main__':
    unittest.main()
