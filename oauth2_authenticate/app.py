"""
Flask application factory for the OAuth2 authentication service.
"""

from typing import Any, Optional, Tuple
import logging
import os
import sys

from flask import Flask, request

from .api_responses import APIResponse, ErrorCodes, create_flask_response
from .config import Config
from .exceptions import ConfigurationError
from .flask_integration import OAuth2Authenticate
from .providers.registry import ProviderRegistry


def configure_logging(debug: bool = False) -> None:
    """Set up root logging and quiet the HTTP libraries."""
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    logging.getLogger('authlib').setLevel(logging.DEBUG if debug else logging.WARNING)
    logging.getLogger('requests').setLevel(logging.DEBUG if debug else logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def register_error_handlers(app: Flask) -> None:
    """
    Register JSON error handlers.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(404)
    def not_found_error(error) -> Tuple[Any, int]:
        app.logger.warning(f"404 error: {request.url}")
        response_data = APIResponse.error(ErrorCodes.NOT_FOUND, 'The requested resource was not found', status_code=404)
        return create_flask_response(response_data, 404), 404

    @app.errorhandler(ConfigurationError)
    def configuration_error(error) -> Tuple[Any, int]:
        app.logger.error(f"Configuration error: {error} - URL: {request.url}", exc_info=True)
        response_data = APIResponse.error(ErrorCodes.OAUTH_ERROR, 'Authentication is misconfigured', status_code=500)
        return create_flask_response(response_data, 500), 500


def create_app(config: Optional[Config] = None, registry: Optional[ProviderRegistry] = None,
               **extension_options: Any) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config: Loaded settings; read from ``OAUTH2_PROVIDERS_FILE`` (default
            ``providers.json``) when omitted
        registry: Prebuilt provider registry, overriding the one derived from ``config``
        **extension_options: Passed to OAuth2Authenticate (``events``, ``user_finder``, ...)

    Returns:
        Flask application instance

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    if config is None:
        config = Config(os.getenv('OAUTH2_PROVIDERS_FILE', 'providers.json'))

    flask_config = config.get_flask_config()

    app = Flask(__name__)
    app.config.update(flask_config)
    app.config['OAUTH2'] = config.get_auth_config()

    configure_logging(flask_config.get('DEBUG', False))

    extension = OAuth2Authenticate(**extension_options)
    extension.init_app(app, registry=registry)

    register_error_handlers(app)

    app.logger.info("OAuth2 authentication service created")
    return app
