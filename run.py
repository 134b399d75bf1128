#!/usr/bin/env python3
"""
Startup script for the OAuth2 authentication service.

This script creates the Flask application with configuration validation
and runs the development server.
"""

import sys

from oauth2_authenticate.app import create_app
from oauth2_authenticate.exceptions import ConfigurationError


def main():
    """Main entry point for the application."""
    try:
        app = create_app()

        host = app.config.get('HOST', '127.0.0.1')
        port = app.config.get('PORT', 5000)
        debug = app.config.get('DEBUG', False)

        print(f"Starting OAuth2 authentication service on http://{host}:{port}")
        print(f"Debug mode: {'ON' if debug else 'OFF'}")

        app.run(host=host, port=port, debug=debug, use_reloader=debug)

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        print("\nQuick Fix:")
        print("1. Copy .env.example to .env and providers.json.example to providers.json")
        print("2. Fill in your OAuth credentials")
        print("3. Run the application again")
        sys.exit(1)

    except KeyboardInterrupt:
        print("\nShutting down OAuth2 authentication service...")
        sys.exit(0)


if __name__ == '__main__':
    main()
