'''
# Application factory for the Namespaces Generator Plugin.

This module contains the application factory function, `create_app`, which is
the central entry point for assembling the Flask application. Using a factory
pattern allows each test to build an app around its own configuration.

The `create_app` function is responsible for:
1.  Creating the core Flask application instance.
2.  Storing the injected `ServerConfig` where request handlers can read it.
3.  Loading the JSON schema used to validate plugin requests.
4.  Initializing the security headers extension.
5.  Registering the API blueprint and the global error handlers.

Functions:
    create_app: Creates and returns a configured Flask application instance.
'''

import json
import os

from flask import Flask

__version__ = "0.1.0"

_SCHEMA_PATH = os.path.join(os.path.dirname(__file__), 'schema.json')


def create_app(server_config):
    """Create and configure instance of the Flask application."""

    app = Flask(__name__)
    app.config['PLUGIN_CONFIG'] = server_config

    # Initialize schema validation config
    with open(_SCHEMA_PATH) as f:
        app.config['JSON_REQ_SCHEMA'] = json.load(f)

    # Initialize security extensions
    from .extensions import talisman
    talisman.init_app(app, force_https=False)

    # Register blueprints
    from . import routes
    app.register_blueprint(routes.api_blueprint)

    # Global error handler for the routes
    from .errors import register_error_handlers
    register_error_handlers(app)

    return app
