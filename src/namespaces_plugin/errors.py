"""
#  Define custom exceptions and registers application error handlers.

This module centralizes error handling for the plugin server. It contains:
1.  Definitions for custom, application-specific exceptions.
2.  A registration function for unified HTTP error handling.

The plugin protocol answers every failure with a short plain-text reason and
a status code. Internal details are logged, never returned to the caller.
"""
from flask import current_app, request
from werkzeug.exceptions import HTTPException
from jsonschema import ValidationError

from .helpers import get_error_log_extra

# Plain-text reasons returned to the caller, keyed by status code
_REASONS = {
    400: "Bad request",
    401: "Unauthorized",
    405: "Method not allowed",
    415: "Unsupported media type",
    500: "Internal server error",
}


# Fatal error for the configuration loader
class ConfigLoadError(Exception):
    """Custom exception for all fatal errors during configuration load."""
    pass


# Custom error classes for credential resolution
class ResolutionError(Exception):
    """Base class for errors raised while resolving a cluster connection."""
    pass


class InvalidRequestError(ResolutionError):
    """Raised for client-caused problems: bad endpoint, bad CA encoding."""
    pass


class ConfigurationError(ResolutionError):
    """Raised when the server configuration cannot serve the request."""
    pass


class DownstreamConnectionError(ResolutionError):
    """Raised when the cluster client cannot be built or the call fails."""
    pass


def plain_response(status_code, reason=None):
    """Builds the plain-text failure response of the plugin protocol."""

    if reason is None:
        reason = _REASONS.get(status_code, "Error")
    return reason, status_code, {"Content-Type": "text/plain; charset=utf-8"}


# HTTP error handler for Flask App
def _handle_http_exception(e):
    """A generic handler for all Werkzeug HTTPException instances."""

    current_app.logger.debug(
        'Client HTTP exception caught',
        extra={
            "error_code": e.code,
            "error_name": e.name,
            "request_path": request.path,
            "request_method": request.method,
            "request_url": request.url,
            "remote_address": request.remote_addr,
            "context": "CLIENT-API"
        }
    )
    return plain_response(e.code, _REASONS.get(e.code, e.name))


# JSON Schema validation error handler
def _handle_json_schema_error(e):
    """Handler for request bodies that do not match the plugin envelope."""

    current_app.logger.debug(
        'Request body rejected by schema validation.',
        extra={
            "error_type": "JSONSchemaError",
            "error_message": str(e.message),
            "request_path": request.path,
            "request_method": request.method,
            "request_url": request.url,
            "remote_address": request.remote_addr,
            "context": "CLIENT-API"
        }
    )
    return plain_response(400)


def _handle_invalid_request(e):
    """Handler for resolution errors the caller can fix."""

    current_app.logger.debug(
        'Invalid cluster parameters in request.',
        extra=get_error_log_extra(e, {
            "request_path": request.path,
            "request_method": request.method,
            "request_url": request.url,
            "remote_address": request.remote_addr,
            "context": "CLIENT-API"
        })
    )
    return plain_response(400)


def _handle_server_resolution_error(e):
    """Handler for configuration and downstream cluster errors."""

    current_app.logger.error(
        'Failed to serve namespaces from cluster.',
        exc_info=True,
        extra=get_error_log_extra(e, {
            "request_path": request.path,
            "request_method": request.method,
            "request_url": request.url,
            "remote_address": request.remote_addr,
            "context": "SERVER-API"
        })
    )
    return plain_response(500)


# All unhandled exceptions within the app
def _handle_all_exceptions(e):
    """Handler for all unhandled exceptions."""

    current_app.logger.error(
        'Unhandled system exception caught',
        exc_info=True,
        extra=get_error_log_extra(e, {
            "context": "SERVER-API",
            "request_method": request.method,
            "request_url": request.url
        })
    )
    return plain_response(500)


# Register all error handlers
def register_error_handlers(app):
    """Registers all necessary error handlers for the Flask app instance."""

    app.register_error_handler(ValidationError, _handle_json_schema_error)
    app.register_error_handler(HTTPException, _handle_http_exception)
    app.register_error_handler(InvalidRequestError, _handle_invalid_request)
    app.register_error_handler(ConfigurationError,
                               _handle_server_resolution_error)
    app.register_error_handler(DownstreamConnectionError,
                               _handle_server_resolution_error)
    app.register_error_handler(Exception, _handle_all_exceptions)
