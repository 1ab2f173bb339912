"""
# Defines the API routes for the Namespaces Generator Plugin.

This module uses a Flask Blueprint (`api_blueprint`) to expose the Argo CD
ApplicationSet generator plugin endpoint. It is responsible for:
- Enforcing the method, media type and bearer token of the plugin protocol.
- Validating the request envelope against the JSON schema.
- Calling the credential resolver and the cluster client to list namespaces.
- Formatting the namespace names into the plugin response envelope.

Failures are raised as exceptions and turned into plain-text responses by
the handlers registered in `errors.py`. A request either gets the complete
namespace list or an error status, never a partial response.
"""

import hmac
import uuid
from functools import wraps
from flask import Blueprint, request, jsonify, current_app, abort
from jsonschema import validate, ValidationError

from .clients import cluster_client, list_namespaces
from .helpers import build_label_selector
from .resolver import resolve

# Set context for logging
_SYSTEM_CONTEXT = {"context": "SYSTEM-API"}
_CLIENT_CONTEXT = {"context": "CLIENT-API"}

PLUGIN_MEDIA_TYPE = "application/json"

# Define the public API of this module. Only the blueprint should be exposed.
__all__ = ['api_blueprint']
api_blueprint = Blueprint('api', __name__)


def _plugin_config():
    return current_app.config['PLUGIN_CONFIG']


def _request_context():
    """Log context identifying the current request."""

    return {
        "remote_address": request.remote_addr,
        "request_method": request.method,
        "request_url": request.url,
        **_CLIENT_CONTEXT
    }


def _build_plugin_response(namespaces):
    """Wraps each namespace name into the plugin output envelope."""

    return {
        "output": {
            "parameters": [{"namespace": name} for name in namespaces]
        }
    }


def _json_content_required(func):
    """Decorator that rejects requests not sent as the plugin media type."""

    @wraps(func)
    def decorated(*args, **kwargs):
        content_type = request.headers.get('Content-Type')
        if content_type != PLUGIN_MEDIA_TYPE:
            current_app.logger.debug(
                'Unsupported media type',
                extra={"media_type": content_type, **_request_context()}
            )
            abort(415)
        return func(*args, **kwargs)
    return decorated


def _token_required(func):
    """Decorator function to wrap API functions to enforce token validation."""

    @wraps(func)
    def decorated(*args, **kwargs):
        """Wrapper function that performs the token check."""

        token = _plugin_config().listen_token
        if token:
            header = request.headers.get('Authorization', '')
            expected = f"Bearer {token}"
            if not hmac.compare_digest(header.encode(), expected.encode()):
                current_app.logger.debug(
                    'Request unauthorized: bearer token check failed.',
                    extra=_request_context()
                )
                abort(401)
        return func(*args, **kwargs)
    return decorated


######################
# Health Check #
######################
@api_blueprint.route('/health', methods=['GET'])
def health_check():
    """Health Check:
    Used by Kubernetes for liveness checks."""

    current_app.logger.debug(
        'Health check confirmed.',
        extra=_SYSTEM_CONTEXT
    )
    return jsonify({"status": "ok"}), 200


#################################
# Generator Plugin POST Method  #
#################################
@api_blueprint.route('/api/v1/getparams.execute', methods=['POST'],
                     provide_automatic_options=False)
@_json_content_required
@_token_required
def get_params_execute():
    """API POST Method:
    Returns the namespaces of the requested cluster as plugin parameters."""

    # Request identity for correlating the log lines of this request
    request_id = str(uuid.uuid4())
    client_context = {"request_id": request_id, **_request_context()}
    current_app.logger.debug('Received request', extra=client_context)

    # Load and parse the payload
    data = request.get_json(silent=True)
    if data is None:
        current_app.logger.debug(
            'Unable to read input json',
            extra=client_context
        )
        abort(400)

    try:
        validate(
            instance=data,
            schema=current_app.config['JSON_REQ_SCHEMA']
        )
    except ValidationError:
        current_app.logger.debug(
            'JSON schema validation failed.',
            extra=client_context
        )
        raise

    parameters = data["input"]["parameters"]
    param_context = {
        "cluster_name": parameters.get("clusterName"),
        "cluster_endpoint": parameters.get("clusterEndpoint"),
        "has_cluster_ca": bool(parameters.get("clusterCA")),
        **client_context
    }
    current_app.logger.debug('Received input', extra=param_context)

    descriptor = resolve(_plugin_config(), parameters)

    label_selector = build_label_selector(parameters.get("labelSelector"))
    if label_selector:
        current_app.logger.debug(
            'Using label selector',
            extra={"label_selector": label_selector, **param_context}
        )

    with cluster_client(descriptor) as core_v1:
        namespaces = list_namespaces(core_v1, label_selector)

    current_app.logger.debug(
        'Returning response',
        extra={"namespace_count": len(namespaces), **param_context}
    )
    return jsonify(_build_plugin_response(namespaces)), 200
