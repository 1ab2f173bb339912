"""
Shared pytest fixtures for the namespaces plugin tests.

This module provides common fixtures including:
- ServerConfig instances wired to temporary token files
- A Flask test client built through the application factory
- A patched Kubernetes CoreV1Api so no cluster is needed
"""

import base64
import json
from unittest.mock import patch

import pytest
from kubernetes.client import V1Namespace, V1NamespaceList, V1ObjectMeta

from namespaces_plugin import create_app
from namespaces_plugin.config import ServerConfig

PLUGIN_URL = "/api/v1/getparams.execute"
CALLER_TOKEN = "s3cr3t-caller-token"
SA_TOKEN = "sa-token-value"

FAKE_CA_PEM = (
    b"-----BEGIN CERTIFICATE-----\n"
    b"MIIBszCCAVmgAwIBAgIUZmFrZS1jYS1mb3ItdGVzdHM=\n"
    b"-----END CERTIFICATE-----\n"
)
FAKE_CA_B64 = base64.b64encode(FAKE_CA_PEM).decode()


def namespace_list(*names):
    """Builds the V1NamespaceList the API server would return."""
    return V1NamespaceList(
        items=[V1Namespace(metadata=V1ObjectMeta(name=n)) for n in names]
    )


def plugin_body(**parameters):
    """Request envelope with the given input.parameters."""
    return {
        "applicationSetName": "namespaces",
        "input": {"parameters": parameters},
    }


@pytest.fixture
def token_file(tmp_path):
    path = tmp_path / "token"
    path.write_text(SA_TOKEN + "\n")
    return path


@pytest.fixture
def server_config(token_file):
    return ServerConfig(
        listen_token=CALLER_TOKEN,
        service_account_tls_ca=FAKE_CA_B64,
        service_account_token_paths={"*": str(token_file)},
    )


@pytest.fixture
def app(server_config):
    app = create_app(server_config)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def core_v1():
    """Patched CoreV1Api; the instance returned to the handler."""
    with patch("namespaces_plugin.clients.client.CoreV1Api") as api_cls:
        api = api_cls.return_value
        api.list_namespace.return_value = namespace_list(
            "default", "kube-system"
        )
        yield api


@pytest.fixture
def post_params(client):
    """Posts a plugin request with the caller token and JSON media type."""

    def _post(body, token=CALLER_TOKEN, content_type="application/json"):
        headers = {}
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"
        data = body if isinstance(body, str) else json.dumps(body)
        return client.post(
            PLUGIN_URL,
            data=data,
            headers=headers,
            content_type=content_type,
        )

    return _post
