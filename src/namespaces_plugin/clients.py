"""
# Builds the per-request Kubernetes client for the Namespaces Plugin.

Every request gets its own `ApiClient`; nothing is pooled or cached across
requests. Inline CA material is written to a temporary PEM file because the
Kubernetes client only accepts a CA file path, and the file is removed when
the request is done.

TLS verification is always enabled. Retries in the underlying urllib3 pool
are disabled, so a downstream failure surfaces immediately. Any failure to
build the client or to call the API is raised as a
`DownstreamConnectionError`.
"""

import logging
import os
import tempfile
from contextlib import contextmanager

from kubernetes import client, config

from .errors import DownstreamConnectionError
from .helpers import get_error_log_extra
from .resolver import InlineCA

_LOG_CONTEXT = {"context": "CLUSTER-CLIENT"}

__all__ = ['cluster_client', 'list_namespaces']

log = logging.getLogger(__name__)


def _write_temp_ca(data, temp_files):
    with tempfile.NamedTemporaryFile(mode="wb", suffix=".pem",
                                     delete=False) as f:
        f.write(data)
        temp_files.append(f.name)
    return f.name


def _remove_files(paths):
    for path in paths:
        try:
            os.unlink(path)
        except OSError as e:
            log.warning(
                "Failed to remove temporary CA file.",
                extra=get_error_log_extra(e, _LOG_CONTEXT)
            )


def _read_token(token_path):
    with open(token_path) as f:
        return f.read().strip()


def _local_configuration(descriptor):
    configuration = client.Configuration()
    config.load_kube_config(
        config_file=descriptor.kubeconfig_path,
        client_configuration=configuration
    )
    return configuration


def _remote_configuration(descriptor, temp_files):
    configuration = client.Configuration()
    configuration.host = descriptor.endpoint
    configuration.verify_ssl = True
    configuration.tls_server_name = descriptor.tls_server_name

    trust_anchor = descriptor.trust_anchor
    if isinstance(trust_anchor, InlineCA):
        # An empty inline CA still becomes a file: empty trust pool
        configuration.ssl_ca_cert = _write_temp_ca(trust_anchor.data,
                                                   temp_files)
    else:
        configuration.ssl_ca_cert = trust_anchor.path

    token = _read_token(descriptor.token_path)
    configuration.api_key = {"authorization": f"Bearer {token}"}
    return configuration


@contextmanager
def cluster_client(descriptor):
    """
    Yields a `CoreV1Api` bound to the resolved cluster connection.

    Args:
        descriptor (ConnectionDescriptor): The resolved connection.

    Raises:
        DownstreamConnectionError: If the client cannot be constructed.
    """
    temp_files = []
    try:
        if descriptor.is_local:
            configuration = _local_configuration(descriptor)
        else:
            configuration = _remote_configuration(descriptor, temp_files)
        configuration.retries = False
        api_client = client.ApiClient(configuration)
    except Exception as e:
        _remove_files(temp_files)
        raise DownstreamConnectionError(
            "Failed to build cluster client"
        ) from e

    log.debug("Cluster client created.", extra=_LOG_CONTEXT)
    try:
        yield client.CoreV1Api(api_client)
    finally:
        api_client.close()
        _remove_files(temp_files)


def list_namespaces(core_v1, label_selector=""):
    """
    Lists namespace names, optionally filtered by a label selector.

    Args:
        core_v1 (CoreV1Api): Client for the target cluster.
        label_selector (str): Selector like "a=1,b=2"; empty for all.

    Returns:
        list: Namespace names in the order returned by the API server.

    Raises:
        DownstreamConnectionError: If the API call fails.
    """
    kwargs = {}
    if label_selector:
        kwargs["label_selector"] = label_selector
    try:
        namespaces = core_v1.list_namespace(**kwargs)
    except Exception as e:
        raise DownstreamConnectionError("Failed to list namespaces") from e
    return [ns.metadata.name for ns in namespaces.items]
