"""
# Credential resolver for the Namespaces Generator Plugin.

This module decides how the plugin reaches a target cluster. Given the
server configuration and the parameters of one request it produces a
`ConnectionDescriptor`: either a local kubeconfig path (local mode), or the
cluster endpoint, the service-account token file and the trust anchor used
to verify the cluster certificate (remote mode).

Resolution never falls back to an unverified channel. A CA that cannot be
decoded fails the request, and a missing CA leaves the trust pool empty so
the TLS handshake is rejected downstream.

Functions in this module do no network I/O and are safe to call from any
request thread.
"""

import base64
import binascii
import logging
import os
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urlsplit

from .config import WILDCARD_CLUSTER
from .errors import ConfigurationError, InvalidRequestError

_LOG_CONTEXT = {"context": "CREDENTIAL-RESOLVER"}

__all__ = [
    'ConnectionDescriptor',
    'FileCA',
    'InlineCA',
    'decode_ca_value',
    'find_kubeconfig',
    'resolve',
    'resolve_token_path'
]

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class InlineCA:
    """PEM certificate bytes supplied inline (base64 on the wire)."""
    data: bytes

    def __repr__(self):
        # CA bytes stay out of logs and tracebacks
        return f"InlineCA(<{len(self.data)} bytes>)"


@dataclass(frozen=True)
class FileCA:
    """Path to a PEM certificate file on the local filesystem."""
    path: str


TrustAnchor = Union[InlineCA, FileCA]


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Everything needed to build a client for one request."""
    kubeconfig_path: Optional[str] = None
    endpoint: Optional[str] = None
    token_path: Optional[str] = None
    trust_anchor: Optional[TrustAnchor] = None
    tls_server_name: Optional[str] = None

    @property
    def is_local(self):
        return self.kubeconfig_path is not None


def _b64decode(value):
    # Line breaks of wrapped base64 (as produced by `base64`) are ignored
    value = value.replace("\r", "").replace("\n", "")
    return base64.b64decode(value, validate=True)


def decode_ca_value(value):
    """
    Interprets a configured CA value as inline base64 or as a file path.

    Strict base64 decoding is tried first. When the value is not valid
    base64 it is taken as a path to a certificate file.

    Args:
        value (str): The configured default CA.

    Returns:
        InlineCA | FileCA: The tagged trust anchor.
    """
    try:
        return InlineCA(_b64decode(value))
    except (binascii.Error, ValueError):
        return FileCA(value)


def decode_request_ca(value):
    """
    Decodes a CA supplied in the request body.

    Raises:
        InvalidRequestError: If the value is not valid base64. The server
            default is never used in place of a bad request CA.
    """
    try:
        return InlineCA(_b64decode(value))
    except (binascii.Error, ValueError) as e:
        raise InvalidRequestError(
            "Failed to decode cluster CA from the request"
        ) from e


def resolve_token_path(token_paths, cluster_name):
    """
    Looks up the service-account token file for a cluster.

    The exact cluster name wins, then the wildcard entry.

    Raises:
        ConfigurationError: If neither entry exists.
    """
    if cluster_name is not None and cluster_name in token_paths:
        log.debug(
            "Found token path for cluster",
            extra={**_LOG_CONTEXT, "cluster_name": cluster_name}
        )
        return token_paths[cluster_name]
    if WILDCARD_CLUSTER in token_paths:
        log.debug(
            "Using default token path",
            extra={**_LOG_CONTEXT, "cluster_name": cluster_name}
        )
        return token_paths[WILDCARD_CLUSTER]
    raise ConfigurationError(
        f"No service-account token path for cluster '{cluster_name}' "
        "and no default entry"
    )


def _home_dir():
    home = os.path.expanduser("~")
    if home == "~":
        return ""
    return home


def find_kubeconfig(environ=None):
    """
    Finds the kubeconfig used in local mode.

    `KUBECONFIG` takes precedence and may list several files separated by
    `os.pathsep`. Otherwise `~/.kube/config` is used.

    Raises:
        ConfigurationError: If no candidate file exists.
    """
    if environ is None:
        environ = os.environ

    kubeconfig = environ.get("KUBECONFIG", "")
    if kubeconfig:
        log.debug("Found KUBECONFIG environment variable",
                  extra=_LOG_CONTEXT)
        candidates = [p for p in kubeconfig.split(os.pathsep) if p]
    else:
        home = _home_dir()
        if not home:
            raise ConfigurationError(
                "Cannot find KUBECONFIG or default kubeconfig file"
            )
        log.debug("Falling back to user home", extra=_LOG_CONTEXT)
        kubeconfig = os.path.join(home, ".kube", "config")
        candidates = [kubeconfig]

    if not any(os.path.isfile(path) for path in candidates):
        raise ConfigurationError(
            "Cannot find KUBECONFIG or default kubeconfig file"
        )
    return kubeconfig


def _parse_endpoint(endpoint):
    """Returns the hostname of a cluster endpoint URL."""

    if not endpoint:
        raise InvalidRequestError("Cluster endpoint is required")
    try:
        parts = urlsplit(endpoint)
        hostname = parts.hostname
        # Accessing the port validates it
        parts.port
    except ValueError as e:
        raise InvalidRequestError("Failed to parse cluster endpoint") from e
    if not parts.scheme or not hostname:
        raise InvalidRequestError("Failed to parse cluster endpoint")
    return hostname


def resolve(server_config, parameters, environ=None):
    """
    Resolves the connection to the target cluster of one request.

    Args:
        server_config (ServerConfig): The process configuration.
        parameters (dict): The `input.parameters` object of the request.
        environ (dict): Environment used in local mode, for tests.

    Returns:
        ConnectionDescriptor: The resolved connection.

    Raises:
        InvalidRequestError: Bad endpoint or undecodable request CA.
        ConfigurationError: No token path or no usable kubeconfig.
    """
    if server_config.local:
        # Request endpoint and CA are ignored in local mode
        log.debug("Resolving connection in local mode", extra=_LOG_CONTEXT)
        return ConnectionDescriptor(kubeconfig_path=find_kubeconfig(environ))

    cluster_name = parameters.get("clusterName")
    endpoint = parameters.get("clusterEndpoint")
    log_extra = {
        **_LOG_CONTEXT,
        "cluster_name": cluster_name,
        "cluster_endpoint": endpoint
    }

    tls_server_name = _parse_endpoint(endpoint)
    token_path = resolve_token_path(
        server_config.service_account_token_paths,
        cluster_name
    )

    request_ca = parameters.get("clusterCA")
    if request_ca:
        log.debug("Using cluster CA from the request", extra=log_extra)
        trust_anchor = decode_request_ca(request_ca)
    else:
        log.debug("Using cluster CA from the config", extra=log_extra)
        trust_anchor = decode_ca_value(server_config.service_account_tls_ca)

    return ConnectionDescriptor(
        endpoint=endpoint,
        token_path=token_path,
        trust_anchor=trust_anchor,
        tls_server_name=tls_server_name
    )
