"""
# Configuration loader for the Namespaces Generator Plugin.

This module is responsible for loading, validating, and providing access to all
configuration parameters required by the plugin server. It follows a strict,
fail-fast approach:

1.  It reads settings from command-line flags, falling back to environment
    variables prefixed with `ARGOCD_APPLICATIONSET_NAMESPACES_PLUGIN_`, then
    to built-in defaults.
2.  It validates the listen address, the listener TLS pair, the log format
    and the service-account token path entries.
3.  If validation fails, it raises a `ConfigLoadError` with a clear error
    message, causing the process to exit on startup.
4.  It exposes the configuration via a `ServerConfig` instance that provides
    read-only properties, so request handlers cannot modify it at runtime.

The instance is handed to the application factory explicitly; request code
never reads process-wide state.

Classes:
    ServerConfig: Immutable view of the resolved configuration.

Functions:
    build_arg_parser: The argparse parser for the server flags.
    initialize_config: Loads and validates a ServerConfig from flags and env.
"""

import argparse
import os
from types import MappingProxyType

from . import __version__
from .errors import ConfigLoadError

__all__ = [
    'ConfigLoadError',
    'ServerConfig',
    'build_arg_parser',
    'initialize_config',
    'parse_token_paths'
]

ENV_PREFIX = "ARGOCD_APPLICATIONSET_NAMESPACES_PLUGIN_"
WILDCARD_CLUSTER = "*"

DEFAULT_LISTEN_ADDRESS = ":8080"
DEFAULT_SERVICE_ACCOUNT_TLS_CA = \
    "/var/run/secrets/kubernetes.io/serviceaccount/ca.crt"
DEFAULT_SERVICE_ACCOUNT_TOKEN_PATH = \
    "/var/run/secrets/kubernetes.io/serviceaccount/token"

_LOG_FORMATS = ("json", "text")
_TRUE_VALUES = ("1", "true", "yes", "on")


class ServerConfig:
    """
    Holds immutable configuration data for the plugin server.
    Exposes settings via read-only properties.
    """

    def __init__(self,
                 listen_address=DEFAULT_LISTEN_ADDRESS,
                 listen_token="",
                 listen_tls_ca="",
                 listen_tls_crt="",
                 listen_tls_key="",
                 local=False,
                 service_account_tls_ca=DEFAULT_SERVICE_ACCOUNT_TLS_CA,
                 service_account_token_paths=None,
                 log_format="json",
                 verbosity=0):
        if service_account_token_paths is None:
            service_account_token_paths = {
                WILDCARD_CLUSTER: DEFAULT_SERVICE_ACCOUNT_TOKEN_PATH
            }
        self._listen_address = listen_address
        self._listen_token = listen_token or ""
        self._listen_tls_ca = listen_tls_ca or ""
        self._listen_tls_crt = listen_tls_crt or ""
        self._listen_tls_key = listen_tls_key or ""
        self._local = bool(local)
        self._service_account_tls_ca = service_account_tls_ca or ""
        self._service_account_token_paths = MappingProxyType(
            dict(service_account_token_paths)
        )
        self._log_format = log_format
        self._verbosity = int(verbosity)

    #############################################
    # Read-only properties of the configuration #
    #############################################
    @property
    def listen_address(self):
        """Address the listener binds to, in host:port form."""
        return self._listen_address

    @property
    def listen_token(self):
        """Bearer token callers must present. Empty means open access."""
        return self._listen_token

    @property
    def listen_tls_ca(self):
        """CA file used to verify client certificates (mutual TLS)."""
        return self._listen_tls_ca

    @property
    def listen_tls_crt(self):
        return self._listen_tls_crt

    @property
    def listen_tls_key(self):
        return self._listen_tls_key

    @property
    def tls_enabled(self):
        return bool(self._listen_tls_crt or self._listen_tls_key)

    @property
    def local(self):
        """Use the local kubeconfig instead of request parameters."""
        return self._local

    @property
    def service_account_tls_ca(self):
        """Default cluster CA, either a file path or inline base64."""
        return self._service_account_tls_ca

    @property
    def service_account_token_paths(self):
        """Read-only mapping of cluster name to token file path."""
        return self._service_account_token_paths

    @property
    def log_format(self):
        return self._log_format

    @property
    def verbosity(self):
        return self._verbosity

    def listen_host_port(self):
        """
        Splits the listen address into a (host, port) tuple.

        Raises:
            ConfigLoadError: If the port is missing or not a number.
        """
        host, sep, port = self._listen_address.rpartition(":")
        if not sep:
            raise ConfigLoadError(
                f"Invalid listen address '{self._listen_address}'"
            )
        try:
            port = int(port)
        except ValueError as e:
            raise ConfigLoadError(
                f"Invalid port in listen address '{self._listen_address}'"
            ) from e
        host = host.strip("[]") or "0.0.0.0"
        return host, port


def parse_token_paths(entries):
    """
    Turns `name=path` entries into a mapping of cluster name to token path.

    Each entry may hold several comma-separated pairs. The value is split on
    the first `=` only, so token paths may contain `=`.

    Raises:
        ConfigLoadError: If a pair has no `=` separator.
    """
    token_paths = {}
    pairs = []
    for entry in entries:
        pairs.extend(entry.split(","))
    for pair in pairs:
        parts = pair.strip().split("=", 1)
        if len(parts) != 2:
            raise ConfigLoadError(
                "Invalid service-account-token-path format"
            )
        token_paths[parts[0]] = parts[1]
    return token_paths


def build_arg_parser():
    """Builds the command-line parser. Unset flags default to None."""

    parser = argparse.ArgumentParser(
        prog="argocd-applicationset-namespaces-plugin",
        description="Argo CD ApplicationSet generator plugin that lists "
                    "namespaces of a target cluster."
    )
    parser.add_argument("--version", action="version",
                        version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbosity", type=int,
                        help="Set verbosity level")
    parser.add_argument("--log-format",
                        help="Set log output (json, text)")
    parser.add_argument("--listen-address",
                        help="Local address to listen on")
    parser.add_argument("--listen-token",
                        help="Bearer token to authenticate requests "
                             "(if needed)")
    parser.add_argument("--listen-tls-ca",
                        help="TLS CA for server (if needed)")
    parser.add_argument("--listen-tls-crt",
                        help="TLS cert for the server (if needed)")
    parser.add_argument("--listen-tls-key",
                        help="TLS key for the server (if needed)")
    parser.add_argument("--local", action="store_true", default=None,
                        help="Enable to use local kubectl context "
                             "(for debugging)")
    parser.add_argument("--service-account-tls-ca",
                        help="Path or base64 to ca.crt for cluster endpoint "
                             "(if needed, ignored in --local mode)")
    parser.add_argument("--service-account-token-paths", action="append",
                        help="Paths to a token file as name=path "
                             "(ignored in --local mode)")
    return parser


############################
# Configuration validation #
############################
def _pick(value, environ, name, default):
    """Flag value first, then the prefixed environment variable."""

    if value is not None:
        return value
    env_value = environ.get(ENV_PREFIX + name)
    if env_value is not None:
        return env_value
    return default


def initialize_config(argv=None, environ=None):
    """
    Creates and validates a ServerConfig from flags and environment.
    This function should be called once at application startup.

    Args:
        argv (list): Command-line arguments, defaults to sys.argv[1:].
        environ (dict): Environment mapping, defaults to os.environ.

    Raises:
        ConfigLoadError: If any setting is missing or malformed.
    """
    if environ is None:
        environ = os.environ
    args = build_arg_parser().parse_args(argv)

    local = args.local
    if local is None:
        local = environ.get(ENV_PREFIX + "LOCAL", "false").lower() \
            in _TRUE_VALUES

    token_path_entries = args.service_account_token_paths
    if token_path_entries is None:
        env_entries = environ.get(ENV_PREFIX + "SERVICE_ACCOUNT_TOKEN_PATHS")
        if env_entries:
            token_path_entries = [env_entries]
        else:
            token_path_entries = [
                f"{WILDCARD_CLUSTER}={DEFAULT_SERVICE_ACCOUNT_TOKEN_PATH}"
            ]

    log_format = _pick(args.log_format, environ, "LOG_FORMAT", "json")
    if log_format not in _LOG_FORMATS:
        raise ConfigLoadError(f"Unknown log format: {log_format}")

    try:
        verbosity = int(_pick(args.verbosity, environ, "VERBOSITY", 0))
    except (ValueError, TypeError) as e:
        raise ConfigLoadError('Malformed verbosity level.') from e

    listen_tls_crt = _pick(args.listen_tls_crt, environ, "LISTEN_TLS_CRT", "")
    listen_tls_key = _pick(args.listen_tls_key, environ, "LISTEN_TLS_KEY", "")
    if bool(listen_tls_crt) != bool(listen_tls_key):
        raise ConfigLoadError(
            "Both listen-tls-crt and listen-tls-key are required for TLS"
        )

    server_config = ServerConfig(
        listen_address=_pick(args.listen_address, environ,
                             "LISTEN_ADDRESS", DEFAULT_LISTEN_ADDRESS),
        listen_token=_pick(args.listen_token, environ, "LISTEN_TOKEN", ""),
        listen_tls_ca=_pick(args.listen_tls_ca, environ, "LISTEN_TLS_CA", ""),
        listen_tls_crt=listen_tls_crt,
        listen_tls_key=listen_tls_key,
        local=local,
        service_account_tls_ca=_pick(args.service_account_tls_ca, environ,
                                     "SERVICE_ACCOUNT_TLS_CA",
                                     DEFAULT_SERVICE_ACCOUNT_TLS_CA),
        service_account_token_paths=parse_token_paths(token_path_entries),
        log_format=log_format,
        verbosity=verbosity
    )

    # Fail fast on a listen address that cannot be bound
    server_config.listen_host_port()
    return server_config
