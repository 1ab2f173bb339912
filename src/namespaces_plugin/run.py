"""
# Application entry point for the Namespaces Generator Plugin.

This module is the main executable to start the plugin server. It handles
the initial setup and error handling before the server begins listening.

Application flow:
- Default logging, so configuration errors are reported in JSON.
- Load and validate configuration from flags and environment.
- Re-apply logging with the configured format and verbosity.
- Create the Flask application around the configuration.
- Build the listener TLS context when a certificate is configured.
- Serve requests on a threaded Werkzeug server.
"""

import logging
import ssl
import sys

from .errors import ConfigLoadError
from .logging_config import setup_logging

_STARTUP_CONTEXT = {
    "context": "SYSTEM-STARTUP"
}

log = logging.getLogger(__name__)


def build_ssl_context(server_config):
    """
    Creates the listener TLS context requiring client certificates.

    Client certificates are verified against the configured listener CA, or
    against the system default store when none is configured.

    Returns:
        ssl.SSLContext: The context, or None when TLS is not configured.

    Raises:
        ConfigLoadError: If the key pair or the CA cannot be loaded.
    """
    if not server_config.tls_enabled:
        return None

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.verify_mode = ssl.CERT_REQUIRED
    try:
        context.load_cert_chain(server_config.listen_tls_crt,
                                server_config.listen_tls_key)
    except (OSError, ssl.SSLError) as e:
        raise ConfigLoadError("Failed to load listener TLS key pair") from e

    try:
        if server_config.listen_tls_ca:
            context.load_verify_locations(cafile=server_config.listen_tls_ca)
        else:
            context.load_default_certs(ssl.Purpose.CLIENT_AUTH)
    except (OSError, ssl.SSLError) as e:
        raise ConfigLoadError("Failed to load listener TLS CA") from e
    return context


def main(argv=None):
    """Starts the plugin server. Returns the process exit status."""

    setup_logging()
    try:
        from .config import initialize_config

        log.debug(
            "Server configuration validation started.",
            extra=_STARTUP_CONTEXT
        )
        server_config = initialize_config(argv)
        setup_logging(server_config.log_format, server_config.verbosity)
        log.debug(
            "Server configuration validation successful.",
            extra={
                "local": server_config.local,
                "token_paths": dict(server_config.service_account_token_paths),
                **_STARTUP_CONTEXT
            }
        )

        from . import create_app
        app = create_app(server_config)
        host, port = server_config.listen_host_port()
        ssl_context = build_ssl_context(server_config)

    # Exceptions from config module
    except ConfigLoadError:
        log.critical("Server configuration validation failed.",
                     exc_info=True,
                     extra=_STARTUP_CONTEXT)
        return 1

    # All other exceptions
    except Exception:
        log.critical(
            "Exception during application startup. Traceback available.",
            exc_info=True,
            extra=_STARTUP_CONTEXT
        )
        return 1

    if ssl_context is not None:
        log.info("Server starting with TLS...",
                 extra={"listen_address": server_config.listen_address,
                        **_STARTUP_CONTEXT})
    else:
        log.info("Server starting...",
                 extra={"listen_address": server_config.listen_address,
                        **_STARTUP_CONTEXT})

    try:
        app.run(host=host, port=port, ssl_context=ssl_context,
                threaded=True, debug=False, use_reloader=False)
    except OSError:
        log.critical("Server Failure", exc_info=True,
                     extra=_STARTUP_CONTEXT)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
