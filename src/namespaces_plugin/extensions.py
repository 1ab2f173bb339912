"""
# Initializes the third-party extensions for the Namespaces Plugin.

The only extension is Flask-Talisman, which sets security HTTP headers on
every response. It is created once and bound to the application instance by
the factory. HTTPS redirection is left off because the listener terminates
TLS itself when it is configured, and the orchestrator may call over plain
HTTP inside the cluster.
"""

from flask_talisman import Talisman

__all__ = ['talisman']

######################################
# Security extenstions for Flask app #
######################################
talisman = Talisman()
