"""
# Namespaces Plugin - Helper Utilities

This module provides common, reusable utility functions that are shared across
the application, such as logging formatters or request parsers.
"""


def get_error_log_extra(err, context):
    """
    Creates a standard 'extra' dict for logging exceptions.

    Args:
        err (Exception): The exception that occurred.
        context (dict): The log context (e.g., {'context': 'SERVER-API'}).

    Returns:
        dict: A dictionary formatted for the JSON logger.
    """
    return {
        **context,
        "error_type": type(err).__name__,
        "error_message": str(err)
    }


def build_label_selector(labels):
    """
    Serializes a label mapping into a Kubernetes label selector string.

    All pairs are ANDed by the API server, so the order does not change the
    result. Keys are sorted to keep the string stable across requests.

    Args:
        labels (dict): Label keys and values, may be None or empty.

    Returns:
        str: Selector like "a=1,b=2", or an empty string for no labels.
    """
    if not labels:
        return ""
    return ",".join(f"{key}={labels[key]}" for key in sorted(labels))
