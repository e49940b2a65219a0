"""Schema-validated, versioned JSON records: validators, messages, RPC services over WSGI and an HTTP client."""

__version__ = "0.1.0"