"""Web framework integrations."""

from cloudlogdriver.adapters.frameworks.asgi import CloudLoggingMiddleware

__all__ = ["CloudLoggingMiddleware"]
