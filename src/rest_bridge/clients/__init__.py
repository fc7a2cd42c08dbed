"""Backend clients for rest-bridge."""

from rest_bridge.clients.rest import RESTClient

__all__ = ["RESTClient"]
