"""External catalog connectors."""

from .spotify import SpotifyCatalogConnector

__all__ = ["SpotifyCatalogConnector"]
