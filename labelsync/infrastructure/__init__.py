"""Infrastructure layer: catalog connector, persistence, services and CLI."""
