"""Catalog sync services: identity resolution, writing and reconciliation."""
