"""Luxe storefront: cart state and catalog views over a CRUD data store."""

__version__ = "1.0.0"
